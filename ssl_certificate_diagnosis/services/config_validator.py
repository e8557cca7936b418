"""
配置验证服务
"""
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
import logging

import yaml

from ..exceptions import ConfigurationError
from ..models import OutputMode


DEFAULT_ALERT_WINDOW_DAYS = 30
DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_MAX_WORKERS = 10

# 配置项名称与环境变量的对应关系
ENV_VARS = {
    'domains': 'DOMAINS',
    'domains_file': 'DOMAINS_FILE',
    'domains_dir': 'DOMAINS_DIR',
    'alert_window_days': 'ALERT_WINDOW_DAYS',
    'output_mode': 'OUTPUT_MODE',
    'renew_command': 'RENEW_COMMAND',
    'timeout_seconds': 'TIMEOUT_SECONDS',
    'max_workers': 'MAX_WORKERS',
    'sns_topic_arn': 'SNS_TOPIC_ARN',
    'log_level': 'LOG_LEVEL',
}


@dataclass
class DiagnosisConfig:
    """验证后的运行配置"""
    domains: List[str] = field(default_factory=list)
    domains_file: Optional[str] = None
    domains_dir: Optional[str] = None
    alert_window_days: int = DEFAULT_ALERT_WINDOW_DAYS
    output_mode: OutputMode = OutputMode.TABLE
    renew_command: Optional[str] = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_workers: int = DEFAULT_MAX_WORKERS
    sns_topic_arn: Optional[str] = None
    log_level: str = 'INFO'

    def as_log_dict(self) -> Dict[str, Any]:
        """用于日志记录的配置字典"""
        return {
            'domains': ",".join(self.domains),
            'domains_file': self.domains_file,
            'domains_dir': self.domains_dir,
            'alert_window_days': self.alert_window_days,
            'output_mode': self.output_mode.value,
            'renew_command': self.renew_command,
            'timeout_seconds': self.timeout_seconds,
            'max_workers': self.max_workers,
            'sns_topic_arn': self.sns_topic_arn or '',
            'log_level': self.log_level,
        }


def load_config_file(config_file: str) -> Dict[str, Any]:
    """
    读取YAML配置文件

    Args:
        config_file: 配置文件路径

    Returns:
        Dict[str, Any]: 配置内容

    Raises:
        ConfigurationError: 文件不存在或格式错误
    """
    try:
        with open(config_file, 'r', encoding='utf-8') as stream:
            config = yaml.safe_load(stream)
    except FileNotFoundError:
        raise ConfigurationError(f"配置文件 {config_file} 不存在")
    except OSError as e:
        raise ConfigurationError(f"无法读取配置文件 {config_file}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"配置文件格式错误: {e}")

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"配置文件 {config_file} 顶层必须是映射")

    return config


class ConfigValidator:
    """配置验证器"""

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None,
                 config_file: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """
        初始化配置验证器

        优先级：命令行参数 > 配置文件 > 环境变量。

        Args:
            overrides: 命令行等来源的配置，值为None的项会被忽略
            config_file: YAML配置文件路径
            environ: 环境变量映射，默认为 os.environ
        """
        self.logger = logging.getLogger(__name__)
        self.overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        self.config_file = config_file
        self.environ = environ if environ is not None else os.environ
        self._file_config: Optional[Dict[str, Any]] = None

    def _file_values(self) -> Dict[str, Any]:
        if self._file_config is None:
            self._file_config = load_config_file(self.config_file) if self.config_file else {}
        return self._file_config

    def _raw(self, key: str) -> Any:
        """按优先级读取原始配置值"""
        if key in self.overrides:
            return self.overrides[key]

        file_values = self._file_values()
        if file_values.get(key) is not None:
            return file_values[key]

        value = self.environ.get(ENV_VARS[key])
        return value if value not in (None, '') else None

    def validate_all_configurations(self) -> Dict[str, Any]:
        """
        验证所有配置

        Returns:
            Dict[str, Any]: 验证结果
        """
        validation_result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'configurations': {}
        }

        try:
            sections = {
                'domains': self.validate_domains_configuration(),
                'check': self.validate_check_configuration(),
                'output': self.validate_output_configuration(),
                'sns': self.validate_sns_configuration(),
            }
        except ConfigurationError as e:
            validation_result['is_valid'] = False
            validation_result['errors'].append(str(e))
            return validation_result

        for name, section in sections.items():
            validation_result['configurations'][name] = section
            validation_result['warnings'].extend(section['warnings'])
            if not section['is_valid']:
                validation_result['is_valid'] = False
                validation_result['errors'].extend(section['errors'])

        return validation_result

    def validate_domains_configuration(self) -> Dict[str, Any]:
        """
        验证域名来源配置（至少需要一个来源）

        Returns:
            Dict[str, Any]: 域名配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'domains': [],
            'domains_file': None,
            'domains_dir': None
        }

        raw_domains = self._raw('domains')
        if isinstance(raw_domains, str):
            result['domains'] = [d.strip() for d in raw_domains.split(',') if d.strip()]
        elif isinstance(raw_domains, (list, tuple)):
            result['domains'] = [str(d).strip() for d in raw_domains if str(d).strip()]
        elif raw_domains is not None:
            result['is_valid'] = False
            result['errors'].append(f"domains 配置格式无效: {raw_domains!r}")

        domains_file = self._raw('domains_file')
        if domains_file:
            result['domains_file'] = str(domains_file)
            if not os.path.isfile(result['domains_file']):
                result['is_valid'] = False
                result['errors'].append(f"域名文件不存在: {domains_file}")

        domains_dir = self._raw('domains_dir')
        if domains_dir:
            result['domains_dir'] = str(domains_dir)
            if not os.path.isdir(result['domains_dir']):
                result['is_valid'] = False
                result['errors'].append(f"域名目录不存在: {domains_dir}")

        if not (result['domains'] or domains_file or domains_dir):
            result['is_valid'] = False
            result['errors'].append("没有配置域名来源（DOMAINS、DOMAINS_FILE 或 DOMAINS_DIR）")

        return result

    def validate_check_configuration(self) -> Dict[str, Any]:
        """
        验证检查参数：提醒天数、超时时间、并发数

        Returns:
            Dict[str, Any]: 检查参数验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'alert_window_days': DEFAULT_ALERT_WINDOW_DAYS,
            'timeout_seconds': DEFAULT_TIMEOUT_SECONDS,
            'max_workers': DEFAULT_MAX_WORKERS
        }

        limits = {
            'alert_window_days': (0, '续期提醒天数'),
            'timeout_seconds': (1, '超时时间'),
            'max_workers': (1, '并发数'),
        }

        for key, (minimum, description) in limits.items():
            raw = self._raw(key)
            if raw is None:
                continue
            try:
                value = int(raw)
            except (TypeError, ValueError):
                result['is_valid'] = False
                result['errors'].append(f"{description}格式无效: {raw}")
                continue

            if value < minimum:
                result['is_valid'] = False
                result['errors'].append(f"{description}必须大于等于 {minimum}: {value}")
                continue

            result[key] = value

        if result['timeout_seconds'] > 60:
            result['warnings'].append(f"超时时间较长: {result['timeout_seconds']}秒，单个不可达域名会拖慢检查")

        return result

    def validate_output_configuration(self) -> Dict[str, Any]:
        """
        验证输出模式，命令模式必须配置续期命令

        Returns:
            Dict[str, Any]: 输出配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'output_mode': OutputMode.TABLE,
            'renew_command': None
        }

        raw_mode = self._raw('output_mode')
        if isinstance(raw_mode, OutputMode):
            result['output_mode'] = raw_mode
        elif raw_mode is not None:
            try:
                result['output_mode'] = OutputMode.parse(str(raw_mode))
            except ValueError:
                result['is_valid'] = False
                result['errors'].append(f"输出模式无效: {raw_mode}（可选 table、renew-list、command）")

        renew_command = self._raw('renew_command')
        if renew_command is not None and str(renew_command).strip():
            result['renew_command'] = str(renew_command).strip()

        if result['output_mode'] is OutputMode.COMMAND and not result['renew_command']:
            result['is_valid'] = False
            result['errors'].append("命令模式需要配置续期命令（RENEW_COMMAND）")
        elif result['renew_command'] and result['output_mode'] is not OutputMode.COMMAND:
            result['warnings'].append("已配置续期命令，但输出模式不是 command，命令不会执行")

        return result

    def validate_sns_configuration(self) -> Dict[str, Any]:
        """
        验证SNS配置（可选）

        Returns:
            Dict[str, Any]: SNS配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'topic_arn': None,
            'arn_format_valid': False
        }

        topic_arn = self._raw('sns_topic_arn')
        if not topic_arn:
            return result

        result['topic_arn'] = topic_arn

        arn_pattern = r'^arn:aws:sns:[a-z0-9-]+:\d{12}:[a-zA-Z0-9_-]+$'
        if re.match(arn_pattern, topic_arn):
            result['arn_format_valid'] = True
        else:
            result['is_valid'] = False
            result['errors'].append(f"SNS主题ARN格式无效: {topic_arn}")

        return result

    def load_configuration(self) -> DiagnosisConfig:
        """
        验证并生成运行配置

        Returns:
            DiagnosisConfig: 运行配置

        Raises:
            ConfigurationError: 配置无效
        """
        validation_result = self.validate_all_configurations()

        for warning in validation_result['warnings']:
            self.logger.warning(warning)

        if not validation_result['is_valid']:
            raise ConfigurationError(
                "配置验证失败: " + "; ".join(validation_result['errors']),
                validation_result['errors']
            )

        sections = validation_result['configurations']
        return DiagnosisConfig(
            domains=sections['domains']['domains'],
            domains_file=sections['domains']['domains_file'],
            domains_dir=sections['domains']['domains_dir'],
            alert_window_days=sections['check']['alert_window_days'],
            output_mode=sections['output']['output_mode'],
            renew_command=sections['output']['renew_command'],
            timeout_seconds=sections['check']['timeout_seconds'],
            max_workers=sections['check']['max_workers'],
            sns_topic_arn=sections['sns']['topic_arn'],
            log_level=str(self._raw('log_level') or 'INFO'),
        )
