"""
域名来源管理服务
"""
import os
import re
import ipaddress
from typing import Iterable, List, Optional
import logging

from ..exceptions import ConfigurationError
from ..interfaces import DomainSourceInterface


# 主机名格式验证正则表达式（允许单标签主机名，保留大小写）
HOSTNAME_LABEL = r'[a-zA-Z0-9_](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?'
DOMAIN_PATTERN = re.compile(rf'^{HOSTNAME_LABEL}(?:\.{HOSTNAME_LABEL})*$')


class DomainSource(DomainSourceInterface):
    """
    域名来源基类，提供域名清理和验证

    strict 为True时遇到无效域名抛出 ConfigurationError；为False时跳过无效条目并记录警告。
    """

    strict = True

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def validate_domain(self, domain: str) -> bool:
        """
        验证主机名格式

        接受多标签或单标签主机名，以及IPv4/IPv6地址。

        Args:
            domain: 要验证的主机名

        Returns:
            bool: 主机名是否有效
        """
        if not domain or not isinstance(domain, str):
            return False

        if self._is_ip_address(domain):
            return True

        if len(domain) > 253:
            return False

        return bool(DOMAIN_PATTERN.match(domain))

    @staticmethod
    def _is_ip_address(value: str) -> bool:
        try:
            ipaddress.ip_address(value)
        except ValueError:
            return False
        return True

    def _clean_domain(self, domain: str) -> str:
        """
        清理域名格式，去掉协议、路径和端口，不改变大小写

        Args:
            domain: 原始域名

        Returns:
            str: 清理后的域名
        """
        if not domain:
            return ""

        domain = domain.strip()

        # 移除协议前缀
        lowered = domain.lower()
        if lowered.startswith('https://'):
            domain = domain[8:]
        elif lowered.startswith('http://'):
            domain = domain[7:]

        # 移除路径部分
        if '/' in domain:
            domain = domain.split('/')[0]

        # [IPv6]:端口
        if domain.startswith('[') and ']' in domain:
            return domain[1:domain.index(']')]

        # 移除端口号；多个冒号时是IPv6地址
        if domain.count(':') == 1:
            domain = domain.split(':')[0]

        return domain.strip()

    def _clean_and_validate(self, raw_domains: Iterable[str]) -> List[str]:
        """
        清理并验证域名

        Raises:
            ConfigurationError: strict 模式下存在无效域名
        """
        valid_domains = []
        invalid_domains = []
        for domain in raw_domains:
            if not domain:
                continue
            cleaned_domain = self._clean_domain(domain)
            if self.validate_domain(cleaned_domain):
                valid_domains.append(cleaned_domain)
            else:
                invalid_domains.append(domain)
                self.logger.warning(f"无效域名: {domain}")

        if invalid_domains and self.strict:
            raise ConfigurationError(
                f"无效的域名: {', '.join(invalid_domains)}",
                errors=[f"无效的域名: {domain}" for domain in invalid_domains]
            )

        return valid_domains


class DomainConfigManager(DomainSource):
    """从环境变量读取逗号分隔的域名列表"""

    def __init__(self, env_var_name: str = "DOMAINS", value: Optional[str] = None):
        """
        初始化域名配置管理器

        Args:
            env_var_name: 环境变量名称，默认为"DOMAINS"
            value: 直接指定的域名字符串，优先于环境变量
        """
        super().__init__()
        self.env_var_name = env_var_name
        self.value = value

    def _raw_value(self) -> str:
        if self.value is not None:
            return self.value
        return os.getenv(self.env_var_name, "")

    def get_domains(self) -> List[str]:
        """
        获取域名列表（逗号分隔）

        Returns:
            List[str]: 域名列表

        Raises:
            ConfigurationError: 包含无效域名
        """
        domains_str = self._raw_value()

        if not domains_str.strip():
            self.logger.warning(f"{self.env_var_name} 为空，没有可检查的域名")
            return []

        raw_domains = [domain.strip() for domain in domains_str.split(',')]
        valid_domains = self._clean_and_validate(raw_domains)

        self.logger.info(f"从 {self.env_var_name} 加载 {len(valid_domains)} 个域名")
        return valid_domains


class FileDomainSource(DomainSource):
    """从文本文件读取域名，每行一个，忽略空行和#注释"""

    def __init__(self, file_path: str):
        super().__init__()
        self.file_path = file_path

    def get_domains(self) -> List[str]:
        """
        读取域名文件

        Returns:
            List[str]: 域名列表

        Raises:
            ConfigurationError: 文件无法读取或包含无效域名
        """
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                lines = [line.split('#', 1)[0].strip() for line in f]
        except OSError as e:
            raise ConfigurationError(f"无法读取域名文件 {self.file_path}: {e}")

        valid_domains = self._clean_and_validate(line for line in lines if line)
        self.logger.info(f"从文件 {self.file_path} 加载 {len(valid_domains)} 个域名")
        return valid_domains


class DirectoryDomainSource(DomainSource):
    """
    以目录中的条目名作为域名

    适用于每个域名一个子目录的布局，例如 /etc/letsencrypt/live 或虚拟主机目录。
    """

    # 无法识别的目录条目只记录警告
    strict = False
    IGNORED_ENTRIES = {'README', 'default'}

    def __init__(self, directory: str):
        super().__init__()
        self.directory = directory

    def get_domains(self) -> List[str]:
        """
        列出目录中的域名

        Returns:
            List[str]: 按名称排序的域名列表

        Raises:
            ConfigurationError: 目录无法读取
        """
        try:
            entries = sorted(os.listdir(self.directory))
        except OSError as e:
            raise ConfigurationError(f"无法读取域名目录 {self.directory}: {e}")

        candidates = [
            entry for entry in entries
            if not entry.startswith('.') and entry not in self.IGNORED_ENTRIES
        ]
        valid_domains = self._clean_and_validate(candidates)
        self.logger.info(f"从目录 {self.directory} 加载 {len(valid_domains)} 个域名")
        return valid_domains


def combine_domain_sources(sources: Iterable[DomainSourceInterface]) -> List[str]:
    """
    合并多个来源的域名

    按来源顺序拼接；同一域名在多个来源中出现时只保留第一次出现的位置。

    Args:
        sources: 域名来源列表

    Returns:
        List[str]: 合并后的域名列表
    """
    seen = set()
    domains = []
    for source in sources:
        for domain in source.get_domains():
            if domain not in seen:
                seen.add(domain)
                domains.append(domain)
    return domains
