"""
配置验证器测试
"""
import pytest
import os
from unittest.mock import patch

from ssl_certificate_diagnosis.exceptions import ConfigurationError
from ssl_certificate_diagnosis.models import OutputMode
from ssl_certificate_diagnosis.services.config_validator import (
    ConfigValidator,
    DiagnosisConfig,
    load_config_file,
)


class TestConfigValidator:
    """配置验证器测试类"""

    def setup_method(self):
        """测试前准备"""
        self.environ = {'DOMAINS': 'example.com,test.org'}

    def make_validator(self, overrides=None, config_file=None):
        return ConfigValidator(overrides=overrides, config_file=config_file, environ=self.environ)

    def test_defaults(self):
        """测试默认配置"""
        config = self.make_validator().load_configuration()

        assert config.domains == ['example.com', 'test.org']
        assert config.alert_window_days == 30
        assert config.timeout_seconds == 10
        assert config.max_workers == 10
        assert config.output_mode is OutputMode.TABLE
        assert config.renew_command is None
        assert config.sns_topic_arn is None
        assert config.log_level == 'INFO'

    @patch.dict(os.environ, {'DOMAINS': 'from-os-environ.com', 'ALERT_WINDOW_DAYS': '14'}, clear=True)
    def test_reads_os_environ_by_default(self):
        """测试默认读取进程环境变量"""
        config = ConfigValidator().load_configuration()

        assert config.domains == ['from-os-environ.com']
        assert config.alert_window_days == 14

    def test_no_domain_source(self):
        """测试没有配置任何域名来源"""
        self.environ = {}

        result = self.make_validator().validate_domains_configuration()

        assert result['is_valid'] is False
        assert any('DOMAINS' in error for error in result['errors'])

    def test_empty_domains_env(self):
        """测试域名环境变量为空字符串"""
        self.environ = {'DOMAINS': ''}

        with pytest.raises(ConfigurationError):
            self.make_validator().load_configuration()

    def test_domains_file_and_dir(self, tmp_path):
        """测试域名文件和目录来源"""
        domains_file = tmp_path / "domains.txt"
        domains_file.write_text("example.com\n", encoding="utf-8")
        self.environ = {'DOMAINS_FILE': str(domains_file), 'DOMAINS_DIR': str(tmp_path)}

        result = self.make_validator().validate_domains_configuration()

        assert result['is_valid'] is True
        assert result['domains'] == []
        assert result['domains_file'] == str(domains_file)
        assert result['domains_dir'] == str(tmp_path)

    def test_domains_file_missing(self, tmp_path):
        """测试域名文件不存在"""
        self.environ = {'DOMAINS_FILE': str(tmp_path / "missing.txt")}

        result = self.make_validator().validate_domains_configuration()

        assert result['is_valid'] is False
        assert any('域名文件不存在' in error for error in result['errors'])

    def test_domains_dir_missing(self, tmp_path):
        """测试域名目录不存在"""
        self.environ = {'DOMAINS_DIR': str(tmp_path / "missing")}

        result = self.make_validator().validate_domains_configuration()

        assert result['is_valid'] is False
        assert any('域名目录不存在' in error for error in result['errors'])

    def test_domains_list_override(self):
        """测试以列表形式指定域名"""
        result = self.make_validator({'domains': ['a.com', ' b.org ', '']}).validate_domains_configuration()

        assert result['domains'] == ['a.com', 'b.org']

    def test_domains_invalid_type(self):
        """测试域名配置类型无效"""
        result = self.make_validator({'domains': 42}).validate_domains_configuration()

        assert result['is_valid'] is False

    def test_check_configuration_from_env(self):
        """测试从环境变量读取检查参数"""
        self.environ.update({'ALERT_WINDOW_DAYS': '14', 'TIMEOUT_SECONDS': '5', 'MAX_WORKERS': '4'})

        result = self.make_validator().validate_check_configuration()

        assert result['is_valid'] is True
        assert result['alert_window_days'] == 14
        assert result['timeout_seconds'] == 5
        assert result['max_workers'] == 4

    def test_zero_alert_window_allowed(self):
        """测试提醒天数可以为0"""
        result = self.make_validator({'alert_window_days': 0}).validate_check_configuration()

        assert result['is_valid'] is True
        assert result['alert_window_days'] == 0

    @pytest.mark.parametrize("key,value", [
        ('alert_window_days', -1),
        ('alert_window_days', 'thirty'),
        ('timeout_seconds', 0),
        ('max_workers', 0),
        ('max_workers', 'many'),
    ])
    def test_check_configuration_invalid(self, key, value):
        """测试无效的检查参数"""
        result = self.make_validator({key: value}).validate_check_configuration()

        assert result['is_valid'] is False
        assert len(result['errors']) == 1

    def test_long_timeout_warning(self):
        """测试超时时间过长产生警告"""
        result = self.make_validator({'timeout_seconds': 120}).validate_check_configuration()

        assert result['is_valid'] is True
        assert len(result['warnings']) == 1

    @pytest.mark.parametrize("raw,expected", [
        ('table', OutputMode.TABLE),
        ('renew-list', OutputMode.RENEW_LIST),
        ('RENEW_LIST', OutputMode.RENEW_LIST),
        (OutputMode.RENEW_LIST, OutputMode.RENEW_LIST),
    ])
    def test_output_mode(self, raw, expected):
        """测试输出模式解析"""
        result = self.make_validator({'output_mode': raw}).validate_output_configuration()

        assert result['is_valid'] is True
        assert result['output_mode'] is expected

    def test_output_mode_invalid(self):
        """测试无效输出模式"""
        result = self.make_validator({'output_mode': 'json'}).validate_output_configuration()

        assert result['is_valid'] is False

    def test_command_mode_requires_renew_command(self):
        """测试命令模式缺少续期命令"""
        self.environ['OUTPUT_MODE'] = 'command'

        with pytest.raises(ConfigurationError) as exc_info:
            self.make_validator().load_configuration()

        assert any('RENEW_COMMAND' in error for error in exc_info.value.errors)

    def test_command_mode(self):
        """测试命令模式"""
        self.environ.update({'OUTPUT_MODE': 'command', 'RENEW_COMMAND': 'certbot renew --cert-name'})

        config = self.make_validator().load_configuration()

        assert config.output_mode is OutputMode.COMMAND
        assert config.renew_command == 'certbot renew --cert-name'

    def test_renew_command_without_command_mode_warns(self):
        """测试非命令模式下配置了续期命令"""
        self.environ['RENEW_COMMAND'] = 'renew'

        result = self.make_validator().validate_output_configuration()

        assert result['is_valid'] is True
        assert len(result['warnings']) == 1

    def test_sns_not_configured(self):
        """测试未配置SNS"""
        result = self.make_validator().validate_sns_configuration()

        assert result['is_valid'] is True
        assert result['topic_arn'] is None

    def test_sns_valid_arn(self):
        """测试有效的SNS主题ARN"""
        self.environ['SNS_TOPIC_ARN'] = 'arn:aws:sns:us-east-1:123456789012:ssl-alerts'

        result = self.make_validator().validate_sns_configuration()

        assert result['is_valid'] is True
        assert result['arn_format_valid'] is True

    @pytest.mark.parametrize("arn", [
        'invalid-arn',
        'arn:aws:s3:::bucket',
        'arn:aws:sns:us-east-1:123:ssl-alerts',
    ])
    def test_sns_invalid_arn(self, arn):
        """测试无效的SNS主题ARN"""
        self.environ['SNS_TOPIC_ARN'] = arn

        result = self.make_validator().validate_sns_configuration()

        assert result['is_valid'] is False

    def test_priority_override_file_env(self, tmp_path):
        """测试优先级：命令行 > 配置文件 > 环境变量"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "alert_window_days: 20\n"
            "timeout_seconds: 7\n"
            "domains:\n"
            "  - file.example.com\n",
            encoding="utf-8"
        )
        self.environ.update({'ALERT_WINDOW_DAYS': '45', 'TIMEOUT_SECONDS': '3', 'MAX_WORKERS': '2'})

        config = self.make_validator({'alert_window_days': 5, 'timeout_seconds': None},
                                     config_file=str(config_file)).load_configuration()

        assert config.alert_window_days == 5
        assert config.timeout_seconds == 7
        assert config.max_workers == 2
        assert config.domains == ['file.example.com']

    def test_validate_all_collects_errors(self):
        """测试汇总所有配置错误"""
        self.environ = {'ALERT_WINDOW_DAYS': '-3', 'SNS_TOPIC_ARN': 'bad'}

        result = self.make_validator().validate_all_configurations()

        assert result['is_valid'] is False
        assert len(result['errors']) == 3
        assert set(result['configurations']) == {'domains', 'check', 'output', 'sns'}

    def test_config_file_error_reported(self, tmp_path):
        """测试配置文件错误作为配置错误报告"""
        result = self.make_validator(config_file=str(tmp_path / "missing.yaml")).validate_all_configurations()

        assert result['is_valid'] is False
        assert any('不存在' in error for error in result['errors'])

    def test_as_log_dict(self):
        """测试日志配置字典"""
        config = DiagnosisConfig(domains=['a.com', 'b.org'], output_mode=OutputMode.RENEW_LIST)

        log_dict = config.as_log_dict()

        assert log_dict['domains'] == 'a.com,b.org'
        assert log_dict['output_mode'] == 'renew-list'
        assert log_dict['sns_topic_arn'] == ''


class TestLoadConfigFile:
    """配置文件读取测试类"""

    def test_load(self, tmp_path):
        """测试读取YAML配置"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("output_mode: renew-list\nmax_workers: 3\n", encoding="utf-8")

        assert load_config_file(str(config_file)) == {'output_mode': 'renew-list', 'max_workers': 3}

    def test_empty_file(self, tmp_path):
        """测试空配置文件"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("", encoding="utf-8")

        assert load_config_file(str(config_file)) == {}

    def test_not_a_mapping(self, tmp_path):
        """测试顶层不是映射"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config_file(str(config_file))

    def test_invalid_yaml(self, tmp_path):
        """测试YAML格式错误"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("domains: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config_file(str(config_file))

    def test_missing_file(self, tmp_path):
        """测试配置文件不存在"""
        with pytest.raises(ConfigurationError):
            load_config_file(str(tmp_path / "missing.yaml"))
