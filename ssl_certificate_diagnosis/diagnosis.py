"""
SSL证书诊断主流程
"""
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, List, Optional, TextIO

from .exceptions import ConfigurationError
from .interfaces import CertificateFetcherInterface, DomainSourceInterface
from .models import CheckResult, DomainVerdict, OutputMode
from .services.cert_fetcher import TLSCertificateFetcher
from .services.config_validator import DiagnosisConfig
from .services.domain_config import (
    DomainConfigManager,
    FileDomainSource,
    DirectoryDomainSource,
    combine_domain_sources,
)
from .services.expiry_calculator import ExpiryCalculator
from .services.logger import LoggerService
from .services.renewal_command import RenewalCommand
from .services.reporter import Reporter
from .services.sns_notification import SNSNotificationService
from .services.verdict_aggregator import VerdictAggregator


class SSLCertificateDiagnosis:
    """SSL证书诊断器主类"""

    def __init__(self, config: DiagnosisConfig,
                 stream: Optional[TextIO] = None,
                 renew_action: Optional[Callable[[str], None]] = None,
                 fetcher: Optional[CertificateFetcherInterface] = None,
                 notify: bool = False):
        """
        初始化诊断器

        Args:
            config: 验证后的运行配置
            stream: 报告输出流，默认标准输出
            renew_action: 命令模式下的续期回调，默认根据 renew_command 创建
            fetcher: TLS证书获取器，默认使用 TLSCertificateFetcher
            notify: 是否通过SNS发送问题通知

        Raises:
            ConfigurationError: 命令模式缺少续期命令
        """
        self.config = config
        self.notify = notify

        self.logger_service = LoggerService(log_level=config.log_level)
        self.expiry_calculator = ExpiryCalculator(alert_window_days=config.alert_window_days)
        self.fetcher = fetcher or TLSCertificateFetcher(timeout=config.timeout_seconds)
        self.aggregator = VerdictAggregator(
            fetcher=self.fetcher,
            expiry_calculator=self.expiry_calculator,
            max_workers=config.max_workers
        )

        if renew_action is None and config.output_mode is OutputMode.COMMAND:
            if not config.renew_command:
                raise ConfigurationError("命令模式需要配置续期命令")
            renew_action = RenewalCommand(config.renew_command)

        self.reporter = Reporter(
            output_mode=config.output_mode,
            stream=stream,
            renew_action=renew_action,
            logger_service=self.logger_service
        )

        self.notification_service = None
        if notify:
            self.notification_service = SNSNotificationService(
                topic_arn=config.sns_topic_arn,
                alert_window_days=config.alert_window_days
            )

        self.logger_service.log_configuration_info(config.as_log_dict())

    def domain_sources(self) -> List[DomainSourceInterface]:
        """根据配置创建域名来源"""
        sources: List[DomainSourceInterface] = []
        if self.config.domains:
            sources.append(DomainConfigManager(value=",".join(self.config.domains)))
        if self.config.domains_file:
            sources.append(FileDomainSource(self.config.domains_file))
        if self.config.domains_dir:
            sources.append(DirectoryDomainSource(self.config.domains_dir))
        return sources

    def collect_domains(self) -> List[str]:
        """
        收集要检查的域名

        Returns:
            List[str]: 域名列表

        Raises:
            ConfigurationError: 没有任何可检查的域名
        """
        sources = self.domain_sources()
        if not sources:
            raise ConfigurationError("没有配置域名来源")

        domains = combine_domain_sources(sources)
        if not domains:
            raise ConfigurationError("没有找到要检查的域名")

        return domains

    def execute(self, domains: Optional[List[str]] = None) -> CheckResult:
        """
        执行证书诊断

        Args:
            domains: 要检查的域名，默认从配置的来源读取

        Returns:
            CheckResult: 检查结果

        Raises:
            ConfigurationError: 配置错误，此时不会发起任何连接
        """
        start_time = datetime.now(timezone.utc)

        if domains is None:
            domains = self.collect_domains()
        elif not domains:
            raise ConfigurationError("没有找到要检查的域名")

        self.logger_service.reset_stats()
        self.logger_service.log_check_start(len(domains))
        if isinstance(self.fetcher, TLSCertificateFetcher):
            self.fetcher.reset_errors()

        verdict_stream = self.aggregator.iter_verdicts(domains, now=start_time)
        outcome = self.reporter.report(self._logged(verdict_stream))
        verdicts = outcome['verdicts']

        if isinstance(self.fetcher, TLSCertificateFetcher):
            connection_errors = self.fetcher.connection_errors
            self.logger_service.log_connection_errors(
                connection_errors,
                self.fetcher.error_classifier.get_error_statistics(connection_errors)
            )

        if self.notification_service is not None:
            self._send_notifications(verdicts)

        categorized = self.expiry_calculator.categorize_verdicts(verdicts, now=start_time)
        self.logger_service.logger.info(
            f"过期状态: {self.expiry_calculator.get_expiry_summary(verdicts, now=start_time)}"
        )

        self.logger_service.log_check_end()
        self.logger_service.log_execution_summary()

        execution_time = (datetime.now(timezone.utc) - start_time).total_seconds()

        return CheckResult(
            total_domains=len(domains),
            reachable_domains=categorized['reachable'],
            unreachable_domains=categorized['unreachable'],
            name_problems=[v for v in verdicts if not v.is_name_ok],
            due_for_renewal=categorized['due_for_renewal'],
            errors=[
                f"{error['domain']}: {error['error_type']}: {error['error_message']}"
                for error in self.logger_service.execution_stats['errors']
            ],
            execution_time=execution_time,
            verdicts=verdicts,
            failed_renewals=outcome['failed_renewals']
        )

    def _logged(self, verdicts: Iterable[DomainVerdict]) -> Iterator[DomainVerdict]:
        for verdict in verdicts:
            self.logger_service.log_verdict(verdict)
            yield verdict

    def _send_notifications(self, verdicts: List[DomainVerdict]) -> bool:
        """
        发送问题通知

        Args:
            verdicts: 诊断结论

        Returns:
            bool: 通知是否发送成功
        """
        problem_count = len([v for v in verdicts if v.problems])
        if not problem_count:
            self.logger_service.logger.info("所有证书状态正常，无需发送通知")
            return True

        sent = self.notification_service.send_renewal_notification(verdicts)
        self.logger_service.log_notification_sent("SNS", problem_count, sent)
        return sent

    def validate_system_health(self) -> dict:
        """
        验证系统健康状态

        Returns:
            dict: 系统健康状态信息
        """
        health_status = {
            'overall_healthy': True,
            'components': {},
            'issues': []
        }

        try:
            domains = self.collect_domains()
            health_status['components']['domain_sources'] = {
                'healthy': True,
                'details': {'total_domains': len(domains)}
            }
        except ConfigurationError as e:
            health_status['overall_healthy'] = False
            health_status['components']['domain_sources'] = {'healthy': False, 'details': {}}
            health_status['issues'].append(str(e))

        if self.notification_service is not None:
            sns_config = self.notification_service.get_configuration_status()
            sns_healthy = sns_config['configuration_valid'] and self.notification_service.test_connection()
            health_status['components']['sns_notification'] = {
                'healthy': sns_healthy,
                'details': sns_config
            }
            if not sns_healthy:
                health_status['overall_healthy'] = False
                health_status['issues'].append("SNS通知配置无效或连接失败")

        return health_status
