"""
日志服务
"""
import os
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from ..interfaces import LoggerServiceInterface
from ..models import DomainVerdict, MatchResult
from .domain_reconciler import DomainReconciler


class LoggerService(LoggerServiceInterface):
    """日志服务实现"""

    def __init__(self, logger_name: str = "ssl_certificate_diagnosis", log_level: Optional[str] = None):
        """
        初始化日志服务

        Args:
            logger_name: 日志器名称
            log_level: 日志级别，如果为None则从环境变量读取
        """
        self.logger_name = logger_name
        self.log_level = log_level or os.getenv('LOG_LEVEL', 'INFO')

        self.logger = logging.getLogger(logger_name)
        self._configure_logger()
        self.reconciler = DomainReconciler()

        self.execution_stats = self._empty_stats()

    def _empty_stats(self) -> Dict[str, Any]:
        return {
            'start_time': None,
            'end_time': None,
            'total_domains': 0,
            'reachable': 0,
            'unreachable': 0,
            'name_mismatches': 0,
            'due_for_renewal': 0,
            'renewals_succeeded': 0,
            'renewals_failed': 0,
            'errors': []
        }

    def _configure_logger(self):
        """配置日志器"""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # 避免重复添加处理器
        if not self.logger.handlers:
            # 输出到stderr，标准输出只留给报告
            handler = logging.StreamHandler()
            handler.setLevel(level)

            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            handler.setFormatter(formatter)

            self.logger.addHandler(handler)
        else:
            for handler in self.logger.handlers:
                handler.setLevel(level)

        self.logger.propagate = False

    def log_check_start(self, domain_count: int):
        """
        记录检查开始

        Args:
            domain_count: 要检查的域名数量
        """
        self.execution_stats['start_time'] = datetime.now(timezone.utc)
        self.execution_stats['total_domains'] = domain_count

        self.logger.info(f"开始证书诊断，共 {domain_count} 个域名")
        self.logger.debug(f"检查开始时间: {self.execution_stats['start_time'].isoformat()}")

    def log_verdict(self, verdict: DomainVerdict):
        """
        记录诊断结论

        Args:
            verdict: 单个域名的诊断结论
        """
        if verdict.certificate is None:
            self.execution_stats['unreachable'] += 1
            self.logger.warning(f"未获取到证书 - 域名: {verdict.domain}")
            return

        self.execution_stats['reachable'] += 1
        cert = verdict.certificate
        expiry = cert.not_after.isoformat() if cert.not_after else "未知"
        details = (
            f"域名: {verdict.domain}, "
            f"签发对象: {verdict.issued_for_display}, "
            f"过期时间: {expiry}, "
            f"颁发者: {cert.issuer_cn}"
        )

        annotation = self.reconciler.describe(verdict.domain, cert, verdict.match)
        if verdict.match is MatchResult.MISMATCH:
            self.execution_stats['name_mismatches'] += 1
            self.logger.warning(f"证书域名不匹配 - {details}, 说明: {annotation}")
        else:
            self.logger.debug(f"域名匹配 - {annotation}")

        if verdict.needs_renewal:
            self.execution_stats['due_for_renewal'] += 1
            self.logger.warning(f"证书需要续期 - {details}")
        elif verdict.is_name_ok:
            self.logger.info(f"证书正常 - {details}")

    def log_connection_errors(self, error_list: List[Dict[str, Any]],
                              statistics: Optional[Dict[str, Any]] = None):
        """
        汇总记录证书获取失败的域名

        Args:
            error_list: 连接错误分类器产生的错误信息列表
            statistics: 连接错误分类器给出的错误统计
        """
        for error_info in error_list:
            self.execution_stats['errors'].append({
                'domain': error_info['domain'],
                'error_type': error_info['error_type'],
                'error_message': error_info['error_message'],
                'timestamp': error_info.get('timestamp', datetime.now(timezone.utc).isoformat())
            })
            self.logger.debug(
                f"域名 {error_info['domain']} 建议: {error_info.get('suggested_action', '-')}"
            )

        if statistics and statistics['total_errors']:
            self.logger.info(
                f"证书获取失败: 共 {statistics['total_errors']} 个, "
                f"连接失败 {statistics['connect_failures']} 个, "
                f"其他错误 {statistics['other_errors']} 个, "
                f"最常见: {statistics['most_common_error']} ({statistics['most_common_error_count']} 次)"
            )

    def log_renewal_action(self, domain: str, success: bool, detail: str = ""):
        """
        记录续期命令执行结果

        Args:
            domain: 域名
            success: 是否执行成功
            detail: 附加说明
        """
        if success:
            self.execution_stats['renewals_succeeded'] += 1
            self.logger.info(f"续期命令执行成功 - 域名: {domain}")
        else:
            self.execution_stats['renewals_failed'] += 1
            self.execution_stats['errors'].append({
                'domain': domain,
                'error_type': 'ExternalCommandFailure',
                'error_message': detail,
                'timestamp': datetime.now(timezone.utc).isoformat()
            })
            self.logger.error(f"续期命令执行失败 - 域名: {domain}, 原因: {detail}")

    def log_check_end(self):
        """记录检查结束"""
        self.execution_stats['end_time'] = datetime.now(timezone.utc)

        if self.execution_stats['start_time']:
            duration = (self.execution_stats['end_time'] - self.execution_stats['start_time']).total_seconds()
        else:
            duration = 0

        self.logger.info("证书诊断完成")
        self.logger.info(f"总执行时间: {duration:.2f} 秒")
        self.logger.info(
            f"检查统计: 总计 {self.execution_stats['total_domains']} 个域名, "
            f"获取到证书 {self.execution_stats['reachable']} 个, "
            f"无证书 {self.execution_stats['unreachable']} 个, "
            f"需要续期 {self.execution_stats['due_for_renewal']} 个"
        )

    def log_notification_sent(self, notification_type: str, recipient_count: int, success: bool):
        """
        记录通知发送状态

        Args:
            notification_type: 通知类型（如 "SNS"）
            recipient_count: 通知涉及的域名数量
            success: 是否发送成功
        """
        if success:
            self.logger.info(f"{notification_type} 通知发送成功，域名数量: {recipient_count}")
        else:
            self.logger.error(f"{notification_type} 通知发送失败，域名数量: {recipient_count}")

    def log_configuration_info(self, config: Dict[str, Any]):
        """
        记录配置信息

        Args:
            config: 配置信息字典
        """
        safe_config = self._sanitize_config(config)

        self.logger.info("系统配置信息:")
        for key, value in safe_config.items():
            self.logger.info(f"  {key}: {value}")

    def _sanitize_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        清理配置信息中的敏感数据

        Args:
            config: 原始配置

        Returns:
            Dict[str, Any]: 清理后的配置
        """
        safe_config = {}
        for key, value in config.items():
            key_lower = key.lower()

            is_sensitive = (
                key_lower in {'password', 'secret', 'token', 'key', 'sns_topic_arn'} or
                key_lower.endswith('_key') or
                key_lower.endswith('_secret') or
                key_lower.endswith('_password') or
                key_lower.endswith('_token')
            )

            if key_lower.endswith('_command') and isinstance(value, str) and value.strip():
                # 命令参数中可能包含令牌，只显示程序名
                parts = value.split(None, 1)
                safe_config[key] = f"{parts[0]} ***" if len(parts) > 1 else parts[0]
            elif is_sensitive and isinstance(value, str) and value:
                if 'arn:' in value:
                    # ARN类型，只显示前缀和后缀
                    parts = value.split(':')
                    if len(parts) >= 6:
                        safe_value = f"{':'.join(parts[:3])}:***:{parts[-2]}:{parts[-1]}"
                    else:
                        safe_value = "***"
                else:
                    safe_value = value[:3] + "***" if len(value) > 3 else "***"
                safe_config[key] = safe_value
            else:
                safe_config[key] = value

        return safe_config

    def get_execution_summary(self) -> Dict[str, Any]:
        """
        获取执行摘要

        Returns:
            Dict[str, Any]: 执行摘要信息
        """
        stats = self.execution_stats
        duration = 0
        if stats['start_time'] and stats['end_time']:
            duration = (stats['end_time'] - stats['start_time']).total_seconds()

        return {
            'start_time': stats['start_time'].isoformat() if stats['start_time'] else None,
            'end_time': stats['end_time'].isoformat() if stats['end_time'] else None,
            'duration_seconds': duration,
            'total_domains': stats['total_domains'],
            'reachable': stats['reachable'],
            'unreachable': stats['unreachable'],
            'name_mismatches': stats['name_mismatches'],
            'due_for_renewal': stats['due_for_renewal'],
            'renewals_succeeded': stats['renewals_succeeded'],
            'renewals_failed': stats['renewals_failed'],
            'reachable_rate': (
                stats['reachable'] / stats['total_domains']
                if stats['total_domains'] > 0 else 0
            ),
            'error_count': len(stats['errors']),
            'errors': stats['errors']
        }

    def log_execution_summary(self):
        """记录执行摘要"""
        summary = self.get_execution_summary()

        self.logger.info("=" * 50)
        self.logger.info("执行摘要")
        self.logger.info("=" * 50)
        self.logger.info(f"执行时长: {summary['duration_seconds']:.2f} 秒")
        self.logger.info(f"总域名数: {summary['total_domains']}")
        self.logger.info(f"获取到证书: {summary['reachable']}")
        self.logger.info(f"无证书: {summary['unreachable']}")
        self.logger.info(f"域名不匹配: {summary['name_mismatches']}")
        self.logger.info(f"需要续期: {summary['due_for_renewal']}")

        if summary['renewals_succeeded'] or summary['renewals_failed']:
            self.logger.info(
                f"续期命令: 成功 {summary['renewals_succeeded']} 个, 失败 {summary['renewals_failed']} 个"
            )

        if summary['errors']:
            self.logger.info(f"错误数量: {summary['error_count']}")
            for i, error in enumerate(summary['errors'][:5], 1):  # 只显示前5个错误
                self.logger.info(f"  错误 {i}: {error['domain']} - {error['error_type']}: {error['error_message']}")

            if len(summary['errors']) > 5:
                self.logger.info(f"  ... 还有 {len(summary['errors']) - 5} 个错误")

        self.logger.info("=" * 50)

    def reset_stats(self):
        """重置执行统计"""
        self.execution_stats = self._empty_stats()
