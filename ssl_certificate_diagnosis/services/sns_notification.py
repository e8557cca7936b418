"""
SNS通知服务
"""
import os
import time
from typing import List, Optional
import logging
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..interfaces import NotificationServiceInterface
from ..models import DomainVerdict, MatchResult


# SNS消息主题长度上限
MAX_SUBJECT_LENGTH = 100


class SNSNotificationService(NotificationServiceInterface):
    """SNS通知服务实现"""

    def __init__(self, topic_arn: Optional[str] = None, region_name: Optional[str] = None,
                 alert_window_days: int = 30):
        """
        初始化SNS通知服务

        Args:
            topic_arn: SNS主题ARN，如果为None则从环境变量读取
            region_name: AWS区域名称，如果为None则自动检测
            alert_window_days: 续期提醒天数，用于通知文案
        """
        self.topic_arn = topic_arn or os.getenv('SNS_TOPIC_ARN')
        self.alert_window_days = alert_window_days

        if region_name:
            self.region_name = region_name
        elif self.topic_arn and self.topic_arn.startswith('arn:aws:sns:'):
            # 从SNS ARN中提取区域
            self.region_name = self.topic_arn.split(':')[3]
        else:
            self.region_name = os.getenv('AWS_REGION', 'us-east-1')

        self.logger = logging.getLogger(__name__)

        self.sns_client = None
        try:
            self.sns_client = boto3.client('sns', region_name=self.region_name)
            self.logger.debug(f"SNS客户端初始化成功，区域: {self.region_name}")
        except (BotoCoreError, ClientError) as e:
            self.logger.error(f"初始化SNS客户端失败: {str(e)}")

    def send_renewal_notification(self, verdicts: List[DomainVerdict]) -> bool:
        """
        发送证书问题通知（需要续期、域名不匹配或无证书）

        Args:
            verdicts: 诊断结论列表，只有存在问题的结论会进入通知

        Returns:
            bool: 发送是否成功
        """
        problem_verdicts = [verdict for verdict in verdicts if verdict.problems]
        if not problem_verdicts:
            self.logger.info("没有存在问题的证书，跳过通知发送")
            return True

        if not self._validate_configuration():
            return False

        subject = self._format_subject(problem_verdicts)
        message = self.format_notification_content(problem_verdicts)

        return self._publish_with_retry(subject, message)

    def send_status_report(self, verdicts: List[DomainVerdict], execution_summary: dict) -> bool:
        """
        发送完整状态报告

        Args:
            verdicts: 所有域名的诊断结论
            execution_summary: 执行摘要

        Returns:
            bool: 发送是否成功
        """
        if not self._validate_configuration():
            return False

        subject = self._format_status_report_subject(verdicts)
        message = self.format_status_report_content(verdicts, execution_summary)

        return self._publish_with_retry(subject, message)

    def _publish_with_retry(self, subject: str, message: str, max_retries: int = 3) -> bool:
        """
        带重试机制的SNS消息发布

        Args:
            subject: 消息主题
            message: 消息内容
            max_retries: 最大重试次数

        Returns:
            bool: 发送是否成功
        """
        subject = subject[:MAX_SUBJECT_LENGTH]

        for attempt in range(max_retries + 1):
            try:
                response = self.sns_client.publish(
                    TopicArn=self.topic_arn,
                    Subject=subject,
                    Message=message
                )

                message_id = response.get('MessageId')
                self.logger.info(f"SNS通知发送成功，MessageId: {message_id}")
                return True

            except ClientError as e:
                error_code = e.response['Error']['Code']
                error_message = e.response['Error']['Message']

                if self._is_retryable_error(error_code) and attempt < max_retries:
                    wait_time = 2 ** attempt  # 指数退避
                    self.logger.warning(
                        f"SNS发送失败 (尝试 {attempt + 1}/{max_retries + 1}) - {error_code}: {error_message}，"
                        f"{wait_time}秒后重试"
                    )
                    time.sleep(wait_time)
                    continue

                self.logger.error(f"SNS发送失败 - {error_code}: {error_message}")
                return False

            except BotoCoreError as e:
                if attempt < max_retries:
                    wait_time = 2 ** attempt
                    self.logger.warning(
                        f"发送SNS通知时发生错误 (尝试 {attempt + 1}/{max_retries + 1}): {str(e)}，"
                        f"{wait_time}秒后重试"
                    )
                    time.sleep(wait_time)
                    continue

                self.logger.error(f"发送SNS通知时发生错误: {str(e)}")
                return False

        return False

    def _is_retryable_error(self, error_code: str) -> bool:
        """
        判断错误是否可重试

        Args:
            error_code: AWS错误代码

        Returns:
            bool: 是否可重试
        """
        retryable_errors = {
            'Throttling',
            'ServiceUnavailable',
            'InternalError',
            'RequestTimeout'
        }
        return error_code in retryable_errors

    def _validate_configuration(self) -> bool:
        """检查SNS配置是否可用"""
        if not self.topic_arn:
            self.logger.error("未配置SNS_TOPIC_ARN，无法发送通知")
            return False

        if self.sns_client is None:
            self.logger.error("SNS客户端不可用，无法发送通知")
            return False

        return True

    def _format_subject(self, verdicts: List[DomainVerdict]) -> str:
        """
        格式化通知主题

        Args:
            verdicts: 存在问题的诊断结论

        Returns:
            str: 通知主题
        """
        due_count = len([v for v in verdicts if v.needs_renewal])
        name_count = len([v for v in verdicts if not v.is_name_ok])

        if due_count and name_count:
            return f"🚨 SSL证书警报: {due_count}个证书需要续期, {name_count}个证书域名异常"
        elif due_count:
            return f"⚠️ SSL证书提醒: {due_count}个证书需要续期"
        else:
            return f"🚨 SSL证书警报: {name_count}个证书域名异常"

    def format_notification_content(self, verdicts: List[DomainVerdict]) -> str:
        """
        格式化通知内容

        Args:
            verdicts: 诊断结论列表

        Returns:
            str: 通知内容
        """
        if not verdicts:
            return "所有SSL证书状态正常。"

        due = [v for v in verdicts if v.needs_renewal]
        no_cert = [v for v in verdicts if v.match is MatchResult.NO_CERTIFICATE]
        mismatched = [v for v in verdicts if v.match is MatchResult.MISMATCH]

        lines = [
            "SSL证书诊断报告",
            "=" * 40,
            f"检查时间: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC",
            ""
        ]

        if due:
            lines.extend([f"⚠️  需要续期的证书 ({self.alert_window_days}天内到期):", "-" * 30])
            for verdict in due:
                lines.extend(self._verdict_lines(verdict))

        if mismatched:
            lines.extend(["🚨 域名不匹配的证书:", "-" * 30])
            for verdict in mismatched:
                lines.extend(self._verdict_lines(verdict))

        if no_cert:
            lines.extend(["❌ 未获取到证书的域名:", "-" * 30])
            for verdict in no_cert:
                lines.append(f"• {verdict.domain}")
            lines.append("")

        lines.extend([
            "---",
            "此报告由SSL证书诊断工具自动生成"
        ])

        return "\n".join(lines)

    def _verdict_lines(self, verdict: DomainVerdict) -> List[str]:
        cert = verdict.certificate
        expiry = cert.not_after.strftime('%Y-%m-%d') if cert and cert.not_after else "未知"
        return [
            f"• {verdict.domain}",
            f"  证书签发对象: {verdict.issued_for_display}",
            f"  过期时间: {expiry}",
            f"  颁发者: {cert.issuer_cn if cert else '-'}",
            f"  问题: {', '.join(verdict.problems)}",
            ""
        ]

    def _format_status_report_subject(self, verdicts: List[DomainVerdict]) -> str:
        total = len(verdicts)
        problem_count = len([v for v in verdicts if v.problems])

        if problem_count:
            return f"⚠️ SSL证书诊断: {problem_count}个域名存在问题 | 共{total}个域名"
        return f"✅ SSL证书诊断: 全部正常 | 共{total}个域名"

    def format_status_report_content(self, verdicts: List[DomainVerdict], execution_summary: dict) -> str:
        """
        格式化完整状态报告内容

        Args:
            verdicts: 所有域名的诊断结论
            execution_summary: 执行摘要

        Returns:
            str: 报告内容
        """
        healthy = [v for v in verdicts if not v.problems]
        problems = [v for v in verdicts if v.problems]

        lines = [
            "SSL证书诊断日报",
            "=" * 40,
            f"执行时长: {execution_summary.get('duration_seconds', 0):.2f} 秒",
            f"总域名数: {len(verdicts)}",
            f"获取到证书: {execution_summary.get('reachable', 0)}",
            f"无证书: {execution_summary.get('unreachable', 0)}",
            ""
        ]

        if problems:
            lines.append(self.format_notification_content(problems))
            lines.append("")

        if healthy:
            lines.extend(["✅ 正常证书:", "-" * 30])
            for verdict in healthy:
                expiry = verdict.certificate.not_after.strftime('%Y-%m-%d') \
                    if verdict.certificate and verdict.certificate.not_after else "未知"
                lines.append(f"• {verdict.domain} - {expiry} 到期 ({verdict.certificate.issuer_cn})")
            lines.append("")

        return "\n".join(lines)

    def test_connection(self) -> bool:
        """
        测试SNS连接

        Returns:
            bool: 主题是否可访问
        """
        if not self._validate_configuration():
            return False

        try:
            self.sns_client.get_topic_attributes(TopicArn=self.topic_arn)
            return True
        except (BotoCoreError, ClientError) as e:
            self.logger.error(f"SNS连接测试失败: {str(e)}")
            return False

    def get_configuration_status(self) -> dict:
        """
        获取配置状态

        Returns:
            dict: 配置状态
        """
        return {
            'topic_arn_configured': bool(self.topic_arn),
            'region_name': self.region_name,
            'client_available': self.sns_client is not None,
            'configuration_valid': bool(self.topic_arn) and self.sns_client is not None
        }
