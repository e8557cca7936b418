"""
SNS通知服务测试
"""
import pytest
import os
from unittest.mock import patch, MagicMock
from datetime import datetime, timezone
from botocore.exceptions import ClientError, EndpointConnectionError
from moto import mock_aws

from ssl_certificate_diagnosis.services.sns_notification import SNSNotificationService
from ssl_certificate_diagnosis.models import (
    CertificateInfo,
    DomainVerdict,
    MatchResult,
    RenewalStatus,
)


def sample_verdicts():
    expiry = datetime(2026, 11, 1, tzinfo=timezone.utc)
    return [
        DomainVerdict(
            "healthy.com",
            CertificateInfo("healthy.com", "Test CA", datetime(2027, 6, 1, tzinfo=timezone.utc)),
            MatchResult.EXACT_MATCH, RenewalStatus.OK
        ),
        DomainVerdict(
            "www.expiring.com",
            CertificateInfo("expiring.com", "Another CA", expiry, ("expiring.com", "www.expiring.com")),
            MatchResult.ALT_NAME_MATCH, RenewalStatus.DUE_FOR_RENEWAL,
            ("certificate near renewal date",)
        ),
        DomainVerdict(
            "other.org",
            CertificateInfo("default.host", "Self Signed", datetime(2027, 6, 1, tzinfo=timezone.utc)),
            MatchResult.MISMATCH, RenewalStatus.OK,
            ("certificate issued for another name",)
        ),
        DomainVerdict(
            "down.com", None, MatchResult.NO_CERTIFICATE, RenewalStatus.UNKNOWN,
            ("no certificate found",)
        ),
    ]


def client_error(code, message="error"):
    return ClientError({'Error': {'Code': code, 'Message': message}}, 'Publish')


class TestSNSNotificationService:
    """SNS通知服务测试类"""

    def setup_method(self):
        """测试前准备"""
        self.topic_arn = "arn:aws:sns:us-east-1:123456789012:ssl-alerts"
        self.verdicts = sample_verdicts()

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_init_with_topic_arn(self, mock_boto3):
        """测试使用指定topic_arn初始化"""
        mock_client = MagicMock()
        mock_boto3.client.return_value = mock_client

        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service.topic_arn == self.topic_arn
        assert service.sns_client == mock_client
        mock_boto3.client.assert_called_once_with('sns', region_name='us-east-1')

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_region_from_arn(self, mock_boto3):
        """测试从ARN中提取区域"""
        service = SNSNotificationService(topic_arn="arn:aws:sns:eu-west-1:123456789012:alerts")

        assert service.region_name == 'eu-west-1'
        mock_boto3.client.assert_called_once_with('sns', region_name='eu-west-1')

    @patch.dict(os.environ, {'SNS_TOPIC_ARN': 'arn:aws:sns:us-east-1:123456789012:env-topic'})
    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_init_from_env(self, mock_boto3):
        """测试从环境变量初始化"""
        service = SNSNotificationService()

        assert service.topic_arn == 'arn:aws:sns:us-east-1:123456789012:env-topic'

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_init_client_failure(self, mock_boto3):
        """测试SNS客户端初始化失败"""
        mock_boto3.client.side_effect = EndpointConnectionError(endpoint_url="https://sns.invalid")

        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service.sns_client is None
        assert service.get_configuration_status()['configuration_valid'] is False

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_send_notification_no_problems(self, mock_boto3):
        """测试没有问题时不发送通知"""
        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service.send_renewal_notification(self.verdicts[:1]) is True
        service.sns_client.publish.assert_not_called()

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_send_notification_success(self, mock_boto3):
        """测试发送通知成功"""
        mock_client = MagicMock()
        mock_client.publish.return_value = {'MessageId': 'test-message-id'}
        mock_boto3.client.return_value = mock_client
        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service.send_renewal_notification(self.verdicts) is True

        kwargs = mock_client.publish.call_args.kwargs
        assert kwargs['TopicArn'] == self.topic_arn
        assert kwargs['Subject'] == "🚨 SSL证书警报: 1个证书需要续期, 2个证书域名异常"
        assert "healthy.com" not in kwargs['Message']

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_send_notification_without_topic(self, mock_boto3):
        """测试未配置主题时发送失败"""
        with patch.dict(os.environ, {}, clear=True):
            service = SNSNotificationService()

        assert service.send_renewal_notification(self.verdicts) is False
        service.sns_client.publish.assert_not_called()

    @patch('ssl_certificate_diagnosis.services.sns_notification.time.sleep')
    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_publish_retry_then_success(self, mock_boto3, mock_sleep):
        """测试可重试错误后重试成功"""
        mock_client = MagicMock()
        mock_client.publish.side_effect = [client_error('Throttling'), {'MessageId': 'id'}]
        mock_boto3.client.return_value = mock_client
        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service._publish_with_retry("subject", "message") is True
        assert mock_client.publish.call_count == 2
        mock_sleep.assert_called_once_with(1)

    @patch('ssl_certificate_diagnosis.services.sns_notification.time.sleep')
    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_publish_retry_exhausted(self, mock_boto3, mock_sleep):
        """测试重试次数用尽"""
        mock_client = MagicMock()
        mock_client.publish.side_effect = client_error('ServiceUnavailable')
        mock_boto3.client.return_value = mock_client
        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service._publish_with_retry("subject", "message", max_retries=2) is False
        assert mock_client.publish.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @patch('ssl_certificate_diagnosis.services.sns_notification.time.sleep')
    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_publish_non_retryable(self, mock_boto3, mock_sleep):
        """测试不可重试错误"""
        mock_client = MagicMock()
        mock_client.publish.side_effect = client_error('AuthorizationError')
        mock_boto3.client.return_value = mock_client
        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service._publish_with_retry("subject", "message") is False
        assert mock_client.publish.call_count == 1
        mock_sleep.assert_not_called()

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_subject_truncated(self, mock_boto3):
        """测试消息主题长度限制"""
        service = SNSNotificationService(topic_arn=self.topic_arn)

        service._publish_with_retry("x" * 150, "message")

        assert len(service.sns_client.publish.call_args.kwargs['Subject']) == 100

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_format_subject(self, mock_boto3):
        """测试通知主题格式"""
        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service._format_subject([self.verdicts[1]]) == "⚠️ SSL证书提醒: 1个证书需要续期"
        assert service._format_subject(self.verdicts[2:]) == "🚨 SSL证书警报: 2个证书域名异常"

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_format_notification_content_empty(self, mock_boto3):
        """测试空结论列表的通知内容"""
        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service.format_notification_content([]) == "所有SSL证书状态正常。"

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_format_notification_content(self, mock_boto3):
        """测试通知内容格式"""
        service = SNSNotificationService(topic_arn=self.topic_arn, alert_window_days=14)

        content = service.format_notification_content(self.verdicts[1:])

        assert content.startswith("SSL证书诊断报告")
        assert "需要续期的证书 (14天内到期)" in content
        assert "• www.expiring.com" in content
        assert "证书签发对象: www.expiring.com (alt)" in content
        assert "过期时间: 2026-11-01" in content
        assert "颁发者: Another CA" in content
        assert "域名不匹配的证书" in content
        assert "证书签发对象: default.host" in content
        assert "未获取到证书的域名" in content
        assert "• down.com" in content

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_format_status_report(self, mock_boto3):
        """测试完整状态报告格式"""
        service = SNSNotificationService(topic_arn=self.topic_arn)
        summary = {'duration_seconds': 2.5, 'reachable': 3, 'unreachable': 1}

        subject = service._format_status_report_subject(self.verdicts)
        content = service.format_status_report_content(self.verdicts, summary)

        assert subject == "⚠️ SSL证书诊断: 3个域名存在问题 | 共4个域名"
        assert "执行时长: 2.50 秒" in content
        assert "总域名数: 4" in content
        assert "• healthy.com - 2027-06-01 到期 (Test CA)" in content
        assert "SSL证书诊断报告" in content

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_format_status_report_all_healthy(self, mock_boto3):
        """测试全部正常时的报告主题"""
        service = SNSNotificationService(topic_arn=self.topic_arn)

        assert service._format_status_report_subject(self.verdicts[:1]) == "✅ SSL证书诊断: 全部正常 | 共1个域名"

    @patch('ssl_certificate_diagnosis.services.sns_notification.boto3')
    def test_connection_failure(self, mock_boto3):
        """测试SNS连接测试失败"""
        service = SNSNotificationService(topic_arn=self.topic_arn)
        service.sns_client.get_topic_attributes.side_effect = client_error('NotFound')

        assert service.test_connection() is False


class TestSNSNotificationServiceWithMoto:
    """使用moto模拟SNS的测试"""

    @mock_aws
    def test_send_renewal_notification(self):
        """测试向模拟主题发送通知"""
        import boto3

        sns = boto3.client('sns', region_name='us-east-1')
        topic_arn = sns.create_topic(Name='ssl-alerts')['TopicArn']

        service = SNSNotificationService(topic_arn=topic_arn)

        assert service.test_connection() is True
        assert service.send_renewal_notification(sample_verdicts()) is True

    @mock_aws
    def test_send_status_report(self):
        """测试向模拟主题发送状态报告"""
        import boto3

        sns = boto3.client('sns', region_name='us-east-1')
        topic_arn = sns.create_topic(Name='ssl-report')['TopicArn']

        service = SNSNotificationService(topic_arn=topic_arn)

        assert service.send_status_report(sample_verdicts(), {'duration_seconds': 1.0}) is True

    @mock_aws
    def test_missing_topic(self):
        """测试主题不存在"""
        service = SNSNotificationService(topic_arn="arn:aws:sns:us-east-1:123456789012:missing")

        assert service.test_connection() is False
