"""
服务接口定义
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from .models import CertificateInfo, DomainVerdict


class DomainSourceInterface(ABC):
    """域名来源接口"""

    @abstractmethod
    def get_domains(self) -> List[str]:
        """获取域名列表"""
        pass

    @abstractmethod
    def validate_domain(self, domain: str) -> bool:
        """验证域名格式"""
        pass


class CertificateFetcherInterface(ABC):
    """TLS证书获取器接口"""

    @abstractmethod
    def fetch(self, domain: str) -> Optional[CertificateInfo]:
        """获取单个域名的证书，无法获取时返回None"""
        pass


class NotificationServiceInterface(ABC):
    """通知服务接口"""

    @abstractmethod
    def send_renewal_notification(self, verdicts: List[DomainVerdict]) -> bool:
        """发送证书续期通知"""
        pass

    @abstractmethod
    def format_notification_content(self, verdicts: List[DomainVerdict]) -> str:
        """格式化通知内容"""
        pass


class LoggerServiceInterface(ABC):
    """日志服务接口"""

    @abstractmethod
    def log_check_start(self, domain_count: int):
        """记录检查开始"""
        pass

    @abstractmethod
    def log_verdict(self, verdict: DomainVerdict):
        """记录诊断结论"""
        pass

    @abstractmethod
    def log_renewal_action(self, domain: str, success: bool, detail: str = ""):
        """记录续期命令执行结果"""
        pass
