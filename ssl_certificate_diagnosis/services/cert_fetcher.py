"""
TLS证书获取服务
"""
import ssl
import socket
import threading
from typing import Any, Dict, List, Optional
import logging

from ..interfaces import CertificateFetcherInterface
from ..models import CertificateInfo
from .cert_extractor import CertificateFieldExtractor
from .error_handler import ConnectionErrorClassifier


class TLSCertificateFetcher(CertificateFetcherInterface):
    """TLS证书获取器实现"""

    def __init__(self, timeout: int = 10, port: int = 443,
                 extractor: Optional[CertificateFieldExtractor] = None):
        """
        初始化TLS证书获取器

        Args:
            timeout: 连接和握手超时时间（秒）
            port: TLS端口，默认443
            extractor: 证书字段提取器
        """
        self.timeout = timeout
        self.port = port
        self.logger = logging.getLogger(__name__)
        self.extractor = extractor or CertificateFieldExtractor()
        self.error_classifier = ConnectionErrorClassifier()
        self._errors_lock = threading.Lock()
        self.connection_errors: List[Dict[str, Any]] = []

    def fetch(self, domain: str) -> Optional[CertificateInfo]:
        """
        获取单个域名的叶子证书

        只尝试一次。连接、DNS、握手失败或超时时返回None，不会抛出异常。

        Args:
            domain: 要检查的域名（同时作为连接目标和SNI）

        Returns:
            Optional[CertificateInfo]: 证书信息，无法获取时为None
        """
        try:
            der_cert = self._get_peer_certificate(domain)
        except Exception as e:
            error_info = self.error_classifier.handle_ssl_connection_error(domain, e)
            with self._errors_lock:
                self.connection_errors.append(error_info)
            return None

        return self.extractor.extract(der_cert)

    def _create_context(self) -> ssl.SSLContext:
        """
        创建不验证证书链的TLS上下文

        需要读取自签名或已过期的证书，所以关闭主机名检查和证书验证。
        """
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    def _get_peer_certificate(self, domain: str) -> bytes:
        """
        获取DER编码的叶子证书

        Args:
            domain: 域名

        Returns:
            bytes: DER编码的证书

        Raises:
            Exception: 连接失败或服务器没有提供证书
        """
        context = self._create_context()

        with socket.create_connection((domain, self.port), timeout=self.timeout) as sock:
            with context.wrap_socket(sock, server_hostname=domain) as ssock:
                der_cert = ssock.getpeercert(binary_form=True)

        if not der_cert:
            raise ssl.SSLError(f"服务器 {domain} 没有提供证书")

        return der_cert

    def reset_errors(self):
        """清空已记录的连接错误"""
        with self._errors_lock:
            self.connection_errors = []
