"""
证书字段提取服务
"""
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple, Union

from cryptography import x509
from cryptography.x509.oid import NameOID

from ..models import CertificateInfo


MISSING_FIELD = "-"

# 读取单个字段时可能出现的解析错误（字段按需解析，加载成功不代表每个字段都可读）
FIELD_PARSE_ERRORS = (ValueError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType)


class CertificateFieldExtractor:
    """证书字段提取器实现"""

    def __init__(self):
        """初始化证书字段提取器"""
        self.logger = logging.getLogger(__name__)

    def extract(self, raw_certificate: Union[bytes, Mapping[str, Any]]) -> CertificateInfo:
        """
        从证书中提取主题CN、颁发者CN、过期时间和备用名称

        字段缺失或格式错误时使用默认值，不会抛出异常。

        Args:
            raw_certificate: DER编码的证书，或 ssl.getpeercert() 返回的字典

        Returns:
            CertificateInfo: 证书信息
        """
        if isinstance(raw_certificate, (bytes, bytearray)):
            return self._extract_from_der(bytes(raw_certificate))

        if isinstance(raw_certificate, Mapping):
            return self._extract_from_dict(raw_certificate)

        self.logger.debug(f"无法识别的证书类型: {type(raw_certificate).__name__}")
        return CertificateInfo()

    def _extract_from_der(self, der_data: bytes) -> CertificateInfo:
        try:
            cert = x509.load_der_x509_certificate(der_data)
        except ValueError as e:
            self.logger.debug(f"DER证书解析失败: {str(e)}")
            return CertificateInfo()

        return CertificateInfo(
            subject_cn=self._name_common_name(cert, 'subject'),
            issuer_cn=self._name_common_name(cert, 'issuer'),
            not_after=self._der_not_after(cert),
            san_list=self._der_san_list(cert),
        )

    def _name_common_name(self, cert: x509.Certificate, attribute: str) -> str:
        """
        读取主题或颁发者的通用名称（完整值）

        Args:
            cert: 证书对象
            attribute: 'subject' 或 'issuer'

        Returns:
            str: 通用名称，缺失时为"-"
        """
        try:
            name = getattr(cert, attribute)
            attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
        except FIELD_PARSE_ERRORS as e:
            self.logger.debug(f"证书{attribute}解析失败: {str(e)}")
            return MISSING_FIELD

        if not attrs:
            return MISSING_FIELD

        value = attrs[0].value
        if isinstance(value, bytes):
            value = value.decode('utf-8', errors='replace')
        return value or MISSING_FIELD

    def _der_not_after(self, cert: x509.Certificate) -> Optional[datetime]:
        try:
            return cert.not_valid_after_utc
        except FIELD_PARSE_ERRORS as e:
            self.logger.debug(f"证书过期时间解析失败: {str(e)}")
            return None

    def _der_san_list(self, cert: x509.Certificate) -> Tuple[str, ...]:
        try:
            extension = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
            return tuple(extension.value.get_values_for_type(x509.DNSName))
        except x509.ExtensionNotFound:
            return ()
        except FIELD_PARSE_ERRORS as e:
            self.logger.debug(f"证书扩展解析失败: {type(e).__name__}: {e}")
            return ()

    def _extract_from_dict(self, cert: Mapping[str, Any]) -> CertificateInfo:
        return CertificateInfo(
            subject_cn=self._parse_common_name(cert.get('subject', ())),
            issuer_cn=self._parse_common_name(cert.get('issuer', ())),
            not_after=self._parse_expiry_date(cert),
            san_list=self._parse_san_list(cert),
        )

    def _parse_common_name(self, rdn_sequence) -> str:
        """
        从 getpeercert() 的名称结构中查找通用名称

        Args:
            rdn_sequence: 形如 ((('commonName', 'example.com'),),) 的结构

        Returns:
            str: 通用名称
        """
        try:
            for rdn in rdn_sequence:
                for key, value in rdn:
                    if key == 'commonName' and value:
                        return value
        except (TypeError, ValueError):
            self.logger.debug(f"证书名称结构异常: {rdn_sequence!r}")

        return MISSING_FIELD

    def _parse_expiry_date(self, cert: Mapping[str, Any]) -> Optional[datetime]:
        not_after = cert.get('notAfter')
        if not not_after:
            return None

        # 时间格式：'Dec 31 23:59:59 2024 GMT'
        try:
            expiry_date = datetime.strptime(not_after, '%b %d %H:%M:%S %Y %Z')
        except (TypeError, ValueError):
            self.logger.debug(f"无法解析证书过期时间: {not_after!r}")
            return None

        return expiry_date.replace(tzinfo=timezone.utc)

    def _parse_san_list(self, cert: Mapping[str, Any]) -> Tuple[str, ...]:
        names = []
        for entry in cert.get('subjectAltName', ()) or ():
            try:
                kind, value = entry
            except (TypeError, ValueError):
                continue
            if kind == 'DNS':
                names.append(value)
        return tuple(names)
