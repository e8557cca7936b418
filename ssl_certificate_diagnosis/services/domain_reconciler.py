"""
域名与证书匹配服务
"""
from typing import Optional

from ..models import CertificateInfo, MatchResult


class DomainReconciler:
    """
    域名匹配器

    比较区分大小写，按字面匹配。通配符备用名称（如 *.example.com）
    也按字面字符串比较，不会展开匹配具体子域名。
    """

    def reconcile(self, domain: str, cert_info: Optional[CertificateInfo]) -> MatchResult:
        """
        判断证书是否签发给请求的域名

        Args:
            domain: 请求的域名
            cert_info: 证书信息，无法获取证书时为None

        Returns:
            MatchResult: 匹配结果
        """
        if cert_info is None:
            return MatchResult.NO_CERTIFICATE

        if cert_info.subject_cn == domain:
            return MatchResult.EXACT_MATCH

        if domain in cert_info.san_list:
            return MatchResult.ALT_NAME_MATCH

        return MatchResult.MISMATCH

    def describe(self, domain: str, cert_info: Optional[CertificateInfo],
                 match: Optional[MatchResult] = None) -> str:
        """
        生成可读的匹配说明

        Args:
            domain: 请求的域名
            cert_info: 证书信息
            match: 已有的匹配结果，为None时重新计算

        Returns:
            str: 匹配说明
        """
        if match is None:
            match = self.reconcile(domain, cert_info)

        if match is MatchResult.NO_CERTIFICATE:
            return f"{domain}: 未获取到证书"
        if match is MatchResult.EXACT_MATCH:
            return f"{domain}: 证书主题匹配"
        if match is MatchResult.ALT_NAME_MATCH:
            return f"{domain}: 通过备用名称匹配（证书主题 {cert_info.subject_cn}）"
        return f"{domain}: 证书签发给 {cert_info.subject_cn}，与域名不符"
