"""
数据模型定义
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Tuple


class MatchResult(Enum):
    """证书与请求域名的匹配结果"""
    EXACT_MATCH = "exact"
    ALT_NAME_MATCH = "alt"
    MISMATCH = "mismatch"
    NO_CERTIFICATE = "no-certificate"


class RenewalStatus(Enum):
    """证书续期状态"""
    UNKNOWN = "unknown"
    OK = "ok"
    DUE_FOR_RENEWAL = "due"


class OutputMode(Enum):
    """报告输出模式"""
    TABLE = "table"
    RENEW_LIST = "renew-list"
    COMMAND = "command"

    @classmethod
    def parse(cls, value: str) -> "OutputMode":
        """从配置字符串解析输出模式（兼容下划线写法）"""
        normalized = value.strip().lower().replace('_', '-')
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(f"未知的输出模式: {value}")


@dataclass(frozen=True)
class CertificateInfo:
    """从叶子证书中提取的字段"""
    subject_cn: str = "-"
    issuer_cn: str = "-"
    not_after: Optional[datetime] = None
    san_list: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DomainVerdict:
    """单个域名的诊断结论"""
    domain: str
    certificate: Optional[CertificateInfo]
    match: MatchResult
    renewal: RenewalStatus
    problems: Tuple[str, ...] = ()

    @property
    def needs_renewal(self) -> bool:
        return self.renewal is RenewalStatus.DUE_FOR_RENEWAL

    @property
    def is_name_ok(self) -> bool:
        """证书是否签发给该域名（主题或备用名称）"""
        return self.match in (MatchResult.EXACT_MATCH, MatchResult.ALT_NAME_MATCH)

    @property
    def has_certificate(self) -> bool:
        return self.certificate is not None

    @property
    def issued_for_display(self) -> str:
        """
        表格中"证书签发对象"一列的显示文本

        通过备用名称匹配时显示请求的域名并加上"(alt)"后缀。
        """
        if self.certificate is None:
            return "-"
        if self.match is MatchResult.ALT_NAME_MATCH:
            return f"{self.domain} (alt)"
        return self.certificate.subject_cn


@dataclass
class CheckResult:
    """检查结果统计"""
    total_domains: int
    reachable_domains: int
    unreachable_domains: int
    name_problems: List[DomainVerdict]
    due_for_renewal: List[DomainVerdict]
    errors: List[str]
    execution_time: float
    verdicts: List[DomainVerdict] = field(default_factory=list)
    failed_renewals: List[str] = field(default_factory=list)
