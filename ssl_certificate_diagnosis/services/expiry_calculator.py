"""
证书过期计算服务
"""
from datetime import datetime, timezone, timedelta
from typing import List, Optional
from ..models import DomainVerdict, RenewalStatus


class ExpiryCalculator:
    """证书过期计算器"""

    def __init__(self, alert_window_days: int = 30):
        """
        初始化过期计算器

        Args:
            alert_window_days: 提前提醒续期的天数，默认30天
        """
        self.alert_window_days = alert_window_days

    def evaluate(self, not_after: Optional[datetime], now: Optional[datetime] = None) -> RenewalStatus:
        """
        判断证书是否需要续期

        过期时间小于等于"当前时间 + 提醒天数"即视为需要续期（边界包含在内）。

        Args:
            not_after: 证书过期时间，无法解析时为None
            now: 当前时间，默认使用UTC当前时间

        Returns:
            RenewalStatus: 续期状态
        """
        if not_after is None:
            return RenewalStatus.UNKNOWN

        threshold = self.renewal_threshold(now)
        if self._as_utc(not_after) <= threshold:
            return RenewalStatus.DUE_FOR_RENEWAL

        return RenewalStatus.OK

    def renewal_threshold(self, now: Optional[datetime] = None) -> datetime:
        """返回续期提醒的截止时间"""
        now = self._as_utc(now or datetime.now(timezone.utc))
        return now + timedelta(days=self.alert_window_days)

    def is_expired(self, verdict: DomainVerdict, now: Optional[datetime] = None) -> bool:
        """
        判断证书是否已过期

        Args:
            verdict: 诊断结论
            now: 当前时间

        Returns:
            bool: 是否已过期
        """
        if verdict.certificate is None or verdict.certificate.not_after is None:
            return False
        now = self._as_utc(now or datetime.now(timezone.utc))
        return self._as_utc(verdict.certificate.not_after) < now

    def filter_due_for_renewal(self, verdicts: List[DomainVerdict]) -> List[DomainVerdict]:
        """
        筛选需要续期的证书

        Args:
            verdicts: 诊断结论列表

        Returns:
            List[DomainVerdict]: 需要续期的结论列表（保持原顺序）
        """
        return [verdict for verdict in verdicts if verdict.needs_renewal]

    def categorize_verdicts(self, verdicts: List[DomainVerdict], now: Optional[datetime] = None) -> dict:
        """
        对诊断结论进行分类

        Args:
            verdicts: 诊断结论列表
            now: 当前时间

        Returns:
            dict: 分类结果
        """
        with_cert = [verdict for verdict in verdicts if verdict.has_certificate]
        due = self.filter_due_for_renewal(with_cert)

        return {
            'total': len(verdicts),
            'reachable': len(with_cert),
            'unreachable': len(verdicts) - len(with_cert),
            'expired': [verdict for verdict in due if self.is_expired(verdict, now)],
            'due_for_renewal': due,
            'unknown_expiry': [verdict for verdict in with_cert
                               if verdict.renewal is RenewalStatus.UNKNOWN],
            'healthy': [verdict for verdict in with_cert
                        if verdict.renewal is RenewalStatus.OK and verdict.is_name_ok]
        }

    def get_expiry_summary(self, verdicts: List[DomainVerdict], now: Optional[datetime] = None) -> str:
        """
        获取过期状态摘要

        Args:
            verdicts: 诊断结论列表
            now: 当前时间

        Returns:
            str: 摘要信息
        """
        categorized = self.categorize_verdicts(verdicts, now=now)

        summary_parts = [
            f"总计: {categorized['total']} 个域名",
            f"获取到证书: {categorized['reachable']} 个",
            f"无证书: {categorized['unreachable']} 个"
        ]

        if categorized['expired']:
            summary_parts.append(f"已过期: {len(categorized['expired'])} 个")

        if categorized['due_for_renewal']:
            summary_parts.append(
                f"需要续期({self.alert_window_days}天内): {len(categorized['due_for_renewal'])} 个"
            )

        if categorized['healthy']:
            summary_parts.append(f"健康: {len(categorized['healthy'])} 个")

        return ", ".join(summary_parts)

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        # 无时区信息的时间按UTC处理
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
