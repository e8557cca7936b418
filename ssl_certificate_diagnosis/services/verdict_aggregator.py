"""
诊断结论汇总服务
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional

from ..interfaces import CertificateFetcherInterface
from ..models import CertificateInfo, DomainVerdict, MatchResult, RenewalStatus
from .domain_reconciler import DomainReconciler
from .expiry_calculator import ExpiryCalculator


PROBLEM_NO_CERTIFICATE = "no certificate found"
PROBLEM_NAME_MISMATCH = "certificate issued for another name"
PROBLEM_RENEWAL_DUE = "certificate near renewal date"


class VerdictAggregator:
    """
    诊断结论汇总器

    每个域名独立获取和诊断，使用有界线程池并发执行。
    结论按输入顺序返回，重复的域名会各自独立处理。
    """

    def __init__(self, fetcher: CertificateFetcherInterface,
                 reconciler: Optional[DomainReconciler] = None,
                 expiry_calculator: Optional[ExpiryCalculator] = None,
                 max_workers: int = 10):
        """
        初始化诊断结论汇总器

        Args:
            fetcher: TLS证书获取器
            reconciler: 域名匹配器
            expiry_calculator: 过期计算器
            max_workers: 同时进行的TLS连接数上限
        """
        self.fetcher = fetcher
        self.reconciler = reconciler or DomainReconciler()
        self.expiry_calculator = expiry_calculator or ExpiryCalculator()
        self.max_workers = max(1, max_workers)
        self.logger = logging.getLogger(__name__)

    def build_verdict(self, domain: str, cert_info: Optional[CertificateInfo],
                      now: Optional[datetime] = None) -> DomainVerdict:
        """
        组合匹配结果和续期状态生成诊断结论

        问题列表顺序固定：先域名问题，后续期问题。

        Args:
            domain: 请求的域名
            cert_info: 证书信息，无法获取时为None
            now: 当前时间

        Returns:
            DomainVerdict: 诊断结论
        """
        match = self.reconciler.reconcile(domain, cert_info)
        not_after = cert_info.not_after if cert_info is not None else None
        renewal = self.expiry_calculator.evaluate(not_after, now)

        problems = []
        if match is MatchResult.NO_CERTIFICATE:
            problems.append(PROBLEM_NO_CERTIFICATE)
        elif match is MatchResult.MISMATCH:
            problems.append(PROBLEM_NAME_MISMATCH)

        if renewal is RenewalStatus.DUE_FOR_RENEWAL:
            problems.append(PROBLEM_RENEWAL_DUE)

        return DomainVerdict(
            domain=domain,
            certificate=cert_info,
            match=match,
            renewal=renewal,
            problems=tuple(problems),
        )

    def check_domain(self, domain: str, now: Optional[datetime] = None) -> DomainVerdict:
        """
        获取并诊断单个域名

        Args:
            domain: 域名
            now: 当前时间

        Returns:
            DomainVerdict: 诊断结论
        """
        try:
            cert_info = self.fetcher.fetch(domain)
        except Exception as e:
            # 获取器本身不应抛出异常，这里兜底记录为无证书
            self.logger.error(f"获取域名 {domain} 的证书时发生意外错误: {type(e).__name__}: {str(e)}")
            cert_info = None

        return self.build_verdict(domain, cert_info, now)

    def iter_verdicts(self, domains: Iterable[str], now: Optional[datetime] = None) -> Iterator[DomainVerdict]:
        """
        按输入顺序逐个产出诊断结论

        后面的域名在后台并发获取，前面的结论一完成就会产出。
        迭代中断（包括 KeyboardInterrupt）时取消尚未开始的任务。

        Args:
            domains: 域名列表
            now: 当前时间，整个批次使用同一时间

        Yields:
            DomainVerdict: 诊断结论
        """
        domains = list(domains)
        now = now or datetime.now(timezone.utc)

        if self.max_workers == 1 or len(domains) <= 1:
            for domain in domains:
                yield self.check_domain(domain, now)
            return

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(domains)),
                                      thread_name_prefix="cert-fetch")
        try:
            futures = [executor.submit(self.check_domain, domain, now) for domain in domains]
            for future in futures:
                yield future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def check_domains(self, domains: Iterable[str], now: Optional[datetime] = None) -> List[DomainVerdict]:
        """
        诊断全部域名

        Args:
            domains: 域名列表
            now: 当前时间

        Returns:
            List[DomainVerdict]: 与输入顺序一致的诊断结论列表
        """
        return list(self.iter_verdicts(domains, now))
