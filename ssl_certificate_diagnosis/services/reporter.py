"""
诊断报告输出服务
"""
import sys
import logging
from typing import Callable, Iterable, List, Optional, TextIO

from tabulate import tabulate

from ..exceptions import ConfigurationError
from ..models import DomainVerdict, OutputMode
from .logger import LoggerService


TABLE_HEADERS = ['Domain', 'cert-issued-for', 'valid-until', 'issued-by', 'problems']


class Reporter:
    """
    诊断报告输出器

    三种输出模式互斥：表格、待续期域名列表、对待续期域名执行命令。
    """

    def __init__(self, output_mode: OutputMode = OutputMode.TABLE,
                 stream: Optional[TextIO] = None,
                 renew_action: Optional[Callable[[str], None]] = None,
                 logger_service: Optional[LoggerService] = None):
        """
        初始化报告输出器

        Args:
            output_mode: 输出模式
            stream: 报告输出流，默认标准输出
            renew_action: 命令模式下对每个待续期域名调用的回调
            logger_service: 日志服务，用于记录续期命令结果

        Raises:
            ConfigurationError: 命令模式下没有提供回调
        """
        if output_mode is OutputMode.COMMAND and renew_action is None:
            raise ConfigurationError("命令模式需要配置续期命令")

        self.output_mode = output_mode
        self.stream = stream
        self.renew_action = renew_action
        self.logger_service = logger_service
        self.logger = logging.getLogger(__name__)

    @property
    def _out(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stdout

    def report(self, verdicts: Iterable[DomainVerdict]) -> dict:
        """
        输出报告

        列表模式和命令模式会在结论产生时立即处理，表格模式在全部结论到齐后输出。

        Args:
            verdicts: 诊断结论（列表或按顺序产出的迭代器）

        Returns:
            dict: {'verdicts': 已处理的结论, 'failed_renewals': 续期失败的域名}
        """
        if self.output_mode is OutputMode.RENEW_LIST:
            consumed = self.write_renew_list(verdicts)
            return {'verdicts': consumed, 'failed_renewals': []}

        if self.output_mode is OutputMode.COMMAND:
            return self.run_renewal_actions(verdicts)

        consumed = list(verdicts)
        self._out.write(self.format_table(consumed) + "\n")
        self._out.flush()
        return {'verdicts': consumed, 'failed_renewals': []}

    def format_table(self, verdicts: List[DomainVerdict]) -> str:
        """
        将诊断结论格式化为表格

        Args:
            verdicts: 诊断结论列表

        Returns:
            str: 表格文本
        """
        table_data = [self._table_row(verdict) for verdict in verdicts]
        return tabulate(table_data, headers=TABLE_HEADERS, tablefmt='simple')

    def _table_row(self, verdict: DomainVerdict) -> list:
        cert = verdict.certificate
        if cert is None:
            valid_until = '-'
            issued_by = '-'
        else:
            valid_until = cert.not_after.strftime('%Y-%m-%d') if cert.not_after else '-'
            issued_by = cert.issuer_cn

        return [
            verdict.domain,
            verdict.issued_for_display,
            valid_until,
            issued_by,
            ", ".join(verdict.problems) if verdict.problems else '-'
        ]

    def write_renew_list(self, verdicts: Iterable[DomainVerdict]) -> List[DomainVerdict]:
        """
        逐行输出需要续期的域名，不输出其他内容

        Args:
            verdicts: 诊断结论

        Returns:
            List[DomainVerdict]: 已处理的结论
        """
        consumed = []
        for verdict in verdicts:
            consumed.append(verdict)
            if verdict.needs_renewal:
                self._out.write(f"{verdict.domain}\n")
                self._out.flush()
        return consumed

    def run_renewal_actions(self, verdicts: Iterable[DomainVerdict]) -> dict:
        """
        按顺序对每个需要续期的域名执行续期回调

        单个域名失败只记录，不影响后续域名。

        Args:
            verdicts: 诊断结论

        Returns:
            dict: {'verdicts': 已处理的结论, 'failed_renewals': 续期失败的域名}
        """
        consumed = []
        failed = []

        for verdict in verdicts:
            consumed.append(verdict)
            if not verdict.needs_renewal:
                continue

            try:
                self.renew_action(verdict.domain)
            except Exception as e:
                failed.append(verdict.domain)
                self._log_renewal(verdict.domain, False, f"{type(e).__name__}: {str(e)}")
            else:
                self._log_renewal(verdict.domain, True)

        return {'verdicts': consumed, 'failed_renewals': failed}

    def _log_renewal(self, domain: str, success: bool, detail: str = ""):
        if self.logger_service is not None:
            self.logger_service.log_renewal_action(domain, success, detail)
        elif success:
            self.logger.info(f"续期命令执行成功 - 域名: {domain}")
        else:
            self.logger.error(f"续期命令执行失败 - 域名: {domain}, 原因: {detail}")
