"""
续期命令执行服务
"""
import shlex
import subprocess
import logging
from typing import List, Optional

from ..exceptions import ConfigurationError, ExternalCommandFailure


class RenewalCommand:
    """
    外部续期命令

    命令字符串按shell规则拆分，域名作为最后一个参数追加，不经过shell执行。
    命令的输出直接交给当前终端，方便操作人员观察续期过程。
    """

    def __init__(self, command: str, timeout: Optional[int] = None):
        """
        初始化续期命令

        Args:
            command: 命令字符串，例如 "certbot renew --cert-name"
            timeout: 单次执行超时时间（秒），None表示不限制

        Raises:
            ConfigurationError: 命令为空或无法解析
        """
        try:
            self.args: List[str] = shlex.split(command or "")
        except ValueError as e:
            raise ConfigurationError(f"续期命令格式错误: {command} ({e})")

        if not self.args:
            raise ConfigurationError("续期命令为空")

        self.command = command
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def __call__(self, domain: str) -> None:
        """
        对单个域名执行续期命令

        Args:
            domain: 需要续期的域名

        Raises:
            ExternalCommandFailure: 命令无法启动、超时或返回非零状态码
        """
        args = self.args + [domain]
        self.logger.info(f"执行续期命令: {shlex.join(args)}")

        try:
            completed = subprocess.run(args, check=False, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise ExternalCommandFailure(domain, f"续期命令超时（{self.timeout}秒）")
        except OSError as e:
            raise ExternalCommandFailure(domain, f"无法执行续期命令: {e}")

        if completed.returncode != 0:
            raise ExternalCommandFailure(
                domain,
                f"续期命令返回非零状态码: {completed.returncode}",
                returncode=completed.returncode
            )
