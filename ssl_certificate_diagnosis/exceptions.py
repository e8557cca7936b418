"""
异常定义
"""
from typing import Optional


class DiagnosisError(Exception):
    """证书诊断相关错误的基类"""


class ConfigurationError(DiagnosisError):
    """配置错误，在开始任何检查之前终止运行"""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ExternalCommandFailure(DiagnosisError):
    """续期命令执行失败"""

    def __init__(self, domain: str, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.domain = domain
        self.returncode = returncode
