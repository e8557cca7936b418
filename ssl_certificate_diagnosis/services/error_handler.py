"""
错误处理服务
"""
import socket
import ssl
from typing import Any, Dict, List
from datetime import datetime, timezone
import logging


class ConnectionErrorClassifier:
    """
    TLS连接错误分类器

    连接失败是预期中的单域名结果，这里只负责分类和记录，不做重试。
    """

    def __init__(self):
        """初始化连接错误分类器"""
        self.logger = logging.getLogger(__name__)

        # 属于连接失败（ConnectFailure）的错误类型
        self.connect_failure_errors = (
            socket.timeout,
            socket.gaierror,  # DNS解析错误
            ConnectionRefusedError,
            ConnectionResetError,
            ssl.SSLError,
            OSError,
        )

    def is_connect_failure(self, error: Exception) -> bool:
        """
        判断错误是否属于连接失败

        Args:
            error: 异常对象

        Returns:
            bool: 是否是连接失败
        """
        if isinstance(error, self.connect_failure_errors):
            return True

        error_message = str(error).lower()
        connect_messages = [
            'timed out',
            'timeout',
            'connection refused',
            'connection reset',
            'network is unreachable',
            'no route to host',
            'name or service not known',
            'temporary failure',
        ]

        return any(msg in error_message for msg in connect_messages)

    def handle_ssl_connection_error(self, domain: str, error: Exception) -> Dict[str, Any]:
        """
        处理SSL连接错误

        Args:
            domain: 域名
            error: 异常对象

        Returns:
            Dict[str, Any]: 错误处理结果
        """
        error_info = {
            'domain': domain,
            'error_type': self._error_type(error),
            'error_message': str(error),
            'is_connect_failure': self.is_connect_failure(error),
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'suggested_action': self._get_suggested_action(error)
        }

        if error_info['is_connect_failure']:
            self.logger.warning(f"域名 {domain} 无法获取证书: {error_info['error_type']}: {error_info['error_message']}")
        else:
            self.logger.error(f"域名 {domain} 获取证书时发生意外错误: {error_info['error_type']}: {error_info['error_message']}")

        return error_info

    def _error_type(self, error: Exception) -> str:
        # socket.timeout 在新版本中是 TimeoutError 的别名
        if isinstance(error, socket.timeout):
            return 'timeout'
        return type(error).__name__

    def _get_suggested_action(self, error: Exception) -> str:
        """
        获取错误的建议处理方案

        Args:
            error: 异常对象

        Returns:
            str: 建议的处理方案
        """
        error_message = str(error).lower()

        if isinstance(error, socket.timeout):
            return "检查网络连接，考虑增加超时时间"
        elif isinstance(error, socket.gaierror):
            return "检查域名是否正确，DNS服务器是否可用"
        elif isinstance(error, ConnectionRefusedError):
            return "检查目标服务器是否运行，443端口是否开放"
        elif isinstance(error, ssl.SSLError):
            if 'handshake failure' in error_message:
                return "SSL握手失败，检查SSL/TLS版本兼容性"
            return "SSL连接问题，检查服务器SSL配置"
        elif 'network is unreachable' in error_message:
            return "网络不可达，检查网络连接和路由"
        elif 'no route to host' in error_message:
            return "无法路由到主机，检查防火墙和网络配置"
        else:
            return "检查网络连接和服务器状态"

    def get_error_statistics(self, error_list: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        获取错误统计信息

        Args:
            error_list: 错误信息列表

        Returns:
            Dict[str, Any]: 错误统计
        """
        if not error_list:
            return {
                'total_errors': 0,
                'connect_failures': 0,
                'other_errors': 0,
                'error_types': {},
                'most_common_error': None,
                'most_common_error_count': 0
            }

        error_types = {}
        connect_failures = 0

        for error_info in error_list:
            error_type = error_info.get('error_type', 'Unknown')
            error_types[error_type] = error_types.get(error_type, 0) + 1

            if error_info.get('is_connect_failure', False):
                connect_failures += 1

        most_common_error = max(error_types.items(), key=lambda x: x[1])

        return {
            'total_errors': len(error_list),
            'connect_failures': connect_failures,
            'other_errors': len(error_list) - connect_failures,
            'error_types': error_types,
            'most_common_error': most_common_error[0],
            'most_common_error_count': most_common_error[1]
        }
