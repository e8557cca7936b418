"""
命令行入口
"""
import argparse
import contextlib
import json
import os
import sys
import tempfile
from typing import Iterator, List, Optional, TextIO

from .diagnosis import SSLCertificateDiagnosis
from .exceptions import ConfigurationError
from .models import OutputMode
from .services.config_validator import ConfigValidator


__version__ = "1.0.0"

EXIT_OK = 0
EXIT_RENEWAL_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        prog='ssl-cert-diagnosis',
        description='SSL certificate diagnosis: issued-for name, renewal window and issuer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='Examples:\n'
               '  %(prog)s --domains example.com,www.example.com\n'
               '  %(prog)s --domains-file domains.txt --alert-days 21\n'
               '  %(prog)s --domains-dir /etc/letsencrypt/live --renew-list\n'
               '  %(prog)s --config config.yaml --renew-command "certbot renew --cert-name"\n'
    )

    parser.add_argument('--domains', help='Comma-separated list of domains to check')
    parser.add_argument('--domains-file', help='File with one domain per line')
    parser.add_argument('--domains-dir', help='Directory whose entry names are domains')
    parser.add_argument('--config', help='Path to configuration YAML file')
    parser.add_argument('--alert-days', type=int, dest='alert_window_days',
                        help='Renewal alert window in days (default: 30)')
    parser.add_argument('--timeout', type=int, dest='timeout_seconds',
                        help='Connect/handshake timeout in seconds (default: 10)')
    parser.add_argument('--workers', type=int, dest='max_workers',
                        help='Concurrent TLS connections (default: 10)')

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--renew-list', action='store_true',
                      help='Print only the domains due for renewal, one per line')
    mode.add_argument('--renew-command',
                      help='Run this command with each domain due for renewal appended')

    parser.add_argument('--output', help='Write the report to this file instead of stdout')
    parser.add_argument('--notify', action='store_true', help='Send problems to SNS_TOPIC_ARN')
    parser.add_argument('--health-check', action='store_true',
                        help='Check domain sources and SNS settings without connecting to any domain')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """把命令行参数转换为配置覆盖项"""
    output_mode = None
    if args.renew_list:
        output_mode = OutputMode.RENEW_LIST
    elif args.renew_command:
        output_mode = OutputMode.COMMAND

    return {
        'domains': args.domains,
        'domains_file': args.domains_file,
        'domains_dir': args.domains_dir,
        'alert_window_days': args.alert_window_days,
        'timeout_seconds': args.timeout_seconds,
        'max_workers': args.max_workers,
        'output_mode': output_mode,
        'renew_command': args.renew_command,
        'log_level': args.log_level,
    }


@contextlib.contextmanager
def atomic_output(path: Optional[str]) -> Iterator[TextIO]:
    """
    报告输出目标

    写入文件时先写临时文件，成功后再替换目标文件；
    中途出错或被中断时删除临时文件，不会留下不完整的报告。
    """
    if not path:
        yield sys.stdout
        return

    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.ssl-diagnosis-', suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            yield f
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_path)
        raise


def main(argv: Optional[List[str]] = None) -> int:
    """命令行主函数，返回退出码"""
    args = parse_arguments(argv)

    try:
        config = ConfigValidator(
            overrides=build_overrides(args),
            config_file=args.config
        ).load_configuration()

        with atomic_output(args.output) as stream:
            diagnosis = SSLCertificateDiagnosis(config, stream=stream, notify=args.notify)
            if args.health_check:
                health = diagnosis.validate_system_health()
                json.dump(health, stream, ensure_ascii=False, indent=2)
                stream.write("\n")
                return EXIT_OK if health['overall_healthy'] else EXIT_CONFIG_ERROR
            result = diagnosis.execute()

    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED

    if result.failed_renewals:
        return EXIT_RENEWAL_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
