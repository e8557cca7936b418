"""
AWS Lambda函数入口点
"""
import io
from datetime import datetime, timezone
from typing import Any, Dict

from .diagnosis import SSLCertificateDiagnosis
from .exceptions import ConfigurationError
from .models import OutputMode
from .services.config_validator import ConfigValidator
from .services.logger import LoggerService


def _event_overrides(event: Dict[str, Any]) -> Dict[str, Any]:
    """从触发事件中读取可覆盖的配置项"""
    event = event or {}
    overrides = {
        'domains': event.get('domains'),
        'alert_window_days': event.get('alert_window_days'),
        'timeout_seconds': event.get('timeout_seconds'),
    }
    # Lambda中只生成报告，不执行外部续期命令
    overrides['output_mode'] = OutputMode.TABLE
    return overrides


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda函数入口点

    Args:
        event: EventBridge触发事件，可包含 domains、alert_window_days、timeout_seconds
        context: Lambda运行时上下文

    Returns:
        dict: 执行结果和统计信息
    """
    logger_service = LoggerService()

    try:
        config = ConfigValidator(overrides=_event_overrides(event)).load_configuration()
    except ConfigurationError as e:
        logger_service.logger.error(f"配置错误: {str(e)}")
        return {
            'statusCode': 400,
            'body': {
                'message': 'SSL Certificate Diagnosis configuration error',
                'errors': e.errors or [str(e)],
                'timestamp': datetime.now(timezone.utc).isoformat()
            }
        }

    report = io.StringIO()
    diagnosis = SSLCertificateDiagnosis(config, stream=report, notify=bool(config.sns_topic_arn))

    try:
        result = diagnosis.execute()
    except ConfigurationError as e:
        logger_service.logger.error(f"配置错误: {str(e)}")
        return {
            'statusCode': 400,
            'body': {
                'message': 'SSL Certificate Diagnosis configuration error',
                'errors': [str(e)],
                'timestamp': datetime.now(timezone.utc).isoformat()
            }
        }

    if diagnosis.notification_service is not None:
        diagnosis.notification_service.send_status_report(
            result.verdicts,
            diagnosis.logger_service.get_execution_summary()
        )

    return {
        'statusCode': 200,
        'body': {
            'message': 'SSL Certificate Diagnosis executed successfully',
            'summary': {
                'total_domains': result.total_domains,
                'reachable_domains': result.reachable_domains,
                'unreachable_domains': result.unreachable_domains,
                'name_problems': len(result.name_problems),
                'due_for_renewal': len(result.due_for_renewal),
                'execution_time_seconds': result.execution_time
            },
            'due_for_renewal': [verdict.domain for verdict in result.due_for_renewal],
            'name_problems': [verdict.domain for verdict in result.name_problems],
            'errors': result.errors[:5],  # 只返回前5个错误
            'report': report.getvalue(),
            'timestamp': datetime.now(timezone.utc).isoformat()
        }
    }
