import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from django.db import connection, transaction

from common.conf import get_setting
from logs.utils import DatabaseLogger
from .email import send_notification

logger = logging.getLogger(__name__)
failure_log = DatabaseLogger('notifications')

_executor = None
_executor_lock = threading.Lock()


def get_executor():
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=get_setting('NOTIFICATION_WORKERS'),
                thread_name_prefix='notifications',
            )
    return _executor


def deliver(kind, recipient, template_data=None):
    """Send one notification and record a structured LogEntry when it fails."""
    sent = send_notification(kind, recipient, template_data)
    if not sent:
        recipients = [recipient] if isinstance(recipient, str) else list(recipient)
        failure_log.error(
            f"Notification '{kind}' could not be delivered",
            context={
                'kind': kind,
                'recipients': recipients,
                'template_keys': sorted((template_data or {}).keys()),
            },
        )
    return sent


def _run_in_worker(kind, recipient, template_data):
    try:
        deliver(kind, recipient, template_data)
    except Exception:
        logger.exception(f"Notification worker crashed while delivering '{kind}'")
    finally:
        connection.close()


def notify(kind, recipient, template_data=None):
    """
    Queue a best-effort notification. Delivery starts after the surrounding
    transaction commits and never blocks or fails the caller.
    """
    if not get_setting('NOTIFICATIONS_ASYNC'):
        try:
            return deliver(kind, recipient, template_data)
        except Exception:
            logger.exception(f"Inline notification delivery failed for '{kind}'")
            return False

    transaction.on_commit(
        lambda: get_executor().submit(_run_in_worker, kind, recipient, template_data)
    )
    return None
