import logging

from .models import LogEntry


def principal_fields(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        return {'user_id': None, 'principal_email': '', 'principal_role': ''}
    return {
        'user_id': user.id,
        'principal_email': user.email or '',
        'principal_role': getattr(user, 'role', '') or '',
    }


def log_to_db(level, message, module, user=None, ip_address=None, request_path='', context=None):
    """
    Write a LogEntry directly, for events that must be kept even when the
    logging config does not route them to the database handler.
    """
    try:
        return LogEntry.objects.create(
            level=level,
            message=message,
            module=module,
            ip_address=ip_address,
            request_path=request_path,
            context=context or {},
            **principal_fields(user),
        )
    except Exception:
        logging.getLogger(module).exception(f"Could not persist log entry: {message}")
        return None


class DatabaseLogger:
    def __init__(self, module_name):
        self.module_name = module_name

    def _write(self, level, message, **kwargs):
        return log_to_db(level, message, self.module_name, **kwargs)

    def debug(self, message, **kwargs):
        return self._write('DEBUG', message, **kwargs)

    def info(self, message, **kwargs):
        return self._write('INFO', message, **kwargs)

    def warning(self, message, **kwargs):
        return self._write('WARNING', message, **kwargs)

    def error(self, message, **kwargs):
        return self._write('ERROR', message, **kwargs)
