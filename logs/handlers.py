import logging

from django.db import connection

REQUEST_EXTRAS = ('user_id', 'principal_email', 'principal_role', 'ip_address', 'request_path')


class DatabaseLogHandler(logging.Handler):
    """Persist log records as LogEntry rows, carrying over the request extras LoggingMiddleware sets."""

    def emit(self, record):
        # Nothing to write to before the first query opens a connection.
        if connection.connection is None:
            return
        try:
            from .models import LogEntry

            fields = {name: getattr(record, name, None) for name in REQUEST_EXTRAS}
            for name in ('principal_email', 'principal_role', 'request_path'):
                fields[name] = fields[name] or ''

            context = dict(getattr(record, 'context', None) or {})
            if record.exc_info:
                context['exception'] = logging.Formatter().formatException(record.exc_info)

            LogEntry.objects.create(
                level=record.levelname,
                module=record.name[:100],
                message=self.format(record),
                context=context,
                **fields,
            )
        except Exception:
            self.handleError(record)
