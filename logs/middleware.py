import logging
import time

from django.utils.deprecation import MiddlewareMixin

from .utils import principal_fields

logger = logging.getLogger(__name__)


def client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


class LoggingMiddleware(MiddlewareMixin):
    """One log line per request, tagged with the principal DRF authenticated."""

    def process_request(self, request):
        request._log_started = time.monotonic()
        return None

    def process_response(self, request, response):
        started = getattr(request, '_log_started', None)
        if started is None:
            return response

        # DRF copies the authenticated user back onto the HttpRequest after the view runs.
        principal = principal_fields(getattr(request, 'user', None))
        who = f"{principal['principal_email']} ({principal['principal_role']})" if principal['user_id'] else 'anonymous'
        elapsed_ms = round((time.monotonic() - started) * 1000)

        logger.log(
            logging.WARNING if response.status_code >= 500 else logging.INFO,
            f"{request.method} {request.path} {response.status_code} {who}",
            extra={
                **principal,
                'ip_address': client_ip(request),
                'request_path': request.path[:500],
                'context': {'duration_ms': elapsed_ms},
            },
        )
        return response
