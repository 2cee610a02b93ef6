"""
Request correlation middleware.

Generates/propagates X-Request-ID and injects it into logs.
"""
import logging
import time
import uuid
from threading import local

from django.utils.deprecation import MiddlewareMixin

from .metrics import metrics

# Thread-local storage for request context
_request_context = local()

logger = logging.getLogger(__name__)


def get_request_id():
    return getattr(_request_context, 'request_id', None)


def get_trace_id():
    return getattr(_request_context, 'trace_id', None)


def get_user_id():
    return getattr(_request_context, 'user_id', None)


def get_user_roles():
    return getattr(_request_context, 'user_roles', [])


def bind_user(user):
    """
    Attach the authenticated user to the request context.

    DRF authenticates inside the view, after process_request has run, so
    views call this once ``request.user`` is known.
    """
    if user is not None and user.is_authenticated:
        _request_context.user_id = str(user.pk)
        _request_context.user_roles = list(user.groups.values_list('name', flat=True))


class RequestCorrelationMiddleware(MiddlewareMixin):
    """
    Middleware to handle request correlation.

    - Generates/propagates X-Request-ID
    - Extracts trace id from headers
    - Stores context in thread-local for logging
    - Adds correlation headers to response
    - Tracks request duration and counts
    """

    REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
    TRACE_ID_HEADER = 'HTTP_X_TRACE_ID'

    def process_request(self, request):
        request_id = request.META.get(self.REQUEST_ID_HEADER) or str(uuid.uuid4())
        trace_id = request.META.get(self.TRACE_ID_HEADER)

        request.request_id = request_id
        request.trace_id = trace_id
        request.start_time = time.time()

        clear_request_context()
        _request_context.request_id = request_id
        _request_context.trace_id = trace_id

        if hasattr(request, 'user'):
            bind_user(request.user)

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id

        if getattr(request, 'trace_id', None):
            response['X-Trace-ID'] = request.trace_id

        if hasattr(request, 'start_time'):
            duration_ms = (time.time() - request.start_time) * 1000
            metrics.http_requests_total.labels(
                path=_route_of(request),
                method=request.method,
                status=str(response.status_code),
            ).inc()
            logger.info(
                'Request completed',
                extra={
                    'event': 'http_request_completed',
                    'path': request.path,
                    'method': request.method,
                    'status_code': response.status_code,
                    'duration_ms': round(duration_ms, 2),
                }
            )

        return response

    def process_exception(self, request, exception):
        duration_ms = 0
        if hasattr(request, 'start_time'):
            duration_ms = (time.time() - request.start_time) * 1000

        metrics.exceptions_total.labels(
            exception_type=exception.__class__.__name__,
            location=_route_of(request),
        ).inc()
        logger.error(
            f'Request failed: {exception.__class__.__name__}',
            exc_info=True,
            extra={
                'event': 'http_request_exception',
                'path': request.path,
                'method': request.method,
                'exception_type': exception.__class__.__name__,
                'duration_ms': round(duration_ms, 2),
            }
        )


def _route_of(request):
    # Route pattern keeps metric label cardinality bounded (no UUIDs).
    match = getattr(request, 'resolver_match', None)
    if match is not None and match.route:
        return match.route
    return 'unmatched'


def clear_request_context():
    """Clear thread-local request context (useful for testing)."""
    for attr in ['request_id', 'trace_id', 'user_id', 'user_roles']:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)
