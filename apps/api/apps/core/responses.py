"""
Error envelopes for the API.

All views answer domain errors with the same shape:

    {"error": {"code": "...", "message": "...", "details": {...}}}
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response

from .exceptions import InvalidTransition, SlotConflict


def error_response(code, message, details=None, http_status=status.HTTP_400_BAD_REQUEST):
    return Response(
        {
            'error': {
                'code': code,
                'message': message,
                'details': details or {},
            }
        },
        status=http_status
    )


def domain_error_response(exc):
    """
    Map a domain exception to its HTTP answer.

    SlotConflict and InvalidTransition are conflicts (409); any other Django
    ValidationError is a bad request (400). Anything else is re-raised.
    """
    if isinstance(exc, SlotConflict):
        return error_response(
            'slot_conflict',
            exc.message,
            {'reason': exc.reason},
            http_status=status.HTTP_409_CONFLICT
        )
    if isinstance(exc, InvalidTransition):
        return error_response(
            'invalid_transition',
            exc.messages[0],
            {'current': exc.current, 'target': exc.target},
            http_status=status.HTTP_409_CONFLICT
        )
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, 'error_dict'):
            details = exc.message_dict
        else:
            details = {'non_field_errors': exc.messages}
        return error_response('validation_error', 'Invalid request', details)
    raise exc
