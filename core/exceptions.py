"""
Domain error taxonomy and the DRF exception handler that renders it.

Every failure leaving the API carries a stable machine-readable ``kind``
and a human-readable ``message``:

    ValidationError    400  malformed or missing input
    InvalidRole        400  referenced account has the wrong role
    Unauthenticated    401  no or invalid credential
    Forbidden          403  authenticated but not permitted
    NotFound           404  referenced entity absent
    InsufficientStock  409  demand exceeds available inventory
    Unavailable        503  transient infrastructure failure, retryable
"""
import logging
from contextlib import contextmanager
from typing import Optional

from django.db import OperationalError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors raised by the service layer."""
    kind = 'error'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request could not be processed'

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def as_payload(self) -> dict:
        payload = {'message': self.message, 'kind': self.kind}
        payload.update(self.extra)
        return payload


class ValidationError(DomainError):
    kind = 'validation_error'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid input'


class InvalidRole(ValidationError):
    kind = 'invalid_role'
    default_message = 'Account does not have the required role'


class Unauthenticated(DomainError):
    kind = 'unauthenticated'
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Authentication credentials were not provided or are invalid'


class Forbidden(DomainError):
    kind = 'forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You do not have permission to perform this action'


class NotFound(DomainError):
    kind = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class InsufficientStock(DomainError):
    """Raised when a consumption asks for more than an item holds."""
    kind = 'insufficient_stock'
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, item_id: int, item_name: str, requested: int, available: int):
        self.item_id = item_id
        self.item_name = item_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_name}: "
            f"requested {requested}, available {available}",
            item_id=item_id,
            requested=requested,
            available=available,
        )


class Unavailable(DomainError):
    kind = 'unavailable'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Service temporarily unavailable, please retry'

    def as_payload(self) -> dict:
        payload = super().as_payload()
        payload['retryable'] = True
        return payload


@contextmanager
def database_guard(operation: str):
    """
    Translate database timeouts and lost connections into ``Unavailable``.

    Must wrap the ``transaction.atomic()`` block so the rollback has already
    happened by the time the error is translated.
    """
    try:
        yield
    except OperationalError as e:
        logger.error(f"Database failure during {operation}: {e}")
        raise Unavailable() from e


DRF_KINDS = (
    (drf_exceptions.NotAuthenticated, Unauthenticated.kind),
    (drf_exceptions.AuthenticationFailed, Unauthenticated.kind),
    (drf_exceptions.PermissionDenied, Forbidden.kind),
    (drf_exceptions.NotFound, NotFound.kind),
    (drf_exceptions.ValidationError, ValidationError.kind),
    (drf_exceptions.Throttled, 'rate_limited'),
    (drf_exceptions.MethodNotAllowed, 'method_not_allowed'),
    (drf_exceptions.ParseError, ValidationError.kind),
)


def _first_message(detail) -> Optional[str]:
    """
    Pull a single readable message out of a DRF error detail.

    Nested serializers report one entry per list element, with empty
    entries for the valid ones; those are skipped.
    """
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _first_message(value)
            if not message:
                continue
            if field in ('detail', 'non_field_errors'):
                return message
            return f"{field}: {message}"
        return None
    if isinstance(detail, list):
        for entry in detail:
            message = _first_message(entry)
            if message:
                return message
        return None
    return str(detail)


def api_exception_handler(exc, context):
    """
    DRF exception handler producing ``{message, kind}`` payloads.

    Domain errors are rendered directly; DRF's own exceptions are relabelled
    into the same shape so clients only deal with one error format.
    """
    if isinstance(exc, DomainError):
        if exc.status_code >= 500:
            logger.error(f"{exc.kind}: {exc.message}")
        return Response(exc.as_payload(), status=exc.status_code)

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()

    response = exception_handler(exc, context)
    if response is None:
        return None

    kind = 'error'
    for exc_class, exc_kind in DRF_KINDS:
        if isinstance(exc, exc_class):
            kind = exc_kind
            break

    message = _first_message(exc.detail) or ValidationError.default_message
    payload = {'message': message, 'kind': kind}
    if isinstance(exc, drf_exceptions.ValidationError):
        payload['errors'] = exc.detail
    response.data = payload
    return response
