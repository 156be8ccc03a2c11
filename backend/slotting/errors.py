"""
Typed failures raised by the slotting core.

Route handlers translate these into HTTP responses (see `slotting.api`); the
core never raises HTTP errors itself.
"""
from contextlib import contextmanager

from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction


class SlottingError(Exception):
    """Base exception for expected slotting failures"""
    status_code = 400
    default_reason = 'error'

    def __init__(self, message: str, reason: str = None):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason


class ValidationError(SlottingError):
    """Raised when input is rejected before anything is persisted"""
    status_code = 400
    default_reason = 'validation_failed'


class ForbiddenError(SlottingError):
    """Raised when the principal may not perform the requested action"""
    status_code = 403
    default_reason = 'forbidden'


class NotFoundError(SlottingError):
    """Raised when a referenced entity does not exist"""
    status_code = 404
    default_reason = 'not_found'


class ConflictError(SlottingError):
    """Raised when a write would violate a uniqueness or exclusivity rule"""
    status_code = 409
    default_reason = 'conflict'


@contextmanager
def conflict_on_integrity_error(message: str, reason: str, using: str = DEFAULT_DB_ALIAS):
    """
    Run the enclosed writes in a savepoint and surface unique or check
    constraint violations as `ConflictError`.
    """
    try:
        with transaction.atomic(using=using):
            yield
    except IntegrityError as err:
        raise ConflictError(message, reason=reason) from err
