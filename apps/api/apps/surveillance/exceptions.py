"""
Surveillance engine errors.

Input problems raise django.core.exceptions.ValidationError (re-exported here).
The other kinds derive from SurveillanceError and carry a stable `code`
used by the API error envelope. Only ConflictError is meant to be retried.
"""
from django.core.exceptions import ValidationError


class SurveillanceError(Exception):
    """Base class for surveillance lifecycle errors."""
    code = 'SURVEILLANCE_ERROR'

    def __init__(self, message, plan_id=None, **details):
        super().__init__(message)
        self.message = message
        self.plan_id = plan_id
        self.details = details


class NotFoundError(SurveillanceError):
    """The targeted surveillance plan does not exist."""
    code = 'NOT_FOUND'


class InvalidStateError(SurveillanceError):
    """The operation is not allowed in the plan's current status."""
    code = 'INVALID_STATE'


class FutureDateError(SurveillanceError):
    """An analysis date lies after the current date."""
    code = 'FUTURE_DATE'


class ConflictError(SurveillanceError):
    """Lost a concurrent write race; the caller may retry with fresh data."""
    code = 'CONFLICT'


__all__ = [
    'ValidationError',
    'SurveillanceError',
    'NotFoundError',
    'InvalidStateError',
    'FutureDateError',
    'ConflictError',
]
