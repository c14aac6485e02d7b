"""Operational error taxonomy shared by services and HTTP handlers.

Every error here is expected during normal operation and is rendered to the
caller verbatim by the handler registered in ``create_app``. Anything else
(database outages, programming errors) is treated as a generic 500.
"""

from typing import Any, Dict, Optional


class MomentumError(Exception):
    """Base class for errors surfaced to the caller as-is."""

    status_code = 400
    error_code = 'MOMENTUM_ERROR'

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {'error': self.message, 'code': self.error_code}
        payload.update(self.context)
        return payload


class ValidationError(MomentumError):
    """Malformed input or a value outside a closed set."""

    status_code = 400
    error_code = 'VALIDATION_ERROR'


class NotFoundError(MomentumError):
    """Aggregate or sub-record absent, or not in a state the lookup requires."""

    status_code = 404
    error_code = 'NOT_FOUND'


class UnauthorizedError(MomentumError):
    """No authenticated member on the request."""

    status_code = 401
    error_code = 'UNAUTHENTICATED'


class ForbiddenError(MomentumError):
    status_code = 403
    error_code = 'FORBIDDEN'


class RateLimitError(MomentumError):
    """Too many sharing-setting proposals in the rolling window."""

    status_code = 429
    error_code = 'RATE_LIMITED'

    def __init__(self, message: str, setting: str = None, limit: int = None, window_days: int = None):
        super().__init__(message, {'setting': setting, 'limit': limit, 'window_days': window_days})


class CooldownError(MomentumError):
    """Re-proposal of a setting shortly after the other household rejected it."""

    status_code = 429
    error_code = 'COOLDOWN_ACTIVE'

    def __init__(self, message: str, setting: str = None, retry_after: str = None):
        super().__init__(message, {'setting': setting, 'retry_after': retry_after})


class ConflictError(MomentumError):
    """Transition attempted from an ineligible state, or a stale concurrent write."""

    status_code = 409
    error_code = 'CONFLICT'
