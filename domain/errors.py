"""Domain Errors

Every failure the access layer and the reservation lifecycle can report.
Each error carries a stable ``kind`` for callers and tests, and a
human-readable message. HTTP translation lives in ``api.errors``.
"""
from typing import Optional

from domain.enums import AuthFailureReason, TokenFailure


class DomainError(Exception):
    """Base class for expected, non-fatal failures"""
    kind = "domain_error"
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class Unauthenticated(DomainError):
    kind = "unauthenticated"
    default_message = "Authentication required"

    def __init__(
        self,
        reason: AuthFailureReason = AuthFailureReason.NOT_AUTHENTICATED,
        message: Optional[str] = None,
        token_failure: Optional[TokenFailure] = None
    ):
        self.reason = reason
        self.token_failure = token_failure
        super().__init__(message, detail=reason.value)


class Forbidden(DomainError):
    kind = "forbidden"
    default_message = "Insufficient permissions to access this resource"


class NotFound(DomainError):
    kind = "not_found"
    default_message = "Resource not found"


class Conflict(DomainError):
    kind = "conflict"
    default_message = "The room is not available for the selected dates"


class InvalidTransition(DomainError):
    kind = "invalid_transition"
    default_message = "Reservation cannot make this transition"


class RoomUnavailable(DomainError):
    kind = "room_unavailable"
    default_message = "Room is not available for booking"


class PreconditionFailed(DomainError):
    """The request is well formed but the target's state does not allow it"""
    kind = "precondition_failed"
    default_message = "The request cannot be applied in the current state"


class RateLimited(DomainError):
    kind = "rate_limited"
    default_message = "Too many login attempts. Try again later."

    def __init__(self, retry_after_seconds: int, message: Optional[str] = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, detail=f"retry after {retry_after_seconds}s")


class StoreTimeout(DomainError):
    """A store call did not complete in time; safe to retry"""
    kind = "store_timeout"
    default_message = "The data store did not respond in time"


class TokenError(Exception):
    """Raised by the token service when a token cannot be honoured"""
    failure = TokenFailure.MALFORMED

    def __init__(self, message: str = "Invalid token"):
        self.message = message
        super().__init__(message)


class TokenExpiredError(TokenError):
    failure = TokenFailure.EXPIRED

    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class TokenMalformedError(TokenError):
    failure = TokenFailure.MALFORMED
