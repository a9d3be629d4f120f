"""
Error taxonomy for the authentication engine.

Every failure that crosses an app boundary is an ``AuthError`` subclass with a
stable ``code`` and an HTTP ``status_code``. The API layer renders them with
``ErrorResponse``; nothing below the API ever builds an HTTP response.

Apps refine these classes in their own ``exceptions`` modules.
"""

from typing import Any


class AuthError(Exception):
    """Base exception for all authentication failures."""

    code = "internal"
    status_code = 500
    default_message = "An unexpected error occurred"
    action: str | None = None
    fallback_to_otp = False

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serializable form used by the API exception handler."""
        return {
            "code": self.code,
            "detail": self.message,
            "action": self.action,
            "fallback_to_otp": self.fallback_to_otp,
            **self.extra,
        }


class RequestValidationError(AuthError):
    """Malformed input: recipient format, missing or conflicting fields."""

    code = "validation_error"
    status_code = 400
    default_message = "Invalid request data"


class RateLimitedError(AuthError):
    """Too many requests for the same key within the window."""

    code = "rate_limited"
    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, message: str | None = None, retry_after: int = 0, **extra: Any) -> None:
        super().__init__(message, retry_after=retry_after, **extra)
        self.retry_after = retry_after


class NotFoundError(AuthError):
    """Unknown challenge, session, credential or account."""

    code = "not_found"
    status_code = 404
    default_message = "Not found"


class ExpiredError(AuthError):
    """A time-boxed secret was used after its expiry."""

    code = "expired"
    status_code = 400
    default_message = "This request has expired"


class AttemptsExhaustedError(AuthError):
    """The verification attempt limit is reached."""

    code = "attempts_exhausted"
    status_code = 400
    default_message = "Too many incorrect attempts"


class VerificationFailedError(AuthError):
    """Code mismatch or cryptographic verification failure."""

    code = "verification_failed"
    status_code = 400
    default_message = "Verification failed"


class ForbiddenError(AuthError):
    """Authenticated, but not allowed to act on the target resource."""

    code = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class ConflictError(AuthError):
    """Duplicate registration of an account or credential."""

    code = "conflict"
    status_code = 409
    default_message = "Resource already exists"


class UnauthorizedError(AuthError):
    """Missing, invalid or expired session token."""

    code = "unauthorized"
    status_code = 401
    default_message = "Authentication required"


class DeliveryFailedError(AuthError):
    """
    An OTP provider could not deliver a code.

    Soft failure: the dispatcher falls back to the log sink and never lets
    this reach the transport layer.
    """

    code = "delivery_failed"
    status_code = 502
    default_message = "Failed to deliver verification code"


class InternalError(AuthError):
    """Unexpected failure."""
