"""
Exceptions for the OTP app.

Each carries the client hint for what to do next: ``resend_code`` when the
challenge is dead, ``retry`` when another attempt may succeed.
"""

from typing import Any

from apps.core.exceptions import (
    AttemptsExhaustedError,
    DeliveryFailedError,
    ExpiredError,
    NotFoundError,
    RateLimitedError,
    RequestValidationError,
    VerificationFailedError,
)


class InvalidRecipientFormatError(RequestValidationError):
    code = "invalid_recipient_format"
    default_message = "Invalid email or phone number format"


class OTPRateLimitError(RateLimitedError):
    code = "otp_rate_limited"
    default_message = "Too many verification requests. Please try again later."


class OTPNotFoundError(NotFoundError):
    code = "otp_not_found"
    default_message = "Verification code not found"
    action = "resend_code"


class OTPExpiredError(ExpiredError):
    code = "otp_expired"
    default_message = "Verification code has expired. Please request a new one."
    action = "resend_code"


class OTPAttemptsExhaustedError(AttemptsExhaustedError):
    code = "otp_attempts_exhausted"
    default_message = "Too many incorrect attempts. Please request a new code."
    action = "resend_code"


class OTPSupersededError(VerificationFailedError):
    """A newer code was issued for the same recipient."""

    code = "otp_superseded"
    default_message = "This verification code is no longer valid. Please use the latest code."
    action = "resend_code"


class OTPAlreadyUsedError(VerificationFailedError):
    code = "otp_already_used"
    default_message = "This verification code has already been used"
    action = "resend_code"


class OTPInvalidError(VerificationFailedError):
    code = "otp_invalid"
    action = "retry"

    def __init__(self, message: str | None = None, attempts_left: int = 0, **extra: Any) -> None:
        if message is None:
            message = f"Invalid verification code. {attempts_left} attempts remaining."
        super().__init__(message, attempts_left=attempts_left, **extra)
        self.attempts_left = attempts_left


class OTPDeliveryError(DeliveryFailedError):
    """A provider rejected or failed a send. Never reaches the client."""

    code = "otp_delivery_failed"
