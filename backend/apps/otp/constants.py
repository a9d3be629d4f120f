"""
Constants for the OTP app.
"""

from enum import StrEnum

NUMERIC_ALPHABET = "0123456789"
ALPHANUMERIC_ALPHABET = (
    "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
)


class OTPStatus(StrEnum):
    """
    Coarse lifecycle status of a challenge.

    ``invalid`` is also the outcome of a single wrong attempt; such a record
    keeps accepting attempts until the attempt limit is reached.
    """

    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"
    INVALID = "invalid"


class DeliveryChannel(StrEnum):
    """Out-of-band channel the code is delivered through."""

    EMAIL = "email"
    SMS = "sms"


class OTPPurpose(StrEnum):
    """Why the code was requested. ``recovery`` behaves like ``login``."""

    REGISTRATION = "registration"
    LOGIN = "login"
    RECOVERY = "recovery"


class OTPCharset(StrEnum):
    NUMERIC = "numeric"
    ALPHANUMERIC = "alphanumeric"
