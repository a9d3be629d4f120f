"""
Recipient validation for OTP delivery.

Emails are lower-cased; phone numbers must already be in E.164 form.
"""

import re

from apps.otp.constants import DeliveryChannel
from apps.otp.exceptions import InvalidRecipientFormatError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+[1-9][0-9]{1,14}$")


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.fullmatch(value))


def is_valid_phone(value: str) -> bool:
    return bool(PHONE_PATTERN.fullmatch(value))


def normalize_recipient(recipient: str, channel: DeliveryChannel) -> str:
    """
    Validate ``recipient`` for ``channel`` and return its canonical form.

    Args:
        recipient: Email address or E.164 phone number
        channel: Delivery channel the recipient must match

    Returns:
        The stripped recipient, lower-cased for email

    Raises:
        InvalidRecipientFormatError: If the recipient does not match the channel
    """
    value = (recipient or "").strip()

    if channel == DeliveryChannel.EMAIL:
        value = value.lower()
        if not is_valid_email(value):
            raise InvalidRecipientFormatError("Invalid email address format")
        return value

    if not is_valid_phone(value):
        raise InvalidRecipientFormatError(
            "Invalid phone number format. Use E.164 format (e.g., +14155551234)"
        )
    return value
