"""
Resend transactional email client.

Talks to the Resend REST API directly over httpx.
"""

from typing import Any

import httpx
from django.conf import settings

from apps.core.logging import get_logger
from apps.otp.exceptions import OTPDeliveryError

logger = get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_TIMEOUT = 10.0


class EmailError(OTPDeliveryError):
    """Exception raised when email sending fails."""

    code = "email_delivery_failed"


def send_email(to: str, subject: str, text: str, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any]:
    """
    Send a plain-text email through Resend.

    Raises:
        EmailError: If Resend is not configured, unreachable, or rejects the message
    """
    if not settings.RESEND_API_KEY or not settings.RESEND_FROM_EMAIL:
        logger.error("email_not_configured")
        raise EmailError("Email service not configured")

    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(
                RESEND_API_URL,
                json={
                    "from": settings.RESEND_FROM_EMAIL,
                    "to": [to],
                    "subject": subject,
                    "text": text,
                },
                headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
            )
    except httpx.TimeoutException as e:
        logger.error("email_send_failed", email=to, error="timeout")
        raise EmailError(f"Email request timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        logger.error("email_send_failed", email=to, error=str(e))
        raise EmailError(f"Email service error: {e}") from e

    if not 200 <= response.status_code < 300:
        logger.error(
            "email_send_failed",
            email=to,
            http_status=response.status_code,
            response_snippet=response.text[:500] if response.text else "",
        )
        raise EmailError(f"Email service returned HTTP {response.status_code}")

    message_id = response.json().get("id")
    logger.info("email_sent", email=to, message_id=message_id)
    return {"message_id": message_id, "success": True}
