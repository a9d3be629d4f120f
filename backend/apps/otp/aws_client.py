"""
AWS End User Messaging SMS client wrapper.

Uses boto3 pinpoint-sms-voice-v2 API to send SMS messages.
"""

from functools import lru_cache
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from apps.core.logging import get_logger
from apps.otp.exceptions import OTPDeliveryError

logger = get_logger(__name__)


class SMSError(OTPDeliveryError):
    """Exception raised when SMS sending fails."""

    code = "sms_delivery_failed"


@lru_cache(maxsize=1)
def get_sms_client() -> Any:
    """
    Get AWS SMS client (pinpoint-sms-voice-v2).

    Uses lru_cache to reuse the client instance.
    Credentials are loaded from environment (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
    or IAM role when running on AWS.
    """
    return boto3.client(
        "pinpoint-sms-voice-v2",
        region_name=settings.AWS_SMS_REGION,
    )


def send_sms(phone_number: str, message: str) -> dict[str, Any]:
    """
    Send a transactional SMS message.

    Args:
        phone_number: E.164 format phone number (e.g., +14155551234)
        message: The message body to send

    Returns:
        Dict with message_id and success flag

    Raises:
        SMSError: If the service is not configured or sending fails
    """
    if not settings.AWS_SMS_ORIGINATION_IDENTITY:
        logger.error("sms_not_configured")
        raise SMSError("SMS service not configured")

    client = get_sms_client()

    try:
        response = client.send_text_message(
            DestinationPhoneNumber=phone_number,
            OriginationIdentity=settings.AWS_SMS_ORIGINATION_IDENTITY,
            MessageBody=message,
            MessageType="TRANSACTIONAL",
        )
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        error_message = e.response.get("Error", {}).get("Message", str(e))
        logger.error("sms_send_failed", error_code=error_code, error=error_message)
        raise SMSError(f"Failed to send SMS: {error_message}") from e
    except BotoCoreError as e:
        logger.error("sms_send_failed", error=str(e))
        raise SMSError(f"SMS service error: {e}") from e

    logger.info("sms_sent", phone=phone_number, message_id=response.get("MessageId"))
    return {
        "message_id": response.get("MessageId"),
        "success": True,
    }
