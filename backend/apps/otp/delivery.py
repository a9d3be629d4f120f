"""
Out-of-band delivery of one-time passcodes.

The dispatcher picks a provider per channel from ``OTP_DELIVERY_PROVIDER``:

    console  - every code goes to the log sink (development, tests; rejected
               by production settings)
    aws_sms  - SMS through AWS End User Messaging, email to the log sink
    resend   - email through Resend, SMS to the log sink
    auto     - SMS through AWS, email through Resend

A provider failure never fails issuance: the code is handed to the log sink
instead and ``send`` reports ``False``.
"""

from collections.abc import Mapping
from typing import Protocol

from django.conf import settings

from apps.core.logging import get_logger
from apps.otp import aws_client, email_client
from apps.otp.constants import DeliveryChannel, OTPPurpose
from apps.otp.exceptions import OTPDeliveryError

logger = get_logger(__name__)

PROVIDER_CONSOLE = "console"
PROVIDER_AWS_SMS = "aws_sms"
PROVIDER_RESEND = "resend"
PROVIDER_AUTO = "auto"

EMAIL_SUBJECTS = {
    OTPPurpose.REGISTRATION: "Complete your {app_name} registration",
    OTPPurpose.LOGIN: "Your {app_name} login code",
    OTPPurpose.RECOVERY: "Your {app_name} account recovery code",
}


class DeliveryProvider(Protocol):
    name: str

    def deliver(self, recipient: str, code: str, purpose: OTPPurpose, message: str) -> None:
        """Send the message or raise ``OTPDeliveryError``."""
        ...


class LogSinkProvider:
    """
    Always-available sink. With DEBUG on the code is written to the log;
    otherwise only the failed delivery is recorded.
    """

    name = PROVIDER_CONSOLE

    def deliver(self, recipient: str, code: str, purpose: OTPPurpose, message: str) -> None:
        if settings.DEBUG:
            logger.info("otp_code_logged", recipient=recipient, purpose=str(purpose), code=code)
        else:
            logger.warning("otp_code_not_delivered", recipient=recipient, purpose=str(purpose))


class AwsSmsProvider:
    name = PROVIDER_AWS_SMS

    def deliver(self, recipient: str, code: str, purpose: OTPPurpose, message: str) -> None:
        aws_client.send_sms(recipient, message)


class ResendEmailProvider:
    name = PROVIDER_RESEND

    def __init__(self, app_name: str) -> None:
        self.app_name = app_name

    def deliver(self, recipient: str, code: str, purpose: OTPPurpose, message: str) -> None:
        subject = EMAIL_SUBJECTS[purpose].format(app_name=self.app_name)
        email_client.send_email(recipient, subject, message)


def build_message(app_name: str, code: str, expiry_minutes: int) -> str:
    return (
        f"Your {app_name} verification code is: {code}. "
        f"This code expires in {expiry_minutes} minutes."
    )


class DeliveryDispatcher:
    """
    Routes codes to the configured provider for each channel.

    Channels with no configured provider go straight to the log sink.
    """

    def __init__(
        self,
        *,
        providers: Mapping[DeliveryChannel, DeliveryProvider] | None = None,
        app_name: str = "ID Wallet",
        expiry_minutes: int = 10,
    ) -> None:
        self.providers = dict(providers or {})
        self.app_name = app_name
        self.expiry_minutes = expiry_minutes
        self.sink = LogSinkProvider()

    @classmethod
    def from_settings(cls) -> "DeliveryDispatcher":
        provider = settings.OTP_DELIVERY_PROVIDER
        providers: dict[DeliveryChannel, DeliveryProvider] = {}
        if provider in (PROVIDER_AWS_SMS, PROVIDER_AUTO):
            providers[DeliveryChannel.SMS] = AwsSmsProvider()
        if provider in (PROVIDER_RESEND, PROVIDER_AUTO):
            providers[DeliveryChannel.EMAIL] = ResendEmailProvider(settings.APP_NAME)
        return cls(
            providers=providers,
            app_name=settings.APP_NAME,
            expiry_minutes=settings.OTP_EXPIRY_MINUTES,
        )

    def send(self, recipient: str, code: str, channel: DeliveryChannel, purpose: OTPPurpose) -> bool:
        """
        Deliver ``code`` to ``recipient``.

        Returns:
            True if the configured provider accepted the message, False if
            it failed and the code went to the log sink instead.
        """
        message = build_message(self.app_name, code, self.expiry_minutes)
        provider = self.providers.get(channel, self.sink)

        try:
            provider.deliver(recipient, code, purpose, message)
        except OTPDeliveryError as e:
            logger.warning(
                "otp_delivery_fallback",
                recipient=recipient,
                channel=str(channel),
                provider=provider.name,
                error_code=e.code,
            )
        except Exception:
            logger.exception(
                "otp_delivery_fallback",
                recipient=recipient,
                channel=str(channel),
                provider=provider.name,
            )
        else:
            return True

        self.sink.deliver(recipient, code, purpose, message)
        return False
