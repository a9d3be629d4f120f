"""
OTP challenge records.

Records are plain dataclasses held by an ``OTPStore``; the ledger is the only
writer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from apps.otp.constants import DeliveryChannel, OTPPurpose, OTPStatus


def _new_otp_id() -> str:
    return f"otp_{uuid4().hex}"


@dataclass
class OTPChallenge:
    """
    A single issued one-time passcode.

    ``superseded`` marks a record that a newer issue for the same recipient
    invalidated; it can never verify again.
    """

    recipient: str
    channel: DeliveryChannel
    purpose: OTPPurpose
    code: str = field(repr=False)
    created_at: datetime
    expires_at: datetime
    max_attempts: int = 3
    account_id: str | None = None
    id: str = field(default_factory=_new_otp_id)
    status: OTPStatus = OTPStatus.PENDING
    attempts: int = 0
    verified_at: datetime | None = None
    superseded: bool = False

    def __str__(self) -> str:
        return f"OTP for ***{self.recipient[-4:]} ({self.purpose})"

    def is_expired(self, now: datetime) -> bool:
        """Check if the challenge has expired at ``now``."""
        return now > self.expires_at

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    @property
    def is_open(self) -> bool:
        """Still able to accept verification attempts (ignoring expiry)."""
        return not self.superseded and self.status in (OTPStatus.PENDING, OTPStatus.INVALID)
