"""
OTP generation and verification services.

``OTPLedger`` owns the challenge state machine:

    pending -> verified | expired | invalid

A wrong code moves the record to ``invalid`` but it keeps accepting
attempts until ``max_attempts`` is reached; after that every check fails
with ``OTPAttemptsExhaustedError`` and the record is left untouched.
Expiry is evaluated lazily at verification time.

Locking: issuance is serialized per recipient (rate check, supersede and
create happen as one step) and verification per challenge. Delivery runs
after the record is persisted and outside every lock.
"""

import secrets
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta

from django.utils import timezone

from apps.core.locking import KeyedLock
from apps.core.logging import get_logger
from apps.core.throttling import RateLimiter
from apps.otp.constants import (
    ALPHANUMERIC_ALPHABET,
    NUMERIC_ALPHABET,
    DeliveryChannel,
    OTPCharset,
    OTPPurpose,
    OTPStatus,
)
from apps.otp.delivery import DeliveryDispatcher
from apps.otp.exceptions import (
    OTPAlreadyUsedError,
    OTPAttemptsExhaustedError,
    OTPNotFoundError,
    OTPRateLimitError,
    OTPSupersededError,
)
from apps.otp.models import OTPChallenge
from apps.otp.stores import OTPStore
from apps.otp.validation import normalize_recipient

logger = get_logger(__name__)


def generate_otp_code(length: int = 6, charset: str = OTPCharset.NUMERIC) -> str:
    """
    Generate a cryptographically secure OTP code.

    Args:
        length: Number of characters
        charset: ``numeric`` (digits) or ``alphanumeric`` (digits and both letter cases)

    Returns:
        The random code
    """
    alphabet = ALPHANUMERIC_ALPHABET if charset == OTPCharset.ALPHANUMERIC else NUMERIC_ALPHABET
    return "".join(secrets.choice(alphabet) for _ in range(length))


class OTPLedger:
    """Issues and verifies one-time passcodes."""

    def __init__(
        self,
        *,
        store: OTPStore,
        rate_limiter: RateLimiter,
        dispatcher: DeliveryDispatcher,
        code_length: int = 6,
        charset: str = OTPCharset.NUMERIC,
        expiry_minutes: int = 10,
        max_attempts: int = 3,
        retention_hours: int = 24,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.store = store
        self.rate_limiter = rate_limiter
        self.dispatcher = dispatcher
        self.code_length = code_length
        self.charset = charset
        self.expiry = timedelta(minutes=expiry_minutes)
        self.max_attempts = max_attempts
        self.retention = timedelta(hours=retention_hours)
        self._clock = clock
        self._locks = KeyedLock()

    def issue(
        self,
        recipient: str,
        channel: DeliveryChannel,
        purpose: OTPPurpose,
        account_id: str | None = None,
    ) -> OTPChallenge:
        """
        Create a new challenge for ``recipient`` and dispatch its code.

        Every still-open challenge for the recipient is invalidated and
        marked superseded.

        Raises:
            InvalidRecipientFormatError: If the recipient does not match the channel
            OTPRateLimitError: If the recipient exceeded the issuance ceiling
        """
        recipient = normalize_recipient(recipient, channel)

        with self._locks.hold(f"recipient:{recipient}"):
            if not self.rate_limiter.check_and_record(recipient):
                raise OTPRateLimitError(retry_after=self.rate_limiter.retry_after(recipient))

            superseded = 0
            for prior in self.store.list_for_recipient(recipient):
                with self._locks.hold(f"otp:{prior.id}"):
                    if prior.is_open:
                        prior.status = OTPStatus.INVALID
                        prior.superseded = True
                        self.store.save(prior)
                        superseded += 1

            now = self._clock()
            challenge = OTPChallenge(
                recipient=recipient,
                channel=channel,
                purpose=purpose,
                code=generate_otp_code(self.code_length, self.charset),
                created_at=now,
                expires_at=now + self.expiry,
                max_attempts=self.max_attempts,
                account_id=account_id,
            )
            self.store.add(challenge)

        logger.info(
            "otp_issued",
            otp_id=challenge.id,
            recipient=recipient,
            channel=str(channel),
            purpose=str(purpose),
            superseded=superseded,
            **{"account.id": account_id},
        )

        delivered = self.dispatcher.send(recipient, challenge.code, channel, purpose)
        if not delivered:
            logger.warning("otp_delivery_degraded", otp_id=challenge.id, channel=str(channel))

        return replace(challenge)

    def verify(self, otp_id: str, code: str) -> OTPChallenge:
        """
        Check ``code`` against challenge ``otp_id``.

        Returns a snapshot of the updated record. ``status == verified`` is
        the only success signal: an ``expired`` or ``invalid`` status is a
        failure the caller reports.

        Raises:
            OTPNotFoundError: Unknown challenge id
            OTPSupersededError: A newer challenge replaced this one
            OTPAlreadyUsedError: The challenge was already verified
            OTPAttemptsExhaustedError: The attempt limit is reached
        """
        submitted = (code or "").strip()

        with self._locks.hold(f"otp:{otp_id}"):
            challenge = self.store.get(otp_id)
            if challenge is None:
                logger.warning("otp_not_found", otp_id=otp_id)
                raise OTPNotFoundError()

            if challenge.superseded:
                logger.info("otp_verification_rejected", otp_id=otp_id, reason="superseded")
                raise OTPSupersededError()

            if challenge.status == OTPStatus.VERIFIED:
                logger.warning("otp_verification_rejected", otp_id=otp_id, reason="already_used")
                raise OTPAlreadyUsedError()

            now = self._clock()
            if challenge.status == OTPStatus.EXPIRED or challenge.is_expired(now):
                if challenge.status != OTPStatus.EXPIRED:
                    challenge.status = OTPStatus.EXPIRED
                    self.store.save(challenge)
                    logger.info("otp_expired", otp_id=otp_id, recipient=challenge.recipient)
                return replace(challenge)

            if challenge.attempts >= challenge.max_attempts:
                logger.warning(
                    "otp_attempts_exhausted", otp_id=otp_id, recipient=challenge.recipient
                )
                raise OTPAttemptsExhaustedError()

            challenge.attempts += 1
            if secrets.compare_digest(challenge.code.encode(), submitted.encode()):
                challenge.status = OTPStatus.VERIFIED
                challenge.verified_at = now
                logger.info("otp_verified", otp_id=otp_id, recipient=challenge.recipient)
            else:
                challenge.status = OTPStatus.INVALID
                logger.info(
                    "otp_verification_failed",
                    otp_id=otp_id,
                    recipient=challenge.recipient,
                    attempts_left=challenge.attempts_left,
                )
            self.store.save(challenge)
            return replace(challenge)

    def peek(self, otp_id: str) -> OTPChallenge | None:
        """Return a snapshot of a challenge without touching its state."""
        challenge = self.store.get(otp_id)
        return replace(challenge) if challenge is not None else None

    def purge_stale(self) -> int:
        """
        Evict records whose expiry is older than the retention period.

        Intended to be called from the periodic maintenance task.

        Returns:
            Number of records deleted
        """
        cutoff = self._clock() - self.retention
        deleted = self.store.purge_expired_before(cutoff)
        purged_windows = self.rate_limiter.purge_expired()
        if deleted or purged_windows:
            logger.info("otp_records_purged", deleted=deleted, rate_limit_windows=purged_windows)
        return deleted
