"""
Storage for OTP challenge records.

``OTPLedger`` talks to the ``OTPStore`` protocol only, so the in-memory store
can be swapped for a persistent one without touching the state machine.
The ledger serializes writes per record; the store only has to keep its own
indexes consistent.
"""

import threading
from datetime import datetime
from typing import Protocol

from apps.otp.models import OTPChallenge


class OTPStore(Protocol):
    def add(self, challenge: OTPChallenge) -> None: ...

    def get(self, otp_id: str) -> OTPChallenge | None: ...

    def save(self, challenge: OTPChallenge) -> None: ...

    def list_for_recipient(self, recipient: str) -> list[OTPChallenge]: ...

    def purge_expired_before(self, cutoff: datetime) -> int: ...

    def __len__(self) -> int: ...


class InMemoryOTPStore:
    """Process-local store. Records are returned by reference."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, OTPChallenge] = {}
        self._by_recipient: dict[str, list[str]] = {}

    def add(self, challenge: OTPChallenge) -> None:
        with self._lock:
            self._records[challenge.id] = challenge
            self._by_recipient.setdefault(challenge.recipient, []).append(challenge.id)

    def get(self, otp_id: str) -> OTPChallenge | None:
        with self._lock:
            return self._records.get(otp_id)

    def save(self, challenge: OTPChallenge) -> None:
        with self._lock:
            self._records[challenge.id] = challenge

    def list_for_recipient(self, recipient: str) -> list[OTPChallenge]:
        with self._lock:
            ids = self._by_recipient.get(recipient, [])
            return [self._records[otp_id] for otp_id in ids if otp_id in self._records]

    def purge_expired_before(self, cutoff: datetime) -> int:
        """Delete records whose expiry is older than ``cutoff``."""
        with self._lock:
            stale = [r for r in self._records.values() if r.expires_at < cutoff]
            for record in stale:
                del self._records[record.id]
                ids = self._by_recipient.get(record.recipient)
                if ids is not None:
                    ids.remove(record.id)
                    if not ids:
                        del self._by_recipient[record.recipient]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
