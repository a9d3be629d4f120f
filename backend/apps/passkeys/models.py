"""
Passkey (WebAuthn) models.

Ceremony sessions live in the session store; credential records are owned by
the account directory.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from webauthn.helpers import bytes_to_base64url

from apps.passkeys.constants import SESSION_ID_BYTES, CeremonyType, DeviceType


def _new_session_id() -> str:
    return secrets.token_urlsafe(SESSION_ID_BYTES)


def _new_credential_record_id() -> str:
    return f"cred_{uuid4().hex}"


@dataclass
class WebAuthnSession:
    """
    A single in-flight ceremony.

    Single use: the session is removed from the store the moment a completion
    call claims it, whether or not verification then succeeds.
    """

    ceremony: CeremonyType
    challenge: bytes = field(repr=False)
    account_id: str
    created_at: datetime
    expires_at: datetime
    user_verification: str = "preferred"
    device_name: str | None = None
    id: str = field(default_factory=_new_session_id)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class WebAuthnCredential:
    """
    WebAuthn credential registered to an account.

    ``credential_id`` is globally unique. ``sign_count`` only ever moves
    forward (see ``AccountDirectory.advance_sign_count``).
    """

    account_id: str
    credential_id: bytes
    public_key: bytes = field(repr=False)
    sign_count: int
    created_at: datetime
    name: str = ""
    transports: list[str] = field(default_factory=list)
    device_type: DeviceType = DeviceType.SINGLE_DEVICE
    backed_up: bool = False
    aaguid: str = ""
    id: str = field(default_factory=_new_credential_record_id)
    last_used_at: datetime | None = None

    def __str__(self) -> str:
        return f"{self.name or 'Passkey'} ({self.credential_id_b64[:8]}...)"

    @property
    def credential_id_b64(self) -> str:
        return bytes_to_base64url(self.credential_id)
