"""
Accounts models - wallet identities held by the directory.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from apps.accounts.constants import AuthMethod


def _new_account_id() -> str:
    return f"acct_{uuid4().hex}"


@dataclass
class Account:
    """
    A wallet account.

    At least one of ``email`` / ``phone`` is set. ``did`` stays empty until
    the DID bootstrap succeeds; the account is fully usable without it.
    """

    created_at: datetime
    updated_at: datetime
    email: str | None = None
    phone: str | None = None
    name: str = ""
    id: str = field(default_factory=_new_account_id)
    did: str | None = None
    did_document: dict[str, Any] | None = field(default=None, repr=False)
    email_verified: bool = False
    phone_verified: bool = False
    auth_methods: set[AuthMethod] = field(default_factory=set)
    last_login_at: datetime | None = None

    def __str__(self) -> str:
        return self.email or self.phone or self.id

    @property
    def has_webauthn(self) -> bool:
        return AuthMethod.WEBAUTHN in self.auth_methods
