"""
Identity directory: accounts and their WebAuthn credential records.

The auth core reads and writes accounts only through the ``AccountDirectory``
protocol. ``InMemoryAccountDirectory`` keeps everything in process memory and
hands out copies, so callers never mutate stored state behind its lock.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

from apps.accounts.constants import AuthMethod
from apps.accounts.exceptions import AccountExistsError, AccountNotFoundError
from apps.accounts.models import Account
from apps.core.logging import get_logger
from apps.passkeys.exceptions import (
    CounterRegressionError,
    CredentialConflictError,
    CredentialNotFoundError,
)
from apps.passkeys.models import WebAuthnCredential

logger = get_logger(__name__)


class AccountDirectory(Protocol):
    # Accounts
    def create_account(
        self,
        *,
        now: datetime,
        name: str,
        auth_method: AuthMethod,
        email: str | None = None,
        phone: str | None = None,
    ) -> Account: ...

    def get_account(self, account_id: str) -> Account | None: ...

    def get_by_email(self, email: str) -> Account | None: ...

    def get_by_phone(self, phone: str) -> Account | None: ...

    def get_by_did(self, did: str) -> Account | None: ...

    def update_profile(
        self,
        account_id: str,
        *,
        now: datetime,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Account: ...

    def set_did(
        self, account_id: str, did: str, did_document: dict[str, Any], *, now: datetime
    ) -> Account: ...

    def mark_email_verified(self, account_id: str, *, now: datetime) -> Account: ...

    def mark_phone_verified(self, account_id: str, *, now: datetime) -> Account: ...

    def touch_last_login(self, account_id: str, *, now: datetime) -> Account: ...

    def add_auth_method(self, account_id: str, method: AuthMethod, *, now: datetime) -> Account: ...

    def remove_auth_method(
        self, account_id: str, method: AuthMethod, *, now: datetime
    ) -> Account: ...

    def delete_account(self, account_id: str) -> bool: ...

    # Credentials
    def add_credential(self, credential: WebAuthnCredential) -> WebAuthnCredential: ...

    def get_credential(self, record_id: str) -> WebAuthnCredential | None: ...

    def get_credential_by_credential_id(self, credential_id: bytes) -> WebAuthnCredential | None: ...

    def list_credentials(self, account_id: str) -> list[WebAuthnCredential]: ...

    def advance_sign_count(
        self, record_id: str, new_count: int, *, used_at: datetime
    ) -> WebAuthnCredential: ...

    def delete_credential(self, record_id: str) -> bool: ...


def _copy_account(account: Account) -> Account:
    return replace(
        account,
        auth_methods=set(account.auth_methods),
        did_document=dict(account.did_document) if account.did_document else None,
    )


def _copy_credential(credential: WebAuthnCredential) -> WebAuthnCredential:
    return replace(credential, transports=list(credential.transports))


class InMemoryAccountDirectory:
    """
    Dict-backed directory with email / phone / DID / credential-id indexes.

    Emails are indexed lower-cased.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._accounts: dict[str, Account] = {}
        self._email_index: dict[str, str] = {}
        self._phone_index: dict[str, str] = {}
        self._did_index: dict[str, str] = {}
        self._credentials: dict[str, WebAuthnCredential] = {}
        self._credential_id_index: dict[bytes, str] = {}
        self._credentials_by_account: dict[str, set[str]] = {}

    # --- Accounts ---

    def create_account(
        self,
        *,
        now: datetime,
        name: str,
        auth_method: AuthMethod,
        email: str | None = None,
        phone: str | None = None,
    ) -> Account:
        """
        Create an account.

        Raises:
            ValueError: If neither email nor phone is given
            AccountExistsError: If the email or phone is already registered
        """
        if not email and not phone:
            raise ValueError("Either email or phone is required")
        email = email.lower() if email else None

        with self._lock:
            if (email and email in self._email_index) or (phone and phone in self._phone_index):
                raise AccountExistsError()

            account = Account(
                created_at=now,
                updated_at=now,
                email=email,
                phone=phone,
                name=name,
                auth_methods={auth_method},
            )
            self._accounts[account.id] = account
            if email:
                self._email_index[email] = account.id
            if phone:
                self._phone_index[phone] = account.id
            return _copy_account(account)

    def get_account(self, account_id: str) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return _copy_account(account) if account else None

    def get_by_email(self, email: str) -> Account | None:
        with self._lock:
            account_id = self._email_index.get(email.lower())
            return self.get_account(account_id) if account_id else None

    def get_by_phone(self, phone: str) -> Account | None:
        with self._lock:
            account_id = self._phone_index.get(phone)
            return self.get_account(account_id) if account_id else None

    def get_by_did(self, did: str) -> Account | None:
        with self._lock:
            account_id = self._did_index.get(did)
            return self.get_account(account_id) if account_id else None

    def update_profile(
        self,
        account_id: str,
        *,
        now: datetime,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Account:
        """
        Update profile fields, keeping the contact indexes in sync.

        Changing a contact field resets its verified flag.
        """
        with self._lock:
            account = self._require(account_id)

            if email is not None:
                email = email.lower()
                if email != account.email:
                    if email in self._email_index:
                        raise AccountExistsError("Email already in use")
                    if account.email:
                        del self._email_index[account.email]
                    self._email_index[email] = account_id
                    account.email = email
                    account.email_verified = False

            if phone is not None and phone != account.phone:
                if phone in self._phone_index:
                    raise AccountExistsError("Phone already in use")
                if account.phone:
                    del self._phone_index[account.phone]
                self._phone_index[phone] = account_id
                account.phone = phone
                account.phone_verified = False

            if name is not None:
                account.name = name

            account.updated_at = now
            return _copy_account(account)

    def set_did(
        self, account_id: str, did: str, did_document: dict[str, Any], *, now: datetime
    ) -> Account:
        with self._lock:
            account = self._require(account_id)
            if account.did:
                self._did_index.pop(account.did, None)
            account.did = did
            account.did_document = did_document
            account.updated_at = now
            self._did_index[did] = account_id
            return _copy_account(account)

    def mark_email_verified(self, account_id: str, *, now: datetime) -> Account:
        with self._lock:
            account = self._require(account_id)
            account.email_verified = True
            account.updated_at = now
            return _copy_account(account)

    def mark_phone_verified(self, account_id: str, *, now: datetime) -> Account:
        with self._lock:
            account = self._require(account_id)
            account.phone_verified = True
            account.updated_at = now
            return _copy_account(account)

    def touch_last_login(self, account_id: str, *, now: datetime) -> Account:
        with self._lock:
            account = self._require(account_id)
            account.last_login_at = now
            account.updated_at = now
            return _copy_account(account)

    def add_auth_method(self, account_id: str, method: AuthMethod, *, now: datetime) -> Account:
        with self._lock:
            account = self._require(account_id)
            if method not in account.auth_methods:
                account.auth_methods.add(method)
                account.updated_at = now
            return _copy_account(account)

    def remove_auth_method(self, account_id: str, method: AuthMethod, *, now: datetime) -> Account:
        with self._lock:
            account = self._require(account_id)
            if method in account.auth_methods:
                account.auth_methods.discard(method)
                account.updated_at = now
            return _copy_account(account)

    def delete_account(self, account_id: str) -> bool:
        """Delete an account and all of its credentials."""
        with self._lock:
            account = self._accounts.pop(account_id, None)
            if account is None:
                return False
            if account.email:
                self._email_index.pop(account.email, None)
            if account.phone:
                self._phone_index.pop(account.phone, None)
            if account.did:
                self._did_index.pop(account.did, None)
            for record_id in self._credentials_by_account.pop(account_id, set()):
                credential = self._credentials.pop(record_id, None)
                if credential is not None:
                    self._credential_id_index.pop(credential.credential_id, None)
        logger.info("account_deleted", **{"account.id": account_id})
        return True

    # --- Credentials ---

    def add_credential(self, credential: WebAuthnCredential) -> WebAuthnCredential:
        """
        Store a new credential record.

        Raises:
            AccountNotFoundError: If the owning account does not exist
            CredentialConflictError: If the credential id is already registered
        """
        with self._lock:
            self._require(credential.account_id)
            if credential.credential_id in self._credential_id_index:
                raise CredentialConflictError()
            stored = _copy_credential(credential)
            self._credentials[stored.id] = stored
            self._credential_id_index[stored.credential_id] = stored.id
            self._credentials_by_account.setdefault(stored.account_id, set()).add(stored.id)
            return _copy_credential(stored)

    def get_credential(self, record_id: str) -> WebAuthnCredential | None:
        with self._lock:
            credential = self._credentials.get(record_id)
            return _copy_credential(credential) if credential else None

    def get_credential_by_credential_id(self, credential_id: bytes) -> WebAuthnCredential | None:
        with self._lock:
            record_id = self._credential_id_index.get(credential_id)
            return self.get_credential(record_id) if record_id else None

    def list_credentials(self, account_id: str) -> list[WebAuthnCredential]:
        with self._lock:
            ids = self._credentials_by_account.get(account_id, set())
            credentials = [_copy_credential(self._credentials[i]) for i in ids]
        return sorted(credentials, key=lambda c: c.created_at)

    def advance_sign_count(
        self, record_id: str, new_count: int, *, used_at: datetime
    ) -> WebAuthnCredential:
        """
        Move a credential's signature counter forward and stamp its last use.

        Authenticators that do not implement counters report 0 forever; that
        is accepted only while the stored value is 0 too.

        Raises:
            CredentialNotFoundError: If the record no longer exists
            CounterRegressionError: If the counter did not strictly increase
        """
        with self._lock:
            credential = self._credentials.get(record_id)
            if credential is None:
                raise CredentialNotFoundError()

            stored = credential.sign_count
            if (new_count > 0 or stored > 0) and new_count <= stored:
                logger.warning(
                    "webauthn_counter_regression",
                    credential_record_id=record_id,
                    stored_count=stored,
                    reported_count=new_count,
                    **{"account.id": credential.account_id},
                )
                raise CounterRegressionError()

            credential.sign_count = new_count
            credential.last_used_at = used_at
            return _copy_credential(credential)

    def delete_credential(self, record_id: str) -> bool:
        with self._lock:
            credential = self._credentials.pop(record_id, None)
            if credential is None:
                return False
            self._credential_id_index.pop(credential.credential_id, None)
            owned = self._credentials_by_account.get(credential.account_id)
            if owned is not None:
                owned.discard(record_id)
                if not owned:
                    del self._credentials_by_account[credential.account_id]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def _require(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError()
        return account
