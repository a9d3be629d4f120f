"""
Passkey (WebAuthn) service layer.

Coordinates registration and authentication ceremonies using the webauthn
library. Each ceremony is one session:

    begin_*     -> session stored with a fresh challenge and a short TTL
    complete_*  -> session claimed (removed) first, then verified

Cryptographic verification (challenge, origin, RP ID, signature) is done by
py_webauthn outside any lock on shared state.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from django.utils import timezone
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, options_to_json
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorAttachment,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from apps.accounts.constants import AuthMethod
from apps.accounts.exceptions import AccountNotFoundError
from apps.accounts.models import Account
from apps.accounts.stores import AccountDirectory
from apps.core.logging import get_logger
from apps.passkeys.constants import CeremonyType, DeviceType
from apps.passkeys.exceptions import (
    AssertionInvalidError,
    AttestationInvalidError,
    CredentialConflictError,
    CredentialNotFoundError,
    CredentialOwnershipError,
    NoCredentialsRegisteredError,
    UnknownCredentialError,
    WebAuthnSessionMismatchError,
    WebAuthnSessionNotFoundError,
)
from apps.passkeys.models import WebAuthnCredential, WebAuthnSession
from apps.passkeys.stores import WebAuthnSessionStore

logger = get_logger(__name__)

VALID_TRANSPORTS = frozenset(t.value for t in AuthenticatorTransport)


@dataclass
class CeremonyOptions:
    """Options returned to the client to start a ceremony."""

    session_id: str
    options: dict[str, Any]
    expires_at: datetime


@dataclass
class AuthenticationResult:
    """Result of a successful authentication ceremony."""

    account: Account
    credential: WebAuthnCredential


def _descriptors(credentials: list[WebAuthnCredential]) -> list[PublicKeyCredentialDescriptor]:
    return [
        PublicKeyCredentialDescriptor(
            id=credential.credential_id,
            transports=[AuthenticatorTransport(t) for t in credential.transports] or None,
        )
        for credential in credentials
    ]


def _extract_transports(credential_json: dict[str, Any]) -> list[str]:
    response = credential_json.get("response")
    if not isinstance(response, dict):
        return []
    return [t for t in response.get("transports") or [] if t in VALID_TRANSPORTS]


class WebAuthnCoordinator:
    """Runs registration and authentication ceremonies for wallet accounts."""

    def __init__(
        self,
        *,
        directory: AccountDirectory,
        sessions: WebAuthnSessionStore,
        rp_id: str,
        rp_name: str,
        origin: str,
        session_ttl_minutes: int = 10,
        timeout_ms: int = 60000,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.directory = directory
        self.sessions = sessions
        self.rp_id = rp_id
        self.rp_name = rp_name
        self.origin = origin
        self.session_ttl = timedelta(minutes=session_ttl_minutes)
        self.timeout_ms = timeout_ms
        self._clock = clock

    # --- Registration ---

    def begin_registration(self, account_id: str, device_name: str | None = None) -> CeremonyOptions:
        """
        Generate options for registering a new authenticator.

        The account's existing credentials are excluded so the same physical
        authenticator cannot be registered twice.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        account = self.directory.get_account(account_id)
        if account is None:
            raise AccountNotFoundError()

        user_name = account.email or account.phone or account.name
        options = generate_registration_options(
            rp_id=self.rp_id,
            rp_name=self.rp_name,
            user_id=account.id.encode(),
            user_name=user_name,
            user_display_name=account.name or user_name,
            timeout=self.timeout_ms,
            attestation=AttestationConveyancePreference.NONE,
            exclude_credentials=_descriptors(self.directory.list_credentials(account.id)),
            authenticator_selection=AuthenticatorSelectionCriteria(
                authenticator_attachment=AuthenticatorAttachment.PLATFORM,
                resident_key=ResidentKeyRequirement.PREFERRED,
                user_verification=UserVerificationRequirement.PREFERRED,
            ),
        )

        session = self._open_session(
            CeremonyType.REGISTRATION,
            challenge=options.challenge,
            account_id=account.id,
            device_name=device_name,
        )
        logger.info(
            "webauthn_registration_started",
            session_id=session.id,
            **{"account.id": account.id},
        )
        return CeremonyOptions(
            session_id=session.id,
            options=json.loads(options_to_json(options)),
            expires_at=session.expires_at,
        )

    def complete_registration(
        self,
        session_id: str,
        credential_json: dict[str, Any],
        account_id: str | None = None,
        device_name: str | None = None,
    ) -> WebAuthnCredential:
        """
        Verify an attestation response and store the new credential.

        Args:
            session_id: Session returned by ``begin_registration``
            credential_json: Response from navigator.credentials.create()
            account_id: Caller's account; must match the session's when given
            device_name: Friendly name, overriding the one given at begin

        Returns:
            The stored credential (the existing record if this account already
            registered the same credential id)

        Raises:
            WebAuthnSessionNotFoundError: Unknown, expired or already used session
            WebAuthnSessionMismatchError: Session belongs to another account
            AttestationInvalidError: Verification failed; nothing is stored
            CredentialConflictError: Credential id is registered to another account
        """
        session = self._claim_session(session_id, CeremonyType.REGISTRATION)

        if account_id is not None and session.account_id != account_id:
            logger.warning(
                "webauthn_session_mismatch",
                session_id=session_id,
                **{"account.id": account_id},
            )
            raise WebAuthnSessionMismatchError()

        try:
            verification = verify_registration_response(
                credential=credential_json,
                expected_challenge=session.challenge,
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                require_user_verification=session.user_verification == "required",
            )
        except Exception as e:
            logger.warning(
                "webauthn_registration_failed",
                session_id=session_id,
                error=str(e),
                **{"account.id": session.account_id},
            )
            raise AttestationInvalidError() from e

        existing = self.directory.get_credential_by_credential_id(verification.credential_id)
        if existing is not None:
            if existing.account_id == session.account_id:
                logger.info(
                    "webauthn_credential_already_registered",
                    credential_record_id=existing.id,
                    **{"account.id": session.account_id},
                )
                return existing
            raise CredentialConflictError()

        now = self._clock()
        credential = self.directory.add_credential(
            WebAuthnCredential(
                account_id=session.account_id,
                credential_id=verification.credential_id,
                public_key=verification.credential_public_key,
                sign_count=verification.sign_count,
                created_at=now,
                name=device_name or session.device_name or "",
                transports=_extract_transports(credential_json),
                device_type=DeviceType(verification.credential_device_type.value),
                backed_up=bool(verification.credential_backed_up),
                aaguid=str(verification.aaguid or ""),
            )
        )
        self.directory.add_auth_method(session.account_id, AuthMethod.WEBAUTHN, now=now)

        logger.info(
            "webauthn_registration_completed",
            credential_record_id=credential.id,
            device_type=str(credential.device_type),
            **{"account.id": session.account_id},
        )
        return credential

    # --- Authentication ---

    def begin_authentication(self, identifier: str) -> CeremonyOptions:
        """
        Generate options for authenticating the account behind ``identifier``.

        Args:
            identifier: Email address or E.164 phone number

        Raises:
            AccountNotFoundError: If no account matches
            NoCredentialsRegisteredError: If the account has no passkeys (fall back to OTP)
        """
        identifier = (identifier or "").strip()
        if "@" in identifier:
            account = self.directory.get_by_email(identifier)
        else:
            account = self.directory.get_by_phone(identifier)
        if account is None:
            raise AccountNotFoundError()

        credentials = self.directory.list_credentials(account.id)
        if not credentials:
            logger.info("webauthn_no_credentials", **{"account.id": account.id})
            raise NoCredentialsRegisteredError()

        options = generate_authentication_options(
            rp_id=self.rp_id,
            timeout=self.timeout_ms,
            allow_credentials=_descriptors(credentials),
            user_verification=UserVerificationRequirement.PREFERRED,
        )

        session = self._open_session(
            CeremonyType.AUTHENTICATION,
            challenge=options.challenge,
            account_id=account.id,
        )
        logger.info(
            "webauthn_authentication_started",
            session_id=session.id,
            **{"account.id": account.id},
        )
        return CeremonyOptions(
            session_id=session.id,
            options=json.loads(options_to_json(options)),
            expires_at=session.expires_at,
        )

    def complete_authentication(
        self, session_id: str, credential_json: dict[str, Any]
    ) -> AuthenticationResult:
        """
        Verify an assertion and advance the credential's signature counter.

        Raises:
            WebAuthnSessionNotFoundError: Unknown, expired or already used session
            UnknownCredentialError: Credential id is not registered
            CredentialOwnershipError: Credential belongs to another account
            AssertionInvalidError: Signature, challenge or origin check failed
            CounterRegressionError: Signature counter did not increase
        """
        session = self._claim_session(session_id, CeremonyType.AUTHENTICATION)

        raw_id = credential_json.get("rawId") or credential_json.get("id")
        if not raw_id or not isinstance(raw_id, str):
            raise AssertionInvalidError("Missing credential ID in response")
        try:
            credential_id = base64url_to_bytes(raw_id)
        except ValueError as e:
            raise UnknownCredentialError() from e

        stored = self.directory.get_credential_by_credential_id(credential_id)
        if stored is None:
            logger.warning(
                "webauthn_unknown_credential",
                session_id=session_id,
                **{"account.id": session.account_id},
            )
            raise UnknownCredentialError()

        if stored.account_id != session.account_id:
            logger.warning(
                "webauthn_credential_ownership_mismatch",
                session_id=session_id,
                credential_record_id=stored.id,
                **{"account.id": session.account_id},
            )
            raise CredentialOwnershipError()

        try:
            verification = verify_authentication_response(
                credential=credential_json,
                expected_challenge=session.challenge,
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                credential_public_key=stored.public_key,
                credential_current_sign_count=stored.sign_count,
                require_user_verification=session.user_verification == "required",
            )
        except Exception as e:
            logger.warning(
                "webauthn_authentication_failed",
                session_id=session_id,
                credential_record_id=stored.id,
                error=str(e),
                **{"account.id": session.account_id},
            )
            raise AssertionInvalidError() from e

        now = self._clock()
        credential = self.directory.advance_sign_count(
            stored.id, verification.new_sign_count, used_at=now
        )

        account = self.directory.get_account(session.account_id)
        if account is None:
            raise AccountNotFoundError()

        logger.info(
            "webauthn_authentication_completed",
            credential_record_id=credential.id,
            sign_count=credential.sign_count,
            **{"account.id": account.id},
        )
        return AuthenticationResult(account=account, credential=credential)

    # --- Credential management ---

    def list_credentials(self, account_id: str) -> list[WebAuthnCredential]:
        return self.directory.list_credentials(account_id)

    def remove_credential(self, account_id: str, record_id: str) -> None:
        """
        Delete one of the account's credentials.

        Removing the last one drops ``webauthn`` from the account's methods.

        Raises:
            CredentialNotFoundError: Unknown record id
            CredentialOwnershipError: Record belongs to another account
        """
        credential = self.directory.get_credential(record_id)
        if credential is None:
            raise CredentialNotFoundError()
        if credential.account_id != account_id:
            raise CredentialOwnershipError()

        self.directory.delete_credential(record_id)
        if not self.directory.list_credentials(account_id):
            self.directory.remove_auth_method(account_id, AuthMethod.WEBAUTHN, now=self._clock())

        logger.info(
            "webauthn_credential_removed",
            credential_record_id=record_id,
            **{"account.id": account_id},
        )

    # --- Maintenance ---

    def sweep_expired_sessions(self) -> int:
        """
        Purge sessions past their expiry.

        Intended to be called from the periodic maintenance task.

        Returns:
            Number of sessions removed
        """
        removed = self.sessions.purge_expired(self._clock())
        if removed:
            logger.info("webauthn_sessions_swept", removed=removed)
        return removed

    def _open_session(
        self,
        ceremony: CeremonyType,
        *,
        challenge: bytes,
        account_id: str,
        device_name: str | None = None,
    ) -> WebAuthnSession:
        now = self._clock()
        session = WebAuthnSession(
            ceremony=ceremony,
            challenge=challenge,
            account_id=account_id,
            created_at=now,
            expires_at=now + self.session_ttl,
            user_verification=UserVerificationRequirement.PREFERRED.value,
            device_name=device_name,
        )
        self.sessions.put(session)
        return session

    def _claim_session(self, session_id: str, ceremony: CeremonyType) -> WebAuthnSession:
        session = self.sessions.take(session_id, ceremony)
        if session is None:
            logger.info("webauthn_session_not_found", session_id=session_id, ceremony=str(ceremony))
            raise WebAuthnSessionNotFoundError()
        if session.is_expired(self._clock()):
            logger.info("webauthn_session_expired", session_id=session_id, ceremony=str(ceremony))
            raise WebAuthnSessionNotFoundError()
        return session
