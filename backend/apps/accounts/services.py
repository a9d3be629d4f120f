"""
Authentication orchestration.

``AuthOrchestrator`` is the facade the API layer calls. It sequences the
OTP ledger, the WebAuthn coordinator and the token issuer, and decides
between registering a new account and logging in an existing one.

OTP flow::

    request_code(email|phone, purpose)  -> challenge (id, expiry, channel)
    submit_code(otp_id, code, ...)      -> AuthResult (token, account, ...)

WebAuthn flow: thin pass-through to the coordinator, plus token issuance
after a successful assertion.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from django.utils import timezone

from apps.accounts.constants import NAME_MAX_LENGTH, NAME_MIN_LENGTH, AuthMethod
from apps.accounts.did import DIDGenerator
from apps.accounts.exceptions import AccountExistsError, AccountNotFoundError, NameRequiredError
from apps.accounts.models import Account
from apps.accounts.stores import AccountDirectory
from apps.core.exceptions import RequestValidationError
from apps.core.logging import get_logger
from apps.core.utils import user_agent_suggests_webauthn
from apps.otp.constants import DeliveryChannel, OTPPurpose, OTPStatus
from apps.otp.exceptions import OTPExpiredError, OTPInvalidError, OTPNotFoundError
from apps.otp.models import OTPChallenge
from apps.otp.services import OTPLedger
from apps.otp.validation import normalize_recipient
from apps.passkeys.models import WebAuthnCredential
from apps.passkeys.services import CeremonyOptions, WebAuthnCoordinator
from apps.tokens.services import TokenClaims, TokenIssuer

logger = get_logger(__name__)


@dataclass
class AuthResult:
    """Outcome of a successful sign-in or registration."""

    token: str
    account: Account
    auth_method: AuthMethod
    is_new_account: bool = False
    webauthn_capable: bool = False


def _resolve_contact(email: str | None, phone: str | None) -> tuple[str, DeliveryChannel]:
    """Require exactly one of email / phone and return it normalized with its channel."""
    if not email and not phone:
        raise RequestValidationError("Either email or phone is required")
    if email and phone:
        raise RequestValidationError("Provide either email or phone, not both")
    if email:
        return normalize_recipient(email, DeliveryChannel.EMAIL), DeliveryChannel.EMAIL
    return normalize_recipient(phone or "", DeliveryChannel.SMS), DeliveryChannel.SMS


def _auth_method_for(channel: DeliveryChannel) -> AuthMethod:
    return AuthMethod.EMAIL if channel == DeliveryChannel.EMAIL else AuthMethod.SMS


class AuthOrchestrator:
    def __init__(
        self,
        *,
        directory: AccountDirectory,
        ledger: OTPLedger,
        coordinator: WebAuthnCoordinator,
        issuer: TokenIssuer,
        did_generator: DIDGenerator,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.directory = directory
        self.ledger = ledger
        self.coordinator = coordinator
        self.issuer = issuer
        self.did_generator = did_generator
        self._clock = clock

    # --- OTP flow ---

    def request_code(
        self,
        *,
        purpose: OTPPurpose,
        email: str | None = None,
        phone: str | None = None,
    ) -> OTPChallenge:
        """
        Issue a one-time passcode for login, recovery or registration.

        Login and recovery require an existing account; registration
        requires that none exists yet.

        Raises:
            RequestValidationError: Neither or both of email / phone given
            InvalidRecipientFormatError: Malformed email or phone
            AccountNotFoundError: Login / recovery for an unknown recipient
            AccountExistsError: Registration for a known recipient
            OTPRateLimitError: Too many codes requested for the recipient
        """
        recipient, channel = _resolve_contact(email, phone)
        account = self._find_by_recipient(recipient, channel)

        if purpose == OTPPurpose.REGISTRATION:
            if account is not None:
                raise AccountExistsError()
        elif account is None:
            raise AccountNotFoundError()

        return self.ledger.issue(
            recipient,
            channel,
            purpose,
            account_id=account.id if account else None,
        )

    def submit_code(
        self,
        otp_id: str,
        code: str,
        *,
        register_user: bool = False,
        name: str | None = None,
        user_agent: str | None = None,
    ) -> AuthResult:
        """
        Verify a passcode and sign the account in, registering it if asked.

        A verified challenge with no account behind it creates one when
        ``register_user`` is set; the DID bootstrap that follows is
        best-effort.

        Raises:
            OTPNotFoundError, OTPSupersededError, OTPAlreadyUsedError,
            OTPAttemptsExhaustedError: From the ledger
            OTPExpiredError: The challenge expired
            OTPInvalidError: Wrong code; carries ``attempts_left``
            NameRequiredError: Registration without a usable name
            AccountNotFoundError: No account and ``register_user`` not set
        """
        pending = self.ledger.peek(otp_id)
        if pending is None:
            raise OTPNotFoundError()

        display_name = (name or "").strip()
        if (
            register_user
            and pending.account_id is None
            and self._find_by_recipient(pending.recipient, pending.channel) is None
            and not NAME_MIN_LENGTH <= len(display_name) <= NAME_MAX_LENGTH
        ):
            raise NameRequiredError()

        challenge = self.ledger.verify(otp_id, code)
        if challenge.status == OTPStatus.EXPIRED:
            raise OTPExpiredError()
        if challenge.status != OTPStatus.VERIFIED:
            raise OTPInvalidError(attempts_left=challenge.attempts_left)

        auth_method = _auth_method_for(challenge.channel)
        is_new_account = False

        if challenge.account_id is not None:
            account = self.directory.get_account(challenge.account_id)
            if account is None:
                raise AccountNotFoundError()
        else:
            account = self._find_by_recipient(challenge.recipient, challenge.channel)
            if account is None:
                if not register_user:
                    raise AccountNotFoundError()
                account = self._register(challenge, display_name, auth_method)
                is_new_account = True

        account = self.directory.touch_last_login(account.id, now=self._clock())
        token = self.issuer.issue(account, auth_method)

        logger.info(
            "otp_sign_in_completed",
            otp_id=otp_id,
            auth_method=str(auth_method),
            is_new_account=is_new_account,
            **{"account.id": account.id},
        )
        return AuthResult(
            token=token,
            account=account,
            auth_method=auth_method,
            is_new_account=is_new_account,
            webauthn_capable=user_agent_suggests_webauthn(user_agent),
        )

    # --- WebAuthn flow ---

    def begin_webauthn_registration(
        self, account_id: str, device_name: str | None = None
    ) -> CeremonyOptions:
        return self.coordinator.begin_registration(account_id, device_name=device_name)

    def complete_webauthn_registration(
        self,
        account_id: str,
        session_id: str,
        credential_json: dict[str, Any],
        device_name: str | None = None,
    ) -> WebAuthnCredential:
        return self.coordinator.complete_registration(
            session_id,
            credential_json,
            account_id=account_id,
            device_name=device_name,
        )

    def begin_webauthn_authentication(
        self, *, email: str | None = None, phone: str | None = None
    ) -> CeremonyOptions:
        identifier, _ = _resolve_contact(email, phone)
        return self.coordinator.begin_authentication(identifier)

    def complete_webauthn_authentication(
        self, session_id: str, credential_json: dict[str, Any]
    ) -> AuthResult:
        result = self.coordinator.complete_authentication(session_id, credential_json)
        account = self.directory.touch_last_login(result.account.id, now=self._clock())
        token = self.issuer.issue(account, AuthMethod.WEBAUTHN)
        return AuthResult(
            token=token,
            account=account,
            auth_method=AuthMethod.WEBAUTHN,
            webauthn_capable=True,
        )

    def list_credentials(self, account_id: str) -> list[WebAuthnCredential]:
        return self.coordinator.list_credentials(account_id)

    def remove_credential(self, account_id: str, record_id: str) -> None:
        self.coordinator.remove_credential(account_id, record_id)

    # --- Tokens ---

    def validate_token(self, token: str) -> TokenClaims:
        return self.issuer.validate(token)

    def refresh_token(self, token: str) -> tuple[str, bool]:
        """Return ``(token, refreshed)``; the input is returned while still fresh."""
        refreshed = self.issuer.refresh_if_needed(token)
        return refreshed, refreshed != token

    # --- Internals ---

    def _find_by_recipient(self, recipient: str, channel: DeliveryChannel) -> Account | None:
        if channel == DeliveryChannel.EMAIL:
            return self.directory.get_by_email(recipient)
        return self.directory.get_by_phone(recipient)

    def _register(self, challenge: OTPChallenge, name: str, auth_method: AuthMethod) -> Account:
        now = self._clock()
        if challenge.channel == DeliveryChannel.EMAIL:
            account = self.directory.create_account(
                now=now, name=name, auth_method=auth_method, email=challenge.recipient
            )
            account = self.directory.mark_email_verified(account.id, now=now)
        else:
            account = self.directory.create_account(
                now=now, name=name, auth_method=auth_method, phone=challenge.recipient
            )
            account = self.directory.mark_phone_verified(account.id, now=now)

        logger.info("account_registered", auth_method=str(auth_method), **{"account.id": account.id})
        return self._bootstrap_did(account)

    def _bootstrap_did(self, account: Account) -> Account:
        """Attach a fresh DID. Failure leaves the account usable without one."""
        try:
            generated = self.did_generator.generate()
            account = self.directory.set_did(
                account.id, generated.did, generated.document, now=self._clock()
            )
        except Exception:
            logger.exception("did_bootstrap_failed", **{"account.id": account.id})
            return account

        logger.info("did_bootstrapped", did=account.did, **{"account.id": account.id})
        return account
