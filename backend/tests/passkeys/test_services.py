"""
Tests for WebAuthnCoordinator.

Tests registration and authentication ceremonies with mocked WebAuthn
verification; session handling and counter enforcement run for real.
"""

from unittest.mock import MagicMock, patch

import pytest
from webauthn.helpers import bytes_to_base64url
from webauthn.helpers.exceptions import (
    InvalidAuthenticationResponse,
    InvalidRegistrationResponse,
)
from webauthn.helpers.structs import CredentialDeviceType

from apps.accounts.constants import AuthMethod
from apps.accounts.exceptions import AccountNotFoundError
from apps.passkeys.constants import CeremonyType, DeviceType
from apps.passkeys.exceptions import (
    AssertionInvalidError,
    AttestationInvalidError,
    CounterRegressionError,
    CredentialConflictError,
    CredentialNotFoundError,
    CredentialOwnershipError,
    NoCredentialsRegisteredError,
    UnknownCredentialError,
    WebAuthnSessionMismatchError,
    WebAuthnSessionNotFoundError,
)
from apps.passkeys.services import WebAuthnCoordinator
from tests.passkeys.factories import WebAuthnCredentialFactory

AAGUID = "adce0002-35bc-c60a-648b-0b25f1f05503"


@pytest.fixture
def coordinator(runtime) -> WebAuthnCoordinator:
    return runtime.coordinator


def registration_verification(credential_id: bytes = b"new_credential_id_123", sign_count: int = 0):
    verification = MagicMock()
    verification.credential_id = credential_id
    verification.credential_public_key = b"public_key_bytes"
    verification.sign_count = sign_count
    verification.aaguid = AAGUID
    verification.credential_backed_up = True
    verification.credential_device_type = CredentialDeviceType.MULTI_DEVICE
    return verification


def attestation_json(transports: list[str] | None = None) -> dict:
    return {
        "id": "bmV3X2NyZWRlbnRpYWxfaWRfMTIz",
        "rawId": "bmV3X2NyZWRlbnRpYWxfaWRfMTIz",
        "response": {
            "clientDataJSON": "eyJ0eXBlIjoid2ViYXV0aG4uY3JlYXRlIn0",
            "attestationObject": "o2NmbXRkbm9uZQ",
            "transports": transports if transports is not None else ["internal", "hybrid"],
        },
        "type": "public-key",
    }


def assertion_json(credential_id: bytes) -> dict:
    encoded = bytes_to_base64url(credential_id)
    return {
        "id": encoded,
        "rawId": encoded,
        "response": {
            "clientDataJSON": "eyJ0eXBlIjoid2ViYXV0aG4uZ2V0In0",
            "authenticatorData": "SZYN5YgOjGh0NBcPZHZgW4_krrmihjLHmVzzuoMdl2MFAAAAAQ",
            "signature": "MEUCIQ",
        },
        "type": "public-key",
    }


def store_credential(runtime, account, **kwargs):
    return runtime.directory.add_credential(WebAuthnCredentialFactory(account_id=account.id, **kwargs))


class TestBeginRegistration:
    """Tests for WebAuthnCoordinator.begin_registration."""

    def test_returns_options_and_stores_session(self, coordinator, runtime, make_account, clock):
        account = make_account(email="ada@example.com", name="Ada Lovelace")

        ceremony = coordinator.begin_registration(account.id, device_name="iPhone")

        assert ceremony.session_id
        assert ceremony.expires_at == clock() + coordinator.session_ttl
        assert "challenge" in ceremony.options
        assert ceremony.options["rp"]["id"] == "localhost"
        assert ceremony.options["user"]["name"] == "ada@example.com"
        assert ceremony.options["user"]["displayName"] == "Ada Lovelace"
        assert len(runtime.session_store) == 1

    def test_excludes_existing_credentials(self, coordinator, runtime, make_account):
        account = make_account()
        existing = store_credential(runtime, account, credential_id=b"existing_cred")

        ceremony = coordinator.begin_registration(account.id)

        excluded = [c["id"] for c in ceremony.options["excludeCredentials"]]
        assert excluded == [existing.credential_id_b64]

    def test_unknown_account(self, coordinator):
        with pytest.raises(AccountNotFoundError):
            coordinator.begin_registration("acct_missing")


class TestCompleteRegistration:
    """Tests for WebAuthnCoordinator.complete_registration."""

    @patch("apps.passkeys.services.verify_registration_response")
    def test_stores_credential(self, mock_verify, coordinator, runtime, make_account):
        """A verified attestation creates the credential and enables webauthn."""
        account = make_account()
        ceremony = coordinator.begin_registration(account.id, device_name="iPhone 15")
        mock_verify.return_value = registration_verification()

        credential = coordinator.complete_registration(
            ceremony.session_id, attestation_json(), account_id=account.id
        )

        assert credential.account_id == account.id
        assert credential.credential_id == b"new_credential_id_123"
        assert credential.name == "iPhone 15"
        assert credential.transports == ["internal", "hybrid"]
        assert credential.device_type == DeviceType.MULTI_DEVICE
        assert credential.backed_up is True
        assert credential.aaguid == AAGUID
        assert runtime.directory.get_account(account.id).has_webauthn
        assert mock_verify.call_args.kwargs["expected_origin"] == "http://localhost:5173"

    @patch("apps.passkeys.services.verify_registration_response")
    def test_device_name_override(self, mock_verify, coordinator, make_account):
        account = make_account()
        ceremony = coordinator.begin_registration(account.id, device_name="Old")
        mock_verify.return_value = registration_verification()

        credential = coordinator.complete_registration(
            ceremony.session_id, attestation_json(), device_name="New"
        )

        assert credential.name == "New"

    @patch("apps.passkeys.services.verify_registration_response")
    def test_unknown_transports_dropped(self, mock_verify, coordinator, make_account):
        account = make_account()
        ceremony = coordinator.begin_registration(account.id)
        mock_verify.return_value = registration_verification()

        credential = coordinator.complete_registration(
            ceremony.session_id, attestation_json(["internal", "carrier-pigeon"])
        )

        assert credential.transports == ["internal"]

    @patch("apps.passkeys.services.verify_registration_response")
    def test_tampered_challenge_creates_nothing(self, mock_verify, coordinator, runtime, make_account):
        """A failed attestation stores no credential and burns the session."""
        account = make_account()
        ceremony = coordinator.begin_registration(account.id)
        mock_verify.side_effect = InvalidRegistrationResponse("Client data challenge was not expected challenge")

        with pytest.raises(AttestationInvalidError):
            coordinator.complete_registration(ceremony.session_id, attestation_json())

        assert runtime.directory.list_credentials(account.id) == []
        assert not runtime.directory.get_account(account.id).has_webauthn
        assert len(runtime.session_store) == 0

    def test_garbage_attestation_rejected(self, coordinator, runtime, make_account):
        """Real verification of a malformed response fails cleanly."""
        account = make_account()
        ceremony = coordinator.begin_registration(account.id)

        with pytest.raises(AttestationInvalidError):
            coordinator.complete_registration(ceremony.session_id, {"id": "x", "response": {}})

        assert runtime.directory.list_credentials(account.id) == []

    @patch("apps.passkeys.services.verify_registration_response")
    def test_session_is_single_use(self, mock_verify, coordinator, make_account):
        account = make_account()
        ceremony = coordinator.begin_registration(account.id)
        mock_verify.return_value = registration_verification()
        coordinator.complete_registration(ceremony.session_id, attestation_json())

        with pytest.raises(WebAuthnSessionNotFoundError):
            coordinator.complete_registration(ceremony.session_id, attestation_json())

    def test_expired_session(self, coordinator, make_account, clock):
        account = make_account()
        ceremony = coordinator.begin_registration(account.id)

        clock.advance(minutes=11)

        with pytest.raises(WebAuthnSessionNotFoundError):
            coordinator.complete_registration(ceremony.session_id, attestation_json())

    def test_session_for_other_account(self, coordinator, make_account):
        owner = make_account()
        intruder = make_account()
        ceremony = coordinator.begin_registration(owner.id)

        with pytest.raises(WebAuthnSessionMismatchError):
            coordinator.complete_registration(
                ceremony.session_id, attestation_json(), account_id=intruder.id
            )

    @patch("apps.passkeys.services.verify_registration_response")
    def test_authentication_session_not_usable_for_registration(
        self, mock_verify, coordinator, runtime, make_account
    ):
        account = make_account(email="ada@example.com")
        store_credential(runtime, account)
        ceremony = coordinator.begin_authentication("ada@example.com")

        with pytest.raises(WebAuthnSessionNotFoundError):
            coordinator.complete_registration(ceremony.session_id, attestation_json())
        mock_verify.assert_not_called()

    @patch("apps.passkeys.services.verify_registration_response")
    def test_same_account_reregistration_returns_existing(
        self, mock_verify, coordinator, runtime, make_account
    ):
        account = make_account()
        existing = store_credential(runtime, account, credential_id=b"same_credential")
        ceremony = coordinator.begin_registration(account.id)
        mock_verify.return_value = registration_verification(credential_id=b"same_credential")

        credential = coordinator.complete_registration(ceremony.session_id, attestation_json())

        assert credential.id == existing.id
        assert len(runtime.directory.list_credentials(account.id)) == 1

    @patch("apps.passkeys.services.verify_registration_response")
    def test_credential_owned_by_other_account(self, mock_verify, coordinator, runtime, make_account):
        other = make_account()
        store_credential(runtime, other, credential_id=b"taken_credential")
        account = make_account()
        ceremony = coordinator.begin_registration(account.id)
        mock_verify.return_value = registration_verification(credential_id=b"taken_credential")

        with pytest.raises(CredentialConflictError):
            coordinator.complete_registration(ceremony.session_id, attestation_json())

        assert runtime.directory.list_credentials(account.id) == []


class TestBeginAuthentication:
    """Tests for WebAuthnCoordinator.begin_authentication."""

    def test_allow_list_scoped_to_account(self, coordinator, runtime, make_account):
        account = make_account(email="ada@example.com")
        mine = store_credential(runtime, account)
        store_credential(runtime, make_account())

        ceremony = coordinator.begin_authentication("ada@example.com")

        allowed = [c["id"] for c in ceremony.options["allowCredentials"]]
        assert allowed == [mine.credential_id_b64]
        assert ceremony.options["rpId"] == "localhost"

    def test_by_phone(self, coordinator, runtime, make_account):
        account = make_account(phone="+15551234567")
        store_credential(runtime, account)

        ceremony = coordinator.begin_authentication("+15551234567")

        assert ceremony.session_id

    def test_email_lookup_is_case_insensitive(self, coordinator, runtime, make_account):
        account = make_account(email="ada@example.com")
        store_credential(runtime, account)

        assert coordinator.begin_authentication("Ada@Example.com").session_id

    def test_unknown_account(self, coordinator):
        with pytest.raises(AccountNotFoundError):
            coordinator.begin_authentication("nobody@example.com")

    def test_no_credentials_falls_back_to_otp(self, coordinator, make_account):
        make_account(email="ada@example.com")

        with pytest.raises(NoCredentialsRegisteredError) as exc_info:
            coordinator.begin_authentication("ada@example.com")

        assert exc_info.value.fallback_to_otp is True


class TestCompleteAuthentication:
    """Tests for WebAuthnCoordinator.complete_authentication."""

    @patch("apps.passkeys.services.verify_authentication_response")
    def test_success_advances_counter(self, mock_verify, coordinator, runtime, make_account, clock):
        account = make_account(email="ada@example.com")
        credential = store_credential(runtime, account, sign_count=5)
        ceremony = coordinator.begin_authentication("ada@example.com")
        mock_verify.return_value = MagicMock(new_sign_count=6)

        result = coordinator.complete_authentication(
            ceremony.session_id, assertion_json(credential.credential_id)
        )

        assert result.account.id == account.id
        assert result.credential.sign_count == 6
        assert result.credential.last_used_at == clock()
        stored = runtime.directory.get_credential(credential.id)
        assert stored.sign_count == 6
        assert mock_verify.call_args.kwargs["credential_current_sign_count"] == 5

    @patch("apps.passkeys.services.verify_authentication_response")
    def test_counter_regression_rejected(self, mock_verify, coordinator, runtime, make_account):
        """A non-increasing counter fails and leaves the stored value alone."""
        account = make_account(email="ada@example.com")
        credential = store_credential(runtime, account, sign_count=10)
        ceremony = coordinator.begin_authentication("ada@example.com")
        mock_verify.return_value = MagicMock(new_sign_count=10)

        with pytest.raises(CounterRegressionError) as exc_info:
            coordinator.complete_authentication(
                ceremony.session_id, assertion_json(credential.credential_id)
            )

        assert exc_info.value.fallback_to_otp is True
        assert runtime.directory.get_credential(credential.id).sign_count == 10

    @patch("apps.passkeys.services.verify_authentication_response")
    def test_zero_counter_authenticator_accepted(self, mock_verify, coordinator, runtime, make_account):
        account = make_account(email="ada@example.com")
        credential = store_credential(runtime, account, sign_count=0)
        ceremony = coordinator.begin_authentication("ada@example.com")
        mock_verify.return_value = MagicMock(new_sign_count=0)

        result = coordinator.complete_authentication(
            ceremony.session_id, assertion_json(credential.credential_id)
        )

        assert result.credential.sign_count == 0

    @patch("apps.passkeys.services.verify_authentication_response")
    def test_failed_assertion(self, mock_verify, coordinator, runtime, make_account):
        account = make_account(email="ada@example.com")
        credential = store_credential(runtime, account, sign_count=3)
        ceremony = coordinator.begin_authentication("ada@example.com")
        mock_verify.side_effect = InvalidAuthenticationResponse("Could not verify authentication signature")

        with pytest.raises(AssertionInvalidError) as exc_info:
            coordinator.complete_authentication(
                ceremony.session_id, assertion_json(credential.credential_id)
            )

        assert exc_info.value.fallback_to_otp is True
        assert runtime.directory.get_credential(credential.id).sign_count == 3

    @patch("apps.passkeys.services.verify_authentication_response")
    def test_session_consumed_even_on_failure(self, mock_verify, coordinator, runtime, make_account):
        account = make_account(email="ada@example.com")
        credential = store_credential(runtime, account)
        ceremony = coordinator.begin_authentication("ada@example.com")
        mock_verify.side_effect = InvalidAuthenticationResponse("bad signature")
        with pytest.raises(AssertionInvalidError):
            coordinator.complete_authentication(
                ceremony.session_id, assertion_json(credential.credential_id)
            )

        mock_verify.side_effect = None
        mock_verify.return_value = MagicMock(new_sign_count=1)
        with pytest.raises(WebAuthnSessionNotFoundError):
            coordinator.complete_authentication(
                ceremony.session_id, assertion_json(credential.credential_id)
            )

    def test_unknown_credential(self, coordinator, runtime, make_account):
        account = make_account(email="ada@example.com")
        store_credential(runtime, account)
        ceremony = coordinator.begin_authentication("ada@example.com")

        with pytest.raises(UnknownCredentialError):
            coordinator.complete_authentication(ceremony.session_id, assertion_json(b"unknown"))

    def test_missing_credential_id(self, coordinator, runtime, make_account):
        account = make_account(email="ada@example.com")
        store_credential(runtime, account)
        ceremony = coordinator.begin_authentication("ada@example.com")

        with pytest.raises(AssertionInvalidError):
            coordinator.complete_authentication(ceremony.session_id, {"response": {}})

    @patch("apps.passkeys.services.verify_authentication_response")
    def test_credential_of_other_account(self, mock_verify, coordinator, runtime, make_account):
        account = make_account(email="ada@example.com")
        store_credential(runtime, account)
        other_credential = store_credential(runtime, make_account())
        ceremony = coordinator.begin_authentication("ada@example.com")

        with pytest.raises(CredentialOwnershipError):
            coordinator.complete_authentication(
                ceremony.session_id, assertion_json(other_credential.credential_id)
            )
        mock_verify.assert_not_called()


class TestCredentialManagement:
    def test_list_credentials_ordered_by_creation(self, coordinator, runtime, make_account, clock):
        account = make_account()
        first = store_credential(runtime, account, created_at=clock())
        second = store_credential(runtime, account, created_at=clock.advance(minutes=5))

        assert [c.id for c in coordinator.list_credentials(account.id)] == [first.id, second.id]

    def test_remove_last_credential_drops_webauthn_method(self, coordinator, runtime, make_account, clock):
        account = make_account()
        credential = store_credential(runtime, account)
        runtime.directory.add_auth_method(account.id, AuthMethod.WEBAUTHN, now=clock())

        coordinator.remove_credential(account.id, credential.id)

        assert coordinator.list_credentials(account.id) == []
        assert not runtime.directory.get_account(account.id).has_webauthn

    def test_remove_one_of_two_keeps_webauthn_method(self, coordinator, runtime, make_account, clock):
        account = make_account()
        credential = store_credential(runtime, account)
        store_credential(runtime, account)
        runtime.directory.add_auth_method(account.id, AuthMethod.WEBAUTHN, now=clock())

        coordinator.remove_credential(account.id, credential.id)

        assert runtime.directory.get_account(account.id).has_webauthn

    def test_remove_other_accounts_credential(self, coordinator, runtime, make_account):
        credential = store_credential(runtime, make_account())

        with pytest.raises(CredentialOwnershipError):
            coordinator.remove_credential(make_account().id, credential.id)

        assert runtime.directory.get_credential(credential.id) is not None

    def test_remove_unknown_credential(self, coordinator, make_account):
        with pytest.raises(CredentialNotFoundError):
            coordinator.remove_credential(make_account().id, "cred_missing")


class TestSweepExpiredSessions:
    def test_removes_only_expired(self, coordinator, runtime, make_account, clock):
        account = make_account()
        coordinator.begin_registration(account.id)
        clock.advance(minutes=6)
        fresh = coordinator.begin_registration(account.id)
        clock.advance(minutes=5)

        assert coordinator.sweep_expired_sessions() == 1
        assert len(runtime.session_store) == 1
        assert runtime.session_store.take(fresh.session_id, CeremonyType.REGISTRATION) is not None

    def test_runs_as_maintenance_task(self, runtime, make_account, clock):
        runtime.coordinator.begin_registration(make_account().id)
        clock.advance(minutes=11)

        results = runtime.run_maintenance()

        assert results["webauthn-session-sweep"] == 1
        assert len(runtime.session_store) == 0
