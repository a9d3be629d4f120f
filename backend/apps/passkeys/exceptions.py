"""
Exceptions for the passkeys app.

Failures during authentication carry ``fallback_to_otp`` so the client can
degrade to a one-time passcode instead of dead-ending.
"""

from apps.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    VerificationFailedError,
)


class WebAuthnSessionNotFoundError(NotFoundError):
    code = "webauthn_session_not_found"
    default_message = "WebAuthn session not found or expired"


class WebAuthnSessionMismatchError(ForbiddenError):
    """Registration session was started for a different account."""

    code = "webauthn_session_mismatch"
    default_message = "Session does not belong to this account"


class NoCredentialsRegisteredError(VerificationFailedError):
    code = "webauthn_no_credentials"
    default_message = "No biometric credentials registered. Please use a verification code."
    fallback_to_otp = True


class UnknownCredentialError(VerificationFailedError):
    code = "webauthn_unknown_credential"
    default_message = "Credential not recognized. Please use a verification code."
    fallback_to_otp = True


class CredentialOwnershipError(ForbiddenError):
    code = "webauthn_credential_ownership"
    default_message = "Credential does not belong to this account"


class CredentialNotFoundError(NotFoundError):
    code = "webauthn_credential_not_found"
    default_message = "Credential not found"


class CredentialConflictError(ConflictError):
    code = "webauthn_credential_exists"
    default_message = "This passkey is already registered to another account"


class AttestationInvalidError(VerificationFailedError):
    code = "webauthn_attestation_invalid"
    default_message = "Biometric registration could not be verified"


class AssertionInvalidError(VerificationFailedError):
    code = "webauthn_assertion_invalid"
    default_message = "Biometric authentication failed. Please use a verification code."
    fallback_to_otp = True


class CounterRegressionError(AssertionInvalidError):
    """
    The authenticator reported a signature counter that did not increase.

    Indicates a possibly cloned authenticator; the stored counter is left
    unchanged.
    """

    code = "webauthn_counter_regression"
