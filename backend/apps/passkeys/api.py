"""
Passkey (WebAuthn) API endpoints.

Registration requires a session token; authentication is the sign-in path
and returns one. Authentication failures carry ``fallback_to_otp`` so the
client can switch to a one-time passcode.
"""

from django.http import HttpRequest
from ninja import Router

from apps.accounts.runtime import get_runtime
from apps.accounts.schemas import AccountSummary
from apps.core.schemas import ErrorResponse, SuccessResponse
from apps.core.security import BearerAuth
from apps.core.types import AuthenticatedHttpRequest
from apps.passkeys.schemas import (
    AuthenticationOptionsRequest,
    AuthenticationVerifyRequest,
    AuthenticationVerifyResponse,
    CeremonyOptionsResponse,
    CredentialListResponse,
    CredentialSchema,
    RegistrationOptionsRequest,
    RegistrationVerifyRequest,
    RegistrationVerifyResponse,
)

router = Router(tags=["webauthn"])
bearer_auth = BearerAuth()


# --- Registration ---


@router.post(
    "/register",
    response={200: CeremonyOptionsResponse, 401: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="beginWebAuthnRegistration",
    summary="Get passkey registration options",
)
def begin_registration(
    request: AuthenticatedHttpRequest,
    payload: RegistrationOptionsRequest,
) -> CeremonyOptionsResponse:
    """
    Generate WebAuthn registration options for the signed-in account.

    Already registered authenticators are excluded.
    """
    ceremony = get_runtime().orchestrator.begin_webauthn_registration(
        request.auth.account_id,
        device_name=payload.device_name,
    )
    return CeremonyOptionsResponse(session_id=ceremony.session_id, options=ceremony.options)


@router.post(
    "/verify-registration",
    response={
        200: RegistrationVerifyResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="completeWebAuthnRegistration",
    summary="Verify passkey registration",
)
def complete_registration(
    request: AuthenticatedHttpRequest,
    payload: RegistrationVerifyRequest,
) -> RegistrationVerifyResponse:
    """Verify the attestation and store the new passkey."""
    credential = get_runtime().orchestrator.complete_webauthn_registration(
        request.auth.account_id,
        payload.session_id,
        payload.credential,
        device_name=payload.device_name,
    )
    return RegistrationVerifyResponse(credential_id=credential.credential_id_b64)


# --- Authentication ---


@router.post(
    "/authenticate",
    response={200: CeremonyOptionsResponse, 400: ErrorResponse, 404: ErrorResponse},
    operation_id="beginWebAuthnAuthentication",
    summary="Get passkey authentication options",
)
def begin_authentication(
    request: HttpRequest,
    payload: AuthenticationOptionsRequest,
) -> CeremonyOptionsResponse:
    """
    Generate WebAuthn authentication options scoped to the account's passkeys.

    An account without passkeys gets ``webauthn_no_credentials`` with
    ``fallback_to_otp=true``.
    """
    ceremony = get_runtime().orchestrator.begin_webauthn_authentication(
        email=payload.email,
        phone=payload.phone,
    )
    return CeremonyOptionsResponse(session_id=ceremony.session_id, options=ceremony.options)


@router.post(
    "/verify-authentication",
    response={
        200: AuthenticationVerifyResponse,
        400: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
    },
    operation_id="completeWebAuthnAuthentication",
    summary="Verify passkey authentication",
)
def complete_authentication(
    request: HttpRequest,
    payload: AuthenticationVerifyRequest,
) -> AuthenticationVerifyResponse:
    """Verify the assertion and return a session token."""
    result = get_runtime().orchestrator.complete_webauthn_authentication(
        payload.session_id,
        payload.credential,
    )
    return AuthenticationVerifyResponse(
        token=result.token,
        user=AccountSummary.from_account(result.account),
    )


# --- Management ---


@router.get(
    "/credentials",
    response={200: CredentialListResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="listWebAuthnCredentials",
    summary="List passkeys",
)
def list_credentials(request: AuthenticatedHttpRequest) -> CredentialListResponse:
    """List the signed-in account's passkeys."""
    credentials = get_runtime().orchestrator.list_credentials(request.auth.account_id)
    return CredentialListResponse(
        credentials=[CredentialSchema.from_credential(c) for c in credentials]
    )


@router.delete(
    "/credentials/{credential_id}",
    response={200: SuccessResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="deleteWebAuthnCredential",
    summary="Delete a passkey",
)
def delete_credential(request: AuthenticatedHttpRequest, credential_id: str) -> SuccessResponse:
    """Delete one of the signed-in account's passkeys by record ID."""
    get_runtime().orchestrator.remove_credential(request.auth.account_id, credential_id)
    return SuccessResponse(message="Credential deleted")
