"""
Auth API endpoints.

Handles the one-time passcode flow and session token management:
- Request / verify OTP (registration, login, recovery)
- Refresh / validate session tokens
- Logout (stateless acknowledgement)
"""

from django.http import HttpRequest
from ninja import Router

from apps.accounts.runtime import get_runtime
from apps.accounts.schemas import (
    AccountSummary,
    AuthSuccessResponse,
    RefreshTokenResponse,
    RequestOTPRequest,
    RequestOTPResponse,
    TokenClaimsSchema,
    ValidateTokenResponse,
    VerifyOTPRequest,
)
from apps.core.logging import get_logger
from apps.core.schemas import ErrorResponse, SuccessResponse
from apps.core.security import BearerAuth, get_bearer_token
from apps.core.types import AuthenticatedHttpRequest
from apps.core.utils import get_client_ip
from apps.otp.constants import DeliveryChannel

logger = get_logger(__name__)

router = Router(tags=["auth"])
bearer_auth = BearerAuth()


@router.post(
    "/request-otp",
    response={
        200: RequestOTPResponse,
        400: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
        429: ErrorResponse,
    },
    operation_id="requestOTP",
    summary="Request a one-time passcode",
)
def request_otp(request: HttpRequest, payload: RequestOTPRequest) -> RequestOTPResponse:
    """
    Send a one-time passcode to an email address or phone number.

    Login and recovery require an existing account; registration requires
    that none exists. Rate limited per recipient.
    """
    challenge = get_runtime().orchestrator.request_code(
        purpose=payload.purpose,
        email=payload.email,
        phone=payload.phone,
    )
    logger.info("otp_requested", otp_id=challenge.id, client_ip=get_client_ip(request))

    target = "email" if challenge.channel == DeliveryChannel.EMAIL else "phone"
    return RequestOTPResponse(
        message=f"OTP sent to {target}",
        otp_id=challenge.id,
        expires_at=challenge.expires_at,
        channel=challenge.channel,
    )


@router.post(
    "/verify-otp",
    response={
        200: AuthSuccessResponse,
        400: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
    },
    operation_id="verifyOTP",
    summary="Verify a one-time passcode",
)
def verify_otp(request: HttpRequest, payload: VerifyOTPRequest) -> AuthSuccessResponse:
    """
    Verify a passcode and return a session token.

    With ``register_user`` set and no existing account, a new account is
    created (``name`` required). Failures carry ``action`` (``retry`` or
    ``resend_code``) so the client knows what to offer next.
    """
    result = get_runtime().orchestrator.submit_code(
        payload.otp_id,
        payload.code,
        register_user=payload.register_user,
        name=payload.name,
        user_agent=request.headers.get("User-Agent"),
    )
    return AuthSuccessResponse(
        token=result.token,
        user=AccountSummary.from_account(result.account),
        is_new_account=result.is_new_account,
        webauthn_capable=result.webauthn_capable,
    )


@router.post(
    "/refresh-token",
    response={200: RefreshTokenResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="refreshToken",
    summary="Refresh session token",
)
def refresh_token(request: AuthenticatedHttpRequest) -> RefreshTokenResponse:
    """
    Re-issue the session token if it expires within the refresh threshold.

    A token that is still fresh is returned unchanged with ``refreshed=false``.
    """
    presented = get_bearer_token(request)
    token, refreshed = get_runtime().orchestrator.refresh_token(presented)
    return RefreshTokenResponse(token=token, refreshed=refreshed)


@router.post(
    "/validate-token",
    response={200: ValidateTokenResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="validateToken",
    summary="Validate session token",
)
def validate_token(request: AuthenticatedHttpRequest) -> ValidateTokenResponse:
    """Return the claims of a valid session token; 401 otherwise."""
    return ValidateTokenResponse(claims=TokenClaimsSchema(**request.auth.to_dict()))


@router.post(
    "/logout",
    response={200: SuccessResponse},
    operation_id="logout",
    summary="Log out",
)
def logout(request: HttpRequest) -> SuccessResponse:
    """
    Acknowledge logout.

    Session tokens are stateless; the client discards its token.
    """
    return SuccessResponse(message="Logged out successfully")
