"""
Pydantic schemas for auth API endpoints.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from apps.otp.constants import DeliveryChannel, OTPPurpose

if TYPE_CHECKING:
    from apps.accounts.models import Account


class AccountSummary(BaseModel):
    """Public view of an account."""

    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    did: str | None = None
    auth_methods: list[str] = Field(default_factory=list)

    @classmethod
    def from_account(cls, account: "Account") -> "AccountSummary":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            phone=account.phone,
            did=account.did,
            auth_methods=sorted(str(m) for m in account.auth_methods),
        )


# --- OTP ---


class RequestOTPRequest(BaseModel):
    """Request a one-time passcode by email or SMS (exactly one)."""

    email: str | None = Field(default=None, description="Email address", examples=["ada@example.com"])
    phone: str | None = Field(
        default=None,
        description="Phone number in E.164 format",
        examples=["+15551234567"],
    )
    purpose: OTPPurpose = Field(description="registration, login or recovery")


class RequestOTPResponse(BaseModel):
    success: bool = True
    message: str
    otp_id: str = Field(description="Challenge ID to submit with the code")
    expires_at: datetime
    channel: DeliveryChannel


class VerifyOTPRequest(BaseModel):
    """Submit a one-time passcode."""

    otp_id: str = Field(min_length=1, description="Challenge ID from request-otp")
    code: str = Field(min_length=1, max_length=16, description="The code that was delivered")
    register_user: bool = Field(
        default=False,
        description="Create an account if none exists for the recipient",
    )
    name: str | None = Field(
        default=None,
        max_length=100,
        description="Display name, required when registering",
    )


class AuthSuccessResponse(BaseModel):
    success: bool = True
    message: str = "Authentication successful"
    token: str = Field(description="Session token (JWT)")
    user: AccountSummary
    is_new_account: bool = False
    webauthn_capable: bool = False


# --- Tokens ---


class RefreshTokenResponse(BaseModel):
    success: bool = True
    token: str
    refreshed: bool = Field(description="False if the presented token was still fresh")


class TokenClaimsSchema(BaseModel):
    account_id: str
    did: str | None = None
    email: str | None = None
    phone: str | None = None
    name: str | None = None
    auth_method: str
    issued_at: datetime
    expires_at: datetime


class ValidateTokenResponse(BaseModel):
    valid: bool = True
    claims: TokenClaimsSchema
