"""
Pydantic schemas for passkey API endpoints.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from apps.accounts.schemas import AccountSummary

if TYPE_CHECKING:
    from apps.passkeys.models import WebAuthnCredential


# --- Registration ---


class RegistrationOptionsRequest(BaseModel):
    """Request for passkey registration options. The account comes from the token."""

    device_name: str | None = Field(
        default=None,
        max_length=100,
        description="User-friendly name for the passkey (e.g., 'iPhone 15')",
    )


class CeremonyOptionsResponse(BaseModel):
    """Options for navigator.credentials.create() / .get()."""

    session_id: str = Field(description="Session ID to include in the verification request")
    options: dict = Field(description="WebAuthn options passed through to the browser")


class RegistrationVerifyRequest(BaseModel):
    session_id: str = Field(description="Session ID from register")
    credential: dict = Field(description="Credential response from navigator.credentials.create()")
    device_name: str | None = Field(default=None, max_length=100)


class RegistrationVerifyResponse(BaseModel):
    success: bool = True
    message: str = "Biometric authentication registered"
    credential_id: str = Field(description="Base64URL credential ID")


# --- Authentication ---


class AuthenticationOptionsRequest(BaseModel):
    """Start passkey sign-in for an email or phone (exactly one)."""

    email: str | None = None
    phone: str | None = None


class AuthenticationVerifyRequest(BaseModel):
    session_id: str = Field(description="Session ID from authenticate")
    credential: dict = Field(description="Credential response from navigator.credentials.get()")


class AuthenticationVerifyResponse(BaseModel):
    success: bool = True
    message: str = "Authentication successful"
    token: str = Field(description="Session token (JWT)")
    user: AccountSummary


# --- Management ---


class CredentialSchema(BaseModel):
    id: str = Field(description="Credential record ID")
    credential_id: str = Field(description="Base64URL credential ID")
    name: str
    device_type: str
    backed_up: bool
    transports: list[str]
    created_at: datetime
    last_used_at: datetime | None = None

    @classmethod
    def from_credential(cls, credential: "WebAuthnCredential") -> "CredentialSchema":
        return cls(
            id=credential.id,
            credential_id=credential.credential_id_b64,
            name=credential.name,
            device_type=str(credential.device_type),
            backed_up=credential.backed_up,
            transports=list(credential.transports),
            created_at=credential.created_at,
            last_used_at=credential.last_used_at,
        )


class CredentialListResponse(BaseModel):
    credentials: list[CredentialSchema]
