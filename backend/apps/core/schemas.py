"""
Core schemas - shared Pydantic models for API responses.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str = Field(..., description="Stable machine-readable error code")
    detail: str = Field(..., description="Human-readable error message")
    action: str | None = Field(
        default=None,
        description="Suggested client action: 'resend_code' or 'retry'",
    )
    fallback_to_otp: bool = Field(
        default=False,
        description="True when the client should fall back to one-time passcode login",
    )
    attempts_left: int | None = Field(default=None, description="Remaining OTP attempts")
    retry_after: int | None = Field(default=None, description="Seconds until retrying is allowed")

    model_config = {
        "json_schema_extra": {
            "example": {
                "code": "otp_invalid",
                "detail": "Invalid verification code. 2 attempts remaining.",
                "action": "retry",
                "fallback_to_otp": False,
                "attempts_left": 2,
            }
        }
    }


class SuccessResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True
    message: str
