"""
Django Ninja API configuration.
"""

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from ninja import NinjaAPI
from ninja.errors import AuthenticationError, HttpError, ValidationError

from apps.accounts.api import router as auth_router
from apps.core.exceptions import AuthError, InternalError
from apps.core.logging import get_logger
from apps.passkeys.api import router as webauthn_router

logger = get_logger(__name__)

api = NinjaAPI(
    title="ID Wallet Auth API",
    version="1.0.0",
    description="Password-less authentication: one-time passcodes, WebAuthn passkeys and session tokens.",
    openapi_extra={
        "info": {
            "contact": {"name": "API Support"},
        },
        "tags": [
            {
                "name": "auth",
                "description": "One-time passcode sign-in and session token management",
            },
            {
                "name": "webauthn",
                "description": "Passkey registration, authentication and management",
            },
            {
                "name": "health",
                "description": "Service health and readiness checks",
            },
        ],
        "components": {
            "securitySchemes": {
                "bearerAuth": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "JWT",
                    "description": "Session token from /auth/verify-otp or /webauthn/verify-authentication. Include as: Authorization: Bearer <token>",
                }
            }
        },
    },
)

# Register routers
api.add_router("/auth", auth_router)
api.add_router("/webauthn", webauthn_router)


@api.exception_handler(AuthError)
def handle_auth_error(request: HttpRequest, exc: AuthError) -> HttpResponse:
    """Render the error taxonomy as ErrorResponse with its status code."""
    if exc.status_code >= 500:
        logger.error("auth_error", code=exc.code, error=exc.message)
    return api.create_response(request, exc.to_dict(), status=exc.status_code)


@api.exception_handler(ValidationError)
def handle_validation_error(request: HttpRequest, exc: ValidationError) -> HttpResponse:
    return api.create_response(
        request,
        {"code": "validation_error", "detail": "Invalid request data", "errors": exc.errors},
        status=422,
    )


@api.exception_handler(AuthenticationError)
def handle_authentication_error(request: HttpRequest, exc: AuthenticationError) -> HttpResponse:
    return api.create_response(
        request,
        {"code": "unauthorized", "detail": "Authentication required"},
        status=401,
    )


@api.exception_handler(HttpError)
def handle_http_error(request: HttpRequest, exc: HttpError) -> HttpResponse:
    return api.create_response(
        request,
        {"code": "http_error", "detail": str(exc)},
        status=exc.status_code,
    )


@api.exception_handler(Exception)
def handle_unexpected_error(request: HttpRequest, exc: Exception) -> HttpResponse:
    """Log the traceback; expose the exception text only in DEBUG."""
    logger.exception("unhandled_exception", path=request.path)
    error = InternalError(f"Internal server error: {exc}" if settings.DEBUG else None)
    return api.create_response(request, error.to_dict(), status=error.status_code)


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
