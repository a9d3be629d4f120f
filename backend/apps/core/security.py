"""
Core security - authentication classes for API.
"""

from typing import TYPE_CHECKING

from django.http import HttpRequest
from ninja.security import HttpBearer

if TYPE_CHECKING:
    from apps.tokens.services import TokenClaims


class BearerAuth(HttpBearer):
    """
    Bearer session token authentication for API endpoints.

    Validates the signed session token issued by the token issuer and
    exposes its claims as ``request.auth``. Invalid or expired tokens raise
    ``TokenInvalidError`` / ``TokenExpiredError``, which the API exception
    handler renders as 401 with a stable error code.
    """

    def authenticate(self, request: HttpRequest, token: str) -> "TokenClaims | None":
        if not token:
            return None

        from apps.accounts.runtime import get_runtime

        return get_runtime().orchestrator.validate_token(token)


def get_bearer_token(request: HttpRequest) -> str:
    """Return the raw bearer token from the Authorization header ('' if absent)."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()
