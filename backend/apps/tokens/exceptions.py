"""
Exceptions for the tokens app.

Both surface as 401; callers that want to attempt a refresh can branch on
``TokenExpiredError``.
"""

from apps.core.exceptions import UnauthorizedError


class TokenInvalidError(UnauthorizedError):
    """Token is malformed or its signature does not verify."""

    code = "token_invalid"
    default_message = "Invalid session token"


class TokenExpiredError(UnauthorizedError):
    """Token signature is valid but its expiry has passed."""

    code = "token_expired"
    default_message = "Session token has expired"
