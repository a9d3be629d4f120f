"""
Custom type definitions for the application.

These types help mypy understand custom attributes added by authentication.
"""

from typing import TYPE_CHECKING

from django.http import HttpRequest

if TYPE_CHECKING:
    from apps.tokens.services import TokenClaims


class AuthenticatedHttpRequest(HttpRequest):
    """
    HttpRequest on an endpoint protected by ``BearerAuth``.

    django-ninja stores the authenticator's return value in ``request.auth``.
    """

    auth: "TokenClaims"
