"""
Tokens app configuration.
"""

from django.apps import AppConfig


class TokensConfig(AppConfig):
    """Configuration for session token issuance."""

    name = "apps.tokens"
    verbose_name = "Session tokens"
