"""
Passkeys app configuration.
"""

from django.apps import AppConfig


class PasskeysConfig(AppConfig):
    """Configuration for WebAuthn ceremonies."""

    name = "apps.passkeys"
    verbose_name = "Passkeys"
