"""
Accounts app configuration.
"""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Identity directory, DID bootstrap and auth orchestration."""

    name = "apps.accounts"
    verbose_name = "Accounts"
