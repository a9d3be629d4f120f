"""
Core app configuration.
"""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Shared infrastructure: logging, throttling, locking, background tasks."""

    name = "apps.core"
    verbose_name = "Core"
