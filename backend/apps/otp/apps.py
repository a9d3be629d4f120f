"""
OTP app configuration.
"""

from django.apps import AppConfig


class OtpConfig(AppConfig):
    """Configuration for the OTP app."""

    name = "apps.otp"
    verbose_name = "One-time passcodes"
