"""
Local development settings.

Extends base settings with development-friendly defaults.
"""

from apps.core.logging import configure_logging

from .base import *  # noqa: F403
from .base import settings

DEBUG = True
ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Codes are always written to the log sink locally
OTP_DELIVERY_PROVIDER = "console"

configure_logging(json_format=False, log_level=settings.LOG_LEVEL)
