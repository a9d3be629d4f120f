"""
Test settings.

Deterministic secrets, log-sink delivery and no background threads.
"""

from .base import *  # noqa: F403

DEBUG = False

SECRET_KEY = "test-secret-key"
TOKEN_SIGNING_SECRET = "test-token-signing-secret-with-enough-entropy"

OTP_DELIVERY_PROVIDER = "console"
OTP_LENGTH = 6
OTP_CHARSET = "numeric"

WEBAUTHN_RP_ID = "localhost"
WEBAUTHN_RP_NAME = "ID Wallet"
WEBAUTHN_ORIGIN = "http://localhost:5173"

BACKGROUND_TASKS_ENABLED = False
