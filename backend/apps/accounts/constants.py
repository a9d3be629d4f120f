"""
Constants for the accounts app.
"""

from enum import StrEnum


class AuthMethod(StrEnum):
    """
    How an account can authenticate (and how a session token was obtained).
    """

    EMAIL = "email"
    SMS = "sms"
    WEBAUTHN = "webauthn"


NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
