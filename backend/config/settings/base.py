"""
Base Django settings for the ID Wallet authentication backend.

Shared configuration for all environments.
"""

from pathlib import Path

from django.core.exceptions import ImproperlyConfigured
from pydantic_settings import BaseSettings

from apps.core.logging import configure_logging


class Settings(BaseSettings):
    """Environment-based configuration using pydantic-settings."""

    SECRET_KEY: str = "django-insecure-change-me-in-production"
    DEBUG: bool = False
    ALLOWED_HOSTS: list[str] = []

    APP_NAME: str = "ID Wallet"

    # One-time passcodes
    OTP_LENGTH: int = 6
    OTP_CHARSET: str = "numeric"
    OTP_EXPIRY_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 3
    OTP_RATE_LIMIT_MAX_REQUESTS: int = 5
    OTP_RATE_LIMIT_WINDOW_SECONDS: int = 3600
    OTP_RETENTION_HOURS: int = 24
    OTP_DELIVERY_PROVIDER: str = "console"

    # AWS End User Messaging (SMS)
    AWS_SMS_REGION: str = "us-east-1"
    AWS_SMS_ORIGINATION_IDENTITY: str = ""

    # Resend (email)
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = ""

    # WebAuthn relying party
    WEBAUTHN_RP_ID: str = "localhost"
    WEBAUTHN_RP_NAME: str = "ID Wallet"
    WEBAUTHN_ORIGIN: str = "http://localhost:5173"
    WEBAUTHN_SESSION_TTL_MINUTES: int = 10
    WEBAUTHN_TIMEOUT_MS: int = 60000
    WEBAUTHN_SESSION_SWEEP_INTERVAL_SECONDS: int = 900

    # Session tokens
    TOKEN_SIGNING_SECRET: str = "insecure-dev-token-secret-change-me"
    TOKEN_ALGORITHM: str = "HS256"
    TOKEN_EXPIRY_MINUTES: int = 1440
    TOKEN_REFRESH_THRESHOLD_MINUTES: int = 60

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON_FORMAT: bool = True

    BACKGROUND_TASKS_ENABLED: bool = True

    model_config = {"env_file": ".env", "extra": "ignore"}


def check_production_settings(config: Settings) -> None:
    """Reject development defaults that must never reach a deployed environment."""
    if config.TOKEN_SIGNING_SECRET == Settings.model_fields["TOKEN_SIGNING_SECRET"].default:
        raise ImproperlyConfigured("TOKEN_SIGNING_SECRET must be set in production")
    if config.OTP_DELIVERY_PROVIDER == "console":
        raise ImproperlyConfigured(
            "OTP_DELIVERY_PROVIDER must name a real provider in production, not \"console\""
        )


settings = Settings()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = settings.SECRET_KEY

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = settings.DEBUG

ALLOWED_HOSTS = settings.ALLOWED_HOSTS

# Application definition
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    # Local apps
    "apps.core",
    "apps.accounts",
    "apps.otp",
    "apps.passkeys",
    "apps.tokens",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "apps.core.middleware.RequestContextMiddleware",
]

ROOT_URLCONF = "config.urls"

WSGI_APPLICATION = "config.wsgi.application"

# All authentication state lives in the process-wide runtime container
# (apps.accounts.runtime); no relational database is configured.
DATABASES: dict = {}

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "static/"

APP_NAME = settings.APP_NAME

OTP_LENGTH = settings.OTP_LENGTH
OTP_CHARSET = settings.OTP_CHARSET
OTP_EXPIRY_MINUTES = settings.OTP_EXPIRY_MINUTES
OTP_MAX_ATTEMPTS = settings.OTP_MAX_ATTEMPTS
OTP_RATE_LIMIT_MAX_REQUESTS = settings.OTP_RATE_LIMIT_MAX_REQUESTS
OTP_RATE_LIMIT_WINDOW_SECONDS = settings.OTP_RATE_LIMIT_WINDOW_SECONDS
OTP_RETENTION_HOURS = settings.OTP_RETENTION_HOURS
OTP_DELIVERY_PROVIDER = settings.OTP_DELIVERY_PROVIDER

AWS_SMS_REGION = settings.AWS_SMS_REGION
AWS_SMS_ORIGINATION_IDENTITY = settings.AWS_SMS_ORIGINATION_IDENTITY

RESEND_API_KEY = settings.RESEND_API_KEY
RESEND_FROM_EMAIL = settings.RESEND_FROM_EMAIL

WEBAUTHN_RP_ID = settings.WEBAUTHN_RP_ID
WEBAUTHN_RP_NAME = settings.WEBAUTHN_RP_NAME
WEBAUTHN_ORIGIN = settings.WEBAUTHN_ORIGIN
WEBAUTHN_SESSION_TTL_MINUTES = settings.WEBAUTHN_SESSION_TTL_MINUTES
WEBAUTHN_TIMEOUT_MS = settings.WEBAUTHN_TIMEOUT_MS
WEBAUTHN_SESSION_SWEEP_INTERVAL_SECONDS = settings.WEBAUTHN_SESSION_SWEEP_INTERVAL_SECONDS

TOKEN_SIGNING_SECRET = settings.TOKEN_SIGNING_SECRET
TOKEN_ALGORITHM = settings.TOKEN_ALGORITHM
TOKEN_EXPIRY_MINUTES = settings.TOKEN_EXPIRY_MINUTES
TOKEN_REFRESH_THRESHOLD_MINUTES = settings.TOKEN_REFRESH_THRESHOLD_MINUTES

BACKGROUND_TASKS_ENABLED = settings.BACKGROUND_TASKS_ENABLED

configure_logging(json_format=settings.LOG_JSON_FORMAT, log_level=settings.LOG_LEVEL)
