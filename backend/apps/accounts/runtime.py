"""
Process-wide runtime container for the authentication engine.

OTP records and the account directory live in one ``AuthRuntime`` built
from settings, together with the limiter and session store that keep
rate-limit windows and WebAuthn sessions in Django's cache. Nothing here
starts at import: ``config/wsgi.py`` calls ``start_background_tasks()`` and
``reset_runtime()`` tears everything down.

Usage::

    from apps.accounts.runtime import get_runtime

    challenge = get_runtime().orchestrator.request_code(email=..., purpose=...)
"""

import threading
from collections.abc import Callable
from datetime import datetime

from django.conf import settings
from django.utils import timezone

from apps.accounts.did import KeyDIDGenerator
from apps.accounts.services import AuthOrchestrator
from apps.accounts.stores import InMemoryAccountDirectory
from apps.core.logging import get_logger
from apps.core.tasks import PeriodicTask
from apps.core.throttling import RateLimiter
from apps.otp.delivery import DeliveryDispatcher
from apps.otp.services import OTPLedger
from apps.otp.stores import InMemoryOTPStore
from apps.passkeys.services import WebAuthnCoordinator
from apps.passkeys.stores import CacheWebAuthnSessionStore
from apps.tokens.services import TokenIssuer

logger = get_logger(__name__)

OTP_PURGE_INTERVAL_SECONDS = 3600


class AuthRuntime:
    """Builds and owns every component of the authentication engine."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = timezone.now,
        dispatcher: DeliveryDispatcher | None = None,
    ) -> None:
        self.clock = clock

        self.directory = InMemoryAccountDirectory()
        self.otp_store = InMemoryOTPStore()
        self.session_store = CacheWebAuthnSessionStore()

        self.rate_limiter = RateLimiter(
            "otp_send",
            max_requests=settings.OTP_RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
            clock=clock,
        )
        self.dispatcher = dispatcher or DeliveryDispatcher.from_settings()
        self.ledger = OTPLedger(
            store=self.otp_store,
            rate_limiter=self.rate_limiter,
            dispatcher=self.dispatcher,
            code_length=settings.OTP_LENGTH,
            charset=settings.OTP_CHARSET,
            expiry_minutes=settings.OTP_EXPIRY_MINUTES,
            max_attempts=settings.OTP_MAX_ATTEMPTS,
            retention_hours=settings.OTP_RETENTION_HOURS,
            clock=clock,
        )
        self.coordinator = WebAuthnCoordinator(
            directory=self.directory,
            sessions=self.session_store,
            rp_id=settings.WEBAUTHN_RP_ID,
            rp_name=settings.WEBAUTHN_RP_NAME,
            origin=settings.WEBAUTHN_ORIGIN,
            session_ttl_minutes=settings.WEBAUTHN_SESSION_TTL_MINUTES,
            timeout_ms=settings.WEBAUTHN_TIMEOUT_MS,
            clock=clock,
        )
        self.issuer = TokenIssuer(
            secret=settings.TOKEN_SIGNING_SECRET,
            algorithm=settings.TOKEN_ALGORITHM,
            expiry_minutes=settings.TOKEN_EXPIRY_MINUTES,
            refresh_threshold_minutes=settings.TOKEN_REFRESH_THRESHOLD_MINUTES,
            clock=clock,
        )
        self.orchestrator = AuthOrchestrator(
            directory=self.directory,
            ledger=self.ledger,
            coordinator=self.coordinator,
            issuer=self.issuer,
            did_generator=KeyDIDGenerator(),
            clock=clock,
        )

        self.tasks = [
            PeriodicTask(
                "webauthn-session-sweep",
                settings.WEBAUTHN_SESSION_SWEEP_INTERVAL_SECONDS,
                self.coordinator.sweep_expired_sessions,
            ),
            PeriodicTask(
                "otp-retention-purge",
                OTP_PURGE_INTERVAL_SECONDS,
                self.ledger.purge_stale,
            ),
        ]

    def start_background_tasks(self) -> None:
        for task in self.tasks:
            task.start()

    def stop_background_tasks(self) -> None:
        for task in self.tasks:
            task.stop()

    def run_maintenance(self) -> dict[str, int]:
        """Run every maintenance task once, synchronously."""
        return {task.name: task.run_once() or 0 for task in self.tasks}


_runtime: AuthRuntime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> AuthRuntime:
    """Get the process-wide runtime, building it on first use."""
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = AuthRuntime()
            logger.info(
                "auth_runtime_initialized",
                delivery_provider=settings.OTP_DELIVERY_PROVIDER,
            )
        return _runtime


def install_runtime(runtime: AuthRuntime) -> None:
    """Replace the process-wide runtime (custom wiring, tests)."""
    global _runtime
    reset_runtime()
    with _runtime_lock:
        _runtime = runtime


def reset_runtime() -> None:
    """Stop background tasks and discard the runtime; cached entries expire on their own."""
    global _runtime
    with _runtime_lock:
        runtime, _runtime = _runtime, None
    if runtime is not None:
        runtime.stop_background_tasks()
