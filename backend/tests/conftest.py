"""
Shared pytest fixtures for all tests.

This module provides common fixtures used across multiple test modules.
Individual test modules can override these fixtures if needed.

Factories
---------
Import factories directly from their modules:

    from tests.accounts.factories import AccountFactory
    from tests.otp.factories import OTPChallengeFactory
    from tests.passkeys.factories import WebAuthnCredentialFactory

Clock
-----
Every component takes an injectable clock. ``clock`` is a ``FakeClock``
frozen at a fixed instant; advance it to drive expiry and rate-limit
windows:

    def test_expires(clock, runtime):
        ...
        clock.advance(minutes=11)
"""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any, cast

import pytest
from django.core.cache import cache
from django.core.handlers.wsgi import WSGIRequest
from django.test import Client, RequestFactory

from apps.accounts.constants import AuthMethod
from apps.accounts.models import Account
from apps.accounts.runtime import AuthRuntime, install_runtime, reset_runtime
from apps.core.types import AuthenticatedHttpRequest

FROZEN_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _clear_cache() -> Iterator[None]:
    """Rate-limit windows and WebAuthn sessions live in the cache; isolate tests."""
    cache.clear()
    yield
    cache.clear()


class FakeClock:
    """Controllable replacement for ``django.utils.timezone.now``."""

    def __init__(self, start: datetime = FROZEN_NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """A clock frozen at FROZEN_NOW."""
    return FakeClock()


@pytest.fixture
def runtime(clock: FakeClock) -> Iterator[AuthRuntime]:
    """
    A fresh auth runtime driven by ``clock``, installed as the process runtime.

    API endpoints and BearerAuth resolve it through ``get_runtime()``.
    """
    instance = AuthRuntime(clock=clock)
    install_runtime(instance)
    yield instance
    reset_runtime()


@pytest.fixture
def orchestrator(runtime: AuthRuntime):
    return runtime.orchestrator


def issued_code(runtime: AuthRuntime, otp_id: str) -> str:
    """Read the plaintext code of an issued challenge (delivered out-of-band in real use)."""
    challenge = runtime.otp_store.get(otp_id)
    assert challenge is not None
    return challenge.code


def wrong_code(code: str) -> str:
    """A code of the same shape that is guaranteed not to match."""
    return "".join("1" if c != "1" else "2" for c in code)


@pytest.fixture
def make_account(runtime: AuthRuntime) -> Callable[..., Account]:
    """
    Factory fixture creating accounts in the runtime's directory.

    Example:
        def test_login(make_account):
            account = make_account(email="ada@example.com")
    """

    def _make(
        email: str | None = None,
        phone: str | None = None,
        name: str = "Test User",
        auth_method: AuthMethod | None = None,
    ) -> Account:
        if email is None and phone is None:
            email = f"user{len(runtime.directory) + 1}@example.com"
        method = auth_method or (AuthMethod.EMAIL if email else AuthMethod.SMS)
        return runtime.directory.create_account(
            now=runtime.clock(),
            name=name,
            auth_method=method,
            email=email,
            phone=phone,
        )

    return _make


@pytest.fixture
def auth_token(runtime: AuthRuntime) -> Callable[[Account], str]:
    """Issue a session token for an account."""

    def _issue(account: Account, method: AuthMethod = AuthMethod.EMAIL) -> str:
        return runtime.issuer.issue(account, method)

    return _issue


@pytest.fixture
def request_factory() -> RequestFactory:
    """
    Django request factory for unit testing views.

    Use this when you need to test view functions directly without going through
    the full HTTP stack. Useful for testing Django Ninja endpoints.
    """
    return RequestFactory()


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Use this when you need to test the complete HTTP flow including middleware,
    routing, and response handling.

    Example:
        def test_api_returns_200(api_client):
            response = api_client.get("/api/v1/health")
            assert response.status_code == 200
    """
    return Client()


def make_request_with_auth(request: "WSGIRequest", claims: Any) -> AuthenticatedHttpRequest:
    """
    Set ``request.auth`` the way BearerAuth does and return it typed.

    Example:
        request = request_factory.get("/api/v1/webauthn/credentials")
        request = make_request_with_auth(request, runtime.issuer.validate(token))
    """
    request.auth = claims  # type: ignore[attr-defined]
    return cast(AuthenticatedHttpRequest, request)
