"""
Core utility functions.
"""

from typing import cast, overload

from django.http import HttpRequest

# Browser families that ship WebAuthn platform authenticators.
WEBAUTHN_USER_AGENT_MARKERS = ("Chrome", "Firefox", "Safari")


@overload
def get_client_ip(request: HttpRequest) -> str | None: ...


@overload
def get_client_ip(request: HttpRequest, default: str) -> str: ...


def get_client_ip(request: HttpRequest, default: str | None = None) -> str | None:
    """
    Extract client IP from X-Forwarded-For or REMOTE_ADDR.

    Handles the case where X-Forwarded-For contains multiple IPs
    (from proxy chain) by taking the first (original client).

    Args:
        request: The Django HTTP request.
        default: Fallback value when no IP can be determined.
            Defaults to None.

    Returns:
        The client IP address, or default if not available.
    """
    x_forwarded_for: str | None = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    remote_addr = cast(str | None, request.META.get("REMOTE_ADDR"))
    if remote_addr is not None:
        return remote_addr
    return default


def user_agent_suggests_webauthn(user_agent: str | None) -> bool:
    """
    Guess from the User-Agent whether the client can run WebAuthn.

    A prompt hint only, never a security decision: the client does real
    feature detection before its first ceremony.
    """
    if not user_agent:
        return False
    return any(marker in user_agent for marker in WEBAUTHN_USER_AGENT_MARKERS)
