"""
Storage for in-flight WebAuthn ceremony sessions.
"""

import math
import threading
from datetime import datetime
from typing import Protocol

from django.core.cache import cache

from apps.passkeys.constants import CeremonyType
from apps.passkeys.models import WebAuthnSession

SESSION_CACHE_PREFIX = "webauthn_session:"


class WebAuthnSessionStore(Protocol):
    def put(self, session: WebAuthnSession) -> None: ...

    def take(self, session_id: str, ceremony: CeremonyType) -> WebAuthnSession | None: ...

    def purge_expired(self, now: datetime) -> int: ...

    def __len__(self) -> int: ...


class CacheWebAuthnSessionStore:
    """
    Sessions kept in Django's cache with the timeout set to the session TTL.

    ``take`` gets and deletes under one lock, so of two concurrent
    completions (or a completion racing the sweep) exactly one gets the
    session and the other sees "not found". Expiry itself is judged by the
    coordinator's clock; the cache timeout only bounds how long a stale
    entry can linger.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: set[str] = set()

    @staticmethod
    def _cache_key(session_id: str) -> str:
        return f"{SESSION_CACHE_PREFIX}{session_id}"

    def put(self, session: WebAuthnSession) -> None:
        ttl = (session.expires_at - session.created_at).total_seconds()
        with self._lock:
            cache.set(self._cache_key(session.id), session, timeout=max(1, math.ceil(ttl)))
            self._ids.add(session.id)

    def take(self, session_id: str, ceremony: CeremonyType) -> WebAuthnSession | None:
        """Claim a session of the given ceremony type. Other types are left alone."""
        with self._lock:
            session = cache.get(self._cache_key(session_id))
            if session is None or session.ceremony != ceremony:
                return None
            cache.delete(self._cache_key(session_id))
            self._ids.discard(session_id)
            return session

    def purge_expired(self, now: datetime) -> int:
        removed = 0
        with self._lock:
            for session_id in list(self._ids):
                session = cache.get(self._cache_key(session_id))
                if session is None:
                    self._ids.discard(session_id)
                elif session.is_expired(now):
                    cache.delete(self._cache_key(session_id))
                    self._ids.discard(session_id)
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for sid in self._ids if cache.get(self._cache_key(sid)) is not None)
