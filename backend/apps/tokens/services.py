"""
Session token issuance and validation.

Tokens are HMAC-signed JWTs carrying the account's identity claims. They are
stateless: validity depends only on the signature and the ``exp`` claim, and
there is no server-side revocation.

Expiry is checked against the issuer's own clock rather than PyJWT's, so a
controllable clock drives it in tests.
"""

import calendar
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import jwt
from django.utils import timezone

from apps.accounts.constants import AuthMethod
from apps.core.logging import get_logger
from apps.tokens.exceptions import TokenExpiredError, TokenInvalidError

if TYPE_CHECKING:
    from apps.accounts.models import Account

logger = get_logger(__name__)

REQUIRED_CLAIMS = ["sub", "iat", "exp", "auth_method"]


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by a session token."""

    account_id: str
    auth_method: AuthMethod
    issued_at: datetime
    expires_at: datetime
    did: str | None = None
    email: str | None = None
    phone: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "did": self.did,
            "email": self.email,
            "phone": self.phone,
            "name": self.name,
            "auth_method": str(self.auth_method),
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
        }


def _to_timestamp(value: datetime) -> int:
    return calendar.timegm(value.utctimetuple())


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=UTC)


class TokenIssuer:
    """Mints, validates and refreshes session tokens."""

    def __init__(
        self,
        *,
        secret: str,
        algorithm: str = "HS256",
        expiry_minutes: int = 1440,
        refresh_threshold_minutes: int = 60,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        if not secret:
            raise ValueError("Token signing secret is not configured")
        self._secret = secret
        self.algorithm = algorithm
        self.lifetime = timedelta(minutes=expiry_minutes)
        self.refresh_threshold = timedelta(minutes=refresh_threshold_minutes)
        self._clock = clock

    def issue(self, account: "Account", auth_method: AuthMethod) -> str:
        """Create a signed token for ``account``."""
        token = self._encode(
            {
                "sub": account.id,
                "did": account.did,
                "email": account.email,
                "phone": account.phone,
                "name": account.name or None,
                "auth_method": str(auth_method),
            }
        )
        logger.info("token_issued", auth_method=str(auth_method), **{"account.id": account.id})
        return token

    def validate(self, token: str) -> TokenClaims:
        """
        Verify ``token`` and return its claims.

        Raises:
            TokenInvalidError: Bad signature, malformed token or missing claims
            TokenExpiredError: Signature is valid but the token has expired
        """
        payload = self._decode(token)
        try:
            auth_method = AuthMethod(payload["auth_method"])
        except ValueError as e:
            raise TokenInvalidError() from e

        claims = TokenClaims(
            account_id=payload["sub"],
            auth_method=auth_method,
            issued_at=_from_timestamp(payload["iat"]),
            expires_at=_from_timestamp(payload["exp"]),
            did=payload.get("did"),
            email=payload.get("email"),
            phone=payload.get("phone"),
            name=payload.get("name"),
        )
        if self._clock() >= claims.expires_at:
            raise TokenExpiredError()
        return claims

    def refresh_if_needed(self, token: str) -> str:
        """
        Re-issue ``token`` if it expires within the refresh threshold.

        The new token carries the same identity claims with a fresh expiry;
        otherwise the input token is returned unchanged.

        Raises:
            TokenInvalidError, TokenExpiredError: As for ``validate``
        """
        claims = self.validate(token)
        remaining = claims.expires_at - self._clock()
        if remaining >= self.refresh_threshold:
            return token

        refreshed = self._encode(
            {
                "sub": claims.account_id,
                "did": claims.did,
                "email": claims.email,
                "phone": claims.phone,
                "name": claims.name,
                "auth_method": str(claims.auth_method),
            }
        )
        logger.info(
            "token_refreshed",
            remaining_seconds=int(remaining.total_seconds()),
            **{"account.id": claims.account_id},
        )
        return refreshed

    def _encode(self, claims: dict[str, Any]) -> str:
        now = self._clock()
        payload = {
            **claims,
            "iat": _to_timestamp(now),
            "exp": _to_timestamp(now + self.lifetime),
            "jti": uuid4().hex,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def _decode(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidTokenError as e:
            logger.info("token_rejected", reason=type(e).__name__)
            raise TokenInvalidError() from e

