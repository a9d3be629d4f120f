"""
Tests for session token issuance, validation and refresh.
"""

import jwt
import pytest

from apps.accounts.constants import AuthMethod
from apps.tokens.exceptions import TokenExpiredError, TokenInvalidError
from apps.tokens.services import TokenIssuer
from tests.accounts.factories import AccountFactory

SECRET = "test-token-signing-secret-with-enough-entropy"


@pytest.fixture
def issuer(clock) -> TokenIssuer:
    return TokenIssuer(
        secret=SECRET,
        expiry_minutes=1440,
        refresh_threshold_minutes=60,
        clock=clock,
    )


class TestIssue:
    def test_claims_round_trip(self, issuer, clock):
        account = AccountFactory(
            email="ada@example.com", name="Ada Lovelace", did="did:key:z6MkTest"
        )

        claims = issuer.validate(issuer.issue(account, AuthMethod.EMAIL))

        assert claims.account_id == account.id
        assert claims.email == "ada@example.com"
        assert claims.phone is None
        assert claims.did == "did:key:z6MkTest"
        assert claims.name == "Ada Lovelace"
        assert claims.auth_method == AuthMethod.EMAIL
        assert claims.issued_at == clock()
        assert (claims.expires_at - claims.issued_at).total_seconds() == 24 * 3600

    def test_tokens_are_unique(self, issuer):
        account = AccountFactory()
        assert issuer.issue(account, AuthMethod.SMS) != issuer.issue(account, AuthMethod.SMS)

    def test_requires_secret(self):
        with pytest.raises(ValueError):
            TokenIssuer(secret="")


class TestValidate:
    def test_valid_until_expiry(self, issuer, clock):
        token = issuer.issue(AccountFactory(), AuthMethod.EMAIL)

        clock.advance(minutes=1439)

        assert issuer.validate(token).auth_method == AuthMethod.EMAIL

    def test_expired(self, issuer, clock):
        token = issuer.issue(AccountFactory(), AuthMethod.EMAIL)

        clock.advance(minutes=1440)

        with pytest.raises(TokenExpiredError) as exc_info:
            issuer.validate(token)
        assert exc_info.value.status_code == 401

    def test_wrong_signature(self, issuer, clock):
        other = TokenIssuer(secret="another-secret-of-sufficient-length", clock=clock)
        token = other.issue(AccountFactory(), AuthMethod.EMAIL)

        with pytest.raises(TokenInvalidError):
            issuer.validate(token)

    def test_tampered_payload(self, issuer):
        """A payload swapped in from another token fails the signature check."""
        header, _, signature = issuer.issue(AccountFactory(), AuthMethod.EMAIL).split(".")
        _, other_payload, _ = issuer.issue(AccountFactory(), AuthMethod.EMAIL).split(".")
        tampered = f"{header}.{other_payload}.{signature}"

        with pytest.raises(TokenInvalidError):
            issuer.validate(tampered)

    def test_malformed(self, issuer):
        with pytest.raises(TokenInvalidError):
            issuer.validate("garbage")

    def test_missing_required_claim(self, issuer):
        token = jwt.encode({"sub": "acct_1", "iat": 0, "exp": 0}, SECRET, algorithm="HS256")

        with pytest.raises(TokenInvalidError):
            issuer.validate(token)

    def test_unknown_auth_method(self, issuer):
        token = jwt.encode(
            {"sub": "acct_1", "iat": 0, "exp": 4102444800, "auth_method": "password"},
            SECRET,
            algorithm="HS256",
        )

        with pytest.raises(TokenInvalidError):
            issuer.validate(token)


class TestRefreshIfNeeded:
    def test_fresh_token_returned_unchanged(self, issuer, clock):
        token = issuer.issue(AccountFactory(), AuthMethod.EMAIL)

        clock.advance(hours=22, minutes=59)

        assert issuer.refresh_if_needed(token) == token

    def test_token_near_expiry_reissued(self, issuer, clock):
        account = AccountFactory(phone="+15551234567", email=None)
        token = issuer.issue(account, AuthMethod.SMS)

        clock.advance(hours=23, minutes=30)
        refreshed = issuer.refresh_if_needed(token)

        assert refreshed != token
        claims = issuer.validate(refreshed)
        assert claims.account_id == account.id
        assert claims.phone == "+15551234567"
        assert claims.auth_method == AuthMethod.SMS
        assert claims.issued_at == clock()

    def test_expired_token_not_refreshed(self, issuer, clock):
        token = issuer.issue(AccountFactory(), AuthMethod.EMAIL)

        clock.advance(days=1, seconds=1)

        with pytest.raises(TokenExpiredError):
            issuer.refresh_if_needed(token)
