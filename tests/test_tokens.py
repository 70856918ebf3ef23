"""Unit tests for auth/tokens.py -- JWT issuance and password hashing.

Covers:
- access tokens carry exactly sub/email/role (+exp) and live 15 minutes
- refresh tokens are signed with the other key and never cross-validate
- expiry is checked against the injected clock
- bcrypt hash/verify, including malformed stored hashes
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from jose import jwt

from auth.tokens import TokenIssuer, hash_password, password_fits, verify_password
from tests.helpers import ACCESS_SECRET, REFRESH_SECRET, FrozenClock


@pytest.fixture
def issuer(clock: FrozenClock) -> TokenIssuer:
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, clock=clock)


class TestAccessToken:
    def test_claims_are_subject_email_role_only(self, issuer: TokenIssuer, clock: FrozenClock) -> None:
        token = issuer.issue_access_token("acc1", "a@x.com", "workshop")
        claims = jwt.get_unverified_claims(token)
        assert set(claims) == {"sub", "email", "role", "exp"}
        assert claims["sub"] == "acc1"
        assert claims["role"] == "workshop"
        assert claims["exp"] == int((clock.now + timedelta(minutes=15)).timestamp())

    def test_valid_until_fifteen_minutes(self, issuer: TokenIssuer, clock: FrozenClock) -> None:
        token = issuer.issue_access_token("acc1", "a@x.com", "client")
        clock.advance(minutes=14, seconds=59)
        assert issuer.decode_access_token(token)["email"] == "a@x.com"
        clock.advance(seconds=1)
        assert issuer.decode_access_token(token) is None

    def test_signing_is_deterministic_for_same_payload(self, issuer: TokenIssuer) -> None:
        assert issuer.issue_access_token("acc1", "a@x.com", "client") == issuer.issue_access_token(
            "acc1", "a@x.com", "client"
        )

    def test_tampered_token_rejected(self, issuer: TokenIssuer) -> None:
        token = issuer.issue_access_token("acc1", "a@x.com", "client")
        forged = jwt.encode(jwt.get_unverified_claims(token) | {"role": "admin"}, "x" * 40, algorithm="HS256")
        assert issuer.decode_access_token(forged) is None
        assert issuer.decode_access_token("not.a.jwt") is None


class TestRefreshSecret:
    def test_seven_day_expiry(self, issuer: TokenIssuer, clock: FrozenClock) -> None:
        token = issuer.issue_refresh_secret("acc1", "a@x.com", "client")
        claims = issuer.decode_refresh_secret(token)
        assert claims["exp"] == int((clock.now + timedelta(days=7)).timestamp())

    def test_kinds_never_cross_validate(self, issuer: TokenIssuer) -> None:
        access = issuer.issue_access_token("acc1", "a@x.com", "client")
        refresh = issuer.issue_refresh_secret("acc1", "a@x.com", "client")
        assert issuer.decode_access_token(refresh) is None
        assert issuer.decode_refresh_secret(access) is None

    def test_same_instant_refresh_tokens_differ(self, issuer: TokenIssuer) -> None:
        a = issuer.issue_refresh_secret("acc1", "a@x.com", "client")
        b = issuer.issue_refresh_secret("acc1", "a@x.com", "client")
        assert a != b

    def test_identical_keys_refused(self) -> None:
        with pytest.raises(ValueError):
            TokenIssuer(ACCESS_SECRET, ACCESS_SECRET)


class TestPasswordHashing:
    def test_hash_roundtrip(self) -> None:
        hashed = hash_password("pw12345678", rounds=4)
        assert hashed.startswith("$2b$04$")
        assert verify_password("pw12345678", hashed)
        assert not verify_password("pw12345679", hashed)

    def test_salted(self) -> None:
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_password_fits_counts_bytes_not_characters(self) -> None:
        assert password_fits("x" * 72)
        assert not password_fits("x" * 73)
        assert password_fits("é" * 36)
        assert not password_fits("é" * 37)
