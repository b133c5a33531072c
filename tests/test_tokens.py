"""Unit tests for auth/tokens.py -- TokenService, password hashing, registration.

Covers:
- issue() -> verify() returns the originating user id
- verify() rejects missing, malformed, expired, foreign-key and bad-payload tokens
- register_user() validation, hashing and duplicate handling
- authenticate_user() success and both failure branches
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.store import UserStore
from auth.tokens import (
    TokenService,
    authenticate_user,
    hash_password,
    register_user,
    verify_password,
)
from core.errors import Conflict, InvalidInput, Unauthenticated
from tests.helpers import TEST_SECRET, make_settings

OTHER_SECRET = "another-secret-key-also-long-enough-9876543210"


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(make_settings())


def _forge(payload: dict, key: str = TEST_SECRET) -> str:
    return jwt.encode(payload, key, algorithm="HS256")


def _future() -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=1)


class TestTokenService:
    def test_round_trip_returns_user_id(self, tokens: TokenService) -> None:
        assert tokens.verify(tokens.issue(42)) == 42

    def test_distinct_users_get_distinct_ids(self, tokens: TokenService) -> None:
        token_a = tokens.issue(1)
        token_b = tokens.issue(2)
        assert tokens.verify(token_a) == 1
        assert tokens.verify(token_b) == 2

    def test_expiry_defaults_to_thirty_days(self, tokens: TokenService) -> None:
        claims = jwt.get_unverified_claims(tokens.issue(7))
        expires = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        delta = expires - datetime.now(timezone.utc)
        assert timedelta(days=29, hours=23) < delta <= timedelta(days=30)

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    def test_missing_or_malformed_rejected(self, tokens: TokenService, token) -> None:
        with pytest.raises(Unauthenticated):
            tokens.verify(token)

    def test_token_signed_with_other_key_rejected(self, tokens: TokenService) -> None:
        foreign = TokenService(make_settings(secret_key=OTHER_SECRET)).issue(5)
        with pytest.raises(Unauthenticated):
            tokens.verify(foreign)

    def test_expired_token_rejected(self, tokens: TokenService) -> None:
        expired = _forge({"user_id": 5, "exp": datetime.now(timezone.utc) - timedelta(seconds=5)})
        with pytest.raises(Unauthenticated):
            tokens.verify(expired)

    @pytest.mark.parametrize("user_id", [0, -3, "5", 1.5, True, None])
    def test_non_positive_integer_payload_rejected(self, tokens: TokenService, user_id) -> None:
        with pytest.raises(Unauthenticated):
            tokens.verify(_forge({"user_id": user_id, "exp": _future()}))

    def test_payload_without_user_id_rejected(self, tokens: TokenService) -> None:
        with pytest.raises(Unauthenticated):
            tokens.verify(_forge({"sub": "5", "exp": _future()}))


class TestPasswords:
    def test_hash_is_not_plaintext_and_verifies(self) -> None:
        hashed = hash_password("secret1")
        assert hashed != "secret1"
        assert verify_password("secret1", hashed)
        assert not verify_password("secret2", hashed)

    def test_malformed_hash_does_not_raise(self) -> None:
        assert verify_password("secret1", "not-a-bcrypt-hash") is False


class TestRegistration:
    def test_register_then_authenticate(self, user_store: UserStore) -> None:
        user_id = register_user(user_store, "a@x.com", "secret1")
        user = authenticate_user(user_store, "a@x.com", "secret1")
        assert user is not None
        assert user.id == user_id
        assert user.hashed_password != "secret1"

    @pytest.mark.parametrize(
        "email,password",
        [("", "secret1"), (None, "secret1"), ("a@x.com", ""), ("a@x.com", None), ("a@x.com", "12345")],
    )
    def test_invalid_input(self, user_store: UserStore, email, password) -> None:
        with pytest.raises(InvalidInput):
            register_user(user_store, email, password)

    def test_six_character_password_accepted(self, user_store: UserStore) -> None:
        assert register_user(user_store, "six@x.com", "123456") > 0

    def test_duplicate_email_conflicts_regardless_of_password(self, user_store: UserStore) -> None:
        register_user(user_store, "dup@x.com", "secret1")
        with pytest.raises(Conflict):
            register_user(user_store, "dup@x.com", "different-password")
        # The original password still works: nothing was overwritten.
        assert authenticate_user(user_store, "dup@x.com", "secret1") is not None

    def test_email_is_case_sensitive(self, user_store: UserStore) -> None:
        register_user(user_store, "Case@x.com", "secret1")
        assert register_user(user_store, "case@x.com", "secret1") > 0

    def test_authenticate_unknown_email(self, user_store: UserStore) -> None:
        assert authenticate_user(user_store, "nobody@x.com", "secret1") is None

    def test_authenticate_wrong_password(self, user_store: UserStore) -> None:
        register_user(user_store, "b@x.com", "secret1")
        assert authenticate_user(user_store, "b@x.com", "wrong-password") is None
