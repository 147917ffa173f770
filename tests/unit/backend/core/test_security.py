"""
Unit Tests for accounting.backend.core.security.

bcrypt, python-jose and Fernet run for real. Only get_settings and
get_app_config are replaced, with a JwtSchema built from test values.
"""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet
from jose import jwt

from accounting.backend.core.config_schema import JwtSchema
from accounting.backend.core.exceptions import AuthenticationError, ValidationError
from accounting.backend.core.security import (
    INVALID_TOKEN_MESSAGE,
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    decrypt_secret,
    dummy_password_hash,
    encrypt_secret,
    enforce_password_policy,
    hash_password,
    verify_password,
)

ACCESS_SECRET = "unit-access-secret-long-enough-for-hs256-0001"
REFRESH_SECRET = "unit-refresh-secret-long-enough-for-hs256-0002"
AUDIENCE = "accounting-test"


@pytest.fixture
def security_config():
    settings = SimpleNamespace(
        jwt_secret=ACCESS_SECRET,
        jwt_refresh_secret=REFRESH_SECRET,
        encryption_key=Fernet.generate_key().decode(),
    )
    jwt_config = JwtSchema(
        algorithm="HS256", access_token_expire_minutes=15, refresh_token_expire_days=7, audience=AUDIENCE
    )
    app_config = SimpleNamespace(security=SimpleNamespace(jwt=jwt_config, password=SimpleNamespace(min_length=8)))
    with (
        patch("accounting.backend.core.security.get_settings", return_value=settings),
        patch("accounting.backend.core.security.get_app_config", return_value=app_config),
    ):
        yield settings


def _forge(claims: dict, secret: str = ACCESS_SECRET) -> str:
    return jwt.encode({"type": TOKEN_TYPE_ACCESS, "aud": AUDIENCE, **claims}, secret, algorithm="HS256")


class TestPasswords:
    def test_hash_is_bcrypt_and_salted(self):
        first, second = hash_password("Biuro2024!"), hash_password("Biuro2024!")

        assert first.startswith("$2b$")
        assert first != second

    @pytest.mark.parametrize(
        ("candidate", "expected"),
        [("Biuro2024!", True), ("biuro2024!", False), ("", False)],
    )
    def test_verify(self, candidate, expected):
        assert verify_password(candidate, hash_password("Biuro2024!")) is expected

    def test_non_ascii_password(self):
        assert verify_password("zażółć-gęślą-jaźń", hash_password("zażółć-gęślą-jaźń"))

    def test_dummy_hash_is_cached_and_matches_nothing_real(self):
        assert dummy_password_hash() is dummy_password_hash()
        assert not verify_password("Biuro2024!", dummy_password_hash())


@pytest.mark.usefixtures("security_config")
class TestPasswordPolicy:
    def test_min_length_is_accepted(self):
        enforce_password_policy("12345678")

    @pytest.mark.parametrize("password", ["", "a", "1234567"])
    def test_shorter_is_rejected(self, password):
        with pytest.raises(ValidationError) as exc_info:
            enforce_password_policy(password)

        assert exc_info.value.details == {"min_length": 8}


@pytest.mark.usefixtures("security_config")
class TestTokens:
    def test_access_token_carries_claims(self):
        payload = decode_token(create_access_token({"sub": "user-42", "role": "ADMIN", "company_id": "c-1"}))

        assert (payload["sub"], payload["role"], payload["company_id"]) == ("user-42", "ADMIN", "c-1")
        assert payload["type"] == TOKEN_TYPE_ACCESS
        assert payload["aud"] == AUDIENCE

    def test_expires_delta_overrides_configured_lifetime(self):
        default = decode_token(create_access_token({"sub": "u"}))["exp"]
        extended = decode_token(create_access_token({"sub": "u"}, expires_delta=timedelta(hours=2)))["exp"]

        assert extended - default >= 100 * 60

    def test_claims_dict_is_not_modified(self):
        claims = {"sub": "user-1"}
        create_access_token(claims)

        assert claims == {"sub": "user-1"}

    def test_refresh_token_uses_its_own_secret(self):
        token = create_refresh_token({"sub": "user-99"})

        assert decode_token(token, TOKEN_TYPE_REFRESH)["sub"] == "user-99"
        assert jwt.decode(token, REFRESH_SECRET, algorithms=["HS256"], audience=AUDIENCE)["type"] == "refresh"

    @pytest.mark.parametrize(
        ("make_token", "expected_type"),
        [
            (lambda: create_refresh_token({"sub": "u"}), TOKEN_TYPE_ACCESS),
            (lambda: create_access_token({"sub": "u"}), TOKEN_TYPE_REFRESH),
        ],
        ids=["refresh-as-access", "access-as-refresh"],
    )
    def test_token_types_are_not_interchangeable(self, make_token, expected_type):
        with pytest.raises(AuthenticationError, match=INVALID_TOKEN_MESSAGE):
            decode_token(make_token(), expected_type)

    @pytest.mark.parametrize(
        "make_token",
        [
            lambda: "not-a-jwt",
            lambda: create_access_token({"sub": "u"})[:-4] + "XXXX",
            lambda: _forge({"sub": "u"}, secret="some-other-secret-of-sufficient-length"),
            lambda: _forge({"sub": "u", "aud": "another-api"}),
            lambda: create_access_token({"sub": "u"}, expires_delta=timedelta(seconds=-1)),
        ],
        ids=["garbage", "tampered", "foreign-secret", "wrong-audience", "expired"],
    )
    def test_rejected_tokens_share_one_message(self, make_token):
        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(make_token())

        assert exc_info.value.message == INVALID_TOKEN_MESSAGE


@pytest.mark.usefixtures("security_config")
class TestSecretEncryption:
    def test_round_trip(self):
        stored = encrypt_secret("smtp-password")

        assert "smtp-password" not in stored
        assert decrypt_secret(stored) == "smtp-password"

    @pytest.mark.parametrize(
        "stored",
        [Fernet(Fernet.generate_key()).encrypt(b"sk-live").decode(), "plain-text"],
        ids=["other-key", "not-encrypted"],
    )
    def test_undecryptable_values_raise_value_error(self, stored):
        with pytest.raises(ValueError, match="cannot be decrypted"):
            decrypt_secret(stored)
