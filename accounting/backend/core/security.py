"""
Security Utilities.

    hash_password / verify_password   bcrypt
    create_*_token / decode_token     python-jose; access and refresh tokens use separate secrets
    encrypt_secret / decrypt_secret   Fernet, for SMTP/IMAP passwords and AI provider keys at rest
"""

from datetime import timedelta
from functools import lru_cache
from typing import Any

import bcrypt
from cryptography.fernet import Fernet, InvalidToken
from jose import JWTError, jwt

from accounting.backend.core.config import get_app_config, get_settings
from accounting.backend.core.exceptions import AuthenticationError, ValidationError
from accounting.backend.core.logging import get_logger
from accounting.backend.core.utils import utc_now

logger = get_logger(__name__)

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

INVALID_TOKEN_MESSAGE = "Invalid or expired token"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())


def enforce_password_policy(password: str) -> None:
    """Raises ValidationError when `password` is shorter than security.password.min_length."""
    min_length = get_app_config().security.password.min_length
    if len(password) < min_length:
        raise ValidationError(
            f"Password must be at least {min_length} characters long", details={"min_length": min_length}
        )


@lru_cache
def dummy_password_hash() -> str:
    """Compared against when the email is unknown, so login timing is the same either way."""
    return hash_password("dummy-password-for-timing")


def _signing_secret(token_type: str) -> str:
    settings = get_settings()
    return settings.jwt_refresh_secret if token_type == TOKEN_TYPE_REFRESH else settings.jwt_secret


def _issue(claims: dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    jwt_config = get_app_config().security.jwt
    payload = {**claims, "exp": utc_now() + lifetime, "type": token_type, "aud": jwt_config.audience}
    return jwt.encode(payload, _signing_secret(token_type), algorithm=jwt_config.algorithm)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """
    Access token for `data` (sub, email, role, company_id).

    Lifetime is security.jwt.access_token_expire_minutes unless
    `expires_delta` is given.
    """
    minutes = get_app_config().security.jwt.access_token_expire_minutes
    return _issue(data, TOKEN_TYPE_ACCESS, expires_delta or timedelta(minutes=minutes))


def create_refresh_token(data: dict[str, Any]) -> str:
    days = get_app_config().security.jwt.refresh_token_expire_days
    return _issue(data, TOKEN_TYPE_REFRESH, timedelta(days=days))


def decode_token(token: str, token_type: str = TOKEN_TYPE_ACCESS) -> dict[str, Any]:
    """
    Verify signature, expiry, audience and the `type` claim.

    Raises:
        AuthenticationError: for any token that fails one of those checks.
            The message does not say which.
    """
    jwt_config = get_app_config().security.jwt
    try:
        payload = jwt.decode(
            token,
            _signing_secret(token_type),
            algorithms=[jwt_config.algorithm],
            audience=jwt_config.audience,
        )
    except JWTError as e:
        logger.warning("Token decode failed", extra={"error": str(e), "token_type": token_type})
        raise AuthenticationError(INVALID_TOKEN_MESSAGE) from e

    if payload.get("type") != token_type:
        logger.warning("Token type mismatch", extra={"expected": token_type, "actual": payload.get("type")})
        raise AuthenticationError(INVALID_TOKEN_MESSAGE)
    return payload


def _fernet() -> Fernet:
    return Fernet(get_settings().encryption_key.encode())


def encrypt_secret(plain: str) -> str:
    return _fernet().encrypt(plain.encode()).decode()


def decrypt_secret(token: str) -> str:
    """Raises ValueError when `token` was not produced with the current ENCRYPTION_KEY."""
    try:
        return _fernet().decrypt(token.encode()).decode()
    except InvalidToken as exc:
        raise ValueError("Stored secret cannot be decrypted") from exc
