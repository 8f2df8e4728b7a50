from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from harmony.config import Settings, get_settings

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password exceeds {BCRYPT_MAX_BYTES} bytes")
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(password_bytes, hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a bcrypt hash")
        return False


def create_session_token(
    user_id: int,
    *,
    is_admin: bool = False,
    settings: Settings | None = None,
) -> str:
    settings = settings or get_settings()
    expire = datetime.now(UTC) + timedelta(minutes=settings.session_ttl_min)
    claims = {"sub": str(user_id), "adm": is_admin, "exp": expire}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.session_algorithm)


def decode_session_token(token: str, settings: Settings | None = None) -> dict[str, Any] | None:
    """Return the token claims, or None when the token is invalid or expired."""
    settings = settings or get_settings()
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.session_algorithm])
    except JWTError:
        return None

    subject = claims.get("sub")
    if subject is None or not str(subject).isdigit():
        return None
    return {"user_id": int(subject), "is_admin": bool(claims.get("adm", False))}
