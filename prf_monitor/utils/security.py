"""
Password hashing (bcrypt) and bearer-token signing (python-jose).

Tokens carry ``sub`` (user id as a string), ``username`` and ``role`` plus
the ``iat``/``exp`` timestamps added here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from prf_monitor.config import get_settings

logger = logging.getLogger(__name__)

_ENCODING = "utf-8"


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode(_ENCODING), bcrypt.gensalt())
    return hashed.decode(_ENCODING)


def verify_password(plain: str, hashed: str) -> bool:
    """False on mismatch and on a stored hash bcrypt cannot parse."""
    try:
        return bcrypt.checkpw(plain.encode(_ENCODING), hashed.encode(_ENCODING))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def create_access_token(data: dict[str, Any]) -> str:
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    claims = {
        **data,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """Return the claims of a valid token.

    Raises:
        ValueError: Bad signature, malformed token or past ``exp``.
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.debug("rejected token: %s", exc)
        raise ValueError("Invalid or expired token") from exc
