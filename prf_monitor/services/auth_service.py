"""
Authentication business logic for the PRF & Budget Monitor.

Provides:
- ``authenticate_user`` — credential verification against the DB.
- ``get_current_user`` — FastAPI dependency that extracts and validates
  the Bearer JWT from the ``Authorization`` header.
- ``require_role`` — dependency factory that enforces role-based access
  control on top of ``get_current_user``.
- ``ensure_default_admin`` — startup hook that creates the admin account.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prf_monitor.config import get_settings
from prf_monitor.database import get_db
from prf_monitor.models.user import AppUser
from prf_monitor.utils.security import hash_password, verify_password, verify_token

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# OAuth2 scheme: ``tokenUrl`` must match the login endpoint path.
# ---------------------------------------------------------------------------

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ---------------------------------------------------------------------------
# Core authentication function
# ---------------------------------------------------------------------------


def authenticate_user(db: Session, username: str, password: str) -> AppUser | None:
    """Verify username/password credentials against the database.

    Returns ``None`` (instead of raising) for an unknown user, an inactive
    account or a wrong password so that callers control the HTTP response.
    """
    user: AppUser | None = (
        db.query(AppUser)
        .filter(AppUser.username == username, AppUser.is_active.is_(True))
        .first()
    )

    if user is None:
        logger.debug("authenticate_user: unknown or inactive user '%s'", username)
        return None

    if not verify_password(password, user.password_hash):
        logger.debug("authenticate_user: wrong password for user '%s'", username)
        return None

    # Last-login timestamp is best-effort
    try:
        user.last_login = datetime.now(timezone.utc).replace(tzinfo=None)
        db.commit()
    except SQLAlchemyError:  # pragma: no cover
        db.rollback()
        logger.warning("Could not update last_login for user '%s'", username)

    return user


# ---------------------------------------------------------------------------
# FastAPI dependency: current authenticated user
# ---------------------------------------------------------------------------


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> AppUser:
    """Resolve the caller's identity from the bearer JWT.

    Raises:
        HTTPException 401: If the token is missing, invalid, or expired,
                           or if the referenced user no longer exists or
                           has been deactivated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = verify_token(token)
    except ValueError:
        raise credentials_exception

    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise credentials_exception

    try:
        user_id = int(user_id_str)
    except (TypeError, ValueError):
        raise credentials_exception

    user: AppUser | None = (
        db.query(AppUser)
        .filter(AppUser.id == user_id, AppUser.is_active.is_(True))
        .first()
    )

    if user is None:
        raise credentials_exception

    return user


# ---------------------------------------------------------------------------
# Role enforcement dependency factory
# ---------------------------------------------------------------------------


def require_role(*roles: str):
    """Return a FastAPI dependency that restricts access to the given roles.

    Usage:

    .. code-block:: python

        @router.delete("/{prf_id}")
        def delete_prf(
            current_user: AppUser = Depends(require_role("ADMIN")),
        ):
            ...

    Raises:
        HTTPException 403: If the authenticated user's role is not in
                           the allowed *roles* set.
    """
    allowed = frozenset(roles)

    def _check_role(
        current_user: Annotated[AppUser, Depends(get_current_user)],
    ) -> AppUser:
        if current_user.role not in allowed:
            logger.warning(
                "Access denied for user '%s' (role=%s); requires %s",
                current_user.username, current_user.role, sorted(allowed),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    f"Access denied. Requires one of the roles: "
                    f"{sorted(allowed)}"
                ),
            )
        return current_user

    return _check_role


# ---------------------------------------------------------------------------
# Startup seeding
# ---------------------------------------------------------------------------


def ensure_default_admin(db: Session) -> AppUser:
    """Create the configured admin account if it does not exist yet."""
    settings = get_settings()
    admin: AppUser | None = (
        db.query(AppUser)
        .filter(AppUser.username == settings.DEFAULT_ADMIN_USERNAME)
        .first()
    )
    if admin is not None:
        logger.debug("ensure_default_admin: '%s' already present", admin.username)
        return admin

    admin = AppUser(
        username=settings.DEFAULT_ADMIN_USERNAME,
        email=settings.DEFAULT_ADMIN_EMAIL,
        password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
        full_name="System Administrator",
        role="ADMIN",
        department="IT",
        is_active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("ensure_default_admin: created admin user '%s'", admin.username)
    return admin
