"""
Authentication router for the PRF & Budget Monitor API.

Mounts under ``/api/auth`` (prefix set in ``main.py``).

Endpoints:
    POST /login   — Authenticate with username + password, receive JWT.
    POST /refresh — Exchange a valid token for a new one (extend session).
    GET  /me      — Return the currently authenticated user's profile.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from prf_monitor.database import get_db
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.auth import TokenResponse, UserResponse
from prf_monitor.services.auth_service import authenticate_user, get_current_user
from prf_monitor.utils.security import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


def _token_for(user: AppUser) -> str:
    return create_access_token(
        data={
            "sub": str(user.id),
            "username": user.username,
            "role": user.role,
        }
    )


# ---------------------------------------------------------------------------
# POST /login
# ---------------------------------------------------------------------------


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Log in",
    description=(
        "Authenticates the user and returns a JWT access token valid for "
        "``JWT_EXPIRATION_MINUTES`` (default 8 h)."
    ),
    responses={
        200: {"description": "Authenticated; the JWT is included."},
        401: {"description": "Wrong credentials or inactive account."},
        422: {"description": "Invalid request body."},
    },
)
def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """Authenticate a user and issue a JWT access token.

    Accepts the standard OAuth2 ``application/x-www-form-urlencoded`` form so
    that the Swagger UI "Authorize" button works.

    Raises:
        HTTPException 401: If credentials are invalid or the account is inactive.
    """
    user = authenticate_user(db, form_data.username, form_data.password)

    if user is None:
        logger.warning("Failed login attempt for username='%s'", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("Successful login for username='%s' role='%s'", user.username, user.role)
    return TokenResponse(access_token=_token_for(user))


# ---------------------------------------------------------------------------
# POST /refresh
# ---------------------------------------------------------------------------


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh token",
    description="Issues a new JWT from a valid (non-expired) token.",
    responses={
        200: {"description": "Token refreshed."},
        401: {"description": "Invalid or expired token."},
    },
)
def refresh_token(
    current_user: Annotated[AppUser, Depends(get_current_user)],
) -> TokenResponse:
    logger.info("Token refreshed for username='%s'", current_user.username)
    return TokenResponse(access_token=_token_for(current_user))


# ---------------------------------------------------------------------------
# GET /me
# ---------------------------------------------------------------------------


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user profile",
    description=(
        "Returns the public profile of the user identified by the JWT in the "
        "``Authorization: Bearer <token>`` header."
    ),
    responses={
        200: {"description": "Profile of the authenticated user."},
        401: {"description": "Missing, invalid or expired token."},
    },
)
def get_me(
    current_user: Annotated[AppUser, Depends(get_current_user)],
) -> UserResponse:
    return UserResponse.model_validate(current_user)
