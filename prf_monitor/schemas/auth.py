"""Response bodies of the ``/api/auth`` endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """Issued by ``/login`` and ``/refresh``; send it back as ``Authorization: Bearer``."""

    access_token: str
    token_type: str = Field(default="bearer")

    model_config = ConfigDict(
        json_schema_extra={"example": {"access_token": "eyJhbGciOi...", "token_type": "bearer"}}
    )


class UserResponse(BaseModel):
    """The caller's own account, as returned by ``/me``. No password hash."""

    id: int
    username: str
    email: str
    full_name: str | None = None
    role: str
    department: str | None = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
