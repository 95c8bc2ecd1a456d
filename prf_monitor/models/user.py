"""AppUser model — application user with role-based access control."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from prf_monitor.database import Base


class AppUser(Base):
    """System user with a role that controls write access.

    Roles:
        - ADMIN: Full access, including deletes and data clean-up.
        - DOCCON: Document control; creates and edits PRFs, budgets,
          accounts and runs imports.
        - USER: Read-only access.

    Attributes:
        id: Primary key.
        username: Unique login username.
        email: Unique email address.
        password_hash: Bcrypt-hashed password.
        full_name: Display name.
        role: Role identifier controlling permissions.
        department: Department the user belongs to.
        is_active: Whether the account is active.
        last_login: Timestamp of the last successful login.
        created_at: Record creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "app_user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(200), unique=True, nullable=False)
    password_hash = Column(String(200), nullable=False)
    full_name = Column(String(300), nullable=True)
    role = Column(String(20), default="USER", nullable=False)  # "ADMIN", "DOCCON", "USER"
    department = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
