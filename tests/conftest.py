"""Shared fixtures: in-memory SQLite database, users, tokens and a test client."""

from __future__ import annotations

import os

# Must be set before the package reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from prf_monitor.database import Base, SessionLocal, engine, get_db  # noqa: E402
from prf_monitor.main import app  # noqa: E402
from prf_monitor.models import AppUser, Budget, ChartOfAccounts, PRF  # noqa: E402
from prf_monitor.utils.security import create_access_token, hash_password  # noqa: E402

TEST_PASSWORD = "Secret123!"


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _make_user(db, username: str, role: str) -> AppUser:
    user = AppUser(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        full_name=username.replace("_", " ").title(),
        role=role,
        department="IT",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin_user(db) -> AppUser:
    return _make_user(db, "test_admin", "ADMIN")


@pytest.fixture()
def doccon_user(db) -> AppUser:
    return _make_user(db, "test_doccon", "DOCCON")


@pytest.fixture()
def viewer_user(db) -> AppUser:
    return _make_user(db, "test_user", "USER")


def _auth(user: AppUser) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(user.id), "username": user.username, "role": user.role}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(admin_user) -> dict[str, str]:
    return _auth(admin_user)


@pytest.fixture()
def doccon_headers(doccon_user) -> dict[str, str]:
    return _auth(doccon_user)


@pytest.fixture()
def viewer_headers(viewer_user) -> dict[str, str]:
    return _auth(viewer_user)


# ---------------------------------------------------------------------------
# Domain data helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_account(db):
    def _make(code: str, name: str | None = None, **kwargs) -> ChartOfAccounts:
        account = ChartOfAccounts(
            coa_code=code,
            coa_name=name or f"Account {code}",
            expense_type=kwargs.pop("expense_type", "CAPEX"),
            department=kwargs.pop("department", "IT"),
            **kwargs,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture()
def make_budget(db):
    def _make(account: ChartOfAccounts, fiscal_year: int, allocated: float, **kwargs) -> Budget:
        budget = Budget(
            coa_id=account.id,
            fiscal_year=fiscal_year,
            allocated_amount=allocated,
            department=kwargs.pop("department", account.department),
            expense_type=kwargs.pop("expense_type", account.expense_type),
            **kwargs,
        )
        db.add(budget)
        db.commit()
        db.refresh(budget)
        return budget

    return _make


@pytest.fixture()
def make_prf(db):
    def _make(prf_no: str, **kwargs) -> PRF:
        prf = PRF(
            prf_no=prf_no,
            requested_amount=kwargs.pop("requested_amount", 0),
            status=kwargs.pop("status", "Draft"),
            **kwargs,
        )
        db.add(prf)
        db.commit()
        db.refresh(prf)
        return prf

    return _make
