"""Seed data script for the PRF & Budget Monitor database.

Populates the database with realistic demo data for development and testing:
users for every role, a small chart of accounts, budgets for the current
fiscal year and a set of PRFs with items.  The script is idempotent: each
step skips tables that already hold data.

Usage (from the project root, after ``alembic upgrade head``):
    python seed_data.py
"""

from __future__ import annotations

import sys
import os
from datetime import date, timedelta
from decimal import Decimal

# Ensure the package is importable when running from the project root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from prf_monitor.database import SessionLocal  # noqa: E402
from prf_monitor.models import AppUser, Budget, ChartOfAccounts, PRF, PRFItem  # noqa: E402
from prf_monitor.services.prf_service import map_item_status  # noqa: E402
from prf_monitor.utils.security import hash_password  # noqa: E402

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

YEAR = date.today().year


def _d(month: int, day: int) -> date:
    """Shorthand date constructor for the seed year."""
    return date(YEAR, month, day)


def _dec(value: float) -> Decimal:
    """Convert float to Decimal for Numeric columns."""
    return Decimal(str(round(value, 2)))


# ---------------------------------------------------------------------------
# Seed functions
# ---------------------------------------------------------------------------


def seed_users(session) -> dict[str, AppUser]:
    """Insert one user per role if the table is empty."""
    if session.query(AppUser).count() > 0:
        print("  [SKIP] AppUser — table already has data.")
        return {u.username: u for u in session.query(AppUser).all()}

    users = [
        AppUser(
            username="admin",
            email="admin@prf-monitor.local",
            password_hash=hash_password("Admin123!"),
            full_name="System Administrator",
            role="ADMIN",
            department="IT",
        ),
        AppUser(
            username="doccon",
            email="doccon@prf-monitor.local",
            password_hash=hash_password("Doccon123!"),
            full_name="Document Control",
            role="DOCCON",
            department="IT",
        ),
        AppUser(
            username="viewer",
            email="viewer@prf-monitor.local",
            password_hash=hash_password("Viewer123!"),
            full_name="Read Only User",
            role="USER",
            department="Finance",
        ),
    ]
    session.add_all(users)
    session.flush()
    print(f"  [OK] AppUser — {len(users)} records inserted.")
    return {u.username: u for u in users}


def seed_accounts(session) -> dict[str, ChartOfAccounts]:
    """Insert a two-level chart of accounts."""
    if session.query(ChartOfAccounts).count() > 0:
        print("  [SKIP] ChartOfAccounts — table already has data.")
        return {a.coa_code: a for a in session.query(ChartOfAccounts).all()}

    capex = ChartOfAccounts(
        coa_code="MTIR", coa_name="IT Capital Expenditure", category="Capital",
        expense_type="CAPEX", department="IT",
    )
    opex = ChartOfAccounts(
        coa_code="MTIO", coa_name="IT Operating Expenditure", category="Operations",
        expense_type="OPEX", department="IT",
    )
    session.add_all([capex, opex])
    session.flush()

    # code, name, category, expense type, department, parent
    rows = [
        ("MTIRMRAD496001", "Computer Hardware", "Hardware", "CAPEX", "IT", capex),
        ("MTIRMRAD496002", "Network Equipment", "Hardware", "CAPEX", "IT", capex),
        ("MTIRMRAD496003", "Software Licenses", "Software", "CAPEX", "IT", capex),
        ("MTIOMRAD496101", "Cloud Services", "Services", "OPEX", "IT", opex),
        ("MTIOMRAD496102", "IT Maintenance", "Services", "OPEX", "IT", opex),
        ("MTIOMRAD496103", "Office Supplies", "Supplies", "OPEX", "General Affairs", opex),
    ]
    children = [
        ChartOfAccounts(
            coa_code=code, coa_name=name, category=category,
            expense_type=expense_type, department=department, parent_coa_id=parent.id,
        )
        for code, name, category, expense_type, department, parent in rows
    ]
    session.add_all(children)
    session.flush()
    print(f"  [OK] ChartOfAccounts — {len(children) + 2} records inserted.")
    return {a.coa_code: a for a in [capex, opex, *children]}


def seed_budgets(session, accounts: dict[str, ChartOfAccounts], admin: AppUser) -> None:
    """Insert one annual budget per leaf account for the seed year."""
    if session.query(Budget).count() > 0:
        print("  [SKIP] Budget — table already has data.")
        return

    allocations = {
        "MTIRMRAD496001": 250_000_000,
        "MTIRMRAD496002": 120_000_000,
        "MTIRMRAD496003": 80_000_000,
        "MTIOMRAD496101": 60_000_000,
        "MTIOMRAD496102": 40_000_000,
        "MTIOMRAD496103": 0,
    }
    budgets = []
    for code, amount in allocations.items():
        account = accounts[code]
        budgets.append(
            Budget(
                coa_id=account.id,
                fiscal_year=YEAR,
                allocated_amount=_dec(amount),
                department=account.department,
                expense_type=account.expense_type,
                start_date=_d(1, 1),
                end_date=_d(12, 31),
                description=f"{account.coa_name} {YEAR}",
                created_by=admin.id,
            )
        )
    session.add_all(budgets)
    session.flush()
    print(f"  [OK] Budget — {len(budgets)} records inserted.")


def seed_prfs(session, users: dict[str, AppUser]) -> None:
    """Insert PRFs in several workflow states, each with items."""
    if session.query(PRF).count() > 0:
        print("  [SKIP] PRF — table already has data.")
        return

    doccon = users["doccon"]
    # no, cost code, title, amount, approved, status, submitted, items
    data = [
        (1, "MTIRMRAD496001", "Developer laptops", 90_000_000, 85_000_000, "Completed", _d(1, 15),
         [("Laptop 14in", 6, 14_000_000), ("Docking station", 6, 1_000_000)]),
        (2, "MTIRMRAD496002", "Core switch replacement", 75_000_000, 75_000_000, "Approved", _d(2, 3),
         [("Core switch 48p", 1, 75_000_000)]),
        (3, "MTIRMRAD496003", "IDE licenses", 24_000_000, None, "Under Review", _d(3, 10),
         [("IDE annual license", 12, 2_000_000)]),
        (4, "MTIOMRAD496101", "Cloud hosting Q2", 18_000_000, None, "Submitted", _d(4, 1),
         [("Hosting credits", 1, 18_000_000)]),
        (5, "MTIOMRAD496102", "UPS battery service", 9_500_000, None, "Rejected", _d(4, 20),
         [("Battery replacement", 5, 1_900_000)]),
        (6, "MTIOMRAD496103", "Printer paper", 3_000_000, 3_000_000, "Completed", _d(5, 2),
         [("A4 paper box", 30, 100_000)]),
        (7, "MTIRMRAD496999", "Legacy scanner", 7_000_000, 7_000_000, "Approved", _d(5, 18),
         [("Document scanner", 1, 7_000_000)]),
    ]

    prfs = []
    for seq, code, title, amount, approved, status, submitted, items in data:
        prf = PRF(
            prf_no=f"PRF-{YEAR}-{seq:04d}",
            title=title,
            description=title,
            requestor_id=doccon.id,
            department="IT",
            requested_amount=_dec(amount),
            approved_amount=_dec(approved) if approved is not None else None,
            priority="Medium",
            status=status,
            request_date=submitted,
            date_submit=submitted,
            submit_by=doccon.full_name,
            sum_description_requested=title,
            purchase_cost_code=code,
            required_for="IT Department",
            budget_year=YEAR,
            approval_date=submitted + timedelta(days=7) if approved is not None else None,
        )
        prf.items = [
            PRFItem(
                item_name=name,
                quantity=qty,
                unit_price=_dec(price),
                total_price=_dec(price * qty),
                status=map_item_status(status),
            )
            for name, qty, price in items
        ]
        prfs.append(prf)

    session.add_all(prfs)
    session.flush()
    print(f"  [OK] PRF — {len(prfs)} records inserted (with items).")


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run the complete seed process within a single database transaction."""
    print("=" * 60)
    print("  PRF & Budget Monitor — Seed Data Script")
    print(f"  Fiscal year: {YEAR}")
    print("=" * 60)

    session = SessionLocal()
    try:
        print("\n[1/4] Users...")
        users = seed_users(session)

        print("\n[2/4] Chart of Accounts...")
        accounts = seed_accounts(session)

        print("\n[3/4] Budgets...")
        admin = users.get("admin") or next(iter(users.values()))
        seed_budgets(session, accounts, admin)

        print("\n[4/4] PRFs and items...")
        if "doccon" in users:
            seed_prfs(session, users)
        else:
            print("  [SKIP] PRF — seed user 'doccon' not present.")

        session.commit()
        print("\n" + "=" * 60)
        print("  Seed completed successfully.")
        print("=" * 60)

    except Exception as exc:
        session.rollback()
        print("\n[ERROR] Seed failed — rolled back.")
        print(f"  Detail: {exc}")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
