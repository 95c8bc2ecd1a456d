from __future__ import annotations

import pytest

from prf_monitor.models import Budget
from prf_monitor.services import reconciliation_service
from prf_monitor.services.reconciliation_service import (
    cost_code_status,
    utilization_level,
    utilization_pct,
)


@pytest.mark.parametrize(
    "spent, allocated, expected",
    [
        (50, 200, 25.0),
        (1, 3, 33.33),
        (300, 200, 150.0),
        (10, 0, 0.0),
        (0, 0, 0.0),
    ],
)
def test_utilization_pct(spent, allocated, expected):
    assert utilization_pct(spent, allocated) == expected


def test_utilization_level_thresholds():
    assert utilization_level(95) == "Critical"
    assert utilization_level(90) == "Critical"
    assert utilization_level(80) == "High"
    assert utilization_level(50) == "Medium"
    assert utilization_level(10) == "Low"


def test_cost_code_status():
    assert cost_code_status(120, 100) == "Over Budget"
    assert cost_code_status(20, 100) == "Under Budget"
    assert cost_code_status(70, 100) == "On Track"
    assert cost_code_status(0, 0) == "Under Budget"


def _duplicate_pair(db, make_account, make_budget):
    account = make_account("DUPE")
    small = make_budget(account, 2025, 100)
    # Bypasses the one-budget-per-year check done by the service layer
    big = Budget(coa_id=account.id, fiscal_year=2025, allocated_amount=500)
    db.add(big)
    db.commit()
    db.refresh(big)
    return account, small, big


def test_duplicate_budgets_keep_largest(client, db, viewer_headers, make_account, make_budget):
    account, small, big = _duplicate_pair(db, make_account, make_budget)

    groups = client.get("/api/reconciliation/duplicate-budgets", headers=viewer_headers).json()
    assert len(groups) == 1
    assert groups[0]["coa_code"] == "DUPE"
    assert groups[0]["keep_id"] == big.id
    assert sorted(groups[0]["budget_ids"]) == sorted([small.id, big.id])


def test_dedupe_dry_run_then_apply(client, db, doccon_headers, admin_headers, make_account, make_budget):
    _account, small, big = _duplicate_pair(db, make_account, make_budget)

    forbidden = client.post("/api/reconciliation/dedupe-budgets", headers=doccon_headers)
    assert forbidden.status_code == 403

    dry = client.post("/api/reconciliation/dedupe-budgets", headers=admin_headers).json()
    assert dry["dry_run"] is True
    assert dry["removed_ids"] == [small.id]
    assert db.query(Budget).count() == 2

    applied = client.post(
        "/api/reconciliation/dedupe-budgets?apply=true", headers=admin_headers
    ).json()
    assert applied["dry_run"] is False
    assert applied["kept_ids"] == [big.id]
    assert [b.id for b in db.query(Budget).all()] == [big.id]


def test_missing_cost_codes_and_unused_accounts(db, make_account, make_budget, make_prf):
    make_budget(make_account("BUDGETED"), 2025, 100)
    make_account("REFERENCED")
    make_account("IDLE")
    make_account("RETIRED", is_active=False)
    make_prf("M-1", purchase_cost_code="REFERENCED")
    make_prf("M-2", purchase_cost_code="GHOST", requested_amount=40, status="Approved")
    make_prf("M-3", purchase_cost_code="GHOST", requested_amount=60, status="Draft")

    missing = reconciliation_service.find_missing_cost_codes(db)
    assert [(m.purchase_cost_code, m.prf_count, m.total_spent) for m in missing] == [
        ("GHOST", 2, 40.0)
    ]

    unused = reconciliation_service.find_unused_accounts(db)
    assert [u.coa_code for u in unused] == ["IDLE"]


def test_report_counts_issues(client, db, viewer_headers, make_account, make_budget, make_prf):
    _duplicate_pair(db, make_account, make_budget)
    make_account("IDLE")
    make_prf("G-1", purchase_cost_code="GHOST")

    report = client.get("/api/reconciliation/report", headers=viewer_headers).json()
    assert len(report["duplicate_budget_groups"]) == 1
    assert len(report["missing_cost_codes"]) == 1
    assert len(report["unused_accounts"]) == 1
    assert report["orphaned_budgets"] == []
    assert report["issue_count"] == 3


def test_orphaned_budget_listed_and_utilization_refused(
    client, db, viewer_headers, doccon_headers, make_account, make_budget
):
    make_budget(make_account("KEPT"), 2025, 50)
    orphan = Budget(coa_id=9999, fiscal_year=2025, allocated_amount=100)
    db.add(orphan)
    db.commit()
    db.refresh(orphan)

    listed = client.get("/api/reconciliation/orphaned-budgets", headers=viewer_headers).json()
    assert listed == [
        {"budget_id": orphan.id, "coa_id": 9999, "fiscal_year": 2025, "allocated_amount": 100.0}
    ]

    util = client.get(f"/api/budgets/{orphan.id}/utilization", headers=viewer_headers)
    assert util.status_code == 422
    assert "account 9999" in util.json()["error"]["message"]

    recalc = client.post(f"/api/budgets/{orphan.id}/update-utilization", headers=doccon_headers)
    assert recalc.status_code == 422

    report = client.get("/api/reconciliation/report", headers=viewer_headers).json()
    assert [b["budget_id"] for b in report["orphaned_budgets"]] == [orphan.id]
