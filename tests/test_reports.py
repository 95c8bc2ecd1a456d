from __future__ import annotations

from datetime import date


def _seed(make_account, make_budget, make_prf):
    hw = make_account("HW", "Hardware", category="Hardware", expense_type="CAPEX")
    cloud = make_account("CLOUD", "Cloud", category="Services", expense_type="OPEX")
    paper = make_account("PAPER", "Paper", category="Supplies", expense_type="OPEX",
                         department="General Affairs")
    zero = make_account("ZERO", "Zero", category="Hardware", expense_type="CAPEX")

    make_budget(hw, 2025, 1000)
    make_budget(cloud, 2025, 400)
    make_budget(paper, 2025, 200)
    make_budget(zero, 2025, 0)

    make_prf("R-1", purchase_cost_code="HW", budget_year=2025, requested_amount=600, status="Approved")
    make_prf("R-2", purchase_cost_code="CLOUD", budget_year=2025, requested_amount=500, status="Completed")
    make_prf("R-3", purchase_cost_code="ZERO", budget_year=2025, requested_amount=80, status="Approved")
    make_prf("R-4", purchase_cost_code="PAPER", budget_year=2025, requested_amount=90, status="Approved")
    make_prf("R-5", purchase_cost_code="HW", budget_year=2025, requested_amount=70, status="Submitted")
    make_prf("R-6", purchase_cost_code="HW", budget_year=2025, requested_amount=70, status="Rejected")


def test_dashboard(client, viewer_headers, make_account, make_budget, make_prf):
    _seed(make_account, make_budget, make_prf)
    body = client.get("/api/reports/dashboard?fiscal_year=2025", headers=viewer_headers).json()

    assert body["fiscal_year"] == 2025
    assert body["budget"]["total_budget"] == 1600
    assert body["budget"]["total_spent"] == 1270
    assert body["budget"]["over_budget_count"] == 2
    assert body["budget"]["total_budget_items"] == 4
    assert body["prfs"] == {
        "total_prfs": 6,
        "approved_prfs": 4,
        "pending_prfs": 1,
        "rejected_prfs": 1,
    }
    breakdown = {row["expense_type"]: row for row in body["expense_breakdown"]}
    assert breakdown["CAPEX"]["total_allocated"] == 1000
    assert breakdown["OPEX"]["budget_count"] == 2


def test_dashboard_defaults_to_current_year(client, viewer_headers):
    body = client.get("/api/reports/dashboard", headers=viewer_headers).json()
    assert body["fiscal_year"] == date.today().year
    assert body["budget"]["overall_utilization"] == 0.0


def test_utilization_report_groups_by_category(
    client, viewer_headers, make_account, make_budget, make_prf
):
    _seed(make_account, make_budget, make_prf)
    rows = client.get("/api/reports/utilization?fiscal_year=2025", headers=viewer_headers).json()

    assert [(r["category"], r["expense_type"]) for r in rows] == [
        ("Hardware", "CAPEX"),
        ("Services", "OPEX"),
        ("Supplies", "OPEX"),
    ]
    hardware = rows[0]
    assert hardware["budget_count"] == 2
    assert hardware["total_spent"] == 680
    assert hardware["utilization_percentage"] == 68.0


def test_unallocated_budgets(client, viewer_headers, make_account, make_budget, make_prf):
    _seed(make_account, make_budget, make_prf)
    body = client.get(
        "/api/reports/unallocated-budgets?fiscal_year=2025", headers=viewer_headers
    ).json()

    assert [(b["coa_code"], b["reason_type"]) for b in body["budgets"]] == [
        ("PAPER", "Non-IT Department"),
        ("ZERO", "Zero Allocation"),
    ]
    summary = body["summary"]
    assert summary["zero_allocation_count"] == 1
    assert summary["zero_allocation_spent"] == 80
    assert summary["non_it_budget"] == 200
    assert summary["non_it_spent"] == 90
    assert summary["total_items"] == 2


def test_reports_require_authentication(client, db):
    assert client.get("/api/reports/dashboard").status_code == 401
