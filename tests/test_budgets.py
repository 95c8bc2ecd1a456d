from __future__ import annotations

from datetime import date


def _budget_payload(coa_id, year=2025, allocated=1000, **extra):
    return {"coa_id": coa_id, "fiscal_year": year, "allocated_amount": allocated, **extra}


def test_create_budget_inherits_account_fields(client, doccon_headers, make_account):
    account = make_account("HW", expense_type="CAPEX", department="IT")
    response = client.post(
        "/api/budgets/", json=_budget_payload(account.id), headers=doccon_headers
    )
    assert response.status_code == 201
    body = response.json()
    assert body["department"] == "IT"
    assert body["expense_type"] == "CAPEX"
    assert body["coa_code"] == "HW"
    assert body["remaining_amount"] == 1000


def test_one_budget_per_account_and_year(client, doccon_headers, make_account):
    account = make_account("ONE")
    payload = _budget_payload(account.id)
    assert client.post("/api/budgets/", json=payload, headers=doccon_headers).status_code == 201
    response = client.post("/api/budgets/", json=payload, headers=doccon_headers)
    assert response.status_code == 409

    next_year = _budget_payload(account.id, year=2026)
    assert client.post("/api/budgets/", json=next_year, headers=doccon_headers).status_code == 201


def test_unknown_account_rejected(client, doccon_headers, db):
    response = client.post("/api/budgets/", json=_budget_payload(999), headers=doccon_headers)
    assert response.status_code == 422


def test_negative_allocation_rejected(client, doccon_headers, make_account):
    account = make_account("NEG")
    response = client.post(
        "/api/budgets/", json=_budget_payload(account.id, allocated=-5), headers=doccon_headers
    )
    assert response.status_code == 422
    assert response.json()["error"]["message"] == "Validation failed"


def test_update_rejects_inverted_dates(client, doccon_headers, make_account, make_budget):
    budget = make_budget(make_account("DT"), 2025, 100)
    response = client.put(
        f"/api/budgets/{budget.id}",
        json={"start_date": "2025-06-01", "end_date": "2025-01-01"},
        headers=doccon_headers,
    )
    assert response.status_code == 422


def test_update_rejects_null_for_required_columns(
    client, db, doccon_headers, make_account, make_budget
):
    budget = make_budget(make_account("NUL"), 2025, 100)
    for field in ("status", "budget_type", "utilized_amount", "allocated_amount"):
        response = client.put(
            f"/api/budgets/{budget.id}", json={field: None}, headers=doccon_headers
        )
        assert response.status_code == 422, field
        assert response.json()["detail"][0]["loc"][-1] == field

    db.refresh(budget)
    assert budget.status == "Active"
    assert budget.budget_type == "Annual"
    assert float(budget.allocated_amount) == 100

    nullable = client.put(
        f"/api/budgets/{budget.id}", json={"department": None}, headers=doccon_headers
    )
    assert nullable.status_code == 200


def test_live_utilization_uses_matching_prfs(
    client, viewer_headers, make_account, make_budget, make_prf
):
    account = make_account("LIVE")
    budget = make_budget(account, 2025, 1000)
    make_prf("L-1", purchase_cost_code="LIVE", budget_year=2025,
             requested_amount=500, approved_amount=400, status="Approved")
    make_prf("L-2", purchase_cost_code="LIVE", date_submit=date(2025, 3, 1),
             requested_amount=300, status="Completed")
    make_prf("L-3", purchase_cost_code="LIVE", budget_year=2025,
             requested_amount=900, status="Submitted")
    make_prf("L-4", purchase_cost_code="LIVE", budget_year=2024,
             requested_amount=900, status="Approved")

    util = client.get(f"/api/budgets/{budget.id}/utilization", headers=viewer_headers).json()
    assert util["utilized_amount"] == 700
    assert util["remaining_amount"] == 300
    assert util["utilization_percentage"] == 70.0
    assert util["utilization_level"] == "Medium"
    assert util["total_prfs"] == 3
    assert util["approved_prfs"] == 2
    assert util["pending_prfs"] == 1


def test_update_utilization_stores_live_spend(
    client, doccon_headers, make_account, make_budget, make_prf
):
    account = make_account("STORE")
    budget = make_budget(account, 2025, 1000)
    make_prf("S-1", purchase_cost_code="STORE", budget_year=2025,
             requested_amount=250, status="Approved")

    response = client.post(
        f"/api/budgets/{budget.id}/update-utilization", headers=doccon_headers
    )
    assert response.status_code == 200
    assert response.json()["utilized_amount"] == 250


def test_alerts_flag_over_budget_and_near_limit(
    client, viewer_headers, make_account, make_budget, make_prf
):
    over = make_account("OVER")
    near = make_account("NEAR")
    fine = make_account("FINE")
    make_budget(over, 2025, 100)
    make_budget(near, 2025, 100)
    make_budget(fine, 2025, 100)
    make_prf("A-1", purchase_cost_code="OVER", budget_year=2025, requested_amount=150, status="Approved")
    make_prf("A-2", purchase_cost_code="NEAR", budget_year=2025, requested_amount=95, status="Approved")
    make_prf("A-3", purchase_cost_code="FINE", budget_year=2025, requested_amount=10, status="Approved")

    alerts = client.get(
        "/api/budgets/alerts?threshold=90&fiscal_year=2025", headers=viewer_headers
    ).json()
    assert [(a["coa_code"], a["alert_type"]) for a in alerts] == [
        ("OVER", "Over Budget"),
        ("NEAR", "Near Limit"),
    ]
    assert alerts[0]["utilization_percentage"] == 150.0


def test_department_and_yearly_summary(
    client, viewer_headers, make_account, make_budget, make_prf
):
    make_budget(make_account("D1", department="IT"), 2025, 1000)
    make_budget(make_account("D2", department="Finance"), 2025, 500)
    make_prf("Y-1", purchase_cost_code="D1", budget_year=2025, requested_amount=250, status="Approved")

    dept = client.get(
        "/api/budgets/utilization/department/IT?fiscal_year=2025", headers=viewer_headers
    ).json()
    assert [row["coa_code"] for row in dept] == ["D1"]
    assert dept[0]["allocated_amount"] == 1000
    assert dept[0]["utilized_amount"] == 250

    summary = client.get("/api/budgets/utilization/summary/2025", headers=viewer_headers).json()
    assert summary["allocated_amount"] == 1500
    assert summary["utilized_amount"] == 250
    assert [d["department"] for d in summary["departments"]] == ["Finance", "IT"]


def test_cost_code_summary(client, viewer_headers, make_account, make_budget, make_prf):
    laptops = make_account("CC-LAPTOP", "Laptops")
    make_budget(laptops, 2025, 1000)
    make_budget(make_account("CC-IDLE", "Idle"), 2025, 500)
    make_prf("C-1", purchase_cost_code="CC-LAPTOP", budget_year=2025,
             requested_amount=1200, approved_amount=1100, status="Approved")
    make_prf("C-2", purchase_cost_code="CC-GHOST", budget_year=2025,
             requested_amount=50, status="Approved")

    body = client.get("/api/budgets/cost-codes?fiscal_year=2025", headers=viewer_headers).json()
    rows = {r["purchase_cost_code"]: r for r in body["cost_codes"]}

    assert rows["CC-LAPTOP"]["budget_status"] == "Over Budget"
    assert rows["CC-LAPTOP"]["utilization_percentage"] == 110.0
    assert rows["NO_COST_CODE_CC-IDLE"]["grand_total_allocated"] == 500
    assert rows["NO_COST_CODE_CC-IDLE"]["budget_status"] == "Under Budget"
    assert rows["CC-GHOST"]["coa_code"] is None
    assert body["summary"]["total_cost_codes"] == 3

    over_only = client.get(
        "/api/budgets/cost-codes?fiscal_year=2025&status=Over Budget", headers=viewer_headers
    ).json()
    assert [r["purchase_cost_code"] for r in over_only["cost_codes"]] == ["CC-LAPTOP", "CC-GHOST"]


def test_cost_code_search_fields(client, viewer_headers, make_account, make_budget, make_prf):
    make_budget(make_account("CC-NET", "Network Gear"), 2025, 300)
    make_budget(make_account("CC-PAPER", "Printer Paper"), 2025, 100)
    make_prf("Q-1", purchase_cost_code="CC-NET", budget_year=2025,
             requested_amount=40, status="Approved")
    make_prf("Q-2", purchase_cost_code="XYZ-77", budget_year=2025,
             requested_amount=20, status="Approved")

    def search(term):
        body = client.get(
            "/api/budgets/cost-codes", params={"search": term}, headers=viewer_headers
        ).json()
        return [r["purchase_cost_code"] for r in body["cost_codes"]]

    # cost code of a PRF with no account
    assert search("xyz") == ["XYZ-77"]
    # account code of a budget no PRF uses
    assert search("cc-paper") == ["NO_COST_CODE_CC-PAPER"]
    # account name only
    assert search("network") == ["CC-NET"]
    assert search("printer") == ["NO_COST_CODE_CC-PAPER"]
    assert search("nothing-like-this") == []


def test_code_used_in_another_year_is_not_reported_as_unused(
    client, viewer_headers, make_account, make_budget, make_prf
):
    make_budget(make_account("CC-OLD", "Old"), 2025, 100)
    make_prf("O-1", purchase_cost_code="CC-OLD", budget_year=2024,
             requested_amount=60, status="Approved")

    scoped = client.get("/api/budgets/cost-codes?fiscal_year=2025", headers=viewer_headers).json()
    assert "NO_COST_CODE_CC-OLD" not in [r["purchase_cost_code"] for r in scoped["cost_codes"]]

    every_year = client.get("/api/budgets/cost-codes", headers=viewer_headers).json()
    rows = {r["purchase_cost_code"]: r for r in every_year["cost_codes"]}
    assert set(rows) == {"CC-OLD"}
    assert rows["CC-OLD"]["grand_total_allocated"] == 100
    assert rows["CC-OLD"]["grand_total_approved"] == 60


def test_prf_cost_code_breakdown(client, doccon_headers, make_account, make_budget):
    account = make_account("BRK", "Breakdown")
    make_budget(account, 2025, 1000)
    created = client.post(
        "/api/prfs/",
        json={
            "prf_no": "PRF-2025-0100",
            "purchase_cost_code": "BRK",
            "budget_year": 2025,
            "requested_amount": 300,
            "status": "Approved",
            "items": [
                {"item_name": "Mouse", "quantity": 2, "unit_price": 50},
                {"item_name": "Keyboard", "quantity": 1, "unit_price": 200},
            ],
        },
        headers=doccon_headers,
    ).json()

    rows = client.get(
        f"/api/budgets/prf/{created['id']}/cost-codes", headers=doccon_headers
    ).json()
    assert len(rows) == 1
    row = rows[0]
    assert row["cost_code"] == "BRK"
    assert row["prf_spent"] == 300
    assert row["item_count"] == 2
    assert row["total_spent"] == 300
    assert row["remaining_budget"] == 700


def test_delete_budget_admin_only(client, doccon_headers, admin_headers, make_account, make_budget):
    budget = make_budget(make_account("DEL"), 2025, 10)
    assert client.delete(f"/api/budgets/{budget.id}", headers=doccon_headers).status_code == 403
    assert client.delete(f"/api/budgets/{budget.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/budgets/{budget.id}", headers=admin_headers).status_code == 404
