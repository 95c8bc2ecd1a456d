from __future__ import annotations


def _create(client, headers, code, name="Account", **extra):
    payload = {"coa_code": code, "coa_name": name, **extra}
    return client.post("/api/coa/", json=payload, headers=headers)


def test_create_and_get_account(client, doccon_headers):
    response = _create(
        client, doccon_headers, "  MTIRMRAD496001 ", "IT Hardware",
        expense_type="CAPEX", department="IT",
    )
    assert response.status_code == 201
    body = response.json()
    assert body["coa_code"] == "MTIRMRAD496001"
    assert body["is_active"] is True

    detail = client.get(f"/api/coa/{body['id']}", headers=doccon_headers)
    assert detail.status_code == 200
    by_code = client.get("/api/coa/code/MTIRMRAD496001", headers=doccon_headers)
    assert by_code.json()["id"] == body["id"]


def test_duplicate_code_conflicts(client, doccon_headers):
    assert _create(client, doccon_headers, "DUP").status_code == 201
    response = _create(client, doccon_headers, "DUP")
    assert response.status_code == 409
    assert "already exists" in response.json()["error"]["message"]


def test_unknown_parent_rejected(client, doccon_headers):
    response = _create(client, doccon_headers, "CHILD", parent_coa_id=999)
    assert response.status_code == 422


def test_parent_cycle_rejected(client, doccon_headers, make_account):
    root = make_account("ROOT")
    child = make_account("CHILD", parent_coa_id=root.id)
    response = client.put(
        f"/api/coa/{root.id}", json={"parent_coa_id": child.id}, headers=doccon_headers
    )
    assert response.status_code == 422


def test_update_rejects_null_for_required_columns(client, db, doccon_headers, make_account):
    account = make_account("KEEP", "Keep Me")
    for field in ("coa_name", "coa_code", "is_active"):
        response = client.put(
            f"/api/coa/{account.id}", json={field: None}, headers=doccon_headers
        )
        assert response.status_code == 422, field

    bulk = client.put(
        "/api/coa/bulk/update",
        json={"ids": [account.id], "updates": {"coa_name": None}},
        headers=doccon_headers,
    )
    assert bulk.status_code == 422

    db.refresh(account)
    assert account.coa_name == "Keep Me"
    assert account.is_active is True

    cleared = client.put(
        f"/api/coa/{account.id}", json={"description": None}, headers=doccon_headers
    )
    assert cleared.status_code == 200


def test_missing_account_returns_404(client, viewer_headers):
    response = client.get("/api/coa/4242", headers=viewer_headers)
    assert response.status_code == 404
    assert response.json()["error"]["status_code"] == 404


def test_list_filters_and_pagination(client, viewer_headers, make_account):
    make_account("A1", expense_type="CAPEX")
    make_account("A2", expense_type="OPEX")
    make_account("A3", expense_type="OPEX", is_active=False)

    body = client.get("/api/coa/", headers=viewer_headers).json()
    assert body["total"] == 2
    assert [r["coa_code"] for r in body["rows"]] == ["A1", "A2"]

    opex = client.get("/api/coa/?expense_type=OPEX", headers=viewer_headers).json()
    assert [r["coa_code"] for r in opex["rows"]] == ["A2"]

    page = client.get("/api/coa/?page=2&page_size=1", headers=viewer_headers).json()
    assert page["page"] == 2
    assert [r["coa_code"] for r in page["rows"]] == ["A2"]


def test_hierarchy_paths(client, viewer_headers, make_account):
    root = make_account("R", "Root")
    mid = make_account("R1", "Middle", parent_coa_id=root.id)
    make_account("R11", "Leaf", parent_coa_id=mid.id)

    tree = client.get("/api/coa/hierarchy", headers=viewer_headers).json()
    assert len(tree) == 1
    leaf = tree[0]["children"][0]["children"][0]
    assert leaf["level"] == 2
    assert leaf["path"] == "Root > Middle > Leaf"

    roots = client.get("/api/coa/roots", headers=viewer_headers).json()
    assert [r["coa_code"] for r in roots] == ["R"]
    children = client.get(f"/api/coa/{root.id}/children", headers=viewer_headers).json()
    assert [c["coa_code"] for c in children] == ["R1"]


def test_soft_delete_requires_admin(client, doccon_headers, admin_headers, make_account):
    account = make_account("SOFT")
    assert client.delete(f"/api/coa/{account.id}", headers=doccon_headers).status_code == 403

    response = client.delete(f"/api/coa/{account.id}", headers=admin_headers)
    assert response.status_code == 200
    detail = client.get(f"/api/coa/{account.id}", headers=admin_headers).json()
    assert detail["is_active"] is False


def test_hard_delete_refused_while_referenced(client, admin_headers, make_account, make_budget):
    account = make_account("USED")
    make_budget(account, 2025, 1000)
    response = client.delete(f"/api/coa/{account.id}/hard", headers=admin_headers)
    assert response.status_code == 409

    unused = make_account("FREE")
    response = client.delete(f"/api/coa/{unused.id}/hard", headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"/api/coa/{unused.id}", headers=admin_headers).status_code == 404


def test_usage_counts_only_utilizing_prfs(client, viewer_headers, make_account, make_budget, make_prf):
    account = make_account("USAGE")
    make_budget(account, 2025, 5000)
    make_prf("P-1", purchase_cost_code="USAGE", requested_amount=100, approved_amount=80, status="Approved")
    make_prf("P-2", purchase_cost_code="USAGE", requested_amount=300, status="Draft")

    usage = client.get(f"/api/coa/{account.id}/usage", headers=viewer_headers).json()
    assert usage["prf_count"] == 2
    assert usage["budget_count"] == 1
    assert usage["total_prf_amount"] == 80
    assert usage["total_budget_amount"] == 5000


def test_statistics(client, viewer_headers, make_account):
    make_account("S1", expense_type="CAPEX")
    make_account("S2", expense_type="OPEX", department="Finance")
    make_account("S3", is_active=False)

    stats = client.get("/api/coa/statistics", headers=viewer_headers).json()
    assert stats["total_accounts"] == 3
    assert stats["active_accounts"] == 2
    assert stats["inactive_accounts"] == 1
    assert {row["key"]: row["count"] for row in stats["by_expense_type"]} == {"CAPEX": 1, "OPEX": 1}


def test_bulk_import_skips_existing(client, doccon_headers, make_account):
    make_account("B1")
    response = client.post(
        "/api/coa/bulk/import",
        json={"accounts": [
            {"coa_code": "B1", "coa_name": "Existing"},
            {"coa_code": "B2", "coa_name": "New"},
            {"coa_code": "B2", "coa_name": "Repeated"},
            {"coa_code": "B3", "coa_name": "Orphan", "parent_coa_id": 999},
        ]},
        headers=doccon_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 1
    assert body["skipped"] == 2
    assert len(body["errors"]) == 1


def test_bulk_update_and_delete(client, doccon_headers, admin_headers, make_account):
    a = make_account("U1")
    b = make_account("U2")

    response = client.put(
        "/api/coa/bulk/update",
        json={"ids": [a.id, b.id, 999], "updates": {"department": "Finance"}},
        headers=doccon_headers,
    )
    body = response.json()
    assert body["processed_count"] == 2
    assert body["errors"][0]["id"] == 999

    code_change = client.put(
        "/api/coa/bulk/update",
        json={"ids": [a.id], "updates": {"coa_code": "NEW"}},
        headers=doccon_headers,
    )
    assert code_change.status_code == 400

    empty = client.post("/api/coa/bulk/delete", json={"ids": []}, headers=admin_headers)
    assert empty.status_code == 400

    deleted = client.post(
        "/api/coa/bulk/delete", json={"ids": [a.id, b.id]}, headers=admin_headers
    ).json()
    assert deleted["processed_count"] == 2
