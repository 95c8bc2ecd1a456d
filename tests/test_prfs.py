from __future__ import annotations

from datetime import date, timedelta

import pytest

from prf_monitor.services.prf_service import map_item_status


def _create_prf(client, headers, prf_no="PRF-2025-0001", **extra):
    payload = {
        "prf_no": prf_no,
        "title": "Laptops",
        "requested_amount": 1000,
        "items": [
            {"item_name": "Laptop", "quantity": 2, "unit_price": 400},
            {"item_name": "Bag", "quantity": 4, "unit_price": 50},
        ],
        **extra,
    }
    response = client.post("/api/prfs/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.parametrize(
    "prf_status, expected",
    [
        ("Approved", "Approved"),
        ("Req. Approved", "Approved"),
        ("In transit", "Approved"),
        ("Completed", "Picked Up"),
        ("Rejected", "Cancelled"),
        ("Cancelled", "Cancelled"),
        ("On Hold", "On Hold"),
        ("Draft", "Pending"),
        ("Updated: waiting for quote", "Pending"),
        (None, "Pending"),
    ],
)
def test_map_item_status(prf_status, expected):
    assert map_item_status(prf_status) == expected


def test_create_prf_defaults(client, doccon_user, doccon_headers):
    body = _create_prf(client, doccon_headers)
    assert body["requestor_id"] == doccon_user.id
    assert body["request_date"] == date.today().isoformat()
    assert body["status"] == "Draft"
    assert [i["total_price"] for i in body["items"]] == [800, 200]
    assert {i["status"] for i in body["items"]} == {"Pending"}


def test_duplicate_prf_no_conflicts(client, doccon_headers):
    _create_prf(client, doccon_headers)
    response = client.post(
        "/api/prfs/", json={"prf_no": "PRF-2025-0001"}, headers=doccon_headers
    )
    assert response.status_code == 409


def test_unknown_account_rejected(client, doccon_headers):
    response = client.post(
        "/api/prfs/", json={"prf_no": "PRF-X", "coa_id": 999}, headers=doccon_headers
    )
    assert response.status_code == 422


def test_invalid_priority_rejected(client, doccon_headers):
    response = client.post(
        "/api/prfs/", json={"prf_no": "PRF-X", "priority": "Urgent"}, headers=doccon_headers
    )
    assert response.status_code == 422


def test_status_change_cascades_to_items(client, admin_user, doccon_headers):
    prf = _create_prf(client, doccon_headers)

    approved = client.put(
        f"/api/prfs/{prf['id']}", json={"status": "Approved"}, headers=doccon_headers
    ).json()
    assert {i["status"] for i in approved["items"]} == {"Approved"}
    assert approved["approval_date"] == date.today().isoformat()
    assert approved["approved_by"] is not None

    completed = client.put(
        f"/api/prfs/{prf['id']}", json={"status": "Completed"}, headers=doccon_headers
    ).json()
    assert {i["status"] for i in completed["items"]} == {"Picked Up"}
    assert completed["completion_date"] == date.today().isoformat()


def test_overridden_item_keeps_its_status(client, doccon_headers):
    prf = _create_prf(client, doccon_headers)
    laptop, bag = prf["items"]

    override = client.put(
        f"/api/prfs/items/{laptop['id']}", json={"status": "On Hold"}, headers=doccon_headers
    ).json()
    assert override["status_overridden"] is True

    updated = client.put(
        f"/api/prfs/{prf['id']}", json={"status": "Rejected"}, headers=doccon_headers
    ).json()
    statuses = {i["id"]: i["status"] for i in updated["items"]}
    assert statuses[laptop["id"]] == "On Hold"
    assert statuses[bag["id"]] == "Cancelled"

    reset = client.put(
        f"/api/prfs/items/{laptop['id']}",
        json={"status_overridden": False},
        headers=doccon_headers,
    ).json()
    assert reset["status_overridden"] is False
    assert reset["status"] == "Cancelled"


def test_update_item_recomputes_total(client, doccon_headers):
    prf = _create_prf(client, doccon_headers)
    item_id = prf["items"][0]["id"]
    body = client.put(
        f"/api/prfs/items/{item_id}", json={"quantity": 5}, headers=doccon_headers
    ).json()
    assert body["total_price"] == 2000


def test_add_items_follow_prf_status(client, doccon_headers):
    prf = _create_prf(client, doccon_headers, status="Approved")
    response = client.post(
        f"/api/prfs/{prf['id']}/items",
        json=[{"item_name": "Dock", "quantity": 1, "unit_price": 120}],
        headers=doccon_headers,
    )
    assert response.status_code == 201
    assert response.json()[0]["status"] == "Approved"

    items = client.get(f"/api/prfs/{prf['id']}/items", headers=doccon_headers).json()
    assert len(items) == 3

    empty = client.post(f"/api/prfs/{prf['id']}/items", json=[], headers=doccon_headers)
    assert empty.status_code == 400


def test_delete_item_admin_only(client, doccon_headers, admin_headers):
    prf = _create_prf(client, doccon_headers)
    item_id = prf["items"][0]["id"]
    assert client.delete(f"/api/prfs/items/{item_id}", headers=doccon_headers).status_code == 403
    assert client.delete(f"/api/prfs/items/{item_id}", headers=admin_headers).status_code == 200
    items = client.get(f"/api/prfs/{prf['id']}/items", headers=admin_headers).json()
    assert [i["item_name"] for i in items] == ["Bag"]


def test_list_search_and_with_items(client, doccon_headers, viewer_headers):
    _create_prf(client, doccon_headers, "PRF-2025-0001", title="Laptops")
    _create_prf(
        client, doccon_headers, "PRF-2025-0002", title="Network",
        items=[{"item_name": "Switch", "quantity": 1, "unit_price": 900}],
    )

    listing = client.get("/api/prfs/?search=network", headers=viewer_headers).json()
    assert [r["prf_no"] for r in listing["rows"]] == ["PRF-2025-0002"]
    assert listing["rows"][0]["items"] is None

    by_item = client.get("/api/prfs/with-items?search=switch", headers=viewer_headers).json()
    assert [r["prf_no"] for r in by_item["rows"]] == ["PRF-2025-0002"]
    assert by_item["rows"][0]["items"][0]["item_name"] == "Switch"

    plain = client.get("/api/prfs/?search=switch", headers=viewer_headers).json()
    assert plain["total"] == 0


def test_get_by_prf_no_and_statuses(client, doccon_headers):
    _create_prf(client, doccon_headers, "PRF-2025-0001", status="Submitted")
    _create_prf(client, doccon_headers, "PRF-2025-0002", status="Approved")

    found = client.get("/api/prfs/prfno/PRF-2025-0002", headers=doccon_headers)
    assert found.status_code == 200
    assert found.json()["status"] == "Approved"
    assert client.get("/api/prfs/prfno/NOPE", headers=doccon_headers).status_code == 404

    statuses = client.get("/api/prfs/filters/status", headers=doccon_headers).json()
    assert statuses == ["Approved", "Submitted"]


def test_statistics_for_fiscal_year(client, viewer_headers, make_prf):
    make_prf("S-1", status="Approved", requested_amount=100, approved_amount=90,
             request_date=date(2025, 1, 1), approval_date=date(2025, 1, 11))
    make_prf("S-2", status="Rejected", requested_amount=50,
             request_date=date(2025, 2, 1), approval_date=date(2025, 2, 6))
    make_prf("S-3", status="Submitted", requested_amount=10, request_date=date(2024, 5, 1))

    stats = client.get("/api/prfs/statistics?fiscal_year=2025", headers=viewer_headers).json()
    assert stats["total_prfs"] == 2
    assert stats["approved_prfs"] == 1
    assert stats["rejected_prfs"] == 1
    assert stats["pending_prfs"] == 0
    assert stats["total_requested_amount"] == 150
    assert stats["avg_processing_days"] == 7.5


def test_statistics_default_window(client, viewer_headers, make_prf):
    make_prf("W-1", status="Draft", request_date=date.today() - timedelta(days=400))
    make_prf("W-2", status="Draft", request_date=date.today() - timedelta(days=10))

    stats = client.get("/api/prfs/statistics", headers=viewer_headers).json()
    assert stats["total_prfs"] == 1
    assert stats["pending_prfs"] == 1
    assert stats["avg_processing_days"] == 10.0


def test_delete_prf_removes_items(client, doccon_headers, admin_headers):
    prf = _create_prf(client, doccon_headers)
    assert client.delete(f"/api/prfs/{prf['id']}", headers=doccon_headers).status_code == 403
    assert client.delete(f"/api/prfs/{prf['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/prfs/{prf['id']}", headers=admin_headers).status_code == 404
    item_id = prf["items"][0]["id"]
    assert client.put(
        f"/api/prfs/items/{item_id}", json={"quantity": 1}, headers=admin_headers
    ).status_code == 404


def test_bulk_delete_reports_missing_ids(client, doccon_headers, admin_headers):
    first = _create_prf(client, doccon_headers, "PRF-2025-0001")
    second = _create_prf(client, doccon_headers, "PRF-2025-0002")

    response = client.request(
        "DELETE",
        "/api/prfs/bulk",
        json={"ids": [first["id"], second["id"], 999]},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["deleted_count"] == 2
    assert body["total_requested"] == 3
    assert body["errors"] == ["PRF with ID 999 not found"]

    empty = client.request("DELETE", "/api/prfs/bulk", json={"ids": []}, headers=admin_headers)
    assert empty.status_code == 400
