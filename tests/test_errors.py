from __future__ import annotations


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["status_code"] == 404
    assert body["path"] == "/api/does-not-exist"
    assert body["method"] == "GET"
    assert "timestamp" in body


def test_not_found_detail_carried(client, viewer_headers):
    response = client.get("/api/prfs/31337", headers=viewer_headers)
    assert response.status_code == 404
    body = response.json()
    assert body["error"]["message"] == "PRF with ID 31337 not found."
    assert body["detail"] == "PRF with ID 31337 not found."


def test_validation_errors_listed(client, viewer_headers):
    response = client.get("/api/coa/?page=0", headers=viewer_headers)
    assert response.status_code == 422
    body = response.json()
    assert body["error"]["message"] == "Validation failed"
    assert isinstance(body["detail"], list)
    assert body["detail"][0]["loc"][-1] == "page"


def test_unauthorized_keeps_www_authenticate_header(client, db):
    response = client.get("/api/budgets/")
    assert response.status_code == 401
    assert response.headers.get("www-authenticate") == "Bearer"
