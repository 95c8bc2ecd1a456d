from __future__ import annotations

from datetime import date

from prf_monitor.models import ImportRecord, PRF
from prf_monitor.parsers import BudgetRowValidator, PRFRowValidator
from prf_monitor.schemas.prf_import import BudgetImportRow, PRFImportRow


def _row(**overrides):
    row = {
        "No": 1,
        "Budget": 2024,
        "Date Submit": "2024-03-11",
        "Submit By": "John Doe",
        "PRF No": "PRF-2024-0001",
        "Sum Description Requested": "IT Equipment Purchase",
        "Description": "Laptop for development team",
        "Purchase Cost Code": "MTIRMRAD496001",
        "Amount": 15000000,
        "Required for": "Development Team",
    }
    row.update(overrides)
    return row


# ---------------------------------------------------------------------------
# Row validators
# ---------------------------------------------------------------------------


def test_valid_row_has_no_issues():
    result = PRFRowValidator().validate([PRFImportRow.model_validate(_row())])
    assert result.ok
    assert result.warnings == []
    assert result.valid_records == 1


def test_invalid_row_reports_spreadsheet_row_numbers():
    rows = [
        PRFImportRow.model_validate(_row()),
        PRFImportRow.model_validate(_row(**{"Budget": 2019, "Amount": 0, "Submit By": " "})),
    ]
    result = PRFRowValidator().validate(rows)
    assert not result.ok
    assert {e["row"] for e in result.errors} == {3}
    assert {e["field"] for e in result.errors} == {"Budget", "Amount", "Submit By"}
    assert result.valid_records == 1


def test_numeric_cells_coerced_to_text():
    row = PRFImportRow.model_validate(_row(**{"PRF No": 1234.0, "Purchase Cost Code": 496001}))
    assert row.prf_no == "1234"
    assert row.purchase_cost_code == "496001"


def test_missing_optional_columns_are_warnings():
    row = PRFImportRow.model_validate(
        _row(**{"Sum Description Requested": "", "Purchase Cost Code": None, "Required for": ""})
    )
    result = PRFRowValidator().validate([row])
    assert result.ok
    assert len(result.warnings) == 3


def test_budget_row_rules():
    rows = [
        BudgetImportRow.model_validate(
            {"COA": "MTIR", "Category": "Hardware", "Initial Budget": 100, "Remaining Budget": 150}
        ),
        BudgetImportRow.model_validate({"COA": "", "Initial Budget": 0, "Remaining Budget": -1}),
    ]
    result = BudgetRowValidator().validate(rows)
    assert len(result.warnings) == 1
    assert {e["field"] for e in result.errors} == {
        "COA", "Category", "Initial Budget", "Remaining Budget",
    }


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


def test_template(client, viewer_headers):
    body = client.get("/api/import/prf/template", headers=viewer_headers).json()
    assert body["headers"][0] == "No"
    assert "PRF No" in body["instructions"]
    assert len(body["sample_data"]) == 1


def test_validate_endpoint(client, doccon_headers):
    response = client.post(
        "/api/import/prf/validate",
        json={"prf_data": [_row(), _row(**{"PRF No": None})]},
        headers=doccon_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert body["total_records"] == 2
    assert body["valid_records"] == 1


def test_empty_import_rejected(client, doccon_headers):
    response = client.post("/api/import/prf/bulk", json={"prf_data": []}, headers=doccon_headers)
    assert response.status_code == 422


def test_viewer_cannot_import(client, viewer_headers):
    response = client.post(
        "/api/import/prf/bulk", json={"prf_data": [_row()]}, headers=viewer_headers
    )
    assert response.status_code == 403


def test_validate_only_writes_audit_row(client, db, doccon_headers):
    response = client.post(
        "/api/import/prf/bulk",
        json={"prf_data": [_row()], "validate_only": True},
        headers=doccon_headers,
    )
    body = response.json()
    assert body["message"] == "Validation completed"
    assert body["imported_records"] == 0
    assert db.query(PRF).count() == 0
    record = db.query(ImportRecord).one()
    assert record.validate_only is True
    assert record.status == "SUCCESS"


def test_import_creates_completed_prfs(client, db, doccon_user, doccon_headers, make_account):
    account = make_account("MTIRMRAD496001")
    response = client.post(
        "/api/import/prf/bulk", json={"prf_data": [_row()]}, headers=doccon_headers
    )
    body = response.json()
    assert body["success"] is True
    assert body["imported_records"] == 1
    assert body["message"] == "Import completed. 1 records imported successfully."

    prf = db.query(PRF).one()
    assert prf.prf_no == "PRF-2024-0001"
    assert prf.status == "Completed"
    assert prf.department == "IT"
    assert prf.coa_id == account.id
    assert prf.requestor_id == doccon_user.id
    assert prf.budget_year == 2024
    assert prf.notes == "Imported from Excel; PRF No preserved from Excel"


def test_invalid_values_are_defaulted_and_noted(client, db, doccon_headers):
    row = _row(**{"PRF No": None, "Amount": -5, "Budget": 1999, "Description": "", "Date Submit": None})
    body = client.post(
        "/api/import/prf/bulk", json={"prf_data": [row]}, headers=doccon_headers
    ).json()
    assert body["imported_records"] == 1

    this_year = date.today().year
    prf = db.query(PRF).one()
    assert prf.prf_no == f"PRF-{this_year}-0001"
    assert float(prf.requested_amount) == 0
    assert prf.budget_year == this_year
    assert prf.description == "No description provided"
    assert prf.date_submit == date.today()
    assert "Amount was missing/invalid - set to 0" in prf.notes
    assert "PRF No was missing - auto-generated" in prf.notes
    assert "Validation issues: " in prf.notes


def test_duplicates_skipped_by_default(client, db, doccon_headers, make_prf):
    make_prf("PRF-2024-0001")
    body = client.post(
        "/api/import/prf/bulk", json={"prf_data": [_row()]}, headers=doccon_headers
    ).json()
    assert body["imported_records"] == 0
    assert body["skipped_records"] == 1
    assert body["warnings"][0]["message"] == "Duplicate PRF No: PRF-2024-0001 - skipped"


def test_duplicates_updated_when_requested(client, db, doccon_headers, make_prf):
    make_prf("PRF-2024-0001", submit_by="Old Name")
    body = client.post(
        "/api/import/prf/bulk",
        json={"prf_data": [_row()], "update_existing": True},
        headers=doccon_headers,
    ).json()
    assert body["imported_records"] == 1
    assert body["warnings"][0]["message"] == "Duplicate PRF No: PRF-2024-0001 - updated"
    db.expire_all()
    assert db.query(PRF).one().submit_by == "John Doe"


def test_duplicates_as_errors(client, db, doccon_headers):
    body = client.post(
        "/api/import/prf/bulk",
        json={"prf_data": [_row(), _row()], "skip_duplicates": False},
        headers=doccon_headers,
    ).json()
    assert body["success"] is False
    assert body["imported_records"] == 1
    assert body["errors"][0]["field"] == "PRF No"
    assert db.query(ImportRecord).one().status == "PARTIAL"


def test_history_most_recent_first(client, doccon_headers):
    for source in ("first.xlsx", "second.xlsx"):
        client.post(
            "/api/import/prf/bulk",
            json={"prf_data": [_row()], "validate_only": True, "source_name": source},
            headers=doccon_headers,
        )
    body = client.get("/api/import/prf/history", headers=doccon_headers).json()
    assert body["total"] == 2
    assert [r["source_name"] for r in body["rows"]] == ["second.xlsx", "first.xlsx"]
