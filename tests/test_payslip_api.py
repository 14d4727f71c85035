from hr_payroll.models import Payslip
from tests.conftest import APRIL_2024

BASE = "/api/payroll/payslips"


def _generate(client, headers, user_id, month=4, year=2024):
    return client.post(f"{BASE}/generate", headers=headers, json={"user_id": user_id, "month": month, "year": year})


def test_generate_payslip(client, headers, make_employee, standard_structure, mark_attendance):
    employee = make_employee()
    standard_structure(employee)
    mark_attendance(employee, APRIL_2024[:20])

    response = _generate(client, headers, employee.id)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "DRAFT"
    assert body["data"]["net_salary"] == 34581.82
    assert body["data"]["lop_days"] == 2


def test_generate_twice_returns_409_with_existing_id(client, headers, make_employee, standard_structure):
    employee = make_employee()
    standard_structure(employee)
    first = _generate(client, headers, employee.id).json()["data"]

    response = _generate(client, headers, employee.id)
    assert response.status_code == 409
    error = response.json()["errors"][0]
    assert error["code"] == "PAYSLIP_ALREADY_EXISTS"
    assert error["details"]["existing_payslip_id"] == first["id"]


def test_generate_without_structure_returns_404(client, headers, make_employee):
    response = _generate(client, headers, make_employee().id)
    assert response.status_code == 404
    assert response.json()["errors"][0]["code"] == "NO_ACTIVE_STRUCTURE"


def test_generate_invalid_month_returns_422(client, headers, make_employee):
    response = _generate(client, headers, make_employee().id, month=13)
    assert response.status_code == 422


def test_get_payslip_groups_components(client, headers, make_employee, standard_structure):
    employee = make_employee()
    standard_structure(employee)
    payslip_id = _generate(client, headers, employee.id).json()["data"]["id"]

    response = client.get(f"{BASE}/{payslip_id}", headers=headers)
    assert response.status_code == 200
    grouped = response.json()["data"]["grouped_components"]
    assert [c["component_code"] for c in grouped["earnings"]] == ["HRA"]
    assert [c["component_code"] for c in grouped["deductions"]] == ["PF"]


def test_get_payslip_of_other_tenant_returns_404(client, headers, make_employee, standard_structure):
    employee = make_employee()
    standard_structure(employee)
    payslip_id = _generate(client, headers, employee.id).json()["data"]["id"]

    response = client.get(f"{BASE}/{payslip_id}", headers={**headers, "X-Tenant-ID": "2"})
    assert response.status_code == 404


def test_get_employee_payslip(client, headers, make_employee, standard_structure):
    employee = make_employee()
    standard_structure(employee)
    _generate(client, headers, employee.id)

    response = client.get(f"{BASE}/employee/{employee.id}/4/2024", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["month"] == 4

    missing = client.get(f"{BASE}/employee/{employee.id}/5/2024", headers=headers)
    assert missing.status_code == 404


def test_list_payslips_with_pagination(client, headers, make_employee, standard_structure):
    for name in ("Asha", "Ben", "Chen"):
        employee = make_employee(first_name=name)
        standard_structure(employee)
        _generate(client, headers, employee.id)

    response = client.get(BASE, headers=headers, params={"month": 4, "year": 2024, "limit": 2})
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["metadata"]["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}


def test_status_flow_over_http(client, headers, make_employee, standard_structure):
    employee = make_employee()
    standard_structure(employee)
    payslip_id = _generate(client, headers, employee.id).json()["data"]["id"]

    invalid = client.patch(f"{BASE}/{payslip_id}/status", headers=headers, json={"status": "PAID"})
    assert invalid.status_code == 409
    assert invalid.json()["errors"][0]["code"] == "INVALID_STATUS_TRANSITION"

    processed = client.patch(f"{BASE}/{payslip_id}/status", headers=headers, json={"status": "PROCESSED"})
    assert processed.status_code == 200
    assert processed.json()["data"]["processed_at"] is not None

    paid = client.patch(f"{BASE}/{payslip_id}/status", headers=headers, json={"status": "PAID"})
    assert paid.status_code == 200
    assert paid.json()["data"]["paid_by"] == 500

    delete = client.delete(f"{BASE}/{payslip_id}", headers=headers)
    assert delete.status_code == 400


def test_bulk_status_over_http(client, headers, make_employee, standard_structure):
    ids = []
    for name in ("Asha", "Ben"):
        employee = make_employee(first_name=name)
        standard_structure(employee)
        ids.append(_generate(client, headers, employee.id).json()["data"]["id"])

    response = client.patch(f"{BASE}/bulk-status", headers=headers, json={"payslip_ids": ids, "status": "PROCESSED"})
    assert response.status_code == 200
    assert response.json()["data"]["updated_count"] == 2
    assert response.json()["data"]["skipped_ids"] == []

    empty = client.patch(f"{BASE}/bulk-status", headers=headers, json={"payslip_ids": [], "status": "PROCESSED"})
    assert empty.status_code == 422


def test_delete_draft_over_http(client, headers, make_employee, standard_structure, db_session):
    employee = make_employee()
    standard_structure(employee)
    payslip_id = _generate(client, headers, employee.id).json()["data"]["id"]

    response = client.delete(f"{BASE}/{payslip_id}", headers=headers)
    assert response.status_code == 200
    assert db_session.query(Payslip).count() == 0


def test_summary_endpoint(client, headers, make_employee, standard_structure, mark_attendance):
    employee = make_employee()
    standard_structure(employee)
    mark_attendance(employee, APRIL_2024)
    _generate(client, headers, employee.id)

    response = client.get(f"{BASE}/summary", headers=headers, params={"month": 4, "year": 2024})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_payslips"] == 1
    assert data["total_net_salary"] == 38400
    assert data["status_breakdown"]["DRAFT"] == 1
