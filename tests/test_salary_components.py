import pytest

from hr_payroll.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from hr_payroll.models import AuditLog, SalaryComponent
from hr_payroll.schemas.salary_component import (
    SalaryComponentCreate,
    SalaryComponentUpdate,
    ComponentOrderItem,
)
from hr_payroll.schemas.salary_structure import SalaryStructureUpdate, StructureComponentInput
from hr_payroll.services import payslip_service, salary_component_service, salary_structure_service
from hr_payroll.services.salary_component_service import DEFAULT_COMPONENTS
from tests.conftest import TENANT_ID, OTHER_TENANT_ID, ACTOR_ID

BASE = "/api/payroll/salary-components"


def _create(db_session, code="HRA", type="EARNING", **kwargs):
    data = SalaryComponentCreate(name=kwargs.pop("name", code.title()), code=code, type=type, **kwargs)
    return salary_component_service.create_component(db_session, TENANT_ID, data, actor_id=ACTOR_ID)


def test_create_component_uppercases_code(db_session):
    component = _create(db_session, code="hra")
    assert component.code == "HRA"
    assert component.tenant_id == TENANT_ID


def test_duplicate_code_is_a_conflict(db_session):
    _create(db_session, code="HRA")
    with pytest.raises(ConflictError):
        _create(db_session, code="hra", name="Another HRA")


def test_same_code_allowed_in_other_tenant(db_session, make_component):
    make_component("HRA", tenant_id=OTHER_TENANT_ID)
    component = _create(db_session, code="HRA")
    assert component.id is not None


def test_create_writes_audit_entry(db_session):
    component = _create(db_session, code="CONV")
    entry = db_session.query(AuditLog).filter(AuditLog.entity == "SalaryComponent").one()
    assert entry.action == "CREATE"
    assert entry.entity_id == component.id
    assert entry.user_id == ACTOR_ID
    assert entry.new_value["code"] == "CONV"


def test_list_groups_by_type(db_session, make_component):
    make_component("HRA", type="EARNING", order=2)
    make_component("DA", type="EARNING", order=1)
    make_component("PF", type="DEDUCTION")
    make_component("TRAVEL", type="REIMBURSEMENT")

    result = salary_component_service.list_components(db_session, TENANT_ID)
    assert result["total"] == 4
    assert [c.code for c in result["grouped"]["earnings"]] == ["DA", "HRA"]
    assert [c.code for c in result["grouped"]["deductions"]] == ["PF"]
    assert [c.code for c in result["grouped"]["reimbursements"]] == ["TRAVEL"]


def test_list_filters(db_session, make_component):
    make_component("HRA", type="EARNING")
    make_component("OLD", type="EARNING", is_active=False)
    make_component("PF", type="DEDUCTION", is_statutory=True)

    active = salary_component_service.list_components(db_session, TENANT_ID, is_active=True)
    assert {c.code for c in active["components"]} == {"HRA", "PF"}
    statutory = salary_component_service.list_components(db_session, TENANT_ID, is_statutory=True)
    assert [c.code for c in statutory["components"]] == ["PF"]
    earnings = salary_component_service.list_components(db_session, TENANT_ID, type="EARNING")
    assert {c.code for c in earnings["components"]} == {"HRA", "OLD"}


def test_get_component_from_other_tenant_is_not_found(db_session, make_component):
    foreign = make_component("HRA", tenant_id=OTHER_TENANT_ID)
    with pytest.raises(NotFoundError):
        salary_component_service.get_component(db_session, TENANT_ID, foreign.id)


def test_update_component_records_changes(db_session, make_component):
    component = make_component("HRA", default_value=10)
    updated = salary_component_service.update_component(
        db_session, TENANT_ID, component.id,
        SalaryComponentUpdate(default_value=20, name="HRA Revised"),
        actor_id=ACTOR_ID
    )
    assert updated.default_value == 20
    assert updated.name == "HRA Revised"

    entry = db_session.query(AuditLog).filter(AuditLog.action == "UPDATE").one()
    assert entry.changes["default_value"] == {"from": 10.0, "to": 20.0}


def test_update_to_existing_code_conflicts(db_session, make_component):
    make_component("HRA")
    other = make_component("DA")
    with pytest.raises(ConflictError):
        salary_component_service.update_component(
            db_session, TENANT_ID, other.id, SalaryComponentUpdate(code="hra")
        )


def test_delete_unused_component(db_session, make_component):
    component = make_component("BONUS")
    salary_component_service.delete_component(db_session, TENANT_ID, component.id)
    assert db_session.get(SalaryComponent, component.id) is None


def test_delete_statutory_component_refused(db_session, make_component):
    component = make_component("PF", type="DEDUCTION", is_statutory=True)
    with pytest.raises(BusinessRuleError):
        salary_component_service.delete_component(db_session, TENANT_ID, component.id)


def test_delete_component_used_by_structure_refused(db_session, make_employee, standard_components, standard_structure):
    standard_structure(make_employee())
    with pytest.raises(ConflictError) as exc:
        salary_component_service.delete_component(db_session, TENANT_ID, standard_components["HRA"].id)
    assert exc.value.error_code == "COMPONENT_IN_USE"
    assert exc.value.details["reason"] == "structure_reference"


def test_delete_component_kept_on_payslip_refused(db_session, make_employee, standard_components, standard_structure):
    employee = make_employee()
    structure = standard_structure(employee)
    payslip_service.generate_payslip(db_session, TENANT_ID, employee.id, 4, 2024)
    salary_structure_service.update_structure(
        db_session, TENANT_ID, structure.id,
        SalaryStructureUpdate(components=[
            StructureComponentInput(salary_component_id=standard_components["PF"].id, percentage=12)
        ])
    )

    with pytest.raises(ConflictError) as exc:
        salary_component_service.delete_component(db_session, TENANT_ID, standard_components["HRA"].id)
    assert exc.value.error_code == "COMPONENT_IN_USE"
    assert exc.value.details["reason"] == "payslip_reference"
    assert exc.value.details["structure_usage"] == 0
    assert "payslip" in exc.value.message


def test_type_change_refused_while_structures_use_component(
    db_session, make_employee, standard_components, standard_structure
):
    employee = make_employee()
    standard_structure(employee)

    with pytest.raises(ConflictError) as exc:
        salary_component_service.update_component(
            db_session, TENANT_ID, standard_components["HRA"].id, SalaryComponentUpdate(type="DEDUCTION")
        )
    assert exc.value.error_code == "COMPONENT_IN_USE"
    assert exc.value.details["reason"] == "type_change"

    payslip = payslip_service.generate_payslip(db_session, TENANT_ID, employee.id, 4, 2024)
    assert payslip.gross_earnings == 42000
    assert {c.component_code: c.component_type for c in payslip.components} == {"HRA": "EARNING", "PF": "DEDUCTION"}


def test_type_change_allowed_on_unused_component(db_session, make_component):
    component = make_component("BONUS")
    updated = salary_component_service.update_component(
        db_session, TENANT_ID, component.id, SalaryComponentUpdate(type="REIMBURSEMENT")
    )
    assert updated.type == "REIMBURSEMENT"


def test_reorder_ignores_other_tenants(db_session, make_component):
    first = make_component("HRA")
    second = make_component("DA")
    foreign = make_component("HRA", tenant_id=OTHER_TENANT_ID, order=7)

    updated = salary_component_service.reorder_components(db_session, TENANT_ID, [
        ComponentOrderItem(id=second.id),
        ComponentOrderItem(id=first.id, order=5),
        ComponentOrderItem(id=foreign.id, order=1),
    ])
    assert updated == 2
    db_session.expire_all()
    assert db_session.get(SalaryComponent, second.id).order == 0
    assert db_session.get(SalaryComponent, first.id).order == 5
    assert db_session.get(SalaryComponent, foreign.id).order == 7


def test_initialize_defaults_once(db_session):
    created = salary_component_service.initialize_default_components(db_session, TENANT_ID)
    assert created == len(DEFAULT_COMPONENTS)
    with pytest.raises(ConflictError):
        salary_component_service.initialize_default_components(db_session, TENANT_ID)


def test_api_create_and_get_component(client, headers):
    response = client.post(BASE, headers=headers, json={
        "name": "House Rent Allowance",
        "code": "hra",
        "type": "EARNING",
        "calculation_type": "PERCENTAGE",
        "default_value": 40,
    })
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["code"] == "HRA"

    detail = client.get(f"{BASE}/{body['data']['id']}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["structure_usage"] == 0


def test_api_rejects_unknown_type(client, headers):
    response = client.post(BASE, headers=headers, json={"name": "Odd", "code": "ODD", "type": "BONUS"})
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_api_duplicate_code_returns_409(client, headers, make_component):
    make_component("HRA")
    response = client.post(BASE, headers=headers, json={"name": "HRA", "code": "HRA", "type": "EARNING"})
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "CONFLICT"


def test_api_initialize_and_reorder(client, headers):
    response = client.post(f"{BASE}/initialize", headers=headers)
    assert response.status_code == 201
    assert response.json()["data"]["created"] == len(DEFAULT_COMPONENTS)

    listing = client.get(BASE, headers=headers, params={"type": "REIMBURSEMENT"}).json()["data"]
    ids = [c["id"] for c in listing["components"]]
    assert listing["total"] == 3

    response = client.put(f"{BASE}/order", headers=headers, json={"components": [{"id": i} for i in reversed(ids)]})
    assert response.status_code == 200
    assert response.json()["data"]["updated"] == 3


def test_api_delete_statutory_returns_400(client, headers, make_component):
    component = make_component("PF", type="DEDUCTION", is_statutory=True)
    response = client.delete(f"{BASE}/{component.id}", headers=headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "BUSINESS_RULE_VIOLATION"
