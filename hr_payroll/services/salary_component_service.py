"""
Salary Component Catalog Service

Tenant-scoped CRUD for the reusable earnings, deductions and reimbursements
that salary structures are built from.
"""

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
import logging

from hr_payroll.core.exceptions import (
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from hr_payroll.models.salary_component import SalaryComponent, ComponentType, CalculationType
from hr_payroll.models.salary_structure import SalaryStructureComponent
from hr_payroll.models.payslip import PayslipComponent
from hr_payroll.schemas.salary_component import (
    SalaryComponentCreate,
    SalaryComponentUpdate,
    ComponentOrderItem,
)
from hr_payroll.services.audit import AuditService, model_to_dict

logger = logging.getLogger(__name__)

DUPLICATE_CODE_MESSAGE = "A salary component with this code already exists"

DEFAULT_COMPONENTS: List[Dict[str, Any]] = [
    # Earnings
    {"name": "Basic Salary", "code": "BASIC", "type": "EARNING", "calculation_type": "FIXED", "is_taxable": True, "is_statutory": False, "order": 1},
    {"name": "House Rent Allowance", "code": "HRA", "type": "EARNING", "calculation_type": "PERCENTAGE", "default_value": 40, "is_taxable": True, "is_statutory": False, "order": 2},
    {"name": "Dearness Allowance", "code": "DA", "type": "EARNING", "calculation_type": "PERCENTAGE", "default_value": 10, "is_taxable": True, "is_statutory": False, "order": 3},
    {"name": "Conveyance Allowance", "code": "CONV", "type": "EARNING", "calculation_type": "FIXED", "default_value": 1600, "is_taxable": False, "is_statutory": False, "order": 4},
    {"name": "Medical Allowance", "code": "MED", "type": "EARNING", "calculation_type": "FIXED", "default_value": 1250, "is_taxable": False, "is_statutory": False, "order": 5},
    {"name": "Special Allowance", "code": "SPL", "type": "EARNING", "calculation_type": "FIXED", "is_taxable": True, "is_statutory": False, "order": 6},
    # Deductions
    {"name": "Provident Fund (Employee)", "code": "PF_EMP", "type": "DEDUCTION", "calculation_type": "PERCENTAGE", "default_value": 12, "is_taxable": False, "is_statutory": True, "order": 1},
    {"name": "Provident Fund (Employer)", "code": "PF_EMPR", "type": "DEDUCTION", "calculation_type": "PERCENTAGE", "default_value": 12, "is_taxable": False, "is_statutory": True, "order": 2},
    {"name": "ESI (Employee)", "code": "ESI_EMP", "type": "DEDUCTION", "calculation_type": "PERCENTAGE", "default_value": 0.75, "is_taxable": False, "is_statutory": True, "order": 3},
    {"name": "ESI (Employer)", "code": "ESI_EMPR", "type": "DEDUCTION", "calculation_type": "PERCENTAGE", "default_value": 3.25, "is_taxable": False, "is_statutory": True, "order": 4},
    {"name": "Professional Tax", "code": "PT", "type": "DEDUCTION", "calculation_type": "FIXED", "default_value": 200, "is_taxable": False, "is_statutory": True, "order": 5},
    {"name": "Income Tax (TDS)", "code": "TDS", "type": "DEDUCTION", "calculation_type": "FIXED", "is_taxable": False, "is_statutory": True, "order": 6},
    {"name": "Loan Recovery", "code": "LOAN", "type": "DEDUCTION", "calculation_type": "FIXED", "is_taxable": False, "is_statutory": False, "order": 7},
    # Reimbursements
    {"name": "Travel Reimbursement", "code": "TRAVEL_REIMB", "type": "REIMBURSEMENT", "calculation_type": "FIXED", "is_taxable": False, "is_statutory": False, "order": 1},
    {"name": "Food Reimbursement", "code": "FOOD_REIMB", "type": "REIMBURSEMENT", "calculation_type": "FIXED", "is_taxable": False, "is_statutory": False, "order": 2},
    {"name": "Mobile Reimbursement", "code": "MOBILE_REIMB", "type": "REIMBURSEMENT", "calculation_type": "FIXED", "is_taxable": False, "is_statutory": False, "order": 3},
]


def _enum_value(enum_cls, value, field_name: str) -> str:
    """Accept enum members or raw strings; reject anything outside the enum."""
    if isinstance(value, enum_cls):
        return value.value
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of {allowed}", details={"field": field_name})


def _find_by_code(db: Session, tenant_id: int, code: str, exclude_id: Optional[int] = None) -> Optional[SalaryComponent]:
    query = db.query(SalaryComponent).filter(
        SalaryComponent.tenant_id == tenant_id,
        func.upper(SalaryComponent.code) == code.upper()
    )
    if exclude_id is not None:
        query = query.filter(SalaryComponent.id != exclude_id)
    return query.first()


def get_component_or_404(db: Session, tenant_id: int, component_id: int) -> SalaryComponent:
    component = db.query(SalaryComponent).filter(
        SalaryComponent.id == component_id,
        SalaryComponent.tenant_id == tenant_id
    ).first()
    if not component:
        raise NotFoundError("Salary component not found")
    return component


def _usage_counts(db: Session, component_id: int) -> Dict[str, int]:
    structure_usage = db.query(func.count(SalaryStructureComponent.id)).filter(
        SalaryStructureComponent.salary_component_id == component_id
    ).scalar() or 0
    payslip_usage = db.query(func.count(PayslipComponent.id)).filter(
        PayslipComponent.salary_component_id == component_id
    ).scalar() or 0
    return {"structure_usage": structure_usage, "payslip_usage": payslip_usage}


def list_components(
    db: Session,
    tenant_id: int,
    type: Optional[str] = None,
    is_active: Optional[bool] = None,
    is_taxable: Optional[bool] = None,
    is_statutory: Optional[bool] = None
) -> Dict[str, Any]:
    """
    List catalog components ordered by type, display order and name,
    along with the same list grouped by component type.
    """
    query = db.query(SalaryComponent).filter(SalaryComponent.tenant_id == tenant_id)

    if type is not None:
        query = query.filter(SalaryComponent.type == _enum_value(ComponentType, type, "type"))
    if is_active is not None:
        query = query.filter(SalaryComponent.is_active == is_active)
    if is_taxable is not None:
        query = query.filter(SalaryComponent.is_taxable == is_taxable)
    if is_statutory is not None:
        query = query.filter(SalaryComponent.is_statutory == is_statutory)

    components = query.order_by(
        SalaryComponent.type.asc(),
        SalaryComponent.order.asc(),
        SalaryComponent.name.asc()
    ).all()

    return {
        "components": components,
        "grouped": {
            "earnings": [c for c in components if c.type == ComponentType.EARNING.value],
            "deductions": [c for c in components if c.type == ComponentType.DEDUCTION.value],
            "reimbursements": [c for c in components if c.type == ComponentType.REIMBURSEMENT.value],
        },
        "total": len(components),
    }


def get_component(db: Session, tenant_id: int, component_id: int) -> Dict[str, Any]:
    """Single component with how many structures and payslips reference it."""
    component = get_component_or_404(db, tenant_id, component_id)
    return {**model_to_dict(component), **_usage_counts(db, component.id)}


def create_component(
    db: Session,
    tenant_id: int,
    data: SalaryComponentCreate,
    actor_id: Optional[int] = None
) -> SalaryComponent:
    if not data.name or not data.code or not data.type:
        raise ValidationError("Name, code, and type are required")

    component_type = _enum_value(ComponentType, data.type, "type")
    calculation_type = _enum_value(CalculationType, data.calculation_type, "calculation_type")

    if _find_by_code(db, tenant_id, data.code):
        raise ConflictError(DUPLICATE_CODE_MESSAGE, details={"code": data.code.upper()})

    component = SalaryComponent(
        tenant_id=tenant_id,
        name=data.name,
        code=data.code.upper(),
        type=component_type,
        calculation_type=calculation_type,
        default_value=data.default_value,
        is_taxable=data.is_taxable,
        is_statutory=data.is_statutory,
        is_active=data.is_active,
        order=data.order,
    )
    db.add(component)
    try:
        db.commit()
        db.refresh(component)
    except IntegrityError:
        db.rollback()
        # Lost a race with a concurrent create of the same code
        raise ConflictError(DUPLICATE_CODE_MESSAGE, details={"code": data.code.upper()})
    except Exception:
        db.rollback()
        raise

    logger.info(f"Salary component {component.code} created for tenant {tenant_id}")
    AuditService.log(
        db, tenant_id,
        action="CREATE",
        entity="SalaryComponent",
        entity_id=component.id,
        user_id=actor_id,
        entity_name=component.name,
        new_value=model_to_dict(component),
    )
    return component


def update_component(
    db: Session,
    tenant_id: int,
    component_id: int,
    data: SalaryComponentUpdate,
    actor_id: Optional[int] = None
) -> SalaryComponent:
    component = get_component_or_404(db, tenant_id, component_id)
    old_value = model_to_dict(component)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("code") is not None:
        code = changes["code"].upper()
        if code != component.code and _find_by_code(db, tenant_id, code, exclude_id=component.id):
            raise ConflictError(DUPLICATE_CODE_MESSAGE, details={"code": code})
        changes["code"] = code
    if changes.get("type") is not None:
        changes["type"] = _enum_value(ComponentType, changes["type"], "type")
        if changes["type"] != component.type:
            usage = _usage_counts(db, component.id)
            # Structure totals were summed under the current type
            if usage["structure_usage"] > 0:
                raise ConflictError(
                    f"Cannot change type: Component is used in {usage['structure_usage']} salary structure(s)",
                    error_code="COMPONENT_IN_USE",
                    details={"reason": "type_change", **usage}
                )
    if changes.get("calculation_type") is not None:
        changes["calculation_type"] = _enum_value(CalculationType, changes["calculation_type"], "calculation_type")

    for field_name, value in changes.items():
        if value is None and field_name not in ("default_value",):
            continue
        setattr(component, field_name, value)

    try:
        db.commit()
        db.refresh(component)
    except IntegrityError:
        db.rollback()
        raise ConflictError(DUPLICATE_CODE_MESSAGE)
    except Exception:
        db.rollback()
        raise

    AuditService.log(
        db, tenant_id,
        action="UPDATE",
        entity="SalaryComponent",
        entity_id=component.id,
        user_id=actor_id,
        entity_name=component.name,
        old_value=old_value,
        new_value=model_to_dict(component),
    )
    return component


def delete_component(
    db: Session,
    tenant_id: int,
    component_id: int,
    actor_id: Optional[int] = None
) -> None:
    """
    Hard-delete a component that nothing references.
    Statutory components can only be deactivated.
    """
    component = get_component_or_404(db, tenant_id, component_id)
    usage = _usage_counts(db, component.id)

    if usage["structure_usage"] > 0:
        raise ConflictError(
            f"Cannot delete: Component is used in {usage['structure_usage']} salary structure(s)",
            error_code="COMPONENT_IN_USE",
            details={"reason": "structure_reference", **usage}
        )
    if usage["payslip_usage"] > 0:
        raise ConflictError(
            f"Cannot delete: Component is used in {usage['payslip_usage']} payslip(s)",
            error_code="COMPONENT_IN_USE",
            details={"reason": "payslip_reference", **usage}
        )
    if component.is_statutory:
        raise BusinessRuleError(
            "Cannot delete statutory components. Consider deactivating instead.",
            details={"reason": "statutory"}
        )

    old_value = model_to_dict(component)
    db.delete(component)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Salary component {old_value['code']} deleted for tenant {tenant_id}")
    AuditService.log(
        db, tenant_id,
        action="DELETE",
        entity="SalaryComponent",
        entity_id=component_id,
        user_id=actor_id,
        entity_name=old_value["name"],
        old_value=old_value,
    )


def reorder_components(
    db: Session,
    tenant_id: int,
    items: List[ComponentOrderItem],
    actor_id: Optional[int] = None
) -> int:
    """
    Set display order in bulk. Items without an explicit order take their
    position in the list. Ids outside the tenant are ignored.
    """
    updated = 0
    try:
        for index, item in enumerate(items):
            updated += db.query(SalaryComponent).filter(
                SalaryComponent.id == item.id,
                SalaryComponent.tenant_id == tenant_id
            ).update(
                {SalaryComponent.order: item.order if item.order is not None else index},
                synchronize_session=False
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    AuditService.log(
        db, tenant_id,
        action="UPDATE",
        entity="SalaryComponent",
        user_id=actor_id,
        entity_name="Component Order",
        new_value={"updated": updated},
    )
    return updated


def initialize_default_components(
    db: Session,
    tenant_id: int,
    actor_id: Optional[int] = None
) -> int:
    """Seed the standard catalog for a tenant that has no components yet."""
    existing_count = db.query(func.count(SalaryComponent.id)).filter(
        SalaryComponent.tenant_id == tenant_id
    ).scalar() or 0

    if existing_count > 0:
        raise ConflictError("Salary components already exist for this tenant")

    for definition in DEFAULT_COMPONENTS:
        db.add(SalaryComponent(tenant_id=tenant_id, is_active=True, **definition))
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    created = len(DEFAULT_COMPONENTS)
    logger.info(f"Seeded {created} default salary components for tenant {tenant_id}")
    AuditService.log(
        db, tenant_id,
        action="BULK_IMPORT",
        entity="SalaryComponent",
        user_id=actor_id,
        entity_name="Default Components",
        new_value={"count": created},
    )
    return created
