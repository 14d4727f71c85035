"""
Salary Structure Service Layer

Assigns versioned salary structures to employees and keeps the version chain
consistent: one active structure per employee, each superseded version closed
at the start date of its successor.

Architecture:
- Router -> Service (this module) -> Models
- calculate_structure_totals() is the only place component types are summed
  into totals; assignment, update and preview all go through it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, List, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from hr_payroll.core.config import settings
from hr_payroll.core.exceptions import (
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from hr_payroll.core.schemas import Pagination
from hr_payroll.models.salary_component import SalaryComponent, ComponentType, CalculationType
from hr_payroll.models.salary_structure import SalaryStructure, SalaryStructureComponent
from hr_payroll.models.payslip import Payslip
from hr_payroll.schemas.salary_structure import (
    SalaryStructureCreate,
    SalaryStructureUpdate,
    SalaryPreviewRequest,
    StructureComponentInput,
)
from hr_payroll.services import directory
from hr_payroll.services.audit import AuditService, model_to_dict
from hr_payroll.services.payroll_period import local_midnight_utc

logger = logging.getLogger(__name__)


@dataclass
class ResolvedComponent:
    """A requested structure line joined with its catalog definition."""
    salary_component_id: int
    name: str
    code: str
    type: ComponentType
    calculation_type: CalculationType
    amount: Optional[float]
    percentage: Optional[float]
    calculated_amount: float


@dataclass
class StructureTotals:
    basic_salary: float
    total_earnings: float = 0.0
    total_reimbursements: float = 0.0
    total_deductions: float = 0.0
    gross_earnings: float = 0.0
    gross_salary: float = 0.0
    net_salary: float = 0.0
    annual_ctc: float = 0.0
    components: List[ResolvedComponent] = field(default_factory=list)


def _money(value: float) -> float:
    return round(value, settings.payroll.money_precision)


def calculate_component_amount(
    calculation_type: CalculationType,
    basic_salary: float,
    amount: Optional[float] = None,
    percentage: Optional[float] = None
) -> float:
    """FIXED lines pay their amount; PERCENTAGE lines are a share of basic."""
    if calculation_type == CalculationType.FIXED:
        return _money(amount or 0.0)
    if calculation_type == CalculationType.PERCENTAGE:
        return _money(basic_salary * (percentage or 0.0) / 100)
    raise ValueError(f"Unhandled calculation type: {calculation_type}")


def calculate_structure_totals(basic_salary: float, components: Iterable[ResolvedComponent]) -> StructureTotals:
    """
    Pure arithmetic over resolved lines:
    gross = basic + earnings + reimbursements, net = gross - deductions.
    """
    totals = StructureTotals(basic_salary=basic_salary)
    for comp in components:
        if comp.type == ComponentType.EARNING:
            totals.total_earnings += comp.calculated_amount
        elif comp.type == ComponentType.REIMBURSEMENT:
            totals.total_reimbursements += comp.calculated_amount
        elif comp.type == ComponentType.DEDUCTION:
            totals.total_deductions += comp.calculated_amount
        else:
            raise ValueError(f"Unhandled component type: {comp.type}")
        totals.components.append(comp)

    totals.total_earnings = _money(totals.total_earnings)
    totals.total_reimbursements = _money(totals.total_reimbursements)
    totals.total_deductions = _money(totals.total_deductions)
    totals.gross_earnings = _money(basic_salary + totals.total_earnings)
    totals.gross_salary = _money(totals.gross_earnings + totals.total_reimbursements)
    totals.net_salary = _money(totals.gross_salary - totals.total_deductions)
    totals.annual_ctc = _money(totals.gross_salary * 12)
    return totals


def resolve_components(
    db: Session,
    tenant_id: int,
    basic_salary: float,
    requested: List[StructureComponentInput],
    allow_inactive: bool = False
) -> List[ResolvedComponent]:
    """
    Join requested lines with the tenant's catalog and compute each amount.
    Missing calculation type, amount or percentage fall back to the catalog.
    """
    ids = [item.salary_component_id for item in requested]
    if len(ids) != len(set(ids)):
        raise ValidationError("A salary component can only appear once in a structure")

    catalog: Dict[int, SalaryComponent] = {}
    if ids:
        catalog = {
            c.id: c
            for c in db.query(SalaryComponent).filter(
                SalaryComponent.tenant_id == tenant_id,
                SalaryComponent.id.in_(ids)
            ).all()
        }

    resolved = []
    for item in requested:
        definition = catalog.get(item.salary_component_id)
        if definition is None:
            raise NotFoundError(f"Salary component {item.salary_component_id} not found")
        if not definition.is_active and not allow_inactive:
            raise ValidationError(f"Salary component {definition.code} is inactive")

        calculation_type = CalculationType(item.calculation_type or definition.calculation_type)
        amount = item.amount
        percentage = item.percentage
        if calculation_type == CalculationType.FIXED and amount is None:
            amount = definition.default_value
        if calculation_type == CalculationType.PERCENTAGE and percentage is None:
            percentage = definition.default_value

        resolved.append(ResolvedComponent(
            salary_component_id=definition.id,
            name=definition.name,
            code=definition.code,
            type=ComponentType(definition.type),
            calculation_type=calculation_type,
            amount=amount if calculation_type == CalculationType.FIXED else None,
            percentage=percentage if calculation_type == CalculationType.PERCENTAGE else None,
            calculated_amount=calculate_component_amount(calculation_type, basic_salary, amount, percentage),
        ))
    return resolved


def _component_rows(totals: StructureTotals) -> List[SalaryStructureComponent]:
    return [
        SalaryStructureComponent(
            salary_component_id=c.salary_component_id,
            calculation_type=c.calculation_type.value,
            amount=c.amount,
            percentage=c.percentage,
            calculated_amount=c.calculated_amount,
        )
        for c in totals.components
    ]


def _apply_totals(structure: SalaryStructure, totals: StructureTotals) -> None:
    structure.basic_salary = totals.basic_salary
    structure.gross_salary = totals.gross_salary
    structure.total_deductions = totals.total_deductions
    structure.net_salary = totals.net_salary


def _structure_snapshot(structure: SalaryStructure) -> Dict[str, Any]:
    snapshot = model_to_dict(structure)
    snapshot["components"] = [model_to_dict(c) for c in structure.components]
    return snapshot


def _structure_query(db: Session, tenant_id: int):
    return db.query(SalaryStructure).options(
        selectinload(SalaryStructure.components).selectinload(SalaryStructureComponent.salary_component)
    ).filter(SalaryStructure.tenant_id == tenant_id)


def get_structure(db: Session, tenant_id: int, structure_id: int) -> SalaryStructure:
    structure = _structure_query(db, tenant_id).filter(SalaryStructure.id == structure_id).first()
    if not structure:
        raise NotFoundError("Salary structure not found")
    return structure


def get_active_structure(db: Session, tenant_id: int, user_id: int) -> Optional[SalaryStructure]:
    return _structure_query(db, tenant_id).filter(
        SalaryStructure.user_id == user_id,
        SalaryStructure.is_active.is_(True)
    ).first()


def group_structure_components(structure: SalaryStructure) -> Dict[str, list]:
    grouped = {"earnings": [], "deductions": [], "reimbursements": []}
    for comp in structure.components:
        component_type = ComponentType(comp.component_type)
        if component_type == ComponentType.EARNING:
            grouped["earnings"].append(comp)
        elif component_type == ComponentType.DEDUCTION:
            grouped["deductions"].append(comp)
        else:
            grouped["reimbursements"].append(comp)
    return grouped


def get_employee_structure(db: Session, tenant_id: int, user_id: int) -> Tuple[SalaryStructure, Dict[str, list]]:
    """The employee's current structure with its lines grouped by type."""
    structure = get_active_structure(db, tenant_id, user_id)
    if not structure:
        raise NotFoundError("No active salary structure found for this employee", error_code="NO_ACTIVE_STRUCTURE")
    return structure, group_structure_components(structure)


def get_structure_history(db: Session, tenant_id: int, user_id: int) -> List[SalaryStructure]:
    """All versions for an employee, newest first."""
    return _structure_query(db, tenant_id).filter(
        SalaryStructure.user_id == user_id
    ).order_by(SalaryStructure.effective_from.desc(), SalaryStructure.id.desc()).all()


def list_structures(
    db: Session,
    tenant_id: int,
    user_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: Optional[int] = None
) -> Tuple[List[SalaryStructure], Pagination]:
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    page = max(page, 1)

    query = _structure_query(db, tenant_id)
    if user_id is not None:
        query = query.filter(SalaryStructure.user_id == user_id)
    if is_active is not None:
        query = query.filter(SalaryStructure.is_active.is_(is_active))

    total = query.count()
    items = query.order_by(
        SalaryStructure.is_active.desc(),
        SalaryStructure.effective_from.desc(),
        SalaryStructure.id.desc()
    ).offset((page - 1) * limit).limit(limit).all()
    return items, Pagination.build(page, limit, total)


def assign_structure(
    db: Session,
    tenant_id: int,
    data: SalaryStructureCreate,
    actor_id: Optional[int] = None
) -> SalaryStructure:
    """
    Create a new structure version for an employee.

    The previous active version (if any) is closed with
    effective_to = data.effective_from in the same transaction that inserts
    the new one, so no reader ever sees zero or two active versions.
    """
    if not data.user_id or not data.ctc or not data.basic_salary or not data.effective_from:
        raise ValidationError("user_id, ctc, basic_salary, and effective_from are required")
    if data.ctc <= 0 or data.basic_salary <= 0:
        raise ValidationError("ctc and basic_salary must be positive")

    employee = directory.get_employee(db, tenant_id, data.user_id)
    if not employee:
        raise NotFoundError("Employee not found")
    if not employee.is_active:
        raise BusinessRuleError("Cannot assign a salary structure to an inactive employee")

    resolved = resolve_components(db, tenant_id, data.basic_salary, data.components)
    totals = calculate_structure_totals(data.basic_salary, resolved)

    try:
        previous = db.query(SalaryStructure).filter(
            SalaryStructure.tenant_id == tenant_id,
            SalaryStructure.user_id == data.user_id,
            SalaryStructure.is_active.is_(True)
        ).with_for_update().first()

        if previous is not None:
            if previous.effective_from > data.effective_from:
                raise ConflictError(
                    "effective_from must not be earlier than the current structure's start date",
                    details={"current_effective_from": previous.effective_from.isoformat()}
                )
            previous.is_active = False
            previous.effective_to = data.effective_from
            # Emit the deactivation before the insert so the active-version index never sees two rows
            db.flush()

        structure = SalaryStructure(
            tenant_id=tenant_id,
            user_id=data.user_id,
            ctc=data.ctc,
            effective_from=data.effective_from,
            is_active=True,
            remarks=data.remarks,
            created_by=actor_id,
            components=_component_rows(totals),
        )
        _apply_totals(structure, totals)
        db.add(structure)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Another salary structure was activated for this employee concurrently")
    except Exception:
        db.rollback()
        raise

    structure = get_structure(db, tenant_id, structure.id)
    logger.info(
        f"Salary structure {structure.id} assigned to employee {data.user_id} from {data.effective_from}",
        extra={"tenant_id": tenant_id, "superseded": previous.id if previous else None}
    )
    AuditService.log(
        db, tenant_id,
        action="CREATE",
        entity="SalaryStructure",
        entity_id=structure.id,
        user_id=actor_id,
        entity_name=employee.full_name,
        new_value=_structure_snapshot(structure),
    )
    return structure


def update_structure(
    db: Session,
    tenant_id: int,
    structure_id: int,
    data: SalaryStructureUpdate,
    actor_id: Optional[int] = None
) -> SalaryStructure:
    """
    Update amounts on a structure. A given component list replaces the
    existing lines wholesale; otherwise existing lines are recomputed
    against the (possibly new) basic salary.
    """
    structure = get_structure(db, tenant_id, structure_id)
    old_value = _structure_snapshot(structure)
    basic_salary = data.basic_salary if data.basic_salary is not None else structure.basic_salary

    if data.components is not None:
        resolved = resolve_components(db, tenant_id, basic_salary, data.components)
    else:
        current_lines = [
            StructureComponentInput(
                salary_component_id=c.salary_component_id,
                calculation_type=c.calculation_type,
                amount=c.amount,
                percentage=c.percentage,
            )
            for c in structure.components
        ]
        resolved = resolve_components(db, tenant_id, basic_salary, current_lines, allow_inactive=True)
    totals = calculate_structure_totals(basic_salary, resolved)

    try:
        if data.ctc is not None:
            structure.ctc = data.ctc
        if "remarks" in data.model_fields_set:
            structure.remarks = data.remarks
        # delete-orphan cascade removes the old lines in the same flush
        structure.components = _component_rows(totals)
        _apply_totals(structure, totals)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.expire_all()
    structure = get_structure(db, tenant_id, structure_id)
    AuditService.log(
        db, tenant_id,
        action="UPDATE",
        entity="SalaryStructure",
        entity_id=structure.id,
        user_id=actor_id,
        entity_name=structure.employee.full_name if structure.employee else None,
        old_value=old_value,
        new_value=_structure_snapshot(structure),
    )
    return structure


def _payslips_in_window(db: Session, tenant_id: int, structure: SalaryStructure) -> int:
    tz = settings.payroll.tzinfo
    window_start = local_midnight_utc(structure.effective_from, tz)
    if structure.effective_to is not None:
        window_end = local_midnight_utc(structure.effective_to, tz)
    else:
        window_end = datetime.now(timezone.utc)

    return db.query(func.count(Payslip.id)).filter(
        Payslip.tenant_id == tenant_id,
        Payslip.user_id == structure.user_id,
        Payslip.generated_at >= window_start,
        Payslip.generated_at <= window_end
    ).scalar() or 0


def delete_structure(
    db: Session,
    tenant_id: int,
    structure_id: int,
    actor_id: Optional[int] = None
) -> None:
    """A structure that payslips were generated under is part of payroll history and stays."""
    structure = get_structure(db, tenant_id, structure_id)

    payslip_count = _payslips_in_window(db, tenant_id, structure)
    if payslip_count > 0:
        raise ConflictError(
            f"Cannot delete: {payslip_count} payslip(s) exist for this salary period",
            error_code="STRUCTURE_IN_USE",
            details={"payslip_count": payslip_count}
        )

    old_value = _structure_snapshot(structure)
    entity_name = structure.employee.full_name if structure.employee else None
    db.delete(structure)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Salary structure {structure_id} deleted", extra={"tenant_id": tenant_id})
    AuditService.log(
        db, tenant_id,
        action="DELETE",
        entity="SalaryStructure",
        entity_id=structure_id,
        user_id=actor_id,
        entity_name=entity_name,
        old_value=old_value,
    )


def preview_calculation(db: Session, tenant_id: int, data: SalaryPreviewRequest) -> Dict[str, Any]:
    """What-if calculation for the structure editor. Reads the catalog, writes nothing."""
    if not data.basic_salary:
        raise ValidationError("Basic salary is required")

    resolved = resolve_components(db, tenant_id, data.basic_salary, data.components)
    totals = calculate_structure_totals(data.basic_salary, resolved)
    return {
        "basic_salary": totals.basic_salary,
        "gross_earnings": totals.gross_earnings,
        "total_reimbursements": totals.total_reimbursements,
        "total_deductions": totals.total_deductions,
        "gross_salary": totals.gross_salary,
        "net_salary": totals.net_salary,
        "annual_ctc": totals.annual_ctc,
        "components": [
            {
                "salary_component_id": c.salary_component_id,
                "component_name": c.name,
                "component_code": c.code,
                "component_type": c.type.value,
                "calculation_type": c.calculation_type.value,
                "amount": c.amount,
                "percentage": c.percentage,
                "calculated_amount": c.calculated_amount,
            }
            for c in totals.components
        ],
    }
