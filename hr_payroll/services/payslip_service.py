"""
Payslip Service Layer

Turns an employee's active salary structure plus the month's attendance and
approved leave into a DRAFT payslip, and serves payslip reads.

Generation pipeline (one employee, one month):
1. refuse if a payslip already exists for the period
2. load the active structure
3. count working days, present days and paid/unpaid leave days
4. derive loss-of-pay days and the LOP deduction from the daily rate
5. snapshot the structure lines and persist everything in one commit

Steps 3-4 are pure functions over plain data so they can be tested without a
database. Storage uniqueness on (tenant, user, month, year) is the final
authority against concurrent generation.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, List, Optional, Tuple
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from hr_payroll.core.config import settings
from hr_payroll.core.exceptions import (
    NoActiveStructureError,
    NotFoundError,
    PayslipAlreadyExistsError,
    ValidationError,
)
from hr_payroll.core.schemas import Pagination
from hr_payroll.models.attendance import AttendanceStatus
from hr_payroll.models.payslip import Payslip, PayslipComponent, PayslipStatus
from hr_payroll.models.salary_component import ComponentType, CalculationType
from hr_payroll.models.salary_structure import SalaryStructure
from hr_payroll.services import directory
from hr_payroll.services.audit import AuditService, model_to_dict
from hr_payroll.services.payroll_period import PayrollPeriod, inclusive_day_count, validate_period
from hr_payroll.services.salary_structure_service import (
    ResolvedComponent,
    calculate_structure_totals,
    get_active_structure,
)

logger = logging.getLogger(__name__)

# Attendance statuses that count as a day worked
PRESENT_STATUSES = frozenset({
    AttendanceStatus.PRESENT.value,
    AttendanceStatus.HALF_DAY.value,
    AttendanceStatus.LATE.value,
})


@dataclass
class PayslipLine:
    salary_component_id: Optional[int]
    component_name: str
    component_code: Optional[str]
    component_type: ComponentType
    amount: float


@dataclass
class PayslipBreakdown:
    basic_salary: float
    gross_earnings: float
    component_deductions: float
    lop_deduction: float
    total_deductions: float
    net_salary: float
    total_working_days: int
    present_days: int
    days_worked: int
    paid_leave_days: int
    unpaid_leave_days: int
    lop_days: int
    per_day_salary: float
    lines: List[PayslipLine] = field(default_factory=list)


def _money(value: float) -> float:
    return round(value, settings.payroll.money_precision)


def count_present_days(statuses: Iterable[str]) -> int:
    return sum(1 for status in statuses if status in PRESENT_STATUSES)


def count_leave_days(leaves: Iterable[Tuple[Any, Any, bool]], period: PayrollPeriod) -> Tuple[int, int]:
    """
    Sum (paid, unpaid) leave days inside the period. Each leave is a
    (from_date, to_date, is_paid) triple clipped to the month; leaves outside
    the month contribute nothing. Overlapping leaves are summed as-is.
    """
    paid = unpaid = 0
    for from_date, to_date, is_paid in leaves:
        clipped = period.clip(from_date, to_date)
        if clipped is None:
            continue
        days = inclusive_day_count(*clipped)
        if is_paid:
            paid += days
        else:
            unpaid += days
    return paid, unpaid


def calculate_lop(total_working_days: int, present_days: int, paid_leave_days: int) -> Tuple[int, int]:
    """
    Returns (days_worked, lop_days). Days worked is capped at the working
    days of the month so that days_worked + lop_days == total_working_days.
    """
    if total_working_days <= 0:
        return present_days + paid_leave_days, 0
    days_worked = min(present_days + paid_leave_days, total_working_days)
    return days_worked, max(0, total_working_days - days_worked)


def calculate_payslip(
    basic_salary: float,
    gross_salary: float,
    lines: List[PayslipLine],
    period: PayrollPeriod,
    attendance_statuses: Iterable[str],
    leaves: Iterable[Tuple[Any, Any, bool]]
) -> PayslipBreakdown:
    """
    Pure payslip arithmetic.

    gross_earnings   = basic + earnings + reimbursements
    total_deductions = deduction lines + lop_days * gross_salary / working_days
    net_salary       = gross_earnings - total_deductions
    """
    total_working_days = period.working_days
    present_days = count_present_days(attendance_statuses)
    paid_leave_days, unpaid_leave_days = count_leave_days(leaves, period)
    days_worked, lop_days = calculate_lop(total_working_days, present_days, paid_leave_days)

    if total_working_days > 0:
        per_day_salary = gross_salary / total_working_days
    else:
        # No working days means nothing to prorate against; pay gross without LOP
        per_day_salary = 0.0
    lop_deduction = _money(lop_days * per_day_salary)

    totals = calculate_structure_totals(basic_salary, [
        ResolvedComponent(
            salary_component_id=line.salary_component_id,
            name=line.component_name,
            code=line.component_code,
            type=line.component_type,
            calculation_type=CalculationType.FIXED,
            amount=line.amount,
            percentage=None,
            calculated_amount=line.amount,
        )
        for line in lines
    ])

    gross_earnings = totals.gross_salary
    total_deductions = _money(totals.total_deductions + lop_deduction)
    return PayslipBreakdown(
        basic_salary=basic_salary,
        gross_earnings=gross_earnings,
        component_deductions=totals.total_deductions,
        lop_deduction=lop_deduction,
        total_deductions=total_deductions,
        net_salary=_money(gross_earnings - total_deductions),
        total_working_days=total_working_days,
        present_days=present_days,
        days_worked=days_worked,
        paid_leave_days=paid_leave_days,
        unpaid_leave_days=unpaid_leave_days,
        lop_days=lop_days,
        per_day_salary=per_day_salary,
        lines=list(lines),
    )


def snapshot_structure_lines(structure: SalaryStructure) -> List[PayslipLine]:
    """Freeze the structure's calculated amounts; later catalog edits do not touch payslips."""
    return [
        PayslipLine(
            salary_component_id=comp.salary_component_id,
            component_name=comp.salary_component.name,
            component_code=comp.salary_component.code,
            component_type=ComponentType(comp.salary_component.type),
            amount=comp.calculated_amount,
        )
        for comp in structure.components
    ]


def _payslip_query(db: Session, tenant_id: int):
    return db.query(Payslip).options(
        selectinload(Payslip.components)
    ).filter(Payslip.tenant_id == tenant_id)


def find_payslip(db: Session, tenant_id: int, user_id: int, month: int, year: int) -> Optional[Payslip]:
    return _payslip_query(db, tenant_id).filter(
        Payslip.user_id == user_id,
        Payslip.month == month,
        Payslip.year == year
    ).first()


def generate_payslip(
    db: Session,
    tenant_id: int,
    user_id: int,
    month: int,
    year: int,
    actor_id: Optional[int] = None
) -> Payslip:
    """
    Generate a DRAFT payslip for one employee and month.

    Raises:
        ValidationError: missing or out-of-range user_id/month/year
        PayslipAlreadyExistsError: the period already has a payslip
        NoActiveStructureError: the employee has no active salary structure
    """
    if not user_id:
        raise ValidationError("userId, month, and year are required")
    validate_period(month, year)
    period = PayrollPeriod(year=year, month=month)

    existing = find_payslip(db, tenant_id, user_id, month, year)
    if existing:
        raise PayslipAlreadyExistsError(existing.id)

    structure = get_active_structure(db, tenant_id, user_id)
    if not structure:
        raise NoActiveStructureError(user_id)

    attendance = directory.list_attendance(db, tenant_id, user_id, period.start, period.end)
    leaves = directory.list_approved_leave(db, tenant_id, user_id, period.start, period.end)

    breakdown = calculate_payslip(
        basic_salary=structure.basic_salary,
        gross_salary=structure.gross_salary,
        lines=snapshot_structure_lines(structure),
        period=period,
        attendance_statuses=[a.status for a in attendance],
        leaves=[(leave.from_date, leave.to_date, bool(leave.leave_type and leave.leave_type.is_paid)) for leave in leaves],
    )

    payslip = Payslip(
        tenant_id=tenant_id,
        user_id=user_id,
        month=month,
        year=year,
        basic_salary=breakdown.basic_salary,
        gross_earnings=breakdown.gross_earnings,
        total_deductions=breakdown.total_deductions,
        lop_deduction=breakdown.lop_deduction,
        net_salary=breakdown.net_salary,
        total_working_days=breakdown.total_working_days,
        days_worked=breakdown.days_worked,
        leave_days=breakdown.paid_leave_days,
        unpaid_leave_days=breakdown.unpaid_leave_days,
        lop_days=breakdown.lop_days,
        status=PayslipStatus.DRAFT.value,
        generated_at=datetime.now(timezone.utc),
        components=[
            PayslipComponent(
                salary_component_id=line.salary_component_id,
                component_name=line.component_name,
                component_code=line.component_code,
                component_type=line.component_type.value,
                amount=line.amount,
            )
            for line in breakdown.lines
        ],
    )
    db.add(payslip)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # A concurrent request stored the same period first
        winner = find_payslip(db, tenant_id, user_id, month, year)
        raise PayslipAlreadyExistsError(winner.id if winner else None)
    except Exception:
        db.rollback()
        raise

    payslip = get_payslip(db, tenant_id, payslip.id)
    logger.info(
        f"Payslip {payslip.id} generated for employee {user_id} ({period})",
        extra={"tenant_id": tenant_id, "lop_days": breakdown.lop_days, "net_salary": breakdown.net_salary}
    )
    AuditService.log(
        db, tenant_id,
        action="CREATE",
        entity="Payslip",
        entity_id=payslip.id,
        user_id=actor_id,
        entity_name=f"{payslip.employee.full_name if payslip.employee else user_id} - {month}/{year}",
        new_value=model_to_dict(payslip),
    )
    return payslip


def get_payslip(db: Session, tenant_id: int, payslip_id: int) -> Payslip:
    payslip = _payslip_query(db, tenant_id).filter(Payslip.id == payslip_id).first()
    if not payslip:
        raise NotFoundError("Payslip not found")
    return payslip


def group_payslip_components(payslip: Payslip) -> Dict[str, List[PayslipComponent]]:
    grouped = {"earnings": [], "deductions": [], "reimbursements": []}
    for comp in payslip.components:
        component_type = ComponentType(comp.component_type)
        if component_type == ComponentType.EARNING:
            grouped["earnings"].append(comp)
        elif component_type == ComponentType.DEDUCTION:
            grouped["deductions"].append(comp)
        else:
            grouped["reimbursements"].append(comp)
    return grouped


def get_payslip_detail(db: Session, tenant_id: int, payslip_id: int) -> Tuple[Payslip, Dict[str, List[PayslipComponent]]]:
    payslip = get_payslip(db, tenant_id, payslip_id)
    return payslip, group_payslip_components(payslip)


def get_employee_payslip(db: Session, tenant_id: int, user_id: int, month: int, year: int) -> Payslip:
    validate_period(month, year)
    payslip = find_payslip(db, tenant_id, user_id, month, year)
    if not payslip:
        raise NotFoundError("Payslip not found for this period")
    return payslip


def list_payslips(
    db: Session,
    tenant_id: int,
    user_id: Optional[int] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None
) -> Tuple[List[Payslip], Pagination]:
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    page = max(page, 1)

    query = _payslip_query(db, tenant_id)
    if user_id is not None:
        query = query.filter(Payslip.user_id == user_id)
    if month is not None:
        query = query.filter(Payslip.month == month)
    if year is not None:
        query = query.filter(Payslip.year == year)
    if status is not None:
        query = query.filter(Payslip.status == PayslipStatus(status).value)

    total = query.count()
    items = query.order_by(
        Payslip.year.desc(),
        Payslip.month.desc(),
        Payslip.user_id.asc()
    ).offset((page - 1) * limit).limit(limit).all()
    return items, Pagination.build(page, limit, total)
