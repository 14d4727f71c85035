"""Per-month payroll totals for a tenant."""
from typing import Any, Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from hr_payroll.core.config import settings
from hr_payroll.models.payslip import Payslip, PayslipStatus
from hr_payroll.services.payroll_period import validate_period


def get_payroll_summary(db: Session, tenant_id: int, month: int, year: int) -> Dict[str, Any]:
    """
    Aggregate every payslip of the period regardless of status; the status
    breakdown lets callers exclude CANCELLED themselves. A month without
    payslips yields zeros, not an error.
    """
    validate_period(month, year)
    precision = settings.payroll.money_precision

    count, gross, deductions, net = db.query(
        func.count(Payslip.id),
        func.coalesce(func.sum(Payslip.gross_earnings), 0.0),
        func.coalesce(func.sum(Payslip.total_deductions), 0.0),
        func.coalesce(func.sum(Payslip.net_salary), 0.0),
    ).filter(
        Payslip.tenant_id == tenant_id,
        Payslip.month == month,
        Payslip.year == year
    ).one()

    breakdown = {status.value: 0 for status in PayslipStatus}
    rows = db.query(Payslip.status, func.count(Payslip.id)).filter(
        Payslip.tenant_id == tenant_id,
        Payslip.month == month,
        Payslip.year == year
    ).group_by(Payslip.status).all()
    for status, status_count in rows:
        breakdown[status] = status_count

    return {
        "month": month,
        "year": year,
        "total_payslips": count,
        "total_gross_earnings": round(float(gross), precision),
        "total_deductions": round(float(deductions), precision),
        "total_net_salary": round(float(net), precision),
        "status_breakdown": breakdown,
    }
