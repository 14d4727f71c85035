"""
Bulk payroll run: generate payslips for every employee with an active
salary structure and report each outcome as success, skipped or failed.

One employee's failure never aborts the run. With more than one worker
configured, employees are processed on a thread pool, each worker in its own
database session; the report is sorted by user_id either way so it does not
depend on completion order.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session, joinedload

from hr_payroll.core.config import settings
from hr_payroll.core.exceptions import AppException, PayslipAlreadyExistsError
from hr_payroll.models.salary_structure import SalaryStructure
from hr_payroll.services.audit import AuditService
from hr_payroll.services.payroll_period import validate_period
from hr_payroll.services import payslip_service

logger = logging.getLogger(__name__)

SUCCESS = "success"
SKIPPED = "skipped"
FAILED = "failed"

Outcome = Tuple[str, Dict[str, Any]]


def _select_targets(
    db: Session,
    tenant_id: int,
    user_ids: Optional[List[int]] = None
) -> List[Tuple[int, Optional[str]]]:
    """(user_id, employee name) for each employee with an active structure."""
    query = db.query(SalaryStructure).options(
        joinedload(SalaryStructure.employee)
    ).filter(
        SalaryStructure.tenant_id == tenant_id,
        SalaryStructure.is_active.is_(True)
    )
    if user_ids:
        query = query.filter(SalaryStructure.user_id.in_(user_ids))

    return [
        (s.user_id, s.employee.full_name if s.employee else None)
        for s in query.order_by(SalaryStructure.user_id).all()
    ]


def generate_one(
    db: Session,
    tenant_id: int,
    user_id: int,
    employee_name: Optional[str],
    month: int,
    year: int,
    actor_id: Optional[int] = None
) -> Outcome:
    """Generate a single payslip and classify the result instead of raising."""
    try:
        payslip = payslip_service.generate_payslip(db, tenant_id, user_id, month, year, actor_id=actor_id)
        return SUCCESS, {
            "user_id": user_id,
            "employee_name": employee_name,
            "payslip_id": payslip.id,
            "net_salary": payslip.net_salary,
        }
    except PayslipAlreadyExistsError as e:
        return SKIPPED, {
            "user_id": user_id,
            "employee_name": employee_name,
            "reason": "Payslip already exists",
            "existing_payslip_id": e.existing_payslip_id,
        }
    except AppException as e:
        db.rollback()
        logger.warning(f"Bulk generation failed for employee {user_id}: {e.message}")
        return FAILED, {"user_id": user_id, "employee_name": employee_name, "error": e.message}
    except Exception as e:
        db.rollback()
        logger.error(f"Bulk generation failed for employee {user_id}: {e}", exc_info=True)
        return FAILED, {"user_id": user_id, "employee_name": employee_name, "error": str(e)}


def _generate_in_own_session(
    session_factory: Callable[[], Session],
    tenant_id: int,
    user_id: int,
    employee_name: Optional[str],
    month: int,
    year: int,
    actor_id: Optional[int]
) -> Outcome:
    db = session_factory()
    try:
        return generate_one(db, tenant_id, user_id, employee_name, month, year, actor_id)
    finally:
        db.close()


def bulk_generate(
    db: Session,
    tenant_id: int,
    month: int,
    year: int,
    user_ids: Optional[List[int]] = None,
    actor_id: Optional[int] = None,
    max_workers: Optional[int] = None,
    session_factory: Optional[Callable[[], Session]] = None
) -> Dict[str, Any]:
    """
    Generate payslips for all (or the listed) employees with an active
    structure. An empty user_ids list means every employee, the same as
    None. Listed employees without an active structure are left out of the
    report.

    Returns:
        dict with successful/skipped/failed lists, each sorted by user_id,
        and a counts summary.
    """
    validate_period(month, year)
    targets = _select_targets(db, tenant_id, user_ids)
    workers = max_workers or settings.payroll.bulk_max_workers

    if workers <= 1 or len(targets) <= 1:
        outcomes = [
            generate_one(db, tenant_id, user_id, name, month, year, actor_id)
            for user_id, name in targets
        ]
    else:
        if session_factory is None:
            from hr_payroll.database import SessionLocal
            session_factory = SessionLocal
        with ThreadPoolExecutor(max_workers=min(workers, len(targets))) as pool:
            futures = [
                pool.submit(_generate_in_own_session, session_factory, tenant_id, user_id, name, month, year, actor_id)
                for user_id, name in targets
            ]
            outcomes = [future.result() for future in futures]

    results: Dict[str, List[Dict[str, Any]]] = {SUCCESS: [], SKIPPED: [], FAILED: []}
    for kind, payload in outcomes:
        results[kind].append(payload)
    for entries in results.values():
        entries.sort(key=lambda entry: entry["user_id"])

    counts = {
        "total": len(targets),
        "successful": len(results[SUCCESS]),
        "skipped": len(results[SKIPPED]),
        "failed": len(results[FAILED]),
    }
    logger.info(
        f"Bulk payroll {month:02d}/{year}: {counts['successful']} generated, "
        f"{counts['skipped']} skipped, {counts['failed']} failed",
        extra={"tenant_id": tenant_id, "workers": workers}
    )
    AuditService.log(
        db, tenant_id,
        action="BULK_GENERATE",
        entity="Payslip",
        user_id=actor_id,
        entity_name=f"Bulk payslip generation - {month}/{year}",
        new_value={"month": month, "year": year, **counts},
    )
    return {
        "successful": results[SUCCESS],
        "skipped": results[SKIPPED],
        "failed": results[FAILED],
        "counts": counts,
    }
