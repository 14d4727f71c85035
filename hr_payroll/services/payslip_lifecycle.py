"""
Payslip status lifecycle.

    DRAFT ──> PROCESSED ──> PAID
      │           │
      └───────────┴──────> CANCELLED

PAID and CANCELLED are terminal. Every status write is conditional on the
status the caller observed, so two concurrent transitions cannot both win.
"""
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional, Any
import logging

from sqlalchemy.orm import Session

from hr_payroll.core.exceptions import (
    BusinessRuleError,
    InvalidStatusTransitionError,
    ValidationError,
)
from hr_payroll.models.payslip import Payslip, PayslipStatus
from hr_payroll.services.audit import AuditService, model_to_dict
from hr_payroll.services.payslip_service import get_payslip

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[PayslipStatus, FrozenSet[PayslipStatus]] = {
    PayslipStatus.DRAFT: frozenset({PayslipStatus.PROCESSED, PayslipStatus.CANCELLED}),
    PayslipStatus.PROCESSED: frozenset({PayslipStatus.PAID, PayslipStatus.CANCELLED}),
    PayslipStatus.PAID: frozenset(),
    PayslipStatus.CANCELLED: frozenset(),
}


def can_transition(current: PayslipStatus, target: PayslipStatus) -> bool:
    return PayslipStatus(target) in ALLOWED_TRANSITIONS[PayslipStatus(current)]


def allowed_sources(target: PayslipStatus) -> FrozenSet[PayslipStatus]:
    """Statuses from which target can be reached in one step."""
    target = PayslipStatus(target)
    return frozenset(source for source, targets in ALLOWED_TRANSITIONS.items() if target in targets)


def _status_values(target: PayslipStatus, actor_id: Optional[int], now: datetime) -> Dict[Any, Any]:
    values: Dict[Any, Any] = {Payslip.status: target.value}
    if target == PayslipStatus.PROCESSED:
        values[Payslip.processed_at] = now
    elif target == PayslipStatus.PAID:
        values[Payslip.paid_at] = now
        values[Payslip.paid_by] = actor_id
    return values


def set_payslip_status(
    db: Session,
    tenant_id: int,
    payslip_id: int,
    status: PayslipStatus,
    actor_id: Optional[int] = None
) -> Payslip:
    """
    Move one payslip to a new status.

    Raises:
        NotFoundError: payslip does not belong to the tenant
        InvalidStatusTransitionError: the move is not in ALLOWED_TRANSITIONS
    """
    target = PayslipStatus(status)
    payslip = get_payslip(db, tenant_id, payslip_id)
    current = PayslipStatus(payslip.status)
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(current.value, target.value)

    old_value = model_to_dict(payslip)
    try:
        updated = db.query(Payslip).filter(
            Payslip.id == payslip_id,
            Payslip.tenant_id == tenant_id,
            Payslip.status == current.value
        ).update(_status_values(target, actor_id, datetime.now(timezone.utc)), synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.expire_all()
    payslip = get_payslip(db, tenant_id, payslip_id)
    if updated == 0:
        # Someone else moved it between our read and write
        raise InvalidStatusTransitionError(payslip.status, target.value)

    logger.info(
        f"Payslip {payslip_id} status {current.value} -> {target.value}",
        extra={"tenant_id": tenant_id, "actor_id": actor_id}
    )
    AuditService.log(
        db, tenant_id,
        action="STATUS_CHANGE",
        entity="Payslip",
        entity_id=payslip_id,
        user_id=actor_id,
        entity_name=f"{payslip.user_id} - {payslip.month}/{payslip.year}",
        old_value=old_value,
        new_value=model_to_dict(payslip),
    )
    return payslip


def bulk_set_status(
    db: Session,
    tenant_id: int,
    payslip_ids: List[int],
    status: PayslipStatus,
    actor_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Move many payslips to one status. Only rows whose current status allows
    the move are touched; the rest come back in skipped_ids.
    """
    if not payslip_ids:
        raise ValidationError("payslip_ids must not be empty")
    target = PayslipStatus(status)
    sources = allowed_sources(target)
    if not sources:
        raise ValidationError(f"Payslips cannot be moved to {target.value}")

    source_values = [s.value for s in sources]
    requested = list(dict.fromkeys(payslip_ids))
    eligible = [
        row.id
        for row in db.query(Payslip.id).filter(
            Payslip.tenant_id == tenant_id,
            Payslip.id.in_(requested),
            Payslip.status.in_(source_values)
        ).all()
    ]

    updated = 0
    if eligible:
        try:
            updated = db.query(Payslip).filter(
                Payslip.tenant_id == tenant_id,
                Payslip.id.in_(eligible),
                Payslip.status.in_(source_values)
            ).update(_status_values(target, actor_id, datetime.now(timezone.utc)), synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.expire_all()

    eligible_set = set(eligible)
    skipped_ids = [pid for pid in requested if pid not in eligible_set]

    logger.info(
        f"Bulk status {target.value}: {updated} updated, {len(skipped_ids)} skipped",
        extra={"tenant_id": tenant_id, "actor_id": actor_id}
    )
    AuditService.log(
        db, tenant_id,
        action="BULK_STATUS_CHANGE",
        entity="Payslip",
        user_id=actor_id,
        entity_name=f"Bulk status update to {target.value}",
        new_value={"status": target.value, "payslip_ids": eligible, "updated_count": updated},
    )
    return {"status": target, "updated_count": updated, "skipped_ids": skipped_ids}


def delete_payslip(
    db: Session,
    tenant_id: int,
    payslip_id: int,
    actor_id: Optional[int] = None
) -> None:
    """Only DRAFT payslips can be removed; anything later is payroll history."""
    payslip = get_payslip(db, tenant_id, payslip_id)
    if payslip.status != PayslipStatus.DRAFT.value:
        raise BusinessRuleError(
            "Only DRAFT payslips can be deleted",
            details={"status": payslip.status}
        )

    old_value = model_to_dict(payslip)
    entity_name = f"{payslip.user_id} - {payslip.month}/{payslip.year}"
    db.delete(payslip)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Payslip {payslip_id} deleted", extra={"tenant_id": tenant_id})
    AuditService.log(
        db, tenant_id,
        action="DELETE",
        entity="Payslip",
        entity_id=payslip_id,
        user_id=actor_id,
        entity_name=entity_name,
        old_value=old_value,
    )
