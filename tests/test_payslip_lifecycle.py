import pytest

from hr_payroll.core.exceptions import (
    BusinessRuleError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from hr_payroll.models import AuditLog, Payslip, PayslipStatus
from hr_payroll.services import payslip_lifecycle, payslip_service
from hr_payroll.services.payslip_lifecycle import allowed_sources, can_transition
from tests.conftest import TENANT_ID, OTHER_TENANT_ID, ACTOR_ID

DRAFT = PayslipStatus.DRAFT
PROCESSED = PayslipStatus.PROCESSED
PAID = PayslipStatus.PAID
CANCELLED = PayslipStatus.CANCELLED


@pytest.fixture
def make_payslip(db_session, make_employee, standard_structure):
    def _make(first_name="Asha", month=4, year=2024):
        employee = make_employee(first_name=first_name)
        standard_structure(employee)
        return payslip_service.generate_payslip(db_session, TENANT_ID, employee.id, month, year)
    return _make


@pytest.mark.parametrize("current, target, allowed", [
    (DRAFT, PROCESSED, True),
    (DRAFT, CANCELLED, True),
    (DRAFT, PAID, False),
    (DRAFT, DRAFT, False),
    (PROCESSED, PAID, True),
    (PROCESSED, CANCELLED, True),
    (PROCESSED, DRAFT, False),
    (PAID, CANCELLED, False),
    (PAID, DRAFT, False),
    (CANCELLED, DRAFT, False),
    (CANCELLED, PROCESSED, False),
])
def test_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_allowed_sources():
    assert allowed_sources(PAID) == {PROCESSED}
    assert allowed_sources(CANCELLED) == {DRAFT, PROCESSED}
    assert allowed_sources(DRAFT) == set()


def test_process_then_pay_stamps_timestamps(db_session, make_payslip):
    payslip = make_payslip()

    processed = payslip_lifecycle.set_payslip_status(db_session, TENANT_ID, payslip.id, PROCESSED, ACTOR_ID)
    assert processed.status == PROCESSED.value
    assert processed.processed_at is not None
    assert processed.paid_at is None

    paid = payslip_lifecycle.set_payslip_status(db_session, TENANT_ID, payslip.id, PAID, ACTOR_ID)
    assert paid.status == PAID.value
    assert paid.paid_at is not None
    assert paid.paid_by == ACTOR_ID

    actions = [e.action for e in db_session.query(AuditLog).filter(AuditLog.action == "STATUS_CHANGE").all()]
    assert len(actions) == 2


def test_draft_cannot_be_paid_directly(db_session, make_payslip):
    payslip = make_payslip()
    with pytest.raises(InvalidStatusTransitionError):
        payslip_lifecycle.set_payslip_status(db_session, TENANT_ID, payslip.id, PAID)


def test_cancelled_is_terminal(db_session, make_payslip):
    payslip = make_payslip()
    payslip_lifecycle.set_payslip_status(db_session, TENANT_ID, payslip.id, CANCELLED)
    with pytest.raises(InvalidStatusTransitionError) as exc:
        payslip_lifecycle.set_payslip_status(db_session, TENANT_ID, payslip.id, PROCESSED)
    assert exc.value.details == {"from": "CANCELLED", "to": "PROCESSED"}


def test_status_change_of_other_tenant_payslip_not_found(db_session, make_payslip):
    payslip = make_payslip()
    with pytest.raises(NotFoundError):
        payslip_lifecycle.set_payslip_status(db_session, OTHER_TENANT_ID, payslip.id, PROCESSED)


def test_bulk_status_only_touches_eligible_rows(db_session, make_payslip):
    draft = make_payslip(first_name="Asha")
    processed = make_payslip(first_name="Ben")
    cancelled = make_payslip(first_name="Chen")
    payslip_lifecycle.set_payslip_status(db_session, TENANT_ID, processed.id, PROCESSED)
    payslip_lifecycle.set_payslip_status(db_session, TENANT_ID, cancelled.id, CANCELLED)

    result = payslip_lifecycle.bulk_set_status(
        db_session, TENANT_ID, [draft.id, processed.id, cancelled.id, 9999], PAID, ACTOR_ID
    )
    assert result["updated_count"] == 1
    assert result["skipped_ids"] == [draft.id, cancelled.id, 9999]

    db_session.expire_all()
    assert db_session.get(Payslip, processed.id).status == PAID.value
    assert db_session.get(Payslip, processed.id).paid_by == ACTOR_ID
    assert db_session.get(Payslip, draft.id).status == DRAFT.value
    assert db_session.get(Payslip, cancelled.id).status == CANCELLED.value


def test_bulk_status_to_draft_rejected(db_session, make_payslip):
    payslip = make_payslip()
    with pytest.raises(ValidationError):
        payslip_lifecycle.bulk_set_status(db_session, TENANT_ID, [payslip.id], DRAFT)


def test_delete_draft_payslip(db_session, make_payslip):
    payslip = make_payslip()
    payslip_lifecycle.delete_payslip(db_session, TENANT_ID, payslip.id, ACTOR_ID)
    assert db_session.query(Payslip).count() == 0


def test_delete_processed_payslip_refused(db_session, make_payslip):
    payslip = make_payslip()
    payslip_lifecycle.set_payslip_status(db_session, TENANT_ID, payslip.id, PROCESSED)
    with pytest.raises(BusinessRuleError):
        payslip_lifecycle.delete_payslip(db_session, TENANT_ID, payslip.id)


def test_deleted_payslip_can_be_regenerated(db_session, make_payslip):
    payslip = make_payslip()
    user_id = payslip.user_id
    payslip_lifecycle.delete_payslip(db_session, TENANT_ID, payslip.id)

    regenerated = payslip_service.generate_payslip(db_session, TENANT_ID, user_id, 4, 2024)
    assert regenerated.id is not None
    assert regenerated.status == DRAFT.value
