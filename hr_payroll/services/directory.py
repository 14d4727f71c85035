"""
Read adapters for the collaborator data payroll consumes but does not own:
the employee directory, attendance and approved leave.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from hr_payroll.models.employee import Employee
from hr_payroll.models.attendance import Attendance
from hr_payroll.models.leave_request import LeaveRequest, LeaveStatus


def get_employee(db: Session, tenant_id: int, user_id: int) -> Optional[Employee]:
    return db.query(Employee).filter(
        Employee.id == user_id,
        Employee.tenant_id == tenant_id
    ).first()


def list_attendance(
    db: Session,
    tenant_id: int,
    user_id: int,
    start: date,
    end: date
) -> List[Attendance]:
    """Attendance rows for one employee with start <= date <= end."""
    return db.query(Attendance).filter(
        Attendance.tenant_id == tenant_id,
        Attendance.user_id == user_id,
        Attendance.date >= start,
        Attendance.date <= end
    ).all()


def list_approved_leave(
    db: Session,
    tenant_id: int,
    user_id: int,
    start: date,
    end: date
) -> List[LeaveRequest]:
    """Approved leave requests overlapping [start, end], with their leave type loaded."""
    return db.query(LeaveRequest).options(
        joinedload(LeaveRequest.leave_type)
    ).filter(
        LeaveRequest.tenant_id == tenant_id,
        LeaveRequest.user_id == user_id,
        LeaveRequest.status == LeaveStatus.APPROVED.value,
        LeaveRequest.from_date <= end,
        LeaveRequest.to_date >= start
    ).all()
