# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    employee, attendance, leave_request, audit_log,
    salary_component, salary_structure, payslip
)

# Explicit class exports for cleaner imports
from .employee import Employee
from .attendance import Attendance, AttendanceStatus
from .leave_request import LeaveRequest, LeaveType, LeaveStatus
from .audit_log import AuditLog
from .salary_component import SalaryComponent, ComponentType, CalculationType
from .salary_structure import SalaryStructure, SalaryStructureComponent
from .payslip import Payslip, PayslipComponent, PayslipStatus

__all__ = [
    "Employee",
    "Attendance",
    "AttendanceStatus",
    "LeaveRequest",
    "LeaveType",
    "LeaveStatus",
    "AuditLog",
    "SalaryComponent",
    "ComponentType",
    "CalculationType",
    "SalaryStructure",
    "SalaryStructureComponent",
    "Payslip",
    "PayslipComponent",
    "PayslipStatus",
]
