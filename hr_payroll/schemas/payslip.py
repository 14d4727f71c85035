from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime

from hr_payroll.models.payslip import PayslipStatus


class PayslipGenerateRequest(BaseModel):
    user_id: int
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)


class BulkGenerateRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    user_ids: Optional[List[int]] = None


class PayslipStatusUpdate(BaseModel):
    status: PayslipStatus


class BulkStatusUpdate(BaseModel):
    payslip_ids: List[int] = Field(..., min_length=1)
    status: PayslipStatus


class PayslipComponentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    salary_component_id: Optional[int] = None
    component_name: str
    component_code: Optional[str] = None
    component_type: str
    amount: float


class PayslipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    user_id: int
    month: int
    year: int
    basic_salary: float
    gross_earnings: float
    total_deductions: float
    lop_deduction: float
    net_salary: float
    total_working_days: int
    days_worked: int
    leave_days: int
    unpaid_leave_days: int
    lop_days: int
    status: PayslipStatus
    generated_at: datetime
    processed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    paid_by: Optional[int] = None
    components: List[PayslipComponentResponse] = []


class GroupedPayslipComponents(BaseModel):
    earnings: List[PayslipComponentResponse] = []
    deductions: List[PayslipComponentResponse] = []
    reimbursements: List[PayslipComponentResponse] = []


class PayslipDetailResponse(PayslipResponse):
    grouped_components: GroupedPayslipComponents


class BulkGenerateSuccess(BaseModel):
    user_id: int
    employee_name: Optional[str] = None
    payslip_id: int
    net_salary: float


class BulkGenerateSkipped(BaseModel):
    user_id: int
    employee_name: Optional[str] = None
    reason: str
    existing_payslip_id: Optional[int] = None


class BulkGenerateFailed(BaseModel):
    user_id: int
    employee_name: Optional[str] = None
    error: str


class BulkGenerateCounts(BaseModel):
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0


class BulkGenerateResult(BaseModel):
    successful: List[BulkGenerateSuccess] = []
    skipped: List[BulkGenerateSkipped] = []
    failed: List[BulkGenerateFailed] = []
    counts: BulkGenerateCounts


class BulkStatusResult(BaseModel):
    status: PayslipStatus
    updated_count: int
    skipped_ids: List[int] = []


class PayrollSummaryResponse(BaseModel):
    month: int
    year: int
    total_payslips: int
    total_gross_earnings: float
    total_deductions: float
    total_net_salary: float
    status_breakdown: Dict[str, int]
