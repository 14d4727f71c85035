from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import date, datetime

from hr_payroll.models.salary_component import CalculationType


class StructureComponentInput(BaseModel):
    """
    A requested component line. Missing calculation_type, amount or percentage
    fall back to the catalog definition.
    """
    salary_component_id: int
    calculation_type: Optional[CalculationType] = None
    amount: Optional[float] = Field(None, ge=0)
    percentage: Optional[float] = Field(None, ge=0, le=100)


class SalaryStructureCreate(BaseModel):
    user_id: int
    ctc: float = Field(..., gt=0)
    basic_salary: float = Field(..., gt=0)
    effective_from: date
    remarks: Optional[str] = None
    components: List[StructureComponentInput] = []


class SalaryStructureUpdate(BaseModel):
    ctc: Optional[float] = Field(None, gt=0)
    basic_salary: Optional[float] = Field(None, gt=0)
    remarks: Optional[str] = None
    # None keeps the current lines (recomputed against the new basic)
    components: Optional[List[StructureComponentInput]] = None


class SalaryPreviewRequest(BaseModel):
    basic_salary: float = Field(..., gt=0)
    components: List[StructureComponentInput] = []


class StructureComponentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    salary_component_id: int
    calculation_type: str
    amount: Optional[float] = None
    percentage: Optional[float] = None
    calculated_amount: float
    component_name: Optional[str] = None
    component_code: Optional[str] = None
    component_type: Optional[str] = None


class SalaryStructureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    user_id: int
    ctc: float
    basic_salary: float
    gross_salary: float
    total_deductions: float
    net_salary: float
    effective_from: date
    effective_to: Optional[date] = None
    is_active: bool
    remarks: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    components: List[StructureComponentResponse] = []


class GroupedStructureComponents(BaseModel):
    earnings: List[StructureComponentResponse] = []
    deductions: List[StructureComponentResponse] = []
    reimbursements: List[StructureComponentResponse] = []


class EmployeeSalaryStructureResponse(SalaryStructureResponse):
    grouped_components: GroupedStructureComponents


class PreviewLine(BaseModel):
    salary_component_id: int
    component_name: str
    component_code: str
    component_type: str
    calculation_type: str
    amount: Optional[float] = None
    percentage: Optional[float] = None
    calculated_amount: float


class SalaryPreviewResponse(BaseModel):
    basic_salary: float
    gross_earnings: float
    total_reimbursements: float
    total_deductions: float
    gross_salary: float
    net_salary: float
    annual_ctc: float
    components: List[PreviewLine]
