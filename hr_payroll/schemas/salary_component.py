from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime

from hr_payroll.models.salary_component import ComponentType, CalculationType


class SalaryComponentBase(BaseModel):
    """Base schema for salary component data."""
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=30, pattern="^[A-Za-z0-9_]+$")
    type: ComponentType
    calculation_type: CalculationType = CalculationType.FIXED
    default_value: Optional[float] = Field(None, ge=0)
    is_taxable: bool = True
    is_statutory: bool = False
    is_active: bool = True
    order: int = 0


class SalaryComponentCreate(SalaryComponentBase):
    """Schema for creating a new salary component."""
    pass


class SalaryComponentUpdate(BaseModel):
    """Schema for updating a salary component. Only provided fields change."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=30, pattern="^[A-Za-z0-9_]+$")
    type: Optional[ComponentType] = None
    calculation_type: Optional[CalculationType] = None
    default_value: Optional[float] = Field(None, ge=0)
    is_taxable: Optional[bool] = None
    is_statutory: Optional[bool] = None
    is_active: Optional[bool] = None
    order: Optional[int] = None


class SalaryComponentResponse(SalaryComponentBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SalaryComponentDetail(SalaryComponentResponse):
    structure_usage: int = 0
    payslip_usage: int = 0


class GroupedComponents(BaseModel):
    earnings: List[SalaryComponentResponse] = []
    deductions: List[SalaryComponentResponse] = []
    reimbursements: List[SalaryComponentResponse] = []


class SalaryComponentListResponse(BaseModel):
    components: List[SalaryComponentResponse]
    grouped: GroupedComponents
    total: int


class ComponentOrderItem(BaseModel):
    id: int
    order: Optional[int] = None


class ComponentOrderRequest(BaseModel):
    components: List[ComponentOrderItem]
