"""
Salary Component Router

Catalog endpoints. All business rules live in salary_component_service.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hr_payroll.core.schemas import ApiResponse
from hr_payroll.database import get_db
from hr_payroll.models.salary_component import ComponentType
from hr_payroll.routers.deps import get_current_tenant, get_current_actor
from hr_payroll.schemas.salary_component import (
    SalaryComponentCreate,
    SalaryComponentUpdate,
    SalaryComponentResponse,
    SalaryComponentDetail,
    SalaryComponentListResponse,
    ComponentOrderRequest,
)
from hr_payroll.services import salary_component_service


router = APIRouter(prefix="/payroll/salary-components", tags=["Salary Components"])


@router.get("", response_model=ApiResponse[SalaryComponentListResponse])
def list_salary_components(
    type: Optional[ComponentType] = None,
    is_active: Optional[bool] = None,
    is_taxable: Optional[bool] = None,
    is_statutory: Optional[bool] = None,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    """List catalog components, flat and grouped by type."""
    result = salary_component_service.list_components(
        db, tenant_id,
        type=type,
        is_active=is_active,
        is_taxable=is_taxable,
        is_statutory=is_statutory,
    )
    return ApiResponse.ok(SalaryComponentListResponse.model_validate(result, from_attributes=True))


# Static paths are registered before /{component_id}
@router.put("/order", response_model=ApiResponse[dict])
def reorder_salary_components(
    payload: ComponentOrderRequest,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    updated = salary_component_service.reorder_components(db, tenant_id, payload.components, actor_id)
    return ApiResponse.ok({"updated": updated}, message="Component order updated successfully")


@router.post("/initialize", response_model=ApiResponse[dict], status_code=201)
def initialize_default_components(
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    """Seed the standard component catalog for a new tenant."""
    created = salary_component_service.initialize_default_components(db, tenant_id, actor_id)
    return ApiResponse.ok({"created": created}, message=f"Initialized {created} default salary components")


@router.get("/{component_id}", response_model=ApiResponse[SalaryComponentDetail])
def get_salary_component(
    component_id: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    result = salary_component_service.get_component(db, tenant_id, component_id)
    return ApiResponse.ok(SalaryComponentDetail.model_validate(result))


@router.post("", response_model=ApiResponse[SalaryComponentResponse], status_code=201)
def create_salary_component(
    payload: SalaryComponentCreate,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    component = salary_component_service.create_component(db, tenant_id, payload, actor_id)
    return ApiResponse.ok(
        SalaryComponentResponse.model_validate(component),
        message="Salary component created successfully"
    )


@router.put("/{component_id}", response_model=ApiResponse[SalaryComponentResponse])
def update_salary_component(
    component_id: int,
    payload: SalaryComponentUpdate,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    component = salary_component_service.update_component(db, tenant_id, component_id, payload, actor_id)
    return ApiResponse.ok(
        SalaryComponentResponse.model_validate(component),
        message="Salary component updated successfully"
    )


@router.delete("/{component_id}", response_model=ApiResponse[dict])
def delete_salary_component(
    component_id: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    salary_component_service.delete_component(db, tenant_id, component_id, actor_id)
    return ApiResponse.ok({"id": component_id}, message="Salary component deleted successfully")
