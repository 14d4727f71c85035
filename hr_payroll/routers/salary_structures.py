"""
Salary Structure Router

Versioned per-employee salary structures and the what-if calculator.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hr_payroll.core.config import settings
from hr_payroll.core.schemas import ApiResponse
from hr_payroll.database import get_db
from hr_payroll.routers.deps import get_current_tenant, get_current_actor
from hr_payroll.schemas.salary_structure import (
    SalaryStructureCreate,
    SalaryStructureUpdate,
    SalaryStructureResponse,
    StructureComponentResponse,
    EmployeeSalaryStructureResponse,
    SalaryPreviewRequest,
    SalaryPreviewResponse,
)
from hr_payroll.services import salary_structure_service


router = APIRouter(prefix="/payroll/salary-structures", tags=["Salary Structures"])


@router.get("", response_model=ApiResponse[List[SalaryStructureResponse]])
def list_salary_structures(
    user_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    items, pagination = salary_structure_service.list_structures(
        db, tenant_id, user_id=user_id, is_active=is_active, page=page, limit=limit
    )
    return ApiResponse.ok(
        [SalaryStructureResponse.model_validate(s) for s in items],
        metadata={"pagination": pagination.model_dump()}
    )


@router.post("/preview", response_model=ApiResponse[SalaryPreviewResponse])
def preview_salary_calculation(
    payload: SalaryPreviewRequest,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    """Compute totals for a prospective structure without saving it."""
    result = salary_structure_service.preview_calculation(db, tenant_id, payload)
    return ApiResponse.ok(SalaryPreviewResponse.model_validate(result))


@router.get("/employee/{user_id}", response_model=ApiResponse[EmployeeSalaryStructureResponse])
def get_employee_salary_structure(
    user_id: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    structure, grouped = salary_structure_service.get_employee_structure(db, tenant_id, user_id)
    response = EmployeeSalaryStructureResponse.model_validate({
        **SalaryStructureResponse.model_validate(structure).model_dump(),
        "grouped_components": {
            key: [StructureComponentResponse.model_validate(c) for c in lines]
            for key, lines in grouped.items()
        },
    })
    return ApiResponse.ok(response)


@router.get("/employee/{user_id}/history", response_model=ApiResponse[List[SalaryStructureResponse]])
def get_employee_salary_history(
    user_id: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    history = salary_structure_service.get_structure_history(db, tenant_id, user_id)
    return ApiResponse.ok([SalaryStructureResponse.model_validate(s) for s in history])


@router.get("/{structure_id}", response_model=ApiResponse[SalaryStructureResponse])
def get_salary_structure(
    structure_id: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    structure = salary_structure_service.get_structure(db, tenant_id, structure_id)
    return ApiResponse.ok(SalaryStructureResponse.model_validate(structure))


@router.post("", response_model=ApiResponse[SalaryStructureResponse], status_code=201)
def create_salary_structure(
    payload: SalaryStructureCreate,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    """Assign a new structure version; the previous active version is closed."""
    structure = salary_structure_service.assign_structure(db, tenant_id, payload, actor_id)
    return ApiResponse.ok(
        SalaryStructureResponse.model_validate(structure),
        message="Salary structure created successfully"
    )


@router.put("/{structure_id}", response_model=ApiResponse[SalaryStructureResponse])
def update_salary_structure(
    structure_id: int,
    payload: SalaryStructureUpdate,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    structure = salary_structure_service.update_structure(db, tenant_id, structure_id, payload, actor_id)
    return ApiResponse.ok(
        SalaryStructureResponse.model_validate(structure),
        message="Salary structure updated successfully"
    )


@router.delete("/{structure_id}", response_model=ApiResponse[dict])
def delete_salary_structure(
    structure_id: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    salary_structure_service.delete_structure(db, tenant_id, structure_id, actor_id)
    return ApiResponse.ok({"id": structure_id}, message="Salary structure deleted successfully")
