"""
Payslip Router

Generation, lifecycle and reporting endpoints for payslips.
All business logic is delegated to the payslip service modules.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hr_payroll.core.config import settings
from hr_payroll.core.schemas import ApiResponse
from hr_payroll.database import get_db
from hr_payroll.models.payslip import PayslipStatus
from hr_payroll.routers.deps import get_current_tenant, get_current_actor
from hr_payroll.schemas.payslip import (
    PayslipGenerateRequest,
    BulkGenerateRequest,
    PayslipStatusUpdate,
    BulkStatusUpdate,
    PayslipResponse,
    PayslipComponentResponse,
    PayslipDetailResponse,
    BulkGenerateResult,
    BulkStatusResult,
    PayrollSummaryResponse,
)
from hr_payroll.services import (
    bulk_payroll,
    payroll_summary,
    payslip_lifecycle,
    payslip_service,
)


router = APIRouter(prefix="/payroll/payslips", tags=["Payslips"])


@router.get("", response_model=ApiResponse[List[PayslipResponse]])
def list_payslips(
    user_id: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    status: Optional[PayslipStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    items, pagination = payslip_service.list_payslips(
        db, tenant_id,
        user_id=user_id, month=month, year=year, status=status,
        page=page, limit=limit
    )
    return ApiResponse.ok(
        [PayslipResponse.model_validate(p) for p in items],
        metadata={"pagination": pagination.model_dump()}
    )


@router.get("/summary", response_model=ApiResponse[PayrollSummaryResponse])
def get_payroll_summary(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1900, le=9999),
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    """Totals and status breakdown for one payroll month."""
    summary = payroll_summary.get_payroll_summary(db, tenant_id, month, year)
    return ApiResponse.ok(PayrollSummaryResponse.model_validate(summary))


@router.post("/generate", response_model=ApiResponse[PayslipResponse], status_code=201)
def generate_payslip(
    payload: PayslipGenerateRequest,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    """
    Generate a DRAFT payslip for one employee and month.

    Loss-of-pay is derived from attendance and approved leave; see
    payslip_service.calculate_payslip for the arithmetic.
    """
    payslip = payslip_service.generate_payslip(
        db, tenant_id, payload.user_id, payload.month, payload.year, actor_id=actor_id
    )
    return ApiResponse.ok(PayslipResponse.model_validate(payslip), message="Payslip generated successfully")


@router.post("/bulk-generate", response_model=ApiResponse[BulkGenerateResult])
def bulk_generate_payslips(
    payload: BulkGenerateRequest,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    result = bulk_payroll.bulk_generate(
        db, tenant_id, payload.month, payload.year,
        user_ids=payload.user_ids, actor_id=actor_id
    )
    counts = result["counts"]
    return ApiResponse.ok(
        BulkGenerateResult.model_validate(result),
        message=f"Generated {counts['successful']} payslips, skipped {counts['skipped']}, failed {counts['failed']}"
    )


@router.patch("/bulk-status", response_model=ApiResponse[BulkStatusResult])
def bulk_update_payslip_status(
    payload: BulkStatusUpdate,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    result = payslip_lifecycle.bulk_set_status(db, tenant_id, payload.payslip_ids, payload.status, actor_id)
    return ApiResponse.ok(
        BulkStatusResult.model_validate(result),
        message=f"Updated {result['updated_count']} payslips to {payload.status.value}"
    )


@router.get("/employee/{user_id}/{month}/{year}", response_model=ApiResponse[PayslipResponse])
def get_employee_payslip(
    user_id: int,
    month: int,
    year: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    payslip = payslip_service.get_employee_payslip(db, tenant_id, user_id, month, year)
    return ApiResponse.ok(PayslipResponse.model_validate(payslip))


@router.get("/{payslip_id}", response_model=ApiResponse[PayslipDetailResponse])
def get_payslip(
    payslip_id: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant)
):
    payslip, grouped = payslip_service.get_payslip_detail(db, tenant_id, payslip_id)
    response = PayslipDetailResponse.model_validate({
        **PayslipResponse.model_validate(payslip).model_dump(),
        "grouped_components": {
            key: [PayslipComponentResponse.model_validate(c) for c in lines]
            for key, lines in grouped.items()
        },
    })
    return ApiResponse.ok(response)


@router.patch("/{payslip_id}/status", response_model=ApiResponse[PayslipResponse])
def update_payslip_status(
    payslip_id: int,
    payload: PayslipStatusUpdate,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    payslip = payslip_lifecycle.set_payslip_status(db, tenant_id, payslip_id, payload.status, actor_id)
    return ApiResponse.ok(
        PayslipResponse.model_validate(payslip),
        message=f"Payslip status updated to {payload.status.value}"
    )


@router.delete("/{payslip_id}", response_model=ApiResponse[dict])
def delete_payslip(
    payslip_id: int,
    db: Session = Depends(get_db),
    tenant_id: int = Depends(get_current_tenant),
    actor_id: Optional[int] = Depends(get_current_actor)
):
    payslip_lifecycle.delete_payslip(db, tenant_id, payslip_id, actor_id)
    return ApiResponse.ok({"id": payslip_id}, message="Payslip deleted successfully")
