from datetime import date
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.dependencies import get_clock
from erp_services.models.payable_models import (
    MatchingStatus, PayableCreateRequest, PayableDisputeRequest, PayablePaymentRequest, PayableResponse,
    PayableStatus, PayableSummaryResponse, PayableUpdateRequest,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.payable_service import PayableService

router = APIRouter(prefix="/payables", tags=["Payables"])


def get_payable_service(session: AsyncSession = Depends(get_session)) -> PayableService:
    return PayableService(session)


@router.get("", response_model=ApiResponse[List[PayableResponse]])
async def list_payables(
    status: Optional[PayableStatus] = Query(None),
    matching_status: Optional[MatchingStatus] = Query(None),
    vendor_name: Optional[str] = Query(None),
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: PayableService = Depends(get_payable_service),
):
    """Get payables ordered by due date."""
    payables, total = await service.list_payables(
        status=status.value if status else None,
        matching_status=matching_status.value if matching_status else None,
        vendor_name=vendor_name,
        offset=page.offset,
        limit=page.limit,
    )
    return paginated(payables, page, total, "Payables retrieved successfully")


@router.get("/summary", response_model=ApiResponse[PayableSummaryResponse])
async def get_payables_summary(
    user: CurrentUser = Depends(get_current_user),
    service: PayableService = Depends(get_payable_service),
    clock: Callable[[], date] = Depends(get_clock),
):
    """Outstanding totals: everything open, due within a week, and overdue."""
    return ok(await service.summary(clock()), "Payables summary retrieved successfully")


@router.get("/{payable_id}", response_model=ApiResponse[PayableResponse])
async def get_payable(
    payable_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: PayableService = Depends(get_payable_service),
):
    return ok(await service.get_payable(payable_id), "Payable retrieved successfully")


@router.post("", response_model=ApiResponse[PayableResponse], status_code=201)
async def create_payable(
    request: PayableCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "payable")),
    service: PayableService = Depends(get_payable_service),
):
    """Record a vendor invoice; the three-way match runs on its items."""
    return ok(await service.create_payable(request, user.id), "Payable created successfully")


@router.put("/{payable_id}", response_model=ApiResponse[PayableResponse])
async def update_payable(
    payable_id: int,
    request: PayableUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "payable")),
    service: PayableService = Depends(get_payable_service),
):
    return ok(await service.update_payable(payable_id, request), "Payable updated successfully")


@router.delete("/{payable_id}", response_model=ApiResponse)
async def delete_payable(
    payable_id: int,
    user: CurrentUser = Depends(require_permission("write", "payable")),
    service: PayableService = Depends(get_payable_service),
):
    await service.delete_payable(payable_id)
    return ok(message="Payable deleted successfully")


@router.post("/{payable_id}/approve", response_model=ApiResponse[PayableResponse])
async def approve_payable(
    payable_id: int,
    user: CurrentUser = Depends(require_permission("approve", "payable")),
    service: PayableService = Depends(get_payable_service),
):
    """Approve a matched draft payable for payment."""
    return ok(await service.approve(payable_id), "Payable approved successfully")


@router.post("/{payable_id}/dispute", response_model=ApiResponse[PayableResponse])
async def dispute_payable(
    payable_id: int,
    request: PayableDisputeRequest,
    user: CurrentUser = Depends(require_permission("write", "payable")),
    service: PayableService = Depends(get_payable_service),
):
    return ok(await service.dispute(payable_id, request.reason), "Payable marked as disputed")


@router.post("/{payable_id}/resolve", response_model=ApiResponse[PayableResponse])
async def resolve_payable_dispute(
    payable_id: int,
    user: CurrentUser = Depends(require_permission("write", "payable")),
    service: PayableService = Depends(get_payable_service),
):
    """Close a dispute and return the payable to draft."""
    return ok(await service.resolve_dispute(payable_id), "Payable dispute resolved")


@router.post("/{payable_id}/payments", response_model=ApiResponse[PayableResponse], status_code=201)
async def record_payable_payment(
    payable_id: int,
    request: PayablePaymentRequest,
    user: CurrentUser = Depends(require_permission("pay", "payable")),
    service: PayableService = Depends(get_payable_service),
):
    payable = await service.record_payment(payable_id, request, user.id)
    return ok(payable, "Payment recorded successfully")
