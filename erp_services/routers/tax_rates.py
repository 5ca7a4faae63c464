from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.rate_models import TaxRateCreateRequest, TaxRateResponse, TaxRateUpdateRequest
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, ok
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.rate_service import TaxRateService

router = APIRouter(prefix="/tax-rates", tags=["Tax Rates"])


def get_tax_rate_service(session: AsyncSession = Depends(get_session)) -> TaxRateService:
    return TaxRateService(session)


@router.get("", response_model=ApiResponse[List[TaxRateResponse]])
async def list_tax_rates(
    is_active: Optional[bool] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: TaxRateService = Depends(get_tax_rate_service),
):
    return ok(await service.list_tax_rates(is_active), "Tax rates retrieved successfully")


@router.get("/{tax_rate_id}", response_model=ApiResponse[TaxRateResponse])
async def get_tax_rate(
    tax_rate_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: TaxRateService = Depends(get_tax_rate_service),
):
    return ok(await service.get_tax_rate(tax_rate_id), "Tax rate retrieved successfully")


@router.post("", response_model=ApiResponse[TaxRateResponse], status_code=201)
async def create_tax_rate(
    request: TaxRateCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "rate")),
    service: TaxRateService = Depends(get_tax_rate_service),
):
    return ok(await service.create_tax_rate(request), "Tax rate created successfully")


@router.put("/{tax_rate_id}", response_model=ApiResponse[TaxRateResponse])
async def update_tax_rate(
    tax_rate_id: int,
    request: TaxRateUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "rate")),
    service: TaxRateService = Depends(get_tax_rate_service),
):
    return ok(await service.update_tax_rate(tax_rate_id, request), "Tax rate updated successfully")


@router.delete("/{tax_rate_id}", response_model=ApiResponse)
async def delete_tax_rate(
    tax_rate_id: int,
    user: CurrentUser = Depends(require_permission("write", "rate")),
    service: TaxRateService = Depends(get_tax_rate_service),
):
    await service.delete_tax_rate(tax_rate_id)
    return ok(message="Tax rate deleted successfully")
