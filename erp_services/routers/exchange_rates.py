from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.rate_models import (
    ExchangeRateBulkRequest, ExchangeRateCreateRequest, ExchangeRateResponse, ExchangeRateUpdateRequest,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, ok
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.rate_service import ExchangeRateService

router = APIRouter(prefix="/exchange-rates", tags=["Exchange Rates"])


def get_exchange_rate_service(session: AsyncSession = Depends(get_session)) -> ExchangeRateService:
    return ExchangeRateService(session)


@router.get("", response_model=ApiResponse[List[ExchangeRateResponse]])
async def list_exchange_rates(
    user: CurrentUser = Depends(get_current_user),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    return ok(await service.list_rates(), "Exchange rates retrieved successfully")


@router.put("/bulk", response_model=ApiResponse[List[ExchangeRateResponse]])
async def bulk_update_exchange_rates(
    request: ExchangeRateBulkRequest,
    user: CurrentUser = Depends(require_permission("write", "rate")),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    """Insert or update several rates; all of them or none are saved."""
    rates = await service.bulk_upsert(request)
    return ok(rates, f"{len(rates)} exchange rates updated successfully")


@router.get("/{currency_code}", response_model=ApiResponse[ExchangeRateResponse])
async def get_exchange_rate(
    currency_code: str,
    user: CurrentUser = Depends(get_current_user),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    return ok(await service.get_rate(currency_code), "Exchange rate retrieved successfully")


@router.post("", response_model=ApiResponse[ExchangeRateResponse], status_code=201)
async def create_exchange_rate(
    request: ExchangeRateCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "rate")),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    return ok(await service.create_rate(request), "Exchange rate created successfully")


@router.put("/{currency_code}", response_model=ApiResponse[ExchangeRateResponse])
async def update_exchange_rate(
    currency_code: str,
    request: ExchangeRateUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "rate")),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    return ok(await service.update_rate(currency_code, request), "Exchange rate updated successfully")


@router.delete("/{currency_code}", response_model=ApiResponse)
async def delete_exchange_rate(
    currency_code: str,
    user: CurrentUser = Depends(require_permission("write", "rate")),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    await service.delete_rate(currency_code)
    return ok(message="Exchange rate deleted successfully")
