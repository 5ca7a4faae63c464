from fastapi import APIRouter, Depends

from erp_services.config import Settings
from erp_services.dependencies import get_settings
from erp_services.models.pricing_models import (
    MarkupValidationRequest, MarkupValidationResponse, PricingCalculationRequest, PricingCalculationResponse,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, ok
from erp_services.services.jwt_service import CurrentUser
from erp_services.services.pricing_service import PricingService
from erp_services.services.service_clients import FinanceClient, get_finance_client

router = APIRouter(prefix="/pricing", tags=["Pricing"])


def get_pricing_service(
    finance_client: FinanceClient = Depends(get_finance_client),
    settings: Settings = Depends(get_settings),
) -> PricingService:
    return PricingService(finance_client, settings.default_markup_percentage)


@router.post("/calculate", response_model=ApiResponse[PricingCalculationResponse])
async def calculate_pricing(
    request: PricingCalculationRequest,
    user: CurrentUser = Depends(require_permission("calculate", "pricing")),
    service: PricingService = Depends(get_pricing_service),
):
    """Sell prices from HPP using the finance pricing rule of each category."""
    return ok(await service.calculate(request), "Pricing calculated successfully")


@router.post("/validate-markup", response_model=ApiResponse[MarkupValidationResponse])
async def validate_markup(
    request: MarkupValidationRequest,
    user: CurrentUser = Depends(require_permission("calculate", "pricing")),
    service: PricingService = Depends(get_pricing_service),
):
    result = await service.validate_markup(request)
    return ok(result, result.message)
