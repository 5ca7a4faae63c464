import logging
from decimal import Decimal
from typing import Dict, Tuple

from erp_services.models.pricing_models import (
    MarkupValidationRequest, MarkupValidationResponse, PricingCalculationRequest, PricingCalculationResponse,
    PricingItemRequest, PricingItemResult, PricingSummary,
)
from erp_services.services.journal_service import ZERO
from erp_services.services.report_service import money
from erp_services.services.service_clients import FinanceClient

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
# Accepted distance from the configured markup, in percentage points
MARKUP_TOLERANCE = Decimal("5")


def sell_price(hpp_per_unit: Decimal, markup_percentage: Decimal) -> Decimal:
    return hpp_per_unit * (1 + markup_percentage / HUNDRED)


class PricingService:
    """Applies finance pricing rules to HPP (cost) figures."""

    def __init__(self, finance_client: FinanceClient, default_markup_percentage: float):
        self.finance_client = finance_client
        self.default_markup = Decimal(str(default_markup_percentage))
        self._markups: Dict[str, Tuple[Decimal, bool]] = {}

    async def markup_for(self, category: str) -> Tuple[Decimal, bool]:
        """Markup for ``category`` and whether a pricing rule supplied it."""
        key = category.lower()
        if key not in self._markups:
            rule = await self.finance_client.get_pricing_rule(category)
            if rule is None:
                logger.warning("No pricing rule for category %s, using default markup", category)
                self._markups[key] = (self.default_markup, False)
            else:
                self._markups[key] = (Decimal(str(rule["markup_percentage"])), True)
        return self._markups[key]

    async def calculate_item(self, item: PricingItemRequest) -> PricingItemResult:
        category = item.category or item.item_type.value
        markup, from_rule = await self.markup_for(category)
        markup_amount = item.hpp_per_unit * markup / HUNDRED
        unit_price = sell_price(item.hpp_per_unit, markup)
        return PricingItemResult(
            item_id=item.item_id,
            item_type=item.item_type.value,
            category=category,
            hpp_per_unit=money(item.hpp_per_unit),
            markup_percentage=float(markup),
            markup_amount_per_unit=money(markup_amount),
            sell_price_per_unit=money(unit_price),
            quantity=float(item.quantity),
            total_hpp=money(item.hpp_per_unit * item.quantity),
            total_markup=money(markup_amount * item.quantity),
            total_sell_price=money(unit_price * item.quantity),
            rule_applied=f"{category} ({markup}%)" if from_rule else f"default ({markup}%)",
        )

    async def calculate(self, request: PricingCalculationRequest) -> PricingCalculationResponse:
        results = [await self.calculate_item(item) for item in request.items]

        total_hpp = sum((item.hpp_per_unit * item.quantity for item in request.items), ZERO)
        total_markup = sum((Decimal(str(result.total_markup)) for result in results), ZERO)
        total_sell = sum((Decimal(str(result.total_sell_price)) for result in results), ZERO)
        average = total_markup / total_hpp * HUNDRED if total_hpp > 0 else ZERO

        return PricingCalculationResponse(
            items=results,
            summary=PricingSummary(
                total_items=len(results),
                total_hpp=money(total_hpp),
                total_markup=money(total_markup),
                total_sell_price=money(total_sell),
                average_markup_percentage=money(average),
            ),
        )

    async def validate_markup(self, request: MarkupValidationRequest) -> MarkupValidationResponse:
        allowed, _ = await self.markup_for(request.category)
        minimum = max(allowed - MARKUP_TOLERANCE, ZERO)
        maximum = allowed + MARKUP_TOLERANCE
        is_valid = minimum <= request.markup_percentage <= maximum
        if is_valid:
            message = f"Markup {request.markup_percentage}% is valid for category {request.category}"
        else:
            message = (
                f"Markup {request.markup_percentage}% is outside allowed range "
                f"({minimum}% - {maximum}%) for category {request.category}"
            )
        return MarkupValidationResponse(
            is_valid=is_valid,
            category=request.category,
            requested_markup=float(request.markup_percentage),
            allowed_markup=float(allowed),
            min_allowed=float(minimum),
            max_allowed=float(maximum),
            message=message,
        )
