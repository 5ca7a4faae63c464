from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ItemType(str, Enum):
    MATERIAL = "MATERIAL"
    SERVICE = "SERVICE"


class PricingItemRequest(BaseModel):
    item_id: str
    item_type: ItemType
    hpp_per_unit: Decimal = Field(..., ge=0)
    quantity: Decimal = Field(..., gt=0)
    category: Optional[str] = None


class PricingCalculationRequest(BaseModel):
    items: List[PricingItemRequest] = Field(..., min_length=1)


class PricingItemResult(BaseModel):
    item_id: str
    item_type: str
    category: str
    hpp_per_unit: float
    markup_percentage: float
    markup_amount_per_unit: float
    sell_price_per_unit: float
    quantity: float
    total_hpp: float
    total_markup: float
    total_sell_price: float
    rule_applied: str


class PricingSummary(BaseModel):
    total_items: int
    total_hpp: float
    total_markup: float
    total_sell_price: float
    average_markup_percentage: float


class PricingCalculationResponse(BaseModel):
    items: List[PricingItemResult]
    summary: PricingSummary


class MarkupValidationRequest(BaseModel):
    category: str = Field(..., min_length=1)
    markup_percentage: Decimal = Field(..., ge=0, le=100)


class MarkupValidationResponse(BaseModel):
    is_valid: bool
    category: str
    requested_markup: float
    allowed_markup: float
    min_allowed: float
    max_allowed: float
    message: str
