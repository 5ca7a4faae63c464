from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text

from erp_services.database import Base, utcnow

# =====================================================
# EXCHANGE RATES
# =====================================================


def normalize_currency_code(value: str) -> str:
    code = (value or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError("currency_code must be a 3-letter ISO code")
    return code


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency_code = Column(String(3), nullable=False, unique=True)
    rate_to_idr = Column(Numeric(18, 6), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ExchangeRateCreateRequest(BaseModel):
    currency_code: str
    rate_to_idr: Decimal = Field(..., gt=0)

    @field_validator("currency_code")
    @classmethod
    def check_currency_code(cls, value):
        return normalize_currency_code(value)


class ExchangeRateUpdateRequest(BaseModel):
    rate_to_idr: Decimal = Field(..., gt=0)


class ExchangeRateBulkRequest(BaseModel):
    rates: List[ExchangeRateCreateRequest] = Field(..., min_length=1)


class ExchangeRateResponse(BaseModel):
    id: int
    currency_code: str
    rate_to_idr: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =====================================================
# TAX RATES
# =====================================================


class TaxRate(Base):
    __tablename__ = "tax_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tax_name = Column(String(100), nullable=False, unique=True)
    tax_code = Column(String(20), nullable=False, unique=True)
    rate = Column(Numeric(5, 2), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class TaxRateCreateRequest(BaseModel):
    tax_name: str = Field(..., min_length=1, max_length=100)
    tax_code: str = Field(..., min_length=1, max_length=20)
    rate: Decimal = Field(..., ge=0, le=100)
    description: Optional[str] = None
    is_active: bool = True


class TaxRateUpdateRequest(BaseModel):
    tax_name: Optional[str] = Field(None, min_length=1, max_length=100)
    tax_code: Optional[str] = Field(None, min_length=1, max_length=20)
    rate: Optional[Decimal] = Field(None, ge=0, le=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class TaxRateResponse(BaseModel):
    id: int
    tax_name: str
    tax_code: str
    rate: float
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
