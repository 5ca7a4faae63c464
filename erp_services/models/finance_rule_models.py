from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text

from erp_services.database import Base, utcnow
from erp_services.policies import Role


def Percentage(default=..., **kwargs):
    """Percentage field bounded to [0, 100]."""
    return Field(default, ge=0, le=100, **kwargs)


# =====================================================
# DISCOUNT POLICIES
# =====================================================


class DiscountPolicy(Base):
    __tablename__ = "discount_policies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_role = Column(String(50), nullable=False, unique=True)
    max_discount_percentage = Column(Numeric(5, 2), nullable=False)
    requires_approval_above = Column(Numeric(5, 2))
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class DiscountPolicyCreateRequest(BaseModel):
    user_role: Role
    max_discount_percentage: Decimal = Percentage()
    requires_approval_above: Optional[Decimal] = Percentage(None)
    description: Optional[str] = None

    @model_validator(mode="after")
    def check_approval_threshold(self):
        if self.requires_approval_above is not None and self.requires_approval_above > self.max_discount_percentage:
            raise ValueError("requires_approval_above cannot exceed max_discount_percentage")
        return self


class DiscountPolicyUpdateRequest(BaseModel):
    user_role: Optional[Role] = None
    max_discount_percentage: Optional[Decimal] = Percentage(None)
    requires_approval_above: Optional[Decimal] = Percentage(None)
    description: Optional[str] = None


class DiscountPolicyResponse(BaseModel):
    id: int
    user_role: str
    max_discount_percentage: float
    requires_approval_above: Optional[float] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DiscountCheckRequest(BaseModel):
    user_role: Role
    discount_percentage: Decimal = Percentage()


class DiscountCheckResponse(BaseModel):
    user_role: str
    discount_percentage: float
    max_discount_percentage: float
    allowed: bool
    requires_approval: bool


# =====================================================
# OVERHEAD ALLOCATIONS
# =====================================================


class OverheadAllocation(Base):
    __tablename__ = "overhead_allocations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cost_category = Column(String(100), nullable=False, unique=True)
    target_percentage = Column(Numeric(5, 2))
    allocation_percentage_to_hpp = Column(Numeric(5, 2), nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class OverheadAllocationCreateRequest(BaseModel):
    cost_category: str = Field(..., min_length=1, max_length=100)
    target_percentage: Optional[Decimal] = Percentage(None)
    allocation_percentage_to_hpp: Decimal = Percentage()
    description: Optional[str] = None


class OverheadAllocationUpdateRequest(BaseModel):
    cost_category: Optional[str] = Field(None, min_length=1, max_length=100)
    target_percentage: Optional[Decimal] = Percentage(None)
    allocation_percentage_to_hpp: Optional[Decimal] = Percentage(None)
    description: Optional[str] = None


class OverheadAllocationResponse(BaseModel):
    id: int
    cost_category: str
    target_percentage: Optional[float] = None
    allocation_percentage_to_hpp: float
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =====================================================
# PRICING RULES
# =====================================================


class PricingRule(Base):
    __tablename__ = "pricing_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category = Column(String(100), nullable=False, unique=True)
    markup_percentage = Column(Numeric(5, 2), nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class PricingRuleCreateRequest(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    markup_percentage: Decimal = Percentage()
    description: Optional[str] = None


class PricingRuleUpdateRequest(BaseModel):
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    markup_percentage: Optional[Decimal] = Percentage(None)
    description: Optional[str] = None


class PricingRuleResponse(BaseModel):
    id: int
    category: str
    markup_percentage: float
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =====================================================
# PAYMENT TERMS
# =====================================================


class PaymentTerm(Base):
    __tablename__ = "payment_terms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    term_code = Column(String(20), nullable=False, unique=True)
    term_name = Column(String(100), nullable=False)
    days_until_due = Column(Integer, nullable=False)
    discount_percentage = Column(Numeric(5, 2))
    discount_days = Column(Integer)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class PaymentTermCreateRequest(BaseModel):
    term_code: str = Field(..., min_length=1, max_length=20)
    term_name: str = Field(..., min_length=1, max_length=100)
    days_until_due: int = Field(..., ge=0)
    discount_percentage: Optional[Decimal] = Percentage(None)
    discount_days: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: bool = True


class PaymentTermUpdateRequest(BaseModel):
    term_code: Optional[str] = Field(None, min_length=1, max_length=20)
    term_name: Optional[str] = Field(None, min_length=1, max_length=100)
    days_until_due: Optional[int] = Field(None, ge=0)
    discount_percentage: Optional[Decimal] = Percentage(None)
    discount_days: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class PaymentTermResponse(BaseModel):
    id: int
    term_code: str
    term_name: str
    days_until_due: int
    discount_percentage: Optional[float] = None
    discount_days: Optional[int] = None
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
