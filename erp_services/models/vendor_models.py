import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from erp_services.database import Base, utcnow

# =====================================================
# VENDOR MODELS
# =====================================================


class VendorClassification(str, Enum):
    """Enum for vendor size classification."""
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"
    ENTERPRISE = "ENTERPRISE"
    GOVERNMENT = "GOVERNMENT"


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    vendor_name = Column(String(100), nullable=False, index=True)
    category = Column(String(100))
    classification = Column(String(20), nullable=False)
    is_preferred = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    contact_person = Column(String(100))
    phone = Column(String(30))
    email = Column(String(100))
    address = Column(Text)
    created_by = Column(String(100))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    pricelist = relationship("VendorPricelist", back_populates="vendor", cascade="all, delete-orphan")


def _clean_vendor_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not 2 <= len(value) <= 100:
        raise ValueError("vendor_name must be between 2 and 100 characters")
    return value


class VendorCreateRequest(BaseModel):
    """Request model for creating vendor."""
    vendor_name: str
    category: Optional[str] = Field(None, max_length=100)
    classification: VendorClassification
    is_preferred: bool = False
    contact_person: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = None

    @field_validator("vendor_name")
    @classmethod
    def check_vendor_name(cls, value):
        return _clean_vendor_name(value)


class VendorUpdateRequest(BaseModel):
    """Request model for updating vendor."""
    vendor_name: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    classification: Optional[VendorClassification] = None
    is_preferred: Optional[bool] = None
    is_active: Optional[bool] = None
    contact_person: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = None

    @field_validator("vendor_name")
    @classmethod
    def check_vendor_name(cls, value):
        return _clean_vendor_name(value)


class VendorResponse(BaseModel):
    """Response model for vendor."""
    id: uuid.UUID
    vendor_name: str
    category: Optional[str] = None
    classification: str
    is_preferred: bool
    is_active: bool
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VendorStatsResponse(BaseModel):
    total: int
    active: int
    preferred: int
    by_classification: Dict[str, int]


# =====================================================
# VENDOR PRICELIST MODELS
# =====================================================


class VendorPricelist(Base):
    __tablename__ = "vendor_pricelist"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    material_id = Column(String(100), nullable=False, index=True)
    vendor_id = Column(Uuid(as_uuid=True), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False, index=True)
    price = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="IDR")
    price_updated_at = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    vendor = relationship("Vendor", back_populates="pricelist", lazy="joined")


class VendorPricelistCreateRequest(BaseModel):
    material_id: str = Field(..., min_length=1, max_length=100)
    vendor_id: uuid.UUID
    price: Decimal = Field(..., gt=0)
    currency: str = Field("IDR", min_length=3, max_length=3)
    price_updated_at: Optional[datetime] = None


class VendorPricelistUpdateRequest(BaseModel):
    price: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    price_updated_at: Optional[datetime] = None


class VendorPricelistResponse(BaseModel):
    id: uuid.UUID
    material_id: str
    vendor_id: uuid.UUID
    vendor_name: Optional[str] = None
    price: float
    currency: str
    price_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
