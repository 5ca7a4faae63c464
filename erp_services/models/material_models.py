import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field
from sqlalchemy import Column, Date, DateTime, Numeric, String, Text, Uuid

from erp_services.database import Base, utcnow

# =====================================================
# MATERIAL MODELS
# =====================================================


class MaterialStatus(str, Enum):
    ACTIVE = "Active"
    END_OF_LIFE = "EndOfLife"
    DISCONTINUE = "Discontinue"


class MaterialLocation(str, Enum):
    LOCAL = "Local"
    IMPORT = "Import"


class Material(Base):
    __tablename__ = "materials"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sbu = Column(String(100))
    system = Column(String(100))
    subsystem = Column(String(100))
    components = Column(String(255))
    item_name = Column(String(255), nullable=False, index=True)
    brand = Column(String(100))
    owner_pn = Column(String(100))
    vendor = Column(String(255))
    status = Column(String(20), default=MaterialStatus.ACTIVE.value, nullable=False)
    location = Column(String(20))
    cost_ori = Column(Numeric(18, 2))
    curr = Column(String(3))
    satuan = Column(String(50))
    cost_rp = Column(Numeric(18, 2))
    cost_date = Column(Date)
    cost_validity = Column(Date)
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class MaterialCreateRequest(BaseModel):
    sbu: Optional[str] = Field(None, max_length=100)
    system: Optional[str] = Field(None, max_length=100)
    subsystem: Optional[str] = Field(None, max_length=100)
    components: Optional[str] = Field(None, max_length=255)
    item_name: str = Field(..., min_length=1, max_length=255)
    brand: Optional[str] = Field(None, max_length=100)
    owner_pn: Optional[str] = Field(None, max_length=100)
    vendor: Optional[str] = Field(None, max_length=255)
    status: MaterialStatus = MaterialStatus.ACTIVE
    location: Optional[MaterialLocation] = None
    cost_ori: Optional[Decimal] = Field(None, ge=0)
    curr: Optional[str] = Field(None, min_length=3, max_length=3)
    satuan: Optional[str] = Field(None, max_length=50)
    cost_rp: Optional[Decimal] = Field(None, ge=0)
    cost_date: Optional[date] = None
    cost_validity: Optional[date] = None
    notes: Optional[str] = None


class MaterialUpdateRequest(BaseModel):
    sbu: Optional[str] = Field(None, max_length=100)
    system: Optional[str] = Field(None, max_length=100)
    subsystem: Optional[str] = Field(None, max_length=100)
    components: Optional[str] = Field(None, max_length=255)
    item_name: Optional[str] = Field(None, min_length=1, max_length=255)
    brand: Optional[str] = Field(None, max_length=100)
    owner_pn: Optional[str] = Field(None, max_length=100)
    vendor: Optional[str] = Field(None, max_length=255)
    status: Optional[MaterialStatus] = None
    location: Optional[MaterialLocation] = None
    cost_ori: Optional[Decimal] = Field(None, ge=0)
    curr: Optional[str] = Field(None, min_length=3, max_length=3)
    satuan: Optional[str] = Field(None, max_length=50)
    cost_rp: Optional[Decimal] = Field(None, ge=0)
    cost_date: Optional[date] = None
    cost_validity: Optional[date] = None
    notes: Optional[str] = None


class MaterialResponse(BaseModel):
    id: uuid.UUID
    sbu: Optional[str] = None
    system: Optional[str] = None
    subsystem: Optional[str] = None
    components: Optional[str] = None
    item_name: str
    brand: Optional[str] = None
    owner_pn: Optional[str] = None
    vendor: Optional[str] = None
    status: str
    location: Optional[str] = None
    cost_ori: Optional[float] = None
    curr: Optional[str] = None
    satuan: Optional[str] = None
    cost_rp: Optional[float] = None
    cost_date: Optional[date] = None
    cost_validity: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MaterialStatsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_location: Dict[str, int]
