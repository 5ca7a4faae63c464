import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, Uuid

from erp_services.database import Base, utcnow

# =====================================================
# SERVICE CATALOG MODELS
# =====================================================


class ServiceUnit(str, Enum):
    HOUR = "Hour"
    DAY = "Day"
    MONTH = "Month"
    PROJECT = "Project"
    UNIT = "Unit"


class CatalogService(Base):
    __tablename__ = "services"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    service_name = Column(String(255), nullable=False)
    service_code = Column(String(50), nullable=False, unique=True)
    unit = Column(String(20), nullable=False, default=ServiceUnit.UNIT.value)
    default_duration = Column(Integer)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


def _clean_code(value: Optional[str]) -> Optional[str]:
    return value.strip().upper() if value is not None else value


class ServiceCreateRequest(BaseModel):
    service_name: str = Field(..., min_length=1, max_length=255)
    service_code: str = Field(..., min_length=1, max_length=50)
    unit: ServiceUnit = ServiceUnit.UNIT
    default_duration: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: bool = True

    @field_validator("service_code")
    @classmethod
    def normalize_code(cls, value):
        return _clean_code(value)


class ServiceUpdateRequest(BaseModel):
    service_name: Optional[str] = Field(None, min_length=1, max_length=255)
    service_code: Optional[str] = Field(None, min_length=1, max_length=50)
    unit: Optional[ServiceUnit] = None
    default_duration: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("service_code")
    @classmethod
    def normalize_code(cls, value):
        return _clean_code(value)


class ServiceResponse(BaseModel):
    id: uuid.UUID
    service_name: str
    service_code: str
    unit: str
    default_duration: Optional[int] = None
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    by_unit: Dict[str, int]
