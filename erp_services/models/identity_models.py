import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from erp_services.database import Base, utcnow
from erp_services.policies import Role

# =====================================================
# USER & EMPLOYEE MODELS
# =====================================================


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    employee = relationship("Employee", back_populates="user", uselist=False, lazy="selectin")


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), unique=True)
    full_name = Column(String(255), nullable=False)
    position = Column(String(100))
    hire_date = Column(Date, nullable=False)
    basic_salary = Column(Numeric(18, 2), nullable=False)
    allowances = Column(Numeric(18, 2), default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="employee")


def _normalize_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValueError("Invalid email address")
    return value


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=6, max_length=128)
    roles: List[Role] = Field(default_factory=lambda: [Role.EMPLOYEE], min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _normalize_email(value)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return value.strip().lower()


class UserUpdateRequest(BaseModel):
    email: Optional[str] = Field(None, max_length=255)
    roles: Optional[List[Role]] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _normalize_email(value)


class EmployeeSummary(BaseModel):
    id: uuid.UUID
    full_name: str
    position: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    roles: List[str]
    is_active: bool
    full_name: Optional[str] = None
    employee: Optional[EmployeeSummary] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class EmployeeData(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    position: Optional[str] = Field(None, max_length=100)
    hire_date: date
    basic_salary: Decimal = Field(..., ge=0)
    allowances: Decimal = Field(Decimal("0"), ge=0)


class EmployeeCreateRequest(BaseModel):
    """Employee and login account created together."""
    email: str
    employee: EmployeeData
    user: RegisterRequest

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _normalize_email(value)

    @model_validator(mode="after")
    def check_same_email(self):
        if self.email != self.user.email:
            raise ValueError("email must match user.email")
        return self


class EmployeeResponse(BaseModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    email: Optional[str] = None
    full_name: str
    position: Optional[str] = None
    hire_date: date
    basic_salary: float
    allowances: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
