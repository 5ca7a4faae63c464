from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import Column, Date, DateTime, Integer, Numeric, String, Text

from erp_services.database import Base, utcnow

# =====================================================
# INVOICES (ACCOUNTS RECEIVABLE)
# =====================================================


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_number = Column(String(50), nullable=False, unique=True)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    customer_id = Column(String(100))
    customer_name = Column(String(255), nullable=False)
    customer_address = Column(Text)
    customer_phone = Column(String(50))
    customer_email = Column(String(255))
    subtotal = Column(Numeric(18, 2), nullable=False)
    tax_amount = Column(Numeric(18, 2), default=0)
    discount_amount = Column(Numeric(18, 2), default=0)
    total_amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), default="IDR", nullable=False)
    status = Column(String(20), default=InvoiceStatus.DRAFT.value, nullable=False, index=True)
    notes = Column(Text)
    payment_terms = Column(String(100))
    created_by = Column(String(100))
    updated_by = Column(String(100))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class InvoiceCreateRequest(BaseModel):
    invoice_number: str = Field(..., min_length=1, max_length=50)
    invoice_date: date
    due_date: date
    customer_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_address: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    subtotal: Decimal = Field(..., ge=0)
    tax_amount: Decimal = Field(Decimal("0"), ge=0)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0)
    currency: str = Field("IDR", min_length=3, max_length=3)
    status: InvoiceStatus = InvoiceStatus.DRAFT
    notes: Optional[str] = None
    payment_terms: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.due_date < self.invoice_date:
            raise ValueError("due_date cannot be before invoice_date")
        return self


class InvoiceUpdateRequest(BaseModel):
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=50)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    customer_address: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    subtotal: Optional[Decimal] = Field(None, ge=0)
    tax_amount: Optional[Decimal] = Field(None, ge=0)
    discount_amount: Optional[Decimal] = Field(None, ge=0)
    total_amount: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    invoice_date: date
    due_date: date
    customer_id: Optional[str] = None
    customer_name: str
    customer_address: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    subtotal: float
    tax_amount: float = 0.0
    discount_amount: float = 0.0
    total_amount: float
    currency: str
    status: str
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
