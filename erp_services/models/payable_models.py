from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from erp_services.database import Base, utcnow

# =====================================================
# PAYABLES (ACCOUNTS PAYABLE)
# =====================================================


class PayableType(str, Enum):
    GOODS = "GOODS"
    SERVICES = "SERVICES"


class PayableStatus(str, Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    DISPUTE = "DISPUTE"


class MatchingStatus(str, Enum):
    MATCHED = "MATCHED"
    MISMATCH = "MISMATCH"
    PENDING = "PENDING"


class Payable(Base):
    __tablename__ = "payables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_invoice_number = Column(String(100), nullable=False, unique=True)
    po_number = Column(String(100))
    gr_number = Column(String(100))
    vendor_id = Column(String(100))
    vendor_name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False, default=PayableType.GOODS.value)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    subtotal = Column(Numeric(18, 2), nullable=False)
    tax_ppn = Column(Numeric(18, 2), default=0)
    tax_pph23 = Column(Numeric(18, 2), default=0)
    total_amount = Column(Numeric(18, 2), nullable=False)
    paid_amount = Column(Numeric(18, 2), default=0, nullable=False)
    status = Column(String(20), nullable=False, default=PayableStatus.DRAFT.value, index=True)
    matching_status = Column(String(20), nullable=False, default=MatchingStatus.PENDING.value)
    po_matched = Column(Boolean, default=False)
    gr_matched = Column(Boolean, default=False)
    payment_terms = Column(String(100))
    dispute_reason = Column(Text)
    notes = Column(Text)
    created_by = Column(String(100))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    items = relationship(
        "PayableItem", back_populates="payable", cascade="all, delete-orphan",
        lazy="selectin", order_by="PayableItem.id",
    )
    payments = relationship(
        "PayablePayment", back_populates="payable", cascade="all, delete-orphan",
        lazy="selectin", order_by="PayablePayment.id",
    )


class PayableItem(Base):
    __tablename__ = "payable_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payable_id = Column(Integer, ForeignKey("payables.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    po_qty = Column(Numeric(18, 2), nullable=False)
    received_qty = Column(Numeric(18, 2))
    invoice_qty = Column(Numeric(18, 2), nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False)
    total = Column(Numeric(18, 2), nullable=False)
    matched = Column(Boolean, default=False)

    payable = relationship("Payable", back_populates="items")


class PayablePayment(Base):
    __tablename__ = "payable_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payable_id = Column(Integer, ForeignKey("payables.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_date = Column(Date, nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    reference = Column(String(100))
    notes = Column(Text)
    created_by = Column(String(100))
    created_at = Column(DateTime, default=utcnow)

    payable = relationship("Payable", back_populates="payments")


class PayableItemRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    po_qty: Decimal = Field(..., ge=0)
    received_qty: Optional[Decimal] = Field(None, ge=0)
    invoice_qty: Decimal = Field(..., ge=0)
    unit_price: Decimal = Field(..., ge=0)


class PayableCreateRequest(BaseModel):
    vendor_invoice_number: str = Field(..., min_length=1, max_length=100)
    po_number: Optional[str] = None
    gr_number: Optional[str] = None
    vendor_id: Optional[str] = None
    vendor_name: str = Field(..., min_length=1, max_length=255)
    type: PayableType = PayableType.GOODS
    invoice_date: date
    due_date: Optional[date] = None
    payment_term_code: Optional[str] = None
    tax_ppn: Decimal = Field(Decimal("0"), ge=0)
    tax_pph23: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None
    items: List[PayableItemRequest] = Field(..., min_length=1)


class PayableUpdateRequest(BaseModel):
    po_number: Optional[str] = None
    gr_number: Optional[str] = None
    vendor_name: Optional[str] = Field(None, min_length=1, max_length=255)
    due_date: Optional[date] = None
    tax_ppn: Optional[Decimal] = Field(None, ge=0)
    tax_pph23: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    items: Optional[List[PayableItemRequest]] = Field(None, min_length=1)


class PayableDisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class PayablePaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    reference: Optional[str] = None
    notes: Optional[str] = None


class PayableItemResponse(BaseModel):
    id: int
    description: str
    po_qty: float
    received_qty: Optional[float] = None
    invoice_qty: float
    unit_price: float
    total: float
    matched: bool

    class Config:
        from_attributes = True


class PayablePaymentResponse(BaseModel):
    id: int
    payment_date: date
    amount: float
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayableResponse(BaseModel):
    id: int
    vendor_invoice_number: str
    po_number: Optional[str] = None
    gr_number: Optional[str] = None
    vendor_id: Optional[str] = None
    vendor_name: str
    type: str
    invoice_date: date
    due_date: date
    subtotal: float
    tax_ppn: float
    tax_pph23: float
    total_amount: float
    paid_amount: float
    outstanding_amount: float
    status: str
    matching_status: str
    po_matched: bool
    gr_matched: bool
    payment_terms: Optional[str] = None
    dispute_reason: Optional[str] = None
    notes: Optional[str] = None
    items: List[PayableItemResponse] = []
    payments: List[PayablePaymentResponse] = []
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PayableSummaryResponse(BaseModel):
    total_payable: float
    due_this_week: float
    overdue: float
    open_count: int
