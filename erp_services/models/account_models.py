from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from erp_services.database import Base, utcnow

# =====================================================
# CHART OF ACCOUNTS
# =====================================================


class AccountType(str, Enum):
    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"
    COST_OF_SERVICE = "CostOfService"


# Accounts whose balance grows with debits
NORMAL_DEBIT_TYPES = frozenset({AccountType.ASSET.value, AccountType.EXPENSE.value, AccountType.COST_OF_SERVICE.value})


class ChartOfAccount(Base):
    __tablename__ = "chart_of_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_code = Column(String(20), nullable=False, unique=True)
    account_name = Column(String(255), nullable=False)
    account_type = Column(String(20), nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class AccountCreateRequest(BaseModel):
    account_code: str = Field(..., min_length=1, max_length=20)
    account_name: str = Field(..., min_length=1, max_length=255)
    account_type: AccountType
    description: Optional[str] = None


class AccountUpdateRequest(BaseModel):
    account_code: Optional[str] = Field(None, min_length=1, max_length=20)
    account_name: Optional[str] = Field(None, min_length=1, max_length=255)
    account_type: Optional[AccountType] = None
    description: Optional[str] = None


class AccountResponse(BaseModel):
    id: int
    account_code: str
    account_name: str
    account_type: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =====================================================
# JOURNAL ENTRIES
# =====================================================


class JournalEntry(Base):
    """One line of a journal transaction; lines of a transaction share ``transaction_id``."""
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(36), nullable=False, index=True)
    transaction_date = Column(Date, nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=False, index=True)
    debit = Column(Numeric(18, 2))
    credit = Column(Numeric(18, 2))
    description = Column(Text)
    reference_type = Column(String(50))
    reference_id = Column(String(100))
    created_by = Column(String(100))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    account = relationship("ChartOfAccount", lazy="joined")


class JournalLineRequest(BaseModel):
    account_id: int
    debit: Optional[Decimal] = Field(None, ge=0)
    credit: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None


class JournalTransactionCreateRequest(BaseModel):
    transaction_date: date
    description: Optional[str] = None
    reference_type: Optional[str] = Field("GENERAL_JOURNAL", max_length=50)
    reference_id: Optional[str] = Field(None, max_length=100)
    lines: List[JournalLineRequest]


class JournalValidationRequest(BaseModel):
    lines: List[JournalLineRequest]


class JournalEntryUpdateRequest(BaseModel):
    description: Optional[str] = None
    reference_type: Optional[str] = Field(None, max_length=50)
    reference_id: Optional[str] = Field(None, max_length=100)


class JournalEntryResponse(BaseModel):
    id: int
    transaction_id: str
    transaction_date: date
    account_id: int
    account_code: Optional[str] = None
    account_name: Optional[str] = None
    account_type: Optional[str] = None
    debit: float = 0.0
    credit: float = 0.0
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class JournalTransactionResponse(BaseModel):
    transaction_id: str
    transaction_date: date
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    total_debit: float
    total_credit: float
    lines: List[JournalEntryResponse]


class JournalValidationResponse(BaseModel):
    total_debit: float
    total_credit: float
    difference: float
    is_balanced: bool


class AccountBalanceResponse(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    total_debit: float
    total_credit: float
    balance: float
