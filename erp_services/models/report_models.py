from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel


class AccountBalanceLine(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    total_debit: float
    total_credit: float
    balance: float


class TrialBalanceLine(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    debit: float
    credit: float


class TrialBalanceReport(BaseModel):
    as_of_date: Optional[date] = None
    accounts: List[TrialBalanceLine]
    total_debit: float
    total_credit: float
    difference: float
    is_balanced: bool


class TrialBalanceTypeGroup(BaseModel):
    account_type: str
    accounts: List[TrialBalanceLine]
    total_debit: float
    total_credit: float


class TrialBalanceByTypeReport(BaseModel):
    as_of_date: Optional[date] = None
    groups: List[TrialBalanceTypeGroup]
    total_debit: float
    total_credit: float
    difference: float
    is_balanced: bool


class LedgerLine(BaseModel):
    id: int
    transaction_id: str
    transaction_date: date
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    debit: float
    credit: float
    running_balance: float


class GeneralLedgerReport(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    opening_balance: float
    entries: List[LedgerLine]
    total_debit: float
    total_credit: float
    closing_balance: float


class StatementLine(BaseModel):
    account_id: Optional[int] = None
    account_code: Optional[str] = None
    account_name: str
    amount: float


class IncomeStatementReport(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    revenue: List[StatementLine]
    cost_of_service: List[StatementLine]
    expenses: List[StatementLine]
    total_revenue: float
    total_cost_of_service: float
    gross_profit: float
    total_expenses: float
    net_profit: float
    gross_profit_margin: float
    net_profit_margin: float


class IncomeStatementSummary(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_revenue: float
    total_cost_of_service: float
    gross_profit: float
    total_expenses: float
    net_profit: float
    gross_profit_margin: float
    net_profit_margin: float


class BalanceSheetReport(BaseModel):
    as_of_date: Optional[date] = None
    assets: List[StatementLine]
    liabilities: List[StatementLine]
    equity: List[StatementLine]
    total_assets: float
    total_liabilities: float
    total_equity: float
    total_liabilities_and_equity: float
    difference: float
    is_balanced: bool


class BalanceSheetSummary(BaseModel):
    as_of_date: Optional[date] = None
    total_assets: float
    total_liabilities: float
    total_equity: float
    difference: float
    is_balanced: bool
    by_type: Dict[str, float]
