from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.exceptions import ValidationFailedError
from erp_services.models.report_models import (
    AccountBalanceLine, BalanceSheetReport, BalanceSheetSummary, GeneralLedgerReport, IncomeStatementReport,
    IncomeStatementSummary, TrialBalanceByTypeReport, TrialBalanceReport,
)
from erp_services.responses import ApiResponse, ok
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["Financial Reports"])


def get_report_service(session: AsyncSession = Depends(get_session)) -> ReportService:
    return ReportService(session)


def parse_account_ids(raw: str) -> List[int]:
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ValidationFailedError("account_ids must be a comma separated list of integers")


@router.get("/balances", response_model=ApiResponse[List[AccountBalanceLine]])
async def get_balances(
    as_of_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """Balance of every account, signed by its normal side."""
    return ok(await service.get_balances(as_of_date), "Account balances retrieved successfully")


@router.get("/general-ledger", response_model=ApiResponse[List[GeneralLedgerReport]])
async def get_general_ledgers(
    account_ids: str = Query(..., description="Comma separated account ids, e.g. 1,2,3"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """General ledgers for several accounts. Unknown ids are skipped."""
    ledgers = await service.general_ledgers(parse_account_ids(account_ids), start_date, end_date)
    return ok(ledgers, "General ledgers retrieved successfully")


@router.get("/general-ledger/{account_id}", response_model=ApiResponse[GeneralLedgerReport])
async def get_general_ledger(
    account_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """Opening balance, entries with running balance, and closing balance."""
    ledger = await service.general_ledger(account_id, start_date, end_date)
    return ok(ledger, "General ledger retrieved successfully")


@router.get("/trial-balance", response_model=ApiResponse[TrialBalanceReport])
async def get_trial_balance(
    as_of_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return ok(await service.trial_balance(as_of_date), "Trial balance retrieved successfully")


@router.get("/trial-balance/by-type", response_model=ApiResponse[TrialBalanceByTypeReport])
async def get_trial_balance_by_type(
    as_of_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return ok(await service.trial_balance_by_type(as_of_date), "Trial balance retrieved successfully")


@router.get("/income-statement", response_model=ApiResponse[IncomeStatementReport])
async def get_income_statement(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """Revenue, cost of service, expenses and the resulting margins."""
    report = await service.income_statement(start_date, end_date)
    return ok(report, "Income statement retrieved successfully")


@router.get("/income-statement/summary", response_model=ApiResponse[IncomeStatementSummary])
async def get_income_statement_summary(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    summary = await service.income_statement_summary(start_date, end_date)
    return ok(summary, "Income statement summary retrieved successfully")


@router.get("/balance-sheet", response_model=ApiResponse[BalanceSheetReport])
async def get_balance_sheet(
    as_of_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return ok(await service.balance_sheet(as_of_date), "Balance sheet retrieved successfully")


@router.get("/balance-sheet/summary", response_model=ApiResponse[BalanceSheetSummary])
async def get_balance_sheet_summary(
    as_of_date: Optional[date] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return ok(await service.balance_sheet_summary(as_of_date), "Balance sheet summary retrieved successfully")
