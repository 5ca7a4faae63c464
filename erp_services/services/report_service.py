"""Financial statements computed from journal lines at query time."""
import logging
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import NotFoundError
from erp_services.models.account_models import AccountType, ChartOfAccount, JournalEntry, NORMAL_DEBIT_TYPES
from erp_services.models.report_models import (
    AccountBalanceLine, BalanceSheetReport, BalanceSheetSummary, GeneralLedgerReport,
    IncomeStatementReport, IncomeStatementSummary, LedgerLine, StatementLine, TrialBalanceByTypeReport,
    TrialBalanceLine, TrialBalanceReport, TrialBalanceTypeGroup,
)
from erp_services.services.journal_service import BALANCE_TOLERANCE, ZERO, to_decimal

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def money(value: Decimal) -> float:
    return float(to_decimal(value).quantize(CENT))


def natural_balance(account_type: str, debit: Decimal, credit: Decimal) -> Decimal:
    """Balance on the account's normal side."""
    if account_type in NORMAL_DEBIT_TYPES:
        return debit - credit
    return credit - debit


def margin(amount: Decimal, revenue: Decimal) -> float:
    if revenue == ZERO:
        return 0.0
    return money(amount / revenue * 100)


class ReportService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _account_totals(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        before_date: Optional[date] = None,
        account_ids: Optional[List[int]] = None,
    ):
        """Debit and credit sums per account, zero for accounts without lines."""
        join_conditions = [JournalEntry.account_id == ChartOfAccount.id]
        if start_date is not None:
            join_conditions.append(JournalEntry.transaction_date >= start_date)
        if end_date is not None:
            join_conditions.append(JournalEntry.transaction_date <= end_date)
        if before_date is not None:
            join_conditions.append(JournalEntry.transaction_date < before_date)

        query = (
            select(
                ChartOfAccount.id,
                ChartOfAccount.account_code,
                ChartOfAccount.account_name,
                ChartOfAccount.account_type,
                func.coalesce(func.sum(JournalEntry.debit), 0).label("total_debit"),
                func.coalesce(func.sum(JournalEntry.credit), 0).label("total_credit"),
            )
            .select_from(ChartOfAccount)
            .outerjoin(JournalEntry, and_(*join_conditions))
            .group_by(ChartOfAccount.id, ChartOfAccount.account_code, ChartOfAccount.account_name, ChartOfAccount.account_type)
            .order_by(ChartOfAccount.account_code)
        )
        if account_ids is not None:
            query = query.where(ChartOfAccount.id.in_(account_ids))

        result = await self.session.execute(query)
        return [
            (row.id, row.account_code, row.account_name, row.account_type,
             to_decimal(row.total_debit), to_decimal(row.total_credit))
            for row in result.all()
        ]

    # ===== balances =====

    async def get_balances(self, as_of_date: Optional[date] = None) -> List[AccountBalanceLine]:
        rows = await self._account_totals(end_date=as_of_date)
        return [
            AccountBalanceLine(
                account_id=account_id,
                account_code=code,
                account_name=name,
                account_type=account_type,
                total_debit=money(debit),
                total_credit=money(credit),
                balance=money(natural_balance(account_type, debit, credit)),
            )
            for account_id, code, name, account_type, debit, credit in rows
        ]

    # ===== trial balance =====

    async def _trial_balance_lines(self, as_of_date: Optional[date]) -> List[TrialBalanceLine]:
        lines = []
        for account_id, code, name, account_type, debit, credit in await self._account_totals(end_date=as_of_date):
            net = debit - credit
            if abs(net) < BALANCE_TOLERANCE:
                continue
            lines.append(TrialBalanceLine(
                account_id=account_id,
                account_code=code,
                account_name=name,
                account_type=account_type,
                debit=money(net) if net > 0 else 0.0,
                credit=money(-net) if net < 0 else 0.0,
            ))
        return lines

    async def trial_balance(self, as_of_date: Optional[date] = None) -> TrialBalanceReport:
        lines = await self._trial_balance_lines(as_of_date)
        total_debit = sum((to_decimal(line.debit) for line in lines), ZERO)
        total_credit = sum((to_decimal(line.credit) for line in lines), ZERO)
        difference = abs(total_debit - total_credit)
        return TrialBalanceReport(
            as_of_date=as_of_date,
            accounts=lines,
            total_debit=money(total_debit),
            total_credit=money(total_credit),
            difference=money(difference),
            is_balanced=difference < BALANCE_TOLERANCE,
        )

    async def trial_balance_by_type(self, as_of_date: Optional[date] = None) -> TrialBalanceByTypeReport:
        report = await self.trial_balance(as_of_date)
        groups = OrderedDict((account_type.value, []) for account_type in AccountType)
        for line in report.accounts:
            groups.setdefault(line.account_type, []).append(line)

        return TrialBalanceByTypeReport(
            as_of_date=as_of_date,
            groups=[
                TrialBalanceTypeGroup(
                    account_type=account_type,
                    accounts=lines,
                    total_debit=money(sum((to_decimal(line.debit) for line in lines), ZERO)),
                    total_credit=money(sum((to_decimal(line.credit) for line in lines), ZERO)),
                )
                for account_type, lines in groups.items()
                if lines
            ],
            total_debit=report.total_debit,
            total_credit=report.total_credit,
            difference=report.difference,
            is_balanced=report.is_balanced,
        )

    # ===== general ledger =====

    async def general_ledger(
        self, account_id: int, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> GeneralLedgerReport:
        account = await self.session.get(ChartOfAccount, account_id)
        if account is None:
            raise NotFoundError("Account not found")

        opening = ZERO
        if start_date is not None:
            totals = await self._account_totals(before_date=start_date, account_ids=[account_id])
            _, _, _, _, debit, credit = totals[0]
            opening = natural_balance(account.account_type, debit, credit)

        query = select(JournalEntry).where(JournalEntry.account_id == account_id)
        if start_date is not None:
            query = query.where(JournalEntry.transaction_date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.transaction_date <= end_date)
        result = await self.session.execute(query.order_by(JournalEntry.transaction_date, JournalEntry.id))

        running = opening
        total_debit = ZERO
        total_credit = ZERO
        entries = []
        for entry in result.scalars().unique().all():
            debit = to_decimal(entry.debit)
            credit = to_decimal(entry.credit)
            total_debit += debit
            total_credit += credit
            running += natural_balance(account.account_type, debit, credit)
            entries.append(LedgerLine(
                id=entry.id,
                transaction_id=entry.transaction_id,
                transaction_date=entry.transaction_date,
                description=entry.description,
                reference_type=entry.reference_type,
                reference_id=entry.reference_id,
                debit=money(debit),
                credit=money(credit),
                running_balance=money(running),
            ))

        return GeneralLedgerReport(
            account_id=account.id,
            account_code=account.account_code,
            account_name=account.account_name,
            account_type=account.account_type,
            start_date=start_date,
            end_date=end_date,
            opening_balance=money(opening),
            entries=entries,
            total_debit=money(total_debit),
            total_credit=money(total_credit),
            closing_balance=money(running),
        )

    async def general_ledgers(
        self, account_ids: List[int], start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[GeneralLedgerReport]:
        ledgers = []
        for account_id in account_ids:
            try:
                ledgers.append(await self.general_ledger(account_id, start_date, end_date))
            except NotFoundError:
                logger.info("Skipping unknown account %s in bulk general ledger", account_id)
        return ledgers

    # ===== income statement =====

    async def income_statement(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> IncomeStatementReport:
        sections = {
            AccountType.REVENUE.value: [],
            AccountType.COST_OF_SERVICE.value: [],
            AccountType.EXPENSE.value: [],
        }
        totals = {key: ZERO for key in sections}

        for account_id, code, name, account_type, debit, credit in await self._account_totals(start_date, end_date):
            if account_type not in sections:
                continue
            amount = natural_balance(account_type, debit, credit)
            if abs(amount) < BALANCE_TOLERANCE:
                continue
            sections[account_type].append(StatementLine(
                account_id=account_id, account_code=code, account_name=name, amount=money(amount)
            ))
            totals[account_type] += amount

        revenue = totals[AccountType.REVENUE.value]
        cost_of_service = totals[AccountType.COST_OF_SERVICE.value]
        expenses = totals[AccountType.EXPENSE.value]
        gross_profit = revenue - cost_of_service
        net_profit = gross_profit - expenses

        return IncomeStatementReport(
            start_date=start_date,
            end_date=end_date,
            revenue=sections[AccountType.REVENUE.value],
            cost_of_service=sections[AccountType.COST_OF_SERVICE.value],
            expenses=sections[AccountType.EXPENSE.value],
            total_revenue=money(revenue),
            total_cost_of_service=money(cost_of_service),
            gross_profit=money(gross_profit),
            total_expenses=money(expenses),
            net_profit=money(net_profit),
            gross_profit_margin=margin(gross_profit, revenue),
            net_profit_margin=margin(net_profit, revenue),
        )

    async def income_statement_summary(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> IncomeStatementSummary:
        report = await self.income_statement(start_date, end_date)
        return IncomeStatementSummary(**report.model_dump(exclude={"revenue", "cost_of_service", "expenses"}))

    # ===== balance sheet =====

    async def balance_sheet(self, as_of_date: Optional[date] = None) -> BalanceSheetReport:
        assets, liabilities, equity = [], [], []
        total_assets = total_liabilities = total_equity = ZERO
        current_earnings = ZERO

        for account_id, code, name, account_type, debit, credit in await self._account_totals(end_date=as_of_date):
            amount = natural_balance(account_type, debit, credit)
            if account_type == AccountType.REVENUE.value:
                current_earnings += amount
                continue
            if account_type in (AccountType.EXPENSE.value, AccountType.COST_OF_SERVICE.value):
                current_earnings -= amount
                continue
            if abs(amount) < BALANCE_TOLERANCE:
                continue

            line = StatementLine(account_id=account_id, account_code=code, account_name=name, amount=money(amount))
            if account_type == AccountType.ASSET.value:
                assets.append(line)
                total_assets += amount
            elif account_type == AccountType.LIABILITY.value:
                liabilities.append(line)
                total_liabilities += amount
            else:
                equity.append(line)
                total_equity += amount

        # Revenue and expense accounts are not closed yet; their net result belongs to equity
        if abs(current_earnings) >= BALANCE_TOLERANCE:
            equity.append(StatementLine(account_name="Current Period Earnings", amount=money(current_earnings)))
            total_equity += current_earnings

        difference = abs(total_assets - (total_liabilities + total_equity))
        return BalanceSheetReport(
            as_of_date=as_of_date,
            assets=assets,
            liabilities=liabilities,
            equity=equity,
            total_assets=money(total_assets),
            total_liabilities=money(total_liabilities),
            total_equity=money(total_equity),
            total_liabilities_and_equity=money(total_liabilities + total_equity),
            difference=money(difference),
            is_balanced=difference < BALANCE_TOLERANCE,
        )

    async def balance_sheet_summary(self, as_of_date: Optional[date] = None) -> BalanceSheetSummary:
        report = await self.balance_sheet(as_of_date)
        return BalanceSheetSummary(
            as_of_date=as_of_date,
            total_assets=report.total_assets,
            total_liabilities=report.total_liabilities,
            total_equity=report.total_equity,
            difference=report.difference,
            is_balanced=report.is_balanced,
            by_type={
                AccountType.ASSET.value: report.total_assets,
                AccountType.LIABILITY.value: report.total_liabilities,
                AccountType.EQUITY.value: report.total_equity,
            },
        )
