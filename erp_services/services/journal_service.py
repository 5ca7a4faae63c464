import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import NotFoundError, UnbalancedJournalError, ValidationFailedError
from erp_services.models.account_models import (
    AccountBalanceResponse, ChartOfAccount, JournalEntry, JournalEntryResponse,
    JournalEntryUpdateRequest, JournalTransactionCreateRequest, JournalTransactionResponse,
)

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class JournalTotals:
    total_debit: Decimal
    total_credit: Decimal

    @property
    def difference(self) -> Decimal:
        return abs(self.total_debit - self.total_credit)

    @property
    def is_balanced(self) -> bool:
        return self.difference < BALANCE_TOLERANCE


def compute_journal_totals(lines: Iterable) -> JournalTotals:
    """Sum the lines of a journal after checking each line's shape.

    Every line needs an account and exactly one positive amount, either a
    debit or a credit. A journal needs at least two lines.
    """
    lines = list(lines)
    if len(lines) < 2:
        raise ValidationFailedError("A journal transaction needs at least two lines")

    total_debit = ZERO
    total_credit = ZERO
    for index, line in enumerate(lines, start=1):
        if not line.account_id:
            raise ValidationFailedError(f"Line {index}: account is required")
        debit = to_decimal(line.debit)
        credit = to_decimal(line.credit)
        if debit < 0 or credit < 0:
            raise ValidationFailedError(f"Line {index}: amounts cannot be negative")
        if (debit > 0) == (credit > 0):
            raise ValidationFailedError(f"Line {index}: exactly one of debit or credit must be non-zero")
        total_debit += debit
        total_credit += credit

    return JournalTotals(total_debit=total_debit, total_credit=total_credit)


def validate_journal_lines(lines: Iterable) -> JournalTotals:
    """Like ``compute_journal_totals`` but rejects an unbalanced journal."""
    totals = compute_journal_totals(lines)
    if not totals.is_balanced:
        raise UnbalancedJournalError(totals.total_debit, totals.total_credit)
    return totals


def _entry_obj_to_response(entry: JournalEntry) -> JournalEntryResponse:
    account = entry.account
    return JournalEntryResponse(
        id=entry.id,
        transaction_id=entry.transaction_id,
        transaction_date=entry.transaction_date,
        account_id=entry.account_id,
        account_code=account.account_code if account else None,
        account_name=account.account_name if account else None,
        account_type=account.account_type if account else None,
        debit=float(entry.debit or 0),
        credit=float(entry.credit or 0),
        description=entry.description,
        reference_type=entry.reference_type,
        reference_id=entry.reference_id,
        created_by=entry.created_by,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


def _transaction_to_response(entries: List[JournalEntry]) -> JournalTransactionResponse:
    first = entries[0]
    return JournalTransactionResponse(
        transaction_id=first.transaction_id,
        transaction_date=first.transaction_date,
        reference_type=first.reference_type,
        reference_id=first.reference_id,
        total_debit=float(sum((to_decimal(entry.debit) for entry in entries), ZERO)),
        total_credit=float(sum((to_decimal(entry.credit) for entry in entries), ZERO)),
        lines=[_entry_obj_to_response(entry) for entry in entries],
    )


class JournalService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_account(self, account_id: int) -> ChartOfAccount:
        account = await self.session.get(ChartOfAccount, account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    async def list_entries(
        self,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        reference_type: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[JournalEntryResponse], int]:
        conditions = []
        if account_id is not None:
            conditions.append(JournalEntry.account_id == account_id)
        if start_date is not None:
            conditions.append(JournalEntry.transaction_date >= start_date)
        if end_date is not None:
            conditions.append(JournalEntry.transaction_date <= end_date)
        if reference_type:
            conditions.append(JournalEntry.reference_type == reference_type)

        total = await self.session.scalar(select(func.count()).select_from(JournalEntry).where(*conditions))

        result = await self.session.execute(
            select(JournalEntry)
            .where(*conditions)
            .order_by(JournalEntry.transaction_date.desc(), JournalEntry.id.desc())
            .offset(offset)
            .limit(limit)
        )
        entries = result.scalars().unique().all()
        return [_entry_obj_to_response(entry) for entry in entries], total or 0

    async def get_entry(self, entry_id: int) -> JournalEntryResponse:
        entry = await self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise NotFoundError("Journal entry not found")
        return _entry_obj_to_response(entry)

    async def _transaction_entries(self, transaction_id: str) -> List[JournalEntry]:
        result = await self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.transaction_id == transaction_id)
            .order_by(JournalEntry.id)
        )
        entries = list(result.scalars().unique().all())
        if not entries:
            raise NotFoundError("Journal transaction not found")
        return entries

    async def get_transaction(self, transaction_id: str) -> JournalTransactionResponse:
        return _transaction_to_response(await self._transaction_entries(transaction_id))

    async def get_entries_by_account(self, account_id: int) -> List[JournalEntryResponse]:
        await self._get_account(account_id)
        result = await self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.account_id == account_id)
            .order_by(JournalEntry.transaction_date.desc(), JournalEntry.id.desc())
        )
        return [_entry_obj_to_response(entry) for entry in result.scalars().unique().all()]

    async def get_account_balance(self, account_id: int) -> AccountBalanceResponse:
        account = await self._get_account(account_id)
        row = (
            await self.session.execute(
                select(
                    func.coalesce(func.sum(JournalEntry.debit), 0),
                    func.coalesce(func.sum(JournalEntry.credit), 0),
                ).where(JournalEntry.account_id == account_id)
            )
        ).one()
        total_debit, total_credit = to_decimal(row[0]), to_decimal(row[1])
        return AccountBalanceResponse(
            account_id=account.id,
            account_code=account.account_code,
            account_name=account.account_name,
            total_debit=float(total_debit),
            total_credit=float(total_credit),
            balance=float(total_debit - total_credit),
        )

    async def create_transaction(self, request: JournalTransactionCreateRequest, user_id: str) -> JournalTransactionResponse:
        """Persist a balanced journal; nothing is written when any check fails."""
        validate_journal_lines(request.lines)

        account_ids = {line.account_id for line in request.lines}
        result = await self.session.execute(select(ChartOfAccount.id).where(ChartOfAccount.id.in_(account_ids)))
        missing = account_ids - set(result.scalars().all())
        if missing:
            raise NotFoundError(f"Account not found: {', '.join(str(i) for i in sorted(missing))}")

        transaction_id = str(uuid.uuid4())
        try:
            for line in request.lines:
                debit = to_decimal(line.debit)
                credit = to_decimal(line.credit)
                self.session.add(JournalEntry(
                    transaction_id=transaction_id,
                    transaction_date=request.transaction_date,
                    account_id=line.account_id,
                    debit=debit if debit > 0 else None,
                    credit=credit if credit > 0 else None,
                    description=line.description or request.description,
                    reference_type=request.reference_type,
                    reference_id=request.reference_id,
                    created_by=user_id,
                ))
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Created journal transaction %s with %d lines", transaction_id, len(request.lines))
        return await self.get_transaction(transaction_id)

    async def update_entry(self, entry_id: int, request: JournalEntryUpdateRequest) -> JournalEntryResponse:
        entry = await self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise NotFoundError("Journal entry not found")

        for field, value in request.model_dump(exclude_unset=True).items():
            setattr(entry, field, value)
        await self.session.commit()
        await self.session.refresh(entry)
        return _entry_obj_to_response(entry)

    async def delete_transaction(self, transaction_id: str) -> int:
        entries = await self._transaction_entries(transaction_id)
        try:
            for entry in entries:
                await self.session.delete(entry)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Deleted journal transaction %s", transaction_id)
        return len(entries)
