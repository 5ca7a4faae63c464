from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.account_models import (
    AccountBalanceResponse, JournalEntryResponse, JournalEntryUpdateRequest, JournalTransactionCreateRequest,
    JournalTransactionResponse, JournalValidationRequest, JournalValidationResponse,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.journal_service import JournalService, compute_journal_totals
from erp_services.services.jwt_service import CurrentUser, get_current_user

router = APIRouter(prefix="/journal-entries", tags=["Journal Entries"])


def get_journal_service(session: AsyncSession = Depends(get_session)) -> JournalService:
    return JournalService(session)


@router.get("", response_model=ApiResponse[List[JournalEntryResponse]])
async def list_journal_entries(
    account_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    reference_type: Optional[str] = Query(None),
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: JournalService = Depends(get_journal_service),
):
    """Get journal lines, newest first."""
    entries, total = await service.list_entries(
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
        reference_type=reference_type,
        offset=page.offset,
        limit=page.limit,
    )
    return paginated(entries, page, total, "Journal entries retrieved successfully")


@router.post("/validate", response_model=ApiResponse[JournalValidationResponse])
async def validate_journal(
    request: JournalValidationRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """Check a draft journal without saving it."""
    totals = compute_journal_totals(request.lines)
    result = JournalValidationResponse(
        total_debit=float(totals.total_debit),
        total_credit=float(totals.total_credit),
        difference=float(totals.difference),
        is_balanced=totals.is_balanced,
    )
    message = "Journal is balanced" if totals.is_balanced else "Journal is not balanced"
    return ok(result, message)


@router.get("/transactions/{transaction_id}", response_model=ApiResponse[JournalTransactionResponse])
async def get_transaction(
    transaction_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: JournalService = Depends(get_journal_service),
):
    return ok(await service.get_transaction(transaction_id), "Transaction retrieved successfully")


@router.delete("/transactions/{transaction_id}", response_model=ApiResponse)
async def delete_transaction(
    transaction_id: str,
    user: CurrentUser = Depends(require_permission("write", "journal")),
    service: JournalService = Depends(get_journal_service),
):
    """Delete every line of a transaction."""
    deleted = await service.delete_transaction(transaction_id)
    return ok({"transaction_id": transaction_id, "deleted_lines": deleted}, "Transaction deleted successfully")


@router.get("/account/{account_id}", response_model=ApiResponse[List[JournalEntryResponse]])
async def get_entries_by_account(
    account_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: JournalService = Depends(get_journal_service),
):
    return ok(await service.get_entries_by_account(account_id), "Journal entries retrieved successfully")


@router.get("/account/{account_id}/balance", response_model=ApiResponse[AccountBalanceResponse])
async def get_account_balance(
    account_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: JournalService = Depends(get_journal_service),
):
    """Debit minus credit over every line of the account."""
    return ok(await service.get_account_balance(account_id), "Account balance retrieved successfully")


@router.get("/{entry_id}", response_model=ApiResponse[JournalEntryResponse])
async def get_journal_entry(
    entry_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: JournalService = Depends(get_journal_service),
):
    return ok(await service.get_entry(entry_id), "Journal entry retrieved successfully")


@router.post("", response_model=ApiResponse[JournalTransactionResponse], status_code=201)
async def create_transaction(
    request: JournalTransactionCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "journal")),
    service: JournalService = Depends(get_journal_service),
):
    """Create a balanced journal transaction."""
    transaction = await service.create_transaction(request, user.id)
    return ok(transaction, "Journal transaction created successfully")


@router.patch("/{entry_id}", response_model=ApiResponse[JournalEntryResponse])
async def update_journal_entry(
    entry_id: int,
    request: JournalEntryUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "journal")),
    service: JournalService = Depends(get_journal_service),
):
    """Update descriptive fields of one line. Amounts cannot change."""
    return ok(await service.update_entry(entry_id, request), "Journal entry updated successfully")
