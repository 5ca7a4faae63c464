from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.account_models import AccountCreateRequest, AccountResponse, AccountType, AccountUpdateRequest
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, ok
from erp_services.services.account_service import ChartOfAccountService
from erp_services.services.jwt_service import CurrentUser, get_current_user

router = APIRouter(prefix="/chart-of-accounts", tags=["Chart of Accounts"])


def get_account_service(session: AsyncSession = Depends(get_session)) -> ChartOfAccountService:
    return ChartOfAccountService(session)


@router.get("", response_model=ApiResponse[List[AccountResponse]])
async def list_accounts(
    account_type: Optional[AccountType] = Query(None, description="Filter by account type"),
    search: Optional[str] = Query(None, description="Search by account code or name"),
    user: CurrentUser = Depends(get_current_user),
    service: ChartOfAccountService = Depends(get_account_service),
):
    """Get all accounts ordered by account code."""
    accounts = await service.list_accounts(account_type.value if account_type else None, search)
    return ok(accounts, "Accounts retrieved successfully")


@router.get("/{account_id}", response_model=ApiResponse[AccountResponse])
async def get_account(
    account_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: ChartOfAccountService = Depends(get_account_service),
):
    return ok(await service.get_account(account_id), "Account retrieved successfully")


@router.post("", response_model=ApiResponse[AccountResponse], status_code=201)
async def create_account(
    account_data: AccountCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "account")),
    service: ChartOfAccountService = Depends(get_account_service),
):
    """Create a new account."""
    return ok(await service.create_account(account_data), "Account created successfully")


@router.put("/{account_id}", response_model=ApiResponse[AccountResponse])
async def update_account(
    account_id: int,
    account_data: AccountUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "account")),
    service: ChartOfAccountService = Depends(get_account_service),
):
    """Update an account."""
    return ok(await service.update_account(account_id, account_data), "Account updated successfully")


@router.delete("/{account_id}", response_model=ApiResponse)
async def delete_account(
    account_id: int,
    user: CurrentUser = Depends(require_permission("write", "account")),
    service: ChartOfAccountService = Depends(get_account_service),
):
    """Delete an account that no journal entry references."""
    await service.delete_account(account_id)
    return ok(message="Account deleted successfully")
