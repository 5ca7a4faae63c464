import logging
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, NotFoundError, ValidationFailedError
from erp_services.models.account_models import (
    AccountCreateRequest, AccountResponse, AccountUpdateRequest, ChartOfAccount, JournalEntry,
)

logger = logging.getLogger(__name__)


class ChartOfAccountService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_accounts(self, account_type: Optional[str] = None, search: Optional[str] = None) -> List[AccountResponse]:
        query = select(ChartOfAccount)
        if account_type:
            query = query.where(ChartOfAccount.account_type == account_type)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(ChartOfAccount.account_code.ilike(pattern), ChartOfAccount.account_name.ilike(pattern)))

        result = await self.session.execute(query.order_by(ChartOfAccount.account_code))
        return [AccountResponse.model_validate(account) for account in result.scalars().all()]

    async def get_account_obj(self, account_id: int) -> ChartOfAccount:
        account = await self.session.get(ChartOfAccount, account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    async def get_account(self, account_id: int) -> AccountResponse:
        return AccountResponse.model_validate(await self.get_account_obj(account_id))

    async def _ensure_code_available(self, account_code: str, exclude_id: Optional[int] = None):
        query = select(ChartOfAccount.id).where(ChartOfAccount.account_code == account_code)
        if exclude_id is not None:
            query = query.where(ChartOfAccount.id != exclude_id)
        if (await self.session.execute(query)).first() is not None:
            raise ConflictError(f"Account code '{account_code}' already exists")

    async def create_account(self, account_data: AccountCreateRequest) -> AccountResponse:
        await self._ensure_code_available(account_data.account_code)

        account = ChartOfAccount(
            account_code=account_data.account_code,
            account_name=account_data.account_name,
            account_type=account_data.account_type.value,
            description=account_data.description,
        )
        self.session.add(account)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Account code '{account_data.account_code}' already exists")

        await self.session.refresh(account)
        logger.info("Created account %s (%s)", account.account_code, account.account_type)
        return AccountResponse.model_validate(account)

    async def update_account(self, account_id: int, account_data: AccountUpdateRequest) -> AccountResponse:
        account = await self.get_account_obj(account_id)
        update_data = account_data.model_dump(exclude_unset=True, exclude_none=True)

        if "account_code" in update_data and update_data["account_code"] != account.account_code:
            await self._ensure_code_available(update_data["account_code"], exclude_id=account_id)
        if "account_type" in update_data:
            update_data["account_type"] = update_data["account_type"].value

        for field, value in update_data.items():
            setattr(account, field, value)

        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Account code '{account_data.account_code}' already exists")

        await self.session.refresh(account)
        return AccountResponse.model_validate(account)

    async def delete_account(self, account_id: int) -> None:
        account = await self.get_account_obj(account_id)

        usage = await self.session.scalar(
            select(func.count()).select_from(JournalEntry).where(JournalEntry.account_id == account_id)
        )
        if usage:
            raise ValidationFailedError(f"Cannot delete account: it is used in {usage} journal entries")

        await self.session.delete(account)
        await self.session.commit()
        logger.info("Deleted account %s", account.account_code)
