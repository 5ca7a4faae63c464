import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, NotFoundError, ValidationFailedError
from erp_services.models.rate_models import (
    ExchangeRate, ExchangeRateBulkRequest, ExchangeRateCreateRequest, ExchangeRateResponse,
    ExchangeRateUpdateRequest, TaxRate, TaxRateCreateRequest, TaxRateResponse, TaxRateUpdateRequest,
    normalize_currency_code,
)

logger = logging.getLogger(__name__)


class ExchangeRateService:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _code(currency_code: str) -> str:
        try:
            return normalize_currency_code(currency_code)
        except ValueError as e:
            raise ValidationFailedError(str(e))

    async def _get_obj(self, currency_code: str) -> Optional[ExchangeRate]:
        result = await self.session.execute(
            select(ExchangeRate).where(ExchangeRate.currency_code == currency_code)
        )
        return result.scalar_one_or_none()

    async def list_rates(self) -> List[ExchangeRateResponse]:
        result = await self.session.execute(select(ExchangeRate).order_by(ExchangeRate.currency_code))
        return [ExchangeRateResponse.model_validate(rate) for rate in result.scalars().all()]

    async def get_rate(self, currency_code: str) -> ExchangeRateResponse:
        rate = await self._get_obj(self._code(currency_code))
        if rate is None:
            raise NotFoundError(f"Exchange rate for {currency_code.upper()} not found")
        return ExchangeRateResponse.model_validate(rate)

    async def create_rate(self, request: ExchangeRateCreateRequest) -> ExchangeRateResponse:
        if await self._get_obj(request.currency_code) is not None:
            raise ConflictError(f"Exchange rate for {request.currency_code} already exists")

        rate = ExchangeRate(currency_code=request.currency_code, rate_to_idr=request.rate_to_idr)
        self.session.add(rate)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Exchange rate for {request.currency_code} already exists")
        await self.session.refresh(rate)
        return ExchangeRateResponse.model_validate(rate)

    async def update_rate(self, currency_code: str, request: ExchangeRateUpdateRequest) -> ExchangeRateResponse:
        code = self._code(currency_code)
        rate = await self._get_obj(code)
        if rate is None:
            raise NotFoundError(f"Exchange rate for {code} not found")
        rate.rate_to_idr = request.rate_to_idr
        await self.session.commit()
        await self.session.refresh(rate)
        return ExchangeRateResponse.model_validate(rate)

    async def delete_rate(self, currency_code: str) -> None:
        code = self._code(currency_code)
        rate = await self._get_obj(code)
        if rate is None:
            raise NotFoundError(f"Exchange rate for {code} not found")
        await self.session.delete(rate)
        await self.session.commit()

    async def bulk_upsert(self, request: ExchangeRateBulkRequest) -> List[ExchangeRateResponse]:
        """Insert or update every rate in one transaction."""
        codes = [item.currency_code for item in request.rates]
        if len(codes) != len(set(codes)):
            raise ValidationFailedError("Duplicate currency codes in bulk update")

        try:
            rates = []
            for item in request.rates:
                rate = await self._get_obj(item.currency_code)
                if rate is None:
                    rate = ExchangeRate(currency_code=item.currency_code, rate_to_idr=item.rate_to_idr)
                    self.session.add(rate)
                else:
                    rate.rate_to_idr = item.rate_to_idr
                rates.append(rate)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Bulk updated %d exchange rates", len(rates))
        for rate in rates:
            await self.session.refresh(rate)
        return [ExchangeRateResponse.model_validate(rate) for rate in rates]


class TaxRateService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_obj(self, tax_rate_id: int) -> TaxRate:
        tax_rate = await self.session.get(TaxRate, tax_rate_id)
        if tax_rate is None:
            raise NotFoundError("Tax rate not found")
        return tax_rate

    async def _ensure_unique(self, tax_name: Optional[str], tax_code: Optional[str], exclude_id: Optional[int] = None):
        conditions = []
        if tax_name:
            conditions.append(TaxRate.tax_name == tax_name)
        if tax_code:
            conditions.append(TaxRate.tax_code == tax_code)
        if not conditions:
            return
        query = select(TaxRate).where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(TaxRate.id != exclude_id)
        if (await self.session.execute(query)).scalars().first() is not None:
            raise ConflictError("Tax rate with this name or code already exists")

    async def list_tax_rates(self, is_active: Optional[bool] = None) -> List[TaxRateResponse]:
        query = select(TaxRate)
        if is_active is not None:
            query = query.where(TaxRate.is_active == is_active)
        result = await self.session.execute(query.order_by(TaxRate.tax_code))
        return [TaxRateResponse.model_validate(tax_rate) for tax_rate in result.scalars().all()]

    async def get_tax_rate(self, tax_rate_id: int) -> TaxRateResponse:
        return TaxRateResponse.model_validate(await self._get_obj(tax_rate_id))

    async def create_tax_rate(self, request: TaxRateCreateRequest) -> TaxRateResponse:
        await self._ensure_unique(request.tax_name, request.tax_code)
        tax_rate = TaxRate(**request.model_dump())
        self.session.add(tax_rate)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Tax rate with this name or code already exists")
        await self.session.refresh(tax_rate)
        return TaxRateResponse.model_validate(tax_rate)

    async def update_tax_rate(self, tax_rate_id: int, request: TaxRateUpdateRequest) -> TaxRateResponse:
        tax_rate = await self._get_obj(tax_rate_id)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        await self._ensure_unique(changes.get("tax_name"), changes.get("tax_code"), exclude_id=tax_rate_id)
        for field, value in changes.items():
            setattr(tax_rate, field, value)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Tax rate with this name or code already exists")
        await self.session.refresh(tax_rate)
        return TaxRateResponse.model_validate(tax_rate)

    async def delete_tax_rate(self, tax_rate_id: int) -> None:
        tax_rate = await self._get_obj(tax_rate_id)
        await self.session.delete(tax_rate)
        await self.session.commit()
