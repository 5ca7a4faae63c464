import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, NotFoundError, ValidationFailedError
from erp_services.models.finance_rule_models import (
    DiscountCheckRequest, DiscountCheckResponse, DiscountPolicy, DiscountPolicyResponse,
    OverheadAllocation, OverheadAllocationResponse, PaymentTerm, PaymentTermResponse,
    PricingRule, PricingRuleResponse,
)
from erp_services.policies import Role

logger = logging.getLogger(__name__)


class KeyedRuleService:
    """CRUD for rule rows identified by one unique business key."""

    model = None
    response_model = None
    key_field = None
    label = None

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_response(self, obj):
        return self.response_model.model_validate(obj)

    async def _get_obj(self, rule_id: int):
        obj = await self.session.get(self.model, rule_id)
        if obj is None:
            raise NotFoundError(f"{self.label} not found")
        return obj

    async def _get_by_key_obj(self, key: str):
        result = await self.session.execute(
            select(self.model).where(getattr(self.model, self.key_field) == key)
        )
        return result.scalar_one_or_none()

    async def _ensure_key_available(self, key: str, exclude_id: int = None):
        existing = await self._get_by_key_obj(key)
        if existing is not None and existing.id != exclude_id:
            raise ConflictError(f"{self.label} with {self.key_field} '{key}' already exists")

    def _validate(self, values: dict):
        """Hook for rules spanning several fields; ``values`` is the merged row."""

    @staticmethod
    def _plain(values: dict) -> dict:
        return {k: (v.value if isinstance(v, Role) else v) for k, v in values.items()}

    async def list_all(self) -> List:
        result = await self.session.execute(
            select(self.model).order_by(getattr(self.model, self.key_field))
        )
        return [self._to_response(obj) for obj in result.scalars().all()]

    async def get(self, rule_id: int):
        return self._to_response(await self._get_obj(rule_id))

    async def get_by_key(self, key: str):
        obj = await self._get_by_key_obj(key)
        if obj is None:
            raise NotFoundError(f"{self.label} for '{key}' not found")
        return self._to_response(obj)

    async def create(self, data: BaseModel):
        values = self._plain(data.model_dump())
        self._validate(values)
        await self._ensure_key_available(values[self.key_field])

        obj = self.model(**values)
        self.session.add(obj)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"{self.label} with {self.key_field} '{values[self.key_field]}' already exists")

        await self.session.refresh(obj)
        logger.info("Created %s %s", self.label, values[self.key_field])
        return self._to_response(obj)

    async def update(self, rule_id: int, data: BaseModel):
        obj = await self._get_obj(rule_id)
        changes = self._plain(data.model_dump(exclude_unset=True))

        merged = {column.name: getattr(obj, column.name) for column in self.model.__table__.columns}
        merged.update(changes)
        self._validate(merged)

        for column in self.model.__table__.columns:
            if not column.nullable and column.name in changes and changes[column.name] is None:
                raise ValidationFailedError(f"{column.name} cannot be null")
        if changes.get(self.key_field) not in (None, getattr(obj, self.key_field)):
            await self._ensure_key_available(changes[self.key_field], exclude_id=rule_id)

        for field, value in changes.items():
            setattr(obj, field, value)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"{self.label} with {self.key_field} '{changes.get(self.key_field)}' already exists")

        await self.session.refresh(obj)
        return self._to_response(obj)

    async def delete(self, rule_id: int) -> None:
        obj = await self._get_obj(rule_id)
        await self.session.delete(obj)
        await self.session.commit()
        logger.info("Deleted %s %s", self.label, getattr(obj, self.key_field))


class DiscountPolicyService(KeyedRuleService):
    model = DiscountPolicy
    response_model = DiscountPolicyResponse
    key_field = "user_role"
    label = "Discount policy"

    def _validate(self, values: dict):
        maximum = values.get("max_discount_percentage")
        threshold = values.get("requires_approval_above")
        if maximum is None:
            raise ValidationFailedError("max_discount_percentage is required")
        if threshold is not None and Decimal(str(threshold)) > Decimal(str(maximum)):
            raise ValidationFailedError("requires_approval_above cannot exceed max_discount_percentage")

    async def get_by_role(self, role: str) -> DiscountPolicyResponse:
        if role not in Role.__members__:
            raise ValidationFailedError(f"Invalid user role: {role}")
        return await self.get_by_key(role)

    async def check_discount(self, request: DiscountCheckRequest) -> DiscountCheckResponse:
        policy = await self.get_by_role(request.user_role.value)
        requested = request.discount_percentage
        maximum = Decimal(str(policy.max_discount_percentage))
        threshold = policy.requires_approval_above
        allowed = requested <= maximum
        return DiscountCheckResponse(
            user_role=policy.user_role,
            discount_percentage=float(requested),
            max_discount_percentage=policy.max_discount_percentage,
            allowed=allowed,
            requires_approval=allowed and threshold is not None and requested > Decimal(str(threshold)),
        )


class OverheadAllocationService(KeyedRuleService):
    model = OverheadAllocation
    response_model = OverheadAllocationResponse
    key_field = "cost_category"
    label = "Overhead allocation"

    def _validate(self, values: dict):
        if values.get("allocation_percentage_to_hpp") is None:
            raise ValidationFailedError("allocation_percentage_to_hpp is required")


class PricingRuleService(KeyedRuleService):
    model = PricingRule
    response_model = PricingRuleResponse
    key_field = "category"
    label = "Pricing rule"

    def _validate(self, values: dict):
        if values.get("markup_percentage") is None:
            raise ValidationFailedError("markup_percentage is required")


class PaymentTermService(KeyedRuleService):
    model = PaymentTerm
    response_model = PaymentTermResponse
    key_field = "term_code"
    label = "Payment term"

    def _validate(self, values: dict):
        for field in ("term_name", "days_until_due"):
            if values.get(field) is None:
                raise ValidationFailedError(f"{field} is required")

    async def due_date(self, term_id: int, invoice_date: date) -> date:
        term = await self._get_obj(term_id)
        return invoice_date + timedelta(days=term.days_until_due)

    async def due_date_for_code(self, term_code: str, invoice_date: date) -> date:
        term = await self._get_by_key_obj(term_code)
        if term is None:
            raise NotFoundError(f"Payment term '{term_code}' not found")
        if not term.is_active:
            raise ValidationFailedError(f"Payment term '{term_code}' is not active")
        return invoice_date + timedelta(days=term.days_until_due)
