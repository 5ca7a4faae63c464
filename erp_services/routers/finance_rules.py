"""Discount policies, overhead allocations, pricing rules and payment terms.

The four resources share one CRUD shape, built by ``build_rule_router``;
each router then adds its own lookups.
"""
from datetime import date
from typing import List, Type

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.finance_rule_models import (
    DiscountCheckRequest, DiscountCheckResponse, DiscountPolicyCreateRequest, DiscountPolicyResponse,
    DiscountPolicyUpdateRequest, OverheadAllocationCreateRequest, OverheadAllocationResponse,
    OverheadAllocationUpdateRequest, PaymentTermCreateRequest, PaymentTermResponse, PaymentTermUpdateRequest,
    PricingRuleCreateRequest, PricingRuleResponse, PricingRuleUpdateRequest,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, ok
from erp_services.services.finance_rule_service import (
    DiscountPolicyService, KeyedRuleService, OverheadAllocationService, PaymentTermService, PricingRuleService,
)
from erp_services.services.jwt_service import CurrentUser, get_current_user


def build_rule_router(
    prefix: str,
    tag: str,
    service_class: Type[KeyedRuleService],
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
    response_model: Type[BaseModel],
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])
    label = service_class.label
    can_write = require_permission("write", "finance_rule")

    def get_service(session: AsyncSession = Depends(get_session)) -> KeyedRuleService:
        return service_class(session)

    @router.get("", response_model=ApiResponse[List[response_model]])
    async def list_rules(
        user: CurrentUser = Depends(get_current_user),
        service: KeyedRuleService = Depends(get_service),
    ):
        return ok(await service.list_all(), f"{tag} retrieved successfully")

    @router.get("/{rule_id}", response_model=ApiResponse[response_model])
    async def get_rule(
        rule_id: int,
        user: CurrentUser = Depends(get_current_user),
        service: KeyedRuleService = Depends(get_service),
    ):
        return ok(await service.get(rule_id), f"{label} retrieved successfully")

    @router.post("", response_model=ApiResponse[response_model], status_code=201)
    async def create_rule(
        data: create_model,
        user: CurrentUser = Depends(can_write),
        service: KeyedRuleService = Depends(get_service),
    ):
        return ok(await service.create(data), f"{label} created successfully")

    @router.put("/{rule_id}", response_model=ApiResponse[response_model])
    async def update_rule(
        rule_id: int,
        data: update_model,
        user: CurrentUser = Depends(can_write),
        service: KeyedRuleService = Depends(get_service),
    ):
        return ok(await service.update(rule_id, data), f"{label} updated successfully")

    @router.delete("/{rule_id}", response_model=ApiResponse)
    async def delete_rule(
        rule_id: int,
        user: CurrentUser = Depends(can_write),
        service: KeyedRuleService = Depends(get_service),
    ):
        await service.delete(rule_id)
        return ok(message=f"{label} deleted successfully")

    return router


# ===== discount policies =====

discount_policies_router = build_rule_router(
    "/discount-policies", "Discount Policies", DiscountPolicyService,
    DiscountPolicyCreateRequest, DiscountPolicyUpdateRequest, DiscountPolicyResponse,
)


def get_discount_policy_service(session: AsyncSession = Depends(get_session)) -> DiscountPolicyService:
    return DiscountPolicyService(session)


@discount_policies_router.get("/role/{role}", response_model=ApiResponse[DiscountPolicyResponse])
async def get_discount_policy_by_role(
    role: str,
    user: CurrentUser = Depends(get_current_user),
    service: DiscountPolicyService = Depends(get_discount_policy_service),
):
    return ok(await service.get_by_role(role), "Discount policy retrieved successfully")


@discount_policies_router.post("/check", response_model=ApiResponse[DiscountCheckResponse])
async def check_discount(
    request: DiscountCheckRequest,
    user: CurrentUser = Depends(get_current_user),
    service: DiscountPolicyService = Depends(get_discount_policy_service),
):
    """Whether a role may grant a discount, and whether it needs approval."""
    return ok(await service.check_discount(request), "Discount checked successfully")


# ===== overhead allocations =====

overhead_allocations_router = build_rule_router(
    "/overhead-allocations", "Overhead Allocations", OverheadAllocationService,
    OverheadAllocationCreateRequest, OverheadAllocationUpdateRequest, OverheadAllocationResponse,
)


@overhead_allocations_router.get("/category/{category}", response_model=ApiResponse[OverheadAllocationResponse])
async def get_overhead_allocation_by_category(
    category: str,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    allocation = await OverheadAllocationService(session).get_by_key(category)
    return ok(allocation, "Overhead allocation retrieved successfully")


# ===== pricing rules =====

pricing_rules_router = build_rule_router(
    "/pricing-rules", "Pricing Rules", PricingRuleService,
    PricingRuleCreateRequest, PricingRuleUpdateRequest, PricingRuleResponse,
)


@pricing_rules_router.get("/category/{category}", response_model=ApiResponse[PricingRuleResponse])
async def get_pricing_rule_by_category(
    category: str,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Markup for a category; the engineering pricing engine reads this."""
    rule = await PricingRuleService(session).get_by_key(category)
    return ok(rule, "Pricing rule retrieved successfully")


# ===== payment terms =====

payment_terms_router = build_rule_router(
    "/payment-terms", "Payment Terms", PaymentTermService,
    PaymentTermCreateRequest, PaymentTermUpdateRequest, PaymentTermResponse,
)


@payment_terms_router.get("/{term_id}/due-date", response_model=ApiResponse)
async def get_payment_term_due_date(
    term_id: int,
    invoice_date: date = Query(..., description="Invoice date the term counts from"),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    due_date = await PaymentTermService(session).due_date(term_id, invoice_date)
    return ok({"term_id": term_id, "invoice_date": invoice_date, "due_date": due_date}, "Due date calculated successfully")
