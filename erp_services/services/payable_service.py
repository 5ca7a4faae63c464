import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, InvalidStateTransitionError, NotFoundError, ValidationFailedError
from erp_services.models.payable_models import (
    MatchingStatus, Payable, PayableCreateRequest, PayableItem, PayableItemRequest, PayableItemResponse,
    PayablePayment, PayablePaymentRequest, PayablePaymentResponse, PayableResponse, PayableStatus,
    PayableSummaryResponse, PayableType, PayableUpdateRequest,
)
from erp_services.services.finance_rule_service import PaymentTermService
from erp_services.services.journal_service import ZERO, to_decimal

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[PayableStatus, FrozenSet[PayableStatus]] = {
    PayableStatus.DRAFT: frozenset({PayableStatus.APPROVED, PayableStatus.DISPUTE}),
    PayableStatus.APPROVED: frozenset({PayableStatus.PARTIALLY_PAID, PayableStatus.PAID, PayableStatus.DISPUTE}),
    PayableStatus.PARTIALLY_PAID: frozenset({PayableStatus.PAID, PayableStatus.DISPUTE}),
    PayableStatus.DISPUTE: frozenset({PayableStatus.DRAFT}),
    PayableStatus.PAID: frozenset(),
}

EDITABLE_STATUSES = frozenset({PayableStatus.DRAFT, PayableStatus.DISPUTE})
DUE_SOON_DAYS = 7


def check_transition(current: str, target: PayableStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[PayableStatus(current)]:
        raise InvalidStateTransitionError(f"Cannot move payable from {current} to {target.value}")


@dataclass
class MatchResult:
    matching_status: MatchingStatus
    po_matched: bool
    gr_matched: bool
    line_matches: List[bool] = field(default_factory=list)


def three_way_match(payable_type: PayableType, items: List[PayableItemRequest]) -> MatchResult:
    """Reconcile invoiced quantities against the PO and the goods receipt.

    A line matches when the invoiced quantity equals the ordered quantity
    and, for goods, the received quantity. Service invoices have no goods
    receipt, so only the PO side is compared. Goods lines without a received
    quantity leave the result PENDING unless another line already mismatches.
    """
    line_matches = []
    po_matched = True
    gr_matched = True
    pending = False
    mismatch = False

    for item in items:
        po_ok = to_decimal(item.invoice_qty) == to_decimal(item.po_qty)
        po_matched = po_matched and po_ok
        if payable_type == PayableType.SERVICES:
            gr_ok = True
        elif item.received_qty is None:
            gr_ok = False
            pending = True
        else:
            gr_ok = to_decimal(item.received_qty) == to_decimal(item.invoice_qty)
            mismatch = mismatch or not gr_ok
        gr_matched = gr_matched and gr_ok
        mismatch = mismatch or not po_ok
        line_matches.append(po_ok and gr_ok)

    if mismatch:
        status = MatchingStatus.MISMATCH
    elif pending:
        status = MatchingStatus.PENDING
    else:
        status = MatchingStatus.MATCHED
    return MatchResult(status, po_matched, gr_matched, line_matches)


def _payable_obj_to_response(payable: Payable) -> PayableResponse:
    total = to_decimal(payable.total_amount)
    paid = to_decimal(payable.paid_amount)
    return PayableResponse(
        id=payable.id,
        vendor_invoice_number=payable.vendor_invoice_number,
        po_number=payable.po_number,
        gr_number=payable.gr_number,
        vendor_id=payable.vendor_id,
        vendor_name=payable.vendor_name,
        type=payable.type,
        invoice_date=payable.invoice_date,
        due_date=payable.due_date,
        subtotal=float(payable.subtotal or 0),
        tax_ppn=float(payable.tax_ppn or 0),
        tax_pph23=float(payable.tax_pph23 or 0),
        total_amount=float(total),
        paid_amount=float(paid),
        outstanding_amount=float(total - paid),
        status=payable.status,
        matching_status=payable.matching_status,
        po_matched=bool(payable.po_matched),
        gr_matched=bool(payable.gr_matched),
        payment_terms=payable.payment_terms,
        dispute_reason=payable.dispute_reason,
        notes=payable.notes,
        items=[PayableItemResponse.model_validate(item) for item in payable.items],
        payments=[PayablePaymentResponse.model_validate(payment) for payment in payable.payments],
        created_by=payable.created_by,
        created_at=payable.created_at,
        updated_at=payable.updated_at,
    )


class PayableService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_obj(self, payable_id: int) -> Payable:
        payable = await self.session.get(Payable, payable_id)
        if payable is None:
            raise NotFoundError("Payable not found")
        return payable

    async def _commit(self, payable: Payable) -> PayableResponse:
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Vendor invoice '{payable.vendor_invoice_number}' already exists")
        await self.session.refresh(payable)
        return _payable_obj_to_response(payable)

    @staticmethod
    def _apply_items(payable: Payable, payable_type: PayableType, items: List[PayableItemRequest]) -> None:
        match = three_way_match(payable_type, items)
        subtotal = ZERO
        rows = []
        for item, matched in zip(items, match.line_matches):
            line_total = to_decimal(item.invoice_qty) * to_decimal(item.unit_price)
            subtotal += line_total
            rows.append(PayableItem(
                description=item.description,
                po_qty=item.po_qty,
                received_qty=item.received_qty,
                invoice_qty=item.invoice_qty,
                unit_price=item.unit_price,
                total=line_total,
                matched=matched,
            ))

        payable.items = rows
        payable.subtotal = subtotal
        payable.matching_status = match.matching_status.value
        payable.po_matched = match.po_matched
        payable.gr_matched = match.gr_matched

    @staticmethod
    def _apply_total(payable: Payable) -> None:
        total = to_decimal(payable.subtotal) + to_decimal(payable.tax_ppn) - to_decimal(payable.tax_pph23)
        if total < 0:
            raise ValidationFailedError("tax_pph23 cannot exceed subtotal plus tax_ppn")
        paid = to_decimal(payable.paid_amount)
        if total < paid:
            raise ValidationFailedError(f"Total amount {total:.2f} cannot be below the amount already paid {paid:.2f}")
        payable.total_amount = total

    async def list_payables(
        self,
        status: Optional[str] = None,
        matching_status: Optional[str] = None,
        vendor_name: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[PayableResponse], int]:
        conditions = []
        if status:
            conditions.append(Payable.status == status)
        if matching_status:
            conditions.append(Payable.matching_status == matching_status)
        if vendor_name:
            conditions.append(Payable.vendor_name.ilike(f"%{vendor_name}%"))

        total = await self.session.scalar(select(func.count()).select_from(Payable).where(*conditions))
        result = await self.session.execute(
            select(Payable)
            .where(*conditions)
            .order_by(Payable.due_date, Payable.id)
            .offset(offset)
            .limit(limit)
        )
        return [_payable_obj_to_response(payable) for payable in result.scalars().all()], total or 0

    async def get_payable(self, payable_id: int) -> PayableResponse:
        return _payable_obj_to_response(await self._get_obj(payable_id))

    async def create_payable(self, request: PayableCreateRequest, user_id: str) -> PayableResponse:
        existing = await self.session.execute(
            select(Payable.id).where(Payable.vendor_invoice_number == request.vendor_invoice_number)
        )
        if existing.first() is not None:
            raise ConflictError(f"Vendor invoice '{request.vendor_invoice_number}' already exists")

        due_date = request.due_date
        if due_date is None:
            if not request.payment_term_code:
                raise ValidationFailedError("Either due_date or payment_term_code is required")
            due_date = await PaymentTermService(self.session).due_date_for_code(
                request.payment_term_code, request.invoice_date
            )
        if due_date < request.invoice_date:
            raise ValidationFailedError("due_date cannot be before invoice_date")

        payable = Payable(
            vendor_invoice_number=request.vendor_invoice_number,
            po_number=request.po_number,
            gr_number=request.gr_number,
            vendor_id=request.vendor_id,
            vendor_name=request.vendor_name,
            type=request.type.value,
            invoice_date=request.invoice_date,
            due_date=due_date,
            tax_ppn=request.tax_ppn,
            tax_pph23=request.tax_pph23,
            paid_amount=ZERO,
            status=PayableStatus.DRAFT.value,
            payment_terms=request.payment_term_code,
            notes=request.notes,
            created_by=user_id,
        )
        self._apply_items(payable, request.type, request.items)
        self._apply_total(payable)
        self.session.add(payable)

        response = await self._commit(payable)
        logger.info(
            "Created payable %s for %s (%s)", payable.vendor_invoice_number, payable.vendor_name, payable.matching_status
        )
        return response

    async def update_payable(self, payable_id: int, request: PayableUpdateRequest) -> PayableResponse:
        payable = await self._get_obj(payable_id)
        if PayableStatus(payable.status) not in EDITABLE_STATUSES:
            raise InvalidStateTransitionError(f"Payable in status {payable.status} cannot be edited")

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        items = changes.pop("items", None)
        for field_name, value in changes.items():
            setattr(payable, field_name, value)
        if payable.due_date < payable.invoice_date:
            raise ValidationFailedError("due_date cannot be before invoice_date")
        if items is not None:
            self._apply_items(payable, PayableType(payable.type), request.items)
        self._apply_total(payable)
        return await self._commit(payable)

    async def delete_payable(self, payable_id: int) -> None:
        payable = await self._get_obj(payable_id)
        if payable.status != PayableStatus.DRAFT.value:
            raise InvalidStateTransitionError("Only draft payables can be deleted")
        if to_decimal(payable.paid_amount) > 0 or payable.payments:
            raise ValidationFailedError("Payables with recorded payments cannot be deleted")
        await self.session.delete(payable)
        await self.session.commit()

    async def approve(self, payable_id: int) -> PayableResponse:
        payable = await self._get_obj(payable_id)
        check_transition(payable.status, PayableStatus.APPROVED)
        if payable.matching_status != MatchingStatus.MATCHED.value:
            raise ValidationFailedError(
                f"Payable cannot be approved while matching status is {payable.matching_status}"
            )
        payable.status = PayableStatus.APPROVED.value
        logger.info("Approved payable %s", payable.vendor_invoice_number)
        return await self._commit(payable)

    async def dispute(self, payable_id: int, reason: str) -> PayableResponse:
        payable = await self._get_obj(payable_id)
        check_transition(payable.status, PayableStatus.DISPUTE)
        payable.status = PayableStatus.DISPUTE.value
        payable.dispute_reason = reason
        return await self._commit(payable)

    async def resolve_dispute(self, payable_id: int) -> PayableResponse:
        payable = await self._get_obj(payable_id)
        check_transition(payable.status, PayableStatus.DRAFT)
        payable.status = PayableStatus.DRAFT.value
        payable.dispute_reason = None
        return await self._commit(payable)

    async def record_payment(self, payable_id: int, request: PayablePaymentRequest, user_id: str) -> PayableResponse:
        payable = await self._get_obj(payable_id)
        if payable.status not in (PayableStatus.APPROVED.value, PayableStatus.PARTIALLY_PAID.value):
            raise InvalidStateTransitionError(f"Cannot record a payment on a payable in status {payable.status}")

        outstanding = to_decimal(payable.total_amount) - to_decimal(payable.paid_amount)
        if request.amount > outstanding:
            raise ValidationFailedError(f"Payment {request.amount:.2f} exceeds outstanding amount {outstanding:.2f}")

        new_status = PayableStatus.PAID if request.amount == outstanding else PayableStatus.PARTIALLY_PAID
        if payable.status != new_status.value:
            check_transition(payable.status, new_status)

        payable.payments.append(PayablePayment(
            payment_date=request.payment_date,
            amount=request.amount,
            reference=request.reference,
            notes=request.notes,
            created_by=user_id,
        ))
        payable.paid_amount = to_decimal(payable.paid_amount) + request.amount
        payable.status = new_status.value
        logger.info("Recorded payment of %s on payable %s", request.amount, payable.vendor_invoice_number)
        return await self._commit(payable)

    async def summary(self, today: Optional[date] = None) -> PayableSummaryResponse:
        today = today or date.today()
        result = await self.session.execute(
            select(Payable.total_amount, Payable.paid_amount, Payable.due_date)
            .where(Payable.status != PayableStatus.PAID.value)
        )
        total_payable = due_this_week = overdue = ZERO
        open_count = 0
        for total_amount, paid_amount, due_date in result.all():
            outstanding = to_decimal(total_amount) - to_decimal(paid_amount)
            if outstanding <= 0:
                continue
            open_count += 1
            total_payable += outstanding
            if due_date < today:
                overdue += outstanding
            elif due_date <= today + timedelta(days=DUE_SOON_DAYS):
                due_this_week += outstanding
        return PayableSummaryResponse(
            total_payable=float(total_payable),
            due_this_week=float(due_this_week),
            overdue=float(overdue),
            open_count=open_count,
        )
