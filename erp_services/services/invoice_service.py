import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, NotFoundError, ValidationFailedError
from erp_services.models.invoice_models import Invoice, InvoiceCreateRequest, InvoiceResponse, InvoiceUpdateRequest

logger = logging.getLogger(__name__)


class InvoiceService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_obj(self, invoice_id: int) -> Invoice:
        invoice = await self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        return invoice

    async def _ensure_number_available(self, invoice_number: str, exclude_id: Optional[int] = None):
        query = select(Invoice.id).where(Invoice.invoice_number == invoice_number)
        if exclude_id is not None:
            query = query.where(Invoice.id != exclude_id)
        if (await self.session.execute(query)).first() is not None:
            raise ConflictError(f"Invoice number '{invoice_number}' already exists")

    async def list_invoices(
        self,
        status: Optional[str] = None,
        customer_name: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[InvoiceResponse], int]:
        conditions = []
        if status:
            conditions.append(Invoice.status == status)
        if customer_name:
            conditions.append(Invoice.customer_name.ilike(f"%{customer_name}%"))

        total = await self.session.scalar(select(func.count()).select_from(Invoice).where(*conditions))
        result = await self.session.execute(
            select(Invoice)
            .where(*conditions)
            .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [InvoiceResponse.model_validate(invoice) for invoice in result.scalars().all()], total or 0

    async def get_invoice_obj(self, invoice_id: int) -> Invoice:
        return await self._get_obj(invoice_id)

    async def get_invoice(self, invoice_id: int) -> InvoiceResponse:
        return InvoiceResponse.model_validate(await self._get_obj(invoice_id))

    async def create_invoice(self, request: InvoiceCreateRequest, user_id: str) -> InvoiceResponse:
        await self._ensure_number_available(request.invoice_number)

        values = request.model_dump()
        values["status"] = request.status.value
        values["currency"] = request.currency.upper()
        invoice = Invoice(**values, created_by=user_id, updated_by=user_id)
        self.session.add(invoice)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Invoice number '{request.invoice_number}' already exists")

        await self.session.refresh(invoice)
        logger.info("Created invoice %s for %s", invoice.invoice_number, invoice.customer_name)
        return InvoiceResponse.model_validate(invoice)

    async def update_invoice(self, invoice_id: int, request: InvoiceUpdateRequest, user_id: str) -> InvoiceResponse:
        invoice = await self._get_obj(invoice_id)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        if "invoice_number" in changes and changes["invoice_number"] != invoice.invoice_number:
            await self._ensure_number_available(changes["invoice_number"], exclude_id=invoice_id)
        if "status" in changes:
            changes["status"] = changes["status"].value
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()

        invoice_date = changes.get("invoice_date", invoice.invoice_date)
        due_date = changes.get("due_date", invoice.due_date)
        if due_date < invoice_date:
            raise ValidationFailedError("due_date cannot be before invoice_date")

        for field, value in changes.items():
            setattr(invoice, field, value)
        invoice.updated_by = user_id
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Invoice number '{changes.get('invoice_number')}' already exists")

        await self.session.refresh(invoice)
        return InvoiceResponse.model_validate(invoice)

    async def delete_invoice(self, invoice_id: int) -> None:
        invoice = await self._get_obj(invoice_id)
        await self.session.delete(invoice)
        await self.session.commit()
        logger.info("Deleted invoice %s", invoice.invoice_number)
