from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.invoice_models import InvoiceCreateRequest, InvoiceResponse, InvoiceStatus, InvoiceUpdateRequest
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.invoice_service import InvoiceService
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.pdf_service import InvoicePDFService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(session: AsyncSession = Depends(get_session)) -> InvoiceService:
    return InvoiceService(session)


@router.get("", response_model=ApiResponse[List[InvoiceResponse]])
async def list_invoices(
    status: Optional[InvoiceStatus] = Query(None, description="Filter by invoice status"),
    customer_name: Optional[str] = Query(None, description="Filter by customer name"),
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Get invoices, newest first."""
    invoices, total = await service.list_invoices(
        status=status.value if status else None,
        customer_name=customer_name,
        offset=page.offset,
        limit=page.limit,
    )
    return paginated(invoices, page, total, "Invoices retrieved successfully")


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice(
    invoice_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(await service.get_invoice(invoice_id), "Invoice retrieved successfully")


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Render the invoice as a PDF document."""
    invoice = await service.get_invoice_obj(invoice_id)
    content = InvoicePDFService().render_invoice(invoice)
    filename = f"invoice-{invoice.invoice_number}.pdf"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("", response_model=ApiResponse[InvoiceResponse], status_code=201)
async def create_invoice(
    request: InvoiceCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "invoice")),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(await service.create_invoice(request, user.id), "Invoice created successfully")


@router.put("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def update_invoice(
    invoice_id: int,
    request: InvoiceUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "invoice")),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(await service.update_invoice(invoice_id, request, user.id), "Invoice updated successfully")


@router.delete("/{invoice_id}", response_model=ApiResponse)
async def delete_invoice(
    invoice_id: int,
    user: CurrentUser = Depends(require_permission("write", "invoice")),
    service: InvoiceService = Depends(get_invoice_service),
):
    await service.delete_invoice(invoice_id)
    return ok(message="Invoice deleted successfully")
