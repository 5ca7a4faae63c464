import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.vendor_models import (
    VendorClassification, VendorCreateRequest, VendorResponse, VendorStatsResponse, VendorUpdateRequest,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.vendor_service import VendorService

router = APIRouter(prefix="/vendors", tags=["Vendors"])


def get_vendor_service(session: AsyncSession = Depends(get_session)) -> VendorService:
    return VendorService(session)


@router.post("", response_model=ApiResponse[VendorResponse], status_code=201)
async def create_vendor(
    vendor_data: VendorCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "vendor")),
    service: VendorService = Depends(get_vendor_service),
):
    """Create a new vendor."""
    return ok(await service.create_vendor(vendor_data, user.id), "Vendor created successfully")


@router.get("", response_model=ApiResponse[List[VendorResponse]])
async def get_vendors(
    search: Optional[str] = Query(None, description="Search by name, category, contact person or email"),
    classification: Optional[VendorClassification] = Query(None, description="Filter by classification"),
    is_preferred: Optional[bool] = Query(None, description="Filter by preferred status"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    category: Optional[str] = Query(None, description="Filter by category"),
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: VendorService = Depends(get_vendor_service),
):
    """Get all vendors with optional filtering."""
    vendors, total = await service.get_vendors(
        offset=page.offset,
        limit=page.limit,
        classification=classification.value if classification else None,
        is_preferred=is_preferred,
        is_active=is_active,
        category=category,
        search=search,
    )
    return paginated(vendors, page, total, "Vendors retrieved successfully")


@router.get("/search", response_model=ApiResponse[List[Dict[str, Any]]])
async def search_vendors(
    q: str = Query(..., min_length=1, description="Search term for vendor name"),
    user: CurrentUser = Depends(get_current_user),
    service: VendorService = Depends(get_vendor_service),
):
    """Search vendors by name for dropdown/autocomplete."""
    return ok(await service.search_vendors(q), "Vendors retrieved successfully")


@router.get("/stats", response_model=ApiResponse[VendorStatsResponse])
async def get_vendor_stats(
    user: CurrentUser = Depends(get_current_user),
    service: VendorService = Depends(get_vendor_service),
):
    """Get vendor statistics."""
    return ok(await service.get_vendor_stats(), "Vendor statistics retrieved successfully")


@router.get("/{vendor_id}", response_model=ApiResponse[VendorResponse])
async def get_vendor(
    vendor_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: VendorService = Depends(get_vendor_service),
):
    """Get vendor by ID."""
    return ok(await service.get_vendor_by_id(vendor_id), "Vendor retrieved successfully")


@router.put("/{vendor_id}", response_model=ApiResponse[VendorResponse])
async def update_vendor(
    vendor_id: uuid.UUID,
    vendor_data: VendorUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "vendor")),
    service: VendorService = Depends(get_vendor_service),
):
    """Update vendor."""
    return ok(await service.update_vendor(vendor_id, vendor_data), "Vendor updated successfully")


@router.delete("/{vendor_id}", response_model=ApiResponse)
async def delete_vendor(
    vendor_id: uuid.UUID,
    user: CurrentUser = Depends(require_permission("write", "vendor")),
    service: VendorService = Depends(get_vendor_service),
):
    """Deactivate vendor."""
    await service.delete_vendor(vendor_id)
    return ok(message="Vendor deactivated successfully")
