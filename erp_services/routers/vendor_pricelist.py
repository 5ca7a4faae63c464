import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.vendor_models import (
    VendorPricelistCreateRequest, VendorPricelistResponse, VendorPricelistUpdateRequest,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, ok
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.vendor_pricelist_service import VendorPricelistService

router = APIRouter(prefix="/vendor-pricelist", tags=["Vendor Price List"])


def get_pricelist_service(session: AsyncSession = Depends(get_session)) -> VendorPricelistService:
    return VendorPricelistService(session)


@router.get("", response_model=ApiResponse[List[VendorPricelistResponse]])
async def list_pricelist(
    vendor_id: Optional[uuid.UUID] = Query(None),
    material_id: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: VendorPricelistService = Depends(get_pricelist_service),
):
    """Vendor prices, cheapest first per material."""
    return ok(await service.list_entries(vendor_id, material_id), "Price list retrieved successfully")


@router.get("/{entry_id}", response_model=ApiResponse[VendorPricelistResponse])
async def get_pricelist_entry(
    entry_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: VendorPricelistService = Depends(get_pricelist_service),
):
    return ok(await service.get_entry(entry_id), "Price list entry retrieved successfully")


@router.post("", response_model=ApiResponse[VendorPricelistResponse], status_code=201)
async def create_pricelist_entry(
    request: VendorPricelistCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "vendor_pricelist")),
    service: VendorPricelistService = Depends(get_pricelist_service),
):
    return ok(await service.create_entry(request), "Price list entry created successfully")


@router.put("/{entry_id}", response_model=ApiResponse[VendorPricelistResponse])
async def update_pricelist_entry(
    entry_id: uuid.UUID,
    request: VendorPricelistUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "vendor_pricelist")),
    service: VendorPricelistService = Depends(get_pricelist_service),
):
    return ok(await service.update_entry(entry_id, request), "Price list entry updated successfully")


@router.delete("/{entry_id}", response_model=ApiResponse)
async def delete_pricelist_entry(
    entry_id: uuid.UUID,
    user: CurrentUser = Depends(require_permission("write", "vendor_pricelist")),
    service: VendorPricelistService = Depends(get_pricelist_service),
):
    await service.delete_entry(entry_id)
    return ok(message="Price list entry deleted successfully")
