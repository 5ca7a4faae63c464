import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import utcnow
from erp_services.exceptions import NotFoundError
from erp_services.models.vendor_models import (
    Vendor, VendorPricelist, VendorPricelistCreateRequest, VendorPricelistResponse, VendorPricelistUpdateRequest,
)

logger = logging.getLogger(__name__)


def _pricelist_obj_to_response(entry: VendorPricelist) -> VendorPricelistResponse:
    return VendorPricelistResponse(
        id=entry.id,
        material_id=entry.material_id,
        vendor_id=entry.vendor_id,
        vendor_name=entry.vendor.vendor_name if entry.vendor else None,
        price=float(entry.price),
        currency=entry.currency,
        price_updated_at=entry.price_updated_at,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


class VendorPricelistService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_obj(self, entry_id: uuid.UUID) -> VendorPricelist:
        entry = await self.session.get(VendorPricelist, entry_id)
        if entry is None:
            raise NotFoundError("Price list entry not found")
        return entry

    async def list_entries(
        self, vendor_id: Optional[uuid.UUID] = None, material_id: Optional[str] = None
    ) -> List[VendorPricelistResponse]:
        query = select(VendorPricelist)
        if vendor_id is not None:
            query = query.where(VendorPricelist.vendor_id == vendor_id)
        if material_id:
            query = query.where(VendorPricelist.material_id == material_id)
        result = await self.session.execute(query.order_by(VendorPricelist.material_id, VendorPricelist.price))
        return [_pricelist_obj_to_response(entry) for entry in result.scalars().unique().all()]

    async def get_entry(self, entry_id: uuid.UUID) -> VendorPricelistResponse:
        return _pricelist_obj_to_response(await self._get_obj(entry_id))

    async def create_entry(self, request: VendorPricelistCreateRequest) -> VendorPricelistResponse:
        if await self.session.get(Vendor, request.vendor_id) is None:
            raise NotFoundError("Vendor not found")

        entry = VendorPricelist(
            material_id=request.material_id,
            vendor_id=request.vendor_id,
            price=request.price,
            currency=request.currency.upper(),
            price_updated_at=request.price_updated_at or utcnow(),
        )
        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)
        logger.info("Added price for material %s from vendor %s", entry.material_id, entry.vendor_id)
        return _pricelist_obj_to_response(entry)

    async def update_entry(self, entry_id: uuid.UUID, request: VendorPricelistUpdateRequest) -> VendorPricelistResponse:
        entry = await self._get_obj(entry_id)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()
        if "price" in changes and "price_updated_at" not in changes:
            changes["price_updated_at"] = utcnow()
        for field, value in changes.items():
            setattr(entry, field, value)
        await self.session.commit()
        await self.session.refresh(entry)
        return _pricelist_obj_to_response(entry)

    async def delete_entry(self, entry_id: uuid.UUID) -> None:
        entry = await self._get_obj(entry_id)
        await self.session.delete(entry)
        await self.session.commit()
