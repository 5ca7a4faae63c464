import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import NotFoundError
from erp_services.models.vendor_models import (
    Vendor, VendorCreateRequest, VendorResponse, VendorStatsResponse, VendorUpdateRequest,
)

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10


class VendorService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_obj(self, vendor_id: uuid.UUID) -> Vendor:
        vendor = await self.session.get(Vendor, vendor_id)
        if vendor is None:
            raise NotFoundError("Vendor not found")
        return vendor

    async def create_vendor(self, vendor_data: VendorCreateRequest, user_id: str) -> VendorResponse:
        """Create a new vendor."""
        vendor = Vendor(
            vendor_name=vendor_data.vendor_name,
            category=vendor_data.category,
            classification=vendor_data.classification.value,
            is_preferred=vendor_data.is_preferred,
            contact_person=vendor_data.contact_person,
            phone=vendor_data.phone,
            email=vendor_data.email,
            address=vendor_data.address,
            created_by=user_id,
        )
        self.session.add(vendor)
        await self.session.commit()
        await self.session.refresh(vendor)
        logger.info("Created vendor %s (%s)", vendor.vendor_name, vendor.classification)
        return VendorResponse.model_validate(vendor)

    async def get_vendors(
        self,
        offset: int = 0,
        limit: int = 10,
        classification: Optional[str] = None,
        is_preferred: Optional[bool] = None,
        is_active: Optional[bool] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[VendorResponse], int]:
        """Get vendors with optional filtering."""
        conditions = []
        if classification:
            conditions.append(Vendor.classification == classification)
        if is_preferred is not None:
            conditions.append(Vendor.is_preferred == is_preferred)
        if is_active is not None:
            conditions.append(Vendor.is_active == is_active)
        if category:
            conditions.append(Vendor.category.ilike(f"%{category}%"))
        if search:
            search_term = f"%{search}%"
            conditions.append(
                or_(
                    Vendor.vendor_name.ilike(search_term),
                    Vendor.category.ilike(search_term),
                    Vendor.contact_person.ilike(search_term),
                    Vendor.email.ilike(search_term),
                )
            )

        total = await self.session.scalar(select(func.count()).select_from(Vendor).where(*conditions))
        result = await self.session.execute(
            select(Vendor)
            .where(*conditions)
            .order_by(Vendor.is_preferred.desc(), Vendor.vendor_name)
            .offset(offset)
            .limit(limit)
        )
        return [VendorResponse.model_validate(vendor) for vendor in result.scalars().all()], total or 0

    async def get_vendor_by_id(self, vendor_id: uuid.UUID) -> VendorResponse:
        return VendorResponse.model_validate(await self._get_obj(vendor_id))

    async def update_vendor(self, vendor_id: uuid.UUID, vendor_data: VendorUpdateRequest) -> VendorResponse:
        vendor = await self._get_obj(vendor_id)
        for field, value in vendor_data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(vendor, field, value.value if field == "classification" else value)
        await self.session.commit()
        await self.session.refresh(vendor)
        return VendorResponse.model_validate(vendor)

    async def delete_vendor(self, vendor_id: uuid.UUID) -> None:
        """Delete vendor (soft delete by clearing is_active)."""
        vendor = await self._get_obj(vendor_id)
        vendor.is_active = False
        await self.session.commit()
        logger.info("Deactivated vendor %s", vendor.vendor_name)

    async def search_vendors(self, search_term: str) -> List[Dict[str, Any]]:
        """Search active vendors by name for dropdowns."""
        result = await self.session.execute(
            select(Vendor.id, Vendor.vendor_name, Vendor.classification, Vendor.is_preferred)
            .where(and_(Vendor.is_active.is_(True), Vendor.vendor_name.ilike(f"%{search_term}%")))
            .order_by(Vendor.is_preferred.desc(), Vendor.vendor_name)
            .limit(SEARCH_LIMIT)
        )
        return [
            {
                "id": str(vendor.id),
                "name": vendor.vendor_name,
                "classification": vendor.classification,
                "is_preferred": vendor.is_preferred,
            }
            for vendor in result.all()
        ]

    async def get_vendor_stats(self) -> VendorStatsResponse:
        """Get vendor statistics."""
        total = await self.session.scalar(select(func.count(Vendor.id)))
        active = await self.session.scalar(select(func.count(Vendor.id)).where(Vendor.is_active.is_(True)))
        preferred = await self.session.scalar(select(func.count(Vendor.id)).where(Vendor.is_preferred.is_(True)))
        by_classification = await self.session.execute(
            select(Vendor.classification, func.count(Vendor.id)).group_by(Vendor.classification)
        )
        return VendorStatsResponse(
            total=total or 0,
            active=active or 0,
            preferred=preferred or 0,
            by_classification={classification: count for classification, count in by_classification.all()},
        )
