import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import NotFoundError
from erp_services.models.material_models import (
    Material, MaterialCreateRequest, MaterialResponse, MaterialStatsResponse, MaterialUpdateRequest,
)

logger = logging.getLogger(__name__)

# Query parameters matched with ILIKE
TEXT_FILTERS = ("sbu", "system", "subsystem", "vendor", "brand")
ENUM_FIELDS = ("status", "location")


class MaterialService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_obj(self, material_id: uuid.UUID) -> Material:
        material = await self.session.get(Material, material_id)
        if material is None:
            raise NotFoundError("Material not found")
        return material

    @staticmethod
    def _plain(values: dict) -> dict:
        for field in ENUM_FIELDS:
            if values.get(field) is not None:
                values[field] = values[field].value
        if values.get("curr"):
            values["curr"] = values["curr"].upper()
        return values

    async def get_materials(
        self,
        offset: int = 0,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[str] = None,
        location: Optional[str] = None,
        **text_filters: Optional[str],
    ) -> Tuple[List[MaterialResponse], int]:
        conditions = []
        for field in TEXT_FILTERS:
            value = text_filters.get(field)
            if value:
                conditions.append(getattr(Material, field).ilike(f"%{value}%"))
        if status:
            conditions.append(Material.status == status)
        if location:
            conditions.append(Material.location == location)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Material.item_name.ilike(pattern),
                    Material.brand.ilike(pattern),
                    Material.vendor.ilike(pattern),
                    Material.owner_pn.ilike(pattern),
                )
            )

        total = await self.session.scalar(select(func.count()).select_from(Material).where(*conditions))
        result = await self.session.execute(
            select(Material).where(*conditions).order_by(Material.item_name, Material.id).offset(offset).limit(limit)
        )
        return [MaterialResponse.model_validate(material) for material in result.scalars().all()], total or 0

    async def get_material(self, material_id: uuid.UUID) -> MaterialResponse:
        return MaterialResponse.model_validate(await self._get_obj(material_id))

    async def create_material(self, request: MaterialCreateRequest) -> MaterialResponse:
        material = Material(**self._plain(request.model_dump()))
        self.session.add(material)
        await self.session.commit()
        await self.session.refresh(material)
        logger.info("Created material %s", material.item_name)
        return MaterialResponse.model_validate(material)

    async def update_material(self, material_id: uuid.UUID, request: MaterialUpdateRequest) -> MaterialResponse:
        material = await self._get_obj(material_id)
        for field, value in self._plain(request.model_dump(exclude_unset=True, exclude_none=True)).items():
            setattr(material, field, value)
        await self.session.commit()
        await self.session.refresh(material)
        return MaterialResponse.model_validate(material)

    async def delete_material(self, material_id: uuid.UUID) -> None:
        material = await self._get_obj(material_id)
        await self.session.delete(material)
        await self.session.commit()
        logger.info("Deleted material %s", material.item_name)

    async def get_stats(self) -> MaterialStatsResponse:
        total = await self.session.scalar(select(func.count(Material.id)))
        by_status = await self.session.execute(select(Material.status, func.count(Material.id)).group_by(Material.status))
        by_location = await self.session.execute(
            select(Material.location, func.count(Material.id)).group_by(Material.location)
        )
        return MaterialStatsResponse(
            total=total or 0,
            by_status={status: count for status, count in by_status.all()},
            by_location={(location or "Unknown"): count for location, count in by_location.all()},
        )
