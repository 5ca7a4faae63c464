import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, NotFoundError
from erp_services.models.service_catalog_models import (
    CatalogService, ServiceCreateRequest, ServiceResponse, ServiceStatsResponse, ServiceUpdateRequest,
)

logger = logging.getLogger(__name__)


class ServiceCatalogService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_obj(self, service_id: uuid.UUID) -> CatalogService:
        service = await self.session.get(CatalogService, service_id)
        if service is None:
            raise NotFoundError("Service not found")
        return service

    async def _ensure_code_available(self, service_code: str, exclude_id: Optional[uuid.UUID] = None):
        query = select(CatalogService.id).where(CatalogService.service_code == service_code)
        if exclude_id is not None:
            query = query.where(CatalogService.id != exclude_id)
        if (await self.session.execute(query)).first() is not None:
            raise ConflictError(f"Service code '{service_code}' already exists")

    async def get_services(
        self,
        offset: int = 0,
        limit: int = 10,
        search: Optional[str] = None,
        unit: Optional[str] = None,
        is_active: Optional[bool] = True,
    ) -> Tuple[List[ServiceResponse], int]:
        conditions = []
        if is_active is not None:
            conditions.append(CatalogService.is_active == is_active)
        if unit:
            conditions.append(CatalogService.unit == unit)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    CatalogService.service_name.ilike(pattern),
                    CatalogService.service_code.ilike(pattern),
                    CatalogService.description.ilike(pattern),
                )
            )

        total = await self.session.scalar(select(func.count()).select_from(CatalogService).where(*conditions))
        result = await self.session.execute(
            select(CatalogService)
            .where(*conditions)
            .order_by(CatalogService.service_name)
            .offset(offset)
            .limit(limit)
        )
        return [ServiceResponse.model_validate(service) for service in result.scalars().all()], total or 0

    async def get_service(self, service_id: uuid.UUID) -> ServiceResponse:
        return ServiceResponse.model_validate(await self._get_obj(service_id))

    async def get_service_by_code(self, service_code: str) -> ServiceResponse:
        result = await self.session.execute(
            select(CatalogService).where(CatalogService.service_code == service_code.strip().upper())
        )
        service = result.scalar_one_or_none()
        if service is None:
            raise NotFoundError(f"Service '{service_code}' not found")
        return ServiceResponse.model_validate(service)

    async def create_service(self, request: ServiceCreateRequest) -> ServiceResponse:
        await self._ensure_code_available(request.service_code)
        values = request.model_dump()
        values["unit"] = request.unit.value
        service = CatalogService(**values)
        self.session.add(service)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Service code '{request.service_code}' already exists")
        await self.session.refresh(service)
        logger.info("Created service %s", service.service_code)
        return ServiceResponse.model_validate(service)

    async def update_service(self, service_id: uuid.UUID, request: ServiceUpdateRequest) -> ServiceResponse:
        service = await self._get_obj(service_id)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "service_code" in changes and changes["service_code"] != service.service_code:
            await self._ensure_code_available(changes["service_code"], exclude_id=service_id)
        if "unit" in changes:
            changes["unit"] = changes["unit"].value
        for field, value in changes.items():
            setattr(service, field, value)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Service code '{changes.get('service_code')}' already exists")
        await self.session.refresh(service)
        return ServiceResponse.model_validate(service)

    async def set_active(self, service_id: uuid.UUID, is_active: bool) -> ServiceResponse:
        """Soft delete (``is_active=False``) or restore a service."""
        service = await self._get_obj(service_id)
        service.is_active = is_active
        await self.session.commit()
        await self.session.refresh(service)
        return ServiceResponse.model_validate(service)

    async def hard_delete_service(self, service_id: uuid.UUID) -> None:
        service = await self._get_obj(service_id)
        await self.session.delete(service)
        await self.session.commit()
        logger.info("Permanently deleted service %s", service.service_code)

    async def get_stats(self) -> ServiceStatsResponse:
        total = await self.session.scalar(select(func.count(CatalogService.id))) or 0
        active = await self.session.scalar(
            select(func.count(CatalogService.id)).where(CatalogService.is_active.is_(True))
        ) or 0
        by_unit = await self.session.execute(
            select(CatalogService.unit, func.count(CatalogService.id)).group_by(CatalogService.unit)
        )
        return ServiceStatsResponse(
            total=total,
            active=active,
            inactive=total - active,
            by_unit={unit: count for unit, count in by_unit.all()},
        )
