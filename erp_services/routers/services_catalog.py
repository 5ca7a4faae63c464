import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.service_catalog_models import (
    ServiceCreateRequest, ServiceResponse, ServiceStatsResponse, ServiceUnit, ServiceUpdateRequest,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.service_catalog_service import ServiceCatalogService

router = APIRouter(prefix="/services", tags=["Services Catalog"])


def get_catalog_service(session: AsyncSession = Depends(get_session)) -> ServiceCatalogService:
    return ServiceCatalogService(session)


@router.get("", response_model=ApiResponse[List[ServiceResponse]])
async def get_services(
    search: Optional[str] = Query(None, description="Search name, code or description"),
    unit: Optional[ServiceUnit] = Query(None),
    is_active: Optional[bool] = Query(True, description="Active services only by default"),
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    services, total = await service.get_services(
        offset=page.offset,
        limit=page.limit,
        search=search,
        unit=unit.value if unit else None,
        is_active=is_active,
    )
    return paginated(services, page, total, "Services retrieved successfully")


@router.get("/stats", response_model=ApiResponse[ServiceStatsResponse])
async def get_service_stats(
    user: CurrentUser = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return ok(await service.get_stats(), "Service statistics retrieved successfully")


@router.get("/code/{service_code}", response_model=ApiResponse[ServiceResponse])
async def get_service_by_code(
    service_code: str,
    user: CurrentUser = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return ok(await service.get_service_by_code(service_code), "Service retrieved successfully")


@router.get("/{service_id}", response_model=ApiResponse[ServiceResponse])
async def get_service(
    service_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return ok(await service.get_service(service_id), "Service retrieved successfully")


@router.post("", response_model=ApiResponse[ServiceResponse], status_code=201)
async def create_service(
    request: ServiceCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "service_catalog")),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return ok(await service.create_service(request), "Service created successfully")


@router.put("/{service_id}", response_model=ApiResponse[ServiceResponse])
async def update_service(
    service_id: uuid.UUID,
    request: ServiceUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "service_catalog")),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return ok(await service.update_service(service_id, request), "Service updated successfully")


@router.delete("/{service_id}", response_model=ApiResponse[ServiceResponse])
async def deactivate_service(
    service_id: uuid.UUID,
    user: CurrentUser = Depends(require_permission("write", "service_catalog")),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    """Soft delete: the service stays in the catalog as inactive."""
    return ok(await service.set_active(service_id, False), "Service deactivated successfully")


@router.post("/{service_id}/restore", response_model=ApiResponse[ServiceResponse])
async def restore_service(
    service_id: uuid.UUID,
    user: CurrentUser = Depends(require_permission("write", "service_catalog")),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return ok(await service.set_active(service_id, True), "Service restored successfully")


@router.delete("/{service_id}/permanent", response_model=ApiResponse)
async def hard_delete_service(
    service_id: uuid.UUID,
    user: CurrentUser = Depends(require_permission("write", "service_catalog")),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    await service.hard_delete_service(service_id)
    return ok(message="Service permanently deleted")
