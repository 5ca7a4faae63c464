import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.material_models import (
    MaterialCreateRequest, MaterialLocation, MaterialResponse, MaterialStatsResponse, MaterialStatus,
    MaterialUpdateRequest,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.material_service import MaterialService

router = APIRouter(prefix="/materials", tags=["Materials"])


def get_material_service(session: AsyncSession = Depends(get_session)) -> MaterialService:
    return MaterialService(session)


@router.get("", response_model=ApiResponse[List[MaterialResponse]])
async def get_materials(
    search: Optional[str] = Query(None, description="Search item name, brand, vendor or owner part number"),
    sbu: Optional[str] = Query(None),
    system: Optional[str] = Query(None),
    subsystem: Optional[str] = Query(None),
    vendor: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    status: Optional[MaterialStatus] = Query(None),
    location: Optional[MaterialLocation] = Query(None),
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: MaterialService = Depends(get_material_service),
):
    """Get materials with optional filtering."""
    materials, total = await service.get_materials(
        offset=page.offset,
        limit=page.limit,
        search=search,
        status=status.value if status else None,
        location=location.value if location else None,
        sbu=sbu,
        system=system,
        subsystem=subsystem,
        vendor=vendor,
        brand=brand,
    )
    return paginated(materials, page, total, "Materials retrieved successfully")


@router.get("/stats", response_model=ApiResponse[MaterialStatsResponse])
async def get_material_stats(
    user: CurrentUser = Depends(get_current_user),
    service: MaterialService = Depends(get_material_service),
):
    """Material counts by status and location."""
    return ok(await service.get_stats(), "Material statistics retrieved successfully")


@router.get("/{material_id}", response_model=ApiResponse[MaterialResponse])
async def get_material(
    material_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: MaterialService = Depends(get_material_service),
):
    return ok(await service.get_material(material_id), "Material retrieved successfully")


@router.post("", response_model=ApiResponse[MaterialResponse], status_code=201)
async def create_material(
    request: MaterialCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "material")),
    service: MaterialService = Depends(get_material_service),
):
    return ok(await service.create_material(request), "Material created successfully")


@router.put("/{material_id}", response_model=ApiResponse[MaterialResponse])
async def update_material(
    material_id: uuid.UUID,
    request: MaterialUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "material")),
    service: MaterialService = Depends(get_material_service),
):
    return ok(await service.update_material(material_id, request), "Material updated successfully")


@router.delete("/{material_id}", response_model=ApiResponse)
async def delete_material(
    material_id: uuid.UUID,
    user: CurrentUser = Depends(require_permission("write", "material")),
    service: MaterialService = Depends(get_material_service),
):
    await service.delete_material(material_id)
    return ok(message="Material deleted successfully")
