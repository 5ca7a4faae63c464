import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from erp_services.models.project_models import MilestoneTemplateCreateRequest, MilestoneTemplateResponse
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, ok
from erp_services.routers.projects import get_milestone_service
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.milestone_service import MilestoneService

router = APIRouter(prefix="/templates", tags=["Milestone Templates"])


@router.get("", response_model=ApiResponse[List[MilestoneTemplateResponse]])
async def list_templates(
    project_type: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return ok(await service.list_templates(project_type), "Templates retrieved successfully")


@router.get("/{template_id}", response_model=ApiResponse[MilestoneTemplateResponse])
async def get_template(
    template_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return ok(await service.get_template(template_id), "Template retrieved successfully")


@router.post("", response_model=ApiResponse[MilestoneTemplateResponse], status_code=201)
async def create_template(
    request: MilestoneTemplateCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "milestone_template")),
    service: MilestoneService = Depends(get_milestone_service),
):
    return ok(await service.create_template(request), "Template created successfully")
