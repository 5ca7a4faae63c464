import uuid

from fastapi import APIRouter, Depends

from erp_services.models.project_models import MilestoneResponse, MilestoneUpdateRequest
from erp_services.responses import ApiResponse, ok
from erp_services.routers.projects import get_milestone_service
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.milestone_service import MilestoneService

router = APIRouter(prefix="/milestones", tags=["Milestones"])


@router.put("/{milestone_id}", response_model=ApiResponse[MilestoneResponse])
async def update_milestone(
    milestone_id: uuid.UUID,
    request: MilestoneUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    """Update a milestone. Only the project's PM may do this."""
    return ok(await service.update_milestone(milestone_id, request, user), "Milestone updated successfully")


@router.delete("/{milestone_id}", response_model=ApiResponse)
async def delete_milestone(
    milestone_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    await service.delete_milestone(milestone_id, user)
    return ok(message="Milestone deleted successfully")
