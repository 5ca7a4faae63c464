import uuid
from datetime import date
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.dependencies import get_clock
from erp_services.models.project_models import (
    ActivityResponse, ApplyTemplateRequest, AssignPmRequest, BomItemResponse, BomReplaceRequest,
    MilestoneCreateRequest, MilestoneResponse, ProjectDetailResponse, ProjectManagerResponse, ProjectResponse,
    ProjectStatus, ProjectStatusUpdateRequest, TaskCreateRequest, TaskResponse,
)
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.milestone_service import MilestoneService
from erp_services.services.notification_service import NotificationService, get_notification_service
from erp_services.services.project_service import ProjectService
from erp_services.services.service_clients import IdentityClient, get_identity_client
from erp_services.services.task_service import TaskService

router = APIRouter(prefix="/projects", tags=["Projects"])


def get_project_service(
    session: AsyncSession = Depends(get_session),
    identity_client: IdentityClient = Depends(get_identity_client),
    notifications: NotificationService = Depends(get_notification_service),
) -> ProjectService:
    return ProjectService(session, identity_client, notifications)


def get_milestone_service(
    session: AsyncSession = Depends(get_session),
    clock: Callable[[], date] = Depends(get_clock),
) -> MilestoneService:
    return MilestoneService(session, clock)


def get_task_service(
    session: AsyncSession = Depends(get_session),
    notifications: NotificationService = Depends(get_notification_service),
) -> TaskService:
    return TaskService(session, notifications)


@router.get("", response_model=ApiResponse[List[ProjectResponse]])
async def list_projects(
    status: Optional[ProjectStatus] = Query(None),
    pm_user_id: Optional[str] = Query(None),
    sales_user_id: Optional[str] = Query(None),
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Get projects, newest first."""
    projects, total = await service.list_projects(
        status=status.value if status else None,
        pm_user_id=pm_user_id,
        sales_user_id=sales_user_id,
        offset=page.offset,
        limit=page.limit,
    )
    return paginated(projects, page, total, "Projects retrieved successfully")


@router.get("/managers", response_model=ApiResponse[List[ProjectManagerResponse]])
async def list_project_managers(
    user: CurrentUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Users holding the PROJECT_MANAGER role, read from the identity service."""
    return ok(await service.get_project_managers(), "Project managers retrieved successfully")


@router.get("/{project_id}", response_model=ApiResponse[ProjectDetailResponse])
async def get_project(
    project_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Project with its milestones, BoM and recent activity."""
    return ok(await service.get_project_detail(project_id), "Project retrieved successfully")


@router.put("/{project_id}/assign-pm", response_model=ApiResponse[ProjectResponse])
async def assign_project_manager(
    project_id: uuid.UUID,
    request: AssignPmRequest,
    user: CurrentUser = Depends(require_permission("assign_pm", "project")),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.assign_pm(project_id, request.pm_user_id, user)
    return ok(project, "Project manager assigned successfully")


@router.patch("/{project_id}/status", response_model=ApiResponse[ProjectResponse])
async def update_project_status(
    project_id: uuid.UUID,
    request: ProjectStatusUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.update_status(project_id, request.status, user)
    return ok(project, "Project status updated successfully")


@router.get("/{project_id}/bom", response_model=ApiResponse[List[BomItemResponse]])
async def get_project_bom(
    project_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return ok(await service.get_bom(project_id), "BoM retrieved successfully")


@router.put("/{project_id}/bom", response_model=ApiResponse[List[BomItemResponse]])
async def replace_project_bom(
    project_id: uuid.UUID,
    request: BomReplaceRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Replace every BoM item of the project."""
    return ok(await service.replace_bom(project_id, request, user), "BoM updated successfully")


@router.get("/{project_id}/activities", response_model=ApiResponse[List[ActivityResponse]])
async def get_project_activities(
    project_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    return ok(await service.get_activities(project_id, limit), "Activities retrieved successfully")


# ===== milestones =====

@router.get("/{project_id}/milestones", response_model=ApiResponse[List[MilestoneResponse]])
async def get_project_milestones(
    project_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return ok(await service.get_milestones(project_id), "Milestones retrieved successfully")


@router.post("/{project_id}/milestones", response_model=ApiResponse[MilestoneResponse], status_code=201)
async def create_project_milestone(
    project_id: uuid.UUID,
    request: MilestoneCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return ok(await service.create_milestone(project_id, request, user), "Milestone created successfully")


@router.post(
    "/{project_id}/milestones/apply-template",
    response_model=ApiResponse[List[MilestoneResponse]],
    status_code=201,
)
async def apply_milestone_template(
    project_id: uuid.UUID,
    request: ApplyTemplateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    """Lay out a template's milestones back to back starting today."""
    milestones = await service.apply_template(project_id, request.template_id, user)
    return ok(milestones, f"Template applied: {len(milestones)} milestones created")


# ===== tasks =====

@router.get("/{project_id}/tasks", response_model=ApiResponse[List[TaskResponse]])
async def list_project_tasks(
    project_id: uuid.UUID,
    milestone_id: Optional[uuid.UUID] = Query(None),
    assignee_id: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    tasks = await service.list_tasks(project_id, milestone_id, assignee_id)
    return ok(tasks, "Tasks retrieved successfully")


@router.post("/{project_id}/tasks", response_model=ApiResponse[TaskResponse], status_code=201)
async def create_project_task(
    project_id: uuid.UUID,
    request: TaskCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return ok(await service.create_task(project_id, request, user), "Task created successfully")
