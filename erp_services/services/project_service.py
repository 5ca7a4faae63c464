import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp_services.exceptions import InvalidStateTransitionError, NotFoundError, PermissionDeniedError, ValidationFailedError
from erp_services.models.project_models import (
    ActivityResponse, ActivityType, BomItemResponse, BomReplaceRequest, MilestoneResponse, Project,
    ProjectActivity, ProjectBomItem, ProjectDetailResponse, ProjectManagerResponse, ProjectMilestone,
    ProjectResponse, ProjectStatus, TaskResponse,
)
from erp_services.policies import Role
from erp_services.services.jwt_service import CurrentUser
from erp_services.services.notification_service import NotificationService
from erp_services.services.service_clients import IdentityClient

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10

PROJECT_TRANSITIONS = {
    ProjectStatus.NEW: {ProjectStatus.PLANNING, ProjectStatus.CANCELLED},
    ProjectStatus.PLANNING: {ProjectStatus.IN_PROGRESS, ProjectStatus.ON_HOLD, ProjectStatus.CANCELLED},
    ProjectStatus.IN_PROGRESS: {ProjectStatus.ON_HOLD, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED},
    ProjectStatus.ON_HOLD: {ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELLED},
    ProjectStatus.COMPLETED: set(),
    ProjectStatus.CANCELLED: set(),
}


async def get_project_or_404(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    return project


def ensure_project_manager(project: Project, user: CurrentUser, action: str) -> None:
    if project.pm_user_id is None or project.pm_user_id != user.id:
        raise PermissionDeniedError(f"Forbidden: Only the assigned PM can {action}")


def record_activity(
    session: AsyncSession,
    project_id: uuid.UUID,
    user_id: Optional[str],
    activity_type: ActivityType,
    description: str,
    details: Optional[Dict[str, Any]] = None,
) -> ProjectActivity:
    activity = ProjectActivity(
        project_id=project_id,
        user_id=user_id,
        activity_type=activity_type.value,
        description=description,
        details=details,
    )
    session.add(activity)
    return activity


def milestone_to_response(milestone: ProjectMilestone, include_tasks: bool = True) -> MilestoneResponse:
    return MilestoneResponse(
        id=milestone.id,
        project_id=milestone.project_id,
        name=milestone.name,
        description=milestone.description,
        start_date=milestone.start_date,
        end_date=milestone.end_date,
        status=milestone.status,
        tasks=[TaskResponse.model_validate(task) for task in milestone.tasks] if include_tasks else [],
        created_at=milestone.created_at,
        updated_at=milestone.updated_at,
    )


class ProjectService:
    def __init__(
        self,
        session: AsyncSession,
        identity_client: Optional[IdentityClient] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.session = session
        self.identity_client = identity_client
        self.notifications = notifications

    async def list_projects(
        self,
        status: Optional[str] = None,
        pm_user_id: Optional[str] = None,
        sales_user_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[ProjectResponse], int]:
        conditions = []
        if status:
            conditions.append(Project.status == status)
        if pm_user_id:
            conditions.append(Project.pm_user_id == pm_user_id)
        if sales_user_id:
            conditions.append(Project.sales_user_id == sales_user_id)

        total = await self.session.scalar(select(func.count()).select_from(Project).where(*conditions))
        result = await self.session.execute(
            select(Project).where(*conditions).order_by(Project.created_at.desc()).offset(offset).limit(limit)
        )
        return [ProjectResponse.model_validate(project) for project in result.scalars().all()], total or 0

    async def get_project_detail(self, project_id: uuid.UUID) -> ProjectDetailResponse:
        result = await self.session.execute(
            select(Project)
            .where(Project.id == project_id)
            .options(
                selectinload(Project.milestones).selectinload(ProjectMilestone.tasks),
                selectinload(Project.bom_items),
            )
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found")

        activities = await self.get_activities(project_id, limit=RECENT_ACTIVITY_LIMIT)
        return ProjectDetailResponse(
            **ProjectResponse.model_validate(project).model_dump(),
            milestones=[milestone_to_response(milestone) for milestone in project.milestones],
            bom_items=[BomItemResponse.model_validate(item) for item in project.bom_items],
            activities=activities,
        )

    async def get_project_managers(self) -> List[ProjectManagerResponse]:
        users = await self.identity_client.get_users_by_role(Role.PROJECT_MANAGER.value)
        return [
            ProjectManagerResponse(
                id=str(user["id"]),
                email=user.get("email"),
                full_name=user.get("full_name"),
                roles=user.get("roles") or [],
            )
            for user in users
        ]

    async def assign_pm(self, project_id: uuid.UUID, pm_user_id: str, user: CurrentUser) -> ProjectResponse:
        project = await get_project_or_404(self.session, project_id)

        pm_user = await self.identity_client.get_user(pm_user_id)
        if pm_user is None:
            raise ValidationFailedError("Project manager user not found")
        if Role.PROJECT_MANAGER.value not in (pm_user.get("roles") or []):
            raise ValidationFailedError("Selected user does not have the PROJECT_MANAGER role")

        old_status = project.status
        project.pm_user_id = str(pm_user_id)
        if project.status == ProjectStatus.NEW.value:
            project.status = ProjectStatus.PLANNING.value

        record_activity(
            self.session,
            project.id,
            user.id,
            ActivityType.STATUS_CHANGE,
            f"Project manager assigned: {pm_user.get('email') or pm_user_id}",
            {"old_status": old_status, "new_status": project.status, "pm_user_id": str(pm_user_id)},
        )
        await self.session.commit()
        await self.session.refresh(project)
        logger.info("Assigned PM %s to project %s", pm_user_id, project.project_number)

        if self.notifications is not None:
            await self.notifications.notify(
                pm_user_id,
                f"You have been assigned as project manager of {project.project_name}",
                link=f"/projects/{project.id}",
            )
        return ProjectResponse.model_validate(project)

    async def update_status(self, project_id: uuid.UUID, status: ProjectStatus, user: CurrentUser) -> ProjectResponse:
        project = await get_project_or_404(self.session, project_id)
        ensure_project_manager(project, user, "change the project status")

        current = ProjectStatus(project.status)
        if status not in PROJECT_TRANSITIONS[current]:
            raise InvalidStateTransitionError(f"Cannot move project from {current.value} to {status.value}")

        project.status = status.value
        record_activity(
            self.session,
            project.id,
            user.id,
            ActivityType.STATUS_CHANGE,
            f"Status changed from {current.value} to {status.value}",
            {"old_status": current.value, "new_status": status.value},
        )
        await self.session.commit()
        await self.session.refresh(project)
        return ProjectResponse.model_validate(project)

    async def get_bom(self, project_id: uuid.UUID) -> List[BomItemResponse]:
        await get_project_or_404(self.session, project_id)
        result = await self.session.execute(
            select(ProjectBomItem).where(ProjectBomItem.project_id == project_id).order_by(ProjectBomItem.created_at)
        )
        return [BomItemResponse.model_validate(item) for item in result.scalars().all()]

    async def replace_bom(self, project_id: uuid.UUID, request: BomReplaceRequest, user: CurrentUser) -> List[BomItemResponse]:
        """Swap the whole bill of materials in one transaction."""
        project = await get_project_or_404(self.session, project_id)
        ensure_project_manager(project, user, "update the BoM")

        try:
            await self.session.execute(delete(ProjectBomItem).where(ProjectBomItem.project_id == project_id))
            for item in request.items:
                self.session.add(ProjectBomItem(
                    project_id=project_id,
                    item_id=item.item_id,
                    item_type=item.item_type.value,
                    quantity=item.quantity,
                ))
            record_activity(
                self.session,
                project_id,
                user.id,
                ActivityType.NOTE_ADDED,
                f"BoM updated with {len(request.items)} items",
                {"items_count": len(request.items)},
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        return await self.get_bom(project_id)

    async def get_activities(self, project_id: uuid.UUID, limit: int = 50) -> List[ActivityResponse]:
        await get_project_or_404(self.session, project_id)
        result = await self.session.execute(
            select(ProjectActivity)
            .where(ProjectActivity.project_id == project_id)
            .order_by(ProjectActivity.created_at.desc())
            .limit(limit)
        )
        return [ActivityResponse.model_validate(activity) for activity in result.scalars().all()]
