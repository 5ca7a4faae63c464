import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from erp_services.models.project_models import (
    ActivityType, ProjectMilestone, ProjectTask, TaskCreateRequest, TaskResponse, TaskStatus, TaskUpdateRequest,
)
from erp_services.services.jwt_service import CurrentUser
from erp_services.services.notification_service import NotificationService
from erp_services.services.project_service import ensure_project_manager, get_project_or_404, record_activity

logger = logging.getLogger(__name__)

# Fields a task assignee may change on their own task
ASSIGNEE_FIELDS = frozenset({"status", "progress"})


class TaskService:
    def __init__(self, session: AsyncSession, notifications: Optional[NotificationService] = None):
        self.session = session
        self.notifications = notifications

    async def _notify_assignee(self, assignee_id: str, task: ProjectTask, project) -> None:
        if self.notifications is None:
            return
        await self.notifications.notify(
            assignee_id,
            f"You have a new task '{task.name}' in project {project.project_name}",
            link=f"/projects/{project.id}?tab=timeline",
        )

    async def _get_task_obj(self, task_id: uuid.UUID) -> ProjectTask:
        task = await self.session.get(ProjectTask, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def create_task(self, project_id: uuid.UUID, request: TaskCreateRequest, user: CurrentUser) -> TaskResponse:
        project = await get_project_or_404(self.session, project_id)
        ensure_project_manager(project, user, "create tasks")

        milestone = await self.session.get(ProjectMilestone, request.milestone_id)
        if milestone is None or milestone.project_id != project.id:
            raise ValidationFailedError("Invalid milestone for this project")

        start_date = request.start_date or milestone.start_date
        due_date = request.end_date or milestone.end_date
        if due_date < start_date:
            raise ValidationFailedError("end_date cannot be before start_date")

        task = ProjectTask(
            project_id=project.id,
            milestone_id=milestone.id,
            name=request.task_name,
            description=request.description,
            assignee_id=request.assignee_id,
            status=request.status.value,
            start_date=start_date,
            due_date=due_date,
            progress=0,
        )
        self.session.add(task)
        await self.session.commit()
        await self.session.refresh(task)

        if task.assignee_id:
            await self._notify_assignee(task.assignee_id, task, project)
        return TaskResponse.model_validate(task)

    async def list_tasks(
        self,
        project_id: uuid.UUID,
        milestone_id: Optional[uuid.UUID] = None,
        assignee_id: Optional[str] = None,
    ) -> List[TaskResponse]:
        await get_project_or_404(self.session, project_id)
        query = select(ProjectTask).where(ProjectTask.project_id == project_id)
        if milestone_id is not None:
            query = query.where(ProjectTask.milestone_id == milestone_id)
        if assignee_id:
            query = query.where(ProjectTask.assignee_id == assignee_id)
        result = await self.session.execute(query.order_by(ProjectTask.start_date, ProjectTask.created_at))
        return [TaskResponse.model_validate(task) for task in result.scalars().all()]

    async def update_task(self, task_id: uuid.UUID, request: TaskUpdateRequest, user: CurrentUser) -> TaskResponse:
        """The PM may change anything; the assignee only status and progress."""
        task = await self._get_task_obj(task_id)
        project = await get_project_or_404(self.session, task.project_id)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        is_pm = project.pm_user_id is not None and project.pm_user_id == user.id
        is_assignee = task.assignee_id is not None and task.assignee_id == user.id
        if not is_pm:
            if not is_assignee:
                raise PermissionDeniedError("Forbidden: Only the assigned PM or the task assignee can update this task")
            disallowed = set(changes) - ASSIGNEE_FIELDS
            if disallowed:
                raise PermissionDeniedError(
                    f"Forbidden: Assignee can only update status and progress (got {', '.join(sorted(disallowed))})"
                )

        if "status" in changes:
            changes["status"] = changes["status"].value
            if changes["status"] == TaskStatus.DONE.value and "progress" not in changes:
                changes["progress"] = 100
        if "name" in changes:
            task.name = changes.pop("name")
        if "end_date" in changes:
            changes["due_date"] = changes.pop("end_date")

        start = changes.get("start_date", task.start_date)
        due = changes.get("due_date", task.due_date)
        if start and due and due < start:
            raise ValidationFailedError("end_date cannot be before start_date")

        old_status = task.status
        old_assignee = task.assignee_id
        for field, value in changes.items():
            setattr(task, field, value)

        if task.status != old_status:
            record_activity(
                self.session,
                project.id,
                user.id,
                ActivityType.TASK_UPDATE,
                f"Task '{task.name}' status changed from {old_status} to {task.status}",
                {"task_id": str(task.id), "old_status": old_status, "new_status": task.status},
            )
        await self.session.commit()
        await self.session.refresh(task)

        if task.assignee_id and task.assignee_id != old_assignee:
            await self._notify_assignee(task.assignee_id, task, project)
        return TaskResponse.model_validate(task)

    async def delete_task(self, task_id: uuid.UUID, user: CurrentUser) -> None:
        task = await self._get_task_obj(task_id)
        project = await get_project_or_404(self.session, task.project_id)
        ensure_project_manager(project, user, "delete tasks")
        await self.session.delete(task)
        await self.session.commit()
