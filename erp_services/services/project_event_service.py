import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, UpstreamServiceError
from erp_services.models.project_models import ActivityType, Project, ProjectResponse, ProjectStatus, ProjectWonEvent
from erp_services.policies import Role
from erp_services.services.notification_service import NotificationService
from erp_services.services.project_service import record_activity
from erp_services.services.service_clients import IdentityClient

logger = logging.getLogger(__name__)

SYSTEM_USER = "system:project-won"
MAX_NUMBER_ATTEMPTS = 5


class ProjectEventService:
    """Materializes projects from events posted by other services."""

    def __init__(
        self,
        session: AsyncSession,
        identity_client: IdentityClient,
        notifications: NotificationService,
        clock: Callable[[], date] = date.today,
    ):
        self.session = session
        self.identity_client = identity_client
        self.notifications = notifications
        self.clock = clock

    async def next_project_number(self, after: Optional[str] = None) -> str:
        """PRJ-YYYYMMDD-NNN, numbered per creation day.

        ``after`` is a number that turned out to be taken on insert; the
        search resumes past it.
        """
        today = self.clock()
        prefix = f"PRJ-{today:%Y%m%d}-"
        day_start = datetime.combine(today, datetime.min.time())
        created_today = await self.session.scalar(
            select(func.count(Project.id)).where(
                Project.created_at >= day_start, Project.created_at < day_start + timedelta(days=1)
            )
        )
        sequence = (created_today or 0) + 1
        if after and after.startswith(prefix):
            sequence = max(sequence, int(after[len(prefix):]) + 1)
        while True:
            number = f"{prefix}{sequence:03d}"
            taken = await self.session.execute(select(Project.id).where(Project.project_number == number))
            if taken.first() is None:
                return number
            sequence += 1

    async def _find_existing(self, event: ProjectWonEvent) -> Optional[Project]:
        if event.project_id is not None:
            project = await self.session.get(Project, event.project_id)
            if project is not None:
                return project
        result = await self.session.execute(
            select(Project)
            .where(Project.sales_order_id == event.sales_order_id)
            .order_by(Project.created_at, Project.project_number)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _create_project(self, event: ProjectWonEvent) -> Project:
        number = None
        for _ in range(MAX_NUMBER_ATTEMPTS):
            number = await self.next_project_number(after=number)
            project = Project(
                project_number=number,
                project_name=event.project_name,
                customer_id=event.customer_id,
                sales_user_id=event.sales_user_id,
                status=ProjectStatus.NEW.value,
                description=event.description,
                contract_value=event.total_value,
                sales_order_id=event.sales_order_id,
                so_number=event.so_number,
                estimation_id=event.estimation_id,
            )
            if event.project_id is not None:
                project.id = event.project_id
            self.session.add(project)
            try:
                await self.session.flush()
            except IntegrityError:
                await self.session.rollback()
                logger.warning("Project number %s was taken by a concurrent event, retrying", number)
                continue
            return project
        raise ConflictError(f"Could not allocate a project number for sales order {event.so_number}")

    async def handle_project_won(self, event: ProjectWonEvent) -> Tuple[ProjectResponse, bool]:
        """Create or refresh the project for a won sales order. Returns (project, created).

        An event for a known project id or sales order refreshes that project;
        its description and contract value are only filled in when unset.
        """
        project = await self._find_existing(event)
        created = project is None
        if created:
            project = await self._create_project(event)
            description = f"Project created from won sales order {event.so_number}"
        else:
            if not project.description:
                project.description = event.description or f"Project won via sales order {event.so_number}"
            if event.total_value and not project.contract_value:
                project.contract_value = event.total_value
            project.sales_order_id = event.sales_order_id
            project.so_number = event.so_number
            if event.estimation_id:
                project.estimation_id = event.estimation_id
            description = f"Sales order {event.so_number} won for this project"

        record_activity(
            self.session,
            project.id,
            event.sales_user_id or SYSTEM_USER,
            ActivityType.STATUS_CHANGE,
            description,
            {"sales_order_id": event.sales_order_id, "so_number": event.so_number, "status": project.status},
        )
        await self.session.commit()
        await self.session.refresh(project)
        logger.info(
            "Project %s %s from sales order %s",
            project.project_number, "created" if created else "updated", event.so_number,
        )

        await self._notify_operational_managers(project)
        return ProjectResponse.model_validate(project), created

    async def _notify_operational_managers(self, project: Project) -> None:
        try:
            managers = await self.identity_client.get_users_by_role(Role.OPERATIONAL_MANAGER.value)
        except UpstreamServiceError as e:
            logger.warning("Could not load operational managers for project %s: %s", project.project_number, e)
            return
        await self.notifications.send_to_many(
            [str(manager["id"]) for manager in managers],
            f"New project {project.project_number} ({project.project_name}) is waiting for a project manager",
            link=f"/projects/{project.id}",
        )
