import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp_services.exceptions import ConflictError, NotFoundError, ValidationFailedError
from erp_services.models.project_models import (
    ActivityType, MilestoneCreateRequest, MilestoneDefinition, MilestoneResponse, MilestoneStatus,
    MilestoneTemplate, MilestoneTemplateCreateRequest, MilestoneTemplateResponse, MilestoneUpdateRequest,
    ProjectMilestone,
)
from erp_services.services.jwt_service import CurrentUser
from erp_services.services.project_service import (
    ensure_project_manager, get_project_or_404, milestone_to_response, record_activity,
)

logger = logging.getLogger(__name__)


@dataclass
class MilestoneSlot:
    name: str
    description: Optional[str]
    start_date: date
    end_date: date


def layout_milestones(definitions: Iterable, start_date: date) -> List[MilestoneSlot]:
    """Place milestones back to back starting on ``start_date``.

    A milestone ends ``duration_days`` after it starts and the next one
    starts the day after, so no two milestones share a day.
    """
    slots = []
    current = start_date
    for definition in definitions:
        if not isinstance(definition, MilestoneDefinition):
            definition = MilestoneDefinition.model_validate(definition)
        end = current + timedelta(days=definition.duration_days)
        slots.append(MilestoneSlot(definition.name, definition.description, current, end))
        current = end + timedelta(days=1)
    return slots


DEFAULT_TEMPLATES = [
    {
        "template_name": "Instalasi Fire Alarm",
        "project_type": "Fire Alarm System",
        "milestones": [
            {"name": "Persiapan & Site Survey", "duration_days": 3},
            {"name": "Penarikan Kabel", "duration_days": 7},
            {"name": "Instalasi Perangkat", "duration_days": 5},
            {"name": "Testing & Commissioning", "duration_days": 3},
            {"name": "Training & Handover", "duration_days": 2},
        ],
    },
    {
        "template_name": "Proyek Konstruksi Standar",
        "project_type": "Construction",
        "milestones": [
            {"name": "Project Initiation", "duration_days": 7},
            {"name": "Design & Planning", "duration_days": 14},
            {"name": "Procurement", "duration_days": 21},
            {"name": "Construction Phase 1", "duration_days": 30},
            {"name": "Construction Phase 2", "duration_days": 30},
            {"name": "Testing & Commissioning", "duration_days": 14},
            {"name": "Project Handover", "duration_days": 7},
        ],
    },
    {
        "template_name": "Implementasi Sistem IT",
        "project_type": "IT System",
        "milestones": [
            {"name": "Requirements Gathering", "duration_days": 7},
            {"name": "System Design", "duration_days": 14},
            {"name": "Development", "duration_days": 45},
            {"name": "Testing & QA", "duration_days": 14},
            {"name": "User Training", "duration_days": 7},
            {"name": "Go-Live & Support", "duration_days": 7},
        ],
    },
    {
        "template_name": "Engineering Services Project",
        "project_type": "Engineering",
        "milestones": [
            {"name": "Site Survey & Assessment", "duration_days": 5},
            {"name": "Engineering Design", "duration_days": 21},
            {"name": "Material Procurement", "duration_days": 14},
            {"name": "Installation", "duration_days": 30},
            {"name": "Testing & Integration", "duration_days": 10},
            {"name": "Documentation & Training", "duration_days": 5},
            {"name": "Final Acceptance", "duration_days": 3},
        ],
    },
    {
        "template_name": "CCTV & Security System",
        "project_type": "Security System",
        "milestones": [
            {"name": "Site Survey & Design", "duration_days": 5},
            {"name": "Penarikan Kabel & Conduit", "duration_days": 10},
            {"name": "Instalasi Camera & DVR", "duration_days": 7},
            {"name": "Konfigurasi & Testing", "duration_days": 3},
            {"name": "Training Pengguna", "duration_days": 2},
        ],
    },
]


async def seed_milestone_templates(session: AsyncSession) -> int:
    """Insert the default templates that are not present yet."""
    result = await session.execute(select(MilestoneTemplate.template_name))
    existing = set(result.scalars().all())
    created = 0
    for template in DEFAULT_TEMPLATES:
        if template["template_name"] in existing:
            continue
        session.add(MilestoneTemplate(**template))
        created += 1
    await session.commit()
    if created:
        logger.info("Seeded %d milestone templates", created)
    return created


class MilestoneService:
    def __init__(self, session: AsyncSession, clock: Callable[[], date] = date.today):
        self.session = session
        self.clock = clock

    # ===== templates =====

    async def list_templates(self, project_type: Optional[str] = None) -> List[MilestoneTemplateResponse]:
        query = select(MilestoneTemplate)
        if project_type:
            query = query.where(MilestoneTemplate.project_type == project_type)
        result = await self.session.execute(query.order_by(MilestoneTemplate.template_name))
        return [MilestoneTemplateResponse.model_validate(template) for template in result.scalars().all()]

    async def _get_template_obj(self, template_id: uuid.UUID) -> MilestoneTemplate:
        template = await self.session.get(MilestoneTemplate, template_id)
        if template is None:
            raise NotFoundError("Template not found")
        return template

    async def get_template(self, template_id: uuid.UUID) -> MilestoneTemplateResponse:
        return MilestoneTemplateResponse.model_validate(await self._get_template_obj(template_id))

    async def create_template(self, request: MilestoneTemplateCreateRequest) -> MilestoneTemplateResponse:
        existing = await self.session.execute(
            select(MilestoneTemplate.id).where(MilestoneTemplate.template_name == request.template_name)
        )
        if existing.first() is not None:
            raise ConflictError(f"Template '{request.template_name}' already exists")

        template = MilestoneTemplate(
            template_name=request.template_name,
            project_type=request.project_type,
            description=request.description,
            milestones=[definition.model_dump() for definition in request.milestones],
        )
        self.session.add(template)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Template '{request.template_name}' already exists")
        await self.session.refresh(template)
        return MilestoneTemplateResponse.model_validate(template)

    # ===== milestones =====

    async def apply_template(
        self, project_id: uuid.UUID, template_id: uuid.UUID, user: CurrentUser
    ) -> List[MilestoneResponse]:
        """Create the template's milestones on the project, starting today."""
        project = await get_project_or_404(self.session, project_id)
        ensure_project_manager(project, user, "apply templates")
        template = await self._get_template_obj(template_id)

        slots = layout_milestones(template.milestones, self.clock())
        milestones = [
            ProjectMilestone(
                project_id=project.id,
                name=slot.name,
                description=slot.description,
                start_date=slot.start_date,
                end_date=slot.end_date,
                status=MilestoneStatus.PLANNED.value,
            )
            for slot in slots
        ]
        try:
            self.session.add_all(milestones)
            record_activity(
                self.session,
                project.id,
                user.id,
                ActivityType.NOTE_ADDED,
                f"Applied milestone template: {template.template_name}",
                {"template_id": str(template.id), "milestones_count": len(milestones)},
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Applied template %s to project %s (%d milestones)",
            template.template_name, project.project_number, len(milestones),
        )
        return [milestone_to_response(milestone, include_tasks=False) for milestone in milestones]

    async def get_milestones(self, project_id: uuid.UUID) -> List[MilestoneResponse]:
        await get_project_or_404(self.session, project_id)
        result = await self.session.execute(
            select(ProjectMilestone)
            .where(ProjectMilestone.project_id == project_id)
            .options(selectinload(ProjectMilestone.tasks))
            .order_by(ProjectMilestone.start_date, ProjectMilestone.created_at)
        )
        return [milestone_to_response(milestone) for milestone in result.scalars().all()]

    async def _get_milestone_obj(self, milestone_id: uuid.UUID) -> ProjectMilestone:
        result = await self.session.execute(
            select(ProjectMilestone)
            .where(ProjectMilestone.id == milestone_id)
            .options(selectinload(ProjectMilestone.tasks))
        )
        milestone = result.scalar_one_or_none()
        if milestone is None:
            raise NotFoundError("Milestone not found")
        return milestone

    async def create_milestone(
        self, project_id: uuid.UUID, request: MilestoneCreateRequest, user: CurrentUser
    ) -> MilestoneResponse:
        project = await get_project_or_404(self.session, project_id)
        ensure_project_manager(project, user, "create milestones")

        milestone = ProjectMilestone(
            project_id=project.id,
            name=request.name,
            description=request.description,
            start_date=request.start_date,
            end_date=request.end_date,
            status=request.status.value,
        )
        self.session.add(milestone)
        await self.session.commit()
        return milestone_to_response(milestone, include_tasks=False)

    async def update_milestone(
        self, milestone_id: uuid.UUID, request: MilestoneUpdateRequest, user: CurrentUser
    ) -> MilestoneResponse:
        milestone = await self._get_milestone_obj(milestone_id)
        project = await get_project_or_404(self.session, milestone.project_id)
        ensure_project_manager(project, user, "update milestones")

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "status" in changes:
            changes["status"] = changes["status"].value
        start = changes.get("start_date", milestone.start_date)
        end = changes.get("end_date", milestone.end_date)
        if end < start:
            raise ValidationFailedError("end_date cannot be before start_date")

        for field, value in changes.items():
            setattr(milestone, field, value)
        await self.session.commit()
        return milestone_to_response(milestone)

    async def delete_milestone(self, milestone_id: uuid.UUID, user: CurrentUser) -> None:
        milestone = await self._get_milestone_obj(milestone_id)
        project = await get_project_or_404(self.session, milestone.project_id)
        ensure_project_manager(project, user, "delete milestones")

        record_activity(
            self.session,
            project.id,
            user.id,
            ActivityType.NOTE_ADDED,
            f"Deleted milestone: {milestone.name}",
            {"milestone_id": str(milestone.id)},
        )
        await self.session.delete(milestone)
        await self.session.commit()
