import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from erp_services.database import Base, utcnow
from erp_services.models.pricing_models import ItemType

# =====================================================
# ENUMS
# =====================================================


class ProjectStatus(str, Enum):
    NEW = "New"
    PLANNING = "Planning"
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class MilestoneStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    BLOCKED = "BLOCKED"


class ActivityType(str, Enum):
    STATUS_CHANGE = "STATUS_CHANGE"
    NOTE_ADDED = "NOTE_ADDED"
    TASK_UPDATE = "TASK_UPDATE"


# =====================================================
# SQLALCHEMY MODELS
# =====================================================


class Project(Base):
    __tablename__ = "projects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_number = Column(String(30), nullable=False, unique=True)
    project_name = Column(String(255), nullable=False)
    customer_id = Column(String(100))
    sales_user_id = Column(String(100), index=True)
    pm_user_id = Column(String(100), index=True)
    status = Column(String(20), nullable=False, default=ProjectStatus.NEW.value, index=True)
    description = Column(Text)
    contract_value = Column(Numeric(18, 2))
    sales_order_id = Column(String(100))
    so_number = Column(String(100))
    estimation_id = Column(String(100))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    milestones = relationship(
        "ProjectMilestone", back_populates="project", cascade="all, delete-orphan",
        order_by="ProjectMilestone.start_date",
    )
    bom_items = relationship("ProjectBomItem", back_populates="project", cascade="all, delete-orphan")
    activities = relationship("ProjectActivity", back_populates="project", cascade="all, delete-orphan")


class ProjectMilestone(Base):
    __tablename__ = "project_milestones"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=MilestoneStatus.PLANNED.value)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="milestones")
    tasks = relationship(
        "ProjectTask", back_populates="milestone", cascade="all, delete-orphan",
        order_by="ProjectTask.start_date",
    )


class ProjectTask(Base):
    __tablename__ = "project_tasks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id = Column(
        Uuid(as_uuid=True), ForeignKey("project_milestones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text)
    assignee_id = Column(String(100), index=True)
    status = Column(String(20), nullable=False, default=TaskStatus.TODO.value)
    start_date = Column(Date)
    due_date = Column(Date)
    progress = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    milestone = relationship("ProjectMilestone", back_populates="tasks")


class ProjectBomItem(Base):
    __tablename__ = "project_bom_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(String(100), nullable=False)
    item_type = Column(String(20), nullable=False)
    quantity = Column(Numeric(18, 2), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    project = relationship("Project", back_populates="bom_items")


class ProjectActivity(Base):
    __tablename__ = "project_activities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(100))
    activity_type = Column(String(30), nullable=False)
    description = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON)
    created_at = Column(DateTime, default=utcnow, index=True)

    project = relationship("Project", back_populates="activities")


class MilestoneTemplate(Base):
    __tablename__ = "milestone_templates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    template_name = Column(String(255), nullable=False, unique=True)
    project_type = Column(String(100), index=True)
    description = Column(Text)
    milestones = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# =====================================================
# PROJECT PYDANTIC MODELS
# =====================================================


class ActivityResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    user_id: Optional[str] = None
    activity_type: str
    description: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="details")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class BomItemRequest(BaseModel):
    item_id: str = Field(..., min_length=1)
    item_type: ItemType
    quantity: Decimal = Field(..., gt=0)


class BomReplaceRequest(BaseModel):
    items: List[BomItemRequest]


class BomItemResponse(BaseModel):
    id: uuid.UUID
    item_id: str
    item_type: str
    quantity: float
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    milestone_id: uuid.UUID
    name: str
    description: Optional[str] = None
    assignee_id: Optional[str] = None
    status: str
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    progress: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MilestoneResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    status: str
    tasks: List[TaskResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectResponse(BaseModel):
    id: uuid.UUID
    project_number: str
    project_name: str
    customer_id: Optional[str] = None
    sales_user_id: Optional[str] = None
    pm_user_id: Optional[str] = None
    status: str
    description: Optional[str] = None
    contract_value: Optional[float] = None
    sales_order_id: Optional[str] = None
    so_number: Optional[str] = None
    estimation_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectDetailResponse(ProjectResponse):
    milestones: List[MilestoneResponse] = []
    bom_items: List[BomItemResponse] = []
    activities: List[ActivityResponse] = []


class AssignPmRequest(BaseModel):
    pm_user_id: str = Field(..., min_length=1)


class ProjectStatusUpdateRequest(BaseModel):
    status: ProjectStatus


class ProjectManagerResponse(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    roles: List[str] = []


class ProjectWonEvent(BaseModel):
    """Payload posted by the sales side when an order is won. Keys are camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_id: Optional[uuid.UUID] = None
    project_name: str = Field(..., min_length=1, max_length=255)
    customer_id: str = Field(..., min_length=1)
    sales_user_id: str = Field(..., min_length=1)
    sales_order_id: str = Field(..., min_length=1)
    so_number: str = Field(..., min_length=1)
    estimation_id: Optional[str] = None
    total_value: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None


# =====================================================
# MILESTONE & TEMPLATE PYDANTIC MODELS
# =====================================================

DEFAULT_MILESTONE_DAYS = 7


class MilestoneDefinition(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    duration_days: int = Field(DEFAULT_MILESTONE_DAYS, ge=0)
    description: Optional[str] = None


class MilestoneTemplateCreateRequest(BaseModel):
    template_name: str = Field(..., min_length=1, max_length=255)
    project_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    milestones: List[MilestoneDefinition] = Field(..., min_length=1)


class MilestoneTemplateResponse(BaseModel):
    id: uuid.UUID
    template_name: str
    project_type: Optional[str] = None
    description: Optional[str] = None
    milestones: List[MilestoneDefinition]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApplyTemplateRequest(BaseModel):
    template_id: uuid.UUID


class MilestoneCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: date
    end_date: date
    status: MilestoneStatus = MilestoneStatus.PLANNED

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class MilestoneUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[MilestoneStatus] = None


# =====================================================
# TASK PYDANTIC MODELS
# =====================================================


class TaskCreateRequest(BaseModel):
    milestone_id: uuid.UUID
    task_name: str = Field(..., min_length=1, max_length=255)
    assignee_id: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: TaskStatus = TaskStatus.TODO


class TaskUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    assignee_id: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
