"""Project model - a physical installation/site serviced by technicians."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow
from models.attachment import AttachmentResponse
from models.project_assets import LocationPointResponse, MilestoneResponse


class ProjectStatus(str, enum.Enum):
    """Project status values (persisted labels)."""

    IN_PROGRESS = "En progreso"
    COMPLETED = "Finalizado"
    PAUSED = "En pausa"
    CANCELLED = "Cancelado"
    UNDER_REVIEW = "En revisión"


class ReceptionType(str, enum.Enum):
    """How the installation was handed over."""

    PARTIAL = "Parcial"
    TOTAL = "Total"
    OTHER = "Otro"


class Project(Base):
    """Project ORM model.

    Access to a project (and to everything hanging off it) is decided only by
    ``technician_id`` and the ``project_clients`` rows.
    """

    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_number: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    identification_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reception_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReceptionType.TOTAL.value,
    )
    company_responsible: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cost_center: Mapped[str | None] = mapped_column(String(100), nullable=True)
    technician_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=ProjectStatus.IN_PROGRESS.value,
        index=True,
    )
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Denormalized counters, recomputed from service_requests
    total_requests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    open_requests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_requests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=utcnow,
    )


class ProjectClient(Base):
    """Membership of a client user in a project."""

    __tablename__ = "project_clients"

    project_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_client"),
    )


# Pydantic schemas
class ProjectBase(BaseModel):
    """Base project schema."""

    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    description: str | None = None
    order_number: str | None = None
    identification_number: str | None = None
    reception_type: ReceptionType = ReceptionType.TOTAL
    company_responsible: str | None = None
    client_contact_name: str | None = None
    client_company_name: str | None = None
    cost_center: str | None = None
    status: ProjectStatus = ProjectStatus.IN_PROGRESS
    start_date: datetime | None = None
    end_date: datetime | None = None


class ProjectCreate(ProjectBase):
    """Schema for creating a project."""

    technician_id: UUID | None = None
    client_ids: list[UUID] = []


class ProjectUpdate(BaseModel):
    """Schema for updating a project. Status changes go through the status endpoint."""

    name: str | None = None
    location: str | None = None
    description: str | None = None
    order_number: str | None = None
    identification_number: str | None = None
    reception_type: ReceptionType | None = None
    company_responsible: str | None = None
    client_contact_name: str | None = None
    client_company_name: str | None = None
    cost_center: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    technician_id: UUID | None = None
    client_ids: list[UUID] | None = None


class ProjectStatusChange(BaseModel):
    """Payload for PUT /projects/{id}/status."""

    status: ProjectStatus
    comments: str | None = None


class ProjectMetrics(BaseModel):
    """Request counters for a project."""

    total_requests: int = 0
    open_requests: int = 0
    completed_requests: int = 0


class ProjectResponse(BaseModel):
    """Schema for project response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    location: str
    description: str | None = None
    order_number: str | None = None
    identification_number: str | None = None
    reception_type: str
    company_responsible: str | None = None
    client_contact_name: str | None = None
    client_company_name: str | None = None
    cost_center: str | None = None
    technician_id: UUID | None = None
    client_ids: list[UUID] = []
    status: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    metrics: ProjectMetrics
    created_at: datetime
    updated_at: datetime | None = None


class TechnicianProjectCount(BaseModel):
    technician_id: UUID
    name: str
    count: int


class ProjectMetricsSummary(BaseModel):
    """Aggregate figures for GET /projects/metrics."""

    total_projects: int
    by_status: dict[str, int]
    by_technician: list[TechnicianProjectCount]
    recent_projects: int


class AssignTechnicianRequest(BaseModel):
    technician_id: UUID


class AddClientRequest(BaseModel):
    client_id: UUID


class ProjectDetailResponse(ProjectResponse):
    """Project with its sub-collections."""

    milestones: list[MilestoneResponse] = []
    photos: list[AttachmentResponse] = []
    documents: list[AttachmentResponse] = []
    location_points: list[LocationPointResponse] = []
