"""Service request model - work ticket raised against a project."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow
from models.attachment import AttachmentResponse
from models.status_history import StatusHistoryEntryResponse


class ServiceRequestStatus(str, enum.Enum):
    """Service request status values (persisted labels)."""

    REQUESTED = "Solicitada"
    UNDER_REVIEW = "En revisión"
    ACCEPTED = "Aceptada"
    COMPLETED = "Finalizada"
    CANCELLED = "Cancelada"


class Priority(str, enum.Enum):
    """Service request priority."""

    HIGH = "Alta"
    MEDIUM = "Media"
    LOW = "Baja"


class RequestType(str, enum.Enum):
    """Kind of work being requested."""

    MAINTENANCE = "Mantenimiento"
    REPAIR = "Reparación"
    CONSULTATION = "Consulta"
    EMERGENCY = "Emergencia"
    OTHER = "Otro"


class ServiceRequest(Base):
    """ServiceRequest ORM model.

    ``request_number`` is generated (``SR-YYMM-NNNN``) and unique. Every status
    this request has held is recorded in ``status_history_entries``.
    """

    __tablename__ = "service_requests"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    request_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Priority.MEDIUM.value,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=ServiceRequestStatus.REQUESTED.value,
        index=True,
    )
    request_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=RequestType.MAINTENANCE.value,
    )
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    requested_by: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    assigned_to: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=utcnow,
    )


class ServiceRequestComment(Base):
    """Comment left on a service request."""

    __tablename__ = "service_request_comments"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    service_request_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("service_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


# Pydantic schemas
class ServiceRequestLocation(BaseModel):
    """Optional location captured with a request. Coordinates are [longitude, latitude]."""

    address: str | None = None
    coordinates: tuple[float, float] | None = None


class ServiceRequestCreate(BaseModel):
    """Schema for creating a service request."""

    project_id: UUID
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    priority: Priority = Priority.MEDIUM
    request_type: RequestType = RequestType.MAINTENANCE
    location: ServiceRequestLocation | None = None


class ServiceRequestUpdate(BaseModel):
    """Schema for updating a service request (admin only)."""

    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    priority: Priority | None = None
    request_type: RequestType | None = None
    assigned_to: UUID | None = None
    scheduled_date: datetime | None = None


class ServiceRequestStatusChange(BaseModel):
    """Payload for PUT /service-requests/{id}/status."""

    status: ServiceRequestStatus
    notes: str | None = Field(default=None, min_length=1)


class CommentCreate(BaseModel):
    """Schema for adding a comment."""

    text: str = Field(min_length=1)


class CommentResponse(BaseModel):
    """Schema for comment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    text: str
    created_by: UUID
    created_at: datetime


class ServiceRequestResponse(BaseModel):
    """Schema for service request list response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    request_number: str
    project_id: UUID
    title: str
    description: str
    priority: str
    status: str
    request_type: str
    address: str | None = None
    longitude: float | None = None
    latitude: float | None = None
    requested_by: UUID
    assigned_to: UUID | None = None
    scheduled_date: datetime | None = None
    completion_date: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class ServiceRequestDetailResponse(ServiceRequestResponse):
    """Service request with its embedded collections."""

    attachments: list[AttachmentResponse] = []
    comments: list[CommentResponse] = []
    history: list[StatusHistoryEntryResponse] = []
    rendition_ids: list[UUID] = []
