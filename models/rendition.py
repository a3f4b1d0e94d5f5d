"""Rendition model - technician expense/work report for a service request."""

import enum
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow
from models.attachment import AttachmentResponse
from models.status_history import StatusHistoryEntryResponse


class RenditionStatus(str, enum.Enum):
    """Rendition status values (persisted labels)."""

    PENDING = "Pendiente"
    SUBMITTED = "Enviada"
    UNDER_REVIEW = "En revisión"
    APPROVED = "Aprobada"
    REJECTED = "Rechazada"


class RejectionReason(str, enum.Enum):
    """Why an administrator rejected a rendition."""

    MISSING_DOCUMENTATION = "Falta documentación"
    WRONG_AMOUNTS = "Montos incorrectos"
    WRONG_CATEGORY = "Categoría incorrecta"
    DUPLICATE = "Duplicado"
    UNAUTHORIZED_EXPENSES = "Gastos no autorizados"
    OTHER = "Otros"


class Rendition(Base):
    """Rendition ORM model.

    ``folio`` is generated (``RND-YYMMDD-NNN``) and unique. The link to the
    service request is this row's foreign key, so creating a rendition and
    attaching it to its request is a single write.
    """

    __tablename__ = "renditions"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    folio: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    service_request_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("service_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    technician_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=RenditionStatus.PENDING.value,
        index=True,
    )
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Work details
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    materials_used: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    work_performed: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Review
    reviewed_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    review_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rejection_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Captured offline on the device; stored only
    offline: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
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


class RenditionExpense(Base):
    """Single expense line on a rendition."""

    __tablename__ = "rendition_expenses"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    rendition_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("renditions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_proof_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    payment_proof_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_proof_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


# Pydantic schemas
class MaterialUsed(BaseModel):
    """Material consumed during the work."""

    name: str
    quantity: float | None = None
    unit: str | None = None


class WorkDetails(BaseModel):
    """Work details block of a rendition."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    materials_used: list[MaterialUsed] | None = None
    work_performed: str | None = None


class RenditionLocation(BaseModel):
    """Where the rendition was captured. Coordinates are [longitude, latitude]."""

    address: str | None = None
    coordinates: tuple[float, float] | None = None


class RenditionCreate(BaseModel):
    """Schema for creating a rendition (technician only)."""

    service_request_id: UUID
    description: str = Field(min_length=1)
    work_details: WorkDetails | None = None
    location: RenditionLocation | None = None
    offline: bool = False


class RenditionUpdate(BaseModel):
    """Schema for editing a rendition (author only, before review)."""

    description: str | None = Field(default=None, min_length=1)
    work_details: WorkDetails | None = None


class ExpenseCreate(BaseModel):
    """Schema for adding an expense."""

    category: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1)


class RenditionApprove(BaseModel):
    """Payload for PUT /renditions/{id}/approve."""

    review_comments: str | None = None


class RenditionReject(BaseModel):
    """Payload for PUT /renditions/{id}/reject. Reason and comments go together."""

    rejection_reason: RejectionReason
    rejection_comments: str

    @model_validator(mode="after")
    def _comments_required(self) -> "RenditionReject":
        if not self.rejection_comments or not self.rejection_comments.strip():
            raise ValueError("rejection_comments is required when rejecting a rendition")
        return self


class ExpenseResponse(BaseModel):
    """Schema for expense response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    category: str
    amount: Decimal
    description: str | None = None
    payment_proof_url: str | None = None
    payment_proof_name: str | None = None
    payment_proof_type: str | None = None
    created_at: datetime


class RenditionResponse(BaseModel):
    """Schema for rendition list response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    folio: str
    service_request_id: UUID
    project_id: UUID
    description: str
    technician_id: UUID
    status: str
    address: str | None = None
    longitude: float | None = None
    latitude: float | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    materials_used: list[MaterialUsed] = []
    work_performed: str | None = None
    reviewed_by: UUID | None = None
    review_date: datetime | None = None
    review_comments: str | None = None
    rejection_reason: str | None = None
    rejection_comments: str | None = None
    offline: bool
    synced_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class RenditionDetailResponse(RenditionResponse):
    """Rendition with its expenses, attachments and status history."""

    expenses: list[ExpenseResponse] = []
    attachments: list[AttachmentResponse] = []
    history: list[StatusHistoryEntryResponse] = []
    total_amount: Decimal = Decimal("0")
