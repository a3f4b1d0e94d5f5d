"""Notification models - per-user notifications and the events that produce them."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict
from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow


class NotificationType(str, enum.Enum):
    """Visual severity of a notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class RelatedModel(str, enum.Enum):
    """Entity kinds a notification can point at."""

    PROJECT = "Project"
    SERVICE_REQUEST = "ServiceRequest"
    RENDITION = "Rendition"
    USER = "User"


class EventType(str, enum.Enum):
    """Business events that fan out into notifications."""

    PROJECT_ASSIGNED = "project_assigned"
    PROJECT_STATUS_CHANGED = "project_status_changed"
    MILESTONE_ADDED = "milestone_added"
    REQUEST_CREATED = "request_created"
    REQUEST_ASSIGNED = "request_assigned"
    REQUEST_STATUS_CHANGED = "request_status_changed"
    COMMENT_ADDED = "comment_added"
    RENDITION_CREATED = "rendition_created"
    RENDITION_APPROVED = "rendition_approved"
    RENDITION_REJECTED = "rendition_rejected"


class EventStatus(str, enum.Enum):
    """Delivery state of a notification event."""

    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class Notification(Base):
    """Notification ORM model. Never changes business state."""

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    recipient_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationType.INFO.value,
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    related_model: Mapped[str | None] = mapped_column(String(50), nullable=True)
    related_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    event_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("notification_events.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )


class NotificationEvent(Base):
    """Outbox row written in the same transaction as the business change.

    The delivery worker turns each pending event into Notification rows.
    """

    __tablename__ = "notification_events"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EventStatus.PENDING.value,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# Pydantic schemas
class NotificationResponse(BaseModel):
    """Schema for notification response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: UUID
    title: str
    message: str
    type: str
    read: bool
    read_at: datetime | None = None
    related_model: str | None = None
    related_id: UUID | None = None
    link: str | None = None
    created_at: datetime
