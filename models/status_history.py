"""StatusHistoryEntry model - append-only status log for any entity kind."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict
from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow


class HistoryEntity(str, enum.Enum):
    """Entity kinds that keep a status history."""

    PROJECT = "projects"
    SERVICE_REQUEST = "service_requests"
    RENDITION = "renditions"


class StatusHistoryEntry(Base):
    """StatusHistoryEntry ORM model.

    One row per status an entity has held, in order. Rows are only ever
    inserted; ``position`` is 0 for the creation entry and grows by one.
    """

    __tablename__ = "status_history_entries"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "position", name="uq_status_history_position"),
        {"comment": "Append-only status history for projects, service requests and renditions"},
    )


# Pydantic schemas
class StatusHistoryEntryResponse(BaseModel):
    """Schema for status history entry response."""

    model_config = ConfigDict(from_attributes=True)

    status: str
    changed_by: UUID | None = None
    changed_at: datetime
    notes: str
