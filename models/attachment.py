"""Attachment model - file metadata owned by any entity kind."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow


class AttachmentOwner(str, enum.Enum):
    """Which collection an attachment belongs to."""

    SERVICE_REQUEST = "service_requests"
    RENDITION = "renditions"
    MILESTONE = "milestones"
    PROJECT_PHOTO = "project_photos"
    PROJECT_DOCUMENT = "project_documents"


class Attachment(Base):
    """Attachment ORM model.

    The file itself lives in the file store; only the retrievable URL and its
    metadata are kept here. Rows for one owner are ordered by ``position``.
    """

    __tablename__ = "attachments"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    owner_type: Mapped[str] = mapped_column(String(50), nullable=False)
    owner_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    url: Mapped[str] = mapped_column(String(512), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


# Pydantic schemas
class StoredFile(BaseModel):
    """What the file store hands back for an uploaded blob."""

    url: str
    name: str
    content_type: str | None = None


class AttachmentResponse(BaseModel):
    """Schema for attachment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    name: str
    content_type: str | None = None
    description: str | None = None
    uploaded_by: UUID | None = None
    uploaded_at: datetime
