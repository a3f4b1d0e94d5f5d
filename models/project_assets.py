"""Project sub-collections: milestones and location points."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow
from models.attachment import AttachmentResponse


class LocationPointType(str, enum.Enum):
    """Tag describing what a location point marks."""

    ACCESS = "Acceso"
    PARKING = "Estacionamiento"
    MEETING_POINT = "Punto de encuentro"
    EQUIPMENT = "Equipo"
    OTHER = "Otro"


class Milestone(Base):
    """Milestone ORM model - ordered progress entry on a project."""

    __tablename__ = "milestones"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
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


class LocationPoint(Base):
    """Named geo-point on a project (longitude/latitude)."""

    __tablename__ = "location_points"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    point_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=LocationPointType.OTHER.value,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    created_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


# Pydantic schemas
class MilestoneCreate(BaseModel):
    """Schema for adding a milestone."""

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)


class MilestoneUpdate(BaseModel):
    """Schema for editing a milestone."""

    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)


class MilestoneResponse(BaseModel):
    """Milestone with its attachments."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    position: int
    title: str
    description: str
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None
    attachments: list[AttachmentResponse] = []


class LocationPointCreate(BaseModel):
    """Schema for adding a location point. Coordinates are [longitude, latitude]."""

    name: str = Field(min_length=1)
    point_type: LocationPointType = LocationPointType.OTHER
    description: str | None = None
    coordinates: tuple[float, float]


class LocationPointUpdate(BaseModel):
    """Schema for editing a location point."""

    name: str | None = Field(default=None, min_length=1)
    point_type: LocationPointType | None = None
    description: str | None = None
    coordinates: tuple[float, float] | None = None


class LocationPointResponse(BaseModel):
    """Schema for location point response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    name: str
    point_type: str
    description: str | None = None
    longitude: float
    latitude: float
    created_by: UUID | None = None
    created_at: datetime
