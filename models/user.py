"""User model and schema."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow


class UserRole(str, enum.Enum):
    """Roles a user can hold."""

    ADMIN = "admin"
    CLIENT = "client"
    TECHNICIAN = "technician"


class User(Base):
    """User ORM model."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    profile_picture: Mapped[str | None] = mapped_column(String(512), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.CLIENT.value,
        index=True,
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# Pydantic schemas
class UserBase(BaseModel):
    """Base user schema."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    role: UserRole = UserRole.CLIENT
    active: bool = True


class UserCreate(UserBase):
    """Schema for creating a user (admin only)."""

    password: str = Field(min_length=6)


class UserUpdate(BaseModel):
    """Schema for updating a user. Only provided fields are changed."""

    first_name: str | None = None
    last_name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    role: UserRole | None = None
    active: bool | None = None
    password: str | None = Field(default=None, min_length=6)


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    password: str | None = Field(default=None, min_length=6)


class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    profile_picture: str | None = None
    role: str
    active: bool
    last_login: datetime | None = None
    created_at: datetime
    updated_at: datetime
