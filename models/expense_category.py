"""ExpenseCategory model - catalogue of rendition expense categories."""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utcnow

DEFAULT_EXPENSE_CATEGORIES = [
    ("Gastos de combustible/petróleo", "Gastos relacionados con combustible para vehículos"),
    ("Alimentación", "Gastos de alimentación durante el servicio"),
    ("Materiales", "Compra de materiales para el proyecto"),
    ("Hospedaje", "Gastos de alojamiento durante el servicio"),
    ("Transporte", "Gastos de transporte público o peajes"),
    ("Herramientas", "Compra o alquiler de herramientas"),
    ("Otros", "Otros gastos no categorizados"),
]


class ExpenseCategory(Base):
    """ExpenseCategory ORM model."""

    __tablename__ = "expense_categories"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
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
class ExpenseCategoryCreate(BaseModel):
    """Schema for creating an expense category."""

    name: str = Field(min_length=1)
    description: str | None = None
    active: bool = True


class ExpenseCategoryResponse(BaseModel):
    """Schema for expense category response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    active: bool
    created_at: datetime
