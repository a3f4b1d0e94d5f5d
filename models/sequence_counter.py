"""SequenceCounter model - per-partition counters for generated identifiers."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db import Base


class SequenceCounter(Base):
    """Last sequence number handed out for one (kind, partition) pair.

    ``partition`` is the date prefix of the identifier, e.g. ``2505`` for
    service requests of May 2025 or ``250510`` for renditions of 10 May 2025.
    """

    __tablename__ = "sequence_counters"

    kind: Mapped[str] = mapped_column(String(20), primary_key=True)
    partition: Mapped[str] = mapped_column(String(20), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
