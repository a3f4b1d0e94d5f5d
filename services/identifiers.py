"""Generation of human-readable sequential identifiers.

Service requests get ``SR-YYMM-NNNN`` numbers, renditions get
``RND-YYMMDD-NNN`` folios. Two sequence strategies exist:

``partition_counter``
    Atomic fetch-and-add on ``sequence_counters`` keyed by the date
    partition. Concurrent callers never see the same value and every
    month (or day) starts again at 1.

``global_last``
    Reads the newest identifier of the kind, regardless of date, and adds
    one. Kept for compatibility with data numbered that way: it is racy
    and a new month continues the previous month's sequence.
"""

import enum
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import config
from repos import renditions_repo, sequence_counters_repo, service_requests_repo

logger = logging.getLogger(__name__)

T = TypeVar("T")

PARTITION_COUNTER = "partition_counter"
GLOBAL_LAST = "global_last"


class IdentifierKind(str, enum.Enum):
    SERVICE_REQUEST = "service_request"
    RENDITION = "rendition"


_PREFIXES = {
    IdentifierKind.SERVICE_REQUEST: ("SR", "%y%m", 4),
    IdentifierKind.RENDITION: ("RND", "%y%m%d", 3),
}


def partition_key(kind: IdentifierKind, timestamp: datetime) -> str:
    """Date partition of an identifier: ``YYMM`` for requests, ``YYMMDD`` for renditions."""
    _, date_format, _ = _PREFIXES[kind]
    return timestamp.strftime(date_format)


def format_identifier(kind: IdentifierKind, timestamp: datetime, sequence: int) -> str:
    """
    Render an identifier.

    Args:
        kind: Identifier kind
        timestamp: Creation time, selects the date partition
        sequence: Sequence number within the partition

    Returns:
        e.g. ``SR-2505-0001`` or ``RND-250510-001``
    """
    prefix, _, width = _PREFIXES[kind]
    return f"{prefix}-{partition_key(kind, timestamp)}-{sequence:0{width}d}"


def parse_sequence(identifier: str | None) -> int | None:
    """Trailing numeric segment of an identifier, None when absent or not numeric."""
    if not identifier:
        return None
    tail = identifier.rsplit("-", 1)[-1]
    if not tail.isdigit():
        return None
    return int(tail)


async def _latest_identifier(session: AsyncSession, kind: IdentifierKind) -> str | None:
    if kind is IdentifierKind.SERVICE_REQUEST:
        return await service_requests_repo.get_latest_request_number(session)
    return await renditions_repo.get_latest_folio(session)


async def next_identifier(
    session: AsyncSession,
    *,
    kind: IdentifierKind,
    timestamp: datetime,
    mode: str | None = None,
) -> str:
    """
    Produce the next identifier for an entity created at ``timestamp``.

    Args:
        session: Database session
        kind: Identifier kind
        timestamp: Creation time
        mode: Sequence strategy, defaults to settings.IDENTIFIER_SEQUENCE_MODE

    Returns:
        Formatted identifier
    """
    mode = mode or config.settings.IDENTIFIER_SEQUENCE_MODE
    if mode == GLOBAL_LAST:
        last = parse_sequence(await _latest_identifier(session, kind))
        sequence = (last or 0) + 1
    elif mode == PARTITION_COUNTER:
        sequence = await sequence_counters_repo.increment(
            session,
            kind=kind.value,
            partition=partition_key(kind, timestamp),
        )
    else:
        raise ValueError(f"Unknown identifier sequence mode: {mode!r}")
    return format_identifier(kind, timestamp, sequence)


def is_unique_violation(exc: IntegrityError) -> bool:
    """Whether an IntegrityError comes from a unique constraint."""
    return "unique" in str(exc.orig).lower() or "duplicate" in str(exc.orig).lower()


async def insert_with_identifier(
    session: AsyncSession,
    *,
    kind: IdentifierKind,
    timestamp: datetime,
    insert: Callable[[str], Awaitable[T]],
) -> T:
    """
    Generate an identifier and insert the row that carries it, retrying on collision.

    Each attempt runs inside a savepoint so a collision only discards that
    attempt's row.

    Args:
        session: Database session
        kind: Identifier kind
        timestamp: Creation time
        insert: Coroutine factory building and flushing the row for a given identifier

    Returns:
        Whatever ``insert`` returned

    Raises:
        HTTPException: 409 if every attempt collided
        IntegrityError: For violations other than a duplicate identifier
    """
    max_attempts = config.settings.IDENTIFIER_MAX_RETRIES
    for attempt in range(1, max_attempts + 1):
        identifier = await next_identifier(session, kind=kind, timestamp=timestamp)
        try:
            async with session.begin_nested():
                return await insert(identifier)
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            logger.warning(
                "Identifier collision on %s (attempt %d/%d)",
                identifier,
                attempt,
                max_attempts,
            )

    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Could not allocate a unique {kind.value} identifier, please retry",
    )
