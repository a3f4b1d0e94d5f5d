"""Repository for SequenceCounter database operations."""

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.sequence_counter import SequenceCounter


async def increment(session: AsyncSession, *, kind: str, partition: str) -> int:
    """
    Atomically add one to the (kind, partition) counter and return the new value.

    The UPDATE ... RETURNING is a single statement, so two concurrent callers
    can never observe the same value. The first caller for a partition inserts
    the row; losing that insert race falls back to the UPDATE.

    Args:
        session: Database session
        kind: Identifier kind (e.g., 'service_request')
        partition: Date partition key (e.g., '2505')

    Returns:
        The sequence number handed out (1 for a fresh partition)
    """
    bump = (
        update(SequenceCounter)
        .where(SequenceCounter.kind == kind, SequenceCounter.partition == partition)
        .values(value=SequenceCounter.value + 1)
        .returning(SequenceCounter.value)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(bump)
    value = result.scalar_one_or_none()
    if value is not None:
        return value

    try:
        async with session.begin_nested():
            session.add(SequenceCounter(kind=kind, partition=partition, value=1))
        return 1
    except IntegrityError:
        result = await session.execute(bump)
        return result.scalar_one()


async def get_value(session: AsyncSession, *, kind: str, partition: str) -> int:
    """Current counter value, 0 when the partition has never been used."""
    result = await session.execute(
        select(SequenceCounter.value).where(
            SequenceCounter.kind == kind,
            SequenceCounter.partition == partition,
        )
    )
    return result.scalar_one_or_none() or 0
