"""Deliver pending notification events.

Run periodically from the repository root: python -m scripts.deliver_notifications [batch]
"""

import asyncio
import sys

import config
import logging_config
from db import AsyncSessionLocal, close_db
from services import notifications_service


async def deliver(limit: int) -> None:
    async with AsyncSessionLocal() as db:
        delivered, failed = await notifications_service.deliver_pending(db, limit=limit)
    await close_db()

    print("=" * 50)
    print("NOTIFICATION DELIVERY")
    print("=" * 50)
    print(f"Delivered: {delivered}")
    print(f"Failed:    {failed}")


if __name__ == "__main__":
    logging_config.setup_logging(config.settings.LOG_LEVEL)
    batch = int(sys.argv[1]) if len(sys.argv) > 1 else 100
    # Fix for Windows asyncio
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(deliver(batch))
