import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from ..db.database import AsyncSessionLocal
from .royalty_service import RoyaltyService
from .venue_service import VenueService
from .waitlist_service import WaitlistService

logger = logging.getLogger(__name__)


async def _run_step(
    session_factory: async_sessionmaker,
    name: str,
    step: Callable[[AsyncSession], Awaitable],
):
    async with session_factory() as session:
        try:
            result = await step(session)
            await session.commit()
            logger.info(f"Scheduler step {name}: {result}")
            return result
        except Exception as e:
            await session.rollback()
            logger.error(f"Scheduler step {name} failed: {e}")
            return None


async def scheduler_tick(session_factory: Optional[async_sessionmaker] = None) -> Dict[str, object]:
    """One maintenance pass. Each step commits on its own so one failure does not undo the others."""
    session_factory = session_factory or AsyncSessionLocal
    return {
        "overdue_invoices": await _run_step(session_factory, "mark_overdue_invoices", RoyaltyService.mark_overdue_invoices),
        "expired_offers": await _run_step(session_factory, "expire_stale_offers", WaitlistService.expire_stale_offers),
        "expired_contracts": await _run_step(session_factory, "check_expired_contracts", VenueService.check_expired_contracts),
    }


async def scheduler_loop():
    logger.info(f"Scheduler started (every {settings.SCHEDULER_INTERVAL_SECONDS}s)")
    while True:
        try:
            await scheduler_tick()
        except Exception as e:
            logger.error(f"Scheduler tick failed: {e}")
        await asyncio.sleep(settings.SCHEDULER_INTERVAL_SECONDS)
