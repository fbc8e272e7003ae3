import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.config import settings
from app.core.database import ResilientPool
from app.crud.registration_token import registration_token as crud_registration_token

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def purge_expired_registration_tokens(pool: ResilientPool) -> int:
    try:
        purged = await crud_registration_token.delete_expired(pool)
        if purged:
            logger.info(f"Purged {purged} expired registration tokens")
        return purged
    except Exception as e:
        logger.error(f"Error purging expired registration tokens: {e}")
        return 0


def start_scheduler(pool: ResilientPool):
    if settings.TESTING:
        logger.info("Scheduler disabled in test environment")
        return

    if not scheduler.running:
        scheduler.add_job(
            purge_expired_registration_tokens,
            'interval',
            hours=1,
            args=[pool],
            id='purge_registration_tokens',
            name='Purge Expired Registration Tokens',
            replace_existing=True
        )
        scheduler.start()
        logger.info("Scheduler started with registration token purge job")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
