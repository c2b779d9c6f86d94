import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from educonnect.core.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def register_jobs() -> None:
    from educonnect.jobs.message_reminders import check_message_reminders
    from educonnect.jobs.token_cleanup import cleanup_token_blacklist

    scheduler.add_job(
        check_message_reminders,
        IntervalTrigger(minutes=settings.reminder_check_minutes),
        id="message_reminders",
        replace_existing=True,
    )
    scheduler.add_job(
        cleanup_token_blacklist,
        CronTrigger(hour=3, minute=0),
        id="token_blacklist_cleanup",
        replace_existing=True,
    )


def start_scheduler():
    """Register jobs and start the background scheduler."""
    if not scheduler.running:
        register_jobs()
        scheduler.start()
        logger.info("Background scheduler started")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
