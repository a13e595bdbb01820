"""Background job scheduler for retrying assignment emails."""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from secret_santa.core.config import settings
from secret_santa.core.dependencies import build_orchestrator
from secret_santa.draw.errors import EventNotFound
from secret_santa.draw.orchestrator import DrawOrchestrator

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def retry_notifications(orchestrator: DrawOrchestrator) -> dict:
    """
    Re-send assignment emails whose last attempt failed.

    Pairs nobody tried to notify are left alone, and events with a batch
    already running are skipped until the next run.

    Returns dict with the number of events touched and emails sent/failed.
    """
    stats = {"events": 0, "succeeded": 0, "failed": 0}
    for event_id in orchestrator.store.events_with_failed_notifications():
        if orchestrator.notify_locks.is_locked(event_id):
            logger.info(f"Skipping event {event_id}, notification already in progress")
            continue
        try:
            report = orchestrator.notify_assignments(event_id, failed_only=True)
        except EventNotFound:
            continue
        stats["events"] += 1
        stats["succeeded"] += report.succeeded
        stats["failed"] += report.failed
    return stats


def retry_notifications_job():
    """Background retry job."""
    try:
        stats = retry_notifications(build_orchestrator())
        if stats["events"]:
            logger.info(f"Notification retry completed: {stats}")
    except Exception as e:
        logger.error(f"Notification retry failed: {e}")


def start_scheduler():
    """Start the background scheduler."""
    if not settings.notification_retry_enabled:
        logger.info("Notification retry disabled")
        return
    scheduler.add_job(
        retry_notifications_job,
        trigger=IntervalTrigger(minutes=settings.notification_retry_interval_minutes),
        id="notification_retry",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started, retrying failed emails every "
        f"{settings.notification_retry_interval_minutes} minutes"
    )


def shutdown_scheduler():
    """Graceful shutdown."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
