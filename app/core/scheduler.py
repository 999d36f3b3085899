"""
APScheduler setup for the periodic overdue-bill sweep.
Runs in-process next to the API.
"""

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def overdue_bills_job():
    """Background job that moves pending bills past their due date to overdue"""
    try:
        import asyncio
        from app.services.billing_service import billing_service

        logger.info(f"[{datetime.now(timezone.utc)}] Running overdue bill check...")
        marked = asyncio.run(billing_service.mark_all_overdue_bills())

        if marked > 0:
            logger.info(f"Overdue check complete: {marked} bill(s) marked overdue")
        else:
            logger.info("No bills needed to be marked overdue")

    except Exception as e:
        logger.error(f"Overdue bill job failed: {str(e)}", exc_info=True)


def start_scheduler():
    """Start the background scheduler for the overdue bill sweep"""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    try:
        from app.core.config import settings

        interval_hours = settings.OVERDUE_CHECK_INTERVAL_HOURS
        logger.info(f"Starting scheduler: checking overdue bills every {interval_hours} hour(s)")

        scheduler.add_job(
            overdue_bills_job,
            trigger=IntervalTrigger(hours=interval_hours),
            id='overdue_bill_check',
            name='Overdue Bill Check',
            replace_existing=True,
            misfire_grace_time=10
        )

        scheduler.start()
        logger.info("Scheduler started successfully")

    except Exception as e:
        logger.error(f"Failed to start scheduler: {str(e)}", exc_info=True)


def stop_scheduler():
    """Stop the background scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
