"""Scheduler driving periodic check cycles."""

import logging
import signal
from datetime import datetime

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MAX_INSTANCES
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.blocking import BlockingScheduler

from pricewatch.events import EventCode, EventEmitter

logger = logging.getLogger(__name__)

JOB_ID = "price_check"


def create_scheduler(app, interval_minutes: int) -> BlockingScheduler:
    """
    Create a scheduler running ``app.run_check`` now and every interval.

    Args:
        app: PriceWatchApp instance
        interval_minutes: Minutes between cycles

    Returns:
        Configured, not yet started, BlockingScheduler
    """
    # One worker: cycles never overlap
    executors = {"default": ThreadPoolExecutor(max_workers=1)}

    job_defaults = {
        "coalesce": True,  # Missed ticks collapse into one run
        "max_instances": 1,  # A tick during a running cycle is dropped
        "misfire_grace_time": 30,
    }

    scheduler = BlockingScheduler(executors=executors, job_defaults=job_defaults)

    scheduler.add_job(
        app.run_check,
        trigger="interval",
        minutes=interval_minutes,
        id=JOB_ID,
        name="Price check",
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(),
        replace_existing=True,
    )

    scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
    scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
    scheduler.add_listener(job_skipped_listener, EVENT_JOB_MAX_INSTANCES)

    return scheduler


def job_executed_listener(event):
    """Log finished check cycles."""
    logger.debug(f"Job {event.job_id} executed at {event.scheduled_run_time}")


def job_error_listener(event):
    """Log check cycles that raised."""
    logger.error(f"Job {event.job_id} crashed: {event.exception}")
    logger.error(f"Traceback: {event.traceback}")


def job_skipped_listener(event):
    """Log ticks dropped because a cycle was still running."""
    logger.info(f"Job {event.job_id} still running, tick at {event.scheduled_run_times} dropped")


def run_scheduler(app, interval_minutes: int, events: EventEmitter) -> None:
    """Start the scheduler and block until interrupted."""
    scheduler = create_scheduler(app, interval_minutes)

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}, stopping scheduler")
        scheduler.shutdown(wait=False)

    signal.signal(signal.SIGTERM, _shutdown)

    events.emit(EventCode.SCHEDULER_STARTED, interval_minutes=interval_minutes)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)
        events.emit(EventCode.SCHEDULER_STOPPED)
