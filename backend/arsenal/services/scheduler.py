"""
Background Job Scheduler.

WHAT: Configures and manages APScheduler for the periodic SLA sweep.

WHY: SLA standings have to be persisted and breaches announced even when
nobody is looking at the dashboard.

HOW: Uses APScheduler's AsyncIOScheduler with an in-memory job store on
the application's event loop. The SLA job runs with max_instances=1 so
overlapping sweeps never race each other.

Example:
    # In main.py lifespan:
    await start_scheduler()
    ...
    await shutdown_scheduler()
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.interval import IntervalTrigger

from arsenal.core.config import settings
from arsenal.services.sla_background_service import get_sla_service


logger = logging.getLogger(__name__)

SLA_JOB_ID = "sla_breach_check"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """Get the global scheduler instance."""
    return _scheduler


async def start_scheduler() -> None:
    """
    Start the background job scheduler.

    HOW:
    1. Creates AsyncIOScheduler with memory job store
    2. Registers SLA check job
    3. Starts the scheduler

    Note: Call this from the FastAPI lifespan.
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return

    job_defaults = {
        "coalesce": True,  # Combine multiple missed runs into one
        "max_instances": 1,  # Only one sweep at a time
        "misfire_grace_time": 60,
    }

    _scheduler = AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults=job_defaults,
        timezone="UTC",
    )

    _register_sla_check_job()

    _scheduler.start()
    logger.info(
        f"Scheduler started with SLA check every {settings.SLA_CHECK_INTERVAL_SECONDS} seconds"
    )


def _register_sla_check_job() -> None:
    """Schedule the periodic SLA sweep."""
    if _scheduler is None:
        logger.error("Cannot register job: scheduler not initialized")
        return

    sla_service = get_sla_service()

    _scheduler.add_job(
        func=sla_service.check_all_sla_breaches,
        trigger=IntervalTrigger(seconds=settings.SLA_CHECK_INTERVAL_SECONDS),
        id=SLA_JOB_ID,
        name="SLA Breach Check",
        replace_existing=True,
    )

    logger.info(
        f"Registered SLA breach check job (interval: {settings.SLA_CHECK_INTERVAL_SECONDS}s)"
    )


async def shutdown_scheduler() -> None:
    """
    Shut down the background job scheduler.

    Note: Call this from the FastAPI lifespan.
    """
    global _scheduler

    if _scheduler is None:
        logger.info("Scheduler not running")
        return

    if _scheduler.running:
        logger.info("Shutting down scheduler...")
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down successfully")
    _scheduler = None


def get_scheduler_status() -> dict:
    """
    Get scheduler status information for health checks.

    Returns:
        Dict with scheduler status and job details
    """
    if _scheduler is None:
        return {
            "running": False,
            "jobs": [],
            "message": "Scheduler not initialized",
        }

    jobs = []
    for job in _scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        })

    return {
        "running": _scheduler.running,
        "jobs": jobs,
        "message": "Scheduler is running" if _scheduler.running else "Scheduler is paused",
    }
