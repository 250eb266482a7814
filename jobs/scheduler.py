"""
Job scheduler.

AsyncIOScheduler running inside the web process event loop, so jobs share
the service container with webhook handlers.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from app.config.constants import (
    OFFRAMP_POLL_INTERVAL_SECONDS,
    RECONCILE_INTERVAL_SECONDS,
)
from app.services.container import ServiceContainer
from jobs.tasks.offramp_polling import poll_offramp_orders
from jobs.tasks.reconcile_transactions import reconcile_pending_transactions


def create_scheduler(services: ServiceContainer) -> AsyncIOScheduler:
    """
    Build the scheduler with all periodic jobs.

    Args:
        services: Service container

    Returns:
        Scheduler (not started)
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        reconcile_pending_transactions,
        "interval",
        seconds=RECONCILE_INTERVAL_SECONDS,
        args=[services],
        id="reconcile_transactions",
        name="Reconcile pending transactions",
        max_instances=1,
        coalesce=True,
    )
    if services.paycrest is not None:
        scheduler.add_job(
            poll_offramp_orders,
            "interval",
            seconds=OFFRAMP_POLL_INTERVAL_SECONDS,
            args=[services],
            id="poll_offramp_orders",
            name="Poll open off-ramp orders",
            max_instances=1,
            coalesce=True,
        )
    logger.info(f"Scheduler configured with {len(scheduler.get_jobs())} job(s)")
    return scheduler
