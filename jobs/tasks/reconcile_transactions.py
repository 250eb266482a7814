"""
Pending transaction reconciliation task.

Runs every RECONCILE_INTERVAL_SECONDS inside the web process.
"""

from loguru import logger

from app.services.container import ServiceContainer
from app.services.transactions.reconciler import ReconcileStats


async def reconcile_pending_transactions(services: ServiceContainer) -> ReconcileStats | None:
    """
    Resolve pending outbound transactions.

    Args:
        services: Service container

    Returns:
        Run statistics, or None when the run failed
    """
    try:
        return await services.reconciler().run_once()
    except Exception as e:
        logger.exception(f"Transaction reconciliation failed: {e}")
        return None
