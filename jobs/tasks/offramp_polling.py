"""
Off-ramp order polling task.

Paycrest webhooks can be missed; open orders are polled and any status
change is applied and sent to the user exactly like a webhook update.
"""

from loguru import logger

from app.config.constants import OFFRAMP_POLL_BATCH_LIMIT
from app.services.container import ServiceContainer


async def poll_offramp_orders(services: ServiceContainer) -> dict[str, int]:
    """
    Refresh open off-ramp orders.

    Args:
        services: Service container

    Returns:
        Dict with checked and updated counts
    """
    result = {"checked": 0, "updated": 0}
    try:
        async with services.session_maker() as session:
            offramp = services.offramp_service(session)
            if offramp is None:
                return result

            orders = await offramp.list_open_orders(limit=OFFRAMP_POLL_BATCH_LIMIT)
            for order in orders:
                result["checked"] += 1
                update = await offramp.refresh_order(order.order_id)
                if update is not None and update.changed:
                    result["updated"] += 1
                    await offramp.notify_update(update, services.notifier)
            await session.commit()
    except Exception as e:
        logger.exception(f"Off-ramp polling failed: {e}")
        return result

    if result["checked"]:
        logger.info(
            f"Off-ramp polling: {result['checked']} checked, {result['updated']} updated"
        )
    return result
