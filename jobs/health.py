"""
Health check endpoints.

Mounted on the webhook server: ``/health`` reports database and scheduler
state, ``/health/live`` only proves the process answers, and
``/health/ready`` requires a reachable database.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


SESSION_MAKER_KEY = web.AppKey("health_session_maker", async_sessionmaker)
SCHEDULER_KEY = web.AppKey("health_scheduler", AsyncIOScheduler)

DB_CHECK_TIMEOUT = 5.0


async def check_database(session_maker: async_sessionmaker[AsyncSession]) -> bool:
    """Run ``SELECT 1``; False on any database error or timeout."""
    try:
        async with session_maker() as session:
            await asyncio.wait_for(session.execute(text("SELECT 1")), DB_CHECK_TIMEOUT)
        return True
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.warning(f"Database health check failed: {e}")
        return False


def scheduler_status(scheduler: AsyncIOScheduler | None) -> dict:
    """Scheduler state with its jobs."""
    if scheduler is None:
        return {"running": False, "jobs": []}
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in scheduler.get_jobs()
        ],
    }


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with database and scheduler status
    """
    database_ok = await check_database(request.app[SESSION_MAKER_KEY])
    scheduler = request.app.get(SCHEDULER_KEY)
    return web.json_response(
        {
            "status": "healthy" if database_ok else "unhealthy",
            "database": "ok" if database_ok else "unavailable",
            "scheduler": scheduler_status(scheduler),
        },
        status=200 if database_ok else 503,
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """
    Readiness check endpoint.

    Returns:
        JSON response indicating if the server can handle traffic
    """
    if not await check_database(request.app[SESSION_MAKER_KEY]):
        return web.json_response({"status": "not_ready", "ready": False}, status=503)
    return web.json_response({"status": "ready", "ready": True})


async def liveness_handler(request: web.Request) -> web.Response:
    """
    Liveness check endpoint.

    Returns:
        JSON response indicating if the process is alive
    """
    return web.json_response({"status": "alive", "alive": True})


def setup_health_routes(
    app: web.Application,
    session_maker: async_sessionmaker[AsyncSession],
    scheduler: AsyncIOScheduler | None = None,
) -> None:
    """
    Register health routes on an application.

    Args:
        app: aiohttp application
        session_maker: Session factory used for the database check
        scheduler: Scheduler to report on, if running in this process
    """
    app[SESSION_MAKER_KEY] = session_maker
    if scheduler is not None:
        app[SCHEDULER_KEY] = scheduler
    app.router.add_get("/health", health_handler)
    app.router.add_get("/health/live", liveness_handler)
    app.router.add_get("/health/ready", readiness_handler)
