"""
Webhook HTTP server.

Routes:
    POST /api/telegram/webhook   Telegram updates fed to the dispatcher
    GET  /api/telegram/webhook   Current webhook registration
    POST /api/webhooks/cdp       Custody wallet events (deposits)
    POST /api/webhooks/paycrest  Off-ramp order status updates
    GET  /health, /health/live, /health/ready

Telegram and custody endpoints answer 200 no matter what happens downstream,
otherwise the sender retries the same event indefinitely.
"""

import json
from typing import Any

from aiogram import Bot, Dispatcher
from aiogram.exceptions import TelegramAPIError
from aiogram.types import Update
from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.config.constants import (
    CDP_WEBHOOK_PATH,
    PAYCREST_WEBHOOK_PATH,
    TELEGRAM_WEBHOOK_PATH,
)
from app.services.container import ServiceContainer
from app.utils.exceptions import HedwigError
from app.utils.security import verify_hmac_sha256
from jobs.health import setup_health_routes


BOT_KEY = web.AppKey("bot", Bot)
DISPATCHER_KEY = web.AppKey("dispatcher", Dispatcher)
SERVICES_KEY = web.AppKey("services", ServiceContainer)
WEBHOOK_SECRET_KEY = web.AppKey("telegram_webhook_secret", str)
PAYCREST_SECRET_KEY = web.AppKey("paycrest_secret", str)

TELEGRAM_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"
PAYCREST_SIGNATURE_HEADER = "X-Paycrest-Signature"

OK = {"ok": True}


def verify_paycrest_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Check an ``X-Paycrest-Signature`` header (hex HMAC-SHA256 of the body)."""
    return verify_hmac_sha256(body, signature, secret)


def parse_paycrest_payload(payload: Any) -> tuple[str, str, str | None, str | None] | None:
    """
    Extract ``(order_id, status, tx_hash, reason)`` from a Paycrest event.

    Both the flat shape (``orderId``/``status``) and the event envelope
    (``event`` + ``data``) are accepted.
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}

    order_id = payload.get("orderId") or data.get("id")
    status = payload.get("status") or data.get("status") or payload.get("event")
    if not order_id or not status:
        return None
    status = str(status)
    if "." in status:
        # "payment_order.settled" -> "settled"
        status = status.rsplit(".", 1)[1]
    tx_hash = payload.get("transactionHash") or data.get("txHash") or data.get(
        "transactionHash"
    )
    reason = payload.get("reason") or data.get("reason")
    return str(order_id), status, tx_hash, reason


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Invalid JSON on {request.path}: {e}")
        return None


async def telegram_webhook(request: web.Request) -> web.Response:
    """Feed one Telegram update to the dispatcher."""
    secret = request.app.get(WEBHOOK_SECRET_KEY)
    if secret and request.headers.get(TELEGRAM_SECRET_HEADER) != secret:
        logger.warning("Telegram webhook secret mismatch, update dropped")
        return web.json_response(OK)

    payload = await _read_json(request)
    if not isinstance(payload, dict):
        return web.json_response(OK)

    bot = request.app[BOT_KEY]
    try:
        update = Update.model_validate(payload, context={"bot": bot})
    except ValidationError as e:
        logger.warning(f"Unparseable Telegram update: {e}")
        return web.json_response(OK)

    try:
        await request.app[DISPATCHER_KEY].feed_update(bot, update)
    except Exception as e:
        logger.exception(f"Failed to process update {update.update_id}: {e}")
    return web.json_response(OK)


async def telegram_webhook_info(request: web.Request) -> web.Response:
    """Report the webhook Telegram currently has registered."""
    try:
        info = await request.app[BOT_KEY].get_webhook_info()
    except TelegramAPIError as e:
        logger.error(f"getWebhookInfo failed: {e}")
        return web.json_response({"ok": False, "error": str(e)}, status=502)
    return web.json_response({"ok": True, "webhook": info.model_dump(mode="json")})


async def cdp_webhook(request: web.Request) -> web.Response:
    """Record custody deposits and notify their owners."""
    payload = await _read_json(request)
    if payload is None:
        return web.json_response(OK)

    services = request.app[SERVICES_KEY]
    async with services.session_maker() as session:
        try:
            notified = await services.deposit_service(session).handle_event(payload)
            await session.commit()
            if notified:
                logger.info("Deposit notification sent")
        except Exception as e:
            await session.rollback()
            logger.exception(f"Custody webhook processing failed: {e}")
    return web.json_response(OK)


async def paycrest_webhook(request: web.Request) -> web.Response:
    """Apply a Paycrest order status update."""
    body = await request.read()
    secret = request.app.get(PAYCREST_SECRET_KEY)
    if secret:
        signature = request.headers.get(PAYCREST_SIGNATURE_HEADER)
        if not verify_paycrest_signature(body, signature, secret):
            logger.warning("Paycrest webhook with invalid signature rejected")
            return web.json_response({"error": "Invalid signature"}, status=401)
    else:
        logger.warning("PAYCREST_API_SECRET not set, accepting unsigned webhook")

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return web.json_response({"error": "Invalid JSON"}, status=400)
    fields = parse_paycrest_payload(payload)
    if fields is None:
        logger.warning(f"Paycrest webhook missing order id or status: {payload}")
        return web.json_response({"error": "Missing required fields"}, status=400)
    order_id, status, tx_hash, reason = fields

    services = request.app[SERVICES_KEY]
    async with services.session_maker() as session:
        offramp = services.offramp_service(session)
        if offramp is None:
            logger.warning("Paycrest webhook received but off-ramp is disabled")
            return web.json_response(OK)
        try:
            update = await offramp.apply_status(order_id, status, tx_hash, reason)
            if update is not None:
                await offramp.notify_update(update, services.notifier)
            await session.commit()
        except (HedwigError, SQLAlchemyError) as e:
            await session.rollback()
            logger.exception(f"Paycrest webhook for order {order_id} failed: {e}")
    return web.json_response(OK)


def create_web_app(
    dp: Dispatcher,
    bot: Bot,
    services: ServiceContainer,
    scheduler: AsyncIOScheduler | None = None,
    webhook_secret: str | None = None,
    paycrest_secret: str | None = None,
) -> web.Application:
    """
    Build the webhook application.

    Args:
        dp: Dispatcher with routers and middlewares registered
        bot: Bot instance
        services: Service container
        scheduler: Scheduler reported by /health
        webhook_secret: Expected Telegram secret token header
        paycrest_secret: Paycrest HMAC secret

    Returns:
        aiohttp Application
    """
    app = web.Application()
    app[BOT_KEY] = bot
    app[DISPATCHER_KEY] = dp
    app[SERVICES_KEY] = services
    if webhook_secret:
        app[WEBHOOK_SECRET_KEY] = webhook_secret
    if paycrest_secret:
        app[PAYCREST_SECRET_KEY] = paycrest_secret

    app.router.add_post(TELEGRAM_WEBHOOK_PATH, telegram_webhook)
    app.router.add_get(TELEGRAM_WEBHOOK_PATH, telegram_webhook_info)
    app.router.add_post(CDP_WEBHOOK_PATH, cdp_webhook)
    app.router.add_post(PAYCREST_WEBHOOK_PATH, paycrest_webhook)
    setup_health_routes(app, services.session_maker, scheduler)
    return app
