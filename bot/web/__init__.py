"""Webhook HTTP server."""

from bot.web.server import create_web_app


__all__ = ["create_web_app"]
