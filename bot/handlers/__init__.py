"""
Handlers.

Bot command and message handlers.
"""

from bot.handlers import common, documents, help, offramp, start, wallet


__all__ = ["common", "documents", "help", "offramp", "start", "wallet"]
