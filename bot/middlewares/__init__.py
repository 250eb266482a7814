"""
Middlewares.

Bot middlewares for request processing.
"""

from bot.middlewares.database import DatabaseMiddleware
from bot.middlewares.error_handler import ErrorHandlerMiddleware
from bot.middlewares.markdown_error_handler import MarkdownErrorHandlerMiddleware
from bot.middlewares.user_middleware import UserMiddleware


__all__ = [
    "DatabaseMiddleware",
    "ErrorHandlerMiddleware",
    "MarkdownErrorHandlerMiddleware",
    "UserMiddleware",
]
