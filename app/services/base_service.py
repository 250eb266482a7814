"""
Base service class.

Provides common functionality for service classes: session access,
a logger bound to the service name, and an operation timing decorator.
"""

import functools
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession


# Type variable for generic decorator return types
T = TypeVar("T")


@dataclass
class ServiceResult:
    """
    Standard service result container.

    Used to return structured results from service methods whose failures
    are normal outcomes (invalid bank account, rate unavailable) rather than
    exceptions.
    """
    success: bool
    data: Any = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult":
        """Successful result."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: str | None = None) -> "ServiceResult":
        """Failed result with user-facing error text."""
        return cls(success=False, error=error, error_code=error_code)


class BaseService:
    """
    Base service class.

    Services never commit; the owner of the session (bot middleware,
    webhook handler, scheduled job) does.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to log method entry/exit with timing.

    Usage:
        @log_operation
        async def dispatch(self, request):
            ...

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        bound = getattr(self, "logger", logger)
        bound.debug(f"Starting {func.__name__}")

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            duration = time.time() - start_time
            bound.warning(
                f"Failed {func.__name__} after {duration:.3f}s: "
                f"{type(e).__name__}: {e}"
            )
            raise

        duration = time.time() - start_time
        bound.info(f"Completed {func.__name__} in {duration:.3f}s")
        return result

    return wrapper
