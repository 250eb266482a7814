"""
Vendor HTTP client base.

Shared aiohttp plumbing for custody, swap and off-ramp vendors. Every
non-2xx response and transport failure is translated into a typed
exception here and nowhere else.
"""

import asyncio
import json
from typing import Any

import aiohttp
from loguru import logger

from app.config.constants import VENDOR_HTTP_TIMEOUT
from app.utils.exceptions import (
    BlockhashExpiredError,
    RejectedError,
    TransientNetworkError,
    VendorError,
)


# Messages the Solana cluster returns when the referenced blockhash is too old
BLOCKHASH_EXPIRED_MARKERS = (
    "blockhash not found",
    "block height exceeded",
    "blockhash expired",
)

# HTTP statuses worth retrying at a higher level
TRANSIENT_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})


def extract_error_message(payload: Any, fallback: str = "") -> str:
    """
    Pull a human-readable message out of a vendor error body.

    Args:
        payload: Decoded JSON body or raw text
        fallback: Used when nothing recognizable is present

    Returns:
        Error message
    """
    if isinstance(payload, dict):
        for key in ("message", "error_message", "errorMessage", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict):
                nested = extract_error_message(value)
                if nested:
                    return nested
    if isinstance(payload, str) and payload:
        return payload[:500]
    return fallback


def classify_vendor_error(
    vendor: str, status: int | None, payload: Any
) -> VendorError:
    """
    Map a failed vendor response to a typed error.

    Args:
        vendor: Vendor name for logging/context
        status: HTTP status (None for transport-level failures)
        payload: Decoded error body

    Returns:
        BlockhashExpiredError, TransientNetworkError or RejectedError
    """
    message = extract_error_message(payload, fallback=f"HTTP {status}")
    haystack = message.lower()
    if isinstance(payload, (dict, list)):
        haystack += " " + json.dumps(payload).lower()

    if any(marker in haystack for marker in BLOCKHASH_EXPIRED_MARKERS):
        return BlockhashExpiredError(message, vendor=vendor, status=status, payload=payload)
    if status is None or status in TRANSIENT_STATUSES:
        return TransientNetworkError(message, vendor=vendor, status=status, payload=payload)
    return RejectedError(message, vendor=vendor, status=status, payload=payload)


class VendorHttpClient:
    """
    Base class for JSON REST vendors.

    Subclasses provide ``vendor`` name, ``base_url`` and ``_auth_headers()``.
    The aiohttp session is created lazily and must be closed with ``close()``.
    """

    vendor = "vendor"

    def __init__(self, base_url: str, timeout: float = VENDOR_HTTP_TIMEOUT) -> None:
        """
        Initialize client.

        Args:
            base_url: API root without trailing slash
            timeout: Total request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _auth_headers(
        self, method: str, path: str, body: dict[str, Any] | None
    ) -> dict[str, str]:
        """Authentication headers for one request."""
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """
        Perform a request and decode the JSON response.

        Args:
            method: HTTP method
            path: Path relative to base_url, starting with "/"
            json_body: JSON body
            params: Query parameters

        Returns:
            Decoded JSON (None for empty bodies)

        Raises:
            TransientNetworkError: Timeouts, connection errors, 429/5xx
            BlockhashExpiredError: Stale Solana blockhash reported by vendor
            RejectedError: Any other non-2xx response
        """
        session = await self._get_session()
        headers = {"Content-Type": "application/json"}
        headers.update(self._auth_headers(method, path, json_body))
        url = f"{self.base_url}{path}"

        try:
            async with session.request(
                method, url, json=json_body, params=params, headers=headers
            ) as response:
                text = await response.text()
                try:
                    payload = json.loads(text) if text else None
                except json.JSONDecodeError:
                    payload = text

                if response.status >= 400:
                    error = classify_vendor_error(self.vendor, response.status, payload)
                    logger.warning(
                        f"{self.vendor} {method} {path} failed: "
                        f"status={response.status}, error={type(error).__name__}: {error}"
                    )
                    raise error
                return payload
        except (TimeoutError, asyncio.TimeoutError) as e:
            logger.warning(f"{self.vendor} {method} {path} timed out")
            raise TransientNetworkError(
                f"{self.vendor} request timed out", vendor=self.vendor
            ) from e
        except aiohttp.ClientError as e:
            logger.warning(f"{self.vendor} {method} {path} connection error: {e}")
            raise TransientNetworkError(
                f"{self.vendor} connection error: {e}", vendor=self.vendor
            ) from e
