"""
Coinbase CDP REST client.

Requests are authenticated with a short-lived HS256 JWT bound to the
HTTP method and path (``uris`` claim) and, for writes, the request body.
Used for swap quotes/execution and balance lookups.
"""

import secrets
import time
from decimal import Decimal
from typing import Any
from urllib.parse import urlparse

import jwt
from loguru import logger

from app.config.constants import CDP_JWT_TTL_SECONDS
from app.services.custody.http import VendorHttpClient
from app.utils.exceptions import RejectedError


class CdpClient(VendorHttpClient):
    """CDP client for swaps and balances."""

    vendor = "cdp"

    def __init__(self, key_name: str, key_secret: str, base_url: str) -> None:
        """
        Initialize CDP client.

        Args:
            key_name: API key ID (JWT ``sub``)
            key_secret: HMAC secret
            base_url: API root, e.g. https://api.cdp.coinbase.com/v2
        """
        super().__init__(base_url)
        self.key_name = key_name
        self._key_secret = key_secret
        self._host = urlparse(base_url).netloc

    def build_jwt(
        self, method: str, path: str, body: dict[str, Any] | None = None
    ) -> str:
        """
        Build request JWT.

        Args:
            method: HTTP method
            path: Request path (with query string for GETs)
            body: Request body, embedded as ``req`` claim

        Returns:
            Encoded token
        """
        now = int(time.time())
        claims: dict[str, Any] = {
            "iat": now,
            "nbf": now,
            "exp": now + CDP_JWT_TTL_SECONDS,
            "sub": self.key_name,
            "iss": "cdp-api",
            "jti": secrets.token_hex(16),
            "uris": [f"{method.upper()} {self._host}{path}"],
        }
        if body:
            claims["req"] = body
        return jwt.encode(claims, self._key_secret, algorithm="HS256", headers={"typ": "JWT"})

    def _auth_headers(
        self, method: str, path: str, body: dict[str, Any] | None
    ) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.build_jwt(method, path, body)}"}

    async def get_swap_quote(
        self,
        from_address: str,
        from_amount: Decimal,
        from_asset: str,
        to_asset: str,
        network: str,
    ) -> dict[str, Any]:
        """
        Request a swap quote.

        Returns:
            Quote with at least ``quoteId`` and ``toAmount``

        Raises:
            RejectedError: Unsupported pair or amount
        """
        body = {
            "from": from_address,
            "fromAmount": str(from_amount),
            "fromAsset": from_asset.upper(),
            "toAsset": to_asset.upper(),
            "network": network,
        }
        quote = await self._request("POST", "/swaps/quote", json_body=body)
        if not isinstance(quote, dict) or not quote.get("quoteId"):
            raise RejectedError("CDP returned no swap quote", vendor=self.vendor, payload=quote)
        logger.info(
            f"CDP swap quote: {from_amount} {from_asset} -> "
            f"{quote.get('toAmount')} {to_asset} on {network}"
        )
        return quote

    async def execute_swap(self, quote_id: str) -> dict[str, Any]:
        """
        Execute a previously quoted swap.

        Args:
            quote_id: Quote ID from get_swap_quote

        Returns:
            Raw vendor response (hash under txHash/transactionHash/hash)
        """
        payload = await self._request(
            "POST", "/swaps/execute", json_body={"quoteId": quote_id}
        )
        return payload if isinstance(payload, dict) else {"data": payload}
