"""
Privy wallet API client.

Creates server-side custodial wallets and signs/broadcasts transactions
through Privy's wallet RPC proxy. Privy holds the keys; this code only
ever sends unsigned payloads.
"""

import base64
from dataclasses import dataclass
from typing import Any

from loguru import logger

from app.models.enums import ChainFamily
from app.services.custody.http import VendorHttpClient
from app.utils.exceptions import RejectedError
from app.utils.security import mask_address


# Privy chain_type per wallet family
PRIVY_CHAIN_TYPES = {
    ChainFamily.EVM: "ethereum",
    ChainFamily.SOLANA: "solana",
}


@dataclass
class CustodialWallet:
    """Wallet as reported by the custody vendor."""

    vendor_wallet_id: str
    address: str
    family: ChainFamily


class PrivyClient(VendorHttpClient):
    """
    Privy REST client.

    Auth: HTTP Basic with app id/secret plus the ``privy-app-id`` header.
    """

    vendor = "privy"

    def __init__(self, app_id: str, app_secret: str, base_url: str) -> None:
        """
        Initialize Privy client.

        Args:
            app_id: Privy app ID
            app_secret: Privy app secret
            base_url: API root, e.g. https://api.privy.io/v1
        """
        super().__init__(base_url)
        self.app_id = app_id
        token = base64.b64encode(f"{app_id}:{app_secret}".encode()).decode()
        self._basic_auth = f"Basic {token}"

    def _auth_headers(
        self, method: str, path: str, body: dict[str, Any] | None
    ) -> dict[str, str]:
        return {
            "Authorization": self._basic_auth,
            "privy-app-id": self.app_id,
        }

    @staticmethod
    def _parse_wallet(payload: Any, family: ChainFamily) -> CustodialWallet:
        if not isinstance(payload, dict) or not payload.get("id") or not payload.get("address"):
            raise RejectedError(
                "Privy returned an unexpected wallet payload",
                vendor="privy",
                payload=payload,
            )
        return CustodialWallet(
            vendor_wallet_id=str(payload["id"]),
            address=str(payload["address"]),
            family=family,
        )

    async def create_wallet(self, family: ChainFamily) -> CustodialWallet:
        """
        Create a new server wallet.

        Args:
            family: Chain family of the wallet

        Returns:
            Created wallet

        Raises:
            TransientNetworkError: Retryable failure
            RejectedError: Vendor refused the request
        """
        payload = await self._request(
            "POST", "/wallets", json_body={"chain_type": PRIVY_CHAIN_TYPES[family]}
        )
        wallet = self._parse_wallet(payload, family)
        logger.success(
            f"Privy {family} wallet created: {mask_address(wallet.address)}"
        )
        return wallet

    async def wallet_exists(self, vendor_wallet_id: str) -> bool:
        """
        Check whether Privy still knows a wallet.

        Args:
            vendor_wallet_id: Privy wallet ID

        Returns:
            False on 404, True otherwise
        """
        try:
            await self._request("GET", f"/wallets/{vendor_wallet_id}")
        except RejectedError as e:
            if e.status == 404:
                return False
            raise
        return True

    async def rpc(self, vendor_wallet_id: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        Call the wallet RPC proxy (sign and broadcast).

        Args:
            vendor_wallet_id: Privy wallet ID
            body: RPC body (method, caip2, params)

        Returns:
            Raw vendor acknowledgement

        Raises:
            BlockhashExpiredError: Solana blockhash too old; rebuild and retry
            TransientNetworkError: Timeout, 429, 5xx
            RejectedError: Invalid transaction, insufficient funds, etc.
        """
        payload = await self._request(
            "POST", f"/wallets/{vendor_wallet_id}/rpc", json_body=body
        )
        if not isinstance(payload, dict):
            return {"data": payload}
        return payload
