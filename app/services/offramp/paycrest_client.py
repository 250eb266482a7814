"""
Paycrest sender API client.

Rates, bank account verification, institutions and sender orders.
Authenticated with the ``API-Key`` header.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from loguru import logger

from app.services.custody.http import VendorHttpClient
from app.utils.exceptions import RejectedError
from app.utils.security import mask_sensitive


@dataclass(frozen=True)
class AccountVerification:
    """Result of a bank account lookup."""

    is_valid: bool
    account_name: str | None = None


@dataclass(frozen=True)
class Institution:
    """Bank or mobile money provider."""

    code: str
    name: str
    type: str = "bank"


@dataclass(frozen=True)
class PaycrestOrder:
    """Sender order as returned by Paycrest."""

    order_id: str
    receive_address: str
    amount: Decimal
    status: str
    reference: str | None = None
    valid_until: datetime | None = None
    raw: dict[str, Any] | None = None


def _decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _data(payload: Any) -> Any:
    """Unwrap Paycrest's ``{"status", "message", "data"}`` envelope."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class PaycrestClient(VendorHttpClient):
    """Paycrest REST client."""

    vendor = "paycrest"

    def __init__(self, api_key: str, base_url: str) -> None:
        """
        Initialize Paycrest client.

        Args:
            api_key: Sender API key
            base_url: API root, e.g. https://api.paycrest.io/v1
        """
        super().__init__(base_url)
        self._api_key = api_key

    def _auth_headers(
        self, method: str, path: str, body: dict[str, Any] | None
    ) -> dict[str, str]:
        return {"API-Key": self._api_key}

    async def get_rate(
        self, token: str, amount: Decimal, currency: str, network: str
    ) -> Decimal:
        """
        Get the fiat rate for selling an amount of token.

        Args:
            token: Token symbol (USDC, USDT)
            amount: Token amount
            currency: Fiat currency code
            network: Paycrest network id ("base", ...)

        Returns:
            Fiat units per token

        Raises:
            RejectedError: No provider for the combination or bad response
        """
        path = f"/rates/{token.upper()}/{amount}/{currency.upper()}"
        payload = await self._request("GET", path, params={"network": network})
        rate = _decimal(_data(payload))
        if rate is None or rate <= 0:
            raise RejectedError(
                f"No rate available for {token}/{currency}", vendor=self.vendor, payload=payload
            )
        return rate

    async def verify_account(
        self, institution: str, account_identifier: str
    ) -> AccountVerification:
        """
        Resolve the account holder's name.

        Args:
            institution: Institution code
            account_identifier: Account number

        Returns:
            AccountVerification; ``is_valid`` False when Paycrest rejects it
        """
        try:
            payload = await self._request(
                "POST",
                "/verify-account",
                json_body={
                    "institution": institution,
                    "accountIdentifier": account_identifier,
                },
            )
        except RejectedError as e:
            logger.info(
                f"Paycrest rejected account {mask_sensitive(account_identifier)} "
                f"at {institution}: {e}"
            )
            return AccountVerification(is_valid=False)

        name = _data(payload)
        if isinstance(name, str) and name.strip():
            return AccountVerification(is_valid=True, account_name=name.strip())
        return AccountVerification(is_valid=False)

    async def get_institutions(self, currency: str) -> list[Institution]:
        """
        List supported institutions for a currency.

        Args:
            currency: Fiat currency code

        Returns:
            Institutions (may be empty)
        """
        payload = await self._request("GET", f"/institutions/{currency.lower()}")
        data = _data(payload)
        if isinstance(data, dict):
            data = data.get("institutions") or []
        if not isinstance(data, list):
            return []
        return [
            Institution(
                code=str(item.get("code", "")),
                name=str(item.get("name", "")),
                type=str(item.get("type", "bank")),
            )
            for item in data
            if isinstance(item, dict) and item.get("code")
        ]

    async def create_order(
        self,
        amount: Decimal,
        token: str,
        rate: Decimal,
        network: str,
        institution: str,
        account_identifier: str,
        account_name: str,
        currency: str,
        reference: str,
        return_address: str,
    ) -> PaycrestOrder:
        """
        Create a sender order.

        Returns:
            PaycrestOrder with the address tokens must be sent to

        Raises:
            RejectedError: Invalid order or unexpected response
        """
        body = {
            "amount": float(amount),
            "token": token.upper(),
            "rate": float(rate),
            "network": network,
            "recipient": {
                "institution": institution,
                "accountIdentifier": account_identifier,
                "accountName": account_name,
                "memo": f"Hedwig offramp payment - {amount} {token.upper()}",
                "currency": currency.upper(),
            },
            "reference": reference,
            "returnAddress": return_address,
        }
        payload = await self._request("POST", "/sender/orders", json_body=body)
        data = _data(payload)
        if not isinstance(data, dict) or not data.get("id") or not data.get("receiveAddress"):
            raise RejectedError(
                "Paycrest returned an unexpected order payload",
                vendor=self.vendor,
                payload=payload,
            )
        order = PaycrestOrder(
            order_id=str(data["id"]),
            receive_address=str(data["receiveAddress"]),
            amount=_decimal(data.get("amount")) or amount,
            status=str(data.get("status") or "initiated"),
            reference=data.get("reference") or reference,
            valid_until=_datetime(data.get("validUntil") or data.get("expiresAt")),
            raw=data,
        )
        logger.success(f"Paycrest order {order.order_id} created for {amount} {token}")
        return order

    async def get_order(self, order_id: str) -> dict[str, Any]:
        """
        Get sender order details.

        Args:
            order_id: Paycrest order ID

        Returns:
            Order data (``status``, ``txHash``, ``amountPaid`` ...)
        """
        payload = await self._request("GET", f"/sender/orders/{order_id}")
        data = _data(payload)
        return data if isinstance(data, dict) else {}
