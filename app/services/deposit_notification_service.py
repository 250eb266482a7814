"""
Deposit notification service.

Handles custody webhook events. A confirmed transfer into a known wallet is
upserted as a deposit TransactionRecord keyed by its hash; the owner is
notified only the first time that hash is seen confirmed, so webhook
replays neither duplicate rows nor messages.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import TransactionStatus
from app.models.user import User
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.user_repository import UserRepository
from app.repositories.wallet_repository import WalletRepository
from app.services.base_service import BaseService
from app.services.chains.networks import display_name, explorer_url, resolve_chain
from app.services.notification_service import NotificationService
from app.utils.security import mask_address, mask_tx_hash
from app.utils.validation import parse_amount
from bot.keyboards.inline import explorer_keyboard
from bot.messages.user_messages import format_deposit_received


EVENT_CONFIRMED = "wallet.transaction.confirmed"
EVENT_PENDING = "wallet.transaction.pending"


@dataclass
class DepositEvent:
    """Incoming transfer extracted from a custody webhook payload."""

    tx_hash: str
    network: str
    to_address: str
    from_address: str | None
    amount: Decimal | None
    asset: str


def parse_deposit_event(payload: Any) -> DepositEvent | None:
    """
    Extract an incoming transfer from a webhook payload.

    Expected shape::

        {"type": "...", "data": {"transaction": {...}, "wallet": {"address": ...}}}

    Returns:
        DepositEvent, or None when the payload is not an incoming transfer
        to the reported wallet
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    transaction = data.get("transaction")
    wallet = data.get("wallet")
    if not isinstance(transaction, dict) or not isinstance(wallet, dict):
        return None

    tx_hash = transaction.get("hash")
    to_address = transaction.get("to_address")
    wallet_address = wallet.get("address")
    if not tx_hash or not to_address or not wallet_address:
        return None
    if str(to_address).lower() != str(wallet_address).lower():
        return None

    asset = transaction.get("asset")
    symbol = asset.get("symbol") if isinstance(asset, dict) else asset
    return DepositEvent(
        tx_hash=str(tx_hash),
        network=str(transaction.get("network") or ""),
        to_address=str(to_address),
        from_address=transaction.get("from_address"),
        amount=parse_amount(transaction.get("amount")),
        asset=str(symbol or "ETH").upper(),
    )


class DepositNotificationService(BaseService):
    """Custody webhook processing."""

    def __init__(
        self, session: AsyncSession, notifier: NotificationService | None = None
    ) -> None:
        """
        Initialize deposit notification service.

        Args:
            session: Database session (caller commits)
            notifier: Telegram notifier; no messages when None
        """
        super().__init__(session)
        self.notifier = notifier
        self.transactions = TransactionRepository(session)
        self.wallets = WalletRepository(session)
        self.users = UserRepository(session)

    async def handle_event(self, payload: Any) -> bool:
        """
        Process one custody webhook event.

        Args:
            payload: Decoded JSON body

        Returns:
            True if a deposit notification was sent
        """
        event_type = payload.get("type") if isinstance(payload, dict) else None
        if event_type == EVENT_PENDING:
            event = parse_deposit_event(payload)
            self.logger.info(
                f"Custody transaction pending: "
                f"{mask_tx_hash(event.tx_hash) if event else 'unparsed'}"
            )
            return False
        if event_type != EVENT_CONFIRMED:
            self.logger.info(f"Unhandled custody webhook type: {event_type}")
            return False

        event = parse_deposit_event(payload)
        if event is None:
            self.logger.debug("Confirmed event is not an incoming transfer, skipping")
            return False
        return await self.record_deposit(event)

    async def record_deposit(self, event: DepositEvent) -> bool:
        """
        Upsert a confirmed deposit and notify its owner once.

        Args:
            event: Incoming transfer

        Returns:
            True if a notification was sent
        """
        wallet = await self.wallets.get_by_address(event.to_address)
        if wallet is None:
            self.logger.info(
                f"Deposit to unknown wallet {mask_address(event.to_address)}, ignoring"
            )
            return False

        chain = resolve_chain(event.network) or event.network
        record, newly_confirmed = await self.transactions.upsert_deposit(
            tx_hash=event.tx_hash,
            user_id=wallet.user_id,
            wallet_id=wallet.id,
            chain=chain,
            network=event.network or None,
            from_address=event.from_address,
            to_address=wallet.address,
            amount=event.amount,
            asset=event.asset,
            status=TransactionStatus.CONFIRMED,
        )
        if not newly_confirmed:
            self.logger.info(
                f"Deposit {mask_tx_hash(event.tx_hash)} already recorded "
                f"(record {record.id}), not notifying again"
            )
            return False

        self.logger.success(
            f"Deposit {mask_tx_hash(event.tx_hash)} of {event.amount} {event.asset} "
            f"to user {wallet.user_id}"
        )
        user = await self.users.get_by_id(wallet.user_id)
        return await self._notify(user, event, chain)

    async def _notify(self, user: User | None, event: DepositEvent, chain: str) -> bool:
        if self.notifier is None or user is None or not user.notify_chat_id:
            return False
        message = format_deposit_received(
            event.amount,
            event.asset,
            display_name(event.network or chain),
            event.from_address,
            event.tx_hash,
        )
        return await self.notifier.send_notification(
            user.notify_chat_id,
            message,
            reply_markup=explorer_keyboard(explorer_url(chain, event.tx_hash)),
        )
