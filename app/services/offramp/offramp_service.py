"""
Off-ramp service.

Crypto-to-fiat withdrawals through Paycrest:

1. Quote a rate (cached).
2. Verify the bank account and resolve the holder's name.
3. Create a sender order and persist it as an OfframpOrder.
4. On user confirmation, send the tokens to the order's receive address
   through the transaction dispatcher.
5. Apply status updates from the Paycrest webhook or polling, and render
   them with the status templates.
"""

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import (
    OFFRAMP_MAX_AMOUNT,
    OFFRAMP_MIN_AMOUNT,
    OFFRAMP_SUPPORTED_CURRENCIES,
    OFFRAMP_SUPPORTED_TOKENS,
)
from app.models.enums import ChainFamily, OfframpOrderStatus, TransactionAction
from app.models.offramp_order import OfframpOrder
from app.models.wallet import Wallet
from app.repositories.offramp_order_repository import OfframpOrderRepository
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService, ServiceResult
from app.services.chains.networks import DEFAULT_CHAIN, get_network
from app.services.notification_service import NotificationService
from app.services.offramp.paycrest_client import Institution, PaycrestClient
from app.services.offramp.rate_cache import RateCache
from app.services.offramp.status_templates import (
    COMPLETED,
    EXPIRED,
    FAILED,
    ON_HOLD,
    PROCESSING,
    REFUND,
    OfframpStatusData,
    StatusTemplate,
    render_status,
    status_group,
)
from app.services.transactions.dispatcher import DispatchResult, TransactionDispatcher
from app.services.transactions.requests import build_transfer_request
from app.utils.exceptions import HedwigError, RejectedError, user_facing_reason
from app.utils.security import mask_sensitive


# Local status for each vendor status group
_GROUP_TO_STATUS = {
    COMPLETED: OfframpOrderStatus.COMPLETED,
    PROCESSING: OfframpOrderStatus.PROCESSING,
    ON_HOLD: OfframpOrderStatus.PROCESSING,
    FAILED: OfframpOrderStatus.FAILED,
    REFUND: OfframpOrderStatus.REFUNDED,
    EXPIRED: OfframpOrderStatus.EXPIRED,
}

FINAL_STATUSES = frozenset(
    {
        OfframpOrderStatus.COMPLETED.value,
        OfframpOrderStatus.FAILED.value,
        OfframpOrderStatus.REFUNDED.value,
        OfframpOrderStatus.EXPIRED.value,
    }
)


@dataclass(frozen=True)
class StatusUpdate:
    """Result of applying a vendor status to an order."""

    order: OfframpOrder
    changed: bool
    template: StatusTemplate


def order_status_data(order: OfframpOrder) -> OfframpStatusData:
    """Template fields of a persisted order."""
    return OfframpStatusData(
        order_id=order.order_id,
        amount=order.amount,
        currency=order.fiat_currency,
        token=order.token,
        network=order.network,
        tx_hash=order.tx_hash,
        expected_amount=order.expected_amount,
        institution=order.institution,
        account_name=order.account_name,
        failure_reason=order.failure_reason,
        refund_reason=order.failure_reason,
    )


class OfframpService(BaseService):
    """Paycrest off-ramp orchestration."""

    def __init__(
        self,
        session: AsyncSession,
        paycrest: PaycrestClient,
        rate_cache: RateCache,
    ) -> None:
        """
        Initialize off-ramp service.

        Args:
            session: Database session
            paycrest: Paycrest client
            rate_cache: Rate cache
        """
        super().__init__(session)
        self.paycrest = paycrest
        self.rate_cache = rate_cache
        self.orders = OfframpOrderRepository(session)

    @staticmethod
    def validate_request(
        amount: Decimal | None, token: str | None, currency: str | None
    ) -> str | None:
        """
        Check amount/token/currency against supported values.

        Returns:
            User-facing error text, or None when valid
        """
        if token and token.upper() not in OFFRAMP_SUPPORTED_TOKENS:
            return f"Only {', '.join(OFFRAMP_SUPPORTED_TOKENS)} can be withdrawn."
        if currency and currency.upper() not in OFFRAMP_SUPPORTED_CURRENCIES:
            return (
                f"Supported currencies: {', '.join(OFFRAMP_SUPPORTED_CURRENCIES)}."
            )
        if amount is not None and not (OFFRAMP_MIN_AMOUNT <= amount <= OFFRAMP_MAX_AMOUNT):
            return (
                f"Withdrawals must be between {OFFRAMP_MIN_AMOUNT} and "
                f"{OFFRAMP_MAX_AMOUNT} {token.upper() if token else 'USDC'}."
            )
        return None

    @staticmethod
    def paycrest_network(chain: str | None = None) -> str:
        """Paycrest network id of a chain label (EVM chains only)."""
        network = get_network(chain or DEFAULT_CHAIN[ChainFamily.EVM])
        if network is None or network.family != ChainFamily.EVM:
            network = get_network(DEFAULT_CHAIN[ChainFamily.EVM])
        return network.chain

    async def get_rate(
        self, token: str, amount: Decimal, currency: str, network: str | None = None
    ) -> Decimal:
        """
        Get a rate, served from cache when fresh.

        Raises:
            RejectedError: No provider for the combination
            TransientNetworkError: Paycrest unreachable
        """
        network = self.paycrest_network(network)
        key = RateCache.make_key(token, amount, currency, network)
        cached = await self.rate_cache.get(key)
        if cached is not None:
            return cached
        rate = await self.paycrest.get_rate(token, amount, currency, network)
        await self.rate_cache.set(key, rate)
        return rate

    async def quote(
        self, token: str, amount: Decimal, currency: str, network: str | None = None
    ) -> ServiceResult:
        """
        Quote a withdrawal.

        Returns:
            ServiceResult with ``data = {"rate", "fiat_amount"}``
        """
        error = self.validate_request(amount, token, currency)
        if error:
            return ServiceResult.fail(error, "invalid_request")
        try:
            rate = await self.get_rate(token, amount, currency, network)
        except HedwigError as e:
            self.logger.warning(f"Rate lookup failed for {token}/{currency}: {e}")
            return ServiceResult.fail(
                "I couldn't fetch a rate right now. Please try again shortly.",
                "rate_unavailable",
            )
        return ServiceResult.ok({"rate": rate, "fiat_amount": amount * rate})

    async def resolve_institution(self, currency: str, text: str) -> Institution | None:
        """
        Match free text against the currency's institutions by code or name.

        Args:
            currency: Fiat currency
            text: Bank name or code typed by the user

        Returns:
            Institution or None
        """
        needle = text.strip().lower()
        if not needle:
            return None
        institutions = await self.paycrest.get_institutions(currency)
        for institution in institutions:
            if institution.code.lower() == needle:
                return institution
        for institution in institutions:
            if needle in institution.name.lower():
                return institution
        return None

    async def create_order(
        self,
        user_id: int,
        wallet: Wallet,
        amount: Decimal,
        token: str,
        currency: str,
        institution: str,
        account_identifier: str,
        network: str | None = None,
    ) -> ServiceResult:
        """
        Verify the account and create a Paycrest order.

        Tokens are not moved yet; the user confirms first.

        Args:
            user_id: Owner
            wallet: EVM wallet (return address and later sender)
            amount: Token amount
            token: USDC or USDT
            currency: Fiat currency
            institution: Institution code
            account_identifier: Account number

        Returns:
            ServiceResult with the persisted OfframpOrder
        """
        token = token.upper()
        currency = currency.upper()
        error = self.validate_request(amount, token, currency)
        if error:
            return ServiceResult.fail(error, "invalid_request")
        if wallet.family != ChainFamily.EVM:
            return ServiceResult.fail("Withdrawals are sent from your EVM wallet.", "wrong_wallet")

        network = self.paycrest_network(network)
        try:
            verification = await self.paycrest.verify_account(institution, account_identifier)
            if not verification.is_valid:
                return ServiceResult.fail(
                    "I couldn't verify that bank account. Please check the details.",
                    "invalid_account",
                )
            rate = await self.get_rate(token, amount, currency, network)
            reference = f"hedwig-{secrets.token_hex(8)}"
            created = await self.paycrest.create_order(
                amount=amount,
                token=token,
                rate=rate,
                network=network,
                institution=institution,
                account_identifier=account_identifier,
                account_name=verification.account_name or "",
                currency=currency,
                reference=reference,
                return_address=wallet.address,
            )
        except HedwigError as e:
            self.logger.error(f"Off-ramp order creation failed for user {user_id}: {e}")
            return ServiceResult.fail(user_facing_reason(e), "vendor_error")

        order = await self.orders.create(
            user_id=user_id,
            order_id=created.order_id,
            reference=created.reference or reference,
            amount=amount,
            token=token,
            network=network,
            fiat_currency=currency,
            rate=rate,
            expected_amount=(amount * rate).quantize(Decimal("0.01")),
            receive_address=created.receive_address,
            institution=institution,
            account_identifier=account_identifier,
            account_name=verification.account_name or "",
            status=OfframpOrderStatus.AWAITING_TRANSFER.value,
            vendor_status=created.status,
            expires_at=created.valid_until,
        )
        self.logger.success(
            f"Off-ramp order {order.order_id} saved for user {user_id}: "
            f"{amount} {token} -> {currency} ({mask_sensitive(account_identifier)})"
        )
        return ServiceResult.ok(order)

    async def confirm_order(
        self,
        user_id: int,
        order_id: str,
        wallet: Wallet,
        dispatcher: TransactionDispatcher,
    ) -> ServiceResult:
        """
        Send the order's tokens to its receive address.

        Args:
            user_id: Owner (orders of other users are refused)
            order_id: Paycrest order ID
            wallet: Sending EVM wallet
            dispatcher: Transaction dispatcher

        Returns:
            ServiceResult with ``data = (order, DispatchResult)``
        """
        order = await self.orders.get_by_order_id(order_id, for_update=True)
        if order is None or order.user_id != user_id:
            return ServiceResult.fail("I couldn't find that withdrawal.", "not_found")
        if order.status != OfframpOrderStatus.AWAITING_TRANSFER.value:
            return ServiceResult.fail(
                "This withdrawal was already processed.", "already_processed"
            )
        if order.expires_at is not None and order.expires_at <= datetime.now(UTC):
            order.status = OfframpOrderStatus.EXPIRED.value
            await self.session.flush()
            return ServiceResult.fail(
                "This quote has expired. Please start a new withdrawal.", "expired"
            )

        request = build_transfer_request(
            order.network, order.receive_address, order.amount, order.token
        )
        try:
            result: DispatchResult = await dispatcher.dispatch(
                user_id=user_id,
                wallet=wallet,
                request=request,
                action=TransactionAction.SEND,
                extra={"offramp_order_id": order.order_id},
            )
        except HedwigError as e:
            order.status = OfframpOrderStatus.FAILED.value
            order.failure_reason = user_facing_reason(e)
            await self.session.flush()
            return ServiceResult.fail(user_facing_reason(e), "transfer_failed")

        order.tx_hash = result.tx_hash or None
        order.status = OfframpOrderStatus.PROCESSING.value
        await self.session.flush()
        return ServiceResult.ok((order, result))

    async def cancel_order(self, user_id: int, order_id: str) -> bool:
        """
        Cancel an order whose tokens were not sent yet.

        Returns:
            True if cancelled
        """
        order = await self.orders.get_by_order_id(order_id, for_update=True)
        if order is None or order.user_id != user_id:
            return False
        if order.status != OfframpOrderStatus.AWAITING_TRANSFER.value:
            return False
        order.status = OfframpOrderStatus.FAILED.value
        order.failure_reason = "Cancelled by user"
        await self.session.flush()
        return True

    async def apply_status(
        self,
        order_id: str,
        vendor_status: str,
        tx_hash: str | None = None,
        reason: str | None = None,
    ) -> StatusUpdate | None:
        """
        Apply a vendor status to a stored order.

        Final local statuses are never moved back. Repeating the same vendor
        status reports ``changed=False`` so callers skip duplicate notices.

        Args:
            order_id: Paycrest order ID
            vendor_status: Raw status from Paycrest
            tx_hash: Settlement/refund hash, if reported
            reason: Failure or refund reason, if reported

        Returns:
            StatusUpdate, or None for unknown orders
        """
        order = await self.orders.get_by_order_id(order_id, for_update=True)
        if order is None:
            self.logger.warning(f"Status update for unknown off-ramp order {order_id}")
            return None

        raw = (vendor_status or "").strip().lower()
        changed = raw != (order.vendor_status or "")
        if changed and order.status not in FINAL_STATUSES:
            new_status = _GROUP_TO_STATUS.get(status_group(raw))
            if (
                new_status == OfframpOrderStatus.PROCESSING
                and order.status == OfframpOrderStatus.AWAITING_TRANSFER.value
            ):
                # Tokens not sent yet
                new_status = None
            if new_status is not None:
                order.status = new_status.value
            if reason:
                order.failure_reason = reason[:1000]
        if changed:
            order.vendor_status = raw
            if tx_hash and not order.tx_hash:
                order.tx_hash = tx_hash
            await self.session.flush()
            self.logger.info(f"Off-ramp order {order_id}: {raw} -> {order.status}")

        template = render_status(raw, order_status_data(order))
        return StatusUpdate(order=order, changed=changed, template=template)

    async def refresh_order(self, order_id: str) -> StatusUpdate | None:
        """
        Poll Paycrest for an order's status and apply it.

        Returns:
            StatusUpdate, or None for unknown orders or unreachable vendor
        """
        try:
            data = await self.paycrest.get_order(order_id)
        except RejectedError as e:
            self.logger.warning(f"Paycrest refused order lookup {order_id}: {e}")
            return None
        except HedwigError as e:
            self.logger.warning(f"Paycrest order lookup {order_id} failed: {e}")
            return None
        status = data.get("status")
        if not status:
            return None
        return await self.apply_status(
            order_id, str(status), tx_hash=data.get("txHash"), reason=data.get("reason")
        )

    async def render_order(self, user_id: int, order_id: str) -> StatusTemplate | None:
        """Render the current status of a user's order."""
        order = await self.orders.get_by_order_id(order_id)
        if order is None or order.user_id != user_id:
            return None
        return render_status(order.vendor_status or order.status, order_status_data(order))

    async def history(self, user_id: int, limit: int = 5) -> list[OfframpOrder]:
        """Latest orders of a user."""
        return await self.orders.list_for_user(user_id, limit=limit)

    async def list_open_orders(self, limit: int = 50) -> list[OfframpOrder]:
        """Orders whose tokens were sent and whose payout is not final yet."""
        return await self.orders.list_open(limit=limit)

    async def notify_update(
        self, update: StatusUpdate, notifier: NotificationService | None
    ) -> bool:
        """
        Send a changed order status to its owner.

        Args:
            update: Result of apply_status
            notifier: Telegram notifier

        Returns:
            True if a message was sent
        """
        if notifier is None or not update.changed:
            return False
        user = await UserRepository(self.session).get_by_id(update.order.user_id)
        if user is None or not user.notify_chat_id:
            return False
        # Imported here: bot.keyboards imports this package's templates
        from bot.keyboards.inline import status_template_keyboard

        return await notifier.send_notification(
            user.notify_chat_id,
            update.template.text,
            reply_markup=status_template_keyboard(update.template),
        )
