"""Unit tests for off-ramp order handling."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.enums import OfframpOrderStatus
from app.models.offramp_order import OfframpOrder
from app.models.user import User
from app.models.wallet import Wallet
from app.services.offramp.offramp_service import OfframpService
from app.services.offramp.paycrest_client import Institution
from app.services.offramp.rate_cache import RateCache
from tests.conftest import EVM_ADDRESS


def _order(status=OfframpOrderStatus.PROCESSING, vendor_status="pending", user_id=1):
    return OfframpOrder(
        id=1,
        user_id=user_id,
        order_id="ord_1",
        reference="hedwig-abc",
        amount=Decimal("50"),
        token="USDC",
        network="base",
        fiat_currency="NGN",
        rate=Decimal("1600"),
        expected_amount=Decimal("80000"),
        receive_address=EVM_ADDRESS,
        institution="GTBINGLA",
        account_identifier="0123456789",
        account_name="Ada Obi",
        status=status.value,
        vendor_status=vendor_status,
    )


@pytest.fixture
def paycrest():
    client = MagicMock()
    client.get_rate = AsyncMock(return_value=Decimal("1600"))
    client.get_institutions = AsyncMock(
        return_value=[
            Institution("GTBINGLA", "Guaranty Trust Bank"),
            Institution("ACCESSNG", "Access Bank"),
        ]
    )
    return client


@pytest.fixture
def service(mock_session, paycrest):
    service = OfframpService(mock_session, paycrest, RateCache())
    service.orders = AsyncMock()
    return service


class TestValidation:
    """Tests for request validation."""

    @pytest.mark.parametrize(
        "amount,token,currency,ok",
        [
            (Decimal("50"), "USDC", "NGN", True),
            (Decimal("50"), "ETH", "NGN", False),
            (Decimal("50"), "USDC", "EUR", False),
            (Decimal("0.5"), "USDC", "NGN", False),
            (Decimal("20000"), "USDT", "KES", False),
            (None, None, None, True),
        ],
    )
    def test_validate_request(self, amount, token, currency, ok):
        assert (OfframpService.validate_request(amount, token, currency) is None) is ok

    def test_paycrest_network_evm_only(self):
        """Solana falls back to the default EVM chain."""
        assert OfframpService.paycrest_network("ethereum") == "ethereum"
        assert OfframpService.paycrest_network("solana") == "base"
        assert OfframpService.paycrest_network(None) == "base"


class TestRates:
    """Tests for cached rate lookups."""

    @pytest.mark.asyncio
    async def test_rate_cached(self, service, paycrest):
        """A second identical lookup is served from cache."""
        first = await service.get_rate("USDC", Decimal("10"), "NGN")
        second = await service.get_rate("usdc", Decimal("10.0"), "ngn")

        assert first == second == Decimal("1600")
        paycrest.get_rate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_quote(self, service):
        """Quotes include the fiat amount."""
        result = await service.quote("USDC", Decimal("10"), "NGN")
        assert result.success
        assert result.data["fiat_amount"] == Decimal("16000")

    @pytest.mark.asyncio
    async def test_quote_invalid(self, service, paycrest):
        """Invalid requests never reach Paycrest."""
        result = await service.quote("USDC", Decimal("10"), "EUR")
        assert not result.success
        paycrest.get_rate.assert_not_awaited()


class TestInstitutions:
    """Tests for bank lookups."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text,code",
        [("gtbingla", "GTBINGLA"), ("access", "ACCESSNG"), ("guaranty", "GTBINGLA")],
    )
    async def test_resolve_by_code_or_name(self, service, text, code):
        institution = await service.resolve_institution("NGN", text)
        assert institution.code == code

    @pytest.mark.asyncio
    async def test_resolve_miss(self, service):
        assert await service.resolve_institution("NGN", "moon bank") is None


class TestApplyStatus:
    """Tests for vendor status updates."""

    @pytest.mark.asyncio
    async def test_settled_completes_order(self, service):
        """A settled order becomes completed and reports a change."""
        order = _order()
        service.orders.get_by_order_id.return_value = order

        update = await service.apply_status("ord_1", "Settled", tx_hash="0xpayout")

        assert update.changed
        assert order.status == OfframpOrderStatus.COMPLETED.value
        assert order.vendor_status == "settled"
        assert order.tx_hash == "0xpayout"
        assert "Completed" in update.template.text

    @pytest.mark.asyncio
    async def test_repeated_status_unchanged(self, service):
        """Replaying the same status is not a change."""
        service.orders.get_by_order_id.return_value = _order(vendor_status="pending")

        update = await service.apply_status("ord_1", "pending")

        assert not update.changed

    @pytest.mark.asyncio
    async def test_final_status_not_reverted(self, service):
        """A completed order does not go back to processing."""
        order = _order(status=OfframpOrderStatus.COMPLETED, vendor_status="settled")
        service.orders.get_by_order_id.return_value = order

        update = await service.apply_status("ord_1", "processing")

        assert order.status == OfframpOrderStatus.COMPLETED.value
        assert update.changed

    @pytest.mark.asyncio
    async def test_processing_before_transfer_ignored(self, service):
        """Orders awaiting the user's tokens stay awaiting."""
        order = _order(status=OfframpOrderStatus.AWAITING_TRANSFER, vendor_status="initiated")
        service.orders.get_by_order_id.return_value = order

        await service.apply_status("ord_1", "pending")

        assert order.status == OfframpOrderStatus.AWAITING_TRANSFER.value

    @pytest.mark.asyncio
    async def test_failure_reason_kept(self, service):
        """Failure reasons are stored and rendered."""
        order = _order()
        service.orders.get_by_order_id.return_value = order

        update = await service.apply_status("ord_1", "failed", reason="Account closed")

        assert order.status == OfframpOrderStatus.FAILED.value
        assert "Account closed" in update.template.text

    @pytest.mark.asyncio
    async def test_unknown_order(self, service):
        service.orders.get_by_order_id.return_value = None
        assert await service.apply_status("missing", "settled") is None


class TestNotifyUpdate:
    """Tests for status notifications."""

    @pytest.mark.asyncio
    async def test_notifies_owner_on_change(self, service, monkeypatch):
        """Changed statuses are sent to the owner with template buttons."""
        order = _order()
        service.orders.get_by_order_id.return_value = order
        update = await service.apply_status("ord_1", "settled")

        users = MagicMock()
        users.get_by_id = AsyncMock(return_value=User(id=1, telegram_id=555))
        monkeypatch.setattr(
            "app.services.offramp.offramp_service.UserRepository", lambda session: users
        )
        notifier = MagicMock()
        notifier.send_notification = AsyncMock(return_value=True)

        assert await service.notify_update(update, notifier) is True
        chat_id, text = notifier.send_notification.await_args.args
        assert chat_id == 555
        assert text == update.template.text
        assert notifier.send_notification.await_args.kwargs["reply_markup"] is not None

    @pytest.mark.asyncio
    async def test_unchanged_not_sent(self, service):
        """Replays do not notify."""
        service.orders.get_by_order_id.return_value = _order(vendor_status="pending")
        update = await service.apply_status("ord_1", "pending")
        notifier = MagicMock()
        notifier.send_notification = AsyncMock()

        assert await service.notify_update(update, notifier) is False
        notifier.send_notification.assert_not_awaited()


class TestConfirmOrder:
    """Tests for user confirmation."""

    @pytest.mark.asyncio
    async def test_other_users_order_refused(self, service):
        service.orders.get_by_order_id.return_value = _order(
            status=OfframpOrderStatus.AWAITING_TRANSFER, user_id=2
        )
        dispatcher = MagicMock()
        dispatcher.dispatch = AsyncMock()
        wallet = Wallet(id=1, user_id=1, chain="evm", address=EVM_ADDRESS, vendor_wallet_id="w")

        result = await service.confirm_order(1, "ord_1", wallet, dispatcher)

        assert not result.success
        assert result.error_code == "not_found"
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirm_sends_tokens(self, service):
        """Confirmation dispatches the order amount to the receive address."""
        order = _order(status=OfframpOrderStatus.AWAITING_TRANSFER)
        service.orders.get_by_order_id.return_value = order
        dispatcher = MagicMock()
        dispatcher.dispatch = AsyncMock(return_value=MagicMock(tx_hash="0xsent"))
        wallet = Wallet(id=1, user_id=1, chain="evm", address=EVM_ADDRESS, vendor_wallet_id="w")

        result = await service.confirm_order(1, "ord_1", wallet, dispatcher)

        assert result.success
        assert order.status == OfframpOrderStatus.PROCESSING.value
        assert order.tx_hash == "0xsent"
        request = dispatcher.dispatch.await_args.kwargs["request"]
        assert request.amount == Decimal("50")
        assert request.asset == "USDC"
        assert request.recipient == EVM_ADDRESS

    @pytest.mark.asyncio
    async def test_cancel_only_before_transfer(self, service):
        service.orders.get_by_order_id.return_value = _order(status=OfframpOrderStatus.PROCESSING)
        assert await service.cancel_order(1, "ord_1") is False
