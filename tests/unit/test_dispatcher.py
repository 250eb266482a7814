"""Unit tests for the transaction dispatcher retry policy."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.enums import TransactionAction, TransactionStatus
from app.models.wallet import Wallet
from app.services.chains.networks import get_network
from app.services.transactions import dispatcher as dispatcher_module
from app.services.transactions.dispatcher import DispatchState, TransactionDispatcher
from app.services.transactions.requests import (
    EvmTransferRequest,
    SolanaTransferRequest,
)
from app.utils.exceptions import (
    BlockhashExpiredError,
    InvalidTransactionError,
    RejectedError,
    TransientNetworkError,
)
from tests.conftest import EVM_ADDRESS, SOLANA_ADDRESS


RECIPIENT = "So11111111111111111111111111111111111111112"


def _solana_wallet():
    return Wallet(
        id=7,
        user_id=1,
        chain="solana",
        address=SOLANA_ADDRESS,
        vendor_wallet_id="privy-sol-1",
    )


def _solana_request():
    return SolanaTransferRequest(
        chain="solana", recipient=RECIPIENT, amount=Decimal("0.5"), asset="SOL"
    )


@pytest.fixture
def formatter():
    """Formatter that validates to Solana and returns a dummy RPC body."""
    formatter = MagicMock()
    formatter.validate.return_value = get_network("solana", testnet=True)
    formatter.format_transaction = AsyncMock(
        return_value=MagicMock(rpc_body={"method": "signAndSendTransaction"})
    )
    return formatter


@pytest.fixture
def custody():
    """Custody client mock."""
    custody = MagicMock()
    custody.vendor = "privy"
    custody.rpc = AsyncMock()
    return custody


@pytest.fixture
def dispatcher(mock_session, custody, formatter):
    """Dispatcher with a mocked repository and no retry delay."""
    dispatcher = TransactionDispatcher(
        mock_session, custody, formatter, sleep=AsyncMock()
    )
    dispatcher.transactions = AsyncMock()
    dispatcher.transactions.create_pending.return_value = MagicMock(id=42)
    dispatcher.transactions.set_hash_once.return_value = True
    return dispatcher


class TestDispatchRetry:
    """Retry only on blockhash expiry, at most three attempts."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, dispatcher, custody):
        """Happy path records one pending row with the hash."""
        custody.rpc.return_value = {"data": {"hash": "5sig"}}

        result = await dispatcher.dispatch(1, _solana_wallet(), _solana_request())

        assert result.state == DispatchState.SENT
        assert result.tx_hash == "5sig"
        assert result.attempts == 1
        assert result.record_id == 42
        dispatcher.transactions.create_pending.assert_awaited_once()
        dispatcher.transactions.set_hash_once.assert_awaited_once_with(42, "5sig")

    @pytest.mark.asyncio
    async def test_blockhash_expired_then_success(self, dispatcher, custody, formatter):
        """One expired blockhash is retried with a fresh payload, one record total."""
        custody.rpc.side_effect = [
            BlockhashExpiredError("Blockhash not found", vendor="privy"),
            {"data": {"signature": "5sig"}},
        ]

        result = await dispatcher.dispatch(1, _solana_wallet(), _solana_request())

        assert result.attempts == 2
        assert result.tx_hash == "5sig"
        assert custody.rpc.await_count == 2
        assert formatter.format_transaction.await_count == 2
        dispatcher.transactions.create_pending.assert_awaited_once()
        dispatcher.transactions.set_hash_once.assert_awaited_once_with(42, "5sig")
        dispatcher._sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_blockhash_expired_every_time(self, dispatcher, custody):
        """Three expiries exhaust the attempts and mark the record failed."""
        custody.rpc.side_effect = BlockhashExpiredError("block height exceeded")

        with pytest.raises(BlockhashExpiredError):
            await dispatcher.dispatch(1, _solana_wallet(), _solana_request())

        assert custody.rpc.await_count == 3
        dispatcher.transactions.set_hash_once.assert_not_awaited()
        args, kwargs = dispatcher.transactions.mark_status.await_args
        assert args == (42, TransactionStatus.FAILED)
        assert kwargs["attempts"] == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            RejectedError("insufficient funds", vendor="privy", status=400),
            TransientNetworkError("503 Service Unavailable", vendor="privy", status=503),
        ],
    )
    async def test_other_errors_short_circuit(self, dispatcher, custody, error):
        """Anything other than blockhash expiry stops after one attempt."""
        custody.rpc.side_effect = error

        with pytest.raises(type(error)):
            await dispatcher.dispatch(1, _solana_wallet(), _solana_request())

        assert custody.rpc.await_count == 1
        dispatcher._sleep.assert_not_awaited()
        args, _ = dispatcher.transactions.mark_status.await_args
        assert args == (42, TransactionStatus.FAILED)

    @pytest.mark.asyncio
    async def test_missing_hash_still_sent(self, dispatcher, custody):
        """A response without a hash is sent but leaves the hash unset."""
        custody.rpc.return_value = {"data": {"id": "abc"}}

        result = await dispatcher.dispatch(1, _solana_wallet(), _solana_request())

        assert result.tx_hash == ""
        assert result.explorer_url == ""
        dispatcher.transactions.set_hash_once.assert_not_awaited()


class TestDispatchValidation:
    """Requests that never reach the custody vendor."""

    @pytest.mark.asyncio
    async def test_family_mismatch(self, dispatcher, custody, formatter):
        """An EVM request from a Solana wallet is refused before recording."""
        formatter.validate.return_value = get_network("base", testnet=True)
        request = EvmTransferRequest(
            chain="base", recipient=EVM_ADDRESS, amount=Decimal("1"), asset="ETH"
        )

        with pytest.raises(InvalidTransactionError):
            await dispatcher.dispatch(1, _solana_wallet(), request)

        dispatcher.transactions.create_pending.assert_not_awaited()
        custody.rpc.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metadata_recorded(self, dispatcher, custody):
        """Extra metadata and the action flow into the pending record."""
        custody.rpc.return_value = {"data": {"hash": "5sig"}}

        await dispatcher.dispatch(
            1,
            _solana_wallet(),
            _solana_request(),
            action=TransactionAction.SEND,
            extra={"offramp_order_id": "ord_1"},
        )

        kwargs = dispatcher.transactions.create_pending.await_args.kwargs
        assert kwargs["action"] == TransactionAction.SEND
        assert kwargs["extra"] == {"recipient": RECIPIENT, "offramp_order_id": "ord_1"}
        assert kwargs["network"] == "solana-devnet"


class TestDispatchTimeout:
    """A custody call that never answers fails the dispatch without retry."""

    @pytest.mark.asyncio
    async def test_hung_vendor_becomes_transient_error(self, dispatcher, custody, monkeypatch):
        monkeypatch.setattr(dispatcher_module, "DISPATCH_TIMEOUT", 0.01)

        async def hang(*args, **kwargs):
            await asyncio.Event().wait()

        custody.rpc.side_effect = hang

        with pytest.raises(TransientNetworkError) as exc_info:
            await dispatcher.dispatch(1, _solana_wallet(), _solana_request())

        assert not isinstance(exc_info.value, BlockhashExpiredError)
        assert custody.rpc.await_count == 1
        dispatcher._sleep.assert_not_awaited()
        dispatcher.transactions.set_hash_once.assert_not_awaited()
        args, kwargs = dispatcher.transactions.mark_status.await_args
        assert args == (42, TransactionStatus.FAILED)
        assert kwargs["attempts"] == 1
        assert "TransientNetworkError" in kwargs["error"]
