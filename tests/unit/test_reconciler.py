"""Unit tests for the pending transaction reconciler."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus
from web3.exceptions import TransactionNotFound

from app.models.enums import TransactionStatus
from app.models.transaction import TransactionRecord
from app.services.transactions import reconciler as reconciler_module
from app.services.transactions.reconciler import (
    EXPIRED_REASON,
    REVERTED_REASON,
    TransactionReconciler,
)


SOLANA_SIGNATURE = str(Signature.default())


def _record(record_id: int, chain: str = "base", tx_hash: str | None = "0xabc") -> TransactionRecord:
    return TransactionRecord(
        id=record_id,
        user_id=1,
        chain=chain,
        tx_hash=tx_hash,
        action="send",
        status=TransactionStatus.PENDING.value,
        amount=Decimal("0.1"),
        asset="ETH" if chain != "solana" else "SOL",
    )


def _solana_status(err=None, confirmation_status=None):
    return MagicMock(value=[MagicMock(err=err, confirmation_status=confirmation_status)])


@pytest.fixture
def repo(monkeypatch):
    """Transaction repository mock returned for the reconciler session."""
    repo = AsyncMock()
    repo.list_pending_with_hash.return_value = []
    repo.list_pending_older_than.return_value = []
    monkeypatch.setattr(reconciler_module, "TransactionRepository", MagicMock(return_value=repo))
    return repo


@pytest.fixture
def owner(monkeypatch):
    """Owner looked up for notifications."""
    owner = MagicMock(notify_chat_id=555)
    users = AsyncMock()
    users.get_by_id.return_value = owner
    monkeypatch.setattr(reconciler_module, "UserRepository", MagicMock(return_value=users))
    return owner


@pytest.fixture
def session_maker(mock_session):
    """Session factory yielding the shared mock session."""
    maker = MagicMock()
    maker.return_value.__aenter__ = AsyncMock(return_value=mock_session)
    maker.return_value.__aexit__ = AsyncMock(return_value=False)
    return maker


@pytest.fixture
def w3():
    """AsyncWeb3 mock for Base."""
    w3 = MagicMock()
    w3.eth.get_transaction_receipt = AsyncMock()
    return w3


@pytest.fixture
def solana():
    """Solana RPC client mock."""
    client = MagicMock()
    client.get_signature_statuses = AsyncMock()
    return client


@pytest.fixture
def notifier():
    """Notification service mock."""
    notifier = MagicMock()
    notifier.send_notification = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def reconciler(session_maker, w3, solana, notifier, owner):
    return TransactionReconciler(session_maker, {"base": w3}, solana, notifier)


class TestEvmReconcile:
    """Receipts decide EVM records."""

    @pytest.mark.asyncio
    async def test_receipt_success_confirms(self, reconciler, repo, w3, notifier, mock_session):
        """Status 1 confirms the record and notifies the owner once."""
        repo.list_pending_with_hash.return_value = [_record(1)]
        w3.eth.get_transaction_receipt.return_value = {"status": 1}

        stats = await reconciler.run_once()

        assert stats.confirmed == 1
        repo.mark_status.assert_awaited_once_with(1, TransactionStatus.CONFIRMED, error=None)
        mock_session.commit.assert_awaited_once()
        notifier.send_notification.assert_awaited_once()
        chat_id, text = notifier.send_notification.await_args.args
        assert chat_id == 555
        assert "Transaction Confirmed" in text

    @pytest.mark.asyncio
    async def test_receipt_revert_fails(self, reconciler, repo, w3, notifier):
        """Status 0 fails the record as reverted."""
        repo.list_pending_with_hash.return_value = [_record(1)]
        w3.eth.get_transaction_receipt.return_value = {"status": 0}

        stats = await reconciler.run_once()

        assert stats.failed == 1
        repo.mark_status.assert_awaited_once_with(
            1, TransactionStatus.FAILED, error=REVERTED_REASON
        )
        assert "Transaction Failed" in notifier.send_notification.await_args.args[1]

    @pytest.mark.asyncio
    async def test_missing_receipt_stays_pending(self, reconciler, repo, w3, notifier):
        """An unknown receipt leaves the record untouched."""
        repo.list_pending_with_hash.return_value = [_record(1)]
        w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not found")

        stats = await reconciler.run_once()

        assert stats.still_pending == 1
        repo.mark_status.assert_not_awaited()
        notifier.send_notification.assert_not_awaited()


class TestSolanaReconcile:
    """Signature statuses decide Solana records."""

    @pytest.mark.asyncio
    async def test_finalized_confirms(self, reconciler, repo, solana):
        repo.list_pending_with_hash.return_value = [_record(2, "solana", SOLANA_SIGNATURE)]
        solana.get_signature_statuses.return_value = _solana_status(
            confirmation_status=TransactionConfirmationStatus.Finalized
        )

        stats = await reconciler.run_once()

        assert stats.confirmed == 1
        repo.mark_status.assert_awaited_once_with(2, TransactionStatus.CONFIRMED, error=None)

    @pytest.mark.asyncio
    async def test_err_fails(self, reconciler, repo, solana):
        repo.list_pending_with_hash.return_value = [_record(2, "solana", SOLANA_SIGNATURE)]
        solana.get_signature_statuses.return_value = _solana_status(
            err="InstructionError", confirmation_status=TransactionConfirmationStatus.Confirmed
        )

        stats = await reconciler.run_once()

        assert stats.failed == 1
        args, _ = repo.mark_status.await_args
        assert args == (2, TransactionStatus.FAILED)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            _solana_status(confirmation_status=TransactionConfirmationStatus.Processed),
            MagicMock(value=[None]),
        ],
    )
    async def test_unsettled_stays_pending(self, reconciler, repo, solana, status):
        """Processed or unknown signatures are checked again next run."""
        repo.list_pending_with_hash.return_value = [_record(2, "solana", SOLANA_SIGNATURE)]
        solana.get_signature_statuses.return_value = status

        stats = await reconciler.run_once()

        assert stats.still_pending == 1
        repo.mark_status.assert_not_awaited()


class TestExpiry:
    """Records pending past the maximum age fail as expired."""

    @pytest.mark.asyncio
    async def test_hashless_record_expires(self, reconciler, repo, notifier):
        """A record that never got a hash is expired without an explorer button."""
        repo.list_pending_older_than.return_value = [_record(3, tx_hash=None)]

        stats = await reconciler.run_once()

        assert stats.expired == 1
        assert stats.checked == 0
        repo.mark_status.assert_awaited_once_with(
            3, TransactionStatus.FAILED, error=EXPIRED_REASON
        )
        assert notifier.send_notification.await_args.kwargs["reply_markup"] is None

    @pytest.mark.asyncio
    async def test_no_notifier_still_settles(self, session_maker, w3, solana, repo, mock_session):
        """Without a notifier the status change is still committed."""
        reconciler = TransactionReconciler(session_maker, {"base": w3}, solana, None)
        repo.list_pending_older_than.return_value = [_record(3)]

        stats = await reconciler.run_once()

        assert stats.expired == 1
        mock_session.commit.assert_awaited_once()


class TestBatchIsolation:
    """One failing record neither stalls the batch nor re-notifies owners."""

    @pytest.mark.asyncio
    async def test_rpc_error_skips_record_and_keeps_earlier_commit(
        self, reconciler, repo, w3, notifier, mock_session
    ):
        """A rate-limited receipt lookup skips only its record."""
        repo.list_pending_with_hash.return_value = [_record(1), _record(2), _record(3)]
        w3.eth.get_transaction_receipt.side_effect = [
            {"status": 1},
            aiohttp.ClientResponseError(
                request_info=MagicMock(), history=(), status=429, message="Too Many Requests"
            ),
            {"status": 1},
        ]

        stats = await reconciler.run_once()

        assert stats.checked == 3
        assert stats.confirmed == 2
        assert stats.still_pending == 1
        marked = [call.args[0] for call in repo.mark_status.await_args_list]
        assert marked == [1, 3]
        assert mock_session.commit.await_count == 2
        assert notifier.send_notification.await_count == 2

    @pytest.mark.asyncio
    async def test_commit_precedes_notification(
        self, reconciler, repo, w3, notifier, mock_session
    ):
        """Owners are only told about states already committed."""
        repo.list_pending_with_hash.return_value = [_record(1), _record(2)]
        w3.eth.get_transaction_receipt.return_value = {"status": 1}
        commits_seen = []

        async def record_commits(*args, **kwargs):
            commits_seen.append(mock_session.commit.await_count)
            return True

        notifier.send_notification.side_effect = record_commits

        await reconciler.run_once()

        assert commits_seen == [1, 2]

    @pytest.mark.asyncio
    async def test_notification_error_does_not_stop_batch(
        self, reconciler, repo, w3, notifier
    ):
        repo.list_pending_with_hash.return_value = [_record(1), _record(2)]
        w3.eth.get_transaction_receipt.return_value = {"status": 1}
        notifier.send_notification.side_effect = [RuntimeError("boom"), True]

        stats = await reconciler.run_once()

        assert stats.confirmed == 2
        assert notifier.send_notification.await_count == 2
