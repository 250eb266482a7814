"""
Pending transaction reconciler.

Resolves outbound records left in ``pending`` after broadcast by reading
chain state directly: EVM receipts and Solana signature statuses.
Records that stay pending past ``RECONCILE_MAX_AGE_HOURS`` are marked
failed as expired. Owners are notified of every final state.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound, Web3Exception

from app.config.constants import (
    BLOCKCHAIN_TIMEOUT,
    RECONCILE_BATCH_LIMIT,
    RECONCILE_GRACE_SECONDS,
    RECONCILE_MAX_AGE_HOURS,
)
from app.models.enums import ChainFamily, TransactionStatus
from app.models.transaction import TransactionRecord
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.user_repository import UserRepository
from app.services.chains.networks import chain_family, display_name, explorer_url
from app.services.notification_service import NotificationService
from bot.keyboards.inline import explorer_keyboard
from bot.messages.user_messages import (
    format_transaction_confirmed,
    format_transaction_failed,
)


EXPIRED_REASON = "Transaction was not confirmed in time (expired)"
REVERTED_REASON = "Reverted on-chain"

_FINAL_SOLANA_STATUSES = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


@dataclass
class ReconcileStats:
    """Counters of one reconciler run."""

    checked: int = 0
    confirmed: int = 0
    failed: int = 0
    expired: int = 0
    still_pending: int = 0


class TransactionReconciler:
    """Moves pending transaction records to their final state."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        evm_clients: dict[str, AsyncWeb3],
        solana_client: AsyncClient,
        notifier: NotificationService | None = None,
    ) -> None:
        """
        Initialize reconciler.

        Args:
            session_maker: Session factory (one session per run)
            evm_clients: AsyncWeb3 per internal chain label
            solana_client: Solana RPC client
            notifier: Telegram notifier; notifications skipped when None
        """
        self.session_maker = session_maker
        self.evm_clients = evm_clients
        self.solana = solana_client
        self.notifier = notifier

    async def run_once(self) -> ReconcileStats:
        """
        Reconcile one batch of pending records.

        Each status change is committed before its owner is notified. A record
        whose check fails stays pending and the batch moves on.

        Returns:
            ReconcileStats
        """
        stats = ReconcileStats()
        now = datetime.now(UTC)
        expire_before = now - timedelta(hours=RECONCILE_MAX_AGE_HOURS)

        async with self.session_maker() as session:
            repo = TransactionRepository(session)
            records = await repo.list_pending_with_hash(
                created_before=now - timedelta(seconds=RECONCILE_GRACE_SECONDS),
                limit=RECONCILE_BATCH_LIMIT,
            )
            for record in records:
                stats.checked += 1
                try:
                    status = await self.check_status(record)
                except Exception as e:
                    logger.error(
                        f"Reconciler skipped record {record.id}: {type(e).__name__}: {e}"
                    )
                    stats.still_pending += 1
                    continue

                if status == TransactionStatus.CONFIRMED:
                    await self._settle(session, repo, record, TransactionStatus.CONFIRMED)
                    stats.confirmed += 1
                elif status == TransactionStatus.FAILED:
                    await self._settle(
                        session, repo, record, TransactionStatus.FAILED, REVERTED_REASON
                    )
                    stats.failed += 1
                else:
                    stats.still_pending += 1

            for record in await repo.list_pending_older_than(expire_before, RECONCILE_BATCH_LIMIT):
                await self._settle(
                    session, repo, record, TransactionStatus.FAILED, EXPIRED_REASON
                )
                stats.expired += 1

        if stats.checked or stats.expired:
            logger.info(
                f"Reconciler: checked={stats.checked} confirmed={stats.confirmed} "
                f"failed={stats.failed} expired={stats.expired} "
                f"pending={stats.still_pending}"
            )
        return stats

    async def _settle(
        self,
        session: AsyncSession,
        repo: TransactionRepository,
        record: TransactionRecord,
        status: TransactionStatus,
        reason: str = "",
    ) -> None:
        """Persist a final status, then tell the owner."""
        await repo.mark_status(record.id, status, error=reason or None)
        await session.commit()
        try:
            await self._notify(session, record, status, reason)
        except Exception as e:
            logger.error(f"Error sending notification for record {record.id}: {e}")

    async def check_status(self, record: TransactionRecord) -> TransactionStatus | None:
        """
        Read the on-chain state of a record.

        Args:
            record: Record with tx_hash set

        Returns:
            CONFIRMED, FAILED, or None while unknown
        """
        family = chain_family(record.chain)
        try:
            if family == ChainFamily.EVM:
                return await self._check_evm(record)
            if family == ChainFamily.SOLANA:
                return await self._check_solana(record)
        except (Web3Exception, SolanaRpcException, OSError, TimeoutError) as e:
            logger.warning(f"Reconciler could not check record {record.id}: {e}")
            return None
        logger.warning(f"Reconciler: record {record.id} has unknown chain {record.chain}")
        return None

    async def _check_evm(self, record: TransactionRecord) -> TransactionStatus | None:
        w3 = self.evm_clients.get(record.chain)
        if w3 is None:
            return None
        try:
            receipt = await asyncio.wait_for(
                w3.eth.get_transaction_receipt(record.tx_hash),
                timeout=BLOCKCHAIN_TIMEOUT,
            )
        except TransactionNotFound:
            return None
        if receipt["status"] == 1:
            return TransactionStatus.CONFIRMED
        return TransactionStatus.FAILED

    async def _check_solana(self, record: TransactionRecord) -> TransactionStatus | None:
        try:
            signature = Signature.from_string(record.tx_hash)
        except ValueError:
            logger.warning(f"Record {record.id} has malformed signature")
            return None
        response = await asyncio.wait_for(
            self.solana.get_signature_statuses([signature], search_transaction_history=True),
            timeout=BLOCKCHAIN_TIMEOUT,
        )
        status = response.value[0]
        if status is None:
            return None
        if status.err is not None:
            return TransactionStatus.FAILED
        if status.confirmation_status in _FINAL_SOLANA_STATUSES:
            return TransactionStatus.CONFIRMED
        return None

    async def _notify(
        self,
        session: AsyncSession,
        record: TransactionRecord,
        status: TransactionStatus,
        reason: str = "",
    ) -> None:
        if self.notifier is None or record.user_id is None:
            return
        user = await UserRepository(session).get_by_id(record.user_id)
        if user is None:
            return
        network_name = display_name(record.network or record.chain)
        if status == TransactionStatus.CONFIRMED:
            text = format_transaction_confirmed(
                record.amount, record.asset, network_name, record.tx_hash
            )
        else:
            text = format_transaction_failed(
                record.amount, record.asset, network_name, record.tx_hash, reason
            )
        await self.notifier.send_notification(
            user.notify_chat_id,
            text,
            reply_markup=explorer_keyboard(explorer_url(record.chain, record.tx_hash)),
        )
