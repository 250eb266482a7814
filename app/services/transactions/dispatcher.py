"""
Transaction dispatcher.

One dispatcher for both chain families. Lifecycle of a dispatch::

    BUILT -> SENT -> {CONFIRMED, FAILED}
      ^  |
      +--+  retry on BlockhashExpiredError only

Exactly one TransactionRecord is written per dispatch, before the first
broadcast. The hash is attached once, after the custody vendor accepts the
transaction. Final confirmation is left to the reconciler.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import (
    DISPATCH_MAX_ATTEMPTS,
    DISPATCH_RETRY_DELAY,
    DISPATCH_TIMEOUT,
)
from app.models.enums import TransactionAction, TransactionStatus
from app.models.wallet import Wallet
from app.repositories.transaction_repository import TransactionRepository
from app.services.base_service import BaseService, log_operation
from app.services.chains.networks import to_vendor_network
from app.services.custody.privy_client import PrivyClient
from app.services.transactions.formatter import TransactionFormatter
from app.services.transactions.normalizer import normalize
from app.services.transactions.requests import TransferRequest
from app.utils.exceptions import (
    BlockhashExpiredError,
    HedwigError,
    InvalidTransactionError,
    TransientNetworkError,
)
from app.utils.security import mask_address, mask_tx_hash


class DispatchState(StrEnum):
    """In-memory dispatch state."""

    BUILT = "built"
    SENT = "sent"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class DispatchResult:
    """Outcome of a successful dispatch."""

    state: DispatchState
    tx_hash: str
    explorer_url: str
    attempts: int
    record_id: int
    raw: dict[str, Any] = field(default_factory=dict)


class TransactionDispatcher(BaseService):
    """
    Formats, sends and records outbound transfers.

    Callers own the session and commit after ``dispatch`` returns or raises,
    so failed records are persisted too.
    """

    def __init__(
        self,
        session: AsyncSession,
        custody: PrivyClient,
        formatter: TransactionFormatter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            session: Database session
            custody: Custody vendor client (signs and broadcasts)
            formatter: Payload builder
            sleep: Delay function between retries
        """
        super().__init__(session)
        self.custody = custody
        self.formatter = formatter
        self.transactions = TransactionRepository(session)
        self._sleep = sleep

    @log_operation
    async def dispatch(
        self,
        user_id: int,
        wallet: Wallet,
        request: TransferRequest,
        action: TransactionAction = TransactionAction.SEND,
        extra: dict[str, Any] | None = None,
    ) -> DispatchResult:
        """
        Send a transfer from a custodial wallet.

        Args:
            user_id: Owner of the wallet
            wallet: Sending wallet (family must match the request)
            request: Tagged transfer request
            action: Action recorded on the TransactionRecord
            extra: Additional metadata stored on the record

        Returns:
            DispatchResult in state SENT

        Raises:
            InvalidTransactionError: Request invalid, nothing recorded
            UnsupportedChainError: Unknown chain, nothing recorded
            BlockhashExpiredError: Every attempt hit an expired blockhash
            TransientNetworkError: Vendor unreachable or send timed out
            RejectedError: Vendor refused the transaction
        """
        network = self.formatter.validate(request)
        if wallet.family != request.family:
            raise InvalidTransactionError(
                f"{wallet.chain} wallet cannot send on {network.name}"
            )

        metadata = {"recipient": request.recipient, **(extra or {})}
        record = await self.transactions.create_pending(
            user_id=user_id,
            wallet_id=wallet.id,
            chain=network.chain,
            network=to_vendor_network(network.chain),
            action=action,
            from_address=wallet.address,
            to_address=request.recipient,
            amount=request.amount,
            asset=request.asset,
            extra=metadata,
        )
        self.logger.info(
            f"Dispatch {record.id}: {request.amount} {request.asset} on {network.chain} "
            f"{mask_address(wallet.address)} -> {mask_address(request.recipient)}"
        )

        state = DispatchState.BUILT
        last_error: BlockhashExpiredError | None = None
        for attempt in range(1, DISPATCH_MAX_ATTEMPTS + 1):
            try:
                response = await self._attempt(request, wallet)
            except BlockhashExpiredError as e:
                last_error = e
                self.logger.warning(
                    f"Dispatch {record.id} attempt {attempt}/{DISPATCH_MAX_ATTEMPTS}: "
                    f"blockhash expired"
                )
                if attempt < DISPATCH_MAX_ATTEMPTS:
                    await self._sleep(DISPATCH_RETRY_DELAY)
                continue
            except HedwigError as e:
                await self._fail(record.id, e, attempt)
                raise

            state = DispatchState.SENT
            normalized = normalize(response, network.chain)
            if normalized.found:
                written = await self.transactions.set_hash_once(record.id, normalized.hash)
                if not written:
                    self.logger.warning(
                        f"Dispatch {record.id} already had a hash, kept the original"
                    )
            else:
                self.logger.warning(
                    f"Dispatch {record.id}: vendor response carried no hash"
                )
            await self.transactions.mark_status(
                record.id, TransactionStatus.PENDING, attempts=attempt
            )
            self.logger.success(
                f"Dispatch {record.id} sent on attempt {attempt}: "
                f"{mask_tx_hash(normalized.hash)}"
            )
            return DispatchResult(
                state=state,
                tx_hash=normalized.hash,
                explorer_url=normalized.explorer_url,
                attempts=attempt,
                record_id=record.id,
                raw=response,
            )

        await self._fail(record.id, last_error, DISPATCH_MAX_ATTEMPTS)
        raise last_error

    async def _attempt(self, request: TransferRequest, wallet: Wallet) -> dict[str, Any]:
        """Build a fresh payload and send it once."""
        formatted = await self.formatter.format_transaction(request, wallet.address)
        try:
            return await asyncio.wait_for(
                self.custody.rpc(wallet.vendor_wallet_id, formatted.rpc_body),
                timeout=DISPATCH_TIMEOUT,
            )
        except TimeoutError as e:
            raise TransientNetworkError(
                f"Custody vendor did not answer within {DISPATCH_TIMEOUT}s",
                vendor=self.custody.vendor,
            ) from e

    async def _fail(self, record_id: int, error: Exception, attempts: int) -> None:
        self.logger.error(
            f"Dispatch {record_id} failed after {attempts} attempt(s): "
            f"{type(error).__name__}: {error}"
        )
        await self.transactions.mark_status(
            record_id,
            TransactionStatus.FAILED,
            error=f"{type(error).__name__}: {error}",
            attempts=attempts,
        )
