"""
Wallet service.

Resolves a user's custodial wallet per chain family, creating it through
the custody vendor on first use.
"""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import WALLET_CREATE_MAX_ATTEMPTS, WALLET_CREATE_RETRY_DELAY
from app.models.enums import ChainFamily
from app.models.wallet import Wallet
from app.repositories.wallet_repository import WalletRepository
from app.services.base_service import BaseService
from app.services.custody.privy_client import CustodialWallet, PrivyClient
from app.utils.exceptions import (
    RejectedError,
    TransientNetworkError,
    WalletCreationError,
)
from app.utils.security import mask_address


class WalletService(BaseService):
    """Custodial wallet resolver."""

    def __init__(self, session: AsyncSession, custody: PrivyClient) -> None:
        """
        Initialize wallet service.

        Args:
            session: Database session
            custody: Custody vendor client
        """
        super().__init__(session)
        self.custody = custody
        self.wallets = WalletRepository(session)

    async def get_wallet(self, user_id: int, chain: ChainFamily) -> Wallet | None:
        """Get existing wallet without creating one."""
        return await self.wallets.get_by_user_chain(user_id, chain)

    async def list_wallets(self, user_id: int) -> list[Wallet]:
        """Get all wallets of a user."""
        return await self.wallets.list_for_user(user_id)

    async def get_or_create_wallet(
        self, user_id: int, chain: ChainFamily, verify: bool = False
    ) -> Wallet:
        """
        Get the user's wallet for a chain family, creating it if absent.

        Args:
            user_id: User ID
            chain: Chain family
            verify: Ask the custody vendor whether a stored wallet still exists

        Returns:
            Wallet row (address and vendor_wallet_id)

        Raises:
            WalletCreationError: Vendor creation failed after retries
        """
        existing = await self.wallets.get_by_user_chain(user_id, chain)
        if existing is not None:
            if verify:
                await self._verify(existing)
            return existing

        created = await self._create_with_retry(chain)
        wallet, inserted = await self.wallets.create_unique(
            user_id=user_id,
            chain=chain,
            address=created.address,
            vendor_wallet_id=created.vendor_wallet_id,
        )
        if inserted:
            self.logger.success(
                f"Wallet created for user {user_id} on {chain}: "
                f"{mask_address(wallet.address)}"
            )
        else:
            self.logger.warning(
                f"Concurrent wallet creation for user {user_id} on {chain}; "
                f"orphaned vendor wallet {created.vendor_wallet_id}"
            )
        return wallet

    async def create_all_wallets(self, user_id: int) -> dict[ChainFamily, Wallet]:
        """
        Ensure the user has a wallet on every supported chain family.

        Args:
            user_id: User ID

        Returns:
            Mapping of family to wallet

        Raises:
            WalletCreationError: Any family failed
        """
        result: dict[ChainFamily, Wallet] = {}
        for family in ChainFamily:
            result[family] = await self.get_or_create_wallet(user_id, family)
        return result

    async def _verify(self, wallet: Wallet) -> None:
        try:
            known = await self.custody.wallet_exists(wallet.vendor_wallet_id)
        except TransientNetworkError as e:
            self.logger.warning(
                f"Could not verify wallet {wallet.id} with custody vendor: {e}"
            )
            return
        if not known:
            self.logger.warning(
                f"Wallet {wallet.id} ({mask_address(wallet.address)}) "
                f"is unknown to the custody vendor"
            )

    async def _create_with_retry(self, chain: ChainFamily) -> CustodialWallet:
        last_error: Exception | None = None
        for attempt in range(1, WALLET_CREATE_MAX_ATTEMPTS + 1):
            try:
                return await self.custody.create_wallet(chain)
            except TransientNetworkError as e:
                last_error = e
                self.logger.warning(
                    f"Wallet creation attempt {attempt}/{WALLET_CREATE_MAX_ATTEMPTS} "
                    f"for {chain} failed: {e}"
                )
                if attempt < WALLET_CREATE_MAX_ATTEMPTS:
                    await asyncio.sleep(WALLET_CREATE_RETRY_DELAY)
            except RejectedError as e:
                self.logger.error(f"Custody vendor rejected {chain} wallet creation: {e}")
                raise WalletCreationError(f"Failed to create {chain} wallet") from e

        raise WalletCreationError(
            f"Failed to create {chain} wallet after {WALLET_CREATE_MAX_ATTEMPTS} attempts"
        ) from last_error
