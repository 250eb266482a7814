"""
Wallet repository.

Data access layer for Wallet model.
"""

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ChainFamily
from app.models.wallet import Wallet
from app.repositories.base import BaseRepository
from app.utils.security import mask_address
from app.utils.validation import is_evm_address


class WalletRepository(BaseRepository[Wallet]):
    """Wallet repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize wallet repository."""
        super().__init__(Wallet, session)

    async def get_by_user_chain(
        self, user_id: int, chain: ChainFamily
    ) -> Wallet | None:
        """
        Get a user's wallet for a chain family.

        Args:
            user_id: User ID
            chain: Chain family

        Returns:
            Wallet or None
        """
        return await self.get_by(user_id=user_id, chain=chain.value)

    async def list_for_user(self, user_id: int) -> list[Wallet]:
        """Get all wallets of a user, EVM first."""
        return await self.find_by(order_by=Wallet.chain, user_id=user_id)

    async def get_by_address(self, address: str) -> Wallet | None:
        """
        Find wallet by on-chain address.

        EVM addresses match case-insensitively. Solana base58 addresses
        are case-sensitive and match exactly.

        Args:
            address: Wallet address

        Returns:
            Wallet or None
        """
        if not address:
            return None
        address = address.strip()
        if is_evm_address(address):
            stmt = select(Wallet).where(
                Wallet.chain == ChainFamily.EVM.value,
                func.lower(Wallet.address) == address.lower(),
            )
        else:
            stmt = select(Wallet).where(
                Wallet.chain == ChainFamily.SOLANA.value,
                Wallet.address == address,
            )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_unique(
        self,
        user_id: int,
        chain: ChainFamily,
        address: str,
        vendor_wallet_id: str,
    ) -> tuple[Wallet, bool]:
        """
        Insert a wallet, resolving a (user_id, chain) conflict by re-reading.

        The insert runs inside a SAVEPOINT so a unique violation only rolls
        back the insert, not the caller's transaction.

        Args:
            user_id: User ID
            chain: Chain family
            address: Wallet address
            vendor_wallet_id: Custody vendor wallet ID

        Returns:
            Tuple of (wallet, created). ``created`` is False when another
            request inserted the row first.
        """
        try:
            async with self.session.begin_nested():
                wallet = Wallet(
                    user_id=user_id,
                    chain=chain.value,
                    address=address,
                    vendor_wallet_id=vendor_wallet_id,
                )
                self.session.add(wallet)
                await self.session.flush()
            return wallet, True
        except IntegrityError:
            existing = await self.get_by_user_chain(user_id, chain)
            if existing is None:
                raise
            logger.info(
                f"Wallet for user {user_id} on {chain} already exists, "
                f"discarding {mask_address(address)} and re-reading"
            )
            return existing, False
