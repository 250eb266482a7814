"""Unit tests for wallet resolution and creation races."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from app.models.enums import ChainFamily
from app.models.wallet import Wallet
from app.repositories.wallet_repository import WalletRepository
from app.services.custody.privy_client import CustodialWallet
from app.services.wallet_service import WalletService
from app.utils.exceptions import (
    RejectedError,
    TransientNetworkError,
    WalletCreationError,
)
from tests.conftest import EVM_ADDRESS


class FakeWalletTable:
    """In-memory wallets table enforcing UNIQUE(user_id, chain)."""

    def __init__(self):
        self.rows: dict[tuple[int, str], Wallet] = {}

    async def get_by_user_chain(self, user_id, chain):
        await asyncio.sleep(0)
        return self.rows.get((user_id, ChainFamily(chain).value))

    async def create_unique(self, user_id, chain, address, vendor_wallet_id):
        key = (user_id, ChainFamily(chain).value)
        if key in self.rows:
            return self.rows[key], False
        wallet = Wallet(
            id=len(self.rows) + 1,
            user_id=user_id,
            chain=key[1],
            address=address,
            vendor_wallet_id=vendor_wallet_id,
        )
        self.rows[key] = wallet
        return wallet, True


def _custody(counter=None):
    custody = MagicMock()
    calls = counter if counter is not None else []

    async def create_wallet(chain):
        calls.append(chain)
        await asyncio.sleep(0)
        n = len(calls)
        return CustodialWallet(
            vendor_wallet_id=f"privy-{n}",
            address=f"0x{n:040x}",
            family=chain,
        )

    custody.create_wallet = AsyncMock(side_effect=create_wallet)
    custody.wallet_exists = AsyncMock(return_value=True)
    return custody


class TestGetOrCreateWallet:
    """Tests for WalletService.get_or_create_wallet."""

    @pytest.mark.asyncio
    async def test_concurrent_creation_yields_one_row(self, mock_session):
        """Two concurrent requests for a fresh user converge on one wallet."""
        table = FakeWalletTable()
        custody = _custody()
        first = WalletService(mock_session, custody)
        second = WalletService(mock_session, custody)
        first.wallets = table
        second.wallets = table

        a, b = await asyncio.gather(
            first.get_or_create_wallet(1, ChainFamily.EVM),
            second.get_or_create_wallet(1, ChainFamily.EVM),
        )

        assert len(table.rows) == 1
        assert a.id == b.id
        assert a.address == b.address

    @pytest.mark.asyncio
    async def test_existing_wallet_not_recreated(self, mock_session):
        """A stored wallet is returned without calling the vendor."""
        table = FakeWalletTable()
        custody = _custody()
        service = WalletService(mock_session, custody)
        service.wallets = table
        await service.get_or_create_wallet(1, ChainFamily.SOLANA)

        again = await service.get_or_create_wallet(1, ChainFamily.SOLANA, verify=True)

        assert again.vendor_wallet_id == "privy-1"
        assert custody.create_wallet.await_count == 1
        custody.wallet_exists.assert_awaited_once_with("privy-1")

    @pytest.mark.asyncio
    async def test_create_all_wallets(self, mock_session):
        """One wallet per chain family."""
        service = WalletService(mock_session, _custody())
        service.wallets = FakeWalletTable()

        wallets = await service.create_all_wallets(5)

        assert set(wallets) == {ChainFamily.EVM, ChainFamily.SOLANA}

    @pytest.mark.asyncio
    async def test_transient_errors_retried(self, mock_session, monkeypatch):
        """Transient vendor failures are retried up to the limit."""
        monkeypatch.setattr("app.services.wallet_service.WALLET_CREATE_RETRY_DELAY", 0)
        custody = MagicMock()
        custody.create_wallet = AsyncMock(
            side_effect=[
                TransientNetworkError("timeout"),
                CustodialWallet("privy-9", EVM_ADDRESS, ChainFamily.EVM),
            ]
        )
        service = WalletService(mock_session, custody)
        service.wallets = FakeWalletTable()

        wallet = await service.get_or_create_wallet(1, ChainFamily.EVM)

        assert wallet.address == EVM_ADDRESS
        assert custody.create_wallet.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, mock_session, monkeypatch):
        """Persistent transient failures become WalletCreationError."""
        monkeypatch.setattr("app.services.wallet_service.WALLET_CREATE_RETRY_DELAY", 0)
        custody = MagicMock()
        custody.create_wallet = AsyncMock(side_effect=TransientNetworkError("down"))
        service = WalletService(mock_session, custody)
        service.wallets = FakeWalletTable()

        with pytest.raises(WalletCreationError):
            await service.get_or_create_wallet(1, ChainFamily.EVM)
        assert custody.create_wallet.await_count == 3

    @pytest.mark.asyncio
    async def test_rejection_not_retried(self, mock_session):
        """A vendor rejection fails immediately."""
        custody = MagicMock()
        custody.create_wallet = AsyncMock(side_effect=RejectedError("bad request"))
        service = WalletService(mock_session, custody)
        service.wallets = FakeWalletTable()

        with pytest.raises(WalletCreationError):
            await service.get_or_create_wallet(1, ChainFamily.EVM)
        assert custody.create_wallet.await_count == 1


class _Savepoint:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class TestCreateUnique:
    """Tests for the repository's unique-violation fallback."""

    @pytest.mark.asyncio
    async def test_conflict_rereads_existing(self, mock_session):
        """A unique violation returns the row inserted by the other request."""
        existing = Wallet(
            id=3, user_id=1, chain="evm", address=EVM_ADDRESS, vendor_wallet_id="privy-a"
        )
        mock_session.begin_nested = MagicMock(return_value=_Savepoint())
        mock_session.flush = AsyncMock(
            side_effect=IntegrityError("INSERT INTO wallets", {}, Exception("duplicate"))
        )
        repo = WalletRepository(mock_session)
        repo.get_by_user_chain = AsyncMock(return_value=existing)

        wallet, created = await repo.create_unique(
            1, ChainFamily.EVM, "0x" + "b" * 40, "privy-b"
        )

        assert wallet is existing
        assert created is False

    @pytest.mark.asyncio
    async def test_insert_succeeds(self, mock_session):
        """Without a conflict the new row is returned as created."""
        mock_session.begin_nested = MagicMock(return_value=_Savepoint())
        repo = WalletRepository(mock_session)

        wallet, created = await repo.create_unique(1, ChainFamily.EVM, EVM_ADDRESS, "privy-c")

        assert created is True
        assert wallet.address == EVM_ADDRESS
        mock_session.add.assert_called_once_with(wallet)
