"""Unit tests for transfer payload formatting."""

import base64
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from solana.exceptions import SolanaRpcException
from solders.hash import Hash
from solders.transaction import Transaction

from app.services.transactions.formatter import (
    ERC20_TRANSFER_SELECTOR,
    TransactionFormatter,
    encode_erc20_transfer,
    to_minor_units,
)
from app.services.transactions.requests import (
    EvmTransferRequest,
    SolanaTransferRequest,
    build_transfer_request,
)
from app.utils.exceptions import (
    InvalidTransactionError,
    TransientNetworkError,
    UnsupportedChainError,
)
from tests.conftest import EVM_ADDRESS, SOLANA_ADDRESS


SOLANA_RECIPIENT = "So11111111111111111111111111111111111111112"


@pytest.fixture
def solana_client():
    """Solana RPC mock returning a fixed blockhash."""
    client = MagicMock()
    client.get_latest_blockhash = AsyncMock(
        return_value=MagicMock(value=MagicMock(blockhash=Hash.default()))
    )
    return client


@pytest.fixture
def formatter(solana_client):
    return TransactionFormatter(solana_client)


class TestUnits:
    """Tests for amount conversion."""

    @pytest.mark.parametrize(
        "amount,decimals,expected",
        [
            ("1.5", 18, 1_500_000_000_000_000_000),
            ("10", 6, 10_000_000),
            ("0.0000001", 6, 0),
            ("0.123456789", 9, 123_456_789),
        ],
    )
    def test_to_minor_units(self, amount, decimals, expected):
        """Amounts round down to whole base units."""
        assert to_minor_units(Decimal(amount), decimals) == expected

    @pytest.mark.parametrize("amount", ["10000000000", "Infinity"])
    def test_to_minor_units_overflow(self, amount):
        with pytest.raises(InvalidTransactionError):
            to_minor_units(Decimal(amount), 18)

    def test_erc20_calldata(self):
        """Calldata is selector plus two 32-byte words."""
        data = encode_erc20_transfer(EVM_ADDRESS, 10_000_000)
        assert data.startswith("0x" + ERC20_TRANSFER_SELECTOR)
        assert len(data) == 2 + 8 + 128
        assert data.endswith(f"{10_000_000:064x}")
        assert EVM_ADDRESS[2:].lower() in data


class TestBuildRequest:
    """Tests for tagged request construction."""

    def test_family_from_chain(self):
        """The chain label decides the request type."""
        assert isinstance(
            build_transfer_request("base", EVM_ADDRESS, Decimal("1"), "eth"), EvmTransferRequest
        )
        request = build_transfer_request("sol", SOLANA_RECIPIENT, Decimal("1"), "sol")
        assert isinstance(request, SolanaTransferRequest)
        assert request.asset == "SOL"
        assert request.chain == "solana"

    def test_unknown_chain(self):
        with pytest.raises(UnsupportedChainError):
            build_transfer_request("polygon", EVM_ADDRESS, Decimal("1"), "USDC")


class TestEvmFormatting:
    """Tests for EVM payloads."""

    @pytest.mark.asyncio
    async def test_native_transfer(self, formatter):
        """ETH goes to the recipient as value."""
        request = EvmTransferRequest("base", EVM_ADDRESS, Decimal("0.01"), "ETH")

        formatted = await formatter.format_transaction(request, EVM_ADDRESS)

        tx = formatted.rpc_body["params"]["transaction"]
        assert formatted.rpc_body["method"] == "eth_sendTransaction"
        assert formatted.rpc_body["caip2"] == "eip155:84532"
        assert tx["value"] == hex(10**16)
        assert tx["data"] == "0x"
        assert tx["to"].lower() == EVM_ADDRESS.lower()
        assert formatted.pending.amount_minor_units == 10**16

    @pytest.mark.asyncio
    async def test_token_transfer(self, formatter):
        """USDC goes to the token contract with transfer calldata."""
        request = EvmTransferRequest("base", EVM_ADDRESS, Decimal("10"), "USDC")

        formatted = await formatter.format_transaction(request, EVM_ADDRESS)

        tx = formatted.rpc_body["params"]["transaction"]
        assert tx["to"].lower() == "0x036cbd53842c5426634e7929541ec2318f3dcf7e"
        assert tx["value"] == "0x0"
        assert tx["data"].startswith("0xa9059cbb")
        assert formatted.pending.amount_minor_units == 10_000_000

    @pytest.mark.parametrize(
        "request_obj",
        [
            EvmTransferRequest("base", "0x1234", Decimal("1"), "ETH"),
            EvmTransferRequest("base", EVM_ADDRESS, Decimal("0"), "ETH"),
            EvmTransferRequest("solana", EVM_ADDRESS, Decimal("1"), "SOL"),
        ],
    )
    def test_validation_errors(self, formatter, request_obj):
        """Bad address, amount or family tag is rejected before any call."""
        with pytest.raises(InvalidTransactionError):
            formatter.validate(request_obj)

    @pytest.mark.asyncio
    async def test_dust_amount(self, formatter):
        """An amount that rounds to zero units is refused."""
        request = EvmTransferRequest("base", EVM_ADDRESS, Decimal("0.0000001"), "USDC")
        with pytest.raises(InvalidTransactionError):
            await formatter.format_transaction(request, EVM_ADDRESS)

    @pytest.mark.asyncio
    async def test_oversized_native_amount(self, formatter):
        """Wei amounts beyond the decimal precision are refused, not crashed on."""
        request = EvmTransferRequest("base", EVM_ADDRESS, Decimal("10000000000"), "ETH")
        with pytest.raises(InvalidTransactionError):
            await formatter.format_transaction(request, EVM_ADDRESS)


class TestSolanaFormatting:
    """Tests for Solana payloads."""

    @pytest.mark.asyncio
    async def test_native_transfer(self, formatter, solana_client):
        """SOL transfer serializes an unsigned transaction with a fresh blockhash."""
        request = SolanaTransferRequest("solana", SOLANA_RECIPIENT, Decimal("0.5"), "SOL")

        formatted = await formatter.format_transaction(request, SOLANA_ADDRESS)

        assert formatted.rpc_body["method"] == "signAndSendTransaction"
        assert formatted.rpc_body["params"]["encoding"] == "base64"
        raw = base64.b64decode(formatted.rpc_body["params"]["transaction"])
        tx = Transaction.from_bytes(raw)
        assert tx.message.recent_blockhash == Hash.default()
        assert formatted.pending.amount_minor_units == 500_000_000
        solana_client.get_latest_blockhash.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_token_transfer_has_ata_instruction(self, formatter):
        """SPL transfers create the recipient token account idempotently."""
        request = SolanaTransferRequest("solana", SOLANA_RECIPIENT, Decimal("5"), "USDC")

        formatted = await formatter.format_transaction(request, SOLANA_ADDRESS)

        raw = base64.b64decode(formatted.rpc_body["params"]["transaction"])
        assert len(Transaction.from_bytes(raw).message.instructions) == 2
        assert formatted.pending.amount_minor_units == 5_000_000

    def test_unsupported_token(self, formatter):
        """Tokens without a known mint are refused."""
        request = SolanaTransferRequest("solana", SOLANA_RECIPIENT, Decimal("1"), "DOGE")
        with pytest.raises(InvalidTransactionError):
            formatter.validate(request)

    @pytest.mark.asyncio
    async def test_blockhash_failure_is_transient(self, formatter, solana_client):
        """RPC failures surface as TransientNetworkError."""
        solana_client.get_latest_blockhash.side_effect = SolanaRpcException("down")
        request = SolanaTransferRequest("solana", SOLANA_RECIPIENT, Decimal("0.5"), "SOL")

        with pytest.raises(TransientNetworkError):
            await formatter.format_transaction(request, SOLANA_ADDRESS)
