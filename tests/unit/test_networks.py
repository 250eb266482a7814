"""Unit tests for the network/chain mapper."""

import pytest

from app.models.enums import ChainFamily
from app.services.chains.networks import (
    DEFAULT_CHAIN,
    display_name,
    explorer_url,
    get_network,
    resolve_chain,
    supported_chains,
    to_vendor_network,
)


class TestVendorNetworkMapping:
    """Tests for chain -> vendor network ids."""

    @pytest.mark.parametrize("testnet", [True, False])
    def test_every_supported_chain_maps(self, testnet):
        """Every supported chain has a non-empty vendor network."""
        for chain in supported_chains():
            assert to_vendor_network(chain, testnet=testnet) != ""

    def test_testnet_ids(self):
        """Testnet mode resolves to test networks."""
        assert to_vendor_network("base", testnet=True) == "base-sepolia"
        assert to_vendor_network("ethereum", testnet=True) == "ethereum-sepolia"
        assert to_vendor_network("solana", testnet=True) == "solana-devnet"

    def test_mainnet_ids(self):
        """Mainnet mode resolves to production networks."""
        assert to_vendor_network("base", testnet=False) == "base-mainnet"
        assert to_vendor_network("solana", testnet=False) == "solana-mainnet"

    @pytest.mark.parametrize("chain", ["polygon", "", None, "bitcoin"])
    def test_unsupported_chain_is_empty(self, chain):
        """Unknown chains map to an empty string instead of raising."""
        assert to_vendor_network(chain) == ""


class TestChainResolution:
    """Tests for free-form chain labels."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Base", "base"),
            ("base-sepolia", "base"),
            ("ETH", "ethereum"),
            ("sol", "solana"),
            (" Solana ", "solana"),
            ("dogecoin", ""),
        ],
    )
    def test_resolve_chain(self, label, expected):
        """Aliases collapse to internal labels."""
        assert resolve_chain(label) == expected

    def test_families(self):
        """Chains belong to the expected wallet family."""
        assert get_network("base").family == ChainFamily.EVM
        assert get_network("ethereum").family == ChainFamily.EVM
        assert get_network("solana").family == ChainFamily.SOLANA

    def test_default_chains(self):
        """Each family has a default chain that exists."""
        for chain in DEFAULT_CHAIN.values():
            assert get_network(chain) is not None


class TestExplorerAndDisplay:
    """Tests for explorer links and display names."""

    def test_explorer_url_testnet(self):
        """Explorer URL embeds the hash."""
        url = explorer_url("base", "0xabc", testnet=True)
        assert url == "https://sepolia.basescan.org/tx/0xabc"

    def test_solana_devnet_cluster(self):
        """Devnet links carry the cluster parameter."""
        assert explorer_url("solana", "sig", testnet=True).endswith("?cluster=devnet")

    def test_explorer_url_empty_hash(self):
        """No hash, no link."""
        assert explorer_url("base", "") == ""

    def test_explorer_url_unknown_chain(self):
        """Unknown chain, no link."""
        assert explorer_url("polygon", "0xabc") == ""

    def test_display_name_vendor_ids(self):
        """Vendor network ids get friendly names."""
        assert display_name("base-sepolia") == "Base Sepolia"
        assert display_name("polygon-mainnet") == "Polygon"

    def test_display_name_passthrough(self):
        """Unknown ids are returned unchanged."""
        assert display_name("zksync-era") == "zksync-era"
        assert display_name(None) == "unknown"
