"""Unit tests for the vendor response normalizer."""

import pytest

from app.services.transactions.normalizer import extract_hash, normalize


class TestExtractHash:
    """Tests for hash recovery across vendor response shapes."""

    @pytest.mark.parametrize(
        "key", ["hash", "transaction_hash", "signature", "txHash", "transactionHash"]
    )
    def test_known_keys_under_data(self, key):
        """Each known key is recognized inside ``data``."""
        assert extract_hash({"data": {key: "0xabc"}}) == "0xabc"

    def test_flat_response(self):
        """A response without ``data`` is read directly."""
        assert extract_hash({"transactionHash": "0xdef"}) == "0xdef"

    def test_bare_string_data(self):
        """``data`` may be the hash itself."""
        assert extract_hash({"data": "  5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnb  "}) == (
            "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnb"
        )

    def test_first_key_wins(self):
        """Lookup order is fixed: ``hash`` before ``signature``."""
        assert extract_hash({"data": {"signature": "sig", "hash": "0x1"}}) == "0x1"

    def test_empty_values_skipped(self):
        """Empty strings do not count as a hash."""
        assert extract_hash({"data": {"hash": "", "txHash": "0x2"}}) == "0x2"

    @pytest.mark.parametrize(
        "response",
        [None, [], "0xabc", {"data": {"id": "123"}}, {"data": 42}, {"data": {"hash": 5}}],
    )
    def test_unknown_shapes(self, response):
        """Unrecognized shapes yield an empty hash."""
        assert extract_hash(response) == ""


class TestNormalize:
    """Tests for hash + explorer URL normalization."""

    def test_normalize_with_explorer(self):
        """Recovered hash gets an explorer link."""
        result = normalize({"data": {"hash": "0xabc"}}, "base")
        assert result.found
        assert result.hash == "0xabc"
        assert result.explorer_url.endswith("/tx/0xabc")

    def test_normalize_unknown_shape(self):
        """Unknown shape gives empty hash and URL."""
        result = normalize({"data": {"status": "ok"}}, "base")
        assert not result.found
        assert result.hash == ""
        assert result.explorer_url == ""
