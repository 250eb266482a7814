"""Unit tests for intent parsing."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.services.intent import llm_client as llm_client_module
from app.services.intent.llm_client import GeminiClient, extract_response_text
from app.services.intent.parser import (
    IntentParser,
    RuleBasedParser,
    normalize_params,
    parse_llm_output,
    strip_code_fences,
)
from app.utils.exceptions import TransientNetworkError
from tests.conftest import EVM_ADDRESS, SOLANA_ADDRESS


class TestParseLlmOutput:
    """Tests for model JSON parsing."""

    def test_plain_json(self):
        """Valid intent JSON is parsed and params normalized."""
        parsed = parse_llm_output(
            '{"intent": "send", "params": {"amount": "10", "token": "usdc", '
            f'"to": "{EVM_ADDRESS}", "chain": "Base"}}}}'
        )
        assert parsed.intent == "send"
        assert parsed.source == "llm"
        assert parsed.params == {
            "amount": "10",
            "token": "USDC",
            "recipient": EVM_ADDRESS,
            "network": "base",
        }

    def test_code_fenced(self):
        """Code fences around the JSON are stripped."""
        parsed = parse_llm_output('```json\n{"intent": "help"}\n```')
        assert parsed.intent == "help"
        assert parsed.params == {}

    def test_parameters_key(self):
        """``parameters`` is accepted in place of ``params``."""
        parsed = parse_llm_output('{"intent": "balance", "parameters": {"token": "eth"}}')
        assert parsed.params == {"token": "ETH"}

    def test_intent_alias(self):
        """Alternative intent names map to ours."""
        assert parse_llm_output('{"intent": "withdraw"}').intent == "offramp"

    def test_document_param_aliases(self):
        """Invoice fields the model names differently map to ours."""
        parsed = parse_llm_output(
            '{"intent": "invoice", "params": {"client": "Acme", "email": "a@acme.io", '
            '"project": "Landing page", "amount": "1500", "currency": "usd"}}'
        )
        assert parsed.intent == "create_invoice"
        assert parsed.params == {
            "client_name": "Acme",
            "client_email": "a@acme.io",
            "description": "Landing page",
            "amount": "1500",
            "fiat": "USD",
        }

    @pytest.mark.parametrize(
        "text",
        ["", "Sure! Here is your balance", "[1, 2]", '{"intent": "fly"}', '{"params": {}}'],
    )
    def test_invalid_outputs(self, text):
        """Anything that is not intent JSON yields None."""
        assert parse_llm_output(text) is None

    def test_strip_code_fences_noop(self):
        """Unfenced text is only trimmed."""
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'

    def test_normalize_drops_bad_amount(self):
        """Non-positive or unparseable amounts are dropped."""
        assert normalize_params({"amount": "-5", "fiat": "ngn"}) == {"fiat": "NGN"}


class TestRuleBasedParser:
    """Tests for the keyword fallback."""

    @pytest.fixture
    def rules(self):
        return RuleBasedParser()

    def test_send_full(self, rules):
        """Amount, token and recipient are extracted from one message."""
        parsed = rules.parse(f"send 10 USDC to {EVM_ADDRESS}")
        assert parsed.intent == "send"
        assert parsed.params == {"amount": "10", "token": "USDC", "recipient": EVM_ADDRESS}

    def test_send_solana(self, rules):
        """Solana recipients are recognized."""
        parsed = rules.parse(f"send 0.5 sol to {SOLANA_ADDRESS} on solana")
        assert parsed.params["recipient"] == SOLANA_ADDRESS
        assert parsed.params["token"] == "SOL"
        assert parsed.params["network"] == "solana"

    def test_send_partial(self, rules):
        """Missing parameters are simply absent."""
        parsed = rules.parse("send 10 USDC")
        assert parsed.intent == "send"
        assert "recipient" not in parsed.params

    def test_swap_pair(self, rules):
        """Swap amount and pair are extracted."""
        parsed = rules.parse("swap 0.01 ETH to USDC on base")
        assert parsed.intent == "swap"
        assert parsed.params == {
            "amount": "0.01",
            "from_token": "ETH",
            "to_token": "USDC",
            "network": "base",
        }

    def test_offramp(self, rules):
        """Withdrawals pick up amount, token and fiat."""
        parsed = rules.parse("withdraw 50 USDC to NGN")
        assert parsed.intent == "offramp"
        assert parsed.params == {"amount": "50", "token": "USDC", "fiat": "NGN"}

    def test_invoice_email(self, rules):
        """An email in an invoice request becomes the client email."""
        parsed = rules.parse("invoice bob@example.com for the logo")
        assert parsed.intent == "create_invoice"
        assert parsed.params == {"client_email": "bob@example.com"}

    @pytest.mark.parametrize(
        "text,intent",
        [
            ("hi", "welcome"),
            ("cancel", "cancel"),
            ("what can you do", "help"),
            ("create my wallets", "create_wallets"),
            ("bridge 5 USDC to solana", "bridge"),
            ("what's my balance", "balance"),
            ("show my deposit address", "get_wallet_address"),
            ("USDC rate in KES", "get_rates"),
            ("create an invoice", "create_invoice"),
            ("make a proposal for my exchange client", "create_proposal"),
            ("show my invoices", "list_documents"),
            ("tell me a joke", "unknown"),
            ("", "unknown"),
        ],
    )
    def test_classification(self, rules, text, intent):
        """Keywords map to intents."""
        assert rules.parse(text).intent == intent


class TestIntentParser:
    """Tests for LLM-first parsing with fallback."""

    @pytest.mark.asyncio
    async def test_rules_only_without_llm(self):
        """No model configured: rules decide."""
        parsed = await IntentParser().parse("what's my balance")
        assert parsed.intent == "balance"
        assert parsed.source == "rules"

    @pytest.mark.asyncio
    async def test_llm_result_used(self):
        """Valid model output wins."""
        llm = MagicMock()
        llm.generate = AsyncMock(return_value='{"intent": "get_rates", "params": {"fiat": "ghs"}}')

        parsed = await IntentParser(llm).parse("how much is a dollar", [])

        assert parsed.intent == "get_rates"
        assert parsed.params == {"fiat": "GHS"}
        assert parsed.source == "llm"

    @pytest.mark.asyncio
    async def test_llm_error_falls_back(self):
        """Vendor errors never escape parse."""
        llm = MagicMock()
        llm.generate = AsyncMock(side_effect=TransientNetworkError("Gemini timed out"))

        parsed = await IntentParser(llm).parse(f"send 1 ETH to {EVM_ADDRESS}")

        assert parsed.intent == "send"
        assert parsed.source == "rules"

    @pytest.mark.asyncio
    async def test_llm_garbage_falls_back(self):
        """Non-JSON output falls back to rules, then to unknown."""
        llm = MagicMock()
        llm.generate = AsyncMock(return_value="I am not sure what you mean")

        parsed = await IntentParser(llm).parse("blah blah")

        assert parsed.is_unknown


class TestGeminiHelpers:
    """Tests for Gemini request/response shaping."""

    def test_build_contents(self):
        """System prompt first, history with mapped roles, message last."""
        contents = GeminiClient.build_contents(
            "SYSTEM",
            [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            "balance?",
        )
        assert [c["role"] for c in contents] == ["user", "user", "model", "user"]
        assert contents[0]["parts"][0]["text"] == "SYSTEM"
        assert contents[-1]["parts"][0]["text"] == "balance?"

    def test_extract_response_text_blocked(self):
        """A response without candidates yields empty text."""
        assert extract_response_text(MagicMock(candidates=[])) == ""


class TestGeminiGenerate:
    """Tests for the Gemini call itself."""

    @pytest.fixture
    def client(self):
        client = GeminiClient.__new__(GeminiClient)
        client.model_name = "gemini-test"
        client.model = MagicMock()
        client.model.generate_content_async = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_generate_uses_async_api(self, client):
        part = MagicMock(text='{"intent": "balance"}')
        client.model.generate_content_async.return_value = MagicMock(
            candidates=[MagicMock(content=MagicMock(parts=[part]))]
        )

        text = await client.generate("SYSTEM", [], "balance?")

        assert text == '{"intent": "balance"}'
        client.model.generate_content_async.assert_awaited_once()
        client.model.generate_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout_cancels_request(self, client, monkeypatch):
        """A slow model call is cancelled and reported as transient."""
        monkeypatch.setattr(llm_client_module, "LLM_TIMEOUT", 0.01)
        cancelled = asyncio.Event()

        async def hang(*args, **kwargs):
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.set()
                raise

        client.model.generate_content_async.side_effect = hang

        with pytest.raises(TransientNetworkError):
            await client.generate("SYSTEM", [], "balance?")

        assert cancelled.is_set()
