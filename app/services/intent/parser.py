"""
Intent parser.

Gemini classifies free text into one of the supported intents and
extracts parameters as JSON. When Gemini is not configured, fails, or
returns something that is not valid intent JSON, a rule-based parser
takes over; a rule-based miss yields ``unknown``. ``parse`` never raises.
"""

import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from loguru import logger

from app.config.constants import OFFRAMP_SUPPORTED_CURRENCIES
from app.services.chains.networks import resolve_chain
from app.services.documents.document_service import find_email
from app.services.intent.llm_client import GeminiClient
from app.utils.exceptions import HedwigError
from app.utils.validation import is_evm_address, is_solana_address, parse_amount


INTENTS = frozenset(
    {
        "welcome",
        "help",
        "create_wallets",
        "get_wallet_address",
        "balance",
        "send",
        "swap",
        "bridge",
        "offramp",
        "get_rates",
        "create_invoice",
        "create_proposal",
        "list_documents",
        "cancel",
        "clarification",
        "unknown",
    }
)

# Names the model sometimes uses instead of ours
INTENT_ALIASES = {
    "get_wallet_balance": "balance",
    "wallet_balance": "balance",
    "create_wallet": "create_wallets",
    "wallet_address": "get_wallet_address",
    "withdraw": "offramp",
    "withdrawal": "offramp",
    "cashout": "offramp",
    "get_rate": "get_rates",
    "rates": "get_rates",
    "greeting": "welcome",
    "transfer": "send",
    "invoice": "create_invoice",
    "proposal": "create_proposal",
    "list_invoices": "list_documents",
}

# Parameter keys the model may emit -> canonical keys
PARAM_ALIASES = {
    "to": "recipient",
    "address": "recipient",
    "recipient_address": "recipient",
    "to_address": "recipient",
    "chain": "network",
    "asset": "token",
    "symbol": "token",
    "fromToken": "from_token",
    "from_asset": "from_token",
    "toToken": "to_token",
    "to_asset": "to_token",
    "currency": "fiat",
    "fiat_currency": "fiat",
    "bank": "institution",
    "bank_code": "institution",
    "accountNumber": "account_number",
    "account_identifier": "account_number",
    "client": "client_name",
    "email": "client_email",
    "project": "description",
    "project_description": "description",
    "deliverables": "scope",
    "scope_of_work": "scope",
}

KNOWN_TOKENS = ("ETH", "SOL", "USDC", "USDT")

SYSTEM_PROMPT = f"""
You are Hedwig, a helpful crypto assistant on Telegram.
Always respond ONLY with a JSON object in this format:
{{"intent": "<intent_name>", "params": {{ ... }}}}

Valid intents:
- welcome: greetings
- help: questions about what you can do
- create_wallets: creating wallets
- get_wallet_address: showing wallet addresses or deposit instructions
- balance: checking balances. params: token, network
- send: sending crypto. params: amount, token, recipient, network
- swap: swapping tokens. params: amount, from_token, to_token, network
- bridge: moving tokens between chains
- offramp: withdrawing crypto to a bank account. params: amount, token, fiat, institution, account_number
- get_rates: exchange rates for crypto to fiat. params: amount, token, fiat
- create_invoice: billing a client. params: client_name, client_email, description, amount, fiat, due_date
- create_proposal: a project proposal for a client. params: client_name, client_email, description, scope, timeline, amount, fiat
- list_documents: showing the user's invoices and proposals
- cancel: cancelling the current action
- clarification: ONLY when you cannot determine the intent
- unknown: requests that are clearly not about crypto

Rules:
- Networks: Base, Ethereum, Solana. Tokens: ETH, SOL, USDC, USDT.
- Fiat currencies: {", ".join(OFFRAMP_SUPPORTED_CURRENCIES)}.
- amount is a plain number as a string, e.g. "0.01".
- recipient is a wallet address (0x... or a Solana address).
- due_date is YYYY-MM-DD or "N days". Invoice and proposal amounts may use USD or EUR too.
- A bare address sent after you asked for a recipient is {{"intent": "send", "params": {{"recipient": "<address>"}}}}.
- Do not wrap the JSON in code fences. Do not add any other text.

Examples:
User: "send 10 USDC to 0x1234567890123456789012345678901234567890 on base"
Response: {{"intent": "send", "params": {{"amount": "10", "token": "USDC", "recipient": "0x1234567890123456789012345678901234567890", "network": "base"}}}}
User: "USDC balance on Base"
Response: {{"intent": "balance", "params": {{"token": "USDC", "network": "base"}}}}
User: "withdraw 50 USDC to NGN"
Response: {{"intent": "offramp", "params": {{"amount": "50", "token": "USDC", "fiat": "NGN"}}}}
User: "invoice Acme 1500 USD for the landing page, due in 14 days"
Response: {{"intent": "create_invoice", "params": {{"client_name": "Acme", "amount": "1500", "fiat": "USD", "description": "landing page", "due_date": "14 days"}}}}
""".strip()

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_EVM_ADDRESS = re.compile(r"0x[a-fA-F0-9]{40}")
_SOLANA_ADDRESS = re.compile(r"\b[1-9A-HJ-NP-Za-km-z]{32,44}\b")
_AMOUNT_TOKEN = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*(" + "|".join(KNOWN_TOKENS) + r")\b", re.IGNORECASE
)
_AMOUNT = re.compile(r"(?<![\w.])(\d+(?:\.\d+)?)(?![\w.])")
_TOKEN = re.compile(r"\b(" + "|".join(KNOWN_TOKENS) + r")\b", re.IGNORECASE)
_NETWORK = re.compile(r"\b(base|ethereum|eth mainnet|solana|sol)\b", re.IGNORECASE)
_ON_NETWORK = re.compile(r"\bon\s+(base|ethereum|solana)\b", re.IGNORECASE)
_FIAT = re.compile(r"\b(" + "|".join(OFFRAMP_SUPPORTED_CURRENCIES) + r")\b", re.IGNORECASE)
_SWAP_PAIR = re.compile(
    r"(\d+(?:\.\d+)?)\s*(" + "|".join(KNOWN_TOKENS) + r")\s+(?:to|for|into)\s+("
    + "|".join(KNOWN_TOKENS) + r")\b",
    re.IGNORECASE,
)


@dataclass
class ParsedIntent:
    """Intent with its extracted parameters."""

    intent: str
    params: dict[str, Any] = field(default_factory=dict)
    source: str = "rules"

    @property
    def is_unknown(self) -> bool:
        """True when no intent was recognized."""
        return self.intent == "unknown"


def strip_code_fences(text: str) -> str:
    """
    Remove a surrounding Markdown code fence.

    Examples:
        >>> strip_code_fences('```json\\n{"intent": "help"}\\n```')
        '{"intent": "help"}'
    """
    return _CODE_FENCE.sub("", text.strip()).strip()


def normalize_params(params: dict[str, Any]) -> dict[str, Any]:
    """
    Canonicalize parameter keys and values.

    Keys go through ``PARAM_ALIASES``; token and fiat codes are upper-cased,
    networks resolved to internal chain labels, amounts kept as strings.
    Empty values are dropped.
    """
    result: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        key = PARAM_ALIASES.get(key, key)
        if key in ("token", "from_token", "to_token", "fiat"):
            value = str(value).strip().upper()
        elif key == "network":
            value = resolve_chain(str(value)) or str(value).strip().lower()
        elif key == "amount":
            amount = parse_amount(str(value))
            if amount is None:
                continue
            value = str(amount)
        elif isinstance(value, str):
            value = value.strip()
        result[key] = value
    return result


def parse_llm_output(text: str) -> ParsedIntent | None:
    """
    Parse model output into an intent.

    Accepts ``params`` or ``parameters``; strips code fences.

    Returns:
        ParsedIntent, or None when the output is not valid intent JSON
    """
    if not text:
        return None
    try:
        payload = json.loads(strip_code_fences(text))
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    intent = payload.get("intent")
    if not isinstance(intent, str):
        return None
    intent = intent.strip().lower()
    intent = INTENT_ALIASES.get(intent, intent)
    if intent not in INTENTS:
        return None

    params = payload.get("params")
    if not isinstance(params, dict):
        params = payload.get("parameters")
    if not isinstance(params, dict):
        params = {}
    return ParsedIntent(intent=intent, params=normalize_params(params), source="llm")


def find_address(text: str) -> str | None:
    """First EVM or Solana address in text."""
    match = _EVM_ADDRESS.search(text)
    if match and is_evm_address(match.group(0)):
        return match.group(0)
    for candidate in _SOLANA_ADDRESS.findall(text):
        if is_solana_address(candidate):
            return candidate
    return None


def find_amount(text: str) -> Decimal | None:
    """First amount in text (with or without token)."""
    match = _AMOUNT_TOKEN.search(text)
    if match:
        return parse_amount(match.group(1))
    without_addresses = _EVM_ADDRESS.sub(" ", text)
    match = _AMOUNT.search(without_addresses)
    return parse_amount(match.group(1)) if match else None


def find_token(text: str) -> str | None:
    """First known token symbol in text."""
    match = _TOKEN.search(text)
    return match.group(1).upper() if match else None


def find_network(text: str) -> str | None:
    """Chain label mentioned in text."""
    match = _ON_NETWORK.search(text) or _NETWORK.search(text)
    if not match:
        return None
    return resolve_chain(match.group(1)) or None


def find_fiat(text: str) -> str | None:
    """Supported fiat currency code in text."""
    match = _FIAT.search(text)
    return match.group(1).upper() if match else None


def extract_send_params(text: str) -> dict[str, Any]:
    """Extract whatever send parameters the text contains."""
    params: dict[str, Any] = {}
    amount = find_amount(text)
    if amount is not None:
        params["amount"] = str(amount)
    token = find_token(text)
    if token:
        params["token"] = token
    recipient = find_address(text)
    if recipient:
        params["recipient"] = recipient
    network = find_network(text)
    if network:
        params["network"] = network
    return params


class RuleBasedParser:
    """Keyword and regex intent parser."""

    def parse(self, text: str) -> ParsedIntent:
        """
        Classify text with keyword rules.

        Args:
            text: User message

        Returns:
            ParsedIntent (``unknown`` when nothing matches)
        """
        lowered = text.strip().lower()
        if not lowered:
            return ParsedIntent("unknown")

        if re.fullmatch(r"/?(cancel|stop|abort|never ?mind)\W*", lowered):
            return ParsedIntent("cancel")
        if re.fullmatch(r"/?(hi|hello|hey|gm|start|yo)\b.*", lowered) and len(lowered) < 30:
            return ParsedIntent("welcome")
        if re.search(r"\b(help|what can you do|commands)\b", lowered):
            return ParsedIntent("help")
        if re.search(r"\b(create|make|new|setup|set up)\b.*\bwallets?\b", lowered):
            return ParsedIntent("create_wallets")
        if re.search(r"\bbridge\b", lowered):
            return ParsedIntent("bridge", extract_send_params(text))

        if re.search(r"\b(invoices?|proposals?)\b", lowered):
            if re.search(r"\b(my|list|show|recent|history)\b", lowered) and not re.search(
                r"\b(create|make|new|draft|generate|write)\b", lowered
            ):
                return ParsedIntent("list_documents")
            params = {}
            email = find_email(text)
            if email:
                params["client_email"] = email
            if re.search(r"\bproposals?\b", lowered):
                return ParsedIntent("create_proposal", params)
            return ParsedIntent("create_invoice", params)

        if re.search(r"\b(swap|convert|exchange)\b", lowered):
            params: dict[str, Any] = {}
            pair = _SWAP_PAIR.search(text)
            if pair:
                params = {
                    "amount": str(parse_amount(pair.group(1))),
                    "from_token": pair.group(2).upper(),
                    "to_token": pair.group(3).upper(),
                }
            network = find_network(text)
            if network:
                params["network"] = network
            return ParsedIntent("swap", params)

        if re.search(r"\b(withdraw|cash ?out|off-?ramp|to (my )?bank)\b", lowered):
            params = {}
            amount = find_amount(text)
            if amount is not None:
                params["amount"] = str(amount)
            token = find_token(text)
            if token:
                params["token"] = token
            fiat = find_fiat(text)
            if fiat:
                params["fiat"] = fiat
            return ParsedIntent("offramp", params)

        if re.search(r"\b(rates?|price)\b", lowered) and (find_fiat(text) or "rate" in lowered):
            params = {}
            amount = find_amount(text)
            if amount is not None:
                params["amount"] = str(amount)
            token = find_token(text)
            if token:
                params["token"] = token
            fiat = find_fiat(text)
            if fiat:
                params["fiat"] = fiat
            return ParsedIntent("get_rates", params)

        if re.search(r"\b(send|transfer|pay)\b", lowered):
            return ParsedIntent("send", extract_send_params(text))

        if re.search(r"\b(balance|how much .* have|my funds|my tokens)\b", lowered):
            params = {}
            token = find_token(text)
            if token:
                params["token"] = token
            network = find_network(text)
            if network:
                params["network"] = network
            return ParsedIntent("balance", params)

        if re.search(r"\b(address|deposit|receive)\b", lowered) or re.search(
            r"\bmy wallets?\b", lowered
        ):
            return ParsedIntent("get_wallet_address")

        return ParsedIntent("unknown")


class IntentParser:
    """Gemini intent parser with rule-based fallback."""

    def __init__(self, llm: GeminiClient | None = None) -> None:
        """
        Initialize parser.

        Args:
            llm: Gemini client; rules only when None
        """
        self.llm = llm
        self.rules = RuleBasedParser()

    async def parse(
        self, text: str, history: list[dict[str, str]] | None = None
    ) -> ParsedIntent:
        """
        Parse a message into an intent.

        Args:
            text: User message
            history: Recent conversation turns for context

        Returns:
            ParsedIntent; never raises
        """
        if self.llm is not None:
            try:
                output = await self.llm.generate(SYSTEM_PROMPT, history or [], text)
            except HedwigError as e:
                logger.warning(f"LLM intent parsing unavailable, using rules: {e}")
            else:
                parsed = parse_llm_output(output)
                if parsed is not None:
                    return parsed
                logger.info("LLM returned invalid intent JSON, using rules")
        return self.rules.parse(text)
