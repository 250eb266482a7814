"""
Intent parsing.

Free text -> ``ParsedIntent`` via Gemini, with a rule-based fallback.
"""

from app.services.intent.llm_client import GeminiClient
from app.services.intent.parser import (
    INTENTS,
    IntentParser,
    ParsedIntent,
    RuleBasedParser,
    parse_llm_output,
)

__all__ = [
    "INTENTS",
    "GeminiClient",
    "IntentParser",
    "ParsedIntent",
    "RuleBasedParser",
    "parse_llm_output",
]
