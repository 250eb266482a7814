"""
Gemini client.

Thin async wrapper over ``google-generativeai``. Calls use the SDK's native
async API and are bounded by ``LLM_TIMEOUT``.
"""

import asyncio
from typing import Any

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPIError
from loguru import logger

from app.config.constants import LLM_TIMEOUT
from app.utils.exceptions import TransientNetworkError


GENERATION_CONFIG = {
    "temperature": 0.2,
    "max_output_tokens": 1024,
}

# Conversation roles stored in session history -> Gemini roles
_ROLES = {"user": "user", "assistant": "model", "model": "model"}


def extract_response_text(response: Any) -> str:
    """
    Concatenate text parts of the first candidate.

    Returns:
        Text, or "" when the response has no candidates (e.g. blocked)
    """
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return ""
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    return "".join(getattr(part, "text", "") or "" for part in parts)


class GeminiClient:
    """Gemini text generation client."""

    def __init__(self, api_key: str, model_name: str) -> None:
        """
        Initialize client.

        Args:
            api_key: Google AI API key
            model_name: Model, e.g. "gemini-2.0-flash"
        """
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.model = genai.GenerativeModel(model_name=model_name)

    @staticmethod
    def build_contents(
        system_prompt: str, history: list[dict[str, str]], message: str
    ) -> list[dict[str, Any]]:
        """
        Build the Gemini ``contents`` list.

        The system prompt goes first as a user turn, then prior history,
        then the new message.
        """
        contents: list[dict[str, Any]] = [
            {"role": "user", "parts": [{"text": system_prompt}]}
        ]
        for item in history:
            role = _ROLES.get(str(item.get("role", "")))
            text = item.get("content")
            if role and isinstance(text, str) and text:
                contents.append({"role": role, "parts": [{"text": text}]})
        contents.append({"role": "user", "parts": [{"text": message}]})
        return contents

    async def generate(
        self, system_prompt: str, history: list[dict[str, str]], message: str
    ) -> str:
        """
        Generate a reply.

        Args:
            system_prompt: Instructions
            history: Prior turns ``[{"role", "content"}]``
            message: New user message

        Returns:
            Response text

        Raises:
            TransientNetworkError: API error or timeout
        """
        contents = self.build_contents(system_prompt, history, message)
        try:
            response = await asyncio.wait_for(
                self.model.generate_content_async(
                    contents, generation_config=GENERATION_CONFIG
                ),
                timeout=LLM_TIMEOUT,
            )
        except TimeoutError as e:
            raise TransientNetworkError("Gemini timed out", vendor="gemini") from e
        except GoogleAPIError as e:
            logger.warning(f"Gemini request failed: {e}")
            raise TransientNetworkError(f"Gemini error: {e}", vendor="gemini") from e
        return extract_response_text(response)
