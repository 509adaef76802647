"""
Chat Model Client

Thin wrapper over the OpenAI SDK for JSON-producing prompts. Retries are the
batch engine's job; this client makes exactly one request per call and
raises on anything it cannot turn into a JSON object.
"""
import json
import logging
import re
from typing import Any, Dict, Optional

from nutribatch.core.config import settings
from nutribatch.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Parse model output into a dict; ValueError on empty or non-object output."""
    if not text or not text.strip():
        raise ValueError("Empty response from chat model")

    payload = json.loads(strip_code_fences(text))
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


class ChatModelClient:
    """Lazy AsyncOpenAI client for JSON completions."""

    def __init__(self, api_key: Optional[str] = None, reasoning_effort: Optional[str] = None, client=None):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.reasoning_effort = reasoning_effort if reasoning_effort is not None else settings.OPENAI_REASONING_EFFORT
        self._client = client

    def check_configured(self) -> None:
        if self._client is None and not (self.api_key or "").strip():
            raise ConfigurationError("OPENAI_API_KEY is not set", details={"service": "openai"})

    def _get_client(self):
        """Lazy load OpenAI client."""
        self.check_configured()
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def complete_json(self, model: str, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        client = self._get_client()

        request: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "developer", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
        }
        if self.reasoning_effort:
            request["reasoning_effort"] = self.reasoning_effort

        response = await client.chat.completions.create(**request)
        content = response.choices[0].message.content

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(f"OpenAI {model} usage: {getattr(usage, 'total_tokens', None)} tokens")

        return parse_json_object(content)
