"""
Provider for self-hosted chat endpoints.

The endpoint is expected to expose ``POST {endpoint}/chat/completions``.
Both OpenAI-style (``choices[0].message``) and Ollama-style (``message``)
response bodies are accepted.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from .base import AIProvider, LLMError, LLMMessage, LLMResponse, ProviderKind

logger = logging.getLogger(__name__)


def _extract_content(data: Dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if choices and isinstance(choices[0], dict):
        content = (choices[0].get("message") or {}).get("content")
        if content:
            return content
    return (data.get("message") or {}).get("content") or ""


class CustomEndpointProvider(AIProvider):

    kind = ProviderKind.CUSTOM

    def __init__(self, endpoint: Optional[str], model: str, api_key: Optional[str] = None,
                 max_tokens: int = 4096, timeout: int = 120):
        if not endpoint:
            raise LLMError("Custom endpoint URL is required", provider=self.kind.value)
        super().__init__(model, api_key, max_tokens, timeout)
        self.url = f"{endpoint.rstrip('/')}/chat/completions"
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

    def _post(self, messages: List[LLMMessage]) -> Dict[str, Any]:
        response = self.session.post(
            self.url,
            json={"model": self.model, "messages": [m.to_dict() for m in messages],
                  "max_tokens": self.max_tokens},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def chat(self, messages: List[LLMMessage]) -> LLMResponse:
        try:
            data = await asyncio.to_thread(self._post, messages)
        except (requests.RequestException, ValueError) as e:
            raise LLMError(f"Failed to communicate with custom endpoint: {type(e).__name__}",
                           provider=self.kind.value) from e
        if not isinstance(data, dict):
            raise LLMError("Custom endpoint returned an unexpected body", provider=self.kind.value)

        usage = {k: v for k, v in (data.get("usage") or {}).items() if isinstance(v, int)}
        self._record_usage(usage)
        return LLMResponse(content=_extract_content(data), model=self.model, usage=usage)
