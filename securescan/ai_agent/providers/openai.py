"""
OpenAI provider implementation.
"""

import logging
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from .base import AIProvider, LLMError, LLMMessage, LLMResponse, ProviderKind

logger = logging.getLogger(__name__)


def _completion_params(model: str, messages: List[LLMMessage], max_tokens: int) -> Dict:
    params = {
        "model": model,
        "messages": [m.to_dict() for m in messages],
    }
    # Reasoning models take max_completion_tokens and only the default temperature
    lowered = model.lower()
    if "gpt-5" in lowered or "o1" in lowered or "o3" in lowered:
        params["max_completion_tokens"] = max_tokens
    else:
        params["max_tokens"] = max_tokens
        params["temperature"] = 0.2
    return params


def _usage_dict(usage) -> Dict[str, int]:
    if usage is None:
        return {}
    return {
        "prompt_tokens": usage.prompt_tokens or 0,
        "completion_tokens": usage.completion_tokens or 0,
        "total_tokens": usage.total_tokens or 0,
    }


class OpenAIProvider(AIProvider):
    """Hosted OpenAI chat completions."""

    kind = ProviderKind.OPENAI

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o", endpoint: Optional[str] = None,
                 max_tokens: int = 4096, timeout: int = 120):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model name (default: gpt-4o)
            endpoint: Optional API base URL override
            max_tokens: Maximum tokens for responses
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise LLMError("OpenAI API key is required", provider=self.kind.value)
        super().__init__(model, api_key, max_tokens, timeout)
        self.client = AsyncOpenAI(api_key=api_key, base_url=endpoint or None, timeout=timeout)
        logger.info("Initialized OpenAI provider with model: %s", model)

    async def chat(self, messages: List[LLMMessage]) -> LLMResponse:
        try:
            response = await self.client.chat.completions.create(
                **_completion_params(self.model, messages, self.max_tokens)
            )
        except OpenAIError as e:
            raise LLMError(f"Failed to communicate with OpenAI: {type(e).__name__}",
                           provider=self.kind.value) from e

        usage = _usage_dict(response.usage)
        self._record_usage(usage)
        content = response.choices[0].message.content if response.choices else None
        return LLMResponse(content=content or "", model=response.model or self.model, usage=usage)
