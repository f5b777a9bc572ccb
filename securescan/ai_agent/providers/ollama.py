"""
Ollama provider implementation for local LLM support.
"""
import logging
from typing import List

from openai import AsyncOpenAI, OpenAIError

from .base import AIProvider, LLMError, LLMMessage, LLMResponse, ProviderKind
from .openai import _usage_dict

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaProvider(AIProvider):
    """Ollama provider for local LLM analysis."""

    kind = ProviderKind.OLLAMA

    def __init__(self, base_url: str = DEFAULT_OLLAMA_URL, model: str = "llama3",
                 max_tokens: int = 4096, timeout: int = 120):
        """
        Initialize Ollama provider.

        Args:
            base_url: Ollama API base URL (e.g., http://localhost:11434)
            model: Model name to use
            max_tokens: Maximum tokens for responses
            timeout: Request timeout in seconds
        """
        super().__init__(model, None, max_tokens, timeout)

        # Ollama serves the OpenAI-compatible API under /v1
        if not base_url.endswith("/v1"):
            base_url = f"{base_url.rstrip('/')}/v1"
        self.base_url = base_url

        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key="ollama",  # Dummy key
            timeout=timeout,
        )
        logger.info("Initialized Ollama provider with model: %s at %s", model, base_url)

    async def chat(self, messages: List[LLMMessage]) -> LLMResponse:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[m.to_dict() for m in messages],
                temperature=0.2,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise LLMError(f"Failed to communicate with Ollama: {type(e).__name__}",
                           provider=self.kind.value) from e

        usage = _usage_dict(response.usage)
        self._record_usage(usage)
        content = response.choices[0].message.content if response.choices else None
        return LLMResponse(content=content or "", model=self.model, usage=usage)
