"""
Anthropic Claude provider implementation.
"""

import logging
from typing import List, Optional

from anthropic import AnthropicError, AsyncAnthropic

from .base import AIProvider, LLMError, LLMMessage, LLMResponse, ProviderKind

logger = logging.getLogger(__name__)


class ClaudeProvider(AIProvider):
    """Anthropic Claude messages API."""

    kind = ProviderKind.ANTHROPIC

    def __init__(self, api_key: Optional[str], model: str = "claude-3-5-sonnet-latest",
                 endpoint: Optional[str] = None, max_tokens: int = 4096, timeout: int = 120):
        """
        Initialize Claude provider.

        Args:
            api_key: Anthropic API key
            model: Model name
            endpoint: Optional API base URL override
            max_tokens: Maximum tokens for responses
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise LLMError("Anthropic API key is required", provider=self.kind.value)
        super().__init__(model, api_key, max_tokens, timeout)
        self.client = AsyncAnthropic(api_key=api_key, base_url=endpoint or None, timeout=timeout)
        logger.info("Initialized Claude provider with model: %s", model)

    async def chat(self, messages: List[LLMMessage]) -> LLMResponse:
        # The messages API takes the system prompt as a separate parameter
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        conversation = [m.to_dict() for m in messages if m.role != "system"]

        params = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": conversation,
        }
        if system:
            params["system"] = system

        try:
            response = await self.client.messages.create(**params)
        except AnthropicError as e:
            raise LLMError(f"Failed to communicate with Anthropic: {type(e).__name__}",
                           provider=self.kind.value) from e

        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.input_tokens or 0,
                "completion_tokens": response.usage.output_tokens or 0,
            }
            usage["total_tokens"] = usage["prompt_tokens"] + usage["completion_tokens"]
        self._record_usage(usage)

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        return LLMResponse(content=text, model=response.model or self.model, usage=usage)
