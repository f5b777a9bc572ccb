"""AI provider module initialization."""

from .base import (
    AIProvider,
    LLMError,
    LLMMessage,
    LLMResponse,
    ModelConfig,
    ProviderKind,
)
from .claude import ClaudeProvider
from .custom import CustomEndpointProvider
from .ollama import DEFAULT_OLLAMA_URL, OllamaProvider
from .openai import OpenAIProvider


def get_provider(config: ModelConfig, timeout: int = 120, max_tokens: int = 4096,
                 ollama_base_url: str = DEFAULT_OLLAMA_URL) -> AIProvider:
    """
    Build the transport for a model configuration.

    Raises:
        LLMError: If the provider kind is unknown or a required field
            (API key, endpoint) is missing.
    """
    try:
        kind = ProviderKind(config.provider)
    except ValueError:
        raise LLMError(f"Unsupported LLM provider: {config.provider!r}")

    if kind is ProviderKind.OLLAMA:
        return OllamaProvider(base_url=config.endpoint or ollama_base_url, model=config.model_name,
                              max_tokens=max_tokens, timeout=timeout)
    if kind is ProviderKind.OPENAI:
        return OpenAIProvider(api_key=config.api_key, model=config.model_name, endpoint=config.endpoint,
                              max_tokens=max_tokens, timeout=timeout)
    if kind is ProviderKind.ANTHROPIC:
        return ClaudeProvider(api_key=config.api_key, model=config.model_name, endpoint=config.endpoint,
                              max_tokens=max_tokens, timeout=timeout)
    return CustomEndpointProvider(endpoint=config.endpoint, model=config.model_name, api_key=config.api_key,
                                  max_tokens=max_tokens, timeout=timeout)


__all__ = [
    "AIProvider",
    "LLMError",
    "LLMMessage",
    "LLMResponse",
    "ModelConfig",
    "ProviderKind",
    "ClaudeProvider",
    "CustomEndpointProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "get_provider",
]
