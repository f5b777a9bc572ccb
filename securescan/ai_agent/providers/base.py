"""
Base abstract class for AI providers.

Defines the chat interface that all model transports (Ollama, OpenAI,
Claude, custom endpoints) implement, plus the configuration record used to
pick one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TIMEOUT = 120


class ProviderKind(str, Enum):
    """Supported model transports."""
    OLLAMA = "ollama"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    CUSTOM = "custom"


@dataclass
class LLMMessage:
    role: str  # "system", "user" or "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)


@dataclass
class ModelConfig:
    """Which model to call and how to reach it."""
    provider: ProviderKind
    model_name: str
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_record(cls, record: Any) -> "ModelConfig":
        """Build from a stored ``ModelConfiguration`` row."""
        return cls(
            provider=ProviderKind(record.provider),
            model_name=record.model_name,
            endpoint=record.endpoint,
            api_key=record.api_key,
            name=record.name,
        )


class LLMError(Exception):
    """Raised when a provider cannot produce a response."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    kind: ProviderKind

    def __init__(self, model: str, api_key: Optional[str] = None,
                 max_tokens: int = DEFAULT_MAX_TOKENS, timeout: int = DEFAULT_TIMEOUT):
        """
        Initialize the AI provider.

        Args:
            model: Model name to use
            api_key: API key for the provider, if it needs one
            max_tokens: Maximum tokens for responses
            timeout: Request timeout in seconds
        """
        self.model = model
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._total_tokens = 0

    @abstractmethod
    async def chat(self, messages: List[LLMMessage]) -> LLMResponse:
        """
        Send a conversation and return the model's reply.

        Raises:
            LLMError: On any transport or API failure
        """
        pass

    def get_total_tokens(self) -> int:
        """Get total tokens used by this provider."""
        return self._total_tokens

    def _record_usage(self, usage: Dict[str, int]) -> None:
        self._total_tokens += usage.get("total_tokens", 0)
