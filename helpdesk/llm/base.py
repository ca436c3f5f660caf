"""
Abstract base class for LLM providers.

This module defines the provider interface used by the resilient invoker.
A provider performs exactly one raw call; timing, classification of
unexpected exceptions, and retries are layered on top by
helpdesk.llm.resilient.ResilientInvoker.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Type
import logging

from helpdesk.config.constants import PROVIDER_DEFAULTS
from helpdesk.llm.errors import DEFAULT_TIMEOUT_TYPES, ProviderError, classify_exception

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderRequest:
    """
    A single question for the provider.

    prompt_text is stripped on construction. extra_fields carries
    provider-specific options merged into the request body (Ollama,
    watsonx) or passed as additionalModelRequestFields (Bedrock).
    """
    prompt_text: str
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "prompt_text", (self.prompt_text or "").strip())


@dataclass(frozen=True)
class ProviderResponse:
    """Provider answer plus the wall-clock time of the successful attempt."""
    answer_text: str
    elapsed_ms: int = 0


@dataclass
class LLMConfig:
    """
    Configuration for LLM providers.

    Required parameters first, optional parameters with defaults last.
    """
    provider: str
    model: Optional[str] = None

    endpoint: Optional[str] = None
    region: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    project_id: Optional[str] = None
    llm_version: Optional[str] = None
    system_prompt: Optional[str] = None
    max_tokens: int = PROVIDER_DEFAULTS.MAX_TOKENS
    temperature: float = PROVIDER_DEFAULTS.TEMPERATURE
    timeout: int = PROVIDER_DEFAULTS.TIMEOUT_S

    @classmethod
    def from_settings(cls, settings) -> "LLMConfig":
        """Build provider config from the llm section of AppConfig."""
        return cls(
            provider=settings.type,
            model=settings.model_id,
            endpoint=settings.endpoint,
            region=settings.region,
            api_key=settings.api_key,
            project_id=settings.project_id,
            llm_version=settings.llm_version,
            system_prompt=settings.prompts.preamble or None,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.timeout_s,
        )


class LLMProvider(ABC):
    """
    Abstract base class for all LLM providers.

    Subclasses implement call() to talk to their service. They may raise
    ProviderError subclasses directly; any other exception is mapped by
    classify_error(), which subclasses override with precise rules.
    """

    # Exception types treated as timeouts anywhere in a cause chain
    TIMEOUT_TYPES: Tuple[Type[BaseException], ...] = DEFAULT_TIMEOUT_TYPES

    def __init__(self, config: LLMConfig):
        """
        Initialize the LLM provider.

        Args:
            config: Provider configuration (model, endpoint, region, etc.)
        """
        self.config = config
        self.provider_name = config.provider or "unknown"
        self.model = config.model
        self._validate_config()

    @abstractmethod
    def _validate_config(self) -> None:
        """
        Validate provider-specific configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        pass

    @abstractmethod
    async def call(self, request: ProviderRequest) -> ProviderResponse:
        """
        Perform one raw provider call.

        Args:
            request: Prompt and extra fields

        Returns:
            ProviderResponse; elapsed_ms is stamped by the invoker

        Raises:
            ProviderError: When the failure kind is known precisely
            Exception: Anything else, classified by classify_error()
        """
        pass

    def classify_error(self, exc: BaseException) -> ProviderError:
        """Map an unexpected exception from call() to a ProviderError."""
        return classify_exception(exc, self.TIMEOUT_TYPES)

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get information about this provider.

        Returns:
            Dictionary with provider information
        """
        return {
            "provider": self.provider_name,
            "model": self.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "timeout": self.config.timeout
        }

    async def close(self):
        """Close any open connections (optional, override if needed)."""
        pass
