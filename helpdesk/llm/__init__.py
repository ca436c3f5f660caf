"""
LLM integration for the Helpdesk engine.

Provides the provider interface, the provider error taxonomy, the
resilient invoker (timing, classification, retry/backoff), prompt
construction, and the Ollama, Bedrock and watsonx drivers.
"""

from .base import LLMConfig, LLMProvider, ProviderRequest, ProviderResponse
from .errors import (
    AuthenticationError,
    InvalidRequestError,
    ProviderError,
    ProviderGenericError,
    ProviderTimeoutError,
    RateLimitError,
    classify_exception,
    has_cause,
)
from .resilient import ResilientInvoker
from .prompts import PromptBuilder
from .ollama_provider import OllamaProvider
from .bedrock_provider import BedrockProvider, ClaudeBedrockProvider, NovaBedrockProvider
from .watson_provider import WatsonProvider
from .factory import PROVIDER_CLASSES, ProviderType, create_llm_provider, create_provider

__all__ = [
    # Base classes
    "LLMConfig",
    "LLMProvider",
    "ProviderRequest",
    "ProviderResponse",

    # Exceptions
    "ProviderError",
    "RateLimitError",
    "InvalidRequestError",
    "AuthenticationError",
    "ProviderTimeoutError",
    "ProviderGenericError",
    "classify_exception",
    "has_cause",

    # Invocation
    "ResilientInvoker",
    "PromptBuilder",

    # Providers
    "OllamaProvider",
    "BedrockProvider",
    "ClaudeBedrockProvider",
    "NovaBedrockProvider",
    "WatsonProvider",

    # Factory
    "PROVIDER_CLASSES",
    "ProviderType",
    "create_provider",
    "create_llm_provider",
]
