"""
LLM Factory for provider-agnostic LLM integration.

Providers are selected by the llm.type config key through an explicit
registry; there is no plugin discovery.
"""

import logging
from enum import Enum
from typing import Dict, Type

from helpdesk.exceptions.exceptions import ConfigurationError
from .base import LLMConfig, LLMProvider
from .bedrock_provider import BedrockProvider, ClaudeBedrockProvider, NovaBedrockProvider
from .ollama_provider import OllamaProvider
from .watson_provider import WatsonProvider

logger = logging.getLogger(__name__)


class ProviderType(Enum):
    """Enumeration of supported LLM providers."""
    OLLAMA = "ollama"
    BEDROCK = "bedrock"
    CLAUDE = "claude"
    NOVA = "nova"
    WATSON = "watson"


PROVIDER_CLASSES: Dict[str, Type[LLMProvider]] = {
    ProviderType.OLLAMA.value: OllamaProvider,
    ProviderType.BEDROCK.value: BedrockProvider,
    ProviderType.CLAUDE.value: ClaudeBedrockProvider,
    ProviderType.NOVA.value: NovaBedrockProvider,
    ProviderType.WATSON.value: WatsonProvider,
}


def create_provider(config: LLMConfig) -> LLMProvider:
    """
    Create the provider registered for config.provider.

    Args:
        config: Provider configuration

    Returns:
        Configured LLMProvider

    Raises:
        ConfigurationError: If the type is unknown or the config is invalid
    """
    provider_type = (config.provider or "").strip().lower()
    provider_class = PROVIDER_CLASSES.get(provider_type)
    if provider_class is None:
        raise ConfigurationError(
            f"Cannot load LLM client for type: {config.provider}. "
            f"Available: {', '.join(sorted(PROVIDER_CLASSES))}"
        )

    config.provider = provider_type
    provider = provider_class(config)
    logger.info(f"Created {provider_type} provider ({provider_class.__name__}) with model {provider.model}")
    return provider


def create_llm_provider(settings) -> LLMProvider:
    """Create a provider from the llm section of AppConfig."""
    return create_provider(LLMConfig.from_settings(settings))
