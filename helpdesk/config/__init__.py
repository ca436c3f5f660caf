"""Configuration for the Helpdesk engine."""

from .settings import (
    AppConfig,
    LlmSettings,
    PromptSettings,
    RetrySettings,
    SimilaritySettings,
    StorageSettings,
    load_config,
)

__all__ = [
    "AppConfig",
    "LlmSettings",
    "PromptSettings",
    "RetrySettings",
    "SimilaritySettings",
    "StorageSettings",
    "load_config",
]
