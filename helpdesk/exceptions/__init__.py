# helpdesk/exceptions/__init__.py
"""Host-level exception classes for the Helpdesk engine."""

from .exceptions import (
    ConfigurationError,
    KnowledgeBaseError,
    EngineNotInitializedError,
    EngineInitializationTimeoutError,
    log_exception,
)

__all__ = [
    "ConfigurationError",
    "KnowledgeBaseError",
    "EngineNotInitializedError",
    "EngineInitializationTimeoutError",
    "log_exception",
]
