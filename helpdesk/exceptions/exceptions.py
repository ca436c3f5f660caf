"""
Custom exceptions for the Helpdesk engine host.

These cover failures outside a single provider call: bad configuration,
an unreadable knowledge base, and engine lifecycle problems. Provider call
failures have their own taxonomy in helpdesk.llm.errors because they are
absorbed per request instead of propagating.
"""

from datetime import datetime
from typing import Optional


class ConfigurationError(Exception):
    """
    Raised when the application configuration is missing or invalid.

    Configuration errors are fatal at startup; the engine refuses to
    initialize rather than run with half-valid settings.
    """

    def __init__(self, message: str, config_path: Optional[str] = None):
        """
        Initialize configuration error.

        Args:
            message: Error message
            config_path: Optional path of the config file being read
        """
        super().__init__(message)
        self.config_path = config_path
        self.timestamp = datetime.utcnow().isoformat()

    def __str__(self):
        base = super().__str__()
        if self.config_path:
            return f"{base} | Config: {self.config_path}"
        return base


class KnowledgeBaseError(Exception):
    """
    Raised when the knowledge base cannot be loaded.

    Covers missing files or objects, unparseable JSON/YAML, and entries
    lacking a question or answer.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        """
        Initialize knowledge base error.

        Args:
            message: Error message
            source: Optional location (path or s3 URI) of the knowledge base
        """
        super().__init__(message)
        self.source = source
        self.timestamp = datetime.utcnow().isoformat()

    def __str__(self):
        base = super().__str__()
        if self.source:
            return f"{base} | Source: {self.source}"
        return base


class EngineNotInitializedError(Exception):
    """Raised when the engine is used before init() has run."""

    def __init__(self, message: str = "Helpdesk engine not initialized. Did you call init()?"):
        super().__init__(message)
        self.timestamp = datetime.utcnow().isoformat()


class EngineInitializationTimeoutError(Exception):
    """
    Raised when waiting for the shared engine initialization lock takes too long.
    """

    def __init__(self, message: str, timeout_s: float):
        """
        Initialize engine initialization timeout error.

        Args:
            message: Error message
            timeout_s: The bounded wait that was exceeded, in seconds
        """
        super().__init__(message)
        self.timeout_s = timeout_s
        self.timestamp = datetime.utcnow().isoformat()

    def __str__(self):
        return f"{super().__str__()} | Timeout: {self.timeout_s:.1f}s"


# Convenience function for error logging
def log_exception(exception: Exception, logger, context: dict = None):
    """
    Log exception with full context.

    Args:
        exception: Exception to log
        logger: Logger instance
        context: Optional context dictionary
    """
    error_type = type(exception).__name__
    error_msg = str(exception)

    log_data = {
        "error_type": error_type,
        "error_message": error_msg,
        "timestamp": datetime.utcnow().isoformat()
    }

    if context:
        log_data.update(context)

    if hasattr(exception, 'timestamp'):
        log_data["exception_timestamp"] = exception.timestamp

    # Provider errors carry their retry semantics
    if hasattr(exception, 'retryable'):
        log_data["retryable"] = exception.retryable
        status_code = getattr(exception, 'status_code', None)
        if status_code is not None:
            log_data["status_code"] = status_code
        retry_after_ms = getattr(exception, 'retry_after_ms', None)
        if retry_after_ms is not None:
            log_data["retry_after_ms"] = retry_after_ms

    elif isinstance(exception, ConfigurationError):
        log_data["config_path"] = exception.config_path

    elif isinstance(exception, KnowledgeBaseError):
        log_data["kb_source"] = exception.source

    elif isinstance(exception, EngineInitializationTimeoutError):
        log_data["timeout_s"] = exception.timeout_s

    logger.error(f"Exception occurred: {error_type}", extra=log_data)
