"""
Provider error taxonomy and the default exception classifier.

Every failure of a provider call surfaces as one of five ProviderError
kinds. Retryability is fixed by kind:

    RateLimitError        retryable      optional retry_after_ms
    InvalidRequestError   not retryable
    AuthenticationError   not retryable
    ProviderTimeoutError  retryable
    ProviderGenericError  retryable      optional status_code, retry_after_ms

Drivers raise these directly when they know the failure precisely (HTTP
status, SDK error code). Anything else goes through classify_exception(),
which uses message heuristics.
"""

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Optional, Tuple, Type

from helpdesk.config.constants import (
    AUTH_PATTERNS,
    INVALID_REQUEST_PATTERNS,
    RATE_LIMIT_PATTERNS,
    RETRY_DEFAULTS,
    TIMEOUT_PATTERNS,
    UNKNOWN_ERROR_MESSAGE,
)

logger = logging.getLogger(__name__)

# Built-in timeout types; drivers extend this with their SDK's own.
DEFAULT_TIMEOUT_TYPES: Tuple[Type[BaseException], ...] = (TimeoutError, asyncio.TimeoutError)


def _normalize_message(message: Optional[str], cause: Optional[BaseException]) -> str:
    """Explicit message, else cause message, else cause class name, else 'Unknown error'."""
    if message and message.strip():
        return message
    if cause is not None:
        cause_message = str(cause)
        if cause_message and cause_message.strip():
            return cause_message
        return type(cause).__name__
    return UNKNOWN_ERROR_MESSAGE


class ProviderError(Exception):
    """Base exception for failures of a single provider call."""

    retryable: bool = True

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        """
        Initialize provider error.

        Args:
            message: Optional error message; derived from the cause when blank
            cause: Optional underlying exception
        """
        self.message = _normalize_message(message, cause)
        super().__init__(self.message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause
        self.timestamp = datetime.utcnow().isoformat()

    @property
    def not_retryable(self) -> bool:
        return not self.retryable

    @property
    def kind(self) -> str:
        return type(self).__name__


def _non_negative_or_none(value: Optional[int]) -> Optional[int]:
    if value is None or value < 0:
        return None
    return int(value)


class RateLimitError(ProviderError):
    """The provider throttled the call."""

    retryable = True

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None,
                 retry_after_ms: Optional[int] = None):
        super().__init__(message, cause)
        self.retry_after_ms = _non_negative_or_none(retry_after_ms)

    def __str__(self):
        if self.retry_after_ms is not None:
            return f"{self.message} | Retry after: {self.retry_after_ms}ms"
        return self.message


class InvalidRequestError(ProviderError):
    """The request was rejected as malformed."""

    retryable = False


class AuthenticationError(ProviderError):
    """Credentials were missing, wrong, or lacked permission."""

    retryable = False


class ProviderTimeoutError(ProviderError):
    """The call (or a retry wait) timed out."""

    retryable = True


class ProviderGenericError(ProviderError):
    """Any other provider-side or transport failure."""

    retryable = True

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None,
                 status_code: Optional[int] = None, retry_after_ms: Optional[int] = None):
        super().__init__(message, cause)
        self.status_code = status_code if status_code is not None and status_code >= 0 else None
        self.retry_after_ms = _non_negative_or_none(retry_after_ms)

    def __str__(self):
        if self.status_code is not None:
            return f"{self.message} | Status: {self.status_code}"
        return self.message


def _next_in_chain(exc: BaseException) -> Optional[BaseException]:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def has_cause(exc: Optional[BaseException], types: Iterable[Type[BaseException]],
              max_depth: int = RETRY_DEFAULTS.CAUSE_SCAN_MAX_DEPTH) -> bool:
    """
    Check whether exc or any exception in its cause chain is one of types.

    Walks __cause__ (falling back to __context__) for at most max_depth
    links and stops on a cycle.
    """
    types = tuple(types)
    if exc is None or not types:
        return False

    seen = set()
    current = exc
    depth = 0
    while current is not None and depth < max_depth and id(current) not in seen:
        if isinstance(current, types):
            return True
        seen.add(id(current))
        current = _next_in_chain(current)
        depth += 1
    return False


def _message_lower(exc: BaseException) -> str:
    return _normalize_message(None, exc).lower()


def _matches(exc: BaseException, patterns: Iterable[str]) -> bool:
    msg = _message_lower(exc)
    return any(pattern in msg for pattern in patterns)


def is_timeout_exception(exc: BaseException,
                         timeout_types: Tuple[Type[BaseException], ...] = DEFAULT_TIMEOUT_TYPES) -> bool:
    """True if exc is (or was caused by) a timeout type, or its message says so."""
    return has_cause(exc, timeout_types) or _matches(exc, TIMEOUT_PATTERNS)


def classify_exception(exc: BaseException,
                       timeout_types: Tuple[Type[BaseException], ...] = DEFAULT_TIMEOUT_TYPES) -> ProviderError:
    """
    Map an arbitrary exception to a ProviderError using message heuristics.

    Order: rate limit, invalid request, timeout, auth, then generic.
    ProviderErrors are returned unchanged.
    """
    if isinstance(exc, ProviderError):
        return exc

    if _matches(exc, RATE_LIMIT_PATTERNS):
        logger.debug(f"Classified as rate limit: {exc!r}")
        return RateLimitError(cause=exc)
    if _matches(exc, INVALID_REQUEST_PATTERNS):
        logger.debug(f"Classified as invalid request: {exc!r}")
        return InvalidRequestError(cause=exc)
    if is_timeout_exception(exc, timeout_types):
        logger.debug(f"Classified as timeout: {exc!r}")
        return ProviderTimeoutError(cause=exc)
    if _matches(exc, AUTH_PATTERNS):
        logger.debug(f"Classified as authentication error: {exc!r}")
        return AuthenticationError(cause=exc)

    logger.debug(f"Classified as generic provider error: {exc!r}")
    return ProviderGenericError(cause=exc)
