"""
Fault-tolerant invocation around a single provider.

ResilientInvoker owns timing, error mapping and retry/backoff so that
drivers only implement one raw call.
"""

import asyncio
import dataclasses
import logging
import random
import time
from typing import Optional

from helpdesk.config.constants import RETRY_DEFAULTS
from helpdesk.llm.base import LLMProvider, ProviderRequest, ProviderResponse
from helpdesk.llm.errors import ProviderError, ProviderTimeoutError, RateLimitError

logger = logging.getLogger(__name__)


class ResilientInvoker:
    """
    Wraps an LLMProvider with timing, classification and retries.

    Only ProviderError ever escapes ask(). Retry decisions depend solely on
    the error's retryable flag; backoff state is local to each call.
    """

    def __init__(
        self,
        provider: LLMProvider,
        max_attempts: int = RETRY_DEFAULTS.MAX_ATTEMPTS,
        base_backoff_ms: int = RETRY_DEFAULTS.BASE_BACKOFF_MS,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the invoker.

        Args:
            provider: Driver performing the raw call
            max_attempts: Attempts used by ask()
            base_backoff_ms: Base backoff used by ask()
            rng: Random source for jitter (seedable for tests)
        """
        self.provider = provider
        self.max_attempts = max_attempts
        self.base_backoff_ms = base_backoff_ms
        self._rng = rng or random.Random()

    async def ask(self, request: ProviderRequest) -> ProviderResponse:
        """Main entry point: ask with the configured retry policy."""
        return await self.ask_with_retry(request, self.max_attempts, self.base_backoff_ms)

    async def ask_direct(self, request: ProviderRequest) -> ProviderResponse:
        """
        One attempt, no retry.

        Raises:
            ProviderError: Raised by the driver unchanged, or mapped by its
                classify_error() hook from any other exception
        """
        if request is None:
            raise ValueError("request must not be None")

        start_time = time.perf_counter()
        try:
            response = await self.provider.call(request)
        except ProviderError:
            raise
        except Exception as e:
            raise self.provider.classify_error(e) from e

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        return dataclasses.replace(response, elapsed_ms=elapsed_ms)

    async def ask_with_retry(self, request: ProviderRequest, max_attempts: int,
                             base_backoff_ms: int) -> ProviderResponse:
        """
        Call ask_direct() up to max(1, max_attempts) times.

        Non-retryable errors and the last attempt's error are re-raised.
        """
        attempts = max(1, max_attempts)

        for attempt in range(1, attempts + 1):
            try:
                return await self.ask_direct(request)
            except ProviderError as e:
                if e.not_retryable or attempt == attempts:
                    if attempt > 1:
                        logger.error(f"Provider call failed after {attempt} attempts: {e.kind}: {e}")
                    raise

                wait_ms = max(0, self.backoff_for(e, attempt, base_backoff_ms))
                logger.warning(f"Attempt {attempt}/{attempts} failed ({e.kind}: {e}). "
                               f"Retrying in {wait_ms}ms...")
                await self._sleep(wait_ms)

        # Unreachable: the loop either returns or raises
        raise ProviderTimeoutError("Retry loop exited without a result")

    def backoff_for(self, error: ProviderError, attempt: int, base_backoff_ms: int) -> int:
        """Honour an explicit retry-after on rate limits, else jittered backoff."""
        if isinstance(error, RateLimitError) and error.retry_after_ms and error.retry_after_ms > 0:
            return error.retry_after_ms
        return self.jittered_backoff(base_backoff_ms, attempt)

    def jittered_backoff(self, base_backoff_ms: int, attempt: int) -> int:
        """
        Exponential backoff with full jitter.

        base=200: attempt 1 -> [0..200], 2 -> [0..400], 3 -> [0..800],
        ..., 6 -> [0..5000] (capped).
        """
        base = max(0, base_backoff_ms or 0)
        exponential = base * (2 ** max(0, attempt - 1))
        cap = min(exponential, RETRY_DEFAULTS.BACKOFF_CAP_MS)
        return self._rng.randint(0, cap)

    async def _sleep(self, ms: int) -> None:
        try:
            await asyncio.sleep(ms / 1000.0)
        except asyncio.CancelledError as e:
            # Cancellation is converted here, so withdraw the request (3.11+);
            # otherwise asyncio.timeout() and TaskGroup see the task as cancelling
            task = asyncio.current_task()
            if task is not None and hasattr(task, "uncancel"):
                task.uncancel()
            raise ProviderTimeoutError("Retry wait interrupted", cause=e) from e
