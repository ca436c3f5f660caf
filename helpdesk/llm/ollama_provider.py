"""
Ollama LLM provider implementation.

Talks to Ollama's OpenAI-compatible /v1/chat/completions endpoint, so any
model served by a local Ollama (mistral, llama3, phi, ...) can answer
helpdesk questions.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from helpdesk.config.constants import PROVIDER_DEFAULTS
from helpdesk.exceptions.exceptions import ConfigurationError
from .base import LLMConfig, LLMProvider, ProviderRequest, ProviderResponse
from .errors import (
    DEFAULT_TIMEOUT_TYPES,
    AuthenticationError,
    InvalidRequestError,
    ProviderError,
    ProviderGenericError,
    ProviderTimeoutError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


def parse_retry_after_ms(value: Optional[str]) -> Optional[int]:
    """Retry-After header (delay in seconds) as milliseconds; None if absent or unparseable."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return int(seconds * 1000)


def error_for_status(status: int, body: str, retry_after: Optional[str] = None) -> ProviderError:
    """Map a non-200 HTTP status to the matching ProviderError."""
    message = f"HTTP {status}: {body}"
    if status == 429:
        return RateLimitError(message, retry_after_ms=parse_retry_after_ms(retry_after))
    if status == 400:
        return InvalidRequestError(message)
    if status in (401, 403):
        return AuthenticationError(message)
    if status in (408, 504):
        return ProviderTimeoutError(message)
    return ProviderGenericError(message, status_code=status,
                                retry_after_ms=parse_retry_after_ms(retry_after))


def extract_chat_content(data: Any) -> str:
    """Text of choices[0].message.content from an OpenAI-style chat response."""
    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices:
        raise ProviderGenericError("No choices in response")

    message = choices[0].get("message") or {}
    content = (message.get("content") or "").strip()
    if not content:
        raise ProviderGenericError("Empty content in response")
    return content


class OllamaProvider(LLMProvider):
    """
    Ollama LLM provider for local model deployment.

    Config:
        endpoint: Base URL of the Ollama server (default http://localhost:11434)
        model: Model name as known to Ollama
        system_prompt: Optional preamble sent as the system message
    """

    DEFAULT_BASE_URL = PROVIDER_DEFAULTS.OLLAMA_ENDPOINT
    CHAT_PATH = PROVIDER_DEFAULTS.OLLAMA_CHAT_PATH
    TIMEOUT_TYPES = DEFAULT_TIMEOUT_TYPES + (aiohttp.ServerTimeoutError,)

    def __init__(self, config: LLMConfig):
        """
        Initialize Ollama provider.

        Args:
            config: LLM configuration with Ollama-specific settings
        """
        # Set before super().__init__, which calls _validate_config
        self.session: Optional[aiohttp.ClientSession] = None
        self.base_url = (config.endpoint or self.DEFAULT_BASE_URL).rstrip("/")
        super().__init__(config)

    def _validate_config(self) -> None:
        """
        Validate Ollama-specific configuration.

        Note: Ollama doesn't require API keys for local deployment
        """
        if not self.config.model:
            raise ConfigurationError("llm.modelId is required for Ollama")

        if self.base_url == self.DEFAULT_BASE_URL:
            logger.info("Using default Ollama URL (localhost:11434). "
                        "Ensure Ollama server is running locally.")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if not self.session or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)
        return self.session

    def _build_payload(self, request: ProviderRequest) -> Dict[str, Any]:
        messages = []
        if self.config.system_prompt:
            messages.append({"role": "system", "content": self.config.system_prompt})
        messages.append({"role": "user", "content": request.prompt_text})

        payload = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": messages,
        }
        payload.update(request.extra_fields)
        return payload

    async def call(self, request: ProviderRequest) -> ProviderResponse:
        """
        Ask Ollama one question.

        Raises:
            InvalidRequestError: If the prompt is blank
            ProviderError: Mapped from the HTTP status or transport failure
        """
        if request is None or not request.prompt_text:
            raise InvalidRequestError("Request and its prompt cannot be null or empty")

        payload = self._build_payload(request)
        url = f"{self.base_url}{self.CHAT_PATH}"

        try:
            session = await self._get_session()
            async with session.post(url, json=payload, headers={"Accept": "application/json"}) as response:
                if response.status != 200:
                    body = await response.text()
                    raise error_for_status(response.status, body, response.headers.get("Retry-After"))

                try:
                    data = await response.json(content_type=None)
                except (json.JSONDecodeError, ValueError) as e:
                    raise ProviderGenericError("Problem parsing response JSON", cause=e) from e

        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(f"Ollama request timed out after {self.config.timeout}s", cause=e) from e
        except aiohttp.ClientError as e:
            raise ProviderGenericError("Network error communicating with Ollama", cause=e) from e

        return ProviderResponse(answer_text=extract_chat_content(data))

    def get_provider_info(self) -> Dict[str, Any]:
        return {
            **super().get_provider_info(),
            "base_url": self.base_url,
            "local_deployment": True
        }

    async def close(self):
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
