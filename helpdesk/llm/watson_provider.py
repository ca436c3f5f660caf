"""
IBM watsonx.ai LLM provider implementation.

Calls the watsonx.ai text chat endpoint ({endpoint}/ml/v1/text/chat) for a
project. Authentication exchanges the IBM Cloud API key for a short-lived
IAM bearer token, which is cached until shortly before it expires.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from helpdesk.config.constants import PROVIDER_DEFAULTS
from helpdesk.exceptions.exceptions import ConfigurationError
from .base import LLMConfig, LLMProvider, ProviderRequest, ProviderResponse
from .errors import (
    DEFAULT_TIMEOUT_TYPES,
    AuthenticationError,
    InvalidRequestError,
    ProviderGenericError,
    ProviderTimeoutError,
)
from .ollama_provider import error_for_status, extract_chat_content

logger = logging.getLogger(__name__)


class WatsonProvider(LLMProvider):
    """
    watsonx.ai provider.

    Config:
        endpoint: Regional watsonx.ai URL, e.g. https://eu-de.ml.cloud.ibm.com
        api_key: IBM Cloud API key, exchanged for an IAM token
        project_id: watsonx.ai project the model is deployed in
        model: Foundation model id, e.g. ibm/granite-3-8b-instruct
        llm_version: API version date sent as ?version= (default 2024-05-01)
    """

    CHAT_PATH = PROVIDER_DEFAULTS.WATSON_CHAT_PATH
    IAM_URL = PROVIDER_DEFAULTS.WATSON_IAM_URL
    TIMEOUT_TYPES = DEFAULT_TIMEOUT_TYPES + (aiohttp.ServerTimeoutError,)

    def __init__(self, config: LLMConfig):
        self.session: Optional[aiohttp.ClientSession] = None
        self.base_url = (config.endpoint or "").strip().rstrip("/")
        self.api_version = config.llm_version or PROVIDER_DEFAULTS.WATSON_API_VERSION
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()
        super().__init__(config)

    def _validate_config(self) -> None:
        if not self.base_url:
            raise ConfigurationError("llm.endpoint is required for watson")
        if not self.config.api_key:
            raise ConfigurationError("llm.apiKey is required for watson")
        if not self.config.project_id:
            raise ConfigurationError("llm.projectId is required for watson")
        if not self.config.model:
            raise ConfigurationError("llm.modelId is required for watson")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if not self.session or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)
        return self.session

    async def _get_token(self, session: aiohttp.ClientSession) -> str:
        """
        Return a valid IAM access token, requesting a new one when needed.

        Raises:
            AuthenticationError: If IAM rejects the API key or returns no token
            ProviderError: For other IAM HTTP failures
        """
        async with self._token_lock:
            margin = PROVIDER_DEFAULTS.WATSON_TOKEN_REFRESH_MARGIN_S
            if self._token and time.time() < self._token_expires_at - margin:
                return self._token

            logger.debug("[watson] Requesting IAM access token")
            form = {"grant_type": PROVIDER_DEFAULTS.WATSON_IAM_GRANT_TYPE, "apikey": self.config.api_key}
            async with session.post(self.IAM_URL, data=form, headers={"Accept": "application/json"}) as response:
                if response.status != 200:
                    body = await response.text()
                    if response.status in (400, 401, 403):
                        raise AuthenticationError(f"IAM token request rejected: HTTP {response.status}: {body}")
                    raise error_for_status(response.status, body, response.headers.get("Retry-After"))

                try:
                    data = await response.json(content_type=None)
                except (json.JSONDecodeError, ValueError) as e:
                    raise ProviderGenericError("Problem parsing IAM token response", cause=e) from e

            token = data.get("access_token") if isinstance(data, dict) else None
            if not token:
                raise AuthenticationError("IAM response did not contain an access token")

            expires_at = data.get("expiration")
            if expires_at is None:
                expires_at = time.time() + float(data.get("expires_in", 0))
            self._token = token
            self._token_expires_at = float(expires_at)
            return token

    def _build_payload(self, request: ProviderRequest) -> Dict[str, Any]:
        messages = []
        if self.config.system_prompt:
            messages.append({"role": "system", "content": self.config.system_prompt})
        messages.append({"role": "user", "content": request.prompt_text})

        payload = {
            "model_id": self.config.model,
            "project_id": self.config.project_id,
            "max_new_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": messages,
        }
        payload.update(request.extra_fields)
        return payload

    async def call(self, request: ProviderRequest) -> ProviderResponse:
        """
        Ask watsonx.ai one question.

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
            token = await self._get_token(session)
            headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
            async with session.post(url, params={"version": self.api_version},
                                    json=payload, headers=headers) as response:
                if response.status != 200:
                    body = await response.text()
                    if response.status == 401:
                        # Token revoked early; fetch a fresh one next call
                        self._token = None
                    raise error_for_status(response.status, body, response.headers.get("Retry-After"))

                try:
                    data = await response.json(content_type=None)
                except (json.JSONDecodeError, ValueError) as e:
                    raise ProviderGenericError("Problem parsing response JSON", cause=e) from e

        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(f"watsonx request timed out after {self.config.timeout}s", cause=e) from e
        except aiohttp.ClientError as e:
            raise ProviderGenericError("Network error communicating with watsonx", cause=e) from e

        return ProviderResponse(answer_text=extract_chat_content(data))

    def get_provider_info(self) -> Dict[str, Any]:
        return {
            **super().get_provider_info(),
            "base_url": self.base_url,
            "project_id": self.config.project_id,
            "api_version": self.api_version,
        }

    async def close(self):
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
