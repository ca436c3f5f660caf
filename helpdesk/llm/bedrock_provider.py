"""
AWS Bedrock LLM providers.

Uses the Bedrock Converse API, which gives one request/response shape for
Anthropic Claude and Amazon Nova models. boto3 is synchronous, so the call
runs in the default executor. One bedrock-runtime client per region is
shared by the whole process.
"""

import asyncio
import functools
import logging
import threading
from typing import Any, Dict

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    NoCredentialsError,
    ReadTimeoutError,
)

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
    is_timeout_exception,
)

logger = logging.getLogger(__name__)

# Retries are done by ResilientInvoker, so botocore makes a single attempt
BOTO_CONFIG = Config(
    read_timeout=30,
    connect_timeout=15,
    retries={"max_attempts": 1, "mode": "standard"},
)

THROTTLING_CODES = {"ThrottlingException", "TooManyRequestsException", "ServiceQuotaExceededException"}
VALIDATION_CODES = {"ValidationException"}
AUTH_CODES = {"AccessDeniedException", "UnrecognizedClientException", "ExpiredTokenException"}
TIMEOUT_CODES = {"ModelTimeoutException"}
AUTH_STATUSES = {401, 403}
TIMEOUT_STATUSES = {408, 504}

# Initialize Bedrock clients once per process, per region
_CLIENTS: Dict[str, Any] = {}
_CLIENT_LOCK = threading.Lock()


def get_bedrock_client(region: str):
    """Return the shared bedrock-runtime client for region, creating it on first use."""
    with _CLIENT_LOCK:
        client = _CLIENTS.get(region)
        if client is None:
            logger.info(f"[bedrock] Creating bedrock-runtime client in {region}")
            client = boto3.client("bedrock-runtime", region_name=region, config=BOTO_CONFIG)
            _CLIENTS[region] = client
        return client


def classify_client_error(error: ClientError) -> ProviderError:
    """Map a botocore ClientError to a ProviderError by error code and HTTP status."""
    code = error.response.get("Error", {}).get("Code", "")
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

    if code in THROTTLING_CODES or status == 429:
        logger.debug(f"[bedrock] {code} (rate limit): {error}")
        return RateLimitError(cause=error)
    if code in VALIDATION_CODES:
        logger.debug(f"[bedrock] {code}: {error}")
        return InvalidRequestError(cause=error)
    if code in TIMEOUT_CODES or status in TIMEOUT_STATUSES:
        logger.debug(f"[bedrock] Service timeout (status {status}): {error}")
        return ProviderTimeoutError(cause=error)
    if code in AUTH_CODES or status in AUTH_STATUSES:
        logger.warning(f"[bedrock] Auth error (status {status}): {error}")
        return AuthenticationError(cause=error)

    logger.debug(f"[bedrock] ProviderException (status {status}): {error}")
    return ProviderGenericError(cause=error, status_code=status)


class BedrockProvider(LLMProvider):
    """
    Bedrock Converse provider for any Converse-capable model id.

    Config:
        region: AWS region (required)
        model: Bedrock model or inference profile id
        system_prompt: Optional preamble sent as the system block
    """

    DEFAULT_MODEL = None
    TIMEOUT_TYPES = DEFAULT_TIMEOUT_TYPES + (ReadTimeoutError, ConnectTimeoutError)

    def __init__(self, config: LLMConfig):
        if not config.model and self.DEFAULT_MODEL:
            config.model = self.DEFAULT_MODEL
        super().__init__(config)

    def _validate_config(self) -> None:
        if not self.config.region or not self.config.region.strip():
            raise ConfigurationError("AWS region cannot be null or empty")
        if not self.config.model:
            raise ConfigurationError(f"llm.modelId is required for {self.provider_name}")

    def _build_request(self, request: ProviderRequest) -> Dict[str, Any]:
        request_params = {
            "modelId": self.config.model,
            "messages": [
                {
                    "role": "user",
                    "content": [{"text": request.prompt_text}]
                }
            ],
            "inferenceConfig": {
                "temperature": self.config.temperature,
                "maxTokens": self.config.max_tokens,
            },
        }
        if self.config.system_prompt:
            request_params["system"] = [{"text": self.config.system_prompt}]
        if request.extra_fields:
            # Model-native options outside inferenceConfig (e.g. top_k)
            request_params["additionalModelRequestFields"] = dict(request.extra_fields)
        return request_params

    async def call(self, request: ProviderRequest) -> ProviderResponse:
        """Invoke the model once through the Converse API."""
        if request is None or not request.prompt_text:
            raise InvalidRequestError("Request and its prompt cannot be null or empty")

        client = get_bedrock_client(self.config.region)
        params = self._build_request(request)
        logger.debug(f"[bedrock] Invoking {self.config.model} with {len(request.prompt_text)} chars")

        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, functools.partial(client.converse, **params))

        output_message = response.get("output", {}).get("message", {})
        content_blocks = output_message.get("content", [])
        if not content_blocks:
            raise ProviderGenericError("No content in Bedrock response")

        text = "".join(block.get("text", "") for block in content_blocks).strip()
        usage = response.get("usage", {})
        logger.debug(
            f"[bedrock] Response: {len(text)} chars, {usage.get('inputTokens', 0)} input tokens, "
            f"{usage.get('outputTokens', 0)} output tokens, stop_reason={response.get('stopReason')}"
        )
        return ProviderResponse(answer_text=text)

    def classify_error(self, exc: BaseException) -> ProviderError:
        """Precise mapping for botocore errors; timeouts by type or message; else generic."""
        if isinstance(exc, ClientError):
            return classify_client_error(exc)
        if isinstance(exc, NoCredentialsError):
            return AuthenticationError(cause=exc)
        if is_timeout_exception(exc, self.TIMEOUT_TYPES):
            logger.debug(f"[bedrock] Client/network timeout: {exc}")
            return ProviderTimeoutError(cause=exc)
        logger.debug(f"[bedrock] Generic provider error: {exc}")
        return ProviderGenericError(cause=exc)

    def get_provider_info(self) -> Dict[str, Any]:
        return {**super().get_provider_info(), "region": self.config.region}


class ClaudeBedrockProvider(BedrockProvider):
    """Anthropic Claude on Bedrock (registry key "claude")."""
    DEFAULT_MODEL = "anthropic.claude-3-haiku-20240307-v1:0"


class NovaBedrockProvider(BedrockProvider):
    """Amazon Nova on Bedrock (registry key "nova")."""
    DEFAULT_MODEL = "amazon.nova-micro-v1:0"
