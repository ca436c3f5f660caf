"""
Application settings loaded from the YAML file named by APP_CONFIG_PATH.

The YAML layout uses camelCase keys:

    llm:
      type: ollama            # ollama | bedrock | claude | nova | watson
      modelId: mistral
      endpoint: http://localhost:11434
      region: eu-west-1       # bedrock
      apiKey: ${WATSONX_API_KEY}   # watson
      projectId: abc-123      # watson
      llmVersion: 2024-05-01  # watson API version
      temperature: 0.2
      maxTokens: 512
      retry: {maxAttempts: 3, baseBackoffMs: 500}
      prompts:
        preamble: "You are a helpdesk assistant."
        template: "{preamble}\n\nExamples:\n{examples}\n\nQuestion: {question}\nAnswer:"
        contactSupportPhrase: "contact support"
    similarity: {type: cosine, threshold: 0.8, fewShot: 3}
    storage: {type: file, path: kb.json}
    # or {type: s3, bucket, prefix, filename, region}
    # or {type: cos, bucket, prefix, filename, endpoint, hmacAccessKeyId, hmacSecretAccessKey}
    alwaysCallLlm: false

String values may reference environment variables as ${NAME}.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from helpdesk.config.constants import (
    DEFAULT_CONTACT_SUPPORT_PHRASE,
    ENV_ALWAYS_CALL_LLM,
    ENV_APP_CONFIG_PATH,
    PROVIDER_DEFAULTS,
    RETRY_DEFAULTS,
    SIMILARITY_DEFAULTS,
)
from helpdesk.exceptions.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_ENV_PLACEHOLDER = re.compile(r"\$\{(\w+)\}")


def _parse_bool(value: Any, default: bool = False) -> bool:
    """Parse a boolean from a YAML value or environment string."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _expand_env(value: Any) -> Any:
    """Expand ${VAR} placeholders recursively; unknown variables are left as-is."""
    if isinstance(value, str):
        return _ENV_PLACEHOLDER.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


@dataclass(frozen=True)
class PromptSettings:
    """Prompt fragments used to build the provider request."""
    preamble: str = ""
    template: Optional[str] = None
    contact_support_phrase: str = DEFAULT_CONTACT_SUPPORT_PHRASE

    def __post_init__(self):
        # A blank phrase is a substring of every answer
        if not self.contact_support_phrase or not self.contact_support_phrase.strip():
            raise ConfigurationError("llm.prompts.contactSupportPhrase must not be blank")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PromptSettings":
        data = data or {}
        return cls(
            preamble=data.get("preamble") or "",
            template=data.get("template"),
            contact_support_phrase=str(data.get("contactSupportPhrase") or "").strip() or DEFAULT_CONTACT_SUPPORT_PHRASE,
        )


@dataclass(frozen=True)
class RetrySettings:
    """Retry policy applied by the resilient invoker."""
    max_attempts: int = RETRY_DEFAULTS.MAX_ATTEMPTS
    base_backoff_ms: int = RETRY_DEFAULTS.BASE_BACKOFF_MS

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError(f"llm.retry.maxAttempts must be >= 1, got {self.max_attempts}")
        if self.base_backoff_ms < 0:
            raise ConfigurationError(f"llm.retry.baseBackoffMs must be >= 0, got {self.base_backoff_ms}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RetrySettings":
        data = data or {}
        return cls(
            max_attempts=int(data.get("maxAttempts", RETRY_DEFAULTS.MAX_ATTEMPTS)),
            base_backoff_ms=int(data.get("baseBackoffMs", RETRY_DEFAULTS.BASE_BACKOFF_MS)),
        )


@dataclass(frozen=True)
class LlmSettings:
    """The llm section: which provider to talk to and how."""
    type: str
    model_id: Optional[str] = None
    endpoint: Optional[str] = None
    region: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    project_id: Optional[str] = None
    llm_version: Optional[str] = None
    temperature: float = PROVIDER_DEFAULTS.TEMPERATURE
    max_tokens: int = PROVIDER_DEFAULTS.MAX_TOKENS
    timeout_s: int = PROVIDER_DEFAULTS.TIMEOUT_S
    prompts: PromptSettings = field(default_factory=PromptSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)

    def __post_init__(self):
        if not self.type:
            raise ConfigurationError("llm.type is required")
        if self.max_tokens <= 0:
            raise ConfigurationError(f"llm.maxTokens must be positive, got {self.max_tokens}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LlmSettings":
        data = data or {}
        llm_version = data.get("llmVersion")
        return cls(
            type=str(data.get("type") or "").strip().lower(),
            model_id=data.get("modelId"),
            endpoint=data.get("endpoint"),
            region=data.get("region"),
            api_key=data.get("apiKey"),
            project_id=data.get("projectId"),
            # YAML reads an unquoted 2024-05-01 as a date
            llm_version=str(llm_version) if llm_version is not None else None,
            temperature=float(data.get("temperature", PROVIDER_DEFAULTS.TEMPERATURE)),
            max_tokens=int(data.get("maxTokens", PROVIDER_DEFAULTS.MAX_TOKENS)),
            timeout_s=int(data.get("timeoutSeconds", PROVIDER_DEFAULTS.TIMEOUT_S)),
            prompts=PromptSettings.from_dict(data.get("prompts")),
            retry=RetrySettings.from_dict(data.get("retry")),
        )


@dataclass(frozen=True)
class SimilaritySettings:
    """The similarity section."""
    type: str = SIMILARITY_DEFAULTS.MATCHER_TYPE
    threshold: float = SIMILARITY_DEFAULTS.THRESHOLD
    few_shot: Optional[int] = None

    def __post_init__(self):
        if not 0.0 <= self.threshold <= 1.0:
            raise ConfigurationError(f"similarity.threshold must be in [0,1], got {self.threshold}")
        if self.few_shot is not None and self.few_shot < 0:
            raise ConfigurationError(f"similarity.fewShot must be >= 0, got {self.few_shot}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SimilaritySettings":
        data = data or {}
        few_shot = data.get("fewShot")
        return cls(
            type=str(data.get("type") or SIMILARITY_DEFAULTS.MATCHER_TYPE).strip().lower(),
            threshold=float(data.get("threshold", SIMILARITY_DEFAULTS.THRESHOLD)),
            few_shot=int(few_shot) if few_shot is not None else None,
        )


@dataclass(frozen=True)
class StorageSettings:
    """
    The storage section.

    ``file`` storage reads ``path``; ``s3`` storage reads
    ``bucket``/``prefix``/``filename`` in ``region``; ``cos`` storage reads
    the same object coordinates from ``endpoint`` using HMAC keys.
    """
    type: str
    path: Optional[str] = None
    region: Optional[str] = None
    bucket: Optional[str] = None
    prefix: str = ""
    filename: Optional[str] = None
    endpoint: Optional[str] = None
    hmac_access_key_id: Optional[str] = None
    hmac_secret_access_key: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.type:
            raise ConfigurationError("storage.type is required")
        if self.type == "file" and not self.path:
            raise ConfigurationError("storage.path must be configured for file storage")
        if self.type == "s3":
            if not self.bucket or not self.filename:
                raise ConfigurationError("Storage bucket and filename must be configured for s3")
            if not self.region:
                raise ConfigurationError("Storage region must be configured for s3")
        if self.type == "cos":
            if not self.bucket or not self.filename:
                raise ConfigurationError("Storage bucket and filename must be configured for cos")
            if not self.endpoint:
                raise ConfigurationError("Storage endpoint must be configured for cos")
            if not self.hmac_access_key_id or not self.hmac_secret_access_key:
                raise ConfigurationError("HMAC access key id and secret must be configured for cos")

    @property
    def s3_key(self) -> str:
        """Object key built from prefix and filename, without a leading slash."""
        prefix = (self.prefix or "").strip()
        filename = (self.filename or "").strip()
        key = f"{prefix}/{filename}" if prefix else filename
        return key.lstrip("/")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StorageSettings":
        data = data or {}
        return cls(
            type=str(data.get("type") or "").strip().lower(),
            path=data.get("path"),
            region=data.get("region"),
            bucket=data.get("bucket"),
            prefix=data.get("prefix") or "",
            filename=data.get("filename"),
            endpoint=data.get("endpoint"),
            hmac_access_key_id=data.get("hmacAccessKeyId"),
            hmac_secret_access_key=data.get("hmacSecretAccessKey"),
        )


@dataclass(frozen=True)
class AppConfig:
    """Complete, validated application configuration."""
    llm: LlmSettings
    storage: StorageSettings
    similarity: SimilaritySettings = field(default_factory=SimilaritySettings)
    always_call_llm: bool = False
    source_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source_path: Optional[str] = None) -> "AppConfig":
        """
        Build the config from a parsed YAML mapping.

        ALWAYS_CALL_LLM, when set in the environment, overrides alwaysCallLlm.
        """
        data = _expand_env(data)
        env_override = os.getenv(ENV_ALWAYS_CALL_LLM)
        if env_override:
            always_call_llm = _parse_bool(env_override)
        else:
            always_call_llm = _parse_bool(data.get("alwaysCallLlm"), default=False)

        return cls(
            llm=LlmSettings.from_dict(data.get("llm")),
            storage=StorageSettings.from_dict(data.get("storage")),
            similarity=SimilaritySettings.from_dict(data.get("similarity")),
            always_call_llm=always_call_llm,
            source_path=source_path,
        )


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from YAML.

    Args:
        path: Config file path; defaults to the APP_CONFIG_PATH env var

    Returns:
        Validated AppConfig

    Raises:
        ConfigurationError: If the path is unset, unreadable, or invalid
    """
    path = path or os.getenv(ENV_APP_CONFIG_PATH)
    if not path or not path.strip():
        raise ConfigurationError(f"{ENV_APP_CONFIG_PATH} not set")

    config_file = Path(path)
    if not config_file.exists():
        raise ConfigurationError("Config file not found", config_path=path)

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse config: {e}", config_path=path) from e

    if not isinstance(data, dict):
        raise ConfigurationError("Config root must be a mapping", config_path=path)

    try:
        config = AppConfig.from_dict(data, source_path=path)
    except ConfigurationError as e:
        e.config_path = e.config_path or path
        raise
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid config value: {e}", config_path=path) from e

    logger.info(
        f"Loaded config from {path}: llm={config.llm.type}, storage={config.storage.type}, "
        f"threshold={config.similarity.threshold}, always_call_llm={config.always_call_llm}"
    )
    return config
