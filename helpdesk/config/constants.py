"""
Configuration Constants for the Helpdesk engine.

Values here are compile-time defaults. Deployments override the tunable
ones (threshold, retry policy, prompts) through the YAML file referenced by
APP_CONFIG_PATH; see helpdesk.config.settings.
"""

from dataclasses import dataclass
from typing import Tuple

# ============================================================================
# ANSWER TEXT AND LABELS
# ============================================================================

FALLBACK_ANSWER = "Sorry, I don't know the answer to that question."

SOURCE_KB = "kb"
SOURCE_LLM = "llm"
SOURCE_SYSTEM = "system"

ACTION_NONE = "none"
ACTION_NOTIFY_HUMAN = "notify_human"

DEFAULT_CONTACT_SUPPORT_PHRASE = "contact support"
UNKNOWN_ERROR_MESSAGE = "Unknown error"

# ============================================================================
# HOST MESSAGES
# ============================================================================
# Returned by the web and CLI hosts for requests that never reach the engine.

MSG_WARMED = "Helpdesk engine warmed up."
MSG_MISSING_QUESTION = "Please provide a question."
MSG_INTERNAL_ERROR = "An internal error occurred. A support agent has been notified."
WARMUP_SOURCE = "warmup"
KEY_QUESTION = "question"

# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================

ENV_APP_CONFIG_PATH = "APP_CONFIG_PATH"
ENV_ALWAYS_CALL_LLM = "ALWAYS_CALL_LLM"

# ============================================================================
# KNOWLEDGE BASE STORAGE
# ============================================================================

# Accepted spellings of the per-entry escalation flag (lowercased)
ESCALATION_TRUE_VALUES = frozenset({"true", "yes", "y", "1", "on"})
ESCALATION_FALSE_VALUES = frozenset({"false", "no", "n", "0", "off", ""})

# botocore needs a region to sign COS requests; the endpoint picks the location
COS_SIGNING_REGION = "eu-central-1"

# ============================================================================
# SIMILARITY CONSTANTS
# ============================================================================

@dataclass(frozen=True)
class SimilarityDefaults:
    """
    Defaults for knowledge base matching.

    Usage in code:
        from helpdesk.config.constants import SIMILARITY_DEFAULTS
        if score >= SIMILARITY_DEFAULTS.THRESHOLD:
            # KB answer is trusted
    """

    MATCHER_TYPE: str = "cosine"
    THRESHOLD: float = 0.8
    TOKEN_PATTERN: str = r"\b\w+\b"

    def __post_init__(self):
        """Validate threshold is a similarity score."""
        if not 0.0 <= self.THRESHOLD <= 1.0:
            raise ValueError(f"THRESHOLD={self.THRESHOLD} outside range [0,1]")

# Global instance
SIMILARITY_DEFAULTS = SimilarityDefaults()

# ============================================================================
# RETRY / BACKOFF CONSTANTS
# ============================================================================

@dataclass(frozen=True)
class RetryDefaults:
    """
    Retry policy for provider calls.

    Backoff is exponential with full jitter: attempt n waits a uniform
    random number of milliseconds in [0, min(base * 2**(n-1), cap)].
    """

    MAX_ATTEMPTS: int = 3
    BASE_BACKOFF_MS: int = 500
    BACKOFF_CAP_MS: int = 5000

    # Cause chain scan bound used by the exception classifier
    CAUSE_SCAN_MAX_DEPTH: int = 10

    def __post_init__(self):
        if self.MAX_ATTEMPTS < 1:
            raise ValueError(f"MAX_ATTEMPTS={self.MAX_ATTEMPTS} must be >= 1")
        if self.BASE_BACKOFF_MS < 0 or self.BACKOFF_CAP_MS < 0:
            raise ValueError("Backoff values must be non-negative")

# Global instance
RETRY_DEFAULTS = RetryDefaults()

# ============================================================================
# EXCEPTION CLASSIFICATION PATTERNS
# ============================================================================
# Lowercase substrings matched against exception messages, in priority order:
# rate limit, invalid request, timeout, auth.

RATE_LIMIT_PATTERNS: Tuple[str, ...] = ("rate limit", "429", "too many requests", "quota exceeded")
INVALID_REQUEST_PATTERNS: Tuple[str, ...] = ("400", "bad request", "invalid request", "validation")
TIMEOUT_PATTERNS: Tuple[str, ...] = ("timed out", "timeout")
AUTH_PATTERNS: Tuple[str, ...] = ("401", "403", "unauthorized", "forbidden", "authentication", "api key")

# ============================================================================
# ENGINE LIFECYCLE CONSTANTS
# ============================================================================

@dataclass(frozen=True)
class EngineDefaults:
    """Engine initialization and prompt defaults."""

    INIT_LOCK_TIMEOUT_S: float = 30.0
    MAX_PROMPT_EXAMPLES: int = 10

# Global instance
ENGINE_DEFAULTS = EngineDefaults()

# ============================================================================
# PROVIDER DEFAULTS
# ============================================================================

@dataclass(frozen=True)
class ProviderDefaults:
    """Defaults applied when the llm section omits a value."""

    TEMPERATURE: float = 0.2
    MAX_TOKENS: int = 512
    TIMEOUT_S: int = 30
    OLLAMA_ENDPOINT: str = "http://localhost:11434"
    OLLAMA_CHAT_PATH: str = "/v1/chat/completions"

    # IBM watsonx.ai
    WATSON_CHAT_PATH: str = "/ml/v1/text/chat"
    WATSON_API_VERSION: str = "2024-05-01"
    WATSON_IAM_URL: str = "https://iam.cloud.ibm.com/identity/token"
    WATSON_IAM_GRANT_TYPE: str = "urn:ibm:params:oauth:grant-type:apikey"
    # Refresh the IAM token this long before it expires
    WATSON_TOKEN_REFRESH_MARGIN_S: int = 60

# Global instance
PROVIDER_DEFAULTS = ProviderDefaults()
