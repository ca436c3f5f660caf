"""
Knowledge base loading.

The knowledge base is a JSON (or YAML) array of objects:

    [{"id": 1, "question": "...", "answer": "...", "escalation": false}, ...]

It is loaded once at startup into an immutable tuple of KnowledgeEntry.
Storage backends are picked by storage.type through LOADERS:

    file  local JSON/YAML file at storage.path
    s3    AWS S3 object bucket/prefix/filename in storage.region
    cos   IBM Cloud Object Storage object, read through its S3-compatible
          endpoint with HMAC credentials
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Tuple

import boto3
import yaml
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from helpdesk.config.constants import (
    COS_SIGNING_REGION,
    ESCALATION_FALSE_VALUES,
    ESCALATION_TRUE_VALUES,
)
from helpdesk.config.settings import StorageSettings
from helpdesk.exceptions.exceptions import ConfigurationError, KnowledgeBaseError
from helpdesk.knowledge.models import KnowledgeEntry

logger = logging.getLogger(__name__)

KnowledgeBase = Tuple[KnowledgeEntry, ...]

# COS wants path-style addressing (bucket in the path, not the host)
COS_BOTO_CONFIG = Config(s3={"addressing_style": "path"})


def _parse_escalation(value: Any, position: int, source: str) -> bool:
    """
    Read the escalation flag.

    Booleans pass through; 0/1 and strings such as "true"/"false"/"yes"/"no"
    (as produced by spreadsheet or YAML exports) are converted. Anything
    else is rejected rather than guessed.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ESCALATION_TRUE_VALUES:
            return True
        if text in ESCALATION_FALSE_VALUES:
            return False
    raise KnowledgeBaseError(f"Entry #{position} has an invalid escalation flag: {value!r}", source=source)


def parse_entries(records: Any, source: str) -> KnowledgeBase:
    """
    Convert parsed JSON/YAML records into KnowledgeEntry objects.

    Accepts either "escalation" or "escalate" for the flag. A missing id
    defaults to the 1-based position.

    Raises:
        KnowledgeBaseError: If the payload is not a list or an entry is incomplete
    """
    if not isinstance(records, list):
        raise KnowledgeBaseError(
            f"Knowledge base must be a list of entries, got {type(records).__name__}",
            source=source,
        )

    entries = []
    for position, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise KnowledgeBaseError(f"Entry #{position} is not an object", source=source)

        question = record.get("question")
        answer = record.get("answer")
        if not question or not answer:
            raise KnowledgeBaseError(f"Entry #{position} is missing question or answer", source=source)

        escalate = _parse_escalation(record.get("escalation", record.get("escalate")), position, source)
        try:
            entry_id = int(record.get("id", position))
        except (TypeError, ValueError) as e:
            raise KnowledgeBaseError(f"Entry #{position} has a non-integer id", source=source) from e

        entries.append(KnowledgeEntry(
            id=entry_id,
            question=str(question),
            answer=str(answer),
            escalate=escalate,
        ))

    return tuple(entries)


def _decode(payload: str, source: str) -> Any:
    """Parse JSON, or YAML for .yaml/.yml sources."""
    try:
        if source.endswith((".yaml", ".yml")):
            return yaml.safe_load(payload)
        return json.loads(payload)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise KnowledgeBaseError(f"Cannot parse knowledge base: {e}", source=source) from e


def load_from_file(storage: StorageSettings) -> KnowledgeBase:
    """Load the knowledge base from a local JSON or YAML file."""
    path = Path(storage.path)
    if not path.exists():
        raise KnowledgeBaseError("Knowledge base file not found", source=str(path))

    try:
        payload = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise KnowledgeBaseError(f"Knowledge base is not valid UTF-8: {e}", source=str(path)) from e
    except OSError as e:
        raise KnowledgeBaseError(f"Cannot read knowledge base: {e}", source=str(path)) from e

    return parse_entries(_decode(payload, str(path)), str(path))


def _read_object(client, bucket: str, key: str, source: str) -> KnowledgeBase:
    """Fetch bucket/key with an S3-compatible client and parse it."""
    try:
        response = client.get_object(Bucket=bucket, Key=key)
        payload = response["Body"].read().decode("utf-8")
    except UnicodeDecodeError as e:
        raise KnowledgeBaseError(f"Knowledge base is not valid UTF-8: {e}", source=source) from e
    except (BotoCoreError, ClientError) as e:
        raise KnowledgeBaseError(f"Failed to load KB from {source}: {e}", source=source) from e

    return parse_entries(_decode(payload, key), source)


def load_from_s3(storage: StorageSettings) -> KnowledgeBase:
    """Load the knowledge base from s3://bucket/prefix/filename."""
    key = storage.s3_key
    source = f"s3://{storage.bucket}/{key}"

    try:
        s3 = boto3.client("s3", region_name=storage.region)
    except BotoCoreError as e:
        raise KnowledgeBaseError(f"Cannot create S3 client: {e}", source=source) from e
    return _read_object(s3, storage.bucket, key, source)


def load_from_cos(storage: StorageSettings) -> KnowledgeBase:
    """Load the knowledge base from IBM COS (cos://bucket/prefix/filename)."""
    key = storage.s3_key
    source = f"cos://{storage.bucket}/{key}"
    logger.info(f"Loading knowledge base from {source} via {storage.endpoint}")

    try:
        cos = boto3.client(
            "s3",
            endpoint_url=storage.endpoint,
            aws_access_key_id=storage.hmac_access_key_id,
            aws_secret_access_key=storage.hmac_secret_access_key,
            # Required by the SDK for signing; the endpoint decides the location
            region_name=storage.region or COS_SIGNING_REGION,
            config=COS_BOTO_CONFIG,
        )
    except BotoCoreError as e:
        raise KnowledgeBaseError(f"Cannot create COS client: {e}", source=source) from e
    return _read_object(cos, storage.bucket, key, source)


LOADERS: Dict[str, Callable[[StorageSettings], KnowledgeBase]] = {
    "file": load_from_file,
    "s3": load_from_s3,
    "cos": load_from_cos,
}


def load_knowledge_base(storage: StorageSettings) -> KnowledgeBase:
    """
    Load the knowledge base with the loader registered for storage.type.

    Raises:
        ConfigurationError: If the storage type has no loader
        KnowledgeBaseError: If loading or parsing fails
    """
    loader = LOADERS.get(storage.type)
    if loader is None:
        raise ConfigurationError(
            f"Unsupported storage type: {storage.type}. Available: {', '.join(sorted(LOADERS))}"
        )

    entries = loader(storage)
    logger.info(f"Loaded {len(entries)} knowledge base entries from {storage.type} storage")
    if not entries:
        logger.warning("Knowledge base is empty; every question will go to the LLM")
    return entries


def describe(entries: Iterable[KnowledgeEntry]) -> Dict[str, int]:
    """Counts used by the health endpoint."""
    entries = list(entries)
    return {
        "entries": len(entries),
        "escalating_entries": sum(1 for e in entries if e.escalate),
    }
