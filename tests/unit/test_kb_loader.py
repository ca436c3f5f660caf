"""
Tests for knowledge base loading from file, S3 and IBM COS.
"""

import io
import json
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from helpdesk.config.settings import StorageSettings
from helpdesk.exceptions.exceptions import ConfigurationError, KnowledgeBaseError
from helpdesk.knowledge import KnowledgeEntry
from helpdesk.knowledge.kb_loader import (
    COS_BOTO_CONFIG,
    LOADERS,
    describe,
    load_from_cos,
    load_from_s3,
    load_knowledge_base,
    parse_entries,
)

RECORDS = [
    {"id": 1, "question": "How do I reset my password?", "answer": "Click forgot password", "escalation": False},
    {"id": 7, "question": "My account is locked", "answer": "An agent will help", "escalation": True},
]


class TestParseEntries:
    """Record validation."""

    def test_parses_records(self):
        entries = parse_entries(RECORDS, "test")
        assert entries == (
            KnowledgeEntry(1, "How do I reset my password?", "Click forgot password", False),
            KnowledgeEntry(7, "My account is locked", "An agent will help", True),
        )
        assert isinstance(entries, tuple)

    def test_escalate_alias_and_defaults(self):
        entries = parse_entries([
            {"question": "q1", "answer": "a1", "escalate": True},
            {"question": "q2", "answer": "a2"},
        ], "test")
        assert [e.id for e in entries] == [1, 2]
        assert [e.escalate for e in entries] == [True, False]

    def test_root_must_be_list(self):
        with pytest.raises(KnowledgeBaseError, match="list"):
            parse_entries({"question": "q"}, "test")

    @pytest.mark.parametrize("record", [
        "not an object",
        {"question": "q only"},
        {"answer": "a only"},
        {"question": "", "answer": "a"},
    ])
    def test_incomplete_entries(self, record):
        with pytest.raises(KnowledgeBaseError):
            parse_entries([record], "test")

    def test_non_integer_id(self):
        with pytest.raises(KnowledgeBaseError, match="non-integer id"):
            parse_entries([{"id": "abc", "question": "q", "answer": "a"}], "test")

    def test_empty_list(self):
        assert parse_entries([], "test") == ()

    @pytest.mark.parametrize("flag,expected", [
        ("false", False),
        ("No", False),
        ("0", False),
        ("", False),
        (0, False),
        ("true", True),
        (" yes ", True),
        ("1", True),
        (1, True),
    ])
    def test_escalation_flag_spellings(self, flag, expected):
        entries = parse_entries([{"question": "q", "answer": "a", "escalation": flag}], "test")
        assert entries[0].escalate is expected

    @pytest.mark.parametrize("flag", ["maybe", 2, 0.5, ["true"]])
    def test_invalid_escalation_flag(self, flag):
        with pytest.raises(KnowledgeBaseError, match="invalid escalation flag"):
            parse_entries([{"question": "q", "answer": "a", "escalation": flag}], "test")


class TestFileStorage:
    """Local JSON and YAML files."""

    def test_json_file(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text(json.dumps(RECORDS), encoding="utf-8")

        entries = load_knowledge_base(StorageSettings(type="file", path=str(path)))

        assert len(entries) == 2
        assert entries[1].escalate is True

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "kb.yaml"
        path.write_text(
            "- question: How do I reset my password?\n"
            "  answer: Click forgot password\n"
            "  escalation: false\n",
            encoding="utf-8",
        )
        entries = load_knowledge_base(StorageSettings(type="file", path=str(path)))
        assert entries[0].answer == "Click forgot password"

    def test_missing_file(self, tmp_path):
        with pytest.raises(KnowledgeBaseError, match="not found"):
            load_knowledge_base(StorageSettings(type="file", path=str(tmp_path / "missing.json")))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text("[{not json", encoding="utf-8")
        with pytest.raises(KnowledgeBaseError, match="Cannot parse"):
            load_knowledge_base(StorageSettings(type="file", path=str(path)))

    def test_non_utf8_file(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_bytes(b'[{"question": "caf\xe9", "answer": "a"}]')
        with pytest.raises(KnowledgeBaseError, match="not valid UTF-8") as exc_info:
            load_knowledge_base(StorageSettings(type="file", path=str(path)))
        assert exc_info.value.source == str(path)

    def test_empty_kb_is_allowed(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text("[]", encoding="utf-8")
        assert load_knowledge_base(StorageSettings(type="file", path=str(path))) == ()

    def test_unknown_storage_type(self):
        with pytest.raises(ConfigurationError, match="Unsupported storage type"):
            load_knowledge_base(StorageSettings(type="ftp"))


class TestS3Storage:
    """S3 objects read through boto3."""

    def setup_method(self):
        self.storage = StorageSettings(type="s3", bucket="helpdesk-kb", prefix="prod",
                                       filename="kb.json", region="eu-west-1")

    def test_reads_object(self):
        s3 = Mock()
        s3.get_object.return_value = {"Body": io.BytesIO(json.dumps(RECORDS).encode("utf-8"))}

        with patch("helpdesk.knowledge.kb_loader.boto3.client", return_value=s3) as mock_client:
            entries = load_knowledge_base(self.storage)

        mock_client.assert_called_once_with("s3", region_name="eu-west-1")
        s3.get_object.assert_called_once_with(Bucket="helpdesk-kb", Key="prod/kb.json")
        assert len(entries) == 2

    def test_client_error_becomes_kb_error(self):
        s3 = Mock()
        s3.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
        )

        with patch("helpdesk.knowledge.kb_loader.boto3.client", return_value=s3):
            with pytest.raises(KnowledgeBaseError) as exc_info:
                load_from_s3(self.storage)

        assert exc_info.value.source == "s3://helpdesk-kb/prod/kb.json"

    def test_non_utf8_object_becomes_kb_error(self):
        s3 = Mock()
        s3.get_object.return_value = {"Body": io.BytesIO(b'[{"question": "caf\xe9", "answer": "a"}]')}

        with patch("helpdesk.knowledge.kb_loader.boto3.client", return_value=s3):
            with pytest.raises(KnowledgeBaseError, match="not valid UTF-8") as exc_info:
                load_from_s3(self.storage)

        assert exc_info.value.source == "s3://helpdesk-kb/prod/kb.json"


class TestCosStorage:
    """IBM COS objects read through the S3-compatible endpoint."""

    def setup_method(self):
        self.storage = StorageSettings(
            type="cos", bucket="helpdesk-kb", prefix="prod", filename="kb.json",
            endpoint="https://s3.eu-de.cloud-object-storage.appdomain.cloud",
            hmac_access_key_id="access-id", hmac_secret_access_key="secret",
        )

    def test_registered(self):
        assert LOADERS["cos"] is load_from_cos
        assert set(LOADERS) == {"file", "s3", "cos"}

    def test_reads_object_with_hmac_credentials(self):
        cos = Mock()
        cos.get_object.return_value = {"Body": io.BytesIO(json.dumps(RECORDS).encode("utf-8"))}

        with patch("helpdesk.knowledge.kb_loader.boto3.client", return_value=cos) as mock_client:
            entries = load_knowledge_base(self.storage)

        mock_client.assert_called_once_with(
            "s3",
            endpoint_url="https://s3.eu-de.cloud-object-storage.appdomain.cloud",
            aws_access_key_id="access-id",
            aws_secret_access_key="secret",
            region_name="eu-central-1",
            config=COS_BOTO_CONFIG,
        )
        assert COS_BOTO_CONFIG.s3 == {"addressing_style": "path"}
        cos.get_object.assert_called_once_with(Bucket="helpdesk-kb", Key="prod/kb.json")
        assert [e.id for e in entries] == [1, 7]

    def test_configured_region_is_used(self):
        storage = StorageSettings(
            type="cos", bucket="b", filename="kb.json", region="us-south",
            endpoint="https://s3.us-south.cloud-object-storage.appdomain.cloud",
            hmac_access_key_id="access-id", hmac_secret_access_key="secret",
        )
        cos = Mock()
        cos.get_object.return_value = {"Body": io.BytesIO(b"[]")}

        with patch("helpdesk.knowledge.kb_loader.boto3.client", return_value=cos) as mock_client:
            assert load_from_cos(storage) == ()

        assert mock_client.call_args.kwargs["region_name"] == "us-south"

    def test_client_error_becomes_kb_error(self):
        cos = Mock()
        cos.get_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "GetObject"
        )

        with patch("helpdesk.knowledge.kb_loader.boto3.client", return_value=cos):
            with pytest.raises(KnowledgeBaseError, match="Failed to load KB") as exc_info:
                load_from_cos(self.storage)

        assert exc_info.value.source == "cos://helpdesk-kb/prod/kb.json"


class TestDescribe:

    def test_counts(self):
        assert describe(parse_entries(RECORDS, "test")) == {"entries": 2, "escalating_entries": 1}
