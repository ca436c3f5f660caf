"""
Tests for the command line host.
"""

import json
from unittest.mock import AsyncMock, Mock, patch

import pytest

from helpdesk import cli
from helpdesk.engine import Action, AnswerSource, assemble_answer
from helpdesk.exceptions.exceptions import ConfigurationError

LLM_ANSWER = assemble_answer(
    answer_text="Please contact support.",
    confidence=0.4,
    escalate=True,
    source=AnswerSource.LLM,
    action=Action.NOTIFY_HUMAN,
    elapsed_ms=120,
)


@pytest.fixture
def engine():
    engine = Mock()
    engine.resolve = AsyncMock(return_value=LLM_ANSWER)
    engine.close = AsyncMock()
    return engine


@pytest.fixture(autouse=True)
def no_dotenv():
    with patch("helpdesk.cli.load_dotenv"):
        yield


@pytest.fixture
def patched_init(engine):
    with patch("helpdesk.cli.load_config") as mock_load, \
            patch("helpdesk.cli.HelpdeskEngine") as mock_engine_class:
        mock_engine_class.return_value.init.return_value = engine
        yield mock_load


class TestFormatAnswer:

    def test_text(self):
        text = cli.format_answer(LLM_ANSWER)
        assert "Please contact support." in text
        assert "SOURCE: llm" in text
        assert "CONFIDENCE: 40%" in text
        assert "ESCALATION" in text

    def test_json(self):
        assert json.loads(cli.format_answer(LLM_ANSWER, as_json=True))["action"] == "notify_human"


class TestMain:
    """Argument handling and exit codes."""

    def test_single_question(self, patched_init, engine, capsys):
        exit_code = cli.main(["--json", "--config", "app.yaml", "  Where is my invoice?  "])

        assert exit_code == 0
        patched_init.assert_called_once_with("app.yaml")
        engine.resolve.assert_awaited_once_with("Where is my invoice?")
        engine.close.assert_awaited_once()
        assert json.loads(capsys.readouterr().out)["escalation"] is True

    def test_question_required(self, capsys):
        assert cli.main([]) == 1
        assert "question is required" in capsys.readouterr().err

    def test_config_error(self, capsys):
        with patch("helpdesk.cli.load_config", side_effect=ConfigurationError("APP_CONFIG_PATH not set")):
            assert cli.main(["Hello?"]) == 2
        assert "Initialization failed" in capsys.readouterr().err

    def test_interactive(self, patched_init, engine, capsys):
        with patch("builtins.input", side_effect=["How do I reset my password?", "", "exit"]):
            exit_code = cli.main(["--interactive"])

        assert exit_code == 0
        engine.resolve.assert_awaited_once_with("How do I reset my password?")
        assert "Goodbye!" in capsys.readouterr().out

    def test_interactive_eof(self, patched_init, engine):
        with patch("builtins.input", side_effect=EOFError):
            assert cli.main(["-i"]) == 0
        engine.resolve.assert_not_awaited()
        engine.close.assert_awaited_once()

    def test_undecodable_knowledge_base(self, tmp_path, capsys):
        kb_path = tmp_path / "kb.json"
        kb_path.write_bytes(b'[{"question": "caf\xe9", "answer": "a"}]')
        config_path = tmp_path / "app.yaml"
        config_path.write_text(
            "llm: {type: ollama, modelId: mistral}\n"
            f"storage: {{type: file, path: '{kb_path}'}}\n",
            encoding="utf-8",
        )

        assert cli.main(["--config", str(config_path), "Hello?"]) == 2
        assert "not valid UTF-8" in capsys.readouterr().err
