"""
Unit tests for the Bedrock Converse providers and botocore error mapping.
"""

from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, NoCredentialsError, ReadTimeoutError

from helpdesk.exceptions.exceptions import ConfigurationError
from helpdesk.llm.base import LLMConfig, ProviderRequest
from helpdesk.llm.bedrock_provider import (
    BedrockProvider,
    ClaudeBedrockProvider,
    NovaBedrockProvider,
    classify_client_error,
)
from helpdesk.llm.errors import (
    AuthenticationError,
    InvalidRequestError,
    ProviderGenericError,
    ProviderTimeoutError,
    RateLimitError,
)
from helpdesk.llm.resilient import ResilientInvoker


def _client_error(code, status=400):
    return ClientError(
        {"Error": {"Code": code, "Message": f"{code} happened"},
         "ResponseMetadata": {"HTTPStatusCode": status}},
        "Converse",
    )


def _config(**overrides):
    values = dict(provider="claude", region="eu-west-1", system_prompt="You are a helpdesk assistant.")
    values.update(overrides)
    return LLMConfig(**values)


def _converse_output(*texts):
    return {
        "output": {"message": {"role": "assistant", "content": [{"text": t} for t in texts]}},
        "usage": {"inputTokens": 10, "outputTokens": 5},
        "stopReason": "end_turn",
    }


class TestBedrockConfig:
    """Model defaults and required settings."""

    def test_claude_default_model(self):
        assert ClaudeBedrockProvider(_config()).model.startswith("anthropic.claude")

    def test_nova_default_model(self):
        assert NovaBedrockProvider(_config(provider="nova")).model.startswith("amazon.nova")

    def test_explicit_model_wins(self):
        provider = ClaudeBedrockProvider(_config(model="anthropic.claude-3-5-sonnet-20240620-v1:0"))
        assert provider.model == "anthropic.claude-3-5-sonnet-20240620-v1:0"

    def test_region_required(self):
        with pytest.raises(ConfigurationError, match="region"):
            ClaudeBedrockProvider(_config(region=None))

    def test_generic_bedrock_requires_model(self):
        with pytest.raises(ConfigurationError, match="modelId"):
            BedrockProvider(_config(provider="bedrock"))


class TestBedrockCall:
    """Converse request and response handling."""

    @pytest.mark.asyncio
    async def test_successful_call(self):
        """Test the Converse request shape and text extraction."""
        client = Mock()
        client.converse.return_value = _converse_output("Click forgot ", "password ")
        provider = ClaudeBedrockProvider(_config(max_tokens=256, temperature=0.1))

        with patch("helpdesk.llm.bedrock_provider.get_bedrock_client", return_value=client) as mock_get:
            result = await provider.call(ProviderRequest(prompt_text="How do I reset my password?"))

        assert result.answer_text == "Click forgot password"
        mock_get.assert_called_once_with("eu-west-1")
        params = client.converse.call_args.kwargs
        assert params["modelId"] == provider.model
        assert params["messages"][0]["content"] == [{"text": "How do I reset my password?"}]
        assert params["inferenceConfig"] == {"temperature": 0.1, "maxTokens": 256}
        assert params["system"] == [{"text": "You are a helpdesk assistant."}]

    @pytest.mark.asyncio
    async def test_no_system_block_without_preamble(self):
        client = Mock()
        client.converse.return_value = _converse_output("ok")
        provider = NovaBedrockProvider(_config(provider="nova", system_prompt=None))

        with patch("helpdesk.llm.bedrock_provider.get_bedrock_client", return_value=client):
            await provider.call(ProviderRequest(prompt_text="Hi"))

        assert "system" not in client.converse.call_args.kwargs

    @pytest.mark.asyncio
    async def test_extra_fields_become_additional_model_request_fields(self):
        client = Mock()
        client.converse.return_value = _converse_output("ok")
        provider = ClaudeBedrockProvider(_config())

        with patch("helpdesk.llm.bedrock_provider.get_bedrock_client", return_value=client):
            await provider.call(ProviderRequest(prompt_text="Hi", extra_fields={"top_k": 40}))
            await provider.call(ProviderRequest(prompt_text="Hi"))

        with_extra, without_extra = [c.kwargs for c in client.converse.call_args_list]
        assert with_extra["additionalModelRequestFields"] == {"top_k": 40}
        assert "additionalModelRequestFields" not in without_extra

    @pytest.mark.asyncio
    async def test_blank_prompt(self):
        with pytest.raises(InvalidRequestError):
            await ClaudeBedrockProvider(_config()).call(ProviderRequest(prompt_text=" "))

    @pytest.mark.asyncio
    async def test_empty_content(self):
        client = Mock()
        client.converse.return_value = _converse_output()
        with patch("helpdesk.llm.bedrock_provider.get_bedrock_client", return_value=client):
            with pytest.raises(ProviderGenericError, match="No content"):
                await ClaudeBedrockProvider(_config()).call(ProviderRequest(prompt_text="Hi"))

    @pytest.mark.asyncio
    async def test_throttling_through_invoker(self):
        """Test that SDK errors reach the caller as classified ProviderErrors."""
        client = Mock()
        client.converse.side_effect = _client_error("ThrottlingException", 400)
        invoker = ResilientInvoker(ClaudeBedrockProvider(_config()))

        with patch("helpdesk.llm.bedrock_provider.get_bedrock_client", return_value=client):
            with pytest.raises(RateLimitError):
                await invoker.ask_direct(ProviderRequest(prompt_text="Hi"))


class TestClientErrorMapping:
    """botocore ClientError codes and statuses."""

    @pytest.mark.parametrize("code,status,expected", [
        ("ThrottlingException", 400, RateLimitError),
        ("ServiceQuotaExceededException", 400, RateLimitError),
        ("SomethingElse", 429, RateLimitError),
        ("ValidationException", 400, InvalidRequestError),
        ("ModelTimeoutException", 408, ProviderTimeoutError),
        ("ServiceUnavailableException", 504, ProviderTimeoutError),
        ("AccessDeniedException", 403, AuthenticationError),
        ("UnknownAuthThing", 401, AuthenticationError),
        ("InternalServerException", 500, ProviderGenericError),
    ])
    def test_classify_client_error(self, code, status, expected):
        assert type(classify_client_error(_client_error(code, status))) is expected

    def test_generic_error_keeps_status(self):
        error = classify_client_error(_client_error("InternalServerException", 500))
        assert error.status_code == 500


class TestClassifyError:
    """Provider hook for non-ProviderError exceptions."""

    def setup_method(self):
        self.provider = ClaudeBedrockProvider(_config())

    def test_missing_credentials(self):
        assert isinstance(self.provider.classify_error(NoCredentialsError()), AuthenticationError)

    def test_read_timeout(self):
        error = ReadTimeoutError(endpoint_url="https://bedrock-runtime.eu-west-1.amazonaws.com")
        assert isinstance(self.provider.classify_error(error), ProviderTimeoutError)

    def test_wrapped_timeout(self):
        outer = RuntimeError("call failed")
        outer.__cause__ = ReadTimeoutError(endpoint_url="https://example")
        assert isinstance(self.provider.classify_error(outer), ProviderTimeoutError)

    def test_other(self):
        assert isinstance(self.provider.classify_error(RuntimeError("boom")), ProviderGenericError)
