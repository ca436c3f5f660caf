# tests/conftest.py
import random

import pytest

from helpdesk.config.settings import (
    AppConfig,
    LlmSettings,
    PromptSettings,
    SimilaritySettings,
    StorageSettings,
)
from helpdesk.engine.context import EngineContext
from helpdesk.engine.helpdesk_engine import HelpdeskEngine
from helpdesk.knowledge.models import KnowledgeEntry
from helpdesk.llm.base import LLMConfig, LLMProvider, ProviderResponse
from helpdesk.llm.prompts import PromptBuilder
from helpdesk.llm.resilient import ResilientInvoker
from helpdesk.similarity import CosineSimilarityMatcher


class ScriptedProvider(LLMProvider):
    """Provider that replays a script of answers (str) and failures (exceptions)."""

    def __init__(self, script=None):
        self.script = list(script or [])
        self.requests = []
        super().__init__(LLMConfig(provider="scripted", model="scripted-model"))

    def _validate_config(self) -> None:
        pass

    async def call(self, request):
        self.requests.append(request)
        outcome = self.script.pop(0) if self.script else "Default scripted answer."
        if isinstance(outcome, BaseException):
            raise outcome
        return ProviderResponse(answer_text=outcome)


@pytest.fixture
def password_entry():
    return KnowledgeEntry(id=1, question="How do I reset my password?",
                          answer="Click forgot password", escalate=False)


@pytest.fixture
def sample_kb():
    return (
        KnowledgeEntry(id=1, question="How do I reset my password?",
                       answer="Click forgot password", escalate=False),
        KnowledgeEntry(id=2, question="How do I change my email address?",
                       answer="Go to Settings > Account.", escalate=False),
        KnowledgeEntry(id=3, question="My account has been locked",
                       answer="An agent will unlock it.", escalate=True),
        KnowledgeEntry(id=4, question="How do I request a refund?",
                       answer="Billing will contact you.", escalate=True),
    )


@pytest.fixture
def make_config():
    """Build an AppConfig without touching the filesystem."""
    def _make(threshold=0.8, always_call_llm=False, few_shot=None, template=None,
              preamble="You are a helpdesk assistant.", contact_support_phrase="contact support"):
        return AppConfig(
            llm=LlmSettings(
                type="scripted",
                model_id="scripted-model",
                prompts=PromptSettings(preamble=preamble, template=template,
                                       contact_support_phrase=contact_support_phrase),
            ),
            storage=StorageSettings(type="file", path="unused.json"),
            similarity=SimilaritySettings(threshold=threshold, few_shot=few_shot),
            always_call_llm=always_call_llm,
        )
    return _make


@pytest.fixture
def make_engine(make_config):
    """Build a HelpdeskEngine around a ScriptedProvider; returns (engine, provider)."""
    def _make(kb, script=None, **config_overrides):
        config = make_config(**config_overrides)
        provider = ScriptedProvider(script)
        context = EngineContext(
            config=config,
            kb=tuple(kb),
            matcher=CosineSimilarityMatcher(),
            provider=provider,
            invoker=ResilientInvoker(provider, rng=random.Random(42)),
            prompt_builder=PromptBuilder.from_settings(config.llm.prompts),
        )
        return HelpdeskEngine(context), provider
    return _make


@pytest.fixture
def scripted_provider():
    return ScriptedProvider
