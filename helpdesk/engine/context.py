"""
Engine context: everything the routing engine needs, wired once at startup.
"""

import logging
from dataclasses import dataclass

from helpdesk.config.settings import AppConfig
from helpdesk.knowledge.kb_loader import KnowledgeBase, load_knowledge_base
from helpdesk.llm.base import LLMProvider
from helpdesk.llm.factory import create_llm_provider
from helpdesk.llm.prompts import PromptBuilder
from helpdesk.llm.resilient import ResilientInvoker
from helpdesk.similarity import SimilarityMatcher, create_matcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineContext:
    """Immutable bundle of config, KB snapshot, matcher and provider plumbing."""
    config: AppConfig
    kb: KnowledgeBase
    matcher: SimilarityMatcher
    provider: LLMProvider
    invoker: ResilientInvoker
    prompt_builder: PromptBuilder

    async def close(self):
        await self.provider.close()


def build_context(config: AppConfig) -> EngineContext:
    """
    Load the knowledge base and create matcher, provider and invoker.

    Blocking (the KB may come from S3); run it off the event loop when
    called from async code.

    Raises:
        ConfigurationError: Unknown provider/matcher/storage type or bad settings
        KnowledgeBaseError: If the knowledge base cannot be loaded
    """
    kb = load_knowledge_base(config.storage)
    matcher = create_matcher(config.similarity.type)
    provider = create_llm_provider(config.llm)
    invoker = ResilientInvoker(
        provider,
        max_attempts=config.llm.retry.max_attempts,
        base_backoff_ms=config.llm.retry.base_backoff_ms,
    )
    prompt_builder = PromptBuilder.from_settings(config.llm.prompts)

    logger.info(
        f"Engine context ready: {len(kb)} KB entries, matcher={type(matcher).__name__}, "
        f"provider={provider.provider_name}, threshold={config.similarity.threshold}"
    )
    return EngineContext(
        config=config,
        kb=kb,
        matcher=matcher,
        provider=provider,
        invoker=invoker,
        prompt_builder=prompt_builder,
    )
