"""
Routing decision engine.

For each question the engine looks up the knowledge base and decides
between three outcomes:

1. KB answer: a confident match is returned verbatim.
2. LLM answer: weak or no match (or alwaysCallLlm) sends a prompt built
   from the question and KB examples to the provider.
3. Escalation: the answer is flagged for a human when the KB entry says
   so, when no entry matched, when the LLM suggests contacting support, or
   when the provider failed permanently.

Provider failures never leave resolve(); they become a fallback answer.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from helpdesk.config.constants import ENGINE_DEFAULTS, FALLBACK_ANSWER
from helpdesk.config.settings import AppConfig, load_config
from helpdesk.exceptions.exceptions import (
    EngineInitializationTimeoutError,
    EngineNotInitializedError,
)
from helpdesk.knowledge.models import KnowledgeEntry
from helpdesk.llm.base import ProviderRequest
from helpdesk.llm.errors import ProviderError
from helpdesk.similarity.base import MatchResult
from .context import EngineContext, build_context
from .response import Action, AnswerSource, FinalAnswer, assemble_answer

logger = logging.getLogger(__name__)


class HelpdeskEngine:
    """
    Answers helpdesk questions from the KB or an LLM.

    Usage:
        engine = HelpdeskEngine(build_context(load_config()))
        answer = await engine.resolve("How do I reset my password?")

    or, letting the engine load APP_CONFIG_PATH itself:
        engine = HelpdeskEngine().init()
    """

    def __init__(self, context: Optional[EngineContext] = None):
        self.context = context

    def init(self, config: Optional[AppConfig] = None) -> "HelpdeskEngine":
        """
        Load config (APP_CONFIG_PATH when not given), KB and provider.

        Blocking; see LazyEngine for use from async hosts.
        """
        logger.info("Initializing Helpdesk Engine")
        config = config or load_config()
        self.context = build_context(config)
        logger.info("Helpdesk Engine initialized")
        return self

    @property
    def initialized(self) -> bool:
        return self.context is not None

    def _require_context(self) -> EngineContext:
        if self.context is None:
            raise EngineNotInitializedError("Helpdesk Engine not initialized. Did you call init()?")
        return self.context

    async def resolve(
        self,
        question: str,
        kb: Optional[Sequence[KnowledgeEntry]] = None,
        threshold: Optional[float] = None,
        always_call_llm: Optional[bool] = None,
    ) -> FinalAnswer:
        """
        Route one question and build the final answer.

        Args:
            question: Trimmed, non-blank user question
            kb: KB snapshot to search; defaults to the loaded one
            threshold: Minimum similarity for a KB answer; defaults to config
            always_call_llm: Force the LLM path; defaults to config

        Returns:
            FinalAnswer

        Raises:
            EngineNotInitializedError: If called before init()
        """
        ctx = self._require_context()
        kb = ctx.kb if kb is None else tuple(kb)
        threshold = ctx.config.similarity.threshold if threshold is None else threshold
        always_call_llm = ctx.config.always_call_llm if always_call_llm is None else always_call_llm

        match = ctx.matcher.find_best_match(question, kb, threshold)

        # Decided once here; neither path recomputes it
        needs_escalate = match.best_entry is None or match.best_entry.escalate
        action = Action.NOTIFY_HUMAN if needs_escalate else Action.NONE

        logger.debug(
            f"KB lookup: best_score={match.best_score:.3f}, threshold={threshold}, "
            f"entry={match.best_entry.id if match.best_entry else None}, action={action.value}"
        )

        if always_call_llm or match.should_invoke_llm:
            return await self._answer_from_llm(ctx, question, kb, match, action)
        return self._answer_from_kb(match, needs_escalate, action)

    def _answer_from_kb(self, match: MatchResult, needs_escalate: bool, action: Action) -> FinalAnswer:
        entry = match.best_entry
        return assemble_answer(
            answer_text=entry.answer if entry else FALLBACK_ANSWER,
            confidence=match.best_score,
            escalate=needs_escalate,
            source=AnswerSource.KB,
            action=action,
            elapsed_ms=0,
        )

    async def _answer_from_llm(self, ctx: EngineContext, question: str, kb: Sequence[KnowledgeEntry],
                               match: MatchResult, action: Action) -> FinalAnswer:
        prompt = ctx.prompt_builder.build(question, self._prompt_examples(ctx, question, kb))

        try:
            response = await ctx.invoker.ask(ProviderRequest(prompt_text=prompt))
        except ProviderError as e:
            logger.warning(f"LLM error ({e.kind}, retryable={e.retryable}), returning fallback: {e}")
            return assemble_answer(
                answer_text=FALLBACK_ANSWER,
                confidence=0.0,
                escalate=e.not_retryable,
                source=AnswerSource.LLM,
                action=action,
                elapsed_ms=0,
            )

        answer_text = response.answer_text or FALLBACK_ANSWER
        return assemble_answer(
            answer_text=answer_text,
            confidence=match.best_score,
            escalate=self._suggests_contact_support(ctx, response.answer_text),
            source=AnswerSource.LLM,
            action=action,
            elapsed_ms=response.elapsed_ms,
        )

    @staticmethod
    def _prompt_examples(ctx: EngineContext, question: str,
                         kb: Sequence[KnowledgeEntry]) -> List[KnowledgeEntry]:
        few_shot = ctx.config.similarity.few_shot
        if few_shot is not None:
            return ctx.matcher.top_k(question, kb, few_shot)
        return list(kb[:ctx.prompt_builder.max_examples])

    @staticmethod
    def _suggests_contact_support(ctx: EngineContext, answer: Optional[str]) -> bool:
        phrase = ctx.config.llm.prompts.contact_support_phrase.strip()
        return bool(answer) and phrase.lower() in answer.lower()

    async def close(self):
        if self.context is not None:
            await self.context.close()


class LazyEngine:
    """
    Process-wide engine handle initialized on first use.

    Concurrent first requests wait on one lock; only the first builds the
    engine. Waiting longer than timeout_s raises
    EngineInitializationTimeoutError.
    """

    def __init__(self, config_loader: Callable[[], AppConfig] = load_config):
        self._config_loader = config_loader
        self._engine: Optional[HelpdeskEngine] = None
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._engine is not None

    def _initialize(self) -> HelpdeskEngine:
        return HelpdeskEngine().init(self._config_loader())

    async def get(self, timeout_s: float = ENGINE_DEFAULTS.INIT_LOCK_TIMEOUT_S) -> HelpdeskEngine:
        if self._engine is not None:
            return self._engine

        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=timeout_s)
        except asyncio.TimeoutError as e:
            raise EngineInitializationTimeoutError(
                f"Could not acquire engine lock within {timeout_s:.0f} seconds - potential deadlock",
                timeout_s=timeout_s,
            ) from e

        try:
            if self._engine is None:
                logger.info("Initializing engine on first request")
                loop = asyncio.get_running_loop()
                self._engine = await loop.run_in_executor(None, self._initialize)
                logger.info("Engine initialized successfully")
            return self._engine
        finally:
            self._lock.release()

    async def close(self):
        if self._engine is not None:
            await self._engine.close()
            self._engine = None
