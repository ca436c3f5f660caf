"""Routing engine, engine context and final answer assembly."""

from .response import Action, AnswerSource, FinalAnswer, assemble_answer
from .context import EngineContext, build_context
from .helpdesk_engine import HelpdeskEngine, LazyEngine

__all__ = [
    "Action",
    "AnswerSource",
    "FinalAnswer",
    "assemble_answer",
    "EngineContext",
    "build_context",
    "HelpdeskEngine",
    "LazyEngine",
]
