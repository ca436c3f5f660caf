"""Knowledge base model and loaders."""

from .models import KnowledgeEntry
from .kb_loader import KnowledgeBase, LOADERS, describe, load_knowledge_base, parse_entries

__all__ = [
    "KnowledgeEntry",
    "KnowledgeBase",
    "LOADERS",
    "describe",
    "load_knowledge_base",
    "parse_entries",
]
