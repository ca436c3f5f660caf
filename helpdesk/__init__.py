"""
Helpdesk Engine

Answers support questions from a curated knowledge base, falls back to an
LLM provider when no entry matches well enough, and flags answers that need
a human.
"""

__version__ = "1.0.0"
