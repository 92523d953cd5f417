"""Suggestion engine access."""

from autopr.llm.registry import create_chat_model, get_provider_factory, register_provider
from autopr.llm.suggestions import SuggestionEngine, parse_change_set

__all__ = [
    "SuggestionEngine",
    "create_chat_model",
    "get_provider_factory",
    "parse_change_set",
    "register_provider",
]
