from __future__ import annotations

from collections.abc import Callable
from typing import Any

# Registry for chat model provider factory functions
# Signature: (settings: Any) -> BaseChatModel
PROVIDER_REGISTRY: dict[str, Callable[[Any], Any]] = {}


def register_provider(name: str, factory: Callable[[Any], Any]) -> None:
    """Register a new LLM provider factory."""
    PROVIDER_REGISTRY[name] = factory


def get_provider_factory(name: str) -> Callable[[Any], Any]:
    """Get the factory function for a provider."""
    if name not in PROVIDER_REGISTRY:
        raise ValueError(f"Unknown LLM provider: {name}")
    return PROVIDER_REGISTRY[name]


def create_chat_model(settings: Any) -> Any:
    """Build the chat model selected by ``settings.llm_provider``."""
    return get_provider_factory(settings.llm_provider)(settings)


# ============================================================================
# Built-in Provider Factories
# ============================================================================


def create_openai_model(settings: Any) -> Any:
    """Factory for OpenAI models."""
    from langchain_openai import ChatOpenAI

    api_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None

    return ChatOpenAI(
        model=settings.llm_model,
        api_key=api_key,
        base_url=settings.openai_api_base,
        temperature=settings.llm_temperature,
    )


def create_openai_compatible_model(settings: Any) -> Any:
    """Factory for OpenAI-compatible models."""
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=settings.llm_model,
        api_key=settings.openai_compatible_api_key.get_secret_value(),
        base_url=settings.openai_compatible_base_url,
        temperature=settings.llm_temperature,
    )


def create_mock_model(settings: Any) -> Any:
    """Factory for the offline mock model."""
    from autopr.llm.mock import MockLLM

    return MockLLM()


# Register built-ins
register_provider("openai", create_openai_model)
register_provider("openai_compatible", create_openai_compatible_model)
register_provider("mock", create_mock_model)
