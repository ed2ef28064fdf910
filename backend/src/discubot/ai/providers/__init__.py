"""LLM providers used for discussion analysis and custom replies.

Usage:
    from discubot.ai.providers import create_provider

    provider = create_provider(provider_type="anthropic", api_key="sk-ant-...")
    response = provider.complete(
        system_prompt="You are...",
        user_prompt="Summarize...",
        json_output=True,
    )
"""

import logging
from typing import Literal

from discubot.ai.providers.base import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

ProviderType = Literal["openai", "anthropic"]

DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-5",
    "openai": "gpt-4o-mini",
}


def create_provider(
    provider_type: ProviderType,
    api_key: str,
    model: str | None = None,
) -> LLMProvider:
    """Factory function to create LLM providers.

    Args:
        provider_type: The provider to use ("openai" or "anthropic")
        api_key: API key for the provider
        model: Optional model override (uses provider default if not specified)

    Returns:
        Configured LLMProvider instance

    Raises:
        ValueError: If provider_type is unknown or api_key is missing
    """
    if not api_key:
        raise ValueError(f"API key is required for {provider_type} provider")

    if provider_type == "anthropic":
        from discubot.ai.providers.anthropic_provider import AnthropicProvider

        return AnthropicProvider(api_key=api_key, model=model or DEFAULT_MODELS["anthropic"])

    elif provider_type == "openai":
        from discubot.ai.providers.openai_provider import OpenAIProvider

        return OpenAIProvider(api_key=api_key, model=model or DEFAULT_MODELS["openai"])

    else:
        raise ValueError(
            f"Unknown provider type: {provider_type}. "
            f"Supported providers: anthropic, openai"
        )


__all__ = [
    "DEFAULT_MODELS",
    "LLMProvider",
    "LLMResponse",
    "ProviderType",
    "create_provider",
]
