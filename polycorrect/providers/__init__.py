"""Provider adapters.

Every LLM call in the application goes through one of the four adapters
below, selected by the ``Provider`` enum.
"""
from __future__ import annotations

from typing import Dict, Type

from .anthropic import AnthropicAdapter
from .base import ApiColor, CorrectionRequest, Provider, ProviderAdapter
from .deepseek import DeepSeekAdapter
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter
from .transport import HttpTransport, classify_transport_error

ADAPTERS: Dict[Provider, Type[ProviderAdapter]] = {
    Provider.OPENAI: OpenAIAdapter,
    Provider.ANTHROPIC: AnthropicAdapter,
    Provider.GEMINI: GeminiAdapter,
    Provider.DEEPSEEK: DeepSeekAdapter,
}


def get_adapter(provider: Provider, transport: HttpTransport) -> ProviderAdapter:
    """Instantiate the adapter for a provider on a shared transport."""
    return ADAPTERS[provider](transport)


__all__ = [
    "ADAPTERS",
    "AnthropicAdapter",
    "ApiColor",
    "CorrectionRequest",
    "DeepSeekAdapter",
    "GeminiAdapter",
    "HttpTransport",
    "OpenAIAdapter",
    "Provider",
    "ProviderAdapter",
    "classify_transport_error",
    "get_adapter",
]
