"""Vendor adapters and the service manager that dispatches to them."""

from .anthropic_provider import ClaudeProvider
from .base import BaseProvider
from .google_provider import GeminiProvider
from .manager import ServiceManager
from .ollama_provider import OllamaProvider
from .openai_compat import OpenAICompatibleProvider
from .openai_provider import OpenAIProvider
from .openai_responses_provider import OpenAIResponsesProvider
from .qwen_provider import QwenProvider
from .xai_provider import XAIProvider

__all__ = [
    "BaseProvider",
    "ClaudeProvider",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenAIResponsesProvider",
    "QwenProvider",
    "ServiceManager",
    "XAIProvider",
]
