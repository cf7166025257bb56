"""Service manager: maps vendor ids to adapters and dispatches calls.

The adapter table is built once at construction. Adapters are stateless, so
one manager can be shared by every concurrent caller.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Iterable

from .. import capabilities
from ..errors import UnsupportedOperationError, UnsupportedVendorError, ValidationError
from ..models import (
    EXT_USE_STATEFUL_API,
    ChatMessage,
    ChatResult,
    ModelDescriptor,
    ServiceConfig,
    StreamChunk,
    ValidationResult,
)
from ..settings import AdapterSettings
from ..validator import ConfigValidator
from .anthropic_provider import ClaudeProvider
from .base import BaseProvider
from .google_provider import GeminiProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .openai_responses_provider import OpenAIResponsesProvider
from .qwen_provider import QwenProvider
from .xai_provider import XAIProvider

logger = logging.getLogger(__name__)

DEFAULT_PROVIDERS: tuple[type[BaseProvider], ...] = (
    OpenAIProvider,
    OpenAIResponsesProvider,
    ClaudeProvider,
    GeminiProvider,
    XAIProvider,
    OllamaProvider,
    QwenProvider,
)


class ServiceManager:
    """Routes chat, streaming, probe and discovery calls to the right vendor adapter.

    Usage:
        async with ServiceManager() as manager:
            result = await manager.chat("claude", messages, config)
            async for chunk in manager.stream_chat("gemini", messages, config):
                ...
    """

    def __init__(
        self,
        settings: AdapterSettings | None = None,
        providers: Iterable[BaseProvider] | None = None,
    ) -> None:
        self.settings = settings or AdapterSettings.from_env()
        self.validator = ConfigValidator()
        if providers is None:
            providers = [cls(self.settings) for cls in DEFAULT_PROVIDERS]
        self._providers: dict[str, BaseProvider] = {p.vendor_id: p for p in providers}

    async def __aenter__(self) -> ServiceManager:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def supported_vendors(self) -> list[str]:
        return list(self._providers)

    def get_adapter(self, vendor_id: str) -> BaseProvider:
        try:
            return self._providers[vendor_id]
        except KeyError:
            raise UnsupportedVendorError(vendor_id) from None

    def resolve(self, vendor_id: str, config: ServiceConfig) -> BaseProvider:
        """Adapter for a vendor, honoring the stateful-API switch on plain OpenAI."""
        if (
            vendor_id == capabilities.OPENAI
            and config.extension(EXT_USE_STATEFUL_API)
            and capabilities.OPENAI_RESPONSES in self._providers
        ):
            vendor_id = capabilities.OPENAI_RESPONSES
        return self.get_adapter(vendor_id)

    def validate(self, vendor_id: str, config: ServiceConfig) -> ValidationResult:
        return self.validator.validate(vendor_id, config)

    def _checked(self, vendor_id: str, config: ServiceConfig) -> BaseProvider:
        provider = self.resolve(vendor_id, config)
        result = self.validator.validate(provider.vendor_id, config)
        if not result.valid:
            raise ValidationError(provider.vendor_id, result.errors)
        return provider

    async def chat(self, vendor_id: str, messages: list[ChatMessage], config: ServiceConfig) -> ChatResult:
        provider = self._checked(vendor_id, config)
        logger.info("Dispatching chat to %s (model=%s, %d messages)", provider.vendor_id, config.model_id, len(messages))
        return await provider.chat(messages, config)

    def stream_chat(
        self, vendor_id: str, messages: list[ChatMessage], config: ServiceConfig
    ) -> AsyncIterator[StreamChunk]:
        """Start a streaming call.

        Raises eagerly (before iteration) for unknown vendors, invalid configs
        and adapters without streaming; callers fall back to ``chat`` on
        UnsupportedOperationError. Close the returned iterator with
        ``aclose()`` to release the vendor connection early.
        """
        provider = self._checked(vendor_id, config)
        if not provider.supports_streaming:
            raise UnsupportedOperationError(provider.vendor_id, "streaming")
        logger.info("Dispatching stream to %s (model=%s, %d messages)", provider.vendor_id, config.model_id, len(messages))
        return provider.stream_chat(messages, config)

    async def test_connection(self, vendor_id: str, config: ServiceConfig) -> bool:
        provider = self.resolve(vendor_id, config)
        ok = await provider.test_connection(config)
        logger.info("Connection test for %s: %s", provider.vendor_id, "ok" if ok else "failed")
        return ok

    async def get_available_models(self, vendor_id: str, config: ServiceConfig) -> list[ModelDescriptor]:
        return await self.resolve(vendor_id, config).get_available_models(config)

    async def retrieve_response(self, vendor_id: str, handle: str, config: ServiceConfig) -> ChatResult:
        provider = self.resolve(vendor_id, config)
        retrieve = getattr(provider, "retrieve_response", None)
        if retrieve is None:
            raise UnsupportedOperationError(provider.vendor_id, "response retrieval")
        return await retrieve(handle, config)

    async def delete_response(self, vendor_id: str, handle: str, config: ServiceConfig) -> bool:
        provider = self.resolve(vendor_id, config)
        delete = getattr(provider, "delete_response", None)
        if delete is None:
            raise UnsupportedOperationError(provider.vendor_id, "response deletion")
        return await delete(handle, config)

    def get_defaults(self, vendor_id: str) -> ServiceConfig:
        """Config pre-filled with the vendor's default model and parameters."""
        self.get_adapter(vendor_id)
        return ServiceConfig(vendor_id=vendor_id, **capabilities.get_defaults(vendor_id))

    def get_suggested_models(self, vendor_id: str) -> list[ModelDescriptor]:
        """Static model suggestions for settings forms, no network call."""
        self.get_adapter(vendor_id)
        return [
            ModelDescriptor(id=model_id, display_name=model_id)
            for model_id in capabilities.get_capability(vendor_id).suggested_models
        ]

    async def close(self) -> None:
        """Close all adapters."""
        for provider in self._providers.values():
            await provider.close()
