"""Anthropic provider (Claude models, Messages API)."""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import Any, AsyncIterator

import anthropic

from ..capabilities import CLAUDE
from ..errors import AdapterError
from ..models import ChatMessage, ChatResult, ModelDescriptor, ServiceConfig, StreamChunk, TokenUsage
from ..retry import call_with_retries, parse_retry_after
from ..streaming import Delta
from .base import BaseProvider, split_system_prompt

logger = logging.getLogger(__name__)


class ClaudeProvider(BaseProvider):
    """Provider for Anthropic Claude models.

    Handles the Anthropic-specific system message extraction
    (system is a top-level param, not a message role).
    """

    vendor_id = CLAUDE
    supports_streaming = True

    def _client(self, config: ServiceConfig, timeout: float | None = None) -> anthropic.AsyncAnthropic:
        if not config.credential:
            raise AdapterError(self.vendor_id, "An API key is required")
        return anthropic.AsyncAnthropic(
            api_key=config.credential,
            base_url=self.base_url(config),
            timeout=timeout or self.settings.request_timeout,
            max_retries=0,
        )

    def _build_params(self, messages: list[ChatMessage], config: ServiceConfig) -> dict[str, Any]:
        system, turns = split_system_prompt(messages)
        params: dict[str, Any] = {
            "model": config.model_id,
            "messages": [{"role": m.role.value, "content": m.content} for m in turns],
            # The API rejects requests without max_tokens
            "max_tokens": config.max_output_tokens or self.capability.default_max_output_tokens,
        }
        if system:
            params["system"] = system
        params.update(self._sampling_params(config))
        if config.stop_sequences:
            params["stop_sequences"] = list(config.stop_sequences)
        return params

    def _sampling_params(self, config: ServiceConfig) -> dict[str, float]:
        """Temperature and top_p, never both: newer models reject the pair.

        When both are set, the one left at its default is dropped.
        """
        cap = self.capability
        temperature, top_p = config.temperature, config.top_p
        if temperature is not None and top_p is not None:
            if top_p == cap.default_top_p:
                top_p = None
            elif temperature == cap.recommended_temperature:
                temperature = None
        sampling = {}
        if temperature is not None:
            sampling["temperature"] = temperature
        if top_p is not None:
            sampling["top_p"] = top_p
        return sampling

    def _wrap_error(self, exc: BaseException) -> AdapterError:
        if isinstance(exc, anthropic.APIStatusError):
            code = None
            body = exc.body
            if isinstance(body, dict):
                error = body.get("error", body)
                if isinstance(error, dict):
                    code = error.get("type")
            return AdapterError(
                self.vendor_id,
                getattr(exc, "message", None) or str(exc),
                http_status=exc.status_code,
                cause=exc,
                code=code,
                retry_after=parse_retry_after(exc.response.headers.get("retry-after")),
            )
        if isinstance(exc, anthropic.APITimeoutError):
            return AdapterError(self.vendor_id, "Request timed out", cause=exc)
        if isinstance(exc, anthropic.APIConnectionError):
            return AdapterError(self.vendor_id, f"Cannot reach {self.vendor_id}: {exc}", cause=exc)
        return super()._wrap_error(exc)

    async def _call(self, method: Any, **kwargs: Any) -> Any:
        try:
            return await method(**kwargs)
        except anthropic.AnthropicError as e:
            raise self._wrap_error(e) from e

    async def chat(self, messages: list[ChatMessage], config: ServiceConfig) -> ChatResult:
        params = self._build_params(messages, config)
        async with self._client(config) as client:
            response = await call_with_retries(
                lambda: self._call(client.messages.create, **params), self.settings, "chat"
            )

        text = "".join(
            block.text for block in (response.content or []) if getattr(block, "type", None) == "text"
        )
        if not text:
            raise AdapterError(self.vendor_id, "No text content in response")

        usage = None
        if response.usage:
            usage = TokenUsage.from_counts(response.usage.input_tokens, response.usage.output_tokens)
        return ChatResult(
            text=text,
            vendor_id=self.vendor_id,
            model_id=response.model or config.model_id,
            usage=usage,
        )

    async def stream_chat(self, messages: list[ChatMessage], config: ServiceConfig) -> AsyncIterator[StreamChunk]:
        params = self._build_params(messages, config)
        client = self._client(config)
        try:
            stream = await call_with_retries(
                lambda: self._call(client.messages.create, stream=True, **params), self.settings, "stream"
            )
        except BaseException:
            await client.close()
            raise
        async with aclosing(self._normalize(self._deltas(stream), config, on_close=client.close)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def _deltas(self, stream: Any) -> AsyncIterator[Delta]:
        try:
            async for event in stream:
                kind = getattr(event, "type", "")
                if kind == "message_start":
                    yield Delta(model=getattr(event.message, "model", None))
                elif kind == "content_block_delta" and getattr(event.delta, "type", "") == "text_delta":
                    yield Delta(text=event.delta.text)
                elif kind == "message_stop":
                    yield Delta(done=True)
                    return
        finally:
            await stream.close()

    async def test_connection(self, config: ServiceConfig) -> bool:
        try:
            async with self._client(config, timeout=self.settings.probe_timeout) as client:
                await self._call(client.models.list, limit=1)
            return True
        except Exception as e:
            logger.info("claude connection test failed: %s", e)
            return False

    async def get_available_models(self, config: ServiceConfig) -> list[ModelDescriptor]:
        async with self._client(config) as client:
            page = await call_with_retries(
                lambda: self._call(client.models.list, limit=1000), self.settings, "list models"
            )
        return [
            ModelDescriptor(id=m.id, display_name=getattr(m, "display_name", None) or m.id)
            for m in page.data
        ]
