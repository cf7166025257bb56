"""Shared adapter for vendors exposing an OpenAI-compatible Chat Completions API.

OpenAI itself, xAI Grok, Alibaba Qwen (DashScope compatible mode) and Ollama
all speak this protocol through the openai SDK with a different base URL.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import Any, AsyncIterator

import openai

from ..errors import AdapterError
from ..models import ChatMessage, ChatResult, ModelDescriptor, ServiceConfig, StreamChunk, TokenUsage
from ..retry import call_with_retries, parse_retry_after
from ..streaming import Delta
from .base import BaseProvider

logger = logging.getLogger(__name__)

# Error codes OpenAI uses when a model only accepts its default temperature
_TEMPERATURE_REJECTION_CODES = frozenset({"unsupported_value", "unsupported_parameter"})


def is_unsupported_temperature(error: AdapterError) -> bool:
    """True for the vendor error meaning "this model does not accept a custom temperature"."""
    return error.code in _TEMPERATURE_REJECTION_CODES and error.param == "temperature"


class OpenAICompatibleProvider(BaseProvider):
    """Chat Completions adapter parameterized by base URL, token field and model filter."""

    supports_streaming = True

    # Substring a model id must contain to be listed; None lists everything
    model_filter: str | None = None
    max_tokens_field = "max_tokens"
    # Retry once without temperature when the model rejects a custom value
    retry_without_temperature = False
    # Sent when the config carries no credential (local servers)
    placeholder_credential: str | None = None

    def _client(self, config: ServiceConfig, timeout: float | None = None) -> openai.AsyncOpenAI:
        # Never fall back to OPENAI_API_KEY: credentials come from the config only
        api_key = config.credential or self.placeholder_credential
        if not api_key:
            raise AdapterError(self.vendor_id, "An API key is required")
        try:
            return openai.AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url(config),
                timeout=timeout or self.settings.request_timeout,
                max_retries=0,  # retry policy lives in chatbridge.retry
            )
        except openai.OpenAIError as e:
            raise self._wrap_error(e) from e

    def _endpoint(self, client: openai.AsyncOpenAI) -> Any:
        return client.chat.completions

    def _build_params(self, messages: list[ChatMessage], config: ServiceConfig) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": config.model_id,
            "messages": [{"role": m.role.value, "content": m.content} for m in messages],
        }
        if config.temperature is not None:
            params["temperature"] = config.temperature
        if config.max_output_tokens is not None:
            params[self.max_tokens_field] = config.max_output_tokens
        if config.top_p is not None:
            params["top_p"] = config.top_p
        if config.frequency_penalty is not None:
            params["frequency_penalty"] = config.frequency_penalty
        if config.presence_penalty is not None:
            params["presence_penalty"] = config.presence_penalty
        if config.stop_sequences:
            params["stop"] = list(config.stop_sequences)
        return params

    async def _send(self, client: openai.AsyncOpenAI, params: dict[str, Any]) -> Any:
        try:
            return await self._endpoint(client).create(**params)
        except openai.OpenAIError as e:
            raise self._wrap_error(e) from e

    async def _create(self, client: openai.AsyncOpenAI, params: dict[str, Any], operation: str) -> Any:
        """Send with the transient retry policy and the temperature fallback."""
        try:
            return await call_with_retries(lambda: self._send(client, params), self.settings, operation)
        except AdapterError as e:
            # Reasoning-tier models reject any temperature but their default.
            # Retry the identical request without it, once; nothing else is retried here.
            if not (self.retry_without_temperature and "temperature" in params and is_unsupported_temperature(e)):
                raise
            logger.warning(
                "%s model %s does not accept a custom temperature; retrying with the default",
                self.vendor_id,
                params.get("model"),
            )
            retry_params = {k: v for k, v in params.items() if k != "temperature"}
            return await call_with_retries(lambda: self._send(client, retry_params), self.settings, operation)

    def _wrap_error(self, exc: BaseException) -> AdapterError:
        if isinstance(exc, openai.APIStatusError):
            return AdapterError(
                self.vendor_id,
                getattr(exc, "message", None) or str(exc),
                http_status=exc.status_code,
                cause=exc,
                code=getattr(exc, "code", None),
                param=getattr(exc, "param", None),
                retry_after=parse_retry_after(exc.response.headers.get("retry-after")),
            )
        if isinstance(exc, openai.APITimeoutError):
            return AdapterError(self.vendor_id, "Request timed out", cause=exc)
        if isinstance(exc, openai.APIConnectionError):
            return AdapterError(self.vendor_id, f"Cannot reach {self.vendor_id}: {exc}", cause=exc)
        return super()._wrap_error(exc)

    async def chat(self, messages: list[ChatMessage], config: ServiceConfig) -> ChatResult:
        params = self._build_params(messages, config)
        async with self._client(config) as client:
            response = await self._create(client, params, "chat")
        return self._to_result(response, config)

    def _to_result(self, response: Any, config: ServiceConfig) -> ChatResult:
        choices = getattr(response, "choices", None) or []
        message = choices[0].message if choices else None
        content = message.content if message else None
        if not content:
            raise AdapterError(self.vendor_id, "No response content")

        usage = None
        if getattr(response, "usage", None):
            usage = TokenUsage.from_counts(
                response.usage.prompt_tokens,
                response.usage.completion_tokens,
                response.usage.total_tokens,
            )
        return ChatResult(
            text=content,
            vendor_id=self.vendor_id,
            model_id=getattr(response, "model", None) or config.model_id,
            usage=usage,
        )

    async def stream_chat(self, messages: list[ChatMessage], config: ServiceConfig) -> AsyncIterator[StreamChunk]:
        params = self._build_params(messages, config)
        params["stream"] = True
        client = self._client(config)
        try:
            stream = await self._create(client, params, "stream")
        except BaseException:
            await client.close()
            raise
        async with aclosing(self._normalize(self._deltas(stream), config, on_close=client.close)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def _deltas(self, stream: Any) -> AsyncIterator[Delta]:
        try:
            async for chunk in stream:
                choice = chunk.choices[0] if chunk.choices else None
                text = choice.delta.content if choice and choice.delta else None
                yield Delta(
                    text=text or "",
                    done=bool(choice and choice.finish_reason),
                    model=getattr(chunk, "model", None),
                )
        finally:
            await stream.close()

    async def test_connection(self, config: ServiceConfig) -> bool:
        # Model listing avoids depending on any particular model being enabled
        try:
            async with self._client(config, timeout=self.settings.probe_timeout) as client:
                await self._list_models(client)
            return True
        except Exception as e:
            logger.info("%s connection test failed: %s", self.vendor_id, e)
            return False

    async def get_available_models(self, config: ServiceConfig) -> list[ModelDescriptor]:
        async with self._client(config) as client:
            page = await call_with_retries(lambda: self._list_models(client), self.settings, "list models")
        ids = [m.id for m in page.data if self.model_filter is None or self.model_filter in m.id]
        return [ModelDescriptor(id=model_id, display_name=model_id) for model_id in sorted(ids)]

    async def _list_models(self, client: openai.AsyncOpenAI) -> Any:
        try:
            return await client.models.list()
        except openai.OpenAIError as e:
            raise self._wrap_error(e) from e
