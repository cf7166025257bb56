"""OpenAI Responses API provider (stateful conversations).

The Responses API can keep conversation state server-side. Passing the id of
a previous response as ``previous_response_id`` continues that conversation,
so only the turns after the last assistant reply need to be sent again.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

import openai

from ..capabilities import OPENAI_RESPONSES
from ..errors import AdapterError
from ..models import (
    EXT_PERSIST_RESPONSE,
    EXT_PREVIOUS_RESPONSE_ID,
    ChatMessage,
    ChatResult,
    Role,
    ServiceConfig,
    TokenUsage,
)
from ..retry import call_with_retries
from ..streaming import Delta
from .base import split_system_prompt
from .openai_compat import OpenAICompatibleProvider

logger = logging.getLogger(__name__)


def _turns_since_last_reply(turns: list[ChatMessage]) -> list[ChatMessage]:
    for i in range(len(turns) - 1, -1, -1):
        if turns[i].role == Role.ASSISTANT:
            return turns[i + 1 :]
    return turns


def _output_text(response: Any) -> str:
    text = getattr(response, "output_text", None)
    if text:
        return text
    parts = []
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) in ("output_text", "text"):
                parts.append(content.text)
    return "".join(parts)


class OpenAIResponsesProvider(OpenAICompatibleProvider):
    """Provider for OpenAI's Responses endpoint with response chaining."""

    vendor_id = OPENAI_RESPONSES
    model_filter = "gpt"
    retry_without_temperature = True

    def _endpoint(self, client: openai.AsyncOpenAI) -> Any:
        return client.responses

    def _build_params(self, messages: list[ChatMessage], config: ServiceConfig) -> dict[str, Any]:
        system, turns = split_system_prompt(messages)
        previous = config.extension(EXT_PREVIOUS_RESPONSE_ID)
        if previous:
            turns = _turns_since_last_reply(turns)

        params: dict[str, Any] = {
            "model": config.model_id,
            "input": [{"role": m.role.value, "content": m.content} for m in turns],
            "store": bool(config.extension(EXT_PERSIST_RESPONSE, True)),
        }
        if previous:
            params["previous_response_id"] = previous
        # Instructions are not inherited through previous_response_id
        if system:
            params["instructions"] = system
        if config.temperature is not None:
            params["temperature"] = config.temperature
        if config.top_p is not None:
            params["top_p"] = config.top_p
        if config.max_output_tokens is not None:
            params["max_output_tokens"] = config.max_output_tokens
        return params

    def _to_result(self, response: Any, config: ServiceConfig) -> ChatResult:
        if not getattr(response, "output", None):
            raise AdapterError(self.vendor_id, "No response output")
        text = _output_text(response)
        if not text:
            raise AdapterError(self.vendor_id, "Response contained no text output")

        usage = None
        if getattr(response, "usage", None):
            usage = TokenUsage.from_counts(
                response.usage.input_tokens,
                response.usage.output_tokens,
                response.usage.total_tokens,
            )
        created = getattr(response, "created_at", None)
        logger.info("%s response %s stored=%s", self.vendor_id, response.id, config.extension(EXT_PERSIST_RESPONSE, True))
        return ChatResult(
            text=text,
            vendor_id=self.vendor_id,
            model_id=getattr(response, "model", None) or config.model_id,
            usage=usage,
            response_handle=response.id,
            created_at=int(created) if created is not None else None,
        )

    async def _deltas(self, stream: Any) -> AsyncIterator[Delta]:
        try:
            async for event in stream:
                kind = getattr(event, "type", "")
                if kind == "response.output_text.delta":
                    yield Delta(text=event.delta)
                elif kind == "response.created":
                    yield Delta(model=getattr(event.response, "model", None))
                elif kind == "response.completed":
                    yield Delta(done=True)
                    return
                elif kind in ("response.failed", "error"):
                    raise AdapterError(self.vendor_id, _event_error(event))
        finally:
            await stream.close()

    async def retrieve_response(self, handle: str, config: ServiceConfig) -> ChatResult:
        """Fetch a stored response by its handle."""
        async with self._client(config) as client:
            response = await call_with_retries(
                lambda: self._call(client.responses.retrieve, handle), self.settings, "retrieve"
            )
        return self._to_result(response, config)

    async def delete_response(self, handle: str, config: ServiceConfig) -> bool:
        """Delete a stored response. Returns False instead of raising."""
        try:
            async with self._client(config) as client:
                await self._call(client.responses.delete, handle)
            return True
        except Exception as e:
            logger.warning("%s delete of response %s failed: %s", self.vendor_id, handle, e)
            return False

    async def _call(self, method: Any, *args: Any) -> Any:
        try:
            return await method(*args)
        except openai.OpenAIError as e:
            raise self._wrap_error(e) from e


def _event_error(event: Any) -> str:
    error = getattr(event, "error", None)
    if error is None and getattr(event, "response", None) is not None:
        error = getattr(event.response, "error", None)
    message = getattr(error, "message", None) if error is not None else None
    return message or getattr(event, "message", None) or "Response stream failed"
