"""Google provider (Gemini models).

Talks to the Generative Language REST API directly with httpx. The key is
sent per request in the ``x-goog-api-key`` header, so concurrent calls with
different credentials never share client state and the key never appears in
a logged URL.
"""

from __future__ import annotations

import json
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator

import httpx

from ..capabilities import GEMINI
from ..errors import AdapterError
from ..models import ChatMessage, ChatResult, ModelDescriptor, Role, ServiceConfig, StreamChunk, TokenUsage
from ..retry import call_with_retries
from ..streaming import Delta, iter_sse_data
from .base import BaseProvider, split_system_prompt

logger = logging.getLogger(__name__)

API_VERSION = "v1beta"


class GeminiProvider(BaseProvider):
    """Provider for Google Gemini models.

    Converts messages to Gemini's Content format: ``assistant`` becomes
    ``model`` and the system prompt moves to ``systemInstruction``.
    """

    vendor_id = GEMINI
    supports_streaming = True

    def api_root(self, config: ServiceConfig) -> str:
        base = self.base_url(config)
        for suffix in ("/v1beta", "/v1"):
            if base.endswith(suffix):
                base = base[: -len(suffix)]
                break
        return f"{base}/{API_VERSION}"

    @staticmethod
    def _headers(config: ServiceConfig) -> dict[str, str]:
        return {"x-goog-api-key": config.credential or ""}

    def _model_url(self, config: ServiceConfig, method: str) -> str:
        model = config.model_id.removeprefix("models/")
        return f"{self.api_root(config)}/models/{model}:{method}"

    def _build_body(self, messages: list[ChatMessage], config: ServiceConfig) -> dict[str, Any]:
        system, turns = split_system_prompt(messages)
        if not turns:
            raise AdapterError(self.vendor_id, "No user message found")

        body: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.role == Role.ASSISTANT else "user",
                    "parts": [{"text": m.content}],
                }
                for m in turns
            ],
        }
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}

        generation: dict[str, Any] = {}
        if config.temperature is not None:
            generation["temperature"] = config.temperature
        if config.max_output_tokens is not None:
            generation["maxOutputTokens"] = config.max_output_tokens
        if config.top_p is not None:
            generation["topP"] = config.top_p
        if config.stop_sequences:
            generation["stopSequences"] = list(config.stop_sequences)
        if config.presence_penalty is not None:
            generation["presencePenalty"] = config.presence_penalty
        if config.frequency_penalty is not None:
            generation["frequencyPenalty"] = config.frequency_penalty
        if generation:
            body["generationConfig"] = generation
        return body

    async def chat(self, messages: list[ChatMessage], config: ServiceConfig) -> ChatResult:
        body = self._build_body(messages, config)
        data = await call_with_retries(
            lambda: self._request_json(
                "POST",
                self._model_url(config, "generateContent"),
                headers=self._headers(config),
                json=body,
            ),
            self.settings,
            "chat",
        )
        if not isinstance(data, dict):
            raise AdapterError(self.vendor_id, "Malformed response body")

        text = self._candidate_text(data)
        if not text:
            blocked = (data.get("promptFeedback") or {}).get("blockReason")
            if blocked:
                raise AdapterError(self.vendor_id, f"Prompt blocked: {blocked}")
            raise AdapterError(self.vendor_id, "No response content")

        usage = None
        meta = data.get("usageMetadata")
        if meta:
            usage = TokenUsage.from_counts(
                meta.get("promptTokenCount"),
                meta.get("candidatesTokenCount"),
                meta.get("totalTokenCount"),
            )
        return ChatResult(
            text=text,
            vendor_id=self.vendor_id,
            model_id=data.get("modelVersion") or config.model_id,
            usage=usage,
        )

    @staticmethod
    def _candidate_text(data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))

    async def stream_chat(self, messages: list[ChatMessage], config: ServiceConfig) -> AsyncIterator[StreamChunk]:
        body = self._build_body(messages, config)
        client = self._http_client()
        try:
            response = await call_with_retries(lambda: self._open_stream(client, config, body), self.settings, "stream")
        except BaseException:
            await client.aclose()
            raise

        async def close() -> None:
            await response.aclose()
            await client.aclose()

        async with aclosing(self._normalize(self._deltas(response), config, on_close=close)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def _open_stream(self, client: httpx.AsyncClient, config: ServiceConfig, body: dict[str, Any]) -> httpx.Response:
        request = client.build_request(
            "POST",
            self._model_url(config, "streamGenerateContent"),
            params={"alt": "sse"},
            headers=self._headers(config),
            json=body,
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise self._wrap_error(e) from e
        if response.status_code >= 400:
            await response.aread()
            await response.aclose()
            raise self._status_error(response)
        return response

    async def _deltas(self, response: httpx.Response) -> AsyncIterator[Delta]:
        async for payload in iter_sse_data(response.aiter_lines()):
            try:
                data = json.loads(payload)
            except ValueError as e:
                raise AdapterError(self.vendor_id, "Malformed stream event", cause=e) from e
            if "error" in data:
                raise AdapterError(self.vendor_id, (data["error"] or {}).get("message", "Stream error"))
            candidates = data.get("candidates") or []
            finished = bool(candidates and candidates[0].get("finishReason"))
            yield Delta(text=self._candidate_text(data), done=finished, model=data.get("modelVersion"))

    async def test_connection(self, config: ServiceConfig) -> bool:
        try:
            await self._request_json(
                "GET",
                f"{self.api_root(config)}/models",
                params={"pageSize": 1},
                headers=self._headers(config),
                timeout=self.settings.probe_timeout,
            )
            return True
        except Exception as e:
            logger.info("gemini connection test failed: %s", e)
            return False

    async def get_available_models(self, config: ServiceConfig) -> list[ModelDescriptor]:
        models: list[ModelDescriptor] = []
        page_token = None
        while True:
            params: dict[str, Any] = {"pageSize": 1000}
            if page_token:
                params["pageToken"] = page_token
            data = await call_with_retries(
                lambda: self._request_json(
                    "GET", f"{self.api_root(config)}/models", params=params, headers=self._headers(config)
                ),
                self.settings,
                "list models",
            )
            if not isinstance(data, dict):
                raise AdapterError(self.vendor_id, "Malformed model list")
            for entry in data.get("models") or []:
                name = entry.get("name", "")
                if "models/gemini" not in name:
                    continue
                model_id = name.removeprefix("models/")
                models.append(ModelDescriptor(id=model_id, display_name=entry.get("displayName") or model_id))
            page_token = data.get("nextPageToken")
            if not page_token:
                return models
