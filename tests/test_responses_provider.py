"""Tests for the stateful Responses API adapter."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from chatbridge.errors import AdapterError
from chatbridge.models import (
    EXT_PERSIST_RESPONSE,
    EXT_PREVIOUS_RESPONSE_ID,
    ChatMessage,
    Role,
    ServiceConfig,
)
from chatbridge.providers.openai_responses_provider import OpenAIResponsesProvider

from conftest import FakeClient, FakeEndpoint, FakeStream, install_client


def _response(text="Hi there", response_id="resp_1"):
    return SimpleNamespace(
        id=response_id,
        model="gpt-4o-2024-08-06",
        output_text=text,
        output=[SimpleNamespace(type="message", content=[SimpleNamespace(type="output_text", text=text)])],
        usage=SimpleNamespace(input_tokens=4, output_tokens=3, total_tokens=7),
        created_at=1760000000.0,
    )


def _event(kind, **fields):
    return SimpleNamespace(type=kind, **fields)


@pytest.fixture
def config():
    return ServiceConfig(vendor_id="openai-responses", credential="sk-test", model_id="gpt-4o")


@pytest.mark.asyncio
async def test_chat_returns_response_handle(settings, messages, config):
    provider = OpenAIResponsesProvider(settings)
    client = FakeClient(FakeEndpoint(_response()))
    install_client(provider, client)

    result = await provider.chat(messages, config)

    assert result.text == "Hi there"
    assert result.response_handle == "resp_1"
    assert result.created_at == 1760000000
    assert result.usage.total_tokens == 7

    sent = client.endpoint.calls[0]
    assert sent["instructions"] == "Be terse"
    assert sent["input"] == [{"role": "user", "content": "Hi"}]
    assert sent["store"] is True
    assert "previous_response_id" not in sent


@pytest.mark.asyncio
async def test_chaining_sends_only_new_turns(settings, config):
    provider = OpenAIResponsesProvider(settings)
    client = FakeClient(FakeEndpoint(_response("Second", "resp_2")))
    install_client(provider, client)

    history = [
        ChatMessage(role=Role.SYSTEM, content="Be terse"),
        ChatMessage(role=Role.USER, content="First question"),
        ChatMessage(role=Role.ASSISTANT, content="First answer"),
        ChatMessage(role=Role.USER, content="Follow-up"),
    ]
    chained = config.model_copy(update={"extensions": {EXT_PREVIOUS_RESPONSE_ID: "resp_1"}})

    result = await provider.chat(history, chained)

    sent = client.endpoint.calls[0]
    assert sent["previous_response_id"] == "resp_1"
    assert sent["input"] == [{"role": "user", "content": "Follow-up"}]
    assert sent["instructions"] == "Be terse"
    assert result.response_handle == "resp_2"


@pytest.mark.asyncio
async def test_persistence_can_be_disabled(settings, messages, config):
    provider = OpenAIResponsesProvider(settings)
    client = FakeClient(FakeEndpoint(_response()))
    install_client(provider, client)

    await provider.chat(messages, config.model_copy(update={"extensions": {EXT_PERSIST_RESPONSE: False}}))

    assert client.endpoint.calls[0]["store"] is False


@pytest.mark.asyncio
async def test_text_read_from_output_items(settings, messages, config):
    provider = OpenAIResponsesProvider(settings)
    response = _response("From items")
    response.output_text = ""
    install_client(provider, FakeClient(FakeEndpoint(response)))

    assert (await provider.chat(messages, config)).text == "From items"


@pytest.mark.asyncio
async def test_missing_output_raises(settings, messages, config):
    provider = OpenAIResponsesProvider(settings)
    response = _response()
    response.output = []
    install_client(provider, FakeClient(FakeEndpoint(response)))

    with pytest.raises(AdapterError, match="No response output"):
        await provider.chat(messages, config)


@pytest.mark.asyncio
async def test_max_output_tokens_field(settings, messages, config):
    provider = OpenAIResponsesProvider(settings)
    client = FakeClient(FakeEndpoint(_response()))
    install_client(provider, client)

    await provider.chat(messages, config.model_copy(update={"max_output_tokens": 512}))

    assert client.endpoint.calls[0]["max_output_tokens"] == 512


@pytest.mark.asyncio
async def test_rejected_temperature_retries_once(settings, messages, config):
    provider = OpenAIResponsesProvider(settings)
    rejection = openai.BadRequestError(
        "Unsupported parameter: 'temperature'",
        response=httpx.Response(400, request=httpx.Request("POST", "https://api.openai.com/v1/responses")),
        body={"param": "temperature", "code": "unsupported_parameter"},
    )
    client = FakeClient(FakeEndpoint(rejection, _response()))
    install_client(provider, client)

    result = await provider.chat(messages, config.model_copy(update={"model_id": "o3", "temperature": 0.5}))

    assert result.text == "Hi there"
    assert "temperature" not in client.endpoint.calls[1]


@pytest.mark.asyncio
async def test_stream_events(settings, messages, config):
    provider = OpenAIResponsesProvider(settings)
    stream = FakeStream(
        [
            _event("response.created", response=SimpleNamespace(model="gpt-4o-2024-08-06")),
            _event("response.output_text.delta", delta="Hel"),
            _event("response.output_text.delta", delta="lo"),
            _event("response.completed", response=SimpleNamespace()),
        ]
    )
    install_client(provider, FakeClient(FakeEndpoint(stream)))

    chunks = [c async for c in provider.stream_chat(messages, config)]

    assert [c.text_delta for c in chunks] == ["Hel", "lo", ""]
    assert chunks[-1].is_final
    assert chunks[-1].error is None
    assert chunks[-1].model_id == "gpt-4o-2024-08-06"
    assert stream.closed


@pytest.mark.asyncio
async def test_stream_failed_event(settings, messages, config):
    provider = OpenAIResponsesProvider(settings)
    stream = FakeStream(
        [
            _event("response.output_text.delta", delta="Hel"),
            _event("response.failed", response=SimpleNamespace(error=SimpleNamespace(message="server_error"))),
        ]
    )
    install_client(provider, FakeClient(FakeEndpoint(stream)))

    chunks = [c async for c in provider.stream_chat(messages, config)]

    assert chunks[-1].is_final
    assert "server_error" in chunks[-1].error


@pytest.mark.asyncio
async def test_retrieve_and_delete(settings, config):
    provider = OpenAIResponsesProvider(settings)
    client = FakeClient(FakeEndpoint(_response("Stored"), SimpleNamespace(id="resp_1", deleted=True)))
    install_client(provider, client)

    result = await provider.retrieve_response("resp_1", config)
    assert result.text == "Stored"
    assert await provider.delete_response("resp_1", config) is True
    assert client.endpoint.retrieved == ["resp_1"]
    assert client.endpoint.deleted == ["resp_1"]


@pytest.mark.asyncio
async def test_delete_failure_returns_false(settings, config):
    provider = OpenAIResponsesProvider(settings)
    missing = openai.NotFoundError(
        "No response found",
        response=httpx.Response(404, request=httpx.Request("DELETE", "https://api.openai.com/v1/responses/x")),
        body=None,
    )
    install_client(provider, FakeClient(FakeEndpoint(missing)))

    assert await provider.delete_response("x", config) is False
