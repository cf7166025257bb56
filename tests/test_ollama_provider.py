"""Tests for the Ollama adapter."""

from __future__ import annotations

import json

import httpx
import pytest

from chatbridge.models import ServiceConfig
from chatbridge.providers.ollama_provider import OllamaProvider

from conftest import FakeClient, FakeEndpoint, completion, install_client, install_transport

_TAGS = {"models": [{"name": "llama3.3:latest", "size": 42}, {"name": "qwen2.5:7b"}]}


@pytest.fixture
def config():
    return ServiceConfig(vendor_id="ollama", model_id="llama3.3")


def test_placeholder_credential(config):
    client = OllamaProvider()._client(config)
    assert client.api_key == "ollama"
    assert str(client.base_url).startswith("http://localhost:11434/v1")


def test_native_url(config):
    provider = OllamaProvider()
    assert provider.native_url(config) == "http://localhost:11434"
    remote = config.model_copy(update={"endpoint_override": "http://gpu-box:11434"})
    assert provider.native_url(remote) == "http://gpu-box:11434"


@pytest.mark.asyncio
async def test_probe_hits_local_tags_without_credential(settings, config):
    provider = OllamaProvider(settings)
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=_TAGS)

    install_transport(provider, handler)

    assert await provider.test_connection(config) is True
    assert str(seen[0].url) == "http://localhost:11434/api/tags"
    assert "authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_probe_sends_bearer_when_configured(settings, config):
    provider = OllamaProvider(settings)
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=_TAGS)

    install_transport(provider, handler)

    await provider.test_connection(config.model_copy(update={"credential": "proxy-token"}))
    assert seen[0].headers["authorization"] == "Bearer proxy-token"


@pytest.mark.asyncio
async def test_probe_failures_return_false(settings, config):
    provider = OllamaProvider(settings)

    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    install_transport(provider, refused)
    assert await provider.test_connection(config) is False

    install_transport(provider, lambda r: httpx.Response(200, content=b"not json"))
    assert await provider.test_connection(config) is False

    install_transport(provider, lambda r: httpx.Response(401, json={"error": "unauthorized"}))
    assert await provider.test_connection(config) is False


@pytest.mark.asyncio
async def test_available_models(settings, config):
    provider = OllamaProvider(settings)
    install_transport(provider, lambda r: httpx.Response(200, json=_TAGS))

    models = await provider.get_available_models(config)

    assert [m.id for m in models] == ["llama3.3:latest", "qwen2.5:7b"]


@pytest.mark.asyncio
async def test_no_models_installed(settings, config):
    provider = OllamaProvider(settings)
    install_transport(provider, lambda r: httpx.Response(200, json={"models": []}))

    assert await provider.get_available_models(config) == []


@pytest.mark.asyncio
async def test_pull_model(settings, config):
    provider = OllamaProvider(settings)
    bodies = []

    def handler(request):
        bodies.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"status": "success"})

    install_transport(provider, handler)

    assert await provider.pull_model("phi4", config) is True
    assert bodies == [("/api/pull", {"model": "phi4", "stream": False})]

    install_transport(provider, lambda r: httpx.Response(500, json={"error": "pull model manifest: file does not exist"}))
    assert await provider.pull_model("nope", config) is False


@pytest.mark.asyncio
async def test_chat_uses_compatible_endpoint(settings, messages, config):
    provider = OllamaProvider(settings)
    client = FakeClient(FakeEndpoint(completion("local reply", "llama3.3")))
    seen = install_client(provider, client)

    result = await provider.chat(messages, config.model_copy(update={"max_output_tokens": 64}))

    assert result.text == "local reply"
    assert result.vendor_id == "ollama"
    assert client.endpoint.calls[0]["max_tokens"] == 64
    assert seen[0].credential == ""
