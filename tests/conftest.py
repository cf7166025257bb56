"""Shared test fixtures and fake vendor SDK clients."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from chatbridge.models import ChatMessage, Role, ServiceConfig
from chatbridge.settings import AdapterSettings


class FakeStream:
    """Async-iterable vendor event stream that records whether it was closed."""

    def __init__(self, events, error: BaseException | None = None):
        self.events = list(events)
        self.error = error
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event
        if self.error is not None:
            raise self.error

    async def close(self):
        self.closed = True


class FakeEndpoint:
    """Stands in for ``client.chat.completions`` / ``client.responses`` / ``client.messages``.

    Each call to ``create`` consumes the next queued result; exceptions are raised.
    """

    def __init__(self, *results):
        self.results = list(results)
        self.calls: list[dict] = []
        self.retrieved: list[str] = []
        self.deleted: list[str] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return self._next()

    async def retrieve(self, handle):
        self.retrieved.append(handle)
        return self._next()

    async def delete(self, handle):
        self.deleted.append(handle)
        return self._next()

    def _next(self):
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class FakeModels:
    def __init__(self, ids=(), error: BaseException | None = None):
        self.ids = list(ids)
        self.error = error
        self.calls: list[dict] = []

    async def list(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=[SimpleNamespace(id=i, display_name=i.upper()) for i in self.ids])


class FakeClient:
    """Minimal async SDK client (openai.AsyncOpenAI / anthropic.AsyncAnthropic shape)."""

    def __init__(self, endpoint: FakeEndpoint | None = None, models: FakeModels | None = None):
        self.endpoint = endpoint or FakeEndpoint()
        self.chat = SimpleNamespace(completions=self.endpoint)
        self.responses = self.endpoint
        self.messages = self.endpoint
        self.models = models or FakeModels()
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True

    async def close(self):
        self.closed = True


def install_client(provider, client: FakeClient) -> list[ServiceConfig]:
    """Make ``provider`` build ``client`` instead of a real SDK client.

    Returns the list of configs the provider asked for a client with.
    """
    seen: list[ServiceConfig] = []

    def factory(config, timeout=None):
        seen.append(config)
        return client

    provider._client = factory
    return seen


def install_transport(provider, handler) -> None:
    """Route the provider's httpx calls through ``handler``."""
    provider._http_client = lambda timeout=None: httpx.AsyncClient(transport=httpx.MockTransport(handler))


def completion(content="Hello!", model="gpt-4o", prompt_tokens=10, completion_tokens=5):
    """Chat Completions response object."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        model=model,
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


def completion_chunk(text=None, finish_reason=None, model="gpt-4o"):
    """Chat Completions stream chunk."""
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=text), finish_reason=finish_reason)],
        model=model,
    )


@pytest.fixture
def settings():
    """Fast settings: no real backoff delay, short stall timeout."""
    return AdapterSettings(stall_timeout=0.2, backoff_base=0, backoff_max=0, max_retries=2)


@pytest.fixture
def messages():
    return [
        ChatMessage(role=Role.SYSTEM, content="Be terse"),
        ChatMessage(role=Role.USER, content="Hi"),
    ]
