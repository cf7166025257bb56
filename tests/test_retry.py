"""Tests for the transient-failure retry policy."""

from __future__ import annotations

import pytest

from chatbridge import retry
from chatbridge.errors import AdapterError
from chatbridge.retry import backoff_delay, call_with_retries, parse_retry_after
from chatbridge.settings import AdapterSettings


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)
    return delays


class Flaky:
    """Fails with the given statuses in order, then returns 'ok'."""

    def __init__(self, *statuses, retry_after=None):
        self.statuses = list(statuses)
        self.retry_after = retry_after
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.statuses:
            raise AdapterError("openai", "boom", http_status=self.statuses.pop(0), retry_after=self.retry_after)
        return "ok"


def test_backoff_is_exponential_and_capped():
    s = AdapterSettings(backoff_base=0.5, backoff_max=8.0)
    assert [backoff_delay(a, s) for a in range(6)] == [0.5, 1.0, 2.0, 4.0, 8.0, 8.0]


def test_backoff_honors_retry_after():
    s = AdapterSettings(backoff_base=0.5, backoff_max=8.0)
    assert backoff_delay(0, s, retry_after=3.0) == 3.0
    assert backoff_delay(0, s, retry_after=120.0) == 8.0


def test_parse_retry_after():
    assert parse_retry_after("2") == 2.0
    assert parse_retry_after("1.5") == 1.5
    assert parse_retry_after(None) is None
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None


@pytest.mark.asyncio
async def test_retries_transient_status_then_succeeds(sleeps):
    call = Flaky(503, 429)
    result = await call_with_retries(call, AdapterSettings(max_retries=2))
    assert result == "ok"
    assert call.calls == 3
    assert sleeps == [0.5, 1.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(sleeps):
    call = Flaky(429, 429, 429, 429)
    with pytest.raises(AdapterError) as exc:
        await call_with_retries(call, AdapterSettings(max_retries=2))
    assert exc.value.http_status == 429
    assert call.calls == 3


@pytest.mark.asyncio
async def test_non_transient_errors_are_not_retried(sleeps):
    call = Flaky(401)
    with pytest.raises(AdapterError):
        await call_with_retries(call, AdapterSettings())
    assert call.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_uses_retry_after_header(sleeps):
    call = Flaky(429, retry_after=2.0)
    await call_with_retries(call, AdapterSettings())
    assert sleeps == [2.0]


@pytest.mark.asyncio
async def test_zero_retries(sleeps):
    call = Flaky(503)
    with pytest.raises(AdapterError):
        await call_with_retries(call, AdapterSettings(max_retries=0))
    assert call.calls == 1
