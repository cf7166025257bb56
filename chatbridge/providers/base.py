"""Abstract adapter interface for vendor chat APIs."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx

from ..capabilities import get_capability
from ..errors import AdapterError, UnsupportedOperationError
from ..models import Capability, ChatMessage, ChatResult, ModelDescriptor, Role, ServiceConfig, StreamChunk
from ..retry import parse_retry_after
from ..settings import AdapterSettings
from ..streaming import Delta, normalize_stream

logger = logging.getLogger(__name__)


def split_system_prompt(messages: list[ChatMessage]) -> tuple[str | None, list[ChatMessage]]:
    """Separate the system prompt from the turn history.

    The first system message wins; any later system messages are dropped.
    """
    system: str | None = None
    turns: list[ChatMessage] = []
    for msg in messages:
        if msg.role != Role.SYSTEM:
            turns.append(msg)
        elif system is None:
            system = msg.content
        else:
            logger.debug("Dropping extra system message (%d chars)", len(msg.content))
    return system, turns


class BaseProvider(ABC):
    """Abstract interface all vendor adapters implement.

    Adapters are stateless: every call builds its own HTTP client from the
    ServiceConfig it is given, so one instance can serve concurrent callers
    with different credentials.
    """

    vendor_id: str = ""
    supports_streaming: bool = False

    def __init__(self, settings: AdapterSettings | None = None) -> None:
        self.settings = settings or AdapterSettings.from_env()

    @property
    def capability(self) -> Capability:
        return get_capability(self.vendor_id)

    @abstractmethod
    async def chat(self, messages: list[ChatMessage], config: ServiceConfig) -> ChatResult:
        """Send the history to the vendor's unary endpoint. Returns a normalized ChatResult."""
        ...

    def stream_chat(self, messages: list[ChatMessage], config: ServiceConfig) -> AsyncIterator[StreamChunk]:
        """Stream the reply as StreamChunks. Adapters without streaming keep this default."""
        raise UnsupportedOperationError(self.vendor_id, "streaming")

    @abstractmethod
    async def test_connection(self, config: ServiceConfig) -> bool:
        """Cheapest call proving reachability and credential validity. Never raises."""
        ...

    @abstractmethod
    async def get_available_models(self, config: ServiceConfig) -> list[ModelDescriptor]:
        """List the vendor's models. Raises AdapterError on transport or auth failure."""
        ...

    async def close(self) -> None:
        """Cleanup hook. Clients are created per call, so nothing is held here."""
        pass

    # -- shared helpers -------------------------------------------------

    def base_url(self, config: ServiceConfig) -> str:
        return (config.endpoint_override or self.capability.default_base_url).rstrip("/")

    def _normalize(
        self,
        deltas: AsyncIterator[Delta],
        config: ServiceConfig,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        return normalize_stream(
            deltas,
            vendor_id=self.vendor_id,
            model_id=config.model_id,
            stall_timeout=self.settings.stall_timeout,
            wrap_error=self._wrap_error,
            on_close=on_close,
        )

    def _wrap_error(self, exc: BaseException) -> AdapterError:
        """Convert a transport-level exception into an AdapterError."""
        if isinstance(exc, AdapterError):
            return exc
        if isinstance(exc, httpx.TimeoutException):
            return AdapterError(self.vendor_id, "Request timed out", cause=exc)
        if isinstance(exc, httpx.TransportError):
            return AdapterError(self.vendor_id, f"Cannot reach {self.vendor_id}: {exc}", cause=exc)
        if isinstance(exc, httpx.HTTPStatusError):
            return self._status_error(exc.response, cause=exc)
        return AdapterError(self.vendor_id, str(exc) or type(exc).__name__, cause=exc)

    def _status_error(self, response: httpx.Response, cause: BaseException | None = None) -> AdapterError:
        """AdapterError for a non-2xx response, using the vendor's error body when present."""
        message = response.text[:500] or response.reason_phrase
        code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error", body)
            if isinstance(error, dict):
                message = error.get("message") or message
                # Google sends a numeric "code" next to a symbolic "status"
                code = next(
                    (v for v in (error.get("code"), error.get("status"), error.get("type")) if isinstance(v, str)),
                    None,
                )
            elif isinstance(error, str):
                message = error
        return AdapterError(
            self.vendor_id,
            message,
            http_status=response.status_code,
            cause=cause,
            code=code,
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )

    def _http_client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self.settings.request_timeout)

    async def _request_json(self, method: str, url: str, *, timeout: float | None = None, **kwargs: Any) -> Any:
        """Issue one HTTP request and return its decoded JSON body."""
        async with self._http_client(timeout) as client:
            try:
                resp = await client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                raise self._wrap_error(e) from e
            if resp.status_code >= 400:
                raise self._status_error(resp)
            return self._json_body(resp)

    def _json_body(self, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise AdapterError(
                self.vendor_id, "Malformed response body", http_status=resp.status_code, cause=e
            ) from e
