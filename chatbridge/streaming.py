"""Uniform incremental-text streams over vendor-specific transports.

Adapters turn their transport into an async iterator of ``Delta`` values;
``normalize_stream`` turns that into ``StreamChunk``s and owns the terminal
contract: exactly one final chunk, emitted last, whether the vendor finished
cleanly, the transport broke, or nothing arrived within the stall timeout.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, NamedTuple, Optional

from .errors import AdapterError
from .models import StreamChunk

logger = logging.getLogger(__name__)


class Delta(NamedTuple):
    """One vendor stream event reduced to what the normalizer needs."""

    text: str = ""
    done: bool = False
    model: Optional[str] = None


async def _next(iterator: AsyncIterator[Delta]) -> Delta:
    return await iterator.__anext__()


async def normalize_stream(
    deltas: AsyncIterator[Delta],
    *,
    vendor_id: str,
    model_id: str,
    stall_timeout: float,
    wrap_error: Callable[[BaseException], AdapterError] | None = None,
    on_close: Callable[[], Awaitable[None]] | None = None,
) -> AsyncIterator[StreamChunk]:
    """Yield StreamChunks for ``deltas`` and always finish with one final chunk.

    ``on_close`` releases the transport. It runs when the stream ends, when
    the consumer calls ``aclose()``, and when the consuming task is cancelled.
    """
    iterator = deltas.__aiter__()
    error: str | None = None
    try:
        while True:
            try:
                delta = await asyncio.wait_for(_next(iterator), timeout=stall_timeout)
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError:
                error = f"No data from {vendor_id} for {stall_timeout:g}s; stream cancelled"
                logger.warning("%s stream for %s stalled after %.1fs", vendor_id, model_id, stall_timeout)
                break
            except Exception as e:
                err = wrap_error(e) if wrap_error else AdapterError(vendor_id, str(e), cause=e)
                error = str(err)
                logger.error("%s stream for %s failed mid-stream: %s", vendor_id, model_id, err)
                break

            if delta.model:
                model_id = delta.model
            if delta.text:
                yield StreamChunk(text_delta=delta.text, vendor_id=vendor_id, model_id=model_id)
            if delta.done:
                break

        yield StreamChunk(text_delta="", is_final=True, vendor_id=vendor_id, model_id=model_id, error=error)
    finally:
        await _release(iterator, on_close, vendor_id)


async def _release(
    iterator: AsyncIterator[Delta],
    on_close: Callable[[], Awaitable[None]] | None,
    vendor_id: str,
) -> None:
    aclose = getattr(iterator, "aclose", None)
    try:
        if aclose is not None:
            await aclose()
        if on_close is not None:
            await on_close()
    except Exception:
        logger.debug("%s stream cleanup failed", vendor_id, exc_info=True)


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield the payload of each server-sent event.

    Consecutive ``data:`` lines are joined with newlines; a blank line ends
    the event. A ``[DONE]`` payload ends the stream.
    """
    buffer: list[str] = []
    async for line in lines:
        if not line:
            if buffer:
                payload = "\n".join(buffer)
                buffer = []
                if payload == "[DONE]":
                    return
                yield payload
            continue
        if line.startswith(":"):
            continue  # comment / keep-alive
        if line.startswith("data:"):
            buffer.append(line[5:].lstrip())
    if buffer:
        payload = "\n".join(buffer)
        if payload != "[DONE]":
            yield payload
