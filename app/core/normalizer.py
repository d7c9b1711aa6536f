"""
Reply normalization: turn whatever the agent transport returned into one plain-text message.

The upstream reply shapes carry no discriminant, so the shape is detected by capability in a
fixed order:

1. a direct text field (``outputText``, ``output_text``, a string ``completion``, or nested
   ``response.outputText``) is returned verbatim;
2. otherwise a stream field (``chunks``, ``deltas``, ``completion``, ``stream``) is iterated to
   completion; each event contributes its bytes (decoded as UTF-8) or, failing that, its text delta;
3. nothing readable -> EMPTY_REPLY_TEXT (a normal outcome, not an error).

A stream that raises mid-way surfaces as TransportFailure and the partial text is dropped.
"""
import asyncio
import codecs
import logging
from collections.abc import AsyncIterable, Iterable, Mapping
from typing import Any

from app.core.errors import TransportFailure

logger = logging.getLogger(__name__)

EMPTY_REPLY_TEXT = "The agent responded but returned no readable text."

_TEXT_FIELDS = ("outputText", "output_text", "completion")
_STREAM_FIELDS = ("chunks", "deltas", "completion", "stream")
_DELTA_FIELDS = ("textDelta", "text_delta", "text")

_END = object()


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _is_stream(value: Any) -> bool:
    if value is None or isinstance(value, (str, bytes, bytearray, Mapping)):
        return False
    return isinstance(value, (AsyncIterable, Iterable))


def direct_text(raw: Any) -> str | None:
    """Return the reply's top-level (or ``response.``-nested) text field, if it has one."""
    if isinstance(raw, str):
        return raw or None
    for name in _TEXT_FIELDS:
        value = _field(raw, name)
        if isinstance(value, str) and value:
            return value
    nested = _field(raw, "response")
    if nested is not None and nested is not raw and not isinstance(nested, str):
        value = _field(nested, "outputText") or _field(nested, "output_text")
        if isinstance(value, str) and value:
            return value
    return None


def find_stream(raw: Any) -> Any:
    """Return the first iterable stream field on the reply, or None."""
    if isinstance(raw, str):
        return None
    for name in _STREAM_FIELDS:
        value = _field(raw, name)
        if _is_stream(value):
            return value
    return None


def chunk_bytes(event: Any) -> bytes | None:
    """Bytes carried by a chunk event: ``{"bytes": ...}`` or ``{"chunk": {"bytes": ...}}``."""
    if isinstance(event, (bytes, bytearray, memoryview)):
        return bytes(event)
    data = _field(event, "bytes")
    if data is None:
        inner = _field(event, "chunk")
        if inner is not None:
            data = _field(inner, "bytes")
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    return None


def delta_text(event: Any) -> str | None:
    """Incremental text carried by a delta event (plain, content-block, or LangChain chunk)."""
    if isinstance(event, str):
        return event
    for name in _DELTA_FIELDS:
        value = _field(event, name)
        if isinstance(value, str):
            return value
    block = _field(event, "contentBlockDelta")
    delta = _field(block, "delta") if block is not None else _field(event, "delta")
    if delta is not None:
        value = delta if isinstance(delta, str) else _field(delta, "text")
        if isinstance(value, str):
            return value
    # LangChain AIMessageChunk
    content = _field(event, "content")
    if isinstance(content, str):
        return content
    return None


async def iterate(stream: Any):
    """Yield events from an async or a (possibly blocking) sync iterable, in arrival order."""
    if isinstance(stream, AsyncIterable):
        async for event in stream:
            yield event
        return
    iterator = iter(stream)
    while True:
        event = await asyncio.to_thread(next, iterator, _END)
        if event is _END:
            return
        yield event


async def collect_stream(stream: Any) -> str:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parts: list[str] = []
    try:
        async for event in iterate(stream):
            data = chunk_bytes(event)
            if data is not None:
                parts.append(decoder.decode(data))
                continue
            text = delta_text(event)
            if text:
                parts.append(text)
            else:
                logger.debug("Skipping reply event with no readable text: %r", type(event).__name__)
    except TransportFailure:
        raise
    except Exception as e:
        raise TransportFailure(f"Agent reply stream failed: {e}") from e
    parts.append(decoder.decode(b"", final=True))
    return "".join(parts)


async def normalize(raw: Any) -> str:
    """Return the finalized assistant text for a raw reply (EMPTY_REPLY_TEXT when there is none)."""
    text = direct_text(raw)
    if text is not None:
        logger.debug("Agent reply shape: direct text")
        return text
    stream = find_stream(raw)
    if stream is not None:
        logger.debug("Agent reply shape: stream (%s)", type(stream).__name__)
        text = await collect_stream(stream)
        if text:
            return text
    return EMPTY_REPLY_TEXT
