# Path: core/chat/streaming.py
# Purpose: Stream chat-completion deltas from a server-sent-event response.
# Layer: core/chat.
# Details: SSELineDecoder parses raw chunks; ChatStreamClient drives httpx and guarantees one terminal callback.

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional

import httpx

from core.errors import ProtocolParseFailure, TransportFailure
from core.models.domain import StreamOutcome, StreamState
from .request import ChatRequest

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class StreamEvent:
    """One decoded event: a content delta, or the end-of-stream marker."""

    delta: Optional[str] = None
    done: bool = False


class SSELineDecoder:
    """Incremental decoder for ``data: {...}`` lines.

    Bytes are buffered until a newline arrives so a line split across network
    chunks (including inside a multi-byte character) is never dropped. After
    the ``[DONE]`` sentinel every further byte is ignored.
    """

    def __init__(self) -> None:
        self._buffer = b""
        self.done = False
        self.parse_failures = 0

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        if self.done:
            return []
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")
        return self._process(lines)

    def flush(self) -> List[StreamEvent]:
        """Process a trailing line that was not newline-terminated when the connection closed."""

        if self.done or not self._buffer:
            return []
        tail, self._buffer = self._buffer, b""
        return self._process([tail])

    def _process(self, raw_lines: List[bytes]) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for raw in raw_lines:
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            payload = line[len(DATA_PREFIX):]
            if payload.strip() == DONE_SENTINEL:
                self.done = True
                self._buffer = b""
                events.append(StreamEvent(done=True))
                break
            try:
                delta = parse_delta(payload)
            except ProtocolParseFailure as exc:
                self.parse_failures += 1
                logger.warning("Skipping malformed stream line: %s", exc)
                continue
            if delta:
                events.append(StreamEvent(delta=delta))
        return events


def parse_delta(payload: str) -> Optional[str]:
    """Return ``choices[0].delta.content`` from one JSON event, or None when absent."""

    try:
        record = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ProtocolParseFailure(f"Invalid JSON ({exc.msg})", line=payload) from exc
    if not isinstance(record, dict):
        raise ProtocolParseFailure("Event is not a JSON object", line=payload)

    choices = record.get("choices")
    if not isinstance(choices, list):
        raise ProtocolParseFailure("Event has no choices array", line=payload)
    if not choices:
        return None
    first = choices[0]
    delta = first.get("delta") if isinstance(first, dict) else None
    if not isinstance(delta, dict):
        raise ProtocolParseFailure("Choice has no delta object", line=payload)
    content = delta.get("content")
    return content if isinstance(content, str) else None


DeltaCallback = Callable[[str], None]
CompletionCallback = Callable[[StreamOutcome], None]


class ChatStreamClient:
    """Open a streaming chat-completion request and yield content deltas.

    The client owns (or borrows) an ``httpx.AsyncClient``; pass ``transport``
    to route requests through ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = 60.0,
    ) -> None:
        self._http_client = http_client
        self._transport = transport
        self._timeout = timeout
        self.state = StreamState.IDLE
        self.saw_done = False

    async def stream_deltas(self, request: ChatRequest) -> AsyncIterator[str]:
        """
        Yield content fragments as they arrive.

        Raises:
            TransportFailure: on connection errors or a non-success HTTP status.
        """

        decoder = SSELineDecoder()
        self.state = StreamState.CONNECTING
        self.saw_done = False
        client = self._http_client or httpx.AsyncClient(transport=self._transport, timeout=self._timeout)
        try:
            async with client.stream("POST", request.url, headers=request.headers, content=request.content) as response:
                if response.status_code >= 400:
                    body = (await response.aread())[:500].decode("utf-8", errors="replace")
                    raise TransportFailure(f"HTTP {response.status_code}: {body}", status_code=response.status_code)

                self.state = StreamState.STREAMING
                async for chunk in response.aiter_bytes():
                    for event in decoder.feed(chunk):
                        if event.done:
                            self.saw_done = True
                            return
                        yield event.delta  # type: ignore[misc]
                for event in decoder.flush():
                    if event.done:
                        self.saw_done = True
                        return
                    yield event.delta  # type: ignore[misc]
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Network error: {exc}") from exc
        finally:
            if self._http_client is None:
                await client.aclose()

    async def run(
        self,
        request: ChatRequest,
        on_delta: DeltaCallback,
        on_complete: CompletionCallback,
    ) -> StreamOutcome:
        """
        Consume the stream, calling ``on_delta`` per fragment and ``on_complete`` exactly once.

        Cancellation still delivers a CANCELLED outcome to ``on_complete`` before
        the CancelledError propagates.
        """

        outcome = StreamOutcome(state=StreamState.COMPLETED)
        stream = self.stream_deltas(request)
        try:
            async for delta in stream:
                outcome.deltas += 1
                on_delta(delta)
        except TransportFailure as exc:
            logger.warning("Stream failed: %s", exc)
            outcome.state = StreamState.FAILED
            outcome.error = exc
        except asyncio.CancelledError:
            logger.info("Stream cancelled after %d deltas", outcome.deltas)
            outcome.state = StreamState.CANCELLED
            raise
        except Exception as exc:
            outcome.state = StreamState.FAILED
            outcome.error = exc
            raise
        finally:
            await stream.aclose()
            outcome.saw_done = self.saw_done
            self.state = outcome.state
            on_complete(outcome)
        return outcome
