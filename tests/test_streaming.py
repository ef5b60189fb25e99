"""Tests for event-stream decoding and the streaming chat client."""

import asyncio

import httpx
import pytest

from core.chat.request import ChatRequest
from core.chat.streaming import ChatStreamClient, SSELineDecoder, parse_delta
from core.errors import ProtocolParseFailure
from core.models.domain import StreamState
from tests.conftest import ENDPOINT, ChatEndpoint, split_every, sse_body, sse_line


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def request_():
    return ChatRequest(url=ENDPOINT, headers={"Authorization": "Bearer sk-test"}, body={}, content=b"{}")


def collect(decoder, chunks):
    events = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.flush())
    return events


def run_client(client, request):
    deltas, outcomes = [], []

    async def scenario():
        return await client.run(request, deltas.append, outcomes.append)

    result = asyncio.run(scenario())
    return result, deltas, outcomes


class TestParseDelta:
    def test_content(self):
        assert parse_delta('{"choices":[{"delta":{"content":"x"}}]}') == "x"

    def test_role_only_delta_has_no_content(self):
        assert parse_delta('{"choices":[{"delta":{"role":"assistant"}}]}') is None

    def test_empty_choices(self):
        assert parse_delta('{"choices":[]}') is None

    @pytest.mark.parametrize("payload", ["{not json", "[]", '{"id": 1}', '{"choices":[{"text":"x"}]}'])
    def test_malformed(self, payload):
        with pytest.raises(ProtocolParseFailure):
            parse_delta(payload)


class TestDecoder:
    def test_line_split_across_chunks(self):
        body = sse_line("Hello") + sse_line(" world")
        events = collect(SSELineDecoder(), split_every(body, 7))
        assert [e.delta for e in events] == ["Hello", " world"]

    def test_multibyte_character_split(self):
        body = sse_line("π ≈ 3.14")
        events = collect(SSELineDecoder(), split_every(body, 1))
        assert [e.delta for e in events] == ["π ≈ 3.14"]

    def test_crlf_line_endings(self):
        body = sse_line("a").replace(b"\n", b"\r\n")
        assert [e.delta for e in collect(SSELineDecoder(), [body])] == ["a"]

    def test_done_ends_stream_once(self):
        decoder = SSELineDecoder()
        events = collect(decoder, [sse_body("a") + sse_line("late") + b"data: [DONE]\n"])
        assert [e.delta for e in events if not e.done] == ["a"]
        assert sum(1 for e in events if e.done) == 1
        assert decoder.feed(sse_line("more")) == []

    def test_malformed_line_is_skipped(self, caplog):
        decoder = SSELineDecoder()
        body = sse_line("a") + b"data: {broken\n" + sse_line("b")
        with caplog.at_level("WARNING"):
            events = collect(decoder, [body])
        assert [e.delta for e in events] == ["a", "b"]
        assert decoder.parse_failures == 1
        assert "malformed" in caplog.text

    def test_non_data_lines_ignored(self):
        body = b": keep-alive\nevent: message\n" + sse_line("a")
        assert [e.delta for e in collect(SSELineDecoder(), [body])] == ["a"]

    def test_flush_processes_unterminated_tail(self):
        decoder = SSELineDecoder()
        assert decoder.feed(sse_line("a").rstrip(b"\n")) == []
        assert [e.delta for e in decoder.flush()] == ["a"]


class TestChatStreamClient:
    def test_streams_all_deltas(self, request_):
        endpoint = ChatEndpoint([sse_body("Hel", "lo", " there")])
        endpoint.chunk_size = 5
        client = ChatStreamClient(transport=endpoint.transport())

        outcome, deltas, outcomes = run_client(client, request_)

        assert "".join(deltas) == "Hello there"
        assert outcome.state is StreamState.COMPLETED
        assert outcome.saw_done and outcome.deltas == 3
        assert outcomes == [outcome]
        assert client.state is StreamState.COMPLETED
        assert endpoint.requests[0].headers["authorization"] == "Bearer sk-test"

    def test_stream_closed_without_done_still_completes(self, request_):
        endpoint = ChatEndpoint([sse_body("partial", done=False)])
        outcome, deltas, outcomes = run_client(ChatStreamClient(transport=endpoint.transport()), request_)
        assert deltas == ["partial"]
        assert outcome.state is StreamState.COMPLETED
        assert not outcome.saw_done
        assert len(outcomes) == 1

    def test_http_error_reports_status(self, request_):
        endpoint = ChatEndpoint(status_code=429)
        outcome, deltas, outcomes = run_client(ChatStreamClient(transport=endpoint.transport()), request_)
        assert deltas == []
        assert outcome.state is StreamState.FAILED
        assert outcome.error.status_code == 429
        assert "rate limited" in str(outcome.error)
        assert len(outcomes) == 1

    def test_connection_error(self, request_):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ChatStreamClient(transport=httpx.MockTransport(refuse))
        outcome, _, outcomes = run_client(client, request_)
        assert outcome.state is StreamState.FAILED
        assert "Network error" in str(outcome.error)
        assert outcome.error.status_code is None
        assert outcomes == [outcome]

    def test_cancel_delivers_single_completion(self, request_):
        endpoint = ChatEndpoint([sse_body("first", "second")])
        endpoint.chunk_size = len(sse_line("first"))
        client = ChatStreamClient(transport=endpoint.transport())
        deltas, outcomes = [], []

        async def scenario():
            endpoint.gate = asyncio.Event()
            task = asyncio.ensure_future(client.run(request_, deltas.append, outcomes.append))
            while not deltas:
                await asyncio.sleep(0.001)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert deltas == ["first"]
        assert [o.state for o in outcomes] == [StreamState.CANCELLED]
        assert client.state is StreamState.CANCELLED
