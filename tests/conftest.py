"""Shared fixtures: synthetic images, event-stream bodies, and mock chat endpoints."""

import asyncio
import io
import json
from typing import AsyncIterator, Iterable, List, Optional

import httpx
import pytest
from PIL import Image

from config.settings import ChatSettings
from core.chat.credentials import StaticCredentials
from core.chat.session import SolutionSession
from core.chat.streaming import ChatStreamClient
from core.identity import DeviceIdentity
from core.storage.sqlite_store import SqliteSolutionStore

ENDPOINT = "https://chat.test/v1/chat/completions"


def sse_line(content: Optional[str]) -> bytes:
    delta = {} if content is None else {"content": content}
    return b"data: " + json.dumps({"choices": [{"delta": delta}]}).encode("utf-8") + b"\n\n"


def sse_body(*contents: str, done: bool = True) -> bytes:
    body = b"".join(sse_line(content) for content in contents)
    if done:
        body += b"data: [DONE]\n\n"
    return body


def split_every(data: bytes, size: int) -> List[bytes]:
    return [data[index:index + size] for index in range(0, len(data), size)]


class ChatEndpoint:
    """Scripted chat-completion endpoint for httpx.MockTransport.

    Each request pops the next scripted reply; ``gate`` (when set up) holds the
    stream open after the first chunk until released.
    """

    def __init__(self, replies: Optional[Iterable[bytes]] = None, status_code: int = 200) -> None:
        self.replies = list(replies or [])
        self.status_code = status_code
        self.requests: List[httpx.Request] = []
        self.chunk_size: Optional[int] = None
        self.gate: Optional[asyncio.Event] = None

    @property
    def bodies(self) -> List[dict]:
        return [json.loads(request.content) for request in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, content=b'{"error": "rate limited"}')
        body = self.replies.pop(0) if self.replies else sse_body()
        chunks = split_every(body, self.chunk_size) if self.chunk_size else [body]
        return httpx.Response(
            self.status_code,
            headers={"content-type": "text/event-stream"},
            content=self._stream(chunks),
        )

    async def _stream(self, chunks: List[bytes]) -> AsyncIterator[bytes]:
        for index, chunk in enumerate(chunks):
            yield chunk
            if index == 0 and self.gate is not None:
                await self.gate.wait()


@pytest.fixture
def chat_settings():
    return ChatSettings(endpoint=ENDPOINT, request_timeout=5.0)


@pytest.fixture
def endpoint():
    return ChatEndpoint()


@pytest.fixture
def problem_image():
    image = Image.new("RGB", (120, 80), color=(240, 240, 240))
    for x in range(30, 90):
        image.putpixel((x, 40), (0, 0, 0))
    return image


@pytest.fixture
def problem_jpeg(problem_image):
    buffer = io.BytesIO()
    problem_image.save(buffer, format="JPEG", quality=80)
    return buffer.getvalue()


@pytest.fixture
def store(tmp_path):
    return SqliteSolutionStore(tmp_path / "solutions.sqlite3")


@pytest.fixture
def make_session(chat_settings, endpoint):
    def factory(**overrides) -> SolutionSession:
        params = dict(
            settings=chat_settings,
            client=ChatStreamClient(transport=endpoint.transport()),
            credentials=StaticCredentials("sk-test"),
            identity=DeviceIdentity("DEVICE-1"),
        )
        params.update(overrides)
        return SolutionSession(**params)

    return factory
