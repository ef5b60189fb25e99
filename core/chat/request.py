# Path: core/chat/request.py
# Purpose: Build streaming chat-completion requests from a transcript.
# Layer: core/chat.
# Details: Merges consecutive turns by author, inlines images as data URLs, and validates the endpoint.

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx

from core.errors import RequestBuildFailure
from core.imaging.encoding import jpeg_data_url
from core.models.domain import Author, Message


@dataclass
class ChatRequest:
    """Fully encoded HTTP request for one streamed completion."""

    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]
    content: bytes = field(default=b"", repr=False)


def validate_endpoint(endpoint: str) -> httpx.URL:
    try:
        url = httpx.URL(endpoint)
    except (httpx.InvalidURL, TypeError) as exc:
        raise RequestBuildFailure(f"Invalid URL: {endpoint!r}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise RequestBuildFailure(f"Invalid URL: {endpoint!r}")
    return url


def _image_part(image: bytes) -> Dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": jpeg_data_url(image)}}


def _user_parts(messages: List[Message]) -> List[Dict[str, Any]]:
    parts: List[Dict[str, Any]] = []
    for message in messages:
        if message.text:
            parts.append({"type": "text", "text": message.text})
        if message.image is not None:
            parts.append(_image_part(message.image))
    return parts


def build_api_messages(
    system_prompt: str,
    messages: Iterable[Message],
    image_prompt: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Convert transcript messages into the ``messages`` array of a chat-completion body.

    Consecutive messages of the same author become one turn. A user turn is a
    list of multimodal parts; ``image_prompt`` replaces the visible text of the
    first user turn that carries an image. Assistant turns with no text (a
    streaming placeholder) are skipped.
    """

    api_messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    groups: List[List[Message]] = []
    for message in messages:
        if groups and groups[-1][0].author is message.author:
            groups[-1].append(message)
        else:
            groups.append([message])

    prompt_used = image_prompt is None
    for group in groups:
        if group[0].author is Author.USER:
            if not prompt_used and any(m.image is not None for m in group):
                parts = [{"type": "text", "text": image_prompt}]
                parts.extend(_image_part(m.image) for m in group if m.image is not None)
                prompt_used = True
            else:
                parts = _user_parts(group)
            if parts:
                api_messages.append({"role": "user", "content": parts})
        else:
            text = "\n\n".join(m.text for m in group if m.text)
            if text:
                api_messages.append({"role": "assistant", "content": text})
    return api_messages


def build_chat_request(
    endpoint: str,
    api_key: str,
    model: str,
    api_messages: List[Dict[str, Any]],
    temperature: float,
) -> ChatRequest:
    """Encode a streaming request; raises :class:`RequestBuildFailure` on a bad URL or body."""

    url = validate_endpoint(endpoint)
    body = {
        "model": model,
        "messages": api_messages,
        "temperature": temperature,
        "stream": True,
    }
    try:
        content = json.dumps(body).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise RequestBuildFailure(f"Error encoding request: {exc}") from exc

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "Accept": "text/event-stream",
    }
    return ChatRequest(url=str(url), headers=headers, body=body, content=content)
