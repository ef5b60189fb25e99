# Path: core/models/domain.py
# Purpose: Define domain models shared across imaging, chat, and storage workflows.
# Layer: core/models.
# Details: Lightweight dataclasses simplify serialization between API, CLI, and core services.

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Author(str, Enum):
    """Who wrote a transcript message."""

    USER = "user"
    ASSISTANT = "assistant"


def _new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Message:
    """A transcript entry carrying text, an encoded JPEG image, or both."""

    author: Author
    text: Optional[str] = None
    image: Optional[bytes] = None
    id: str = field(default_factory=_new_message_id)

    def __post_init__(self) -> None:
        if self.text is None and self.image is None:
            raise ValueError("A message needs text, an image, or both.")

    @property
    def is_user(self) -> bool:
        return self.author is Author.USER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author.value,
            "text": self.text,
            "image": base64.b64encode(self.image).decode("ascii") if self.image is not None else None,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Message":
        image = payload.get("image")
        return cls(
            id=payload["id"],
            author=Author(payload["author"]),
            text=payload.get("text"),
            image=base64.b64decode(image) if image else None,
        )


class StreamState(str, Enum):
    """Lifecycle of one streamed chat completion."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (StreamState.CONNECTING, StreamState.STREAMING)


@dataclass
class StreamOutcome:
    """Terminal result delivered exactly once per stream."""

    state: StreamState
    deltas: int = 0
    error: Optional[Exception] = None
    saw_done: bool = False


@dataclass
class SolutionRecord:
    """Persisted solution for one problem image, keyed by device id and image hash."""

    image_base64: str
    image_hash: str
    solution: str
    bookmarked: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_document(self) -> Dict[str, Any]:
        """Return the document-store shape ``{image, imageHash, solution, bookmark, timestamp}``."""

        return {
            "image": self.image_base64,
            "imageHash": self.image_hash,
            "solution": self.solution,
            "bookmark": self.bookmarked,
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def from_document(cls, payload: Dict[str, Any]) -> "SolutionRecord":
        return cls(
            image_base64=payload["image"],
            image_hash=payload["imageHash"],
            solution=payload.get("solution", ""),
            bookmarked=bool(payload.get("bookmark", False)),
            created_at=datetime.fromisoformat(payload["timestamp"]),
        )
