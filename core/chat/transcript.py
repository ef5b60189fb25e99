# Path: core/chat/transcript.py
# Purpose: Hold the ordered chat transcript of one solution session.
# Layer: core/chat.
# Details: Append-only list with in-place growth of the streaming message; guarded by a re-entrant lock.

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Optional

from core.models.domain import Author, Message


class Transcript:
    """Ordered sequence of messages; insertion order is conversation order.

    Writers (the network context appending deltas) and readers (display code
    taking snapshots) may run on different threads.
    """

    def __init__(self, messages: Optional[Iterable[Message]] = None) -> None:
        self._lock = threading.RLock()
        self._messages: List[Message] = list(messages or [])

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())

    def append(self, message: Message) -> str:
        """Add ``message`` at the end and return its id."""

        with self._lock:
            self._messages.append(message)
            return message.id

    def extend(self, messages: Iterable[Message]) -> None:
        with self._lock:
            self._messages.extend(messages)

    def get(self, message_id: str) -> Optional[Message]:
        with self._lock:
            index = self._index_of(message_id)
            return None if index is None else self._messages[index]

    def update_text(self, message_id: str, text: str) -> None:
        """Replace the text of ``message_id``; unknown ids are ignored."""

        with self._lock:
            index = self._index_of(message_id)
            if index is None:
                return
            self._messages[index].text = text

    def append_delta(self, message_id: str, fragment: str) -> None:
        """Concatenate a streamed fragment onto the text of ``message_id``."""

        with self._lock:
            index = self._index_of(message_id)
            if index is None:
                return
            message = self._messages[index]
            message.text = (message.text or "") + fragment

    def remove(self, message_id: str) -> bool:
        with self._lock:
            index = self._index_of(message_id)
            if index is None:
                return False
            del self._messages[index]
            return True

    def remove_assistant_messages_since_last_user(self) -> int:
        """Drop the contiguous suffix of assistant messages and return how many were removed."""

        with self._lock:
            cut = len(self._messages)
            while cut > 0 and self._messages[cut - 1].author is Author.ASSISTANT:
                cut -= 1
            removed = len(self._messages) - cut
            del self._messages[cut:]
            return removed

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()

    def last_assistant(self) -> Optional[Message]:
        with self._lock:
            for message in reversed(self._messages):
                if message.author is Author.ASSISTANT:
                    return message
            return None

    def assistant_text(self) -> str:
        """Join the assistant texts with blank lines, as shared and persisted."""

        with self._lock:
            return "\n\n".join(m.text for m in self._messages if m.author is Author.ASSISTANT and m.text)

    def snapshot(self) -> List[Message]:
        """Return copies of the messages safe to read while streaming continues."""

        with self._lock:
            return [replace(message) for message in self._messages]

    def to_dicts(self) -> List[Dict]:
        with self._lock:
            return [message.to_dict() for message in self._messages]

    @classmethod
    def from_dicts(cls, payload: Iterable[Dict]) -> "Transcript":
        return cls(Message.from_dict(item) for item in payload)

    def _index_of(self, message_id: str) -> Optional[int]:
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                return index
        return None
