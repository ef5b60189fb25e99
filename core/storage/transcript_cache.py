# Path: core/storage/transcript_cache.py
# Purpose: Cache chat transcripts locally so a conversation can be reopened.
# Layer: core/storage.
# Details: One JSON file per chat id; images are stored as base64 inside each message.

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from core.chat.transcript import Transcript

logger = logging.getLogger(__name__)


class TranscriptCache:
    """Directory of ``<chat_id>.json`` transcript snapshots."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, chat_id: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in chat_id)
        return self.directory / f"{safe}.json"

    def save(self, chat_id: str, transcript: Transcript) -> Path:
        """Write the transcript and return the file path."""

        target = self._path_for(chat_id)
        target.write_text(json.dumps({"chat_id": chat_id, "messages": transcript.to_dicts()}), encoding="utf-8")
        logger.debug("Saved %d messages for chat %s", len(transcript), chat_id)
        return target

    def load(self, chat_id: str) -> Optional[Transcript]:
        """Return the cached transcript, or None when missing or unreadable."""

        target = self._path_for(chat_id)
        if not target.exists():
            return None
        try:
            payload = json.loads(target.read_text(encoding="utf-8"))
            return Transcript.from_dicts(payload.get("messages", []))
        except (json.JSONDecodeError, KeyError, ValueError) as exc:
            logger.warning("Failed to load chat history %s: %s", chat_id, exc)
            return None

    def delete(self, chat_id: str) -> bool:
        target = self._path_for(chat_id)
        if not target.exists():
            return False
        target.unlink()
        return True

    def list_chat_ids(self) -> List[str]:
        return sorted(path.stem for path in self.directory.glob("*.json"))
