"""Tests for the SQLite solution store, transcript cache, and device identity."""

from datetime import datetime, timedelta, timezone

import pytest

from core.chat.transcript import Transcript
from core.errors import PersistenceUnavailable
from core.identity import DeviceIdentity
from core.models.domain import Author, Message, SolutionRecord
from core.storage.transcript_cache import TranscriptCache

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def record(image_hash, minutes=0, bookmarked=False, solution="x = 2"):
    return SolutionRecord(
        image_base64="aW1hZ2U=",
        image_hash=image_hash,
        solution=solution,
        bookmarked=bookmarked,
        created_at=T0 + timedelta(minutes=minutes),
    )


class TestSqliteSolutionStore:
    def test_upsert_is_keyed_by_device_and_hash(self, store):
        store.upsert("dev", record("h1", solution="first"))
        store.upsert("dev", record("h1", minutes=1, solution="second", bookmarked=True))
        store.upsert("other", record("h1"))

        stored = store.find_by_hash("dev", "h1")
        assert stored.solution == "second"
        assert stored.bookmarked
        assert stored.created_at == T0 + timedelta(minutes=1)
        assert len(store.list_history("dev")) == 1
        assert len(store.list_history("other")) == 1

    def test_history_newest_first_and_filtered(self, store):
        store.upsert("dev", record("old", minutes=0, bookmarked=True))
        store.upsert("dev", record("new", minutes=5))
        store.upsert("dev", record("mid", minutes=2, bookmarked=True))

        assert [r.image_hash for r in store.list_history("dev")] == ["new", "mid", "old"]
        assert [r.image_hash for r in store.list_history("dev", bookmarked_only=True)] == ["mid", "old"]
        assert [r.image_hash for r in store.list_history("dev", limit=1)] == ["new"]

    def test_missing_record(self, store):
        assert store.find_by_hash("dev", "nope") is None

    def test_delete(self, store):
        store.upsert("dev", record("h1"))
        assert store.delete("dev", "h1") is True
        assert store.delete("dev", "h1") is False

    def test_document_shape(self):
        document = record("h1", bookmarked=True).to_document()
        assert set(document) == {"image", "imageHash", "solution", "bookmark", "timestamp"}
        assert SolutionRecord.from_document(document) == record("h1", bookmarked=True)

    def test_unreadable_database_raises(self, store, tmp_path):
        store.database_path = tmp_path / "missing-dir" / "nested" / "db.sqlite3"
        with pytest.raises(PersistenceUnavailable):
            store.list_history("dev")


class TestTranscriptCache:
    def test_save_and_load(self, tmp_path):
        cache = TranscriptCache(tmp_path)
        transcript = Transcript(
            [
                Message(author=Author.USER, image=b"\xff\xd8"),
                Message(author=Author.ASSISTANT, text="x = 2"),
            ]
        )
        cache.save("chat-1", transcript)

        loaded = cache.load("chat-1")
        assert loaded.to_dicts() == transcript.to_dicts()
        assert cache.list_chat_ids() == ["chat-1"]

    def test_missing_and_corrupt(self, tmp_path):
        cache = TranscriptCache(tmp_path)
        assert cache.load("absent") is None
        (tmp_path / "broken.json").write_text("{", encoding="utf-8")
        assert cache.load("broken") is None

    def test_delete(self, tmp_path):
        cache = TranscriptCache(tmp_path)
        cache.save("chat-1", Transcript())
        assert cache.delete("chat-1")
        assert not cache.delete("chat-1")


class TestDeviceIdentity:
    def test_created_once_and_reused(self, tmp_path):
        path = tmp_path / "state" / "device_id"
        first = DeviceIdentity.load_or_create(path)
        second = DeviceIdentity.load_or_create(path)
        assert first == second
        assert first.is_known
        assert first.device_id == first.device_id.upper()

    def test_unwritable_location_falls_back_to_unknown(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        identity = DeviceIdentity.load_or_create(blocker / "device_id")
        assert not identity.is_known
