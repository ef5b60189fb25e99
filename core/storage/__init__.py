# Path: core/storage/__init__.py
# Purpose: Package initializer for solution persistence and transcript caching.
# Layer: core/storage.
# Details: Exposes the store contract, the SQLite reference backend, and the local transcript cache.

from .base import SolutionStore
from .sqlite_store import SqliteSolutionStore
from .transcript_cache import TranscriptCache

__all__ = ["SolutionStore", "SqliteSolutionStore", "TranscriptCache"]
