# Path: core/storage/base.py
# Purpose: Define the SolutionStore interface for persisting solved problems.
# Layer: core/storage.
# Details: Documents are keyed by device id and deduplicated by image content hash.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from core.models.domain import SolutionRecord


class SolutionStore(ABC):
    """Abstract base class for pluggable solution/bookmark stores.

    Implementations raise :class:`core.errors.PersistenceUnavailable` when the
    backend cannot be reached.
    """

    name: str

    @abstractmethod
    def upsert(self, device_id: str, record: SolutionRecord) -> SolutionRecord:
        """Create the record, or update the existing one with the same image hash."""

    @abstractmethod
    def find_by_hash(self, device_id: str, image_hash: str) -> Optional[SolutionRecord]:
        """Return the record stored for ``image_hash`` if any."""

    @abstractmethod
    def list_history(self, device_id: str, bookmarked_only: bool = False, limit: Optional[int] = None) -> List[SolutionRecord]:
        """Return records newest first."""

    @abstractmethod
    def delete(self, device_id: str, image_hash: str) -> bool:
        """Remove a record; return True if one existed."""
