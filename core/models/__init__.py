# Path: core/models/__init__.py
# Purpose: Package initializer for domain model definitions.
# Layer: core/models.
# Details: Exposes dataclasses used across imaging, chat, and storage layers.

from .domain import Author, Message, SolutionRecord, StreamOutcome, StreamState

__all__ = ["Author", "Message", "SolutionRecord", "StreamOutcome", "StreamState"]
