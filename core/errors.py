# Path: core/errors.py
# Purpose: Define the error taxonomy shared by imaging, chat, and storage layers.
# Layer: core.
# Details: Geometry and crop errors are recovered locally; request, transport, and credential errors surface to users.

from __future__ import annotations

from typing import Optional


class HomeworkHelperError(Exception):
    """Base class for all recoverable application errors."""


class InvalidGeometry(HomeworkHelperError):
    """Raised when a crop transform receives degenerate input or collapses to zero area."""


class CropFailure(HomeworkHelperError):
    """Raised when the bitmap crop cannot produce an image."""


class RequestBuildFailure(HomeworkHelperError):
    """Raised when the chat request cannot be encoded or addressed."""


class TransportFailure(HomeworkHelperError):
    """Raised for network-level or HTTP status failures while streaming."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolParseFailure(HomeworkHelperError):
    """Raised for a single malformed event-stream line; never aborts the stream."""

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line


class MissingCredential(HomeworkHelperError):
    """Raised when no API key is available for a network call."""


class PersistenceUnavailable(HomeworkHelperError):
    """Raised when a solution cannot be persisted (no store or unknown device identity)."""


__all__ = [
    "HomeworkHelperError",
    "InvalidGeometry",
    "CropFailure",
    "RequestBuildFailure",
    "TransportFailure",
    "ProtocolParseFailure",
    "MissingCredential",
    "PersistenceUnavailable",
]
