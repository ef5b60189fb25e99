# Path: core/services.py
# Purpose: Wire settings into the long-lived collaborators used by the API and CLI.
# Layer: core.
# Details: The entry point builds one Services bundle (identity, store, cache, transport) and creates sessions and crop rects from it.

from __future__ import annotations

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

import httpx

from config.settings import AppSettings
from core.chat.credentials import CredentialSource
from core.chat.session import SolutionSession
from core.chat.streaming import ChatStreamClient
from core.identity import DeviceIdentity
from core.imaging.crop_rect import CropRect
from core.imaging.cropper import ImageCropper
from core.imaging.geometry import Rect, Size
from core.storage.base import SolutionStore
from core.storage.sqlite_store import SqliteSolutionStore
from core.storage.transcript_cache import TranscriptCache

DEFAULT_MAX_LIVE_SESSIONS = 256


@dataclass
class Services:
    """Collaborators shared by every session of one running application.

    Sessions are kept per ``chat_id`` while the process runs, so every caller
    addressing a chat talks to the same session and its single-stream guard.
    """

    settings: AppSettings
    identity: DeviceIdentity
    credentials: CredentialSource
    store: Optional[SolutionStore] = None
    cache: Optional[TranscriptCache] = None
    cropper: ImageCropper = field(default_factory=ImageCropper)
    transport: Optional[httpx.AsyncBaseTransport] = None
    max_live_sessions: int = DEFAULT_MAX_LIVE_SESSIONS
    _live: "OrderedDict[str, SolutionSession]" = field(default_factory=OrderedDict, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings: AppSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "Services":
        """Build the default stack: SQLite store and JSON transcript cache; ``transport`` overrides httpx networking."""

        return cls(
            settings=settings,
            identity=DeviceIdentity.load_or_create(settings.storage.device_id_path),
            credentials=CredentialSource(settings.chat.api_key_env, settings.chat.secrets_path),
            store=SqliteSolutionStore(settings.storage.database_path),
            cache=TranscriptCache(settings.storage.transcript_cache_dir),
            transport=transport,
        )

    # Crop rectangles
    def initial_crop_rect(self, display_frame: Rect) -> CropRect:
        """Centered starting crop inside ``display_frame`` using the configured ratios and limits."""

        crop = self.settings.crop
        rect = CropRect.centered(
            Size(display_frame.width, display_frame.height),
            width_ratio=crop.initial_width_ratio,
            height_ratio=crop.initial_height_ratio,
            min_dimension=crop.min_dimension,
            move_sensitivity=crop.move_sensitivity,
        )
        rect.x += display_frame.x
        rect.y += display_frame.y
        return rect

    def crop_rect(self, rect: Rect) -> CropRect:
        """Wrap a client-supplied rectangle with the configured minimum size and drag damping."""

        crop = self.settings.crop
        return CropRect(
            rect.x,
            rect.y,
            rect.width,
            rect.height,
            min_dimension=crop.min_dimension,
            move_sensitivity=crop.move_sensitivity,
        )

    # Sessions
    def new_client(self) -> ChatStreamClient:
        return ChatStreamClient(transport=self.transport, timeout=self.settings.chat.request_timeout)

    def new_session(self, chat_id: Optional[str] = None, identity: Optional[DeviceIdentity] = None) -> SolutionSession:
        """Create and register a session; each one gets its own transcript, stream client, and cache entry."""

        session = SolutionSession(
            settings=self.settings.chat,
            client=self.new_client(),
            credentials=self.credentials,
            store=self.store,
            identity=identity or self.identity,
            cache=self.cache,
            chat_id=chat_id or uuid.uuid4().hex,
            jpeg_quality=self.settings.crop.jpeg_quality,
        )
        self._remember(session)
        return session

    def restore_session(self, chat_id: str, identity: Optional[DeviceIdentity] = None) -> Optional[SolutionSession]:
        """Return the live session for ``chat_id`` or reopen it from the cache; None when unknown.

        A given ``identity`` replaces the session's identity unless a reply is streaming.
        """

        live = self._live.get(chat_id)
        if live is not None and (live.is_loading or len(live.transcript)):
            self._live.move_to_end(chat_id)
            if identity is not None and not live.is_loading:
                live.identity = identity
                live.check_bookmark_status()
            return live

        if self.cache is None:
            return None
        session = SolutionSession.restore(
            chat_id,
            self.cache,
            settings=self.settings.chat,
            client=self.new_client(),
            credentials=self.credentials,
            store=self.store,
            identity=identity or self.identity,
            jpeg_quality=self.settings.crop.jpeg_quality,
        )
        if not len(session.transcript):
            return None
        self._remember(session)
        return session

    def _remember(self, session: SolutionSession) -> None:
        if not session.chat_id:
            return
        self._live[session.chat_id] = session
        self._live.move_to_end(session.chat_id)
        # Idle sessions are reopened from the cache on demand.
        for chat_id in list(self._live):
            if len(self._live) <= self.max_live_sessions:
                break
            if not self._live[chat_id].is_loading:
                del self._live[chat_id]
