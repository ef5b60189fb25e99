# Path: core/chat/session.py
# Purpose: Orchestrate one image-to-solution conversation.
# Layer: core/chat.
# Details: Owns the transcript and placeholder lifecycle, streams replies, handles regenerate/cancel and persistence hooks.

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Union

from PIL import Image

from config.settings import ChatSettings
from core.errors import MissingCredential, PersistenceUnavailable, RequestBuildFailure
from core.identity import DeviceIdentity
from core.imaging.encoding import DEFAULT_JPEG_QUALITY, content_hash, encode_jpeg, to_base64
from core.models.domain import Author, Message, SolutionRecord, StreamOutcome, StreamState
from .request import build_api_messages, build_chat_request
from .streaming import ChatStreamClient
from .transcript import Transcript

if TYPE_CHECKING:
    from core.chat.credentials import CredentialSource, StaticCredentials
    from core.storage.base import SolutionStore
    from core.storage.transcript_cache import TranscriptCache

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]


def _immediate(action: Callable[[], None]) -> None:
    action()


@dataclass
class SessionOutcome:
    """Result of one start/send/regenerate call.

    ``accepted`` is False when the call was refused because a stream was
    already running (or there was nothing to regenerate).
    """

    accepted: bool
    state: Optional[StreamState] = None
    message_id: Optional[str] = None
    error: Optional[str] = None


class SolutionSession:
    """Drive a streamed solution for one problem image.

    At most one stream runs per session. Deltas are applied through
    ``dispatch`` so a UI can marshal them onto the thread that owns the
    transcript; the transcript is lock-protected either way.
    """

    def __init__(
        self,
        settings: ChatSettings,
        client: ChatStreamClient,
        credentials: Union["CredentialSource", "StaticCredentials"],
        store: Optional["SolutionStore"] = None,
        identity: Optional[DeviceIdentity] = None,
        transcript: Optional[Transcript] = None,
        dispatch: Optional[Dispatch] = None,
        cache: Optional["TranscriptCache"] = None,
        chat_id: Optional[str] = None,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        self.settings = settings
        self.client = client
        self.credentials = credentials
        self.store = store
        self.identity = identity
        self.transcript = transcript if transcript is not None else Transcript()
        self.dispatch = dispatch or _immediate
        self.cache = cache
        self.chat_id = chat_id
        self.jpeg_quality = jpeg_quality

        self.image_bytes: Optional[bytes] = None
        self.bookmarked = False
        self.is_loading = False
        self.active_message_id: Optional[str] = None
        self.last_error: Optional[str] = None
        self._temperature = settings.solution_temperature
        self._stream_task: Optional[asyncio.Future] = None
        self._cancel_requested = False
        self.delta_observer: Optional[Callable[[str, str], None]] = None

    @classmethod
    def restore(cls, chat_id: str, cache: "TranscriptCache", **kwargs) -> "SolutionSession":
        """Rebuild a session from a cached transcript (empty when nothing is cached)."""

        transcript = cache.load(chat_id) or Transcript()
        session = cls(transcript=transcript, cache=cache, chat_id=chat_id, **kwargs)
        for message in transcript.snapshot():
            if message.is_user and message.image is not None:
                session.image_bytes = message.image
                break
        session.check_bookmark_status()
        return session

    # Conversation operations
    async def start_session(
        self,
        image: Union[Image.Image, bytes],
        prior_transcript: Optional[Iterable[Message]] = None,
    ) -> SessionOutcome:
        """
        Post the problem image and stream its solution into the transcript.

        External calls:
        - core/imaging/encoding.py::encode_jpeg - encodes the image for the request and the store.
        - core/chat/streaming.py::ChatStreamClient.run - streams the completion.
        """

        if not self._begin("start_session"):
            return SessionOutcome(accepted=False)

        try:
            self.image_bytes = image if isinstance(image, bytes) else encode_jpeg(image, quality=self.jpeg_quality)
        except (OSError, ValueError) as exc:
            return self._fail(f"Could not encode image: {exc}")
        if prior_transcript is not None:
            self.transcript.extend(prior_transcript)
        self.transcript.append(Message(author=Author.USER, image=self.image_bytes))
        self.transcript.append(Message(author=Author.USER, text=self.settings.user_prompt))
        self._temperature = self.settings.solution_temperature
        return await self._stream_reply()

    async def send_message(self, text: str) -> SessionOutcome:
        """Ask a follow-up question with the whole transcript as context."""

        text = text.strip()
        if not text:
            return SessionOutcome(accepted=False)
        if not self._begin("send_message"):
            return SessionOutcome(accepted=False)

        self.transcript.append(Message(author=Author.USER, text=text))
        self._temperature = self.settings.chat_temperature
        return await self._stream_reply()

    async def regenerate(self) -> SessionOutcome:
        """Drop the assistant output since the last user turn and stream it again."""

        if not any(message.is_user for message in self.transcript.snapshot()):
            logger.info("Nothing to regenerate")
            return SessionOutcome(accepted=False)
        if not self._begin("regenerate"):
            return SessionOutcome(accepted=False)

        removed = self.transcript.remove_assistant_messages_since_last_user()
        self._temperature = self._temperature_for_last_turn()
        logger.info("Regenerating reply (%d assistant messages removed)", removed)
        return await self._stream_reply()

    def cancel(self) -> bool:
        """Cancel the in-flight request; loading state is still cleared by the terminal callback."""

        if self._stream_task is None or self._stream_task.done():
            return False
        self._cancel_requested = True
        self._stream_task.cancel()
        return True

    # Streaming
    def _temperature_for_last_turn(self) -> float:
        # The image turn is answered as a solution; typed follow-ups as chat.
        for message in reversed(self.transcript.snapshot()):
            if not message.is_user:
                continue
            if message.image is not None:
                return self.settings.solution_temperature
            if message.text != self.settings.user_prompt:
                return self.settings.chat_temperature
        return self.settings.solution_temperature

    def _begin(self, operation: str) -> bool:
        if self.is_loading:
            logger.warning("Ignoring %s: a solution is already streaming", operation)
            return False
        self.is_loading = True
        self.last_error = None
        return True

    async def _stream_reply(self) -> SessionOutcome:
        try:
            api_key = self.credentials.load_api_key()
        except MissingCredential as exc:
            return self._fail(str(exc))

        history = self.transcript.snapshot()
        target_id = self.transcript.append(Message(author=Author.ASSISTANT, text=""))
        self.active_message_id = target_id

        try:
            request = build_chat_request(
                endpoint=self.settings.endpoint,
                api_key=api_key,
                model=self.settings.model,
                api_messages=build_api_messages(self.settings.system_prompt, history, self.settings.solution_prompt),
                temperature=self._temperature,
            )
        except RequestBuildFailure as exc:
            return self._fail(str(exc))

        def apply_delta(fragment: str) -> None:
            self.transcript.append_delta(target_id, fragment)
            if self.delta_observer is not None:
                self.delta_observer(target_id, fragment)

        def on_delta(fragment: str) -> None:
            self.dispatch(lambda: apply_delta(fragment))

        def on_complete(outcome: StreamOutcome) -> None:
            self.is_loading = False
            self.active_message_id = None

        logger.info("Requesting %s completion (%d transcript messages)", self.settings.model, len(history))
        self._stream_task = asyncio.ensure_future(self.client.run(request, on_delta, on_complete))
        try:
            outcome = await self._stream_task
        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            outcome = StreamOutcome(state=StreamState.CANCELLED)
        finally:
            self._stream_task = None
            self._cancel_requested = False
            self.is_loading = False
            self.active_message_id = None

        if outcome.state is StreamState.FAILED:
            return self._fail(f"Failed to get a solution: {outcome.error}", target_id)
        if outcome.state is StreamState.CANCELLED:
            self._drop_if_empty(target_id)
            self._save_transcript()
            return SessionOutcome(accepted=True, state=outcome.state)

        logger.info("Solution complete (%d deltas)", outcome.deltas)
        self._after_completion()
        return SessionOutcome(accepted=True, state=outcome.state, message_id=target_id)

    def _fail(self, text: str, placeholder_id: Optional[str] = None) -> SessionOutcome:
        """Surface ``text`` as one terminal assistant message, skipping exact repeats."""

        if placeholder_id is not None:
            self._drop_if_empty(placeholder_id)
        elif self.active_message_id is not None:
            self._drop_if_empty(self.active_message_id)

        last = self.transcript.last_assistant()
        if last is None or last.text != text:
            self.transcript.append(Message(author=Author.ASSISTANT, text=text))
        self.last_error = text
        self.is_loading = False
        self.active_message_id = None
        logger.warning("Session error: %s", text)
        self._save_transcript()
        return SessionOutcome(accepted=True, state=StreamState.FAILED, error=text)

    def _drop_if_empty(self, message_id: str) -> None:
        message = self.transcript.get(message_id)
        if message is not None and not message.text:
            self.transcript.remove(message_id)

    def _save_transcript(self) -> None:
        if self.cache is not None and self.chat_id and len(self.transcript):
            self.cache.save(self.chat_id, self.transcript)

    def _after_completion(self) -> None:
        self._save_transcript()
        if self.store is None or self.image_bytes is None:
            return
        # Keep the stored bookmark flag.
        bookmarked = self.check_bookmark_status()
        try:
            self._save_record(bookmarked)
        except PersistenceUnavailable as exc:
            logger.warning("Solution not saved: %s", exc)

    # Persistence hooks
    def content_hash(self) -> Optional[str]:
        return content_hash(self.image_bytes) if self.image_bytes is not None else None

    def solution_text(self) -> str:
        return self.transcript.assistant_text()

    def on_bookmark_toggled(self, bookmarked: bool) -> SolutionRecord:
        """Record the bookmark flag and upsert the solution in the store.

        Raises:
            PersistenceUnavailable: without a store, an image, or a known device identity.
        """

        self.bookmarked = bookmarked
        return self._save_record(bookmarked)

    def check_bookmark_status(self) -> bool:
        """Load the stored bookmark flag for this image, keeping the current value on failure."""

        image_hash = self.content_hash()
        if self.store is None or image_hash is None or self.identity is None or not self.identity.is_known:
            return self.bookmarked
        try:
            record = self.store.find_by_hash(self.identity.device_id, image_hash)
        except PersistenceUnavailable as exc:
            logger.warning("Error checking bookmark status: %s", exc)
            return self.bookmarked
        if record is not None:
            self.bookmarked = record.bookmarked
        return self.bookmarked

    def _save_record(self, bookmarked: bool) -> SolutionRecord:
        if self.store is None:
            raise PersistenceUnavailable("No solution store configured.")
        if self.image_bytes is None:
            raise PersistenceUnavailable("No problem image in this session.")
        if self.identity is None or not self.identity.is_known:
            raise PersistenceUnavailable("Device ID not available. Please try again.")

        record = SolutionRecord(
            image_base64=to_base64(self.image_bytes),
            image_hash=content_hash(self.image_bytes),
            solution=self.solution_text(),
            bookmarked=bookmarked,
        )
        logger.info("Storing solution %s (bookmark=%s)", record.image_hash[:12], bookmarked)
        return self.store.upsert(self.identity.device_id, record)
