# Path: api/app.py
# Purpose: Expose a FastAPI application for cropping problem images and streaming their solutions.
# Layer: api.
# Details: Provides health, crop (initial, gesture, apply), streamed solve/follow-up, bookmark, and history endpoints over core services.

from __future__ import annotations

import asyncio
import base64
import binascii
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from core.chat.session import SessionOutcome, SolutionSession
from core.errors import CropFailure, PersistenceUnavailable
from core.identity import DeviceIdentity
from core.imaging.crop_rect import Corner
from core.imaging.encoding import decode_image, encode_jpeg, to_base64
from core.imaging.geometry import Point, Rect, Size
from core.services import Services


def _decode_base64(value: Any, field: str) -> bytes:
    from fastapi import HTTPException

    if not isinstance(value, str) or not value:
        raise HTTPException(status_code=400, detail=f"{field} must be a base64 string.")
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{field} is not valid base64.") from exc


def _parse_rect(value: Any, field: str) -> Rect:
    from fastapi import HTTPException

    if not isinstance(value, dict):
        raise HTTPException(status_code=400, detail=f"{field} must be an object with x, y, width, height.")
    try:
        return Rect(float(value["x"]), float(value["y"]), float(value["width"]), float(value["height"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{field} must contain numeric x, y, width, height.") from exc


def _parse_point(value: Any, field: str) -> Point:
    from fastapi import HTTPException

    try:
        return Point(float(value["x"]), float(value["y"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{field} must contain numeric x, y.") from exc


def _parse_size(value: Any, field: str) -> Size:
    from fastapi import HTTPException

    try:
        size = Size(float(value["width"]), float(value["height"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{field} must contain numeric width, height.") from exc
    if not size.is_positive:
        raise HTTPException(status_code=400, detail=f"{field} must have positive width and height.")
    return size


def _rect_payload(rect: Optional[Rect]) -> Optional[Dict[str, float]]:
    if rect is None:
        return None
    return {"x": rect.x, "y": rect.y, "width": rect.width, "height": rect.height}


async def _stream_session(
    session: SolutionSession, run: Callable[[], Awaitable[SessionOutcome]]
) -> AsyncIterator[str]:
    """Yield solution fragments as they reach the transcript, then any surfaced error."""

    queue: asyncio.Queue = asyncio.Queue()
    session.delta_observer = lambda _message_id, fragment: queue.put_nowait(fragment)
    task = asyncio.ensure_future(run())
    task.add_done_callback(lambda _task: queue.put_nowait(None))
    try:
        while True:
            fragment = await queue.get()
            if fragment is None:
                break
            yield fragment
        outcome = task.result()
        if not outcome.accepted:
            yield "A solution is already being generated."
        elif outcome.error:
            yield outcome.error
    finally:
        if not task.done():
            session.cancel()
        session.delta_observer = None


def create_app(services: Optional[Services] = None):  # type: ignore[override]
    """Create a FastAPI app instance backed by the provided services bundle."""

    from fastapi import FastAPI, HTTPException
    from fastapi.responses import StreamingResponse

    app = FastAPI(title="Homework Helper API", version="0.1.0")

    def require_services() -> Services:
        if services is None:
            raise HTTPException(status_code=500, detail="Services are not configured.")
        return services

    def identity_for(device_id: Optional[str]) -> Optional[DeviceIdentity]:
        return DeviceIdentity(device_id) if device_id else None

    def restore_session(svc: Services, chat_id: str, device_id: Optional[str]) -> SolutionSession:
        session = svc.restore_session(chat_id, identity_for(device_id))
        if session is None:
            raise HTTPException(status_code=404, detail=f"Chat {chat_id} not found.")
        return session

    @app.get("/health")
    def health() -> Dict[str, str]:
        """Return a simple health status payload."""

        return {"status": "ok"}

    @app.post("/crop/initial")
    def initial_crop(payload: Dict[str, Any]):
        """Return the starting crop rectangle for an image shown in ``display_frame``."""

        svc = require_services()
        display_frame = _parse_rect(payload.get("display_frame"), "display_frame")
        return {"crop_rect": _rect_payload(svc.initial_crop_rect(display_frame).to_rect())}

    @app.post("/crop/adjust")
    def adjust_crop(payload: Dict[str, Any]):
        """Apply one corner-drag or move gesture to a crop rectangle."""

        svc = require_services()
        rect = svc.crop_rect(_parse_rect(payload.get("crop_rect"), "crop_rect"))
        gesture = payload.get("gesture")
        if gesture == "move":
            translation = _parse_point(payload.get("translation"), "translation")
            rect.move_by(translation, _parse_size(payload.get("bounds"), "bounds"))
        elif gesture == "corner":
            try:
                corner = Corner(payload.get("corner"))
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=f"Unknown corner {payload.get('corner')!r}.") from exc
            rect.drag_corner(corner, _parse_point(payload.get("location"), "location"))
        else:
            raise HTTPException(status_code=400, detail="gesture must be 'move' or 'corner'.")
        return {"crop_rect": _rect_payload(rect.to_rect())}

    @app.post("/crop")
    def crop(payload: Dict[str, Any]):
        """Crop an uploaded image to a selection made over its aspect-fit rendering.

        Without ``crop_rect`` the configured initial crop inside ``display_frame`` is used.
        """

        svc = require_services()
        data = _decode_base64(payload.get("image_base64"), "image_base64")
        display_frame = _parse_rect(payload.get("display_frame"), "display_frame")
        if payload.get("crop_rect") is None:
            crop_rect = svc.initial_crop_rect(display_frame).to_rect()
        else:
            crop_rect = _parse_rect(payload.get("crop_rect"), "crop_rect")
        try:
            image = decode_image(data)
        except CropFailure as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        result = svc.cropper.crop_display_selection(image, crop_rect, display_frame)
        return {
            "image_base64": to_base64(encode_jpeg(result.image, quality=svc.settings.crop.jpeg_quality)),
            "width": result.image.width,
            "height": result.image.height,
            "pixel_rect": _rect_payload(result.pixel_rect),
            "fell_back": result.fell_back,
            "reason": result.reason,
        }

    @app.post("/solve")
    async def solve(payload: Dict[str, Any]):
        """Stream the solution for a problem image as plain text."""

        svc = require_services()
        data = _decode_base64(payload.get("image_base64"), "image_base64")
        try:
            image = decode_image(data)
        except CropFailure as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        session = svc.new_session(identity=identity_for(payload.get("device_id")))
        return StreamingResponse(
            _stream_session(session, lambda: session.start_session(image)),
            media_type="text/plain; charset=utf-8",
            headers={"X-Chat-Id": session.chat_id or ""},
        )

    @app.post("/chats/{chat_id}/messages")
    async def follow_up(chat_id: str, payload: Dict[str, Any]):
        """Stream the reply to a follow-up question in an existing chat."""

        svc = require_services()
        text = payload.get("text")
        if not isinstance(text, str) or not text.strip():
            raise HTTPException(status_code=400, detail="text must be a non-empty string.")
        session = restore_session(svc, chat_id, payload.get("device_id"))
        return StreamingResponse(
            _stream_session(session, lambda: session.send_message(text)),
            media_type="text/plain; charset=utf-8",
            headers={"X-Chat-Id": chat_id},
        )

    @app.post("/chats/{chat_id}/regenerate")
    async def regenerate(chat_id: str, payload: Optional[Dict[str, Any]] = None):
        """Discard the latest reply of a chat and stream a new one."""

        svc = require_services()
        session = restore_session(svc, chat_id, (payload or {}).get("device_id"))
        return StreamingResponse(
            _stream_session(session, session.regenerate),
            media_type="text/plain; charset=utf-8",
            headers={"X-Chat-Id": chat_id},
        )

    @app.get("/chats/{chat_id}")
    def get_chat(chat_id: str):
        """Return the cached transcript of a chat."""

        svc = require_services()
        session = restore_session(svc, chat_id, None)
        return {"chat_id": chat_id, "messages": session.transcript.to_dicts()}

    @app.post("/chats/{chat_id}/bookmark")
    def bookmark(chat_id: str, payload: Dict[str, Any]):
        """Set the bookmark flag of a chat's solution and persist it."""

        svc = require_services()
        session = restore_session(svc, chat_id, payload.get("device_id"))
        try:
            record = session.on_bookmark_toggled(bool(payload.get("bookmarked", True)))
        except PersistenceUnavailable as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"imageHash": record.image_hash, "bookmark": record.bookmarked}

    @app.get("/history/{device_id}")
    def history(device_id: str, bookmarked_only: bool = False, limit: Optional[int] = None):
        """List stored solutions for a device, newest first."""

        svc = require_services()
        if svc.store is None:
            raise HTTPException(status_code=500, detail="Solution store is not configured.")
        try:
            records = svc.store.list_history(device_id, bookmarked_only=bookmarked_only, limit=limit)
        except PersistenceUnavailable as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"results": [record.to_document() for record in records]}

    return app
