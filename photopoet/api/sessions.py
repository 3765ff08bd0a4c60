"""
Purpose:
- UI boundary over HTTP: one session per browser tab, each backed by an InteractionController.
- upload / clear / analyze / generate, each answering with the fresh state snapshot.
"""

from __future__ import annotations
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..core.errors import InvalidInput, PhotoPoetError, SessionNotFound, StateError
from ..core.settings import settings
from ..services.controller import InteractionController
from ..services.sessions import SessionStore
from ..vlm.images import encode_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])

_STORE: Optional[SessionStore] = None  # cached instance


def get_session_store() -> SessionStore:
    global _STORE
    if _STORE is None:
        _STORE = SessionStore(max_sessions=settings.max_sessions)
    return _STORE


class PhotoRef(BaseModel):
    photo_url: str = Field(..., description="Image data URI or http(s) URL")


def _state(controller: InteractionController) -> dict:
    return controller.snapshot().model_dump(mode="json")


def _error(status: int, message: str, controller: Optional[InteractionController] = None) -> JSONResponse:
    body = {"ok": False, "error": message}
    if controller is not None:
        body["state"] = _state(controller)
    return JSONResponse(status_code=status, content=body)


def _status_for(e: PhotoPoetError) -> int:
    if isinstance(e, SessionNotFound):
        return 404
    if isinstance(e, StateError):
        return 409
    if isinstance(e, InvalidInput):
        return 422
    return 500


@router.post("")
def create_session(store: SessionStore = Depends(get_session_store)):
    session_id, controller = store.create()
    return {"ok": True, "session_id": session_id, "state": _state(controller)}


@router.get("/{session_id}")
def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    try:
        controller = store.get(session_id)
    except SessionNotFound as e:
        return _error(404, str(e))
    return {"ok": True, "state": _state(controller)}


@router.delete("/{session_id}")
def end_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    try:
        store.delete(session_id)
    except SessionNotFound as e:
        return _error(404, str(e))
    return {"ok": True}


@router.post("/{session_id}/photo")
async def upload_photo(
    session_id: str,
    image: Optional[UploadFile] = File(default=None),
    store: SessionStore = Depends(get_session_store),
):
    try:
        controller = store.get(session_id)
    except SessionNotFound as e:
        return _error(404, str(e))

    try:
        raw = await image.read(settings.max_upload_bytes + 1) if image is not None else b""
        photo = encode_upload(raw)
        controller.set_photo(photo)
    except InvalidInput as e:
        logger.info("Upload rejected for session %s: %s", session_id, e)
        controller.record_error(str(e))
        return _error(422, str(e), controller)
    return {"ok": True, "state": _state(controller)}


@router.put("/{session_id}/photo")
def set_photo(session_id: str, payload: PhotoRef, store: SessionStore = Depends(get_session_store)):
    try:
        controller = store.get(session_id)
        controller.set_photo(payload.photo_url)
    except PhotoPoetError as e:
        return _error(_status_for(e), str(e), None if isinstance(e, SessionNotFound) else controller)
    return {"ok": True, "state": _state(controller)}


@router.delete("/{session_id}/photo")
def clear_photo(session_id: str, store: SessionStore = Depends(get_session_store)):
    try:
        controller = store.get(session_id)
    except SessionNotFound as e:
        return _error(404, str(e))
    controller.clear()
    return {"ok": True, "state": _state(controller)}


@router.post("/{session_id}/analyze")
async def analyze(session_id: str, store: SessionStore = Depends(get_session_store)):
    try:
        controller = store.get(session_id)
    except SessionNotFound as e:
        return _error(404, str(e))
    try:
        await controller.request_analyze()
    except PhotoPoetError as e:
        return _error(_status_for(e), str(e), controller)
    return _snapshot_response(controller)


@router.post("/{session_id}/generate")
async def generate(session_id: str, store: SessionStore = Depends(get_session_store)):
    try:
        controller = store.get(session_id)
    except SessionNotFound as e:
        return _error(404, str(e))
    try:
        await controller.request_generate()
    except PhotoPoetError as e:
        return _error(_status_for(e), str(e), controller)
    return _snapshot_response(controller)


def _snapshot_response(controller: InteractionController) -> dict:
    # flow failures are recorded on the state rather than raised; surface them as ok=False
    state = _state(controller)
    if state["error"]:
        return {"ok": False, "error": state["error"], "state": state}
    return {"ok": True, "state": state}
