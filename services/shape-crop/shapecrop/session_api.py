"""
HTTP surface for the wizard session.

A browser client posts its pointer/keyboard events here; the server owns the
editor state machine and answers with the new state after every batch.
"""
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .compositing.crop import CutMode
from .compositing.export import attachment_headers
from .deps import get_session, get_store
from .editor.state import (
    Action,
    Clear,
    Click,
    CloseShape,
    PointerDown,
    PointerLeave,
    PointerMove,
    PointerUp,
    ResetPoints,
    StartOver,
    Undo,
)
from .errors import NotFoundError, ShapeCropError, ValidationError
from .geometry.models import CanvasSize
from .geometry.shapes import CustomShape, ShapeVariant, shape_from_persisted
from .session import AppSession, describe_editor
from .store.gateway import ShapeStore, validate_shape_payload
from .utils import read_image_from_bytes

logger = logging.getLogger("session_api")

router = APIRouter(prefix="/session", tags=["session"])


EventType = Literal[
    "click", "pointer_down", "pointer_move", "pointer_up", "pointer_leave",
    "undo", "clear", "close", "reset", "start_over",
]


class EditorEvent(BaseModel):
    type: EventType
    x: float = 0.0
    y: float = 0.0
    # Size the canvas was displayed at when the event fired (CSS pixels).
    display_width: Optional[float] = Field(None, gt=0)
    display_height: Optional[float] = Field(None, gt=0)


class EditorEventBatch(BaseModel):
    events: List[EditorEvent]


class SelectShapeRequest(BaseModel):
    shape: Optional[ShapeVariant] = None
    # Id of a stored shape; rebuilt from the store when given.
    shape_id: Optional[str] = None


class CustomDrawRequest(BaseModel):
    initial: Optional[CustomShape] = None
    snap_to_edges: Optional[bool] = None


class SaveShapeRequest(BaseModel):
    name: str
    description: str = ""
    is_standard: bool = False


class CropRequest(BaseModel):
    mode: CutMode = CutMode.HOLE


def to_action(event: EditorEvent) -> Action:
    t = event.type
    if t == "click":
        return Click(x=event.x, y=event.y)
    if t == "pointer_down":
        return PointerDown(x=event.x, y=event.y)
    if t == "pointer_move":
        return PointerMove(x=event.x, y=event.y)
    if t == "pointer_up":
        return PointerUp()
    if t == "pointer_leave":
        return PointerLeave()
    if t == "undo":
        return Undo()
    if t == "clear":
        return Clear()
    if t == "close":
        return CloseShape()
    if t == "reset":
        return ResetPoints()
    return StartOver()


def _error(e: ShapeCropError) -> JSONResponse:
    return JSONResponse({"error": e.message}, status_code=e.status_code)


def _load_stored_shape(store: ShapeStore, shape_id: str) -> CustomShape:
    for stored in store.list_shapes():
        if stored.id == shape_id:
            return shape_from_persisted(stored.model_dump())
    raise NotFoundError(f"Shape {shape_id} not found")


@router.get("")
def get_session_state(session: AppSession = Depends(get_session)):
    return session.summary()


@router.delete("")
def reset_session(session: AppSession = Depends(get_session)):
    session.reset()
    return session.summary()


@router.post("/image")
async def upload_image(file: UploadFile = File(...), session: AppSession = Depends(get_session)):
    contents = await file.read()
    filename = file.filename or "upload"
    token = session.begin_image_load()
    try:
        image = await run_in_threadpool(read_image_from_bytes, contents)
    except ShapeCropError as e:
        session.fail_image_load(token)
        return _error(e)

    if not session.finish_image_load(token, filename, image):
        logger.info("Upload of %s superseded before decode finished", filename)
        return JSONResponse({"error": "Upload superseded by a newer image"}, status_code=409)
    return session.summary()


@router.post("/shape")
def select_shape(
    request: SelectShapeRequest,
    session: AppSession = Depends(get_session),
    store: ShapeStore = Depends(get_store),
):
    try:
        shape = request.shape
        if request.shape_id:
            shape = _load_stored_shape(store, request.shape_id)
        if shape is None:
            raise ValidationError("Provide a shape or a shape_id")
        session.select_shape(shape)
    except ShapeCropError as e:
        return _error(e)
    return session.summary()


@router.post("/custom-draw")
def open_editor(request: CustomDrawRequest, session: AppSession = Depends(get_session)):
    try:
        state = session.open_editor(request.initial, snap=request.snap_to_edges)
    except ShapeCropError as e:
        return _error(e)
    return describe_editor(state)


@router.post("/editor/events")
def post_editor_events(batch: EditorEventBatch, session: AppSession = Depends(get_session)):
    events = []
    for event in batch.events:
        displayed = None
        if event.display_width and event.display_height:
            displayed = CanvasSize(width=event.display_width, height=event.display_height)
        events.append((to_action(event), displayed))
    try:
        state = session.dispatch_all(events)
    except ShapeCropError as e:
        return _error(e)
    return describe_editor(state)


@router.post("/editor/complete")
def complete_editor(session: AppSession = Depends(get_session)):
    try:
        session.complete_custom_shape()
    except ShapeCropError as e:
        return _error(e)
    return session.summary()


@router.post("/save")
def save_current_shape(
    request: SaveShapeRequest,
    session: AppSession = Depends(get_session),
    store: ShapeStore = Depends(get_store),
):
    try:
        payload = session.save_payload(request.name, request.description, request.is_standard)
        shape_id = store.create_shape(validate_shape_payload(payload))
    except ShapeCropError as e:
        return _error(e)
    logger.info("Saved session shape %s as %s", request.name, shape_id)
    return {"success": True, "id": shape_id, "message": "Shape saved successfully"}


@router.post("/crop")
def crop_session_image(request: CropRequest, session: AppSession = Depends(get_session)):
    try:
        cropped = session.crop(request.mode)
    except ShapeCropError as e:
        return _error(e)
    return {"step": session.step.value, "width": cropped.width, "height": cropped.height}


@router.get("/download")
def download_result(session: AppSession = Depends(get_session)):
    try:
        filename, png = session.download()
    except ShapeCropError as e:
        return _error(e)
    return Response(content=png, media_type="image/png", headers=attachment_headers(filename))


@router.post("/back")
def go_back(session: AppSession = Depends(get_session)):
    session.go_back()
    return session.summary()
