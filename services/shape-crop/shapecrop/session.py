"""
Wizard session: upload -> shapes -> custom-draw -> crop -> download.

One `AppSession` holds everything the steps share. The editor canvas size is
produced once, when the editor opens, and carried forward with the finished
polygon; later steps never re-derive it from the source image.

Image decoding happens off the event loop. `begin_image_load` hands out a
token and `finish_image_load` ignores any result whose token is no longer the
latest, so a slow decode cannot overwrite a newer upload.

All mutations go through one re-entrant lock, so concurrent requests see
the session change one step at a time.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from PIL import Image

from .compositing.crop import CutMode, crop_image_with_shape
from .compositing.export import canvas_to_png, export_filename
from .config import Settings
from .editor.coords import to_logical
from .editor.state import (
    Action,
    Click,
    EditorState,
    PointerDown,
    PointerMove,
    complete,
    new_editor,
    reduce,
)
from .errors import SessionStateError, ValidationError
from .geometry.models import CanvasSize, Point
from .geometry.shapes import (
    CustomShape,
    TemplateShape,
    create_custom_shape,
    fit_editor_canvas,
    scale_polygon,
)

logger = logging.getLogger("session")


class Step(str, Enum):
    UPLOAD = "upload"
    SHAPES = "shapes"
    CUSTOM_DRAW = "custom-draw"
    CROP = "crop"
    DOWNLOAD = "download"


STEP_ORDER = [Step.UPLOAD, Step.SHAPES, Step.CUSTOM_DRAW, Step.CROP, Step.DOWNLOAD]


@dataclass
class SourceImage:
    filename: str
    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


def describe_editor(state: EditorState) -> Dict[str, Any]:
    return {
        "mode": state.mode.value,
        "points": [p.model_dump() for p in state.points],
        "original": [p.model_dump() for p in state.original],
        "dragged_index": state.dragged_index,
        "pointer": state.pointer.model_dump() if state.pointer else None,
        "canvas_size": state.canvas_size.model_dump(),
        "snap_to_edges": state.snap_to_edges,
        "can_close": state.can_close,
        "can_complete": state.can_complete,
    }


class AppSession:
    def __init__(self, settings: Settings):
        self._settings = settings
        self._lock = threading.RLock()
        self._load_token = 0
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.step = Step.UPLOAD
            self.source: Optional[SourceImage] = None
            self.selected_shape: Optional[Union[TemplateShape, CustomShape]] = None
            self.editor: Optional[EditorState] = None
            self.result_png: Optional[bytes] = None
            # Outstanding decodes from before the reset become stale.
            self._load_token += 1

    # --- Upload ---

    def begin_image_load(self) -> int:
        with self._lock:
            self._load_token += 1
            return self._load_token

    def is_current_load(self, token: int) -> bool:
        return token == self._load_token

    def finish_image_load(self, token: int, filename: str, image: Image.Image) -> bool:
        with self._lock:
            if not self.is_current_load(token):
                logger.info("Ignoring stale image decode for %s", filename)
                return False
            self.source = SourceImage(filename=filename, image=image)
            self.selected_shape = None
            self.editor = None
            self.result_png = None
            self.step = Step.SHAPES
        logger.info("Loaded %s (%dx%d)", filename, image.width, image.height)
        return True

    def fail_image_load(self, token: int) -> bool:
        with self._lock:
            if not self.is_current_load(token):
                return False
            self.source = None
            self.step = Step.UPLOAD
            return True

    def _require_image(self) -> SourceImage:
        if self.source is None:
            raise SessionStateError("Upload an image first")
        return self.source

    # --- Shape selection / editing ---

    def select_shape(self, shape: Union[TemplateShape, CustomShape]) -> None:
        with self._lock:
            self._require_image()
            if isinstance(shape, TemplateShape):
                # The placeholder template means "draw your own".
                self.open_editor()
                return
            self.selected_shape = shape
            self.editor = None
            self.result_png = None
            self.step = Step.CROP

    def editor_canvas(self) -> CanvasSize:
        source = self._require_image()
        return fit_editor_canvas(
            source.width,
            source.height,
            self._settings.editor_max_width,
            self._settings.editor_max_height,
        )

    def open_editor(self, initial: Optional[CustomShape] = None, snap: Optional[bool] = None) -> EditorState:
        with self._lock:
            canvas = self.editor_canvas()
            points = None
            if initial is not None and initial.points:
                points = scale_polygon(initial.points, initial.canvas_size, canvas)
            if snap is None:
                snap = self._settings.snap_to_edges
            self.editor = new_editor(canvas, points, snap=snap)
            self.step = Step.CUSTOM_DRAW
            return self.editor

    def _require_editor(self) -> EditorState:
        if self.editor is None:
            raise SessionStateError("The shape editor is not open")
        return self.editor

    def dispatch(self, action: Action, displayed: Optional[CanvasSize] = None) -> EditorState:
        with self._lock:
            state = self._require_editor()
            if displayed is not None and isinstance(action, (Click, PointerDown, PointerMove)):
                p = to_logical(Point(x=action.x, y=action.y), displayed, state.canvas_size)
                action = type(action)(x=p.x, y=p.y)
            self.editor = reduce(state, action)
            return self.editor

    def dispatch_all(self, events: Iterable[Tuple[Action, Optional[CanvasSize]]]) -> EditorState:
        """Apply a batch of events with no other request interleaving."""
        with self._lock:
            state = self._require_editor()
            for action, displayed in events:
                state = self.dispatch(action, displayed)
            return state

    def complete_custom_shape(self) -> CustomShape:
        with self._lock:
            state = self._require_editor()
            points = complete(state)
            self.selected_shape = create_custom_shape(points, state.canvas_size)
            self.result_png = None
            self.step = Step.CROP
            return self.selected_shape

    def save_payload(self, name: str, description: str = "", is_standard: bool = False) -> Dict[str, Any]:
        """Body for the shape store built from the current custom polygon."""
        with self._lock:
            shape = self.selected_shape if isinstance(self.selected_shape, CustomShape) else None
            if shape is None and self.editor is not None and self.editor.can_complete:
                shape = create_custom_shape(complete(self.editor), self.editor.canvas_size)
        if shape is None:
            raise ValidationError("There is no finished custom shape to save")
        return {
            "name": name,
            "description": description,
            "is_standard": is_standard,
            "points": [p.model_dump() for p in shape.points],
            "canvas_size": shape.canvas_size.model_dump(),
        }

    # --- Crop / download ---

    def crop(self, mode: CutMode = CutMode.HOLE) -> Image.Image:
        with self._lock:
            source = self._require_image()
            if self.selected_shape is None:
                raise SessionStateError("Select or draw a shape first")
            cropped = crop_image_with_shape(
                source.image,
                self.selected_shape,
                output_size=self._settings.output_size,
                mode=mode,
            )
            self.result_png = canvas_to_png(cropped)
            self.step = Step.DOWNLOAD
            return cropped

    def download(self) -> Tuple[str, bytes]:
        with self._lock:
            png = self.result_png
        if png is None:
            raise SessionStateError("Nothing has been cropped yet")
        return export_filename(self._settings.export_basename), png

    def go_back(self) -> Step:
        with self._lock:
            if self.step is Step.CROP and isinstance(self.selected_shape, CustomShape) and self.editor is None:
                # A saved shape was picked directly; there is no drawing step to return to.
                self.step = Step.SHAPES
            elif self.step is Step.CUSTOM_DRAW:
                self.step = Step.SHAPES
            else:
                index = STEP_ORDER.index(self.step)
                if index > 0:
                    self.step = STEP_ORDER[index - 1]
            return self.step

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "step": self.step.value,
                "image": (
                    {"filename": self.source.filename, "width": self.source.width, "height": self.source.height}
                    if self.source else None
                ),
                "selected_shape": self.selected_shape.model_dump(mode="json") if self.selected_shape else None,
                "editor": describe_editor(self.editor) if self.editor else None,
                "has_result": self.result_png is not None,
            }
