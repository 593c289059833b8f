"""
Point capture and edit state machine.

DRAWING -> EDITING once the polygon is closed (>= 3 points). Every transition
is a pure function `reduce(state, action) -> state`; states are immutable so a
caller can keep the previous value around (undo stacks, diffing, tests).

Coordinates handed to `reduce` are already logical canvas coordinates; see
`editor.coords.to_logical` for the display-to-logical step.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from ..errors import ValidationError
from ..geometry.models import CanvasSize, Point, Polygon, dist
from .coords import CLOSE_RADIUS, DRAG_RADIUS, nearest_point_index, snap_to_edges


class EditorMode(str, Enum):
    DRAWING = "drawing"
    EDITING = "editing"


@dataclass(frozen=True)
class EditorState:
    canvas_size: CanvasSize
    mode: EditorMode = EditorMode.DRAWING
    points: Tuple[Point, ...] = ()
    original: Tuple[Point, ...] = ()
    dragged_index: Optional[int] = None
    pointer: Optional[Point] = None
    snap_to_edges: bool = False

    @property
    def is_dragging(self) -> bool:
        return self.dragged_index is not None

    @property
    def can_close(self) -> bool:
        return self.mode is EditorMode.DRAWING and len(self.points) >= 3

    @property
    def can_complete(self) -> bool:
        return self.mode is not EditorMode.DRAWING and len(self.points) >= 3


# --- Actions ---

@dataclass(frozen=True)
class Click:
    x: float
    y: float


@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    pass


@dataclass(frozen=True)
class PointerLeave:
    pass


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class CloseShape:
    pass


@dataclass(frozen=True)
class ResetPoints:
    pass


@dataclass(frozen=True)
class StartOver:
    pass


Action = Union[
    Click, PointerDown, PointerMove, PointerUp, PointerLeave,
    Undo, Clear, CloseShape, ResetPoints, StartOver,
]


def new_editor(
    canvas_size: CanvasSize,
    initial_points: Optional[Sequence[Point]] = None,
    snap: bool = False,
) -> EditorState:
    """Fresh editor; with initial points (a saved shape) it opens straight in EDITING."""
    if initial_points:
        pts = tuple(Point(x=p.x, y=p.y) for p in initial_points)
        return EditorState(
            canvas_size=canvas_size,
            mode=EditorMode.EDITING,
            points=pts,
            original=pts,
            snap_to_edges=snap,
        )
    return EditorState(canvas_size=canvas_size, snap_to_edges=snap)


def _capture(state: EditorState, x: float, y: float) -> Point:
    p = Point(x=x, y=y)
    if state.snap_to_edges:
        p = snap_to_edges(p, state.canvas_size)
    return p


def _close(state: EditorState) -> EditorState:
    if not state.can_close:
        return state
    return replace(
        state,
        mode=EditorMode.EDITING,
        original=state.points,
        pointer=None,
        dragged_index=None,
    )


def reduce(state: EditorState, action: Action) -> EditorState:
    if isinstance(action, Click):
        if state.mode is not EditorMode.DRAWING:
            return state
        if len(state.points) >= 3:
            if dist(Point(x=action.x, y=action.y), state.points[0]) < CLOSE_RADIUS:
                return _close(state)
        return replace(state, points=state.points + (_capture(state, action.x, action.y),))

    if isinstance(action, CloseShape):
        return _close(state)

    if isinstance(action, Undo):
        if state.mode is not EditorMode.DRAWING or not state.points:
            return state
        return replace(state, points=state.points[:-1])

    if isinstance(action, Clear):
        if state.mode is not EditorMode.DRAWING:
            return state
        return replace(state, points=())

    if isinstance(action, PointerDown):
        if state.mode is not EditorMode.EDITING:
            return state
        index = nearest_point_index(state.points, Point(x=action.x, y=action.y), DRAG_RADIUS)
        if index is None:
            return state
        return replace(state, dragged_index=index)

    if isinstance(action, PointerMove):
        if state.mode is EditorMode.EDITING and state.dragged_index is not None:
            moved = _capture(state, action.x, action.y)
            points = tuple(
                moved if i == state.dragged_index else p
                for i, p in enumerate(state.points)
            )
            return replace(state, points=points)
        if state.mode is EditorMode.DRAWING:
            return replace(state, pointer=Point(x=action.x, y=action.y))
        return state

    if isinstance(action, PointerUp):
        return replace(state, dragged_index=None)

    if isinstance(action, PointerLeave):
        return replace(state, dragged_index=None, pointer=None)

    if isinstance(action, ResetPoints):
        if state.mode is not EditorMode.EDITING:
            return state
        return replace(state, points=state.original, dragged_index=None)

    if isinstance(action, StartOver):
        return replace(
            state,
            mode=EditorMode.DRAWING,
            points=(),
            original=(),
            dragged_index=None,
            pointer=None,
        )

    raise TypeError(f"Unknown editor action: {action!r}")


def complete(state: EditorState) -> Polygon:
    """The finished polygon; refused while the shape is still open."""
    if not state.can_complete:
        raise ValidationError("Shape must be closed with at least 3 points before it can be used")
    return [Point(x=p.x, y=p.y) for p in state.points]
