"""
Coordinate helpers for the interactive editor.

Pointer positions arrive in display (CSS) pixels relative to the element's
bounding box. The editor works in the canvas backing resolution, so every
position is converted before it reaches the state machine.
"""
from typing import Optional, Sequence

from ..geometry.models import CanvasSize, Point, dist

CLOSE_RADIUS = 15.0
DRAG_RADIUS = 10.0
SNAP_THRESHOLD = 10.0


def to_logical(point: Point, displayed: CanvasSize, backing: CanvasSize) -> Point:
    if displayed.width <= 0 or displayed.height <= 0:
        return point
    return Point(
        x=point.x * backing.width / displayed.width,
        y=point.y * backing.height / displayed.height,
    )


def _snap_axis(value: float, limit: float, threshold: float) -> float:
    if abs(value) <= threshold:
        return 0.0
    if abs(limit - value) <= threshold:
        return float(limit)
    return value


def snap_to_edges(point: Point, canvas: CanvasSize, threshold: float = SNAP_THRESHOLD) -> Point:
    return Point(
        x=_snap_axis(point.x, canvas.width, threshold),
        y=_snap_axis(point.y, canvas.height, threshold),
    )


def nearest_point_index(points: Sequence[Point], target: Point, radius: float) -> Optional[int]:
    """Index of the closest vertex strictly within `radius`; ties go to the lower index."""
    best_index = None
    best_dist = radius
    for i, p in enumerate(points):
        d = dist(p, target)
        if d < best_dist:
            best_index = i
            best_dist = d
    return best_index
