"""
Shape variants and path generation.

A shape is plain, serializable data tagged by `kind`. The outline for a given
output rectangle is produced by `render_path`, which rescales the captured
polygon from its origin canvas to the target canvas at call time.
"""
from typing import Annotated, Any, Dict, List, Literal, NamedTuple, Tuple, Union

from pydantic import BaseModel, Field

from .models import CanvasSize, Point, Polygon


class PathCommand(NamedTuple):
    op: str  # move, line, close
    x: float = 0.0
    y: float = 0.0


class TemplateShape(BaseModel):
    kind: Literal["template"] = "template"
    id: str
    name: str
    icon: str = "✏️"


class CustomShape(BaseModel):
    kind: Literal["custom"] = "custom"
    id: str = "custom"
    name: str = "Custom Shape"
    icon: str = "✏️"
    points: List[Point]
    canvas_size: CanvasSize
    category: str = "Custom"
    description: str = ""
    is_standard: bool = False


ShapeVariant = Annotated[Union[TemplateShape, CustomShape], Field(discriminator="kind")]


class ShapeEnvelope(BaseModel):
    """Wrapper used to parse a tagged shape out of arbitrary JSON."""
    shape: ShapeVariant


# The "draw custom" entry; selecting it opens the editor instead of cropping.
DRAW_CUSTOM = TemplateShape(id="custom", name="Draw Custom Shape", icon="✏️")

BUILTIN_SHAPES: List[TemplateShape] = [DRAW_CUSTOM]


def scale_polygon(points: Polygon, origin: CanvasSize, target: CanvasSize) -> Polygon:
    """Rescale points captured on `origin` onto `target`, independently per axis."""
    scale_x = target.width / origin.width
    scale_y = target.height / origin.height
    return [Point(x=p.x * scale_x, y=p.y * scale_y) for p in points]


def _polygon_path(points: Polygon) -> List[PathCommand]:
    if not points or len(points) < 3:
        return []
    commands = [PathCommand("move", points[0].x, points[0].y)]
    for p in points[1:]:
        commands.append(PathCommand("line", p.x, p.y))
    commands.append(PathCommand("close"))
    return commands


def render_path(shape: Union[TemplateShape, CustomShape], target: CanvasSize) -> List[PathCommand]:
    """
    Closed outline of `shape` scaled into `target`.

    Custom shapes with fewer than 3 points render an empty path; that is a
    defined degenerate case, not an error.
    """
    if isinstance(shape, CustomShape):
        if len(shape.points) < 3:
            return []
        return _polygon_path(scale_polygon(shape.points, shape.canvas_size, target))

    # Template placeholder covers the whole target rectangle.
    w, h = target.width, target.height
    return [
        PathCommand("move", 0.0, 0.0),
        PathCommand("line", w, 0.0),
        PathCommand("line", w, h),
        PathCommand("line", 0.0, h),
        PathCommand("close"),
    ]


def path_vertices(commands: List[PathCommand]) -> List[Tuple[float, float]]:
    return [(c.x, c.y) for c in commands if c.op in ("move", "line")]


def create_custom_shape(
    points: Polygon,
    canvas_size: CanvasSize,
    shape_id: str = "custom",
    name: str = "Custom Shape",
) -> CustomShape:
    return CustomShape(
        id=shape_id,
        name=name,
        points=[Point(x=p.x, y=p.y) for p in points],
        canvas_size=CanvasSize(width=canvas_size.width, height=canvas_size.height),
    )


def shape_from_persisted(record: Dict[str, Any]) -> CustomShape:
    """Rebuild a selectable shape from a stored row (as returned by the gateway)."""
    return CustomShape(
        id=record["id"],
        name=record["name"],
        icon=record.get("icon") or "🎨",
        points=record["points"],
        canvas_size=record["canvas_size"],
        category=record.get("category") or "Custom",
        description=record.get("description") or "",
        is_standard=bool(record.get("is_standard")),
    )


def output_policy_for(shape: Union[TemplateShape, CustomShape]) -> bool:
    """True when the export keeps the source image's native resolution."""
    return isinstance(shape, CustomShape)


def fit_editor_canvas(
    image_width: int,
    image_height: int,
    max_width: int = 600,
    max_height: int = 400,
) -> CanvasSize:
    """Editor canvas that keeps the image aspect ratio inside max_width x max_height."""
    aspect = image_width / image_height
    width = float(max_width)
    height = max_width / aspect
    if height > max_height:
        height = float(max_height)
        width = max_height * aspect
    return CanvasSize(width=width, height=height)

