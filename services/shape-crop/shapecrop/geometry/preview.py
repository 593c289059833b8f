import base64
import io

from PIL import Image, ImageDraw

from .models import CanvasSize, Polygon

PREVIEW_STROKE = (59, 130, 246, 255)  # #3B82F6
PREVIEW_FILL = (59, 130, 246, 51)


def generate_shape_preview(points: Polygon, canvas_size: CanvasSize, size: int = 50) -> str:
    """
    Small PNG thumbnail of a polygon as a data URL, or "" for fewer than 3 points.

    Unlike export, the thumbnail keeps the aspect ratio: one uniform scale
    (80% of the tighter axis) and the shape centred in the square.
    """
    if len(points) < 3:
        return ""

    scale = min(size / canvas_size.width, size / canvas_size.height) * 0.8
    offset_x = (size - canvas_size.width * scale) / 2
    offset_y = (size - canvas_size.height * scale) / 2
    verts = [(p.x * scale + offset_x, p.y * scale + offset_y) for p in points]

    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img, "RGBA")
    draw.polygon(verts, fill=PREVIEW_FILL, outline=PREVIEW_STROKE, width=2)

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
