from datetime import date
from typing import Optional

from PIL import Image

from ..utils import image_to_png_bytes


def canvas_to_png(canvas: Image.Image) -> bytes:
    return image_to_png_bytes(canvas)


def export_filename(base: str = "cropped-image", day: Optional[date] = None) -> str:
    """`<base>-<YYYY-MM-DD>.png`"""
    day = day or date.today()
    return f"{base}-{day.isoformat()}.png"


def attachment_headers(filename: str) -> dict:
    return {"Content-Disposition": f"attachment; filename={filename}"}
