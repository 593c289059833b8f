"""
Cut a shape out of an image.

The source image is drawn onto an RGBA output canvas, then the shape's path,
rendered against the *output* canvas size, is used as an erase mask. With the
default `CutMode.HOLE` this matches destination-out compositing: pixels inside
the shape become transparent. `CutMode.KEEP` erases outside the shape instead.
"""
from enum import Enum
from typing import NamedTuple, Optional, Union

import numpy as np
from PIL import Image, ImageDraw

from ..errors import MediaError, MediaErrorKind
from ..geometry.models import CanvasSize
from ..geometry.shapes import CustomShape, TemplateShape, output_policy_for, path_vertices, render_path


class CutMode(str, Enum):
    HOLE = "hole"
    KEEP = "keep"


class Placement(NamedTuple):
    width: float
    height: float
    offset_x: float
    offset_y: float


def cover_placement(image_width: int, image_height: int, output_size: int) -> Placement:
    """Scale so the image covers a square canvas; the overflowing axis is centred and cropped."""
    aspect = image_width / image_height
    if aspect > 1:
        draw_h = float(output_size)
        draw_w = output_size * aspect
        return Placement(draw_w, draw_h, -(draw_w - output_size) / 2, 0.0)
    draw_w = float(output_size)
    draw_h = output_size / aspect
    return Placement(draw_w, draw_h, 0.0, -(draw_h - output_size) / 2)


def shape_mask(shape: Union[TemplateShape, CustomShape], size: CanvasSize) -> Image.Image:
    """8-bit mask, 255 inside the shape's path at `size`."""
    mask = Image.new("L", (int(size.width), int(size.height)), 0)
    verts = path_vertices(render_path(shape, size))
    if len(verts) >= 3:
        ImageDraw.Draw(mask).polygon(verts, fill=255)
    return mask


def _new_canvas(width: int, height: int) -> Image.Image:
    if width <= 0 or height <= 0:
        raise MediaError(MediaErrorKind.CONTEXT_UNAVAILABLE, f"invalid canvas size {width}x{height}")
    return Image.new("RGBA", (width, height), (0, 0, 0, 0))


def crop_image_with_shape(
    image: Image.Image,
    shape: Union[TemplateShape, CustomShape],
    output_size: int = 512,
    preserve_original: Optional[bool] = None,
    mode: CutMode = CutMode.HOLE,
) -> Image.Image:
    if preserve_original is None:
        preserve_original = output_policy_for(shape)

    src = image.convert("RGBA")

    if preserve_original:
        canvas = _new_canvas(src.width, src.height)
        canvas.paste(src, (0, 0))
    else:
        canvas = _new_canvas(output_size, output_size)
        placement = cover_placement(src.width, src.height, output_size)
        scaled = src.resize(
            (max(1, round(placement.width)), max(1, round(placement.height))),
            Image.Resampling.LANCZOS,
        )
        canvas.paste(scaled, (round(placement.offset_x), round(placement.offset_y)))

    mask = np.array(shape_mask(shape, CanvasSize(width=canvas.width, height=canvas.height))) > 0
    alpha = np.array(canvas.getchannel("A"))
    if mode is CutMode.HOLE:
        alpha[mask] = 0
    else:
        alpha[~mask] = 0
    canvas.putalpha(Image.fromarray(alpha, mode="L"))
    return canvas
