import io
from datetime import date

import pytest
from PIL import Image

from shapecrop.compositing.crop import CutMode, cover_placement, crop_image_with_shape, shape_mask
from shapecrop.compositing.export import canvas_to_png, export_filename
from shapecrop.errors import MediaError, MediaErrorKind
from shapecrop.geometry.models import CanvasSize, Point
from shapecrop.geometry.shapes import DRAW_CUSTOM, create_custom_shape
from shapecrop.utils import read_image_from_bytes

EDITOR = CanvasSize(width=600, height=300)
# Small triangle in the middle of the editor canvas.
TRIANGLE = create_custom_shape(
    [Point(x=250, y=100), Point(x=350, y=100), Point(x=300, y=200)], EDITOR
)


def source(width=1000, height=500):
    return Image.new("RGB", (width, height), (10, 120, 200))


def alpha_at(img, x, y):
    return img.getpixel((x, y))[3]


def test_cover_placement_wide_image():
    p = cover_placement(1000, 500, 512)
    assert (p.width, p.height) == (1024, 512)
    assert p.offset_x == -256
    assert p.offset_y == 0


def test_cover_placement_tall_image():
    p = cover_placement(500, 1000, 512)
    assert (p.width, p.height) == (512, 1024)
    assert p.offset_y == -256


def test_fixed_square_crops_without_letterboxing():
    out = crop_image_with_shape(source(), TRIANGLE, output_size=512, preserve_original=False)
    assert out.size == (512, 512)
    for corner in [(0, 0), (511, 0), (0, 511), (511, 511)]:
        assert alpha_at(out, *corner) == 255


def test_preserve_original_keeps_native_resolution():
    out = crop_image_with_shape(source(), TRIANGLE, preserve_original=True)
    assert out.size == (1000, 500)


def test_custom_shape_defaults_to_native_resolution():
    assert crop_image_with_shape(source(), TRIANGLE).size == (1000, 500)


def test_hole_mode_erases_inside_shape():
    out = crop_image_with_shape(source(), TRIANGLE)
    # Centroid of the triangle scaled by 1000/600, 500/300.
    cx, cy = round(300 * 1000 / 600), round(133 * 500 / 300)
    assert alpha_at(out, cx, cy) == 0
    assert alpha_at(out, 10, 10) == 255
    assert out.getpixel((10, 10))[:3] == (10, 120, 200)


def test_keep_mode_erases_outside_shape():
    out = crop_image_with_shape(source(), TRIANGLE, mode=CutMode.KEEP)
    cx, cy = round(300 * 1000 / 600), round(133 * 500 / 300)
    assert alpha_at(out, cx, cy) == 255
    assert alpha_at(out, 10, 10) == 0


def test_degenerate_shape_leaves_image_untouched():
    shape = create_custom_shape([Point(x=1, y=1), Point(x=2, y=2)], EDITOR)
    out = crop_image_with_shape(source(200, 100), shape)
    assert out.getchannel("A").getextrema() == (255, 255)


def test_template_placeholder_erases_everything():
    out = crop_image_with_shape(source(200, 100), DRAW_CUSTOM, output_size=64)
    assert out.size == (64, 64)
    assert out.getchannel("A").getextrema() == (0, 0)


def test_shape_mask_uses_target_size():
    mask = shape_mask(TRIANGLE, CanvasSize(width=60, height=30))
    assert mask.size == (60, 30)
    assert mask.getpixel((30, 13)) == 255
    assert mask.getpixel((1, 1)) == 0


def test_png_roundtrip_keeps_alpha():
    out = crop_image_with_shape(source(), TRIANGLE)
    decoded = Image.open(io.BytesIO(canvas_to_png(out)))
    assert decoded.mode == "RGBA"
    assert decoded.size == (1000, 500)


def test_export_filename_contains_date():
    assert export_filename("cropped-image", date(2024, 3, 9)) == "cropped-image-2024-03-09.png"


def test_undecodable_upload_is_media_error():
    with pytest.raises(MediaError) as info:
        read_image_from_bytes(b"not an image")
    assert info.value.kind is MediaErrorKind.IMAGE_LOAD_FAILED


def test_empty_output_canvas_is_context_error():
    with pytest.raises(MediaError) as info:
        crop_image_with_shape(source(), TRIANGLE, output_size=0, preserve_original=False)
    assert info.value.kind is MediaErrorKind.CONTEXT_UNAVAILABLE


def test_decompression_bomb_is_media_error(monkeypatch, make_png):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    with pytest.raises(MediaError) as info:
        read_image_from_bytes(make_png(100, 100))
    assert info.value.kind is MediaErrorKind.IMAGE_LOAD_FAILED
