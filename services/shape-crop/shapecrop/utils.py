from PIL import Image, UnidentifiedImageError
import io
import logging

from .errors import MediaError, MediaErrorKind

logger = logging.getLogger("image_io")


def read_image_from_bytes(contents: bytes) -> Image.Image:
    """Decode an uploaded image fully (not lazily) so failures surface here."""
    if not contents:
        raise MediaError(MediaErrorKind.IMAGE_LOAD_FAILED, "empty upload")
    try:
        img = Image.open(io.BytesIO(contents))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        logger.warning("Image decode failed: %s", e)
        raise MediaError(MediaErrorKind.IMAGE_LOAD_FAILED, str(e)) from e
    return img


def image_to_png_bytes(image: Image.Image) -> bytes:
    try:
        with io.BytesIO() as buf:
            image.save(buf, format="PNG")
            return buf.getvalue()
    except (OSError, ValueError) as e:
        logger.exception("PNG encoding failed: %s", e)
        raise MediaError(MediaErrorKind.ENCODING_FAILED, str(e)) from e
