import json
import logging

from fastapi import APIRouter, File, Form, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from ..config import MAX_OUTPUT_SIZE
from ..errors import MediaError
from ..geometry.shapes import ShapeEnvelope
from ..utils import read_image_from_bytes
from .crop import CutMode, crop_image_with_shape
from .export import attachment_headers, canvas_to_png, export_filename

logger = logging.getLogger("crop_api")

router = APIRouter(prefix="/crop", tags=["crop"])


def _crop_to_png(contents: bytes, variant, output_size: int, mode: CutMode) -> bytes:
    image = read_image_from_bytes(contents)
    cropped = crop_image_with_shape(image, variant, output_size=output_size, mode=mode)
    return canvas_to_png(cropped)


@router.post("")
async def crop_endpoint(
    request: Request,
    file: UploadFile = File(...),
    shape: str = Form(...),
    output_size: int = Form(0, ge=0, le=MAX_OUTPUT_SIZE),
    mode: str = Form("hole"),
    filename: str = Form(""),
):
    """
    One-shot crop: upload an image plus a tagged shape, get the PNG back as a download.
    """
    settings = request.app.state.settings
    try:
        variant = ShapeEnvelope(shape=json.loads(shape)).shape
        cut_mode = CutMode(mode)
    except (ValueError, PydanticValidationError) as e:
        return JSONResponse({"error": f"Invalid shape or mode: {e}"}, status_code=400)

    contents = await file.read()
    try:
        png = await run_in_threadpool(
            _crop_to_png, contents, variant, output_size or settings.output_size, cut_mode
        )
    except MediaError as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code)

    name = export_filename(filename or settings.export_basename)
    logger.info("Cropped %s with shape %s -> %s", file.filename, variant.id, name)
    return Response(content=png, media_type="image/png", headers=attachment_headers(name))
