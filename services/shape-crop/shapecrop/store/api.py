import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..deps import get_store
from ..errors import ShapeCropError
from ..geometry.preview import generate_shape_preview
from .gateway import ShapeStore, validate_shape_payload

logger = logging.getLogger("shapes_api")

router = APIRouter(prefix="/shapes", tags=["shapes"])


def _error(e: ShapeCropError) -> JSONResponse:
    return JSONResponse({"error": e.message}, status_code=e.status_code)


@router.get("")
def list_shapes(
    q: Optional[str] = None,
    previews: bool = False,
    store: ShapeStore = Depends(get_store),
):
    """All saved shapes, standard ones first, newest first."""
    try:
        shapes = store.search_shapes(q) if q else store.list_shapes()
        if previews:
            for shape in shapes:
                shape.preview = generate_shape_preview(shape.points, shape.canvas_size)
        return {"shapes": [s.model_dump(mode="json", exclude_none=True) for s in shapes]}
    except Exception as e:
        logger.exception("API Error - GET shapes: %s", e)
        return JSONResponse({"error": "Failed to fetch shapes"}, status_code=500)


@router.get("/categories")
def list_categories(store: ShapeStore = Depends(get_store)):
    grouped = store.shapes_by_category()
    return {
        "categories": {
            name: [s.model_dump(mode="json", exclude_none=True) for s in shapes]
            for name, shapes in grouped.items()
        }
    }


@router.post("")
async def save_shape(request: Request, store: ShapeStore = Depends(get_store)):
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Request body must be valid JSON"}, status_code=400)

    try:
        shape = validate_shape_payload(body)
        shape_id = await run_in_threadpool(store.create_shape, shape)
    except ShapeCropError as e:
        return _error(e)

    return {"success": True, "id": shape_id, "message": "Shape saved successfully"}


@router.delete("/{shape_id}")
def delete_shape(shape_id: str, store: ShapeStore = Depends(get_store)):
    if not shape_id.strip():
        return JSONResponse({"error": "Shape ID is required"}, status_code=400)
    try:
        store.delete_shape(shape_id)
    except ShapeCropError as e:
        return _error(e)
    return {"success": True, "message": "Shape deleted successfully"}


@router.delete("")
def delete_all_shapes(store: ShapeStore = Depends(get_store)):
    # Unconditional; the client is expected to confirm first.
    try:
        deleted = store.delete_all()
    except ShapeCropError as e:
        return _error(e)
    return {"success": True, "message": f"Deleted {deleted} shapes from database", "deleted": deleted}
