"""
Shape persistence gateway.

Thin CRUD over the `custom_shapes` table. Rows are created and deleted, never
updated: editing a loaded shape only changes the in-memory working copy until
it is saved again as a new row.

When no database is configured the store still works for reads (empty list)
so the UI never breaks; writes fail with a TransportError.
"""
import logging
import time
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import create_engine, delete, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..config import Settings
from ..errors import NotFoundError, TransportError, ValidationError
from .models import (
    DEFAULT_CATEGORY,
    DEFAULT_CREATOR,
    DEFAULT_ICON,
    Base,
    CustomShapeRow,
    NewShape,
    PersistedShape,
)

logger = logging.getLogger("shape_store")


def new_shape_id() -> str:
    return f"shape-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def validate_shape_payload(body: Any) -> NewShape:
    """Check a save request and apply defaults. Raises ValidationError."""
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    if not body.get("name") or not body.get("points") or not body.get("canvas_size"):
        raise ValidationError("Missing required fields: name, points, canvas_size")

    points = body["points"]
    if not isinstance(points, list) or len(points) < 3:
        raise ValidationError("Points must be an array with at least 3 points")

    canvas_size = body["canvas_size"]
    if not isinstance(canvas_size, dict) or not canvas_size.get("width") or not canvas_size.get("height"):
        raise ValidationError("Canvas size must include width and height")

    try:
        shape = NewShape(
            name=body["name"],
            points=points,
            canvas_size=canvas_size,
            category=body.get("category") or DEFAULT_CATEGORY,
            description=body.get("description") or "",
            icon=body.get("icon") or DEFAULT_ICON,
            created_by=body.get("created_by") or DEFAULT_CREATOR,
            is_standard=bool(body.get("is_standard") or False),
        )
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid shape data: {e.errors()[0].get('msg', 'invalid value')}") from e

    return shape


class ShapeStore:
    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine
        self._session = None
        self._schema_ready = False
        if engine is not None:
            self._session = sessionmaker(bind=engine, expire_on_commit=False)
            self._ensure_schema()

    def _ensure_schema(self) -> bool:
        # Retried on every call until the database is reachable.
        if self._schema_ready:
            return True
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            logger.warning("Shape store unreachable, table not created yet: %s", e)
            return False
        self._schema_ready = True
        return True

    @classmethod
    def from_settings(cls, settings: Settings) -> "ShapeStore":
        if not settings.database_url:
            logger.warning("Shape store not configured; set SHAPECROP_DATABASE_URL to enable saving")
            return cls(None)
        connect_args = {}
        if settings.database_auth_token:
            connect_args["auth_token"] = settings.database_auth_token
        try:
            engine = create_engine(settings.database_url, connect_args=connect_args)
        except SQLAlchemyError as e:
            logger.error("Invalid shape store URL, saving disabled: %s", e)
            return cls(None)
        logger.info("Shape store using %s", engine.url.get_backend_name())
        return cls(engine)

    @property
    def configured(self) -> bool:
        return self._session is not None

    def _require(self):
        if self._session is None:
            raise TransportError("Shape store not configured")
        if not self._ensure_schema():
            raise TransportError("Shape store unreachable")
        return self._session

    # --- Reads (degrade to empty) ---

    def list_shapes(self) -> List[PersistedShape]:
        if self._session is None:
            logger.warning("Shape store not configured - returning empty shapes list")
            return []
        if not self._ensure_schema():
            return []
        try:
            with self._session() as session:
                rows = (
                    session.query(CustomShapeRow)
                    .order_by(CustomShapeRow.is_standard.desc(), CustomShapeRow.created_at.desc())
                    .all()
                )
                return [PersistedShape.from_row(r) for r in rows]
        except SQLAlchemyError as e:
            logger.exception("Failed to fetch custom shapes: %s", e)
            return []

    def search_shapes(self, query: str) -> List[PersistedShape]:
        if self._session is None or not self._ensure_schema():
            return []
        pattern = f"%{query}%"
        try:
            with self._session() as session:
                rows = (
                    session.query(CustomShapeRow)
                    .filter(or_(
                        CustomShapeRow.name.like(pattern),
                        CustomShapeRow.description.like(pattern),
                        CustomShapeRow.category.like(pattern),
                    ))
                    .order_by(CustomShapeRow.created_at.desc())
                    .all()
                )
                return [PersistedShape.from_row(r) for r in rows]
        except SQLAlchemyError as e:
            logger.exception("Failed to search custom shapes: %s", e)
            return []

    def shapes_by_category(self) -> Dict[str, List[PersistedShape]]:
        categories: Dict[str, List[PersistedShape]] = OrderedDict()
        for shape in self.list_shapes():
            categories.setdefault(shape.category or DEFAULT_CATEGORY, []).append(shape)
        return categories

    # --- Writes (fail hard) ---

    def create_shape(self, shape: NewShape) -> str:
        factory = self._require()
        shape_id = new_shape_id()
        row = CustomShapeRow(
            id=shape_id,
            name=shape.name,
            points=[p.model_dump() for p in shape.points],
            canvas_size=shape.canvas_size.model_dump(),
            category=shape.category,
            description=shape.description,
            icon=shape.icon,
            created_by=shape.created_by,
            is_standard=shape.is_standard,
        )
        try:
            with factory() as session:
                session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to save custom shape: %s", e)
            raise TransportError("Failed to save shape to database") from e
        logger.info("Saved shape %s (%s, %d points)", shape_id, shape.name, len(shape.points))
        return shape_id

    def delete_shape(self, shape_id: str) -> None:
        factory = self._require()
        try:
            with factory() as session:
                result = session.execute(delete(CustomShapeRow).where(CustomShapeRow.id == shape_id))
                session.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to delete custom shape: %s", e)
            raise TransportError("Failed to delete shape") from e
        if not result.rowcount:
            raise NotFoundError("Shape not found or could not be deleted")

    def delete_all(self) -> int:
        factory = self._require()
        try:
            with factory() as session:
                result = session.execute(delete(CustomShapeRow))
                session.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to delete all custom shapes: %s", e)
            raise TransportError("Failed to delete shapes from database") from e
        deleted = result.rowcount or 0
        logger.info("Deleted %d shapes", deleted)
        return deleted
