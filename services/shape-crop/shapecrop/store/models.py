from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

from ..geometry.models import CanvasSize, Point

Base = declarative_base()

DEFAULT_CATEGORY = "Custom"
DEFAULT_ICON = "🎨"
DEFAULT_CREATOR = "User"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomShapeRow(Base):
    __tablename__ = "custom_shapes"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    points = Column(JSON, nullable=False)  # [{x, y}, ...]
    canvas_size = Column(JSON, nullable=False)  # {width, height}
    category = Column(String(100), nullable=False, default=DEFAULT_CATEGORY)
    description = Column(Text, nullable=False, default="")
    icon = Column(String(16), nullable=False, default=DEFAULT_ICON)
    created_by = Column(String(100), nullable=False, default=DEFAULT_CREATOR)
    is_standard = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class NewShape(BaseModel):
    """A validated save request with defaults applied."""
    name: str
    points: List[Point]
    canvas_size: CanvasSize
    category: str = DEFAULT_CATEGORY
    description: str = ""
    icon: str = DEFAULT_ICON
    created_by: str = DEFAULT_CREATOR
    is_standard: bool = False


class PersistedShape(BaseModel):
    id: str
    name: str
    points: List[Point]
    canvas_size: CanvasSize
    category: str = DEFAULT_CATEGORY
    description: str = ""
    icon: str = DEFAULT_ICON
    created_by: str = ""
    is_standard: bool = False
    created_at: Optional[datetime] = None
    preview: Optional[str] = None

    @classmethod
    def from_row(cls, row: CustomShapeRow) -> "PersistedShape":
        return cls(
            id=row.id,
            name=row.name,
            points=row.points,
            canvas_size=row.canvas_size,
            category=row.category or DEFAULT_CATEGORY,
            description=row.description or "",
            icon=row.icon or DEFAULT_ICON,
            created_by=row.created_by or "",
            is_standard=bool(row.is_standard),
            created_at=row.created_at,
        )
