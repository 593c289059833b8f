from pydantic import BaseModel, Field
from typing import List
import math


class Point(BaseModel):
    x: float
    y: float


class CanvasSize(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


# Ordered vertex list; only meaningful next to the CanvasSize it was captured in.
Polygon = List[Point]


def dist(p1: Point, p2: Point) -> float:
    return math.sqrt((p1.x - p2.x)**2 + (p1.y - p2.y)**2)
