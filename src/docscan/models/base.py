"""Base models and common types for the docscan pipeline."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ElementType(str, Enum):
    """Kinds of content a page zone can hold."""

    TEXT = "text"
    IMAGE = "image"


class BaseIRModel(BaseModel):
    """Base class for all IR models."""

    class Config:
        from_attributes = True
        arbitrary_types_allowed = True  # numpy pixel buffers


class Rect(BaseIRModel):
    """Axis-aligned integer rectangle in image pixels.

    Top-left origin, half-open extents: the right edge ``x + width`` and the
    bottom edge ``y + height`` are exclusive. Zero-area rectangles are
    rejected at construction.
    """

    x: int = Field(..., description="Left edge X coordinate")
    y: int = Field(..., description="Top edge Y coordinate")
    width: int = Field(..., gt=0, description="Box width")
    height: int = Field(..., gt=0, description="Box height")

    class Config:
        frozen = True

    @property
    def x2(self) -> int:
        """Right edge X coordinate (exclusive)."""
        return self.x + self.width

    @property
    def y2(self) -> int:
        """Bottom edge Y coordinate (exclusive)."""
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @classmethod
    def from_xywh(cls, x: int, y: int, width: int, height: int) -> "Rect":
        return cls(x=int(x), y=int(y), width=int(width), height=int(height))

    @classmethod
    def from_xyxy(cls, x1: int, y1: int, x2: int, y2: int) -> "Rect":
        return cls(x=int(x1), y=int(y1), width=int(x2 - x1), height=int(y2 - y1))

    def to_tuple(self) -> tuple[int, int, int, int]:
        """Return ``(x, y, width, height)``."""
        return (self.x, self.y, self.width, self.height)

    def clip(self, image_width: int, image_height: int) -> Optional["Rect"]:
        """Clip to image bounds, returning None if nothing remains."""
        x1 = max(0, self.x)
        y1 = max(0, self.y)
        x2 = min(image_width, self.x2)
        y2 = min(image_height, self.y2)
        if x2 <= x1 or y2 <= y1:
            return None
        return Rect.from_xyxy(x1, y1, x2, y2)
