"""Element-level IR models: the text and image zones of a page."""

from typing import Annotated, Literal, Optional, Union

import numpy as np
from pydantic import Field

from .base import BaseIRModel, ElementType, Rect


class TextZone(BaseIRModel):
    """Region of the page holding recognized text."""

    kind: Literal["text"] = "text"
    rect: Rect
    text: str = ""
    is_inverted: bool = Field(
        default=False,
        description="Light text on a dark or colored background",
    )

    @property
    def type(self) -> ElementType:
        return ElementType.TEXT


class InMemoryImage(BaseIRModel):
    """Image payload held as a BGR pixel buffer."""

    kind: Literal["memory"] = "memory"
    pixels: np.ndarray

    @property
    def size(self) -> tuple[int, int]:
        """Return ``(width, height)`` in pixels."""
        height, width = self.pixels.shape[:2]
        return width, height


class ImageFile(BaseIRModel):
    """Image payload stored on disk."""

    kind: Literal["file"] = "file"
    path: str


ImagePayload = Annotated[Union[InMemoryImage, ImageFile], Field(discriminator="kind")]


class ImageZone(BaseIRModel):
    """Region of the page holding a photograph or illustration.

    ``payload`` is None only when the pixels could not be persisted at the
    serialization boundary.
    """

    kind: Literal["image"] = "image"
    rect: Rect
    payload: Optional[ImagePayload] = None

    @property
    def type(self) -> ElementType:
        return ElementType.IMAGE


DocumentElement = Annotated[Union[TextZone, ImageZone], Field(discriminator="kind")]
