"""Document-level IR models."""

from typing import Optional

import numpy as np
from pydantic import Field

from .base import BaseIRModel
from .element import DocumentElement, ImageZone, TextZone


class AnalyzedDocument(BaseIRModel):
    """
    Structured model of a single photographed page.

    ``elements`` is ordered: list position is the reading order computed
    by the paragraph organizer. Element rects are expressed in the pixel
    space of the analyzed image, whose size is kept alongside so the
    renderer can compute page scale ratios.
    """

    elements: list[DocumentElement] = Field(default_factory=list)
    image_width: int = Field(..., gt=0)
    image_height: int = Field(..., gt=0)

    # Back-reference to the analyzed page image, never serialized
    source_image: Optional[np.ndarray] = Field(default=None, exclude=True, repr=False)

    @property
    def text_zones(self) -> list[TextZone]:
        return [e for e in self.elements if isinstance(e, TextZone)]

    @property
    def image_zones(self) -> list[ImageZone]:
        return [e for e in self.elements if isinstance(e, ImageZone)]

    @property
    def text(self) -> str:
        """Full document text in reading order."""
        return "\n\n".join(zone.text for zone in self.text_zones if zone.text)
