"""IR (Intermediate Representation) models for the docscan pipeline.

Pydantic models for the data flowing between pipeline stages. All models
except in-memory pixel payloads support JSON serialization; pixel payloads
are swapped for file references by ``docscan.storage`` before a document
crosses a process boundary.

Model Hierarchy:
- AnalyzedDocument → DocumentElement (TextZone | ImageZone) → Rect
- ImageZone → ImagePayload (InMemoryImage | ImageFile)
- DocumentGrid → GridCell → DocumentElement
"""

from .base import (
    BaseIRModel,
    ElementType,
    Rect,
)
from .document import AnalyzedDocument
from .element import (
    DocumentElement,
    ImageFile,
    ImagePayload,
    ImageZone,
    InMemoryImage,
    TextZone,
)
from .grid import (
    DocumentGrid,
    GridCell,
)

__all__ = [
    # Base types
    "BaseIRModel",
    "ElementType",
    "Rect",
    # Elements
    "DocumentElement",
    "ImageFile",
    "ImagePayload",
    "ImageZone",
    "InMemoryImage",
    "TextZone",
    # Document
    "AnalyzedDocument",
    # Grid
    "DocumentGrid",
    "GridCell",
]
