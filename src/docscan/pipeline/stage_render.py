"""Rendering Stage - Map the document model onto an output page.

Element rects live in the pixel space of the analyzed photo; the output
page has a fixed size in points with a bottom-left origin. The renderer
computes independent horizontal and vertical scale factors, emits
positioned draw instructions, and hands them to a page writer.

The default page writer produces a PDF with PyMuPDF.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

import cv2
import fitz  # PyMuPDF

from docscan.config import settings
from docscan.models import (
    AnalyzedDocument,
    DocumentGrid,
    ImageFile,
    ImagePayload,
    ImageZone,
    InMemoryImage,
    TextZone,
)
from docscan.pipeline.stage_grid import LayoutGridAnalyzer

logger = logging.getLogger(__name__)

# Smallest font size tried when text does not fit its box
MIN_FONT_SIZE = 4.0
INVERTED_BACKGROUND = (0.15, 0.15, 0.15)


@dataclass(frozen=True)
class TextRun:
    """Text positioned on the page. Coordinates in points, bottom-left origin."""

    x: float
    y: float
    width: float
    height: float
    text: str
    font_size: float
    inverted: bool = False


@dataclass(frozen=True)
class ImagePlacement:
    """Image fit-scaled into a box. Coordinates in points, bottom-left origin."""

    x: float
    y: float
    width: float
    height: float
    payload: Optional[ImagePayload]
    element_index: int = -1


DrawInstruction = Union[TextRun, ImagePlacement]


class PageWriter(Protocol):
    """Anything that turns draw instructions into an output artifact."""

    def write(
        self,
        instructions: Sequence[DrawInstruction],
        page_size: tuple[float, float],
        output_path: Path,
    ) -> Path:
        ...


def encode_png(payload: ImagePayload) -> Optional[bytes]:
    """Return PNG bytes for an in-memory payload, None for anything else."""
    if not isinstance(payload, InMemoryImage):
        return None
    ok, buffer = cv2.imencode(".png", payload.pixels)
    return buffer.tobytes() if ok else None


class PdfPageWriter:
    """Writes a single-page PDF with PyMuPDF."""

    def __init__(self, fontname: str = "helv"):
        self.fontname = fontname

    def write(
        self,
        instructions: Sequence[DrawInstruction],
        page_size: tuple[float, float],
        output_path: Path,
    ) -> Path:
        """Draw instructions on a new page and save the PDF.

        Args:
            instructions: Draw instructions in page coordinates.
            page_size: ``(width, height)`` in points.
            output_path: Destination PDF path.

        Returns:
            Path of the written PDF.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        page_width, page_height = page_size

        pdf_doc = fitz.open()
        try:
            page = pdf_doc.new_page(width=page_width, height=page_height)
            for instruction in instructions:
                match instruction:
                    case TextRun():
                        self._draw_text(page, self._box(instruction, page_height), instruction)
                    case ImagePlacement():
                        self._draw_image(page, self._box(instruction, page_height), instruction)
                    case _:
                        raise TypeError(
                            f"Unknown draw instruction: {type(instruction).__name__}"
                        )

            pdf_doc.save(str(output_path))
        finally:
            pdf_doc.close()

        return output_path

    @staticmethod
    def _box(instruction: DrawInstruction, page_height: float) -> "fitz.Rect":
        # PyMuPDF uses a top-left origin
        return fitz.Rect(
            instruction.x,
            page_height - instruction.y - instruction.height,
            instruction.x + instruction.width,
            page_height - instruction.y,
        )

    def _draw_text(self, page, box: "fitz.Rect", run: TextRun) -> None:
        color = (0, 0, 0)
        if run.inverted:
            page.draw_rect(box, color=None, fill=INVERTED_BACKGROUND)
            color = (1, 1, 1)

        font_size = run.font_size
        while True:
            remaining = page.insert_textbox(
                box, run.text, fontsize=font_size, fontname=self.fontname, color=color
            )
            if remaining >= 0 or font_size <= MIN_FONT_SIZE:
                break
            font_size = max(MIN_FONT_SIZE, font_size * 0.85)

        if remaining < 0:
            logger.warning("Text overflows its box at %.1fpt: %r", font_size, run.text[:40])

    def _draw_image(self, page, box: "fitz.Rect", placement: ImagePlacement) -> None:
        payload = placement.payload
        if isinstance(payload, InMemoryImage):
            data = encode_png(payload)
            if data is None:
                logger.warning("Image %d could not be encoded, skipping", placement.element_index)
                return
            page.insert_image(box, stream=data, keep_proportion=True)
        elif isinstance(payload, ImageFile) and Path(payload.path).is_file():
            page.insert_image(box, filename=payload.path, keep_proportion=True)
        else:
            logger.warning("Image %d has no payload, skipping", placement.element_index)


class DocumentRenderer:
    """Maps document coordinates onto a fixed-size output page."""

    def __init__(
        self,
        page_width: Optional[float] = None,
        page_height: Optional[float] = None,
        font_size: Optional[float] = None,
        writer: Optional[PageWriter] = None,
    ):
        """Initialize the renderer.

        Args:
            page_width: Target page width in points.
            page_height: Target page height in points.
            font_size: Nominal text size in points.
            writer: Page writer collaborator. Defaults to PDF output.
        """
        default_width, default_height = settings.page_dimensions
        self.page_width = page_width or default_width
        self.page_height = page_height or default_height
        self.font_size = font_size or settings.font_size
        self.writer = writer or PdfPageWriter()

    @property
    def page_size(self) -> tuple[float, float]:
        return (self.page_width, self.page_height)

    def layout(self, document: AnalyzedDocument) -> list[DrawInstruction]:
        """Compute page-space draw instructions for every element.

        Args:
            document: Document whose rects are in image pixels.

        Returns:
            One instruction per element, in element order.
        """
        scale_x = self.page_width / document.image_width
        scale_y = self.page_height / document.image_height

        instructions: list[DrawInstruction] = []
        for index, element in enumerate(document.elements):
            rect = element.rect
            x = rect.x * scale_x
            y = self.page_height - rect.y * scale_y - rect.height * scale_y
            width = rect.width * scale_x
            height = rect.height * scale_y

            match element:
                case TextZone():
                    instruction = TextRun(
                        x=x,
                        y=y,
                        width=width,
                        height=height,
                        text=element.text,
                        font_size=self.font_size,
                        inverted=element.is_inverted,
                    )
                case ImageZone():
                    instruction = ImagePlacement(
                        x=x,
                        y=y,
                        width=width,
                        height=height,
                        payload=element.payload,
                        element_index=index,
                    )
                case _:
                    raise TypeError(f"Unknown element type: {type(element).__name__}")
            instructions.append(instruction)

        return instructions

    def render(self, document: AnalyzedDocument, output_path: Path) -> Path:
        """Render a document to the output page.

        Args:
            document: Document to render.
            output_path: Destination path.

        Returns:
            Path of the written artifact.
        """
        instructions = self.layout(document)
        logger.info(
            "Rendering %d elements on a %.0fx%.0f page", len(instructions), *self.page_size
        )
        return self.writer.write(instructions, self.page_size, Path(output_path))

    def render_grid(
        self,
        grid: DocumentGrid,
        image_width: int,
        image_height: int,
        output_path: Path,
        analyzer: Optional[LayoutGridAnalyzer] = None,
    ) -> Path:
        """Render a document grid, placing elements on their grid tracks.

        Args:
            grid: Grid to render.
            image_width: Pixel width the grid coordinates refer to.
            image_height: Pixel height the grid coordinates refer to.
            output_path: Destination path.
            analyzer: Analyzer used to convert the grid back to a document.

        Returns:
            Path of the written artifact.
        """
        analyzer = analyzer or LayoutGridAnalyzer()
        document = analyzer.grid_to_document(grid, image_width, image_height)
        return self.render(document, output_path)
