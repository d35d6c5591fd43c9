"""Pipeline runner - photograph in, reconstructed page out.

Stages run sequentially:
1. load + scale (stage_load)
2. perspective correction (stage_perspective, optional)
3. contrast enhancement (stage_perspective, optional)
4. zone detection (stage_zones)
5. image payload crops
6. paragraph grouping and reading order (stage_paragraph)
7. layout grid (stage_grid)
8. page rendering (stage_render)

A runner holds no state between calls; separate instances may be used
from separate threads.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

import numpy as np

from docscan.config import settings
from docscan.errors import DocScanError, ImageLoadError, PipelineError
from docscan.models import AnalyzedDocument, DocumentGrid, ImageZone, InMemoryImage, Rect

from .stage_grid import LayoutGridAnalyzer
from .stage_load import load_image, scale_to_max_dimension
from .stage_ocr import TesseractBlockDetector, TextBlockDetector
from .stage_paragraph import ParagraphOrganizer
from .stage_perspective import PerspectiveCorrector, enhance_contrast
from .stage_render import DocumentRenderer
from .stage_zones import ContourDetector, ZoneDetector

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of processing one photograph."""

    document: AnalyzedDocument
    grid: DocumentGrid
    output_path: Optional[Path] = None


@contextmanager
def stage(name: str, element_index: Optional[int] = None) -> Iterator[None]:
    """Re-raise unexpected failures inside a stage as PipelineError."""
    try:
        yield
    except DocScanError:
        raise
    except Exception as e:
        raise PipelineError(name, f"{type(e).__name__}: {e}", element_index=element_index) from e


def crop_payloads(image: np.ndarray, rects: Sequence[Rect]) -> list[ImageZone]:
    """Cut each image rect out of ``image`` as an in-memory payload."""
    height, width = image.shape[:2]
    zones = []
    for index, rect in enumerate(rects):
        with stage("payload", element_index=index):
            clipped = rect.clip(width, height)
            if clipped is None:
                raise ValueError(f"image rect {rect.to_tuple()} lies outside the page")
            pixels = image[clipped.y:clipped.y2, clipped.x:clipped.x2].copy()
            zones.append(ImageZone(rect=clipped, payload=InMemoryImage(pixels=pixels)))
    return zones


class DocumentPipeline:
    """Runs every stage from photograph to rendered page."""

    def __init__(
        self,
        text_detector: Optional[TextBlockDetector] = None,
        contour_detector: Optional[ContourDetector] = None,
        corrector: Optional[PerspectiveCorrector] = None,
        organizer: Optional[ParagraphOrganizer] = None,
        grid_analyzer: Optional[LayoutGridAnalyzer] = None,
        renderer: Optional[DocumentRenderer] = None,
        correct_perspective: Optional[bool] = None,
        enhance: Optional[bool] = None,
        max_image_dimension: Optional[int] = None,
    ):
        """Initialize the pipeline.

        Args:
            text_detector: Text-block detector. Defaults to Tesseract.
            contour_detector: Mask-to-regions detector. Defaults to OpenCV.
            corrector: Perspective corrector.
            organizer: Paragraph organizer.
            grid_analyzer: Layout grid analyzer.
            renderer: Page renderer.
            correct_perspective: Run perspective correction.
            enhance: Run contrast enhancement.
            max_image_dimension: Longest side after loading, in pixels.
        """
        self.zone_detector = ZoneDetector(
            text_detector or TesseractBlockDetector(),
            contour_detector=contour_detector,
        )
        self.corrector = corrector or PerspectiveCorrector()
        self.organizer = organizer or ParagraphOrganizer()
        self.grid_analyzer = grid_analyzer or LayoutGridAnalyzer()
        self.renderer = renderer or DocumentRenderer()
        self.correct_perspective = (
            correct_perspective if correct_perspective is not None else settings.correct_perspective
        )
        self.enhance = enhance if enhance is not None else settings.enhance_contrast
        self.max_image_dimension = max_image_dimension or settings.max_image_dimension

    def analyze(self, image: np.ndarray) -> AnalyzedDocument:
        """Build the document model of a page photograph.

        Args:
            image: BGR photograph, already scaled.

        Returns:
            AnalyzedDocument in the pixel space of the corrected image.

        Raises:
            ImageLoadError: If the image is empty.
            PipelineError: If a stage fails.
        """
        if image is None or image.size == 0:
            raise ImageLoadError("Empty image")

        page = image
        if self.correct_perspective:
            with stage("perspective"):
                page = self.corrector.correct(image)

        enhanced = page
        if self.enhance:
            with stage("enhance"):
                enhanced = enhance_contrast(page)

        with stage("zones"):
            zones = self.zone_detector.detect(enhanced)

        image_zones = crop_payloads(enhanced, zones.image_rects)

        with stage("organize"):
            elements = self.organizer.organize(zones.text_zones, image_zones)

        height, width = enhanced.shape[:2]
        return AnalyzedDocument(
            elements=elements,
            image_width=width,
            image_height=height,
            source_image=enhanced,
        )

    def build_grid(self, document: AnalyzedDocument) -> DocumentGrid:
        """Build and compact the layout grid of a document."""
        with stage("grid"):
            grid = self.grid_analyzer.analyze_layout(document)
            return self.grid_analyzer.optimize_grid(grid)

    def process(
        self,
        image_path: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
    ) -> PipelineResult:
        """Process one photograph end to end.

        Args:
            image_path: Photograph to reconstruct.
            output_path: Where to write the rendered page. Nothing is
                rendered when omitted.

        Returns:
            PipelineResult with the document, its grid and the output path.

        Raises:
            ImageLoadError: If the photograph cannot be read.
            PipelineError: If a stage fails.
        """
        image = load_image(image_path)
        with stage("scale"):
            image = scale_to_max_dimension(image, self.max_image_dimension)

        document = self.analyze(image)
        grid = self.build_grid(document)
        logger.info(
            "Analyzed %s: %d text zones, %d image zones, %dx%d grid",
            Path(image_path).name,
            len(document.text_zones),
            len(document.image_zones),
            len(grid.rows),
            len(grid.columns),
        )

        written = None
        if output_path is not None:
            with stage("render"):
                written = self.renderer.render(document, Path(output_path))

        return PipelineResult(document=document, grid=grid, output_path=written)
