"""Pipeline stages for photo-to-document reconstruction.

Stages:
1. stage_load - Decode and downscale the photograph
2. stage_perspective - Page outline warp and contrast enhancement
3. stage_ocr - Text-block detection (Tesseract)
4. stage_zones - Text/image zone classification
5. stage_paragraph - Paragraph grouping and reading order
6. stage_grid - Layout grid model
7. stage_render - Output page rendering (PyMuPDF)

Each stage is independent and can be run separately or
orchestrated through DocumentPipeline.
"""

from .runner import DocumentPipeline, PipelineResult
from .stage_grid import LayoutGridAnalyzer, merge_close_lines
from .stage_load import decode_image, load_image, scale_to_max_dimension
from .stage_ocr import TesseractBlockDetector, TextBlock, TextBlockDetector
from .stage_paragraph import ParagraphOrganizer
from .stage_perspective import PerspectiveCorrector, enhance_contrast
from .stage_render import DocumentRenderer, ImagePlacement, PdfPageWriter, TextRun
from .stage_zones import DetectedZones, OpenCVContourDetector, ZoneDetector

__all__ = [
    # Runner
    "DocumentPipeline",
    "PipelineResult",
    # Load
    "decode_image",
    "load_image",
    "scale_to_max_dimension",
    # Perspective
    "PerspectiveCorrector",
    "enhance_contrast",
    # OCR
    "TesseractBlockDetector",
    "TextBlock",
    "TextBlockDetector",
    # Zones
    "DetectedZones",
    "OpenCVContourDetector",
    "ZoneDetector",
    # Paragraphs
    "ParagraphOrganizer",
    # Grid
    "LayoutGridAnalyzer",
    "merge_close_lines",
    # Render
    "DocumentRenderer",
    "ImagePlacement",
    "PdfPageWriter",
    "TextRun",
]
