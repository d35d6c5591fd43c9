"""OCR Stage - Detect text blocks with their recognized text.

Uses Tesseract OCR as the default text-block detector. Any object with a
``detect(image) -> list[TextBlock]`` method can stand in for it, which is
how tests and alternative engines plug into the zone detector.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import cv2
import numpy as np
import pytesseract
from PIL import Image

from docscan.config import settings
from docscan.geometry import union_rect
from docscan.models import Rect

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextBlock:
    """A detected block of text and its bounding box in image pixels."""

    rect: Rect
    text: str


class TextBlockDetector(Protocol):
    """Anything that finds text blocks in an image."""

    def detect(self, image: np.ndarray) -> list[TextBlock]:
        ...


def to_pil(image: np.ndarray) -> Image.Image:
    """Convert a BGR or grayscale array to a PIL image."""
    if len(image.shape) == 3:
        return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
    return Image.fromarray(image)


class TesseractBlockDetector:
    """Text-block detector using Tesseract.

    Words reported by Tesseract are grouped by their block number; each
    block's lines are joined with newlines and its words with spaces.
    """

    def __init__(
        self,
        language: str = None,
        psm: int = None,
        oem: int = 3,
        min_confidence: float = 0.0,
        config: Optional[str] = None,
    ):
        """Initialize Tesseract detector.

        Args:
            language: Tesseract language code(s), e.g., 'eng', 'eng+fra'.
            psm: Page segmentation mode (3 = fully automatic).
            oem: OCR Engine mode (3 = default, based on what's available).
            min_confidence: Minimum word confidence (0-100) to keep a word.
            config: Additional Tesseract config string.
        """
        self.language = language or settings.tesseract_lang
        self.psm = psm if psm is not None else settings.tesseract_psm
        self.oem = oem
        self.min_confidence = min_confidence
        self.config = config or ""

    def _build_config(self) -> str:
        """Build Tesseract configuration string."""
        config_parts = [
            f"--psm {self.psm}",
            f"--oem {self.oem}",
        ]
        if self.config:
            config_parts.append(self.config)
        return " ".join(config_parts)

    def detect(self, image: np.ndarray) -> list[TextBlock]:
        """Detect text blocks in an image.

        Args:
            image: Image as numpy array (grayscale or BGR).

        Returns:
            Text blocks in Tesseract's block order.
        """
        data = pytesseract.image_to_data(
            to_pil(image),
            lang=self.language,
            config=self._build_config(),
            output_type=pytesseract.Output.DICT,
        )

        # block_num -> line key -> [(left, word)], plus word boxes
        blocks: dict[int, dict[tuple[int, int], list[tuple[int, str]]]] = {}
        boxes: dict[int, list[Rect]] = {}

        for i in range(len(data["text"])):
            word = str(data["text"][i]).strip()
            conf = float(data["conf"][i])

            # Skip structural rows and noise
            if not word or conf < 0 or conf < self.min_confidence:
                continue
            if data["width"][i] <= 0 or data["height"][i] <= 0:
                continue

            block_num = int(data["block_num"][i])
            line_key = (int(data["par_num"][i]), int(data["line_num"][i]))

            blocks.setdefault(block_num, {}).setdefault(line_key, []).append(
                (int(data["left"][i]), word)
            )
            boxes.setdefault(block_num, []).append(
                Rect.from_xywh(
                    data["left"][i], data["top"][i], data["width"][i], data["height"][i]
                )
            )

        result = []
        for block_num in sorted(blocks):
            lines = blocks[block_num]
            text = "\n".join(
                " ".join(word for _, word in sorted(lines[key], key=lambda w: w[0]))
                for key in sorted(lines)
            )
            result.append(TextBlock(rect=union_rect(boxes[block_num]), text=text))

        logger.debug("Tesseract found %d text blocks", len(result))
        return result


def recognize_region(detector: TextBlockDetector, image: np.ndarray, rect: Rect) -> str:
    """Run a detector on a cropped region and return all recognized text.

    Failures are contained: a region that cannot be cropped or recognized
    yields an empty string.

    Args:
        detector: Text-block detector.
        image: Full page image.
        rect: Region to recognize, in page pixels.

    Returns:
        Recognized text, blocks joined with newlines.
    """
    height, width = image.shape[:2]
    clipped = rect.clip(width, height)
    if clipped is None:
        logger.warning("Region %s lies outside the %dx%d image", rect.to_tuple(), width, height)
        return ""

    try:
        crop = image[clipped.y:clipped.y2, clipped.x:clipped.x2]
        blocks = detector.detect(crop)
    except Exception:
        logger.exception("OCR re-check failed for region %s", rect.to_tuple())
        return ""

    return "\n".join(block.text for block in blocks if block.text).strip()
