"""Pytest configuration and fixtures."""

from typing import Optional, Sequence

import cv2
import numpy as np
import pytest

from docscan.models import Rect
from docscan.pipeline.stage_ocr import TextBlock


class FakeTextDetector:
    """Text-block detector returning canned blocks.

    When ``page_shape`` is set, blocks are only reported for images of that
    (height, width); crops get nothing.
    """

    def __init__(
        self,
        blocks: Sequence[TextBlock] = (),
        page_shape: Optional[tuple[int, int]] = None,
    ):
        self.blocks = list(blocks)
        self.page_shape = page_shape
        self.calls = []

    def detect(self, image: np.ndarray) -> list[TextBlock]:
        self.calls.append(image.shape[:2])
        if self.page_shape is not None and image.shape[:2] != self.page_shape:
            return []
        return list(self.blocks)


def block(x: int, y: int, width: int, height: int, text: str) -> TextBlock:
    return TextBlock(rect=Rect.from_xywh(x, y, width, height), text=text)


def make_photo(height: int, width: int, seed: int = 0) -> np.ndarray:
    """Random, strongly saturated BGR patch standing in for a photograph.

    Brightness stays below the inverted-banner threshold.
    """
    rng = np.random.default_rng(seed)
    hsv = np.empty((height, width, 3), dtype=np.uint8)
    hsv[:, :, 0] = rng.integers(0, 180, size=(height, width))
    hsv[:, :, 1] = rng.integers(150, 256, size=(height, width))
    hsv[:, :, 2] = rng.integers(60, 201, size=(height, width))
    return cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)


@pytest.fixture
def white_page():
    """Blank 600x800 (w x h) BGR page."""
    return np.full((800, 600, 3), 255, dtype=np.uint8)


@pytest.fixture
def photo_page(white_page):
    """White page with a 200x150 photo at (350, 450)."""
    page = white_page.copy()
    page[450:600, 350:550] = make_photo(150, 200)
    return page


@pytest.fixture
def page_blocks():
    """A title and three fragments forming one paragraph."""
    return [
        block(50, 40, 400, 40, "Quarterly Report"),
        block(50, 150, 200, 20, "The quick brown"),
        block(260, 152, 180, 20, "fox jumps over"),
        block(50, 175, 230, 20, "the lazy dog."),
    ]


@pytest.fixture
def output_dir(tmp_path):
    """Create a temporary output directory."""
    out_dir = tmp_path / "output"
    out_dir.mkdir()
    return out_dir
