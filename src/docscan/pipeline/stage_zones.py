"""Zone Detection Stage - Classify page regions as text or image.

Text zones come from the text-block detector, image zones from contours
of a color-saturation mask (with an edge-based fallback). Where the two
disagree, text wins.

Light text on colored banners is hard for OCR engines, so such regions
are found first and inverted locally before the text pass.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

import cv2
import numpy as np

from docscan.config import settings
from docscan.geometry import intersection_area, overlap_ratio
from docscan.models import Rect, TextZone
from docscan.pipeline.stage_ocr import TextBlockDetector, recognize_region

logger = logging.getLogger(__name__)


class ContourDetector(Protocol):
    """Anything that turns a binary mask into region bounding boxes."""

    def find_regions(self, mask: np.ndarray) -> list[Rect]:
        ...


class OpenCVContourDetector:
    """Bounding boxes of the external contours of a binary mask."""

    def find_regions(self, mask: np.ndarray) -> list[Rect]:
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        regions = []
        for contour in contours:
            x, y, w, h = cv2.boundingRect(contour)
            if w > 0 and h > 0:
                regions.append(Rect.from_xywh(x, y, w, h))
        # findContours order depends on scan position; pin it down
        return sorted(regions, key=lambda r: (r.y, r.x, r.height, r.width))


@dataclass
class DetectedZones:
    """Raw, unmerged zone detection output."""

    text_zones: list[TextZone] = field(default_factory=list)
    image_rects: list[Rect] = field(default_factory=list)
    inverted_regions: list[Rect] = field(default_factory=list)

    @property
    def texts(self) -> list[str]:
        return [zone.text for zone in self.text_zones]


def overlaps_text_zone(candidate: Rect, text_rects: Sequence[Rect], threshold: float) -> bool:
    """Check whether an image candidate covers too much of any text zone.

    Args:
        candidate: Image region candidate.
        text_rects: Text zone rectangles.
        threshold: Fraction of a text zone's area that disqualifies the
            candidate when covered.

    Returns:
        True if the candidate should be dropped in favor of text.
    """
    for text_rect in text_rects:
        if intersection_area(candidate, text_rect) == 0:
            continue
        if overlap_ratio(candidate, text_rect) >= threshold:
            return True
    return False


def touches_border(rect: Rect, image_width: int, image_height: int, margin: int) -> bool:
    """Check whether a rectangle lies within ``margin`` pixels of an image edge."""
    return (
        rect.x <= margin
        or rect.y <= margin
        or rect.x2 >= image_width - margin
        or rect.y2 >= image_height - margin
    )


def has_color_variance(image: np.ndarray, rect: Rect, threshold: float) -> bool:
    """Check whether any channel inside ``rect`` varies more than ``threshold``."""
    region = image[rect.y:rect.y2, rect.x:rect.x2]
    if region.size == 0:
        return False
    pixels = region.reshape(-1, region.shape[2] if region.ndim == 3 else 1)
    stds = pixels.std(axis=0)
    return bool(np.any(stds > threshold))


def invert_regions(image: np.ndarray, regions: Sequence[Rect]) -> np.ndarray:
    """Return a copy of ``image`` with the given regions color-inverted."""
    result = image.copy()
    height, width = image.shape[:2]
    for rect in regions:
        clipped = rect.clip(width, height)
        if clipped is None:
            continue
        result[clipped.y:clipped.y2, clipped.x:clipped.x2] = 255 - result[
            clipped.y:clipped.y2, clipped.x:clipped.x2
        ]
    return result


class ZoneDetector:
    """Classifies candidate page regions as text zones or image zones."""

    def __init__(
        self,
        text_detector: TextBlockDetector,
        contour_detector: Optional[ContourDetector] = None,
        overlap_threshold: Optional[float] = None,
        min_area_ratio: Optional[float] = None,
        max_area_ratio: Optional[float] = None,
        edge_min_area_ratio: Optional[float] = None,
        saturation_threshold: Optional[int] = None,
        color_std_threshold: Optional[float] = None,
        kernel_size: Optional[int] = None,
    ):
        """Initialize the zone detector.

        Args:
            text_detector: Text-block detector collaborator.
            contour_detector: Mask-to-regions collaborator. Defaults to
                OpenCV external contours.
            overlap_threshold: Fraction of a text zone an image candidate
                may cover before it is discarded.
            min_area_ratio: Minimum image zone area, fraction of the page.
            max_area_ratio: Maximum image zone area, fraction of the page.
            edge_min_area_ratio: Minimum area for the edge-based fallback.
            saturation_threshold: Saturation above which a pixel counts as
                colored.
            color_std_threshold: Per-channel standard deviation an image
                zone must exceed on at least one channel.
            kernel_size: Side of the morphological closing kernel.
        """
        self.text_detector = text_detector
        self.contour_detector = contour_detector or OpenCVContourDetector()

        def pick(value, default):
            return value if value is not None else default

        self.overlap_threshold = pick(overlap_threshold, settings.overlap_threshold)
        self.min_area_ratio = pick(min_area_ratio, settings.image_min_area_ratio)
        self.max_area_ratio = pick(max_area_ratio, settings.image_max_area_ratio)
        self.edge_min_area_ratio = pick(edge_min_area_ratio, settings.edge_min_area_ratio)
        self.saturation_threshold = pick(saturation_threshold, settings.color_saturation_threshold)
        self.color_std_threshold = pick(color_std_threshold, settings.color_std_threshold)
        self.kernel_size = pick(kernel_size, settings.morph_kernel_size)

        self.inverted_saturation = settings.inverted_saturation_threshold
        self.inverted_brightness = settings.inverted_brightness_threshold
        self.inverted_min_area_ratio = settings.inverted_min_area_ratio
        self.inverted_coverage = settings.inverted_coverage_threshold
        self.border_margin = settings.border_margin
        self.border_small_area_ratio = settings.border_small_area_ratio

    def detect(self, image: np.ndarray) -> DetectedZones:
        """Detect text and image zones on an enhanced page image.

        Args:
            image: BGR page image. Not modified.

        Returns:
            DetectedZones with raw text zones and image rectangles.
        """
        inverted_regions = self.find_inverted_regions(image)
        text_zones = self.extract_text_zones(image, inverted_regions)

        text_rects = [zone.rect for zone in text_zones]
        image_rects = self.extract_image_rects(image, text_rects)

        logger.info(
            "Zone detection: %d text zones, %d image zones, %d inverted regions",
            len(text_zones), len(image_rects), len(inverted_regions),
        )
        return DetectedZones(
            text_zones=text_zones,
            image_rects=image_rects,
            inverted_regions=inverted_regions,
        )

    def find_inverted_regions(self, image: np.ndarray) -> list[Rect]:
        """Find saturated, bright regions likely to hold light-on-color text.

        Args:
            image: BGR page image.

        Returns:
            Candidate banner regions.
        """
        if image.ndim != 3:
            return []

        height, width = image.shape[:2]
        hsv = cv2.cvtColor(image, cv2.COLOR_BGR2HSV)
        saturation = hsv[:, :, 1]
        value = hsv[:, :, 2]

        mask = (
            (saturation > self.inverted_saturation) & (value > self.inverted_brightness)
        ).astype(np.uint8) * 255
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (self.kernel_size, self.kernel_size))
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel)

        min_area = width * height * self.inverted_min_area_ratio
        regions = []
        for rect in self.contour_detector.find_regions(mask):
            if rect.area < min_area:
                continue
            mean_saturation = float(saturation[rect.y:rect.y2, rect.x:rect.x2].mean())
            mean_value = float(value[rect.y:rect.y2, rect.x:rect.x2].mean())
            if mean_saturation > self.inverted_saturation and mean_value > self.inverted_brightness:
                regions.append(rect)

        return regions

    def extract_text_zones(
        self,
        image: np.ndarray,
        inverted_regions: Sequence[Rect],
    ) -> list[TextZone]:
        """Run text detection on the locally inverted image.

        Args:
            image: BGR page image.
            inverted_regions: Regions to invert before detection.

        Returns:
            Text zones, detector blocks first, then recovered inverted
            regions.
        """
        working = invert_regions(image, inverted_regions) if inverted_regions else image
        height, width = image.shape[:2]

        zones = []
        for block in self.text_detector.detect(working):
            rect = block.rect.clip(width, height)
            if rect is None:
                logger.debug("Dropping text block outside the page: %s", block.rect.to_tuple())
                continue
            is_inverted = any(
                overlap_ratio(region, rect) >= self.inverted_coverage
                for region in inverted_regions
            )
            zones.append(TextZone(rect=rect, text=block.text, is_inverted=is_inverted))

        # Banners not mostly covered by a single text zone get a dedicated look
        for region in inverted_regions:
            covered = any(
                overlap_ratio(zone.rect, region) >= self.inverted_coverage for zone in zones
            )
            if covered:
                continue

            text = recognize_region(self.text_detector, working, region)
            if text:
                zones.append(TextZone(rect=region, text=text, is_inverted=True))
            else:
                logger.debug("No text recovered from inverted region %s", region.to_tuple())

        return zones

    def extract_image_rects(self, image: np.ndarray, text_rects: Sequence[Rect]) -> list[Rect]:
        """Find photograph/illustration regions not claimed by text.

        Args:
            image: BGR page image.
            text_rects: Rectangles of detected text zones.

        Returns:
            Image zone rectangles.
        """
        height, width = image.shape[:2]
        page_area = width * height
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (self.kernel_size, self.kernel_size))
        color = image if image.ndim == 3 else cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

        # Pass 1: colored regions
        hsv = cv2.cvtColor(color, cv2.COLOR_BGR2HSV)
        _, mask = cv2.threshold(hsv[:, :, 1], self.saturation_threshold, 255, cv2.THRESH_BINARY)
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel)

        image_rects = []
        for rect in self.contour_detector.find_regions(mask):
            if not self.min_area_ratio * page_area <= rect.area <= self.max_area_ratio * page_area:
                continue
            if (
                rect.area < self.border_small_area_ratio * page_area
                and touches_border(rect, width, height, self.border_margin)
            ):
                continue
            if not has_color_variance(color, rect, self.color_std_threshold):
                continue
            if overlaps_text_zone(rect, text_rects, self.overlap_threshold):
                logger.debug("Image candidate %s dropped: covers text", rect.to_tuple())
                continue
            image_rects.append(rect)

        if image_rects:
            return image_rects

        # Pass 2: edge contours, larger minimum area
        logger.debug("No colored image regions found, trying edge detection")
        gray = cv2.cvtColor(color, cv2.COLOR_BGR2GRAY)
        gray = cv2.GaussianBlur(gray, (5, 5), 0)
        edges = cv2.Canny(gray, 50, 150)
        edges = cv2.dilate(edges, kernel)

        for rect in self.contour_detector.find_regions(edges):
            if rect.area <= self.edge_min_area_ratio * page_area:
                continue
            if overlaps_text_zone(rect, text_rects, self.overlap_threshold):
                continue
            image_rects.append(rect)

        return image_rects
