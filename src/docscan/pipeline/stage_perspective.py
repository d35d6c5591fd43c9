"""Perspective Correction Stage - Straighten a photographed page.

Finds the page outline as the largest convex quadrilateral among the edge
contours of the photo and warps it to an upright rectangle. When no
plausible outline exists the photo is passed through untouched, so a
flat scan or a tightly cropped picture still goes through the pipeline.

Also hosts the contrast enhancement applied to the corrected page before
zone detection.
"""

import logging
from typing import Callable, Optional, Sequence

import cv2
import numpy as np

from docscan.config import settings
from docscan.geometry import distance, sort_corners

logger = logging.getLogger(__name__)

ContourSource = Callable[[np.ndarray], Sequence[np.ndarray]]


def find_edge_contours(image: np.ndarray) -> list[np.ndarray]:
    """Extract closed contours from the edge map of an image.

    Args:
        image: BGR or grayscale image.

    Returns:
        List of contours as returned by ``cv2.findContours``.
    """
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
    blurred = cv2.GaussianBlur(gray, (5, 5), 0)
    edges = cv2.Canny(blurred, 75, 200)

    # Close small gaps in the page outline
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (3, 3))
    edges = cv2.dilate(edges, kernel, iterations=1)

    contours, _ = cv2.findContours(edges, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
    return list(contours)


def four_point_transform(image: np.ndarray, corners: np.ndarray) -> np.ndarray:
    """Warp the quadrilateral ``corners`` of ``image`` to an upright rectangle.

    Args:
        image: Source image (not modified).
        corners: Four points in any order.

    Returns:
        New image of the warped region.
    """
    tl, tr, br, bl = sort_corners(corners)

    width = int(max(distance(tl, tr), distance(bl, br)))
    height = int(max(distance(tl, bl), distance(tr, br)))

    src = np.array([tl, tr, br, bl], dtype=np.float32)
    dst = np.array(
        [[0, 0], [width - 1, 0], [width - 1, height - 1], [0, height - 1]],
        dtype=np.float32,
    )

    matrix = cv2.getPerspectiveTransform(src, dst)
    return cv2.warpPerspective(image, matrix, (width, height))


class PerspectiveCorrector:
    """Detects the page quadrilateral and applies a perspective warp."""

    def __init__(
        self,
        min_area_ratio: Optional[float] = None,
        approx_epsilon: Optional[float] = None,
        contour_source: Optional[ContourSource] = None,
    ):
        """Initialize the corrector.

        Args:
            min_area_ratio: Minimum page area as a fraction of the image.
            approx_epsilon: Polygon approximation tolerance, as a fraction
                of the contour perimeter.
            contour_source: Callable returning candidate contours for an
                image. Defaults to Canny edge contours.
        """
        self.min_area_ratio = (
            min_area_ratio if min_area_ratio is not None else settings.quad_min_area_ratio
        )
        self.approx_epsilon = (
            approx_epsilon if approx_epsilon is not None else settings.quad_approx_epsilon
        )
        self.contour_source = contour_source or find_edge_contours

    def find_page_quad(self, image: np.ndarray) -> Optional[np.ndarray]:
        """Locate the page outline.

        Args:
            image: Page photograph.

        Returns:
            The four corners ordered TL, TR, BR, BL, or None if no convex
            quadrilateral large enough was found.
        """
        height, width = image.shape[:2]
        min_area = width * height * self.min_area_ratio

        contours = sorted(self.contour_source(image), key=cv2.contourArea, reverse=True)
        for contour in contours:
            if cv2.contourArea(contour) < min_area:
                # Sorted by area, nothing further can qualify
                break

            perimeter = cv2.arcLength(contour, True)
            approx = cv2.approxPolyDP(contour, self.approx_epsilon * perimeter, True)

            if len(approx) == 4 and cv2.isContourConvex(approx):
                return sort_corners(approx)

        return None

    def correct(self, image: np.ndarray) -> np.ndarray:
        """Straighten the page in ``image``.

        Args:
            image: Page photograph. Never modified.

        Returns:
            The warped page, or ``image`` itself if no page outline was found.
        """
        corners = self.find_page_quad(image)
        if corners is None:
            logger.info("No page outline found, skipping perspective correction")
            return image

        warped = four_point_transform(image, corners)
        if warped.shape[0] < 2 or warped.shape[1] < 2:
            logger.warning("Degenerate page outline %s, skipping correction", corners.tolist())
            return image

        logger.debug(
            "Perspective corrected: %dx%d -> %dx%d",
            image.shape[1], image.shape[0], warped.shape[1], warped.shape[0],
        )
        return warped


def enhance_contrast(
    image: np.ndarray,
    clip_limit: float = None,
    grid_size: int = None,
) -> np.ndarray:
    """Apply CLAHE to the lightness channel, keeping colors intact.

    Args:
        image: BGR image.
        clip_limit: CLAHE clip limit.
        grid_size: CLAHE tile grid size.

    Returns:
        New enhanced BGR image.
    """
    clip_limit = clip_limit or settings.clahe_clip_limit
    grid_size = grid_size or settings.clahe_grid_size

    if image.ndim == 2:
        clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(grid_size, grid_size))
        return clahe.apply(image)

    lab = cv2.cvtColor(image, cv2.COLOR_BGR2LAB)
    lightness, a, b = cv2.split(lab)
    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(grid_size, grid_size))
    lab = cv2.merge((clahe.apply(lightness), a, b))
    return cv2.cvtColor(lab, cv2.COLOR_LAB2BGR)
