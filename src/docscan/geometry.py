"""Rectangle and point arithmetic shared by the pipeline stages."""

import math
from typing import Iterable, Sequence

import numpy as np

from docscan.models import Rect


def intersection_area(a: Rect, b: Rect) -> int:
    """Area of the intersection of two rectangles (0 if disjoint)."""
    left = max(a.x, b.x)
    top = max(a.y, b.y)
    right = min(a.x2, b.x2)
    bottom = min(a.y2, b.y2)
    if left < right and top < bottom:
        return (right - left) * (bottom - top)
    return 0


def overlap_ratio(a: Rect, b: Rect) -> float:
    """Fraction of ``b``'s area covered by ``a``."""
    return intersection_area(a, b) / b.area


def vertical_overlap(a: Rect, b: Rect) -> int:
    """Length of the shared vertical extent (0 if none)."""
    return max(0, min(a.y2, b.y2) - max(a.y, b.y))


def horizontal_overlap(a: Rect, b: Rect) -> int:
    """Length of the shared horizontal extent (0 if none)."""
    return max(0, min(a.x2, b.x2) - max(a.x, b.x))


def vertical_overlap_ratio(a: Rect, b: Rect) -> float:
    """Vertical overlap relative to the smaller height."""
    return vertical_overlap(a, b) / min(a.height, b.height)


def horizontal_overlap_ratio(a: Rect, b: Rect) -> float:
    """Horizontal overlap relative to the smaller width."""
    return horizontal_overlap(a, b) / min(a.width, b.width)


def horizontal_gap(a: Rect, b: Rect) -> int:
    """Distance between the facing vertical edges (0 when overlapping)."""
    return max(0, max(a.x, b.x) - min(a.x2, b.x2))


def union_rect(rects: Iterable[Rect]) -> Rect:
    """Bounding box of all given rectangles."""
    rects = list(rects)
    if not rects:
        raise ValueError("Cannot take the union of no rectangles")
    return Rect.from_xyxy(
        min(r.x for r in rects),
        min(r.y for r in rects),
        max(r.x2 for r in rects),
        max(r.y2 for r in rects),
    )


def distance(p: Sequence[float], q: Sequence[float]) -> float:
    """Euclidean distance between two points."""
    return math.hypot(float(p[0]) - float(q[0]), float(p[1]) - float(q[1]))


def sort_corners(points: np.ndarray) -> np.ndarray:
    """Order four points as top-left, top-right, bottom-right, bottom-left.

    Points are split into a top and a bottom pair by their Y coordinate,
    then each pair is ordered by X.

    Args:
        points: Array of shape (4, 2) or (4, 1, 2), as returned by
            ``cv2.approxPolyDP``.

    Returns:
        float32 array of shape (4, 2).
    """
    pts = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    if len(pts) != 4:
        raise ValueError(f"Expected 4 points, got {len(pts)}")

    by_y = pts[np.lexsort((pts[:, 0], pts[:, 1]))]
    top = by_y[:2][np.argsort(by_y[:2, 0], kind="stable")]
    bottom = by_y[2:][np.argsort(by_y[2:, 0], kind="stable")]

    return np.array([top[0], top[1], bottom[1], bottom[0]], dtype=np.float32)
