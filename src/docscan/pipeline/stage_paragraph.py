"""Paragraph Organization Stage - Group text fragments and order the page.

OCR engines report text in fragments (words, line pieces, short blocks).
This stage links fragments that belong to the same paragraph, merges each
group into one zone, and sorts paragraphs and images into reading order:
top to bottom by line, left to right within a line.

Grouping treats the adjacency test as the edge relation of an undirected
graph over fragment indices; paragraphs are its connected components.
Everything is index-ordered so identical input always yields identical
output.
"""

import logging
from collections import deque
from dataclasses import dataclass
from statistics import mean
from typing import Optional, Sequence, Union

from docscan.config import settings
from docscan.geometry import (
    horizontal_gap,
    horizontal_overlap_ratio,
    union_rect,
    vertical_overlap_ratio,
)
from docscan.models import ImageZone, Rect, TextZone

logger = logging.getLogger(__name__)


@dataclass
class _Placed:
    """An element with the measurements used for reading order."""

    element: Union[TextZone, ImageZone]
    mean_y: float
    line_height: float

    @property
    def x(self) -> int:
        return self.element.rect.x


class ParagraphOrganizer:
    """Groups text blocks into paragraphs and orders page elements."""

    def __init__(
        self,
        max_height_ratio: Optional[float] = None,
        line_overlap_threshold: Optional[float] = None,
        same_line_y_ratio: Optional[float] = None,
        max_horizontal_gap: Optional[int] = None,
        wrap_factor: Optional[float] = None,
        horizontal_overlap_threshold: Optional[float] = None,
        line_bucket_factor: Optional[float] = None,
        reading_line_factor: Optional[float] = None,
    ):
        """Initialize the organizer.

        Args:
            max_height_ratio: Largest height ratio between two fragments of
                the same paragraph (excludes mismatched font sizes).
            line_overlap_threshold: Vertical overlap, relative to the
                smaller height, above which two fragments share a line.
            same_line_y_ratio: Top-edge difference, relative to the smaller
                height, below which two fragments share a line.
            max_horizontal_gap: Largest gap in pixels between same-line
                fragments.
            wrap_factor: A wrapped line must start between the bottom of
                the previous line and that bottom times this factor.
            horizontal_overlap_threshold: Horizontal overlap, relative to
                the smaller width, required for a wrapped line.
            line_bucket_factor: Line height fraction used to bucket
                fragments into lines inside a paragraph.
            reading_line_factor: Line height fraction within which
                elements count as sitting on the same reading line.
        """

        def pick(value, default):
            return value if value is not None else default

        self.max_height_ratio = pick(max_height_ratio, settings.max_height_ratio)
        self.line_overlap_threshold = pick(line_overlap_threshold, settings.line_overlap_threshold)
        self.same_line_y_ratio = pick(same_line_y_ratio, settings.same_line_y_ratio)
        self.max_horizontal_gap = pick(max_horizontal_gap, settings.max_horizontal_gap)
        self.wrap_factor = pick(wrap_factor, settings.wrap_factor)
        self.horizontal_overlap_threshold = pick(
            horizontal_overlap_threshold, settings.horizontal_overlap_threshold
        )
        self.line_bucket_factor = pick(line_bucket_factor, settings.line_bucket_factor)
        self.reading_line_factor = pick(reading_line_factor, settings.reading_line_factor)

    def same_paragraph(self, a: Rect, b: Rect) -> bool:
        """Decide whether two text fragments belong to the same paragraph.

        Args:
            a: First fragment rectangle.
            b: Second fragment rectangle.

        Returns:
            True if the fragments are adjacent on one line, or one is the
            wrapped continuation of the other.
        """
        min_height = min(a.height, b.height)
        if max(a.height, b.height) / min_height > self.max_height_ratio:
            return False

        same_line = (
            vertical_overlap_ratio(a, b) > self.line_overlap_threshold
            or abs(a.y - b.y) < self.same_line_y_ratio * min_height
        )
        if same_line:
            return horizontal_gap(a, b) <= self.max_horizontal_gap

        upper, lower = (a, b) if a.y <= b.y else (b, a)
        consecutive = upper.y2 <= lower.y <= upper.y2 * self.wrap_factor
        return consecutive and horizontal_overlap_ratio(a, b) > self.horizontal_overlap_threshold

    def cluster(self, rects: Sequence[Rect]) -> list[list[int]]:
        """Group fragment indices into paragraphs.

        Args:
            rects: Fragment rectangles.

        Returns:
            Connected components of the adjacency graph, each a sorted list
            of indices, ordered by their smallest index.
        """
        visited = [False] * len(rects)
        groups = []

        for seed in range(len(rects)):
            if visited[seed]:
                continue

            visited[seed] = True
            queue = deque([seed])
            group = []
            while queue:
                current = queue.popleft()
                group.append(current)
                for other in range(len(rects)):
                    if not visited[other] and self.same_paragraph(rects[current], rects[other]):
                        visited[other] = True
                        queue.append(other)

            groups.append(sorted(group))

        return groups

    def merge_group(self, zones: Sequence[TextZone]) -> TextZone:
        """Merge the fragments of one paragraph into a single zone.

        Fragments are ordered by estimated line, then left to right.
        Fragments on the same line are joined with a space, lines with a
        newline.
        """
        if len(zones) == 1:
            return zones[0]

        top = min(zone.rect.y for zone in zones)
        line_height = mean(zone.rect.height for zone in zones) * self.line_bucket_factor

        def line_of(zone: TextZone) -> int:
            return int((zone.rect.y - top) / line_height)

        ordered = sorted(zones, key=lambda zone: (line_of(zone), zone.rect.x))

        parts = []
        previous_line = None
        for zone in ordered:
            text = zone.text.strip()
            current_line = line_of(zone)
            if parts and text:
                parts.append(" " if current_line == previous_line else "\n")
            if text:
                parts.append(text)
                previous_line = current_line

        return TextZone(
            rect=union_rect(zone.rect for zone in zones),
            text="".join(parts),
            is_inverted=any(zone.is_inverted for zone in zones),
        )

    def group_paragraphs(self, zones: Sequence[TextZone]) -> list[TextZone]:
        """Cluster and merge text fragments, keeping member statistics.

        Returns:
            One merged zone per paragraph, in cluster order.
        """
        return [p.element for p in self._paragraphs(zones)]

    def _paragraphs(self, zones: Sequence[TextZone]) -> list[_Placed]:
        groups = self.cluster([zone.rect for zone in zones])
        placed = []
        for group in groups:
            members = [zones[i] for i in group]
            placed.append(
                _Placed(
                    element=self.merge_group(members),
                    mean_y=mean(zone.rect.y for zone in members),
                    line_height=mean(zone.rect.height for zone in members),
                )
            )
        logger.debug("Grouped %d text fragments into %d paragraphs", len(zones), len(groups))
        return placed

    def order(self, placed: Sequence[_Placed]) -> list[Union[TextZone, ImageZone]]:
        """Sort elements into reading order.

        Elements are taken by mean top edge; each starts a new line unless
        it sits within the tolerance of the element that opened the
        current line. Lines run top to bottom, elements in a line left to
        right.
        """
        by_y = sorted(placed, key=lambda p: (p.mean_y, p.x))

        lines: list[list[_Placed]] = []
        anchor: Optional[_Placed] = None
        for item in by_y:
            if anchor is not None and (
                item.mean_y - anchor.mean_y <= anchor.line_height * self.reading_line_factor
            ):
                lines[-1].append(item)
            else:
                lines.append([item])
                anchor = item

        ordered = []
        for line in lines:
            ordered.extend(p.element for p in sorted(line, key=lambda p: (p.x, p.mean_y)))
        return ordered

    def organize(
        self,
        text_zones: Sequence[TextZone],
        image_zones: Sequence[ImageZone] = (),
    ) -> list[Union[TextZone, ImageZone]]:
        """Group text into paragraphs and order all elements for reading.

        Args:
            text_zones: Raw text fragments from zone detection.
            image_zones: Image zones to place among the paragraphs.

        Returns:
            Elements in reading order.
        """
        placed = self._paragraphs(list(text_zones))
        placed.extend(
            _Placed(element=zone, mean_y=float(zone.rect.y), line_height=float(zone.rect.height))
            for zone in image_zones
        )
        return self.order(placed)
