"""Layout Grid Stage - Turn positioned elements into a row/column grid.

Every element edge becomes a grid track; each element then occupies the
cell span between the tracks of its edges. Tracks no element spans are
removed by ``optimize_grid``.
"""

import logging
from bisect import bisect_left
from typing import Optional, Sequence

from docscan.config import settings
from docscan.models import AnalyzedDocument, DocumentGrid, GridCell, Rect

logger = logging.getLogger(__name__)


def merge_close_lines(lines: Sequence[float], threshold: float) -> list[float]:
    """Merge sorted track coordinates closer than ``threshold``.

    Consecutive tracks within the threshold of the running track are
    replaced by their pairwise average.

    Args:
        lines: Sorted track coordinates.
        threshold: Largest distance at which two tracks merge.

    Returns:
        Strictly increasing merged coordinates.
    """
    if not lines:
        return []

    result = []
    current = lines[0]
    for line in lines[1:]:
        if line - current <= threshold:
            current = (current + line) / 2
        else:
            result.append(current)
            current = line
    result.append(current)
    return result


def first_track_at_or_after(tracks: Sequence[float], value: float) -> int:
    """Index of the first track ``>= value``, or -1 if there is none."""
    index = bisect_left(tracks, value)
    return index if index < len(tracks) else -1


class LayoutGridAnalyzer:
    """Builds and optimizes the grid model of a document."""

    def __init__(
        self,
        tolerance: Optional[float] = None,
        merge_threshold: Optional[float] = None,
    ):
        """Initialize the analyzer.

        Args:
            tolerance: Distance in pixels within which an edge snaps to a
                track, absorbing detection jitter.
            merge_threshold: Tracks closer than this are merged before
                cells are placed. 0 disables merging.
        """
        self.tolerance = tolerance if tolerance is not None else settings.grid_tolerance
        self.merge_threshold = (
            merge_threshold if merge_threshold is not None else settings.grid_merge_threshold
        )

    def analyze_layout(self, document: AnalyzedDocument) -> DocumentGrid:
        """Build the grid for a document.

        Args:
            document: Analyzed document; element order is preserved in the
                cell list.

        Returns:
            DocumentGrid with one cell per locatable element.
        """
        horizontal = set()
        vertical = set()
        for element in document.elements:
            rect = element.rect
            horizontal.update((float(rect.y), float(rect.y2)))
            vertical.update((float(rect.x), float(rect.x2)))

        rows = sorted(horizontal)
        columns = sorted(vertical)
        if self.merge_threshold > 0:
            rows = merge_close_lines(rows, self.merge_threshold)
            columns = merge_close_lines(columns, self.merge_threshold)

        cells = []
        for index, element in enumerate(document.elements):
            span = self._locate(element.rect, rows, columns)
            if span is None:
                logger.warning("Element %d at %s does not fit the grid", index, element.rect.to_tuple())
                continue
            row_start, row_end, col_start, col_end = span
            cells.append(
                GridCell(
                    row_start=row_start,
                    row_end=row_end,
                    col_start=col_start,
                    col_end=col_end,
                    element=element,
                )
            )

        return DocumentGrid(rows=rows, columns=columns, cells=cells)

    def _locate(
        self,
        rect: Rect,
        rows: Sequence[float],
        columns: Sequence[float],
    ) -> Optional[tuple[int, int, int, int]]:
        row_start = first_track_at_or_after(rows, rect.y - self.tolerance)
        row_end = first_track_at_or_after(rows, rect.y2 - self.tolerance) + 1
        col_start = first_track_at_or_after(columns, rect.x - self.tolerance)
        col_end = first_track_at_or_after(columns, rect.x2 - self.tolerance) + 1

        if row_start == -1 or row_end == 0 or col_start == -1 or col_end == 0:
            return None
        if row_start >= row_end or col_start >= col_end:
            return None
        return row_start, row_end, col_start, col_end

    def optimize_grid(self, grid: DocumentGrid) -> DocumentGrid:
        """Drop tracks no cell spans and reindex the cells.

        Running this on an already optimized grid returns an equal grid.

        Args:
            grid: Grid to compact.

        Returns:
            New compacted grid.
        """
        used_rows = set()
        used_cols = set()
        for cell in grid.cells:
            used_rows.update(range(cell.row_start, cell.row_end))
            used_cols.update(range(cell.col_start, cell.col_end))

        row_map = {old: new for new, old in enumerate(i for i in range(len(grid.rows)) if i in used_rows)}
        col_map = {old: new for new, old in enumerate(i for i in range(len(grid.columns)) if i in used_cols)}

        cells = [
            GridCell(
                row_start=row_map[cell.row_start],
                row_end=row_map[cell.row_end - 1] + 1,
                col_start=col_map[cell.col_start],
                col_end=col_map[cell.col_end - 1] + 1,
                element=cell.element,
            )
            for cell in grid.cells
        ]

        return DocumentGrid(
            rows=[track for i, track in enumerate(grid.rows) if i in used_rows],
            columns=[track for i, track in enumerate(grid.columns) if i in used_cols],
            cells=cells,
        )

    def grid_to_document(
        self,
        grid: DocumentGrid,
        image_width: int,
        image_height: int,
    ) -> AnalyzedDocument:
        """Rebuild a document whose element rects snap to the grid tracks.

        Args:
            grid: Source grid.
            image_width: Pixel width the grid coordinates refer to.
            image_height: Pixel height the grid coordinates refer to.

        Returns:
            AnalyzedDocument with elements in cell order. Cells whose
            snapped extent collapses to zero keep their original rect.
        """
        elements = []
        for cell in grid.cells:
            x1 = int(grid.columns[cell.col_start])
            y1 = int(grid.rows[cell.row_start])
            x2 = int(grid.columns[cell.col_end - 1])
            y2 = int(grid.rows[cell.row_end - 1])

            element = cell.element
            if x2 > x1 and y2 > y1:
                element = element.model_copy(update={"rect": Rect.from_xyxy(x1, y1, x2, y2)})
            elements.append(element)

        return AnalyzedDocument(
            elements=elements,
            image_width=image_width,
            image_height=image_height,
        )
