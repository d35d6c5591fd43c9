"""Grid layout IR models."""

from pydantic import Field, model_validator

from .base import BaseIRModel
from .element import DocumentElement


class GridCell(BaseIRModel):
    """Placement of one element on the document grid.

    Spans are half-open index ranges into the grid's track lists:
    rows ``[row_start, row_end)`` and columns ``[col_start, col_end)``.
    """

    row_start: int = Field(..., ge=0)
    row_end: int = Field(..., ge=1)
    col_start: int = Field(..., ge=0)
    col_end: int = Field(..., ge=1)
    element: DocumentElement

    @model_validator(mode="after")
    def check_span(self) -> "GridCell":
        if self.row_start >= self.row_end:
            raise ValueError(f"Empty row span: [{self.row_start}, {self.row_end})")
        if self.col_start >= self.col_end:
            raise ValueError(f"Empty column span: [{self.col_start}, {self.col_end})")
        return self


class DocumentGrid(BaseIRModel):
    """Row/column track model of a page layout."""

    rows: list[float] = Field(default_factory=list, description="Y coordinates of grid tracks")
    columns: list[float] = Field(default_factory=list, description="X coordinates of grid tracks")
    cells: list[GridCell] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_tracks(self) -> "DocumentGrid":
        for name, tracks in (("rows", self.rows), ("columns", self.columns)):
            if any(b <= a for a, b in zip(tracks, tracks[1:])):
                raise ValueError(f"Grid {name} must be strictly increasing")
        for cell in self.cells:
            if cell.row_end > len(self.rows) or cell.col_end > len(self.columns):
                raise ValueError(
                    f"Cell span rows [{cell.row_start}, {cell.row_end}) "
                    f"cols [{cell.col_start}, {cell.col_end}) exceeds grid "
                    f"{len(self.rows)}x{len(self.columns)}"
                )
        return self

    @property
    def is_empty(self) -> bool:
        return not self.rows or not self.columns
