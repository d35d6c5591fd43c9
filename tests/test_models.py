"""Tests for the IR models."""

import numpy as np
import pytest
from pydantic import ValidationError

from docscan.models import (
    AnalyzedDocument,
    DocumentGrid,
    ElementType,
    GridCell,
    ImageFile,
    ImageZone,
    InMemoryImage,
    Rect,
    TextZone,
)


class TestRect:
    """Tests for the rectangle model."""

    def test_edges(self):
        rect = Rect(x=10, y=20, width=30, height=40)
        assert rect.x2 == 40
        assert rect.y2 == 60
        assert rect.area == 1200
        assert rect.center == (25.0, 40.0)

    @pytest.mark.parametrize("width,height", [(0, 10), (10, 0), (-5, 10)])
    def test_rejects_empty(self, width, height):
        with pytest.raises(ValidationError):
            Rect(x=0, y=0, width=width, height=height)

    def test_frozen(self):
        rect = Rect(x=0, y=0, width=1, height=1)
        with pytest.raises(ValidationError):
            rect.x = 5

    def test_from_xyxy(self):
        assert Rect.from_xyxy(5, 5, 15, 25).to_tuple() == (5, 5, 10, 20)

    def test_clip(self):
        assert Rect.from_xywh(-10, 90, 50, 50).clip(100, 100) == Rect.from_xywh(0, 90, 40, 10)

    def test_clip_outside(self):
        assert Rect.from_xywh(200, 200, 10, 10).clip(100, 100) is None


class TestElements:
    """Tests for the tagged element union."""

    def test_types(self):
        rect = Rect.from_xywh(0, 0, 10, 10)
        assert TextZone(rect=rect).type == ElementType.TEXT
        assert ImageZone(rect=rect).type == ElementType.IMAGE

    def test_in_memory_size(self):
        payload = InMemoryImage(pixels=np.zeros((30, 40, 3), dtype=np.uint8))
        assert payload.size == (40, 30)

    def test_document_parses_by_kind(self):
        """Elements are rebuilt as the right variant from their kind tag."""
        data = {
            "image_width": 100,
            "image_height": 200,
            "elements": [
                {"kind": "text", "rect": {"x": 0, "y": 0, "width": 10, "height": 10}, "text": "hi"},
                {
                    "kind": "image",
                    "rect": {"x": 0, "y": 20, "width": 10, "height": 10},
                    "payload": {"kind": "file", "path": "a.png"},
                },
            ],
        }
        document = AnalyzedDocument.model_validate(data)

        assert isinstance(document.elements[0], TextZone)
        assert isinstance(document.elements[1], ImageZone)
        assert isinstance(document.elements[1].payload, ImageFile)
        assert document.text == "hi"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            AnalyzedDocument.model_validate(
                {
                    "image_width": 10,
                    "image_height": 10,
                    "elements": [{"kind": "table", "rect": {"x": 0, "y": 0, "width": 1, "height": 1}}],
                }
            )

    def test_source_image_not_serialized(self):
        document = AnalyzedDocument(
            image_width=10,
            image_height=10,
            source_image=np.zeros((10, 10, 3), dtype=np.uint8),
        )
        assert "source_image" not in document.model_dump_json()


class TestGrid:
    """Tests for grid model validation."""

    def element(self):
        return TextZone(rect=Rect.from_xywh(0, 0, 10, 10))

    def test_empty_span_rejected(self):
        with pytest.raises(ValidationError):
            GridCell(row_start=1, row_end=1, col_start=0, col_end=1, element=self.element())

    def test_tracks_must_increase(self):
        with pytest.raises(ValidationError):
            DocumentGrid(rows=[0.0, 10.0, 10.0], columns=[0.0, 5.0])

    def test_cell_within_tracks(self):
        cell = GridCell(row_start=0, row_end=3, col_start=0, col_end=1, element=self.element())
        with pytest.raises(ValidationError):
            DocumentGrid(rows=[0.0, 10.0], columns=[0.0, 10.0], cells=[cell])

    def test_is_empty(self):
        assert DocumentGrid().is_empty
        assert not DocumentGrid(rows=[0.0], columns=[0.0]).is_empty
