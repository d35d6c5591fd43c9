"""End-to-end tests for the pipeline runner."""

from unittest.mock import MagicMock

import cv2
import fitz
import numpy as np
import pytest

from conftest import FakeTextDetector
from docscan.errors import ImageLoadError, PipelineError
from docscan.models import ImageZone, InMemoryImage, Rect, TextZone
from docscan.pipeline import DocumentPipeline, DocumentRenderer, PipelineResult
from docscan.pipeline.runner import crop_payloads, stage
from docscan.pipeline.stage_render import ImagePlacement, TextRun


def boxes_overlap(a, b):
    return a.x < b.x + b.width and b.x < a.x + a.width and a.y < b.y + b.height and b.y < a.y + a.height


@pytest.fixture
def pipeline(page_blocks):
    return DocumentPipeline(
        text_detector=FakeTextDetector(page_blocks, page_shape=(800, 600)),
        correct_perspective=False,
        enhance=False,
    )


class TestStage:
    """Tests for stage error wrapping."""

    def test_wraps_unexpected_errors(self):
        with pytest.raises(PipelineError) as excinfo:
            with stage("zones"):
                raise RuntimeError("boom")

        assert excinfo.value.stage == "zones"
        assert "[zones]" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_element_index(self):
        with pytest.raises(PipelineError) as excinfo:
            with stage("payload", element_index=3):
                raise ValueError("bad crop")

        assert excinfo.value.element_index == 3
        assert "[payload #3]" in str(excinfo.value)

    def test_own_errors_pass_through(self):
        with pytest.raises(ImageLoadError):
            with stage("scale"):
                raise ImageLoadError("unreadable")


class TestCropPayloads:
    """Tests for image payload crops."""

    def test_crops(self, photo_page):
        [zone] = crop_payloads(photo_page, [Rect.from_xywh(350, 450, 200, 150)])

        assert isinstance(zone.payload, InMemoryImage)
        assert zone.payload.size == (200, 150)
        np.testing.assert_array_equal(zone.payload.pixels, photo_page[450:600, 350:550])

    def test_crop_is_a_copy(self, photo_page):
        [zone] = crop_payloads(photo_page, [Rect.from_xywh(0, 0, 10, 10)])
        zone.payload.pixels[:] = 0
        assert photo_page[0, 0].tolist() == [255, 255, 255]

    def test_out_of_page_rect(self, photo_page):
        with pytest.raises(PipelineError) as excinfo:
            crop_payloads(photo_page, [Rect.from_xywh(0, 0, 10, 10), Rect.from_xywh(900, 900, 10, 10)])
        assert excinfo.value.element_index == 1


class TestAnalyze:
    """Tests for single-image analysis."""

    def test_synthetic_page(self, pipeline, photo_page):
        """Title, a paragraph in three fragments and a photo."""
        document = pipeline.analyze(photo_page)

        kinds = [type(e) for e in document.elements]
        assert kinds == [TextZone, TextZone, ImageZone]
        title, paragraph, photo = document.elements
        assert title.text == "Quarterly Report"
        assert paragraph.text == "The quick brown fox jumps over\nthe lazy dog."
        assert paragraph.rect == Rect.from_xywh(50, 150, 390, 45)
        assert photo.rect == Rect.from_xywh(350, 450, 200, 150)
        assert isinstance(photo.payload, InMemoryImage)
        assert (document.image_width, document.image_height) == (600, 800)
        assert document.source_image is not None

    def test_top_to_bottom(self, pipeline, photo_page):
        document = pipeline.analyze(photo_page)
        tops = [e.rect.y for e in document.elements]
        assert tops == sorted(tops)

    def test_empty_image(self, pipeline):
        with pytest.raises(ImageLoadError):
            pipeline.analyze(np.zeros((0, 0, 3), dtype=np.uint8))

    def test_blank_page(self, white_page):
        pipeline = DocumentPipeline(text_detector=FakeTextDetector(), correct_perspective=False)
        document = pipeline.analyze(white_page)
        assert document.elements == []

    def test_detector_failure_names_stage(self, photo_page):
        detector = MagicMock()
        detector.detect.side_effect = RuntimeError("engine down")
        pipeline = DocumentPipeline(text_detector=detector, correct_perspective=False, enhance=False)

        with pytest.raises(PipelineError) as excinfo:
            pipeline.analyze(photo_page)
        assert excinfo.value.stage == "zones"

    def test_perspective_used_when_enabled(self, photo_page, page_blocks):
        corrector = MagicMock()
        corrector.correct.side_effect = lambda image: image
        pipeline = DocumentPipeline(
            text_detector=FakeTextDetector(page_blocks),
            corrector=corrector,
            correct_perspective=True,
            enhance=False,
        )

        pipeline.analyze(photo_page)
        corrector.correct.assert_called_once()


class TestProcess:
    """Tests for the full photo-to-page run."""

    def test_end_to_end(self, pipeline, photo_page, tmp_path):
        image_path = tmp_path / "page.png"
        cv2.imwrite(str(image_path), photo_page)

        result = pipeline.process(image_path, tmp_path / "page.pdf")

        assert isinstance(result, PipelineResult)
        assert result.output_path == tmp_path / "page.pdf"
        assert len(result.document.text_zones) == 2
        assert len(result.document.image_zones) == 1
        assert len(result.grid.cells) == 3

        with fitz.open(str(result.output_path)) as pdf:
            content = pdf[0].get_text()
            assert "Quarterly Report" in content
            assert len(pdf[0].get_images()) == 1

    def test_render_positions(self, pipeline, photo_page):
        """All three elements land in separate page boxes, in page order."""
        document = pipeline.analyze(photo_page)
        instructions = DocumentRenderer().layout(document)

        assert [type(i) for i in instructions] == [TextRun, TextRun, ImagePlacement]
        for i, a in enumerate(instructions):
            for b in instructions[i + 1:]:
                assert not boxes_overlap(a, b)
        # Bottom-left origin: earlier elements sit higher on the page
        tops = [i.y + i.height for i in instructions]
        assert tops == sorted(tops, reverse=True)

    def test_without_output(self, pipeline, photo_page, tmp_path):
        image_path = tmp_path / "page.png"
        cv2.imwrite(str(image_path), photo_page)

        result = pipeline.process(image_path)
        assert result.output_path is None

    def test_missing_image(self, pipeline, tmp_path):
        with pytest.raises(ImageLoadError):
            pipeline.process(tmp_path / "missing.jpg", tmp_path / "out.pdf")

    def test_large_photo_downscaled(self, tmp_path):
        image_path = tmp_path / "big.png"
        cv2.imwrite(str(image_path), np.full((2000, 1500, 3), 255, dtype=np.uint8))
        pipeline = DocumentPipeline(text_detector=FakeTextDetector(), correct_perspective=False)

        result = pipeline.process(image_path)

        assert (result.document.image_width, result.document.image_height) == (810, 1080)
