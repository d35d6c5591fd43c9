"""Tests for document persistence."""

import json
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

from conftest import make_photo
from docscan.errors import PayloadWriteError
from docscan.models import AnalyzedDocument, ImageFile, ImageZone, InMemoryImage, Rect, TextZone
from docscan.storage import DOCUMENT_FILENAME, compute_bytes_hash, load_document, save_document, write_payload


@pytest.fixture
def document():
    pixels = make_photo(150, 200)
    return AnalyzedDocument(
        elements=[
            TextZone(rect=Rect.from_xywh(50, 40, 400, 40), text="Quarterly Report"),
            TextZone(rect=Rect.from_xywh(50, 150, 390, 45), text="The quick brown\nfox", is_inverted=True),
            ImageZone(rect=Rect.from_xywh(350, 450, 200, 150), payload=InMemoryImage(pixels=pixels)),
        ],
        image_width=600,
        image_height=800,
        source_image=np.zeros((800, 600, 3), dtype=np.uint8),
    )


class TestComputeBytesHash:
    """Tests for payload hashing."""

    def test_hash_consistency(self):
        assert compute_bytes_hash(b"abc") == compute_bytes_hash(b"abc")
        assert len(compute_bytes_hash(b"abc")) == 64  # SHA-256 hex length

    def test_hash_different_content(self):
        assert compute_bytes_hash(b"a") != compute_bytes_hash(b"b")


class TestWritePayload:
    """Tests for writing a single payload."""

    def test_writes_png(self, tmp_path):
        payload = InMemoryImage(pixels=make_photo(10, 10))

        ref = write_payload(payload, tmp_path)

        assert ref.path.endswith(".png")
        assert len(Path(ref.path).stem) == 16
        assert (tmp_path / ref.path).read_bytes().startswith(b"\x89PNG")

    def test_identical_pixels_share_a_file(self, tmp_path):
        pixels = make_photo(10, 10)
        first = write_payload(InMemoryImage(pixels=pixels), tmp_path)
        second = write_payload(InMemoryImage(pixels=pixels.copy()), tmp_path)

        assert first == second
        assert len(list(tmp_path.glob("*.png"))) == 1

    def test_file_payload_passes_through(self, tmp_path):
        ref = ImageFile(path="/somewhere/else.png")
        assert write_payload(ref, tmp_path) is ref

    @patch("docscan.storage.serialization.cv2.imencode", return_value=(False, None))
    def test_encode_failure(self, mock_encode, tmp_path):
        with pytest.raises(PayloadWriteError):
            write_payload(InMemoryImage(pixels=make_photo(10, 10)), tmp_path)


class TestSaveLoad:
    """Tests for the document round trip."""

    def test_round_trip(self, document, tmp_path):
        path = save_document(document, tmp_path / "model")
        loaded = load_document(path)

        assert path.name == DOCUMENT_FILENAME
        assert [e.rect for e in loaded.elements] == [e.rect for e in document.elements]
        assert [e.kind for e in loaded.elements] == ["text", "text", "image"]
        assert loaded.elements[1].text == "The quick brown\nfox"
        assert loaded.elements[1].is_inverted
        assert (loaded.image_width, loaded.image_height) == (600, 800)
        assert loaded.source_image is None

        payload = loaded.elements[2].payload
        assert isinstance(payload, ImageFile)
        assert Path(payload.path).is_absolute()
        assert Path(payload.path).is_file()

    def test_original_untouched(self, document, tmp_path):
        save_document(document, tmp_path)
        assert isinstance(document.elements[2].payload, InMemoryImage)

    def test_json_has_no_pixels(self, document, tmp_path):
        path = save_document(document, tmp_path)
        data = json.loads(path.read_text())

        assert "source_image" not in data
        assert data["elements"][2]["payload"]["kind"] == "file"

    def test_load_from_directory(self, document, tmp_path):
        save_document(document, tmp_path)
        assert len(load_document(tmp_path).elements) == 3

    def test_write_failure_keeps_element(self, document, tmp_path):
        with patch("docscan.storage.serialization.cv2.imencode", return_value=(False, None)):
            path = save_document(document, tmp_path)

        loaded = load_document(path)
        assert len(loaded.elements) == 3
        assert isinstance(loaded.elements[2], ImageZone)
        assert loaded.elements[2].payload is None
        assert loaded.elements[0].text == "Quarterly Report"

    def test_disk_failure_keeps_element(self, document, tmp_path):
        with patch("pathlib.Path.write_bytes", side_effect=OSError("disk full")):
            path = save_document(document, tmp_path)

        assert load_document(path).elements[2].payload is None

    def test_missing_model(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_document(tmp_path / "nothing.json")
