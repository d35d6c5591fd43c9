"""Tests for image loading."""

import io

import numpy as np
import pytest
from PIL import Image

from docscan.errors import ImageLoadError
from docscan.pipeline.stage_load import decode_image, load_image, scale_to_max_dimension


def png_bytes(width, height, color=(255, 0, 0)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class TestDecodeImage:
    """Tests for decoding encoded bytes."""

    def test_decodes_to_bgr(self):
        image = decode_image(png_bytes(20, 10, color=(255, 0, 0)))

        assert image.shape == (10, 20, 3)
        assert image.dtype == np.uint8
        # Red in RGB is the last channel in BGR
        assert image[0, 0].tolist() == [0, 0, 255]

    def test_exif_rotation_applied(self):
        """An EXIF orientation of 6 (rotate 90 CW) swaps width and height."""
        exif = Image.Exif()
        exif[0x0112] = 6
        buffer = io.BytesIO()
        Image.new("RGB", (40, 20), (0, 0, 0)).save(buffer, format="JPEG", exif=exif)

        image = decode_image(buffer.getvalue())
        assert image.shape[:2] == (40, 20)

    def test_garbage_raises(self):
        with pytest.raises(ImageLoadError):
            decode_image(b"not an image")


class TestLoadImage:
    """Tests for loading from disk."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImageLoadError):
            load_image(tmp_path / "missing.jpg")

    def test_load(self, tmp_path):
        path = tmp_path / "page.png"
        path.write_bytes(png_bytes(30, 15))
        assert load_image(path).shape == (15, 30, 3)


class TestScale:
    """Tests for downscaling."""

    def test_small_image_untouched(self):
        image = np.zeros((100, 50, 3), dtype=np.uint8)
        assert scale_to_max_dimension(image, 1080) is image

    def test_downscale_keeps_aspect(self):
        image = np.zeros((2160, 1440, 3), dtype=np.uint8)
        scaled = scale_to_max_dimension(image, 1080)
        assert scaled.shape[:2] == (1080, 720)

    def test_default_limit(self):
        image = np.zeros((100, 3000, 3), dtype=np.uint8)
        assert max(scale_to_max_dimension(image).shape[:2]) == 1080
