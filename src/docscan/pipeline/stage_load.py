"""Image Loading Stage - Decode a page photograph into a pixel buffer.

Camera photos usually carry their rotation in EXIF metadata rather than in
the pixel data, so decoding goes through Pillow which can apply it.
The result is a BGR numpy array, the layout every later stage expects.
"""

import io
import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from docscan.config import settings
from docscan.errors import ImageLoadError

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (JPEG, PNG, ...) to a BGR array.

    Args:
        data: Encoded image file contents.

    Returns:
        BGR image as a uint8 numpy array.

    Raises:
        ImageLoadError: If the bytes are not a decodable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            rgb = np.array(img.convert("RGB"))
    except (UnidentifiedImageError, OSError) as e:
        raise ImageLoadError(f"Cannot decode image: {e}") from e

    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def load_image(path: Union[str, Path]) -> np.ndarray:
    """Load a page photograph from disk.

    Args:
        path: Path to the image file.

    Returns:
        BGR image as a uint8 numpy array.

    Raises:
        ImageLoadError: If the file is missing or undecodable.
    """
    path = Path(path)
    if not path.is_file():
        raise ImageLoadError(f"Image not found: {path}")

    image = decode_image(path.read_bytes())
    logger.debug("Loaded %s: %dx%d", path.name, image.shape[1], image.shape[0])
    return image


def scale_to_max_dimension(image: np.ndarray, max_dimension: int = None) -> np.ndarray:
    """Downscale an image so its longest side is at most ``max_dimension``.

    Aspect ratio is preserved. Images already within the limit are
    returned unchanged.
    """
    max_dimension = max_dimension or settings.max_image_dimension
    height, width = image.shape[:2]

    if width <= max_dimension and height <= max_dimension:
        return image

    scale = max_dimension / max(width, height)
    new_width = max(1, round(width * scale))
    new_height = max(1, round(height * scale))

    logger.debug("Resizing image: %dx%d -> %dx%d", width, height, new_width, new_height)
    return cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)
