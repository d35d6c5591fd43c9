"""Document persistence - JSON model plus PNG payload files.

In-memory pixel payloads cannot cross a process boundary, so saving a
document writes every image payload to a PNG named by the SHA-256 of its
encoded bytes and stores the file reference instead. Identical crops
share one file.
"""

import hashlib
import logging
from pathlib import Path
from typing import Union

import cv2

from docscan.errors import PayloadWriteError
from docscan.models import AnalyzedDocument, ImageFile, ImagePayload, ImageZone, InMemoryImage

logger = logging.getLogger(__name__)

DOCUMENT_FILENAME = "document.json"
HASH_PREFIX_LENGTH = 16


def compute_bytes_hash(data: bytes) -> str:
    """Compute SHA-256 hash of encoded payload bytes."""
    return hashlib.sha256(data).hexdigest()


def write_payload(payload: ImagePayload, directory: Path) -> ImageFile:
    """Persist an image payload as a PNG file.

    Args:
        payload: In-memory pixels or an existing file reference.
        directory: Directory receiving the PNG.

    Returns:
        File reference relative to ``directory``. File payloads are
        returned unchanged.

    Raises:
        PayloadWriteError: If the pixels cannot be encoded or written.
    """
    if not isinstance(payload, InMemoryImage):
        return payload

    ok, buffer = cv2.imencode(".png", payload.pixels)
    if not ok:
        raise PayloadWriteError("PNG encoding failed")

    data = buffer.tobytes()
    filename = f"{compute_bytes_hash(data)[:HASH_PREFIX_LENGTH]}.png"
    path = directory / filename
    try:
        if not path.exists():
            path.write_bytes(data)
    except OSError as e:
        raise PayloadWriteError(f"Cannot write {path}: {e}") from e

    return ImageFile(path=filename)


def save_document(document: AnalyzedDocument, directory: Union[str, Path]) -> Path:
    """Save a document model and its image payloads.

    A payload that cannot be written is dropped (set to None); its zone
    stays in the document.

    Args:
        document: Document to save.
        directory: Output directory, created if missing.

    Returns:
        Path of the written ``document.json``.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    elements = []
    for index, element in enumerate(document.elements):
        if isinstance(element, ImageZone) and element.payload is not None:
            try:
                payload = write_payload(element.payload, directory)
            except PayloadWriteError as e:
                logger.warning("Image %d payload not saved: %s", index, e)
                payload = None
            element = element.model_copy(update={"payload": payload})
        elements.append(element)

    persisted = document.model_copy(update={"elements": elements, "source_image": None})
    path = directory / DOCUMENT_FILENAME
    path.write_text(persisted.model_dump_json(indent=2), encoding="utf-8")

    logger.info("Saved %d elements to %s", len(elements), path)
    return path


def load_document(path: Union[str, Path]) -> AnalyzedDocument:
    """Load a document saved by ``save_document``.

    Args:
        path: The ``document.json`` file or the directory holding it.

    Returns:
        AnalyzedDocument whose file payloads carry absolute paths.

    Raises:
        FileNotFoundError: If no saved document exists at ``path``.
    """
    path = Path(path)
    if path.is_dir():
        path = path / DOCUMENT_FILENAME
    if not path.is_file():
        raise FileNotFoundError(f"Document model not found: {path}")

    document = AnalyzedDocument.model_validate_json(path.read_text(encoding="utf-8"))

    elements = []
    for element in document.elements:
        if isinstance(element, ImageZone) and isinstance(element.payload, ImageFile):
            payload_path = Path(element.payload.path)
            if not payload_path.is_absolute():
                payload_path = (path.parent / payload_path).resolve()
            element = element.model_copy(update={"payload": ImageFile(path=str(payload_path))})
        elements.append(element)

    return document.model_copy(update={"elements": elements})
