"""Storage layer for the docscan pipeline.

Saves analyzed documents as JSON with their image payloads as PNG files.
"""

from .serialization import (
    DOCUMENT_FILENAME,
    compute_bytes_hash,
    load_document,
    save_document,
    write_payload,
)

__all__ = [
    "DOCUMENT_FILENAME",
    "compute_bytes_hash",
    "load_document",
    "save_document",
    "write_payload",
]
