"""Exception types raised by the docscan pipeline."""

from typing import Optional


class DocScanError(Exception):
    """Base class for all pipeline errors."""


class ImageLoadError(DocScanError):
    """The source photograph is missing or cannot be decoded."""


class PipelineError(DocScanError):
    """A stage failed in a way the pipeline cannot degrade around.

    Carries the stage name and, where relevant, the index of the element
    being processed so callers can build a user-facing message.
    """

    def __init__(self, stage: str, message: str, element_index: Optional[int] = None):
        self.stage = stage
        self.element_index = element_index
        location = f"[{stage}]" if element_index is None else f"[{stage} #{element_index}]"
        super().__init__(f"{location} {message}")


class PayloadWriteError(DocScanError):
    """An image payload could not be written to its temporary path."""
