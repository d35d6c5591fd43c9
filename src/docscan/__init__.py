"""docscan - reconstruct photographed document pages as digital documents."""

__version__ = "0.1.0"
