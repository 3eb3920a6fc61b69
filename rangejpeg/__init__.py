"""Batch convert images, PDFs and ZIPs of either into JPEGs inside a target byte range."""

from .compress import CompressionResult, Stage, compress_into_range
from .config import CompressionConfig

__version__ = "0.1.0"

__all__ = ["CompressionConfig", "CompressionResult", "Stage", "compress_into_range"]
