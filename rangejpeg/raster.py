"""Turn raw upload bytes into Pillow images: direct decode for rasters, MuPDF for PDFs."""

import io
import logging
from dataclasses import dataclass
from typing import List, Optional

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from .errors import DecodeFailure, UnsupportedFormat
from .formats import UNSUPPORTED_IMAGE_EXTS, ext_lower

logger = logging.getLogger(__name__)


@dataclass
class RenderedPage:
    """One PDF page: either an image or the reason it could not be rendered."""
    index: int                      # 0-based
    image: Optional[Image.Image] = None
    error: Optional[str] = None

    @property
    def number(self) -> int:
        return self.index + 1


def decode_image(name: str, raw: bytes) -> Image.Image:
    """
    Decode *raw* into a fully loaded image (first frame for animations).

    Raises ``UnsupportedFormat`` for HEIC/HEIF and ``DecodeFailure`` for
    anything Pillow cannot read.
    """
    if ext_lower(name) in UNSUPPORTED_IMAGE_EXTS:
        raise UnsupportedFormat(name, "needs a HEIC/HEIF decoder (not available)")
    if not raw:
        raise DecodeFailure(name, "empty file")
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError,
            Image.DecompressionBombError) as e:
        raise DecodeFailure(name, f"cannot decode image: {e}") from e
    if img.width < 1 or img.height < 1:
        raise DecodeFailure(name, "image has zero size")
    return img


def render_pdf_pages(raw: bytes, dpi: int, name: str = "<pdf>") -> List[RenderedPage]:
    """
    Rasterize every page of a PDF at *dpi*.

    Failing to open the document raises ``DecodeFailure``; a page that
    fails to render is returned with ``error`` set and the rest carry on.
    """
    if not raw:
        raise DecodeFailure(name, "empty file")
    try:
        doc = fitz.open(stream=raw, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise DecodeFailure(name, f"cannot open PDF: {e}") from e

    pages = []
    with doc:
        if doc.page_count == 0:
            raise DecodeFailure(name, "PDF has no pages")
        for index in range(doc.page_count):
            try:
                pix = doc[index].get_pixmap(dpi=dpi, alpha=False)
                img = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
            except (RuntimeError, ValueError) as e:
                logger.warning("%s: page %d failed to render: %s", name, index + 1, e)
                pages.append(RenderedPage(index, error=str(e)))
                continue
            pages.append(RenderedPage(index, image=img))
    return pages
