"""
JPEG encoding and the quality binary search.

The search assumes encoded size never shrinks as quality rises. Pillow's
libjpeg encoder behaves that way for ordinary photographs and renders;
if an image breaks the assumption the search can miss a fitting quality
that a linear scan would have found, but whatever it returns still fits.
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image

from .errors import EncodingFailure

logger = logging.getLogger(__name__)

# 0 - 4:4:4 , 1 - 4:2:2 , 2 - 4:2:0
DEFAULT_SUBSAMPLING = 2


def encode_jpeg(
    img: Image.Image,
    quality: int,
    subsampling: int = DEFAULT_SUBSAMPLING,
    optimize: bool = False,
    name: str = "<image>",
) -> bytes:
    """Encode *img* (RGB or L) as baseline JPEG at *quality*."""
    buf = io.BytesIO()
    try:
        img.save(
            buf,
            format="JPEG",
            quality=quality,
            subsampling=subsampling,
            optimize=optimize,
        )
    except (OSError, ValueError) as e:
        raise EncodingFailure(name, f"JPEG encoder failed at q={quality}: {e}") from e
    return buf.getvalue()


def search_quality(
    img: Image.Image,
    upper_bytes: int,
    q_min: int,
    q_max: int,
    optimize: bool = False,
    name: str = "<image>",
) -> Optional[Tuple[bytes, int]]:
    """
    Binary-search JPEG quality in ``[q_min, q_max]`` so the output is <= *upper_bytes*.

    Returns ``(payload, quality)`` for the highest quality that fits, or
    ``None`` when even *q_min* overflows.
    """
    lo, hi = q_min, q_max
    best = None

    while lo <= hi:
        mid = (lo + hi) // 2
        data = encode_jpeg(img, mid, optimize=optimize, name=name)

        if len(data) <= upper_bytes:
            best = (data, mid)
            lo = mid + 1          # try a higher (better) quality
        else:
            hi = mid - 1          # need stronger compression

    if best is None:
        logger.debug(
            "%s: %dx%d does not fit %d bytes even at q=%d",
            name, img.width, img.height, upper_bytes, q_min,
        )
    return best
