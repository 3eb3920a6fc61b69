"""
Geometry helpers: flatten, resize-by-scale, minimum shortest side.

Every function returns a new ``PIL.Image.Image`` (or, for
``ensure_min_side`` on an image that is already large enough, the very
same object); the input is never modified in place.
"""

from typing import Tuple

from PIL import Image, ImageFilter

RESAMPLE = Image.Resampling.LANCZOS


def flatten_onto_background(
    img: Image.Image,
    background: Tuple[int, int, int] = (255, 255, 255),
) -> Image.Image:
    """Composite any transparency onto an opaque *background*; result is RGB."""
    if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
        rgba = img.convert("RGBA")
        flat = Image.new("RGB", rgba.size, background)
        flat.paste(rgba, mask=rgba.getchannel("A"))
        return flat
    return img.convert("RGB")


def scaled_size(size: Tuple[int, int], scale: float) -> Tuple[int, int]:
    w, h = size
    return max(1, int(round(w * scale))), max(1, int(round(h * scale)))


def sharpen(img: Image.Image, amount: float) -> Image.Image:
    """Unsharp mask with a gaussian radius of *amount*; no-op for ``amount <= 0``."""
    if amount <= 0:
        return img
    return img.filter(ImageFilter.UnsharpMask(radius=amount, percent=100, threshold=0))


def resize_to_scale(
    img: Image.Image,
    scale: float,
    do_sharpen: bool = False,
    amount: float = 0.0,
) -> Image.Image:
    """
    Resample *img* to ``round(size * scale)`` (each side at least 1 px).

    Lanczos is used in both directions. When *do_sharpen* is set and
    *amount* is positive, a light unsharp pass follows the resample.
    """
    new_size = scaled_size(img.size, scale)
    if new_size == img.size:
        out = img.copy()
    else:
        out = img.resize(new_size, RESAMPLE)
    if do_sharpen and amount > 0:
        out = sharpen(out, amount)
    return out


def ensure_min_side(
    img: Image.Image,
    min_side: int,
    do_sharpen: bool = False,
    amount: float = 0.0,
) -> Image.Image:
    """
    Grow *img* so its shortest side is at least *min_side*.

    Never shrinks. Returns *img* itself when both sides already qualify,
    so calling it twice gives the same geometry as calling it once.
    """
    w, h = img.size
    if w >= min_side and h >= min_side:
        return img
    scale = max(1.0, min_side / min(w, h))
    return resize_to_scale(img, scale, do_sharpen, amount)
