"""
Size-targeted JPEG encoding.

``compress_into_range`` looks for the largest JPEG that does not exceed the
configured upper bound, then tries to climb back over the lower bound by
enlarging the image when the result came out too small.

States::

    ORIGINAL --fit, >= lower--------------------------------> DONE
    ORIGINAL --fit, < lower---------------------------------> GROWING
    ORIGINAL --no fit--> SHRINKING --fit, >= lower----------> DONE
                                   --fit, < lower-----------> GROWING --> DONE
                                   --never fit--> FALLBACK -----------> DONE

Only FALLBACK may hand back a payload above the upper bound. GROWING is
best effort and may finish below the lower bound.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from .config import CompressionConfig
from .errors import DecodeFailure, EncodingFailure
from .geometry import ensure_min_side, flatten_onto_background, resize_to_scale
from .quality import encode_jpeg, search_quality

logger = logging.getLogger(__name__)

SHRINK_BIAS = 0.35
SCALE_EPSILON = 1e-3
GROW_FACTOR = 1.2
GROW_BACKOFF = 0.95


class Stage(enum.Enum):
    ORIGINAL = "original"
    SHRINKING = "shrinking"
    GROWING = "growing"
    FALLBACK = "fallback"
    DONE = "done"


@dataclass(frozen=True)
class CompressionResult:
    payload: bytes
    scale: float
    quality: int
    byte_length: int
    stage: Stage        # state that produced the adopted payload
    width: int
    height: int

    def describe(self, out_rel: str) -> str:
        return f"{out_rel} -> {self.byte_length} bytes scale={self.scale:.3f} q={self.quality}"


class _RangeSearch:
    """One run of the state machine over a single frame. Not reusable."""

    def __init__(self, img: Image.Image, cfg: CompressionConfig, name: str):
        self.cfg = cfg
        self.name = name
        self.optimize = not cfg.is_fast
        self.base = flatten_onto_background(img, cfg.background)
        self.best: Optional[CompressionResult] = None
        self.best_image: Optional[Image.Image] = None
        self._handlers = {
            Stage.ORIGINAL: self._original,
            Stage.SHRINKING: self._shrinking,
            Stage.GROWING: self._growing,
            Stage.FALLBACK: self._fallback,
        }

    def run(self) -> CompressionResult:
        stage = Stage.ORIGINAL
        while stage is not Stage.DONE:
            logger.debug("%s: %s", self.name, stage.value)
            stage = self._handlers[stage]()
        return self.best

    # -- helpers ---------------------------------------------------------

    def _render(self, scale: float) -> Image.Image:
        cfg = self.cfg
        img = resize_to_scale(self.base, scale, cfg.sharpen_on_resize, cfg.sharpen_amount)
        return ensure_min_side(img, cfg.min_shortest_side_px, cfg.sharpen_on_resize, cfg.sharpen_amount)

    def _search(self, img: Image.Image, q_min: Optional[int] = None):
        return search_quality(
            img,
            self.cfg.upper_bytes,
            self.cfg.quality_min if q_min is None else q_min,
            self.cfg.quality_max,
            optimize=self.optimize,
            name=self.name,
        )

    def _adopt(self, img: Image.Image, data: bytes, scale: float, quality: int, stage: Stage):
        self.best = CompressionResult(
            payload=data,
            scale=scale,
            quality=quality,
            byte_length=len(data),
            stage=stage,
            width=img.width,
            height=img.height,
        )
        self.best_image = img

    def _after_fit(self) -> Stage:
        if self.best.byte_length < self.cfg.lower_bytes:
            return Stage.GROWING
        return Stage.DONE

    # -- states ----------------------------------------------------------

    def _original(self) -> Stage:
        found = self._search(self.base)
        if found is None:
            return Stage.SHRINKING
        data, q = found
        self._adopt(self.base, data, 1.0, q, Stage.ORIGINAL)
        return self._after_fit()

    def _shrinking(self) -> Stage:
        lo, hi = self.cfg.min_downscale, 1.0
        for _ in range(self.cfg.shrink_steps):
            mid = (lo + hi) / 2
            candidate = self._render(mid)
            found = self._search(candidate)
            if found is not None:
                data, q = found
                self._adopt(candidate, data, mid, q, Stage.SHRINKING)
                lo = mid + (hi - mid) * SHRINK_BIAS     # keep more resolution
            else:
                hi = mid - (mid - lo) * SHRINK_BIAS
            if hi - lo < SCALE_EPSILON:
                break
        if self.best is None:
            return Stage.FALLBACK
        return self._after_fit()

    def _fallback(self) -> Stage:
        scale = self.cfg.min_downscale
        small = self._render(scale)
        data = encode_jpeg(small, self.cfg.quality_min, optimize=self.optimize, name=self.name)
        logger.info(
            "%s: no quality fits %d bytes, falling back to scale=%.3f q=%d (%d bytes)",
            self.name, self.cfg.upper_bytes, scale, self.cfg.quality_min, len(data),
        )
        self._adopt(small, data, scale, self.cfg.quality_min, Stage.FALLBACK)
        return Stage.DONE

    def _growing(self) -> Stage:
        cfg = self.cfg
        best = self.best

        # same geometry, quality floor raised to the current quality
        found = self._search(self.best_image, q_min=max(best.quality, cfg.quality_min))
        if found is not None and len(found[0]) > best.byte_length:
            self._adopt(self.best_image, found[0], best.scale, found[1], best.stage)

        scale = self.best.scale
        iters = 0
        while (
            self.best.byte_length < cfg.lower_bytes
            and scale < cfg.max_upscale
            and iters < cfg.grow_steps
        ):
            iters += 1
            scale = min(scale * GROW_FACTOR, cfg.max_upscale)
            candidate = self._render(scale)
            try:
                found = self._search(candidate)
            except EncodingFailure as e:
                logger.warning("%s: skipping upscale trial at %.3f: %s", self.name, scale, e)
                continue
            if found is None:
                scale *= GROW_BACKOFF     # overshot the upper bound
                continue
            data, q = found
            if len(data) > self.best.byte_length:
                self._adopt(candidate, data, scale, q, Stage.GROWING)

        if self.best.byte_length < cfg.lower_bytes:
            logger.debug(
                "%s: best effort %d bytes stays under the %d byte floor",
                self.name, self.best.byte_length, cfg.lower_bytes,
            )
        return Stage.DONE


def compress_into_range(
    img: Image.Image,
    cfg: CompressionConfig,
    name: str = "<image>",
) -> CompressionResult:
    """
    Encode *img* as a JPEG sized inside ``[cfg.lower_bytes, cfg.upper_bytes]``
    whenever the image allows it.

    Always returns a result for a decodable frame; raises ``DecodeFailure``
    for an empty raster and ``EncodingFailure`` if the encoder itself breaks.
    """
    if img.width < 1 or img.height < 1:
        raise DecodeFailure(name, "image has zero size")
    return _RangeSearch(img, cfg, name).run()
