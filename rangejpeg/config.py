"""
Compression settings shared read-only by every job of a batch.

One ``CompressionConfig`` is built per request (form values, CLI flags or
environment) and passed into each job; it is never mutated afterwards.
"""

import os
from dataclasses import dataclass, replace
from typing import Tuple

from dotenv import load_dotenv

FAST = "fast"
BALANCED = "balanced"
SPEED_PRESETS = (FAST, BALANCED)

# per-preset budgets: (pdf dpi, shrink iterations, grow iterations)
_PRESET_BUDGETS = {
    FAST: (150, 8, 6),
    BALANCED: (200, 12, 12),
}

JPEG_QUALITY_CEILING = 95


@dataclass(frozen=True)
class CompressionConfig:
    speed_preset: str = FAST
    min_shortest_side_px: int = 256
    min_downscale: float = 0.35
    max_upscale: float = 2.0
    sharpen_on_resize: bool = True
    sharpen_amount: float = 1.0
    target_upper_kb: int = 174
    target_lower_kb: int = 168
    quality_min: int = 15
    quality_max: int = JPEG_QUALITY_CEILING
    threads: int = 4
    archive_name: str = "compressed.zip"
    background: Tuple[int, int, int] = (255, 255, 255)

    def __post_init__(self):
        if self.speed_preset not in SPEED_PRESETS:
            raise ValueError(
                f"speed_preset must be one of {', '.join(SPEED_PRESETS)}, "
                f"got {self.speed_preset!r}"
            )
        if self.min_shortest_side_px < 1:
            raise ValueError("min_shortest_side_px must be >= 1")
        if not 0 < self.min_downscale <= 1:
            raise ValueError("min_downscale must be in (0, 1]")
        if self.max_upscale < 1:
            raise ValueError("max_upscale must be >= 1")
        if self.sharpen_amount < 0:
            raise ValueError("sharpen_amount must be >= 0")
        if not 0 < self.target_lower_kb <= self.target_upper_kb:
            raise ValueError("target range must satisfy 0 < lower <= upper")
        if not 1 <= self.quality_min <= self.quality_max <= JPEG_QUALITY_CEILING:
            raise ValueError(
                f"quality bounds must satisfy 1 <= min <= max <= {JPEG_QUALITY_CEILING}"
            )
        if self.threads < 1:
            raise ValueError("threads must be >= 1")
        if not self.archive_name:
            raise ValueError("archive_name must not be empty")

    @classmethod
    def from_env(cls, read_dotenv: bool = True, **overrides) -> "CompressionConfig":
        """
        Build a config from ``SPEED_PRESET`` / ``THREADS`` (``.env`` honoured
        unless *read_dotenv* is false), then apply *overrides*.
        Unparseable ``THREADS`` values are ignored.
        """
        if read_dotenv:
            load_dotenv()
        values = {}
        preset = os.getenv("SPEED_PRESET")
        if preset:
            values["speed_preset"] = preset.strip().lower()
        threads = os.getenv("THREADS")
        if threads:
            try:
                values["threads"] = int(threads)
            except ValueError:
                pass
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_options(self, **changes) -> "CompressionConfig":
        return replace(self, **changes)

    @property
    def is_fast(self) -> bool:
        return self.speed_preset == FAST

    @property
    def upper_bytes(self) -> int:
        return self.target_upper_kb * 1024

    @property
    def lower_bytes(self) -> int:
        return self.target_lower_kb * 1024

    @property
    def pdf_dpi(self) -> int:
        return _PRESET_BUDGETS[self.speed_preset][0]

    @property
    def shrink_steps(self) -> int:
        return _PRESET_BUDGETS[self.speed_preset][1]

    @property
    def grow_steps(self) -> int:
        return _PRESET_BUDGETS[self.speed_preset][2]
