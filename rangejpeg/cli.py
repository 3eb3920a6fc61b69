#!/usr/bin/env python3
"""
cli.py

Convert images, PDFs and ZIP archives of either into JPEGs sized inside a
target byte range (default 168-174 KB) and pack them into one ZIP.

usage:
    rangejpeg photos.zip scan.pdf cover.png [-o compressed.zip] [--speed balanced]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .batch import BatchOutcome, collect_jobs, run_batch
from .config import SPEED_PRESETS, CompressionConfig
from .logging_utils import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    defaults = CompressionConfig()
    p = argparse.ArgumentParser(
        prog="rangejpeg",
        description="Re-compress images/PDFs (or ZIPs of them) to JPEGs inside a byte range.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("inputs", nargs="+", type=Path, help="Images, PDFs or ZIP archives")
    p.add_argument("-o", "--output", type=Path, default=None,
                   help="Output ZIP (default: ./compressed.zip)")
    p.add_argument("--speed", choices=SPEED_PRESETS, default=None,
                   help="Speed preset (default: $SPEED_PRESET or fast)")
    p.add_argument("--min-side", type=int, default=defaults.min_shortest_side_px,
                   help="Minimum shortest side in pixels")
    p.add_argument("--scale-min", type=float, default=defaults.min_downscale,
                   help="Smallest scale tried when shrinking")
    p.add_argument("--upscale-max", type=float, default=defaults.max_upscale,
                   help="Largest scale tried when enlarging")
    p.add_argument("--no-sharpen", action="store_true", help="Skip sharpening after resize")
    p.add_argument("--sharpen-amount", type=float, default=defaults.sharpen_amount)
    p.add_argument("--max-kb", type=int, default=defaults.target_upper_kb, help="Upper size bound (KB)")
    p.add_argument("--min-kb", type=int, default=defaults.target_lower_kb, help="Lower size bound (KB)")
    p.add_argument("--threads", type=int, default=None,
                   help="Worker threads (default: $THREADS or 4)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--log-file", type=Path, default=None)
    return p


def config_from_args(args: argparse.Namespace) -> CompressionConfig:
    return CompressionConfig.from_env(
        speed_preset=args.speed,
        threads=args.threads,
        min_shortest_side_px=args.min_side,
        min_downscale=args.scale_min,
        max_upscale=args.upscale_max,
        sharpen_on_resize=not args.no_sharpen,
        sharpen_amount=args.sharpen_amount,
        target_upper_kb=args.max_kb,
        target_lower_kb=args.min_kb,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        cfg = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    outcome = BatchOutcome()
    uploads = []
    for path in args.inputs:
        try:
            uploads.append((path.name, path.read_bytes()))
        except OSError as e:
            print(f"⚠️  Cannot read {path}: {e}", file=sys.stderr)

    jobs = collect_jobs(uploads, outcome)
    if not jobs:
        print("No valid inputs (need images/PDFs, or ZIPs containing them).", file=sys.stderr)
        if outcome.skipped:
            print(outcome.skipped_text(), file=sys.stderr)
        return 1

    run_batch(jobs, cfg, outcome)

    output = args.output or Path(cfg.archive_name)
    output.write_bytes(outcome.to_archive())

    if outcome.summary_lines:
        print(outcome.summary_text())
    if outcome.skipped:
        print("\nSkipped:")
        print(outcome.skipped_text())
    print(f"\nDone.  {len(outcome.files)} JPEG(s) ➜ {output}")
    # any per-item failure or skip, page-level ones included
    return 2 if outcome.skipped else 0


if __name__ == "__main__":
    sys.exit(main())
