"""
Batch dispatch: expand uploads into jobs, compress them on a bounded
thread pool, and fold the per-job results into one ``BatchOutcome``.

Jobs share nothing while they run. ``process_job`` never raises; its
``JobResult`` is merged into the outcome under a single lock that is
held only for the in-memory bookkeeping.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .archive import archive_path, extract_zip, safe_relpath, write_archive
from .compress import compress_into_range
from .config import CompressionConfig
from .errors import CompressionError, UnsupportedFormat
from .formats import ARCHIVE, IMAGE, PDF, classify, is_compressible, output_name
from .raster import decode_image, render_pdf_pages

logger = logging.getLogger(__name__)

LOOSE_LABEL_PREFIX = "compressed_pict"


@dataclass(frozen=True)
class Job:
    label: str
    rel: str
    data: bytes = field(repr=False)


@dataclass
class JobResult:
    job: Job
    outputs: Dict[str, bytes] = field(default_factory=dict)     # output name -> JPEG
    processed: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    error: Optional[Exception] = None      # set when the whole job failed

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchOutcome:
    labels: List[str] = field(default_factory=list)
    summary_lines: List[str] = field(default_factory=list)
    skipped: Dict[str, List[str]] = field(default_factory=dict)
    files: Dict[str, bytes] = field(default_factory=dict)       # archive path -> JPEG
    results: List[JobResult] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add_label(self, label: str) -> None:
        with self._lock:
            if label not in self.labels:
                self.labels.append(label)

    def record_skip(self, label: str, message: str) -> None:
        with self._lock:
            self.skipped.setdefault(label, []).append(message)

    def merge(self, result: JobResult) -> None:
        label = result.job.label
        with self._lock:
            self.results.append(result)
            for line in result.processed:
                self.summary_lines.append(f"{label}: {line}")
            if result.failures:
                self.skipped.setdefault(label, []).extend(result.failures)
            for out_rel, data in result.outputs.items():
                path = archive_path(label, out_rel)
                if path in self.files:
                    logger.warning("%s is produced by more than one input, keeping the last", path)
                self.files[path] = data

    @property
    def failed_results(self) -> List[JobResult]:
        return [r for r in self.results if not r.ok]

    def summary_text(self) -> str:
        return "\n".join(self.summary_lines)

    def skipped_text(self) -> str:
        lines = []
        for label, messages in self.skipped.items():
            lines.extend(f"{label}: {m}" for m in messages)
        return "\n".join(lines)

    def to_archive(self) -> bytes:
        return write_archive(self.labels, self.files)


# ----------------------------- job collection ----------------------------- #

def _stem(name: str) -> str:
    return os.path.splitext(os.path.basename(name.replace("\\", "/")))[0]


def collect_jobs(
    uploads: Iterable[Tuple[str, bytes]],
    outcome: BatchOutcome,
    now: Optional[float] = None,
) -> List[Job]:
    """
    Expand ``(filename, bytes)`` uploads into jobs.

    Each ZIP becomes its own label (its stem, ``_2``/``_3``... when the stem
    repeats); loose images and PDFs share one ``compressed_pict_<ts>``
    label. Anything that cannot be compressed is recorded on *outcome*.
    """
    loose_label = f"{LOOSE_LABEL_PREFIX}_{int(time.time() if now is None else now)}"
    used: Dict[str, int] = {}
    jobs = []

    for name, raw in uploads:
        kind = classify(name)
        if kind == ARCHIVE:
            base = _stem(name)
            used[base] = used.get(base, 0) + 1
            label = base if used[base] == 1 else f"{base}_{used[base]}"
            try:
                entries = extract_zip(raw, name)
            except CompressionError as e:
                logger.warning("failed to unzip %s: %s", name, e)
                outcome.record_skip(label, str(e))
                continue
            for entry, data in entries:
                rel = safe_relpath(entry)
                if rel is None:
                    logger.warning("%s: refusing entry outside the archive root: %s", name, entry)
                    outcome.record_skip(label, f"{entry}: unsafe path")
                elif is_compressible(rel):
                    jobs.append(Job(label, rel, data))
                else:
                    outcome.record_skip(label, f"{rel}: unsupported file type")
        elif kind in (IMAGE, PDF):
            jobs.append(Job(loose_label, os.path.basename(name.replace("\\", "/")), raw))
        else:
            outcome.record_skip(loose_label, f"{name}: unsupported file type")
    return jobs


# ------------------------------- processing ------------------------------- #

def _process_image(job: Job, cfg: CompressionConfig, result: JobResult) -> None:
    img = decode_image(job.rel, job.data)
    res = compress_into_range(img, cfg, name=job.rel)
    out_rel = output_name(job.rel)
    result.outputs[out_rel] = res.payload
    result.processed.append(res.describe(out_rel))


def _process_pdf(job: Job, cfg: CompressionConfig, result: JobResult) -> None:
    for page in render_pdf_pages(job.data, cfg.pdf_dpi, name=job.rel):
        if page.image is None:
            result.failures.append(f"{job.rel} (page {page.number}): render error: {page.error}")
            continue
        page_name = f"{job.rel} (page {page.number})"
        try:
            res = compress_into_range(page.image, cfg, name=page_name)
        except CompressionError as e:
            result.failures.append(str(e))
            continue
        out_rel = output_name(job.rel, page.number)
        result.outputs[out_rel] = res.payload
        result.processed.append(res.describe(out_rel))


def process_job(job: Job, cfg: CompressionConfig) -> JobResult:
    """Compress one job. Never raises: every fault ends up in the result."""
    result = JobResult(job)
    kind = classify(job.rel)
    try:
        if kind == PDF:
            _process_pdf(job, cfg, result)
        elif kind == IMAGE:
            _process_image(job, cfg, result)
        else:
            raise UnsupportedFormat(job.rel, "unsupported file type")
    except CompressionError as e:
        logger.warning("%s: %s", job.label, e)
        return JobResult(job, failures=[str(e)], error=e)
    except Exception as e:
        logger.exception("%s: unexpected failure on %s", job.label, job.rel)
        return JobResult(job, failures=[f"{job.rel}: unexpected error: {e}"], error=e)
    logger.info("%s: %s -> %d output(s)", job.label, job.rel, len(result.outputs))
    return result


def run_batch(
    jobs: List[Job],
    cfg: CompressionConfig,
    outcome: Optional[BatchOutcome] = None,
) -> BatchOutcome:
    """Run every job on a pool of ``cfg.threads`` workers and wait for all of them."""
    if outcome is None:
        outcome = BatchOutcome()
    for job in jobs:
        outcome.add_label(job.label)
    if not jobs:
        return outcome

    started = time.time()
    with ThreadPoolExecutor(max_workers=cfg.threads) as pool:
        futures = [pool.submit(process_job, job, cfg) for job in jobs]
        for fut in as_completed(futures):
            outcome.merge(fut.result())
    logger.info(
        "batch done: %d job(s), %d output(s), %d failed, %.1fs",
        len(jobs), len(outcome.files), len(outcome.failed_results), time.time() - started,
    )
    return outcome
