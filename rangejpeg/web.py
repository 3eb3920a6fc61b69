"""
HTTP front end: upload form, batch processing, archive download.

    GET  /                  upload form
    POST /process           run a batch, render summary + download link
    POST /api/process       same batch, JSON response
    GET  /download/{token}  the ZIP built by a previous batch
"""

import html
import logging
import os
import threading
import uuid
from collections import OrderedDict
from typing import List, Optional, Tuple
from urllib.parse import quote

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel

from .batch import BatchOutcome, collect_jobs, run_batch
from .config import FAST, CompressionConfig
from .logging_utils import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)

NO_FILES_MESSAGE = "Please upload at least one file."
NO_VALID_INPUTS_MESSAGE = "No valid inputs (need images/PDFs, or ZIPs containing them)."


class ArchiveStore:
    """Finished archives kept in memory under opaque tokens, oldest evicted first."""

    def __init__(self, max_entries: int = 32):
        self.max_entries = max_entries
        self._items: "OrderedDict[str, Tuple[bytes, str]]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, data: bytes, filename: str) -> str:
        token = uuid.uuid4().hex
        with self._lock:
            self._items[token] = (data, filename)
            while len(self._items) > self.max_entries:
                self._items.popitem(last=False)
        return token

    def get(self, token: str) -> Optional[Tuple[bytes, str]]:
        with self._lock:
            return self._items.get(token)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ProcessResponse(BaseModel):
    token: Optional[str] = None
    message: Optional[str] = None
    summary: List[str] = []
    skipped: List[str] = []
    outputs: int = 0


app = FastAPI(title="rangejpeg")
store = ArchiveStore()


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name plus the RFC 5987 UTF-8 form."""
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("?", "_").replace("\"", "_").replace("\\", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _checkbox(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in ("on", "1", "true", "yes")


def _build_config(speed, min_side, scale_min, upscale_max, sharpen, sharpen_amount, master_name):
    try:
        # .env was loaded at import
        return CompressionConfig.from_env(
            read_dotenv=False,
            speed_preset=(speed or FAST).strip().lower(),
            min_shortest_side_px=min_side,
            min_downscale=scale_min,
            max_upscale=upscale_max,
            sharpen_on_resize=sharpen,
            sharpen_amount=sharpen_amount,
            archive_name=(master_name or "").strip() or None,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _read_uploads(files: Optional[List[UploadFile]]) -> List[Tuple[str, bytes]]:
    uploads = []
    for f in files or []:
        if not f.filename:
            continue
        uploads.append((f.filename, await f.read()))
    return uploads


def _run(uploads: List[Tuple[str, bytes]], cfg: CompressionConfig) -> ProcessResponse:
    outcome = BatchOutcome()
    jobs = collect_jobs(uploads, outcome)
    skipped = outcome.skipped_text().splitlines()
    if not jobs:
        return ProcessResponse(message=NO_VALID_INPUTS_MESSAGE, skipped=skipped)

    run_batch(jobs, cfg, outcome)
    token = store.put(outcome.to_archive(), cfg.archive_name)
    return ProcessResponse(
        token=token,
        summary=outcome.summary_lines,
        skipped=outcome.skipped_text().splitlines(),
        outputs=len(outcome.files),
    )


async def _process(files, cfg: CompressionConfig) -> ProcessResponse:
    uploads = await _read_uploads(files)
    if not uploads:
        return ProcessResponse(message=NO_FILES_MESSAGE)
    logger.info("processing %d upload(s), preset=%s", len(uploads), cfg.speed_preset)
    return await run_in_threadpool(_run, uploads, cfg)


@app.get("/", response_class=HTMLResponse)
async def index():
    return render_page()


@app.post("/process", response_class=HTMLResponse)
async def process(
    files: Optional[List[UploadFile]] = File(None),
    speed: str = Form(FAST),
    min_side: int = Form(256),
    scale_min: float = Form(0.35),
    upscale_max: float = Form(2.0),
    sharpen: Optional[str] = Form(None),
    sharpen_amount: float = Form(1.0),
    master_name: str = Form("compressed.zip"),
):
    cfg = _build_config(speed, min_side, scale_min, upscale_max, _checkbox(sharpen),
                        sharpen_amount, master_name)
    return render_page(await _process(files, cfg))


@app.post("/api/process", response_model=ProcessResponse)
async def api_process(
    files: Optional[List[UploadFile]] = File(None),
    speed: str = Form(FAST),
    min_side: int = Form(256),
    scale_min: float = Form(0.35),
    upscale_max: float = Form(2.0),
    sharpen: bool = Form(True),
    sharpen_amount: float = Form(1.0),
    master_name: str = Form("compressed.zip"),
):
    cfg = _build_config(speed, min_side, scale_min, upscale_max, sharpen,
                        sharpen_amount, master_name)
    return await _process(files, cfg)


@app.get("/download/{token}")
async def download(token: str):
    item = store.get(token)
    if item is None:
        raise HTTPException(status_code=404, detail="Not found")
    data, filename = item
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": content_disposition(filename)},
    )


_FORM = """
<form method="post" action="/process" enctype="multipart/form-data">
  <p><label>Speed preset
    <select name="speed"><option value="fast" selected>fast</option>
    <option value="balanced">balanced</option></select></label></p>
  <p><label>Minimum shortest side (px)
    <input name="min_side" type="number" value="256" min="64" max="2048" step="32"></label></p>
  <p><label>Minimum downscale <input name="scale_min" type="number" step="0.01" value="0.35"></label></p>
  <p><label>Maximum upscale <input name="upscale_max" type="number" step="0.1" value="2.0"></label></p>
  <p><label><input type="checkbox" name="sharpen" checked> Light sharpen after resize</label></p>
  <p><label>Sharpen amount <input name="sharpen_amount" type="number" step="0.1" value="1.0"></label></p>
  <p><label>Archive name <input name="master_name" value="compressed.zip"></label></p>
  <p><small>Target: 168-174 KB per output. HEIC/HEIF inputs are skipped.</small></p>
  <p><label>Upload (ZIP / images / PDF) <input type="file" name="files" multiple></label></p>
  <button type="submit">Process</button>
</form>
"""


def render_page(result: Optional[ProcessResponse] = None) -> str:
    parts = [
        "<!doctype html><html><head><meta charset=\"utf-8\">",
        "<title>Images/PDF/ZIP to JPEG 168-174 KB</title></head><body>",
        "<h3>Images / PDFs / ZIPs to JPEG 168-174 KB</h3>",
        _FORM,
    ]
    if result is not None:
        if result.message:
            parts.append(f"<div class=\"message\">{html.escape(result.message)}</div>")
        if result.token:
            parts.append("<h5>Summary</h5>")
            parts.append(f"<pre>{html.escape(chr(10).join(result.summary))}</pre>")
            parts.append(f"<a href=\"/download/{result.token}\">Download archive</a>")
        if result.skipped:
            parts.append("<h5>Skipped</h5>")
            parts.append(f"<pre>{html.escape(chr(10).join(result.skipped))}</pre>")
    parts.append("</body></html>")
    return "\n".join(parts)


def main() -> None:
    import uvicorn

    configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8080")))


if __name__ == "__main__":
    main()
