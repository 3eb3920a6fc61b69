"""ZIP in, ZIP out."""

import io
import logging
import posixpath
import zipfile
from typing import Iterable, List, Mapping, Optional, Tuple

from .errors import DecodeFailure

logger = logging.getLogger(__name__)

FOLDER_SUFFIX = "_compressed"


def label_folder(label: str) -> str:
    return f"{label}{FOLDER_SUFFIX}"


def archive_path(label: str, out_rel: str) -> str:
    return f"{label_folder(label)}/{out_rel.lstrip('/')}"


def safe_relpath(rel: str) -> Optional[str]:
    """
    Normalise an archive entry name to a relative POSIX path, or ``None``
    when it would climb out of its folder.
    """
    path = posixpath.normpath(rel.replace("\\", "/")).lstrip("/")
    if path in ("", ".", "..") or path.startswith("../"):
        return None
    return path


def extract_zip(raw: bytes, name: str = "<zip>") -> List[Tuple[str, bytes]]:
    """
    Return ``(relative path, bytes)`` for every file entry of an archive.

    A malformed archive raises ``DecodeFailure``; a single unreadable
    entry is logged and left out.
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(raw))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise DecodeFailure(name, f"cannot open archive: {e}") from e

    entries = []
    with zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            try:
                data = zf.read(info)
            except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError) as e:
                logger.warning("%s: skipping unreadable entry %s: %s", name, info.filename, e)
                continue
            entries.append((info.filename, data))
    return entries


def write_archive(labels: Iterable[str], files: Mapping[str, bytes]) -> bytes:
    """
    Build the output ZIP: one folder entry per label first, then *files*
    (archive path -> JPEG bytes) in sorted path order.
    """
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for label in labels:
            zf.writestr(label_folder(label) + "/", b"")
        for path in sorted(files):
            # JPEG does not deflate further
            zf.writestr(path, files[path], compress_type=zipfile.ZIP_STORED)
    return buf.getvalue()
