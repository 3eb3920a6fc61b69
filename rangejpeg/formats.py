"""File-type recognition. Extension only, never content sniffing."""

import os
from typing import Optional

IMAGE_EXTS = {
    ".jpg", ".jpeg", ".jfif", ".png", ".webp",
    ".tif", ".tiff", ".bmp", ".gif", ".heic", ".heif",
}
PDF_EXTS = {".pdf"}
ARCHIVE_EXTS = {".zip"}

# recognised, but no decoder ships with Pillow
UNSUPPORTED_IMAGE_EXTS = {".heic", ".heif"}

IMAGE = "image"
PDF = "pdf"
ARCHIVE = "archive"


def ext_lower(name: str) -> str:
    return os.path.splitext(name)[1].lower()


def classify(name: str) -> Optional[str]:
    """Return ``"image"``, ``"pdf"``, ``"archive"`` or ``None`` for *name*."""
    ext = ext_lower(name)
    if ext in IMAGE_EXTS:
        return IMAGE
    if ext in PDF_EXTS:
        return PDF
    if ext in ARCHIVE_EXTS:
        return ARCHIVE
    return None


def is_compressible(name: str) -> bool:
    return classify(name) in (IMAGE, PDF)


def output_name(rel: str, page: Optional[int] = None) -> str:
    """
    Map a source relative path to its JPEG name inside the output archive.

    ``photos/a.png`` -> ``photos/a.jpg``; page 2 of ``doc.pdf`` -> ``doc_p2.jpg``.
    """
    stem = os.path.splitext(rel.replace("\\", "/"))[0]
    if page is None:
        return stem + ".jpg"
    return f"{stem}_p{page}.jpg"
