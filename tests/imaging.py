"""In-memory fixtures shared by the test modules."""

import io
import random
import zipfile

import fitz  # PyMuPDF
from PIL import Image


def noise_image(width: int, height: int, seed: int = 0) -> Image.Image:
    rng = random.Random(seed)
    raw = rng.randbytes(width * height * 3)
    return Image.frombytes("RGB", (width, height), raw)


def gradient_image(width: int, height: int) -> Image.Image:
    img = Image.new("RGB", (width, height))
    img.putdata([
        (x * 255 // max(1, width - 1), y * 255 // max(1, height - 1), 128)
        for y in range(height)
        for x in range(width)
    ])
    return img


def image_bytes(img: Image.Image, fmt: str = "PNG", **params) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **params)
    return buf.getvalue()


def pdf_bytes(pages: int, width: float = 200, height: float = 100) -> bytes:
    doc = fitz.open()
    for n in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((20, 50), f"Page {n + 1}", fontsize=18)
        page.draw_rect(fitz.Rect(10, 10, width - 10, height - 10), color=(0, 0, 1), width=2)
    data = doc.tobytes()
    doc.close()
    return data


def zip_bytes(entries) -> bytes:
    """*entries*: iterable of (name, bytes); names ending in '/' become folders."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buf.getvalue()
