"""
OCR delegation for image-only regions.

The engine never runs OCR itself. When ``enable_ocr_delegation`` is set and
an :class:`OcrDelegate` is configured, image parts reachable from a slide,
sheet drawing or document body are handed to the delegate and whatever text
comes back is emitted as a fragment of that image part. A failing delegate
only costs the text of that image.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

IMAGE_CONTENT_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/gif",
        "image/bmp",
        "image/tiff",
    }
)

_EXTENSION_CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "tif": "image/tiff",
}


class OcrDelegate(Protocol):
    def __call__(self, data: bytes, content_type: str | None) -> str:
        """Return the text recognized in an image, or an empty string."""
        ...


def guess_image_content_type(name: str, declared: str | None = None) -> str | None:
    if declared and declared.startswith("image/"):
        return declared
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return _EXTENSION_CONTENT_TYPES.get(ext)


def is_ocr_candidate(name: str, declared: str | None = None) -> bool:
    return guess_image_content_type(name, declared) in IMAGE_CONTENT_TYPES


def run_ocr(
    delegate: OcrDelegate | None,
    data: bytes,
    *,
    name: str,
    content_type: str | None = None,
) -> list[str]:
    """Run the delegate on one image part and split its output into lines."""
    if delegate is None or not data:
        return []
    try:
        text = delegate(data, guess_image_content_type(name, content_type))
    except Exception as e:
        logger.warning("OCR delegate failed for image [%s]: %s", name, e)
        return []
    if not text:
        return []
    return [line for line in str(text).splitlines() if line.strip()]
