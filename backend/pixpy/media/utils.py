"""
Small pure helpers for mime types, aspect ratios and data URLs.

Keep these helpers small and pure so they are easy to unit test and reason about.
"""
from __future__ import annotations

import re
from typing import Optional, Tuple

# Aspect ratios accepted by the text-to-image model
SUPPORTED_ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4")

DATA_URL_RE = re.compile(r"^data:(image/\w+);base64,(.*)$", re.DOTALL)


def validate_aspect_ratio(label: str) -> str:
    """Return the label unchanged if the image model accepts it, else raise ValueError."""
    if label not in SUPPORTED_ASPECT_RATIOS:
        raise ValueError(
            f"Unsupported aspect ratio {label!r}; expected one of {', '.join(SUPPORTED_ASPECT_RATIOS)}"
        )
    return label


def guess_mime_from_ext(path: str, fallback: str = "application/octet-stream") -> str:
    """Lightweight mime guess from file extension."""
    ext = path.lower().rsplit('.', 1)[-1] if '.' in path else ''
    return {
        'png': 'image/png',
        'jpg': 'image/jpeg',
        'jpeg': 'image/jpeg',
        'webp': 'image/webp',
        'gif': 'image/gif',
        'bmp': 'image/bmp',
        'tif': 'image/tiff',
        'tiff': 'image/tiff',
    }.get(ext, fallback)


def build_data_url(mime_type: str, data_b64: str) -> str:
    return f"data:{mime_type};base64,{data_b64}"


def split_data_url(data_url: str) -> Optional[Tuple[str, str]]:
    """Split a base64 image data URL into (mime_type, payload); None if it isn't one."""
    match = DATA_URL_RE.match(data_url or "")
    if not match:
        return None
    return match.group(1), match.group(2)


def extension_for_mime(mime_type: str) -> str:
    return {
        'image/png': 'png',
        'image/jpeg': 'jpg',
        'image/webp': 'webp',
        'image/gif': 'gif',
    }.get(mime_type, 'png')
