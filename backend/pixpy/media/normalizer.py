"""
Asset normalization for the image editing model.

The editing model only accepts JPEG and PNG and anything larger than 2048px
on its longer side is rejected or silently downscaled by the service. Inputs
are brought inside that envelope here:

- Compliant inputs (supported type, within bound) are passed through untouched.
- Everything else is decoded, resized if needed, and re-encoded as PNG.
  PNG keeps transparency and the decode/re-encode is needed anyway.

Decoding uses Pillow. Corrupt inputs raise DecodeError, which is never retried.
Pillow's decompression-bomb guard stays on: images above twice
Image.MAX_IMAGE_PIXELS (about 179 megapixels by default) are refused with
DecodeError instead of being decoded and downscaled.
"""
from __future__ import annotations

import asyncio
import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .utils import guess_mime_from_ext

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = ('image/jpeg', 'image/png')
MAX_DIMENSION = 2048
OUTPUT_MIME_TYPE = 'image/png'
# Encoder quality hint kept for parity with the browser canvas path; PNG ignores it
OUTPUT_QUALITY = 0.95


class DecodeError(Exception):
    """Raised when an input image cannot be read or re-rendered."""


@dataclass
class ImageInput:
    """A raw, user-supplied image before normalization."""
    data: bytes
    mime_type: str
    filename: Optional[str] = None

    @classmethod
    def from_path(cls, path: str) -> "ImageInput":
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise DecodeError(f"Failed to read file: {e}") from e
        return cls(data=data, mime_type=guess_mime_from_ext(path), filename=Path(path).name)


@dataclass
class ImageAsset:
    """Normalized image ready for encoding: JPEG/PNG, longer side <= MAX_DIMENSION."""
    data: bytes
    mime_type: str
    width: int
    height: int
    filename: Optional[str] = None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def target_dimensions(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> Tuple[int, int]:
    """
    Fit (width, height) inside max_dimension keeping the aspect ratio.

    The longer side becomes exactly max_dimension, the shorter side is rounded
    to the nearest pixel (never below 1).
    """
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width > height:
        return max_dimension, max(1, _round_half_up(height * max_dimension / width))
    return max(1, _round_half_up(width * max_dimension / height)), max_dimension


def _converted_filename(filename: Optional[str]) -> str:
    if not filename:
        return 'image.png'
    stem = '.'.join(filename.split('.')[:-1]) if '.' in filename else ''
    return (stem or 'image') + '.png'


def _prepare_surface(img: Image.Image) -> Image.Image:
    """Convert to a mode that resamples cleanly and encodes as PNG without losing alpha."""
    has_alpha = img.mode in ('RGBA', 'LA', 'PA') or 'transparency' in img.info
    if img.mode in ('RGB', 'RGBA', 'L'):
        return img
    return img.convert('RGBA' if has_alpha else 'RGB')


def normalize(
    raw_bytes: bytes,
    declared_mime_type: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    filename: Optional[str] = None,
) -> ImageAsset:
    """
    Bring an image inside the service's format/size envelope.

    Args:
        raw_bytes: Encoded image as supplied by the user
        declared_mime_type: Mime type reported by the host (file picker, upload)
        width: Optional known pixel width; the decoded size wins if they disagree
        height: Optional known pixel height
        filename: Optional original filename, only used to name converted output

    Returns:
        ImageAsset; the very same bytes when no conversion or resize was needed.

    Raises:
        DecodeError: the bytes are not a readable image or re-encoding failed.
    """
    if not raw_bytes:
        raise DecodeError("Failed to read file for processing.")

    try:
        img = Image.open(io.BytesIO(raw_bytes))
        img.load()
    except Image.DecompressionBombError as e:
        raise DecodeError(f"Image is too large to process: {e}") from e
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        raise DecodeError(f"Failed to load image for processing: {e}") from e

    natural_width, natural_height = img.size
    if (width, height) != (None, None) and (width, height) != (natural_width, natural_height):
        logger.debug(
            f"Declared size {width}x{height} differs from decoded size {natural_width}x{natural_height}; using decoded"
        )

    needs_conversion = declared_mime_type not in SUPPORTED_MIME_TYPES
    needs_resize = natural_width > MAX_DIMENSION or natural_height > MAX_DIMENSION

    if not needs_resize and not needs_conversion:
        return ImageAsset(
            data=raw_bytes,
            mime_type=declared_mime_type,
            width=natural_width,
            height=natural_height,
            filename=filename,
        )

    new_width, new_height = target_dimensions(natural_width, natural_height)

    try:
        surface = _prepare_surface(img)
        if (new_width, new_height) != (natural_width, natural_height):
            surface = surface.resize((new_width, new_height), Image.Resampling.LANCZOS)
        output = io.BytesIO()
        surface.save(output, format='PNG')
    except (OSError, ValueError) as e:
        raise DecodeError(f"Failed to re-encode image: {e}") from e

    png_bytes = output.getvalue()
    logger.info(
        f"Normalized {declared_mime_type or 'unknown'} {natural_width}x{natural_height} "
        f"-> {OUTPUT_MIME_TYPE} {new_width}x{new_height} ({len(raw_bytes)} -> {len(png_bytes)} bytes)"
    )
    return ImageAsset(
        data=png_bytes,
        mime_type=OUTPUT_MIME_TYPE,
        width=new_width,
        height=new_height,
        filename=_converted_filename(filename),
    )


async def normalize_async(image: ImageInput) -> ImageAsset:
    """Run normalize() in a worker thread so decoding does not block the event loop."""
    return await asyncio.to_thread(normalize, image.data, image.mime_type, None, None, image.filename)


def load_asset(path: str) -> ImageAsset:
    """Read a file from disk and normalize it."""
    image = ImageInput.from_path(path)
    return normalize(image.data, image.mime_type, filename=image.filename)
