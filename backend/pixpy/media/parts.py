"""
Request part encoding and per-operation request builders.

A request body is an ordered list of parts: inline images (mime type +
base64 payload) and text instructions. Each editing operation is described
by a RetryPlan: the parts to send first, and optionally a pure factory that
produces a substitute instruction if the model answers with text instead of
an image.
"""
from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Union

from .normalizer import DecodeError, ImageAsset
from .utils import split_data_url


@dataclass(frozen=True)
class InlineImage:
    mime_type: str
    data_b64: str


@dataclass(frozen=True)
class Text:
    text: str


RequestPart = Union[InlineImage, Text]

FallbackFactory = Callable[[], Optional[Text]]


def _no_fallback() -> Optional[Text]:
    return None


@dataclass(frozen=True)
class RetryPlan:
    """Primary request plus an optional fallback instruction for refusals."""
    action: str
    primary_parts: Sequence[RequestPart]
    fallback_parts_factory: FallbackFactory = field(default=_no_fallback)

    def fallback_parts(self) -> Optional[List[RequestPart]]:
        """Primary parts with the instruction text swapped for the fallback, or None."""
        substitute = self.fallback_parts_factory()
        if substitute is None:
            return None
        parts = list(self.primary_parts)
        for idx in range(len(parts) - 1, -1, -1):
            if isinstance(parts[idx], Text):
                parts[idx] = substitute
                return parts
        parts.append(substitute)
        return parts

    @property
    def fallback_action(self) -> str:
        return f"{self.action} (fallback)"


def to_inline_part(asset: ImageAsset) -> InlineImage:
    """Encode a normalized asset as an inline image part."""
    return InlineImage(mime_type=asset.mime_type, data_b64=base64.b64encode(asset.data).decode('ascii'))


def parse_data_url(data_url: str) -> InlineImage:
    """Turn a `data:image/...;base64,...` string back into an inline part."""
    parsed = split_data_url(data_url)
    if parsed is None:
        raise DecodeError("Invalid image data URL format.")
    mime_type, payload = parsed
    return InlineImage(mime_type=mime_type, data_b64=payload)


# --- Operation builders -------------------------------------------------------

BACKGROUND_REMOVAL_INSTRUCTION = (
    'Remove the background of this image, leaving only the main subject with a transparent background.'
)

INSTRUCTION_PREFIXES = {
    'filter': 'Apply this filter: ',
    'adjustment': 'Apply this adjustment: ',
    'texture': 'Apply this texture: ',
    'apply style': 'Apply this artistic style: ',
}

DECADE_RE = re.compile(r'(\d{4}s)')

DECADE_FALLBACK_TEMPLATE = (
    'a photograph of the subject as if living in the {decade}, capturing era-appropriate fashion, '
    'hairstyle, and atmosphere, as an authentic-looking photograph.'
)


def build_retouch_plan(image: InlineImage, prompt: str, x: int, y: int) -> RetryPlan:
    return RetryPlan(
        action='retouch',
        primary_parts=(image, Text(f'Apply this edit at hotspot ({x}, {y}): {prompt}')),
    )


def build_instruction_plan(image: InlineImage, prompt: str, action: str) -> RetryPlan:
    """Filter / adjustment / texture / style: prefixed instruction, raw prompt as fallback."""
    prefix = INSTRUCTION_PREFIXES[action]
    return RetryPlan(
        action=action,
        primary_parts=(image, Text(f'{prefix}{prompt}')),
        fallback_parts_factory=lambda: Text(prompt),
    )


def build_background_removal_plan(image: InlineImage) -> RetryPlan:
    return RetryPlan(
        action='background removal',
        primary_parts=(image, Text(BACKGROUND_REMOVAL_INSTRUCTION)),
    )


def fusion_instruction(source_count: int, prompt: str) -> str:
    text = "Fuse the images. The main image is the one I'm editing. "
    for index in range(1, source_count + 1):
        text += f"Source image {index} is provided. "
    return text + f"Instructions: {prompt}"


def build_fusion_plan(main_image: InlineImage, source_images: Sequence[InlineImage], prompt: str) -> RetryPlan:
    """Main image, then sources in their original order (index 1..n), then the instruction."""
    parts: List[RequestPart] = [main_image]
    parts.extend(source_images)
    parts.append(Text(fusion_instruction(len(source_images), prompt)))
    return RetryPlan(action='fusion', primary_parts=tuple(parts))


def extract_decade(prompt: str) -> Optional[str]:
    match = DECADE_RE.search(prompt or '')
    return match.group(1) if match else None


def decade_fallback_prompt(decade: str) -> str:
    return DECADE_FALLBACK_TEMPLATE.format(decade=decade)


def build_decade_plan(image: InlineImage, prompt: str) -> RetryPlan:
    decade = extract_decade(prompt)

    def fallback() -> Optional[Text]:
        if not decade:
            return None
        return Text(decade_fallback_prompt(decade))

    return RetryPlan(
        action=f'generate {decade} image' if decade else 'generate image',
        primary_parts=(image, Text(prompt)),
        fallback_parts_factory=fallback,
    )


def suggestion_instruction(kind: str) -> str:
    return (
        f"Analyze this image. Suggest 4 creative and interesting image {kind}s that would look good on it. "
        "Provide a very short, catchy name (2-4 words, in Chinese) and the corresponding detailed English "
        "prompt for each suggestion."
    )


def build_suggestion_parts(image: InlineImage, kind: str) -> List[RequestPart]:
    if kind not in ('filter', 'adjustment', 'texture'):
        raise ValueError(f"Unknown suggestion type: {kind}")
    return [image, Text(suggestion_instruction(kind))]
