"""
Response model and interpretation for image editing calls.

The SDK response is copied into a small, fully typed structure
(RawResponse -> RawCandidate -> RawContent -> RawPart) with optional fields
exactly where the service may omit them. interpret() then maps every such
structure to exactly one GenerationOutcome and never raises.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..media.utils import build_data_url

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = 'image/png'


# --- Raw response structure ---------------------------------------------------

@dataclass(frozen=True)
class RawInlineData:
    mime_type: Optional[str] = None
    data_b64: Optional[str] = None


@dataclass(frozen=True)
class RawPart:
    inline_data: Optional[RawInlineData] = None
    text: Optional[str] = None


@dataclass(frozen=True)
class RawContent:
    parts: List[RawPart] = field(default_factory=list)


@dataclass(frozen=True)
class RawSafetyRating:
    category: Optional[str] = None
    blocked: Optional[bool] = None


@dataclass(frozen=True)
class RawCandidate:
    content: Optional[RawContent] = None
    finish_reason: Optional[str] = None
    safety_ratings: List[RawSafetyRating] = field(default_factory=list)


@dataclass(frozen=True)
class RawResponse:
    candidates: List[RawCandidate] = field(default_factory=list)

    @classmethod
    def from_sdk(cls, response: Any) -> "RawResponse":
        """Copy a google-genai GenerateContentResponse into the raw structure."""
        candidates = []
        for cand in getattr(response, 'candidates', None) or []:
            content = getattr(cand, 'content', None)
            raw_content = None
            if content is not None:
                raw_content = RawContent(parts=[_part_from_sdk(p) for p in (getattr(content, 'parts', None) or [])])
            candidates.append(RawCandidate(
                content=raw_content,
                finish_reason=_enum_text(getattr(cand, 'finish_reason', None)),
                safety_ratings=[
                    RawSafetyRating(
                        category=_enum_text(getattr(r, 'category', None)),
                        blocked=getattr(r, 'blocked', None),
                    )
                    for r in (getattr(cand, 'safety_ratings', None) or [])
                ],
            ))
        return cls(candidates=candidates)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "RawResponse":
        """Build from a REST JSON body (camelCase, as sent on the wire).

        Entries of the wrong JSON type are dropped rather than raising, so an
        odd body still reaches interpret() and ends up Malformed.
        """
        if not isinstance(payload, dict):
            return cls()
        candidates = []
        for cand in _dicts(payload.get('candidates')):
            content = cand.get('content')
            raw_content = None
            if isinstance(content, dict):
                parts = []
                for p in _dicts(content.get('parts')):
                    inline = p.get('inlineData')
                    text = p.get('text')
                    parts.append(RawPart(
                        inline_data=(
                            RawInlineData(_str_or_none(inline.get('mimeType')), _str_or_none(inline.get('data')))
                            if isinstance(inline, dict) else None
                        ),
                        text=text if isinstance(text, str) else None,
                    ))
                raw_content = RawContent(parts=parts)
            candidates.append(RawCandidate(
                content=raw_content,
                finish_reason=_str_or_none(cand.get('finishReason')),
                safety_ratings=[
                    RawSafetyRating(category=_str_or_none(r.get('category')), blocked=bool(r.get('blocked')))
                    for r in _dicts(cand.get('safetyRatings'))
                ],
            ))
        return cls(candidates=candidates)


def _dicts(value: Any) -> List[Dict[str, Any]]:
    """JSON objects inside a list-valued field; anything else counts as empty."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _enum_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _part_from_sdk(part: Any) -> RawPart:
    inline = getattr(part, 'inline_data', None)
    raw_inline = None
    if inline is not None:
        data = getattr(inline, 'data', None)
        # SDK hands out raw bytes; some variants return memoryview / bytearray
        if isinstance(data, (bytes, bytearray, memoryview)):
            data = base64.b64encode(bytes(data)).decode('ascii')
        raw_inline = RawInlineData(mime_type=getattr(inline, 'mime_type', None), data_b64=data or None)
    return RawPart(inline_data=raw_inline, text=getattr(part, 'text', None))


# --- Outcomes -----------------------------------------------------------------

@dataclass(frozen=True)
class Success:
    data_url: str


@dataclass(frozen=True)
class Refusal:
    raw_text: str
    detail: Optional[str] = None


@dataclass(frozen=True)
class SafetyBlocked:
    reason_detail: str


@dataclass(frozen=True)
class Malformed:
    detail: str


GenerationOutcome = Union[Success, Refusal, SafetyBlocked, Malformed]


# --- Interpretation -----------------------------------------------------------

INVALID_RESULT_MESSAGE = 'AI did not return a valid result.'
UNEXPECTED_RESULT_MESSAGE = 'AI failed to return expected image result.'
SAFETY_BLOCK_NOTE = 'The prompt may have been blocked by safety filters.'


def _safety_note(candidate: Optional[RawCandidate]) -> Optional[str]:
    if candidate and any(r.blocked for r in candidate.safety_ratings):
        return SAFETY_BLOCK_NOTE
    return None


def _invalid_result_detail(candidate: Optional[RawCandidate]) -> str:
    detail = INVALID_RESULT_MESSAGE
    if candidate and candidate.finish_reason:
        detail += f" Reason: {candidate.finish_reason}."
    note = _safety_note(candidate)
    if note:
        detail += f" {note}"
    return detail


def interpret(raw: RawResponse) -> GenerationOutcome:
    """
    Classify one response.

    1. No candidate / no parts -> Malformed (finish reason and safety note attached)
    2. Any part with inline image data -> Success; the first one wins
    3. First part is text -> Refusal
    4. Anything else -> Malformed
    """
    candidate = raw.candidates[0] if raw.candidates else None

    if candidate is None or candidate.content is None or not candidate.content.parts:
        detail = _invalid_result_detail(candidate)
        logger.warning(f"Response without content: {detail}")
        return Malformed(detail=detail)

    parts = candidate.content.parts
    for part in parts:
        if part.inline_data is not None and part.inline_data.data_b64:
            mime_type = part.inline_data.mime_type or DEFAULT_IMAGE_MIME
            return Success(data_url=build_data_url(mime_type, part.inline_data.data_b64))

    if parts[0].text:
        logger.info(f"Model answered with text instead of an image: {parts[0].text[:200]!r}")
        return Refusal(raw_text=parts[0].text, detail=_safety_note(candidate))

    note = _safety_note(candidate)
    return Malformed(detail=f"{UNEXPECTED_RESULT_MESSAGE} {note}" if note else UNEXPECTED_RESULT_MESSAGE)
