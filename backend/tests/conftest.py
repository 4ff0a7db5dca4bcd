"""
Global pytest configuration and fixtures for pixpy backend tests
"""

import io
from typing import List, Optional

import pytest
from PIL import Image

from pixpy.llm.response import (
    RawCandidate,
    RawContent,
    RawInlineData,
    RawPart,
    RawResponse,
    RawSafetyRating,
)
from pixpy.services.editing_service import reset_editing_service

# 1x1 transparent PNG
TINY_PNG_B64 = 'iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=='


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host credentials and the shared service out of tests."""
    for var in ("GOOGLE_API_KEY", "API_KEY", "GEMINI_BASE_URL"):
        monkeypatch.delenv(var, raising=False)
    yield
    reset_editing_service()


@pytest.fixture
def make_image_bytes():
    """Factory producing encoded test images of a given size and format"""
    def _create(width: int = 10, height: int = 10, fmt: str = 'PNG', mode: str = 'RGB', color='red') -> bytes:
        img = Image.new(mode, (width, height), color=color)
        buffer = io.BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()
    return _create


def image_response(mime_type: str = 'image/png', data_b64: str = TINY_PNG_B64, leading_text: Optional[str] = None) -> RawResponse:
    parts: List[RawPart] = []
    if leading_text is not None:
        parts.append(RawPart(text=leading_text))
    parts.append(RawPart(inline_data=RawInlineData(mime_type=mime_type, data_b64=data_b64)))
    return RawResponse(candidates=[RawCandidate(content=RawContent(parts=parts), finish_reason='STOP')])


def text_response(text: str = "I can't help with that.", blocked: bool = False) -> RawResponse:
    ratings = [RawSafetyRating(category='HARM_CATEGORY_DANGEROUS_CONTENT', blocked=True)] if blocked else []
    return RawResponse(candidates=[
        RawCandidate(content=RawContent(parts=[RawPart(text=text)]), finish_reason='STOP', safety_ratings=ratings)
    ])


def empty_response(finish_reason: Optional[str] = None, blocked: bool = False) -> RawResponse:
    ratings = [RawSafetyRating(category='HARM_CATEGORY_HARASSMENT', blocked=True)] if blocked else []
    return RawResponse(candidates=[RawCandidate(content=None, finish_reason=finish_reason, safety_ratings=ratings)])


@pytest.fixture
def responses():
    """Builders for raw service responses"""
    class _Responses:
        image = staticmethod(image_response)
        text = staticmethod(text_response)
        empty = staticmethod(empty_response)
    return _Responses
