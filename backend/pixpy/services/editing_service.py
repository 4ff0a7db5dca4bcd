"""
Editing Service
Runs image editing operations end to end against the generation service.

Every operation goes through the same pipeline:
    normalize input -> encode parts -> invoke -> interpret
and, when the model answers with text instead of an image and the operation
defines a fallback instruction, exactly one more attempt with that fallback.

Callers get a `data:<mime>;base64,...` string or an exception:
- DecodeError for unreadable input images (never retried)
- ClassifiedError for everything on the service side
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from google.genai import types

from ..config import ConfigResolver, Settings, UserOverrides
from ..llm.errors import ClassifiedError, ErrorCategory, classify
from ..llm.gemini_client import ClientCache, GeminiServiceClient
from ..llm.response import GenerationOutcome, Malformed, Refusal, SafetyBlocked, Success, interpret
from ..media.normalizer import ImageInput, normalize_async
from ..media.parts import (
    InlineImage,
    RequestPart,
    RetryPlan,
    build_background_removal_plan,
    build_decade_plan,
    build_fusion_plan,
    build_instruction_plan,
    build_retouch_plan,
    build_suggestion_parts,
    parse_data_url,
    to_inline_part,
)

logger = logging.getLogger(__name__)

REFUSAL_MESSAGE = 'Model responded with text instead of an image. The prompt may have been blocked.'
SAFETY_BLOCK_MESSAGE = 'The request was blocked by safety filters.'

ImageSource = Union[ImageInput, str, os.PathLike]


class RetryOrchestrator:
    """
    Drives one RetryPlan to a final data URL.

    At most two invocations: the second one happens only when the first
    outcome is a Refusal and the plan has a fallback. Whatever the second
    attempt yields is final. Exceptions from the client (credential,
    transport) skip the fallback path entirely.
    """

    def __init__(self, client: GeminiServiceClient):
        self.client = client

    async def _attempt(self, parts: Sequence[RequestPart], action: str) -> GenerationOutcome:
        raw = await self.client.invoke(parts, action)
        return interpret(raw)

    async def run(self, plan: RetryPlan) -> str:
        attempts = 1
        action = plan.action
        outcome = await self._attempt(plan.primary_parts, action)

        if isinstance(outcome, Refusal):
            fallback_parts = plan.fallback_parts()
            if fallback_parts is not None:
                logger.warning(f"Original prompt for '{plan.action}' was refused. Trying a fallback.")
                attempts += 1
                action = plan.fallback_action
                outcome = await self._attempt(fallback_parts, action)

        logger.debug(f"'{plan.action}' finished after {attempts} attempt(s) with {type(outcome).__name__}")
        return self._finish(outcome, action)

    @staticmethod
    def _finish(outcome: GenerationOutcome, action: str) -> str:
        if isinstance(outcome, Success):
            return outcome.data_url
        if isinstance(outcome, Refusal):
            message = REFUSAL_MESSAGE
            if outcome.detail:
                message = f"{message} {outcome.detail}"
            raise ClassifiedError(ErrorCategory.SERVICE_REFUSAL, message, action, cause=outcome)
        if isinstance(outcome, SafetyBlocked):
            raise ClassifiedError(
                ErrorCategory.SAFETY_BLOCK, f"{SAFETY_BLOCK_MESSAGE} {outcome.reason_detail}", action, cause=outcome
            )
        if isinstance(outcome, Malformed):
            raise ClassifiedError(ErrorCategory.MALFORMED_RESPONSE, outcome.detail, action, cause=outcome)
        raise TypeError(f"Unknown outcome: {outcome!r}")


SUGGESTIONS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        'suggestions': types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    'name': types.Schema(
                        type=types.Type.STRING,
                        description='A very short, catchy name for the effect in Chinese.',
                    ),
                    'prompt': types.Schema(
                        type=types.Type.STRING,
                        description='The detailed English prompt to achieve the effect.',
                    ),
                },
            ),
        ),
    },
)


def _as_input(image: ImageSource) -> ImageInput:
    if isinstance(image, ImageInput):
        return image
    return ImageInput.from_path(os.fspath(image))


class EditingService:
    """Composition root for the editing operations."""

    def __init__(
        self,
        client: Optional[GeminiServiceClient] = None,
        overrides: Optional[UserOverrides] = None,
        settings: Optional[Settings] = None,
    ):
        self.overrides = overrides or UserOverrides()
        if client is None:
            client = GeminiServiceClient(
                resolver=ConfigResolver(overrides=self.overrides),
                cache=ClientCache(),
                settings=settings,
            )
        self.client = client
        self.orchestrator = RetryOrchestrator(client)

    async def _prepare(self, image: ImageSource) -> InlineImage:
        asset = await normalize_async(_as_input(image))
        return to_inline_part(asset)

    async def retouch(self, image: ImageSource, prompt: str, hotspot: Tuple[int, int]) -> str:
        """Localized edit anchored at a pixel coordinate. No fallback."""
        image_part = await self._prepare(image)
        x, y = hotspot
        return await self.orchestrator.run(build_retouch_plan(image_part, prompt, x, y))

    async def _run_instruction(self, image: ImageSource, prompt: str, action: str) -> str:
        image_part = await self._prepare(image)
        return await self.orchestrator.run(build_instruction_plan(image_part, prompt, action))

    async def apply_filter(self, image: ImageSource, prompt: str) -> str:
        return await self._run_instruction(image, prompt, 'filter')

    async def apply_adjustment(self, image: ImageSource, prompt: str) -> str:
        return await self._run_instruction(image, prompt, 'adjustment')

    async def apply_texture(self, image: ImageSource, prompt: str) -> str:
        return await self._run_instruction(image, prompt, 'texture')

    async def apply_style(self, image: ImageSource, prompt: str) -> str:
        return await self._run_instruction(image, prompt, 'apply style')

    async def remove_background(self, image: ImageSource) -> str:
        image_part = await self._prepare(image)
        return await self.orchestrator.run(build_background_removal_plan(image_part))

    async def fuse(self, main_image: ImageSource, source_images: Sequence[ImageSource], prompt: str) -> str:
        """
        Combine a main image with source images.

        Sources are prepared concurrently; gather() keeps their order, so
        source N in the instruction is always the N-th image given.
        """
        main_part = await self._prepare(main_image)
        source_parts = await asyncio.gather(*(self._prepare(src) for src in source_images))
        plan = build_fusion_plan(main_part, list(source_parts), prompt)
        try:
            return await self.orchestrator.run(plan)
        except ClassifiedError:
            raise
        except Exception as e:
            raise classify(e, 'fusion') from e

    async def generate_decade_image(self, image_data_url: str, prompt: str) -> str:
        """Re-imagine the subject of a data-URL image in the decade named by the prompt."""
        image_part = parse_data_url(image_data_url)
        return await self.orchestrator.run(build_decade_plan(image_part, prompt))

    async def generate_from_text(self, prompt: str, aspect_ratio: str = '1:1') -> str:
        return await self.client.generate_from_text(prompt, aspect_ratio)

    async def creative_suggestions(self, image: ImageSource, kind: str) -> List[Dict[str, Any]]:
        """Ask the text model for four {name, prompt} ideas for a filter/adjustment/texture."""
        action = 'get inspiration'
        image_part = await self._prepare(image)
        parts = build_suggestion_parts(image_part, kind)
        result = await self.client.invoke_structured(parts, SUGGESTIONS_SCHEMA, action)
        if not isinstance(result, dict) or not isinstance(result.get('suggestions'), list):
            raise ClassifiedError(
                ErrorCategory.MALFORMED_RESPONSE, 'AI returned suggestions in an unexpected format.', action
            )
        return result['suggestions']


_global_editing_service: Optional[EditingService] = None


def get_editing_service() -> EditingService:
    """Return the process-wide EditingService, creating it on first use."""
    global _global_editing_service
    if _global_editing_service is None:
        _global_editing_service = EditingService()
    return _global_editing_service


def reset_editing_service() -> None:
    global _global_editing_service
    _global_editing_service = None
