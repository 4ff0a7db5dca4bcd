"""
Gemini service client built on the google-genai SDK.

Three request kinds are supported:
- invoke(): multimodal image editing (interleaved image/text parts in,
  candidates with image and/or text parts out)
- generate_from_text(): Imagen text-to-image (bytes out, no text refusals)
- invoke_structured(): JSON-schema constrained text generation

Credential and endpoint are re-resolved on every call. The SDK handle lives in
a ClientCache owned by whoever composes the service, and is rebuilt only when
the resolved ServiceConfig changes.
"""
from __future__ import annotations

import base64
import json
import logging
from dataclasses import asdict
from typing import Any, Callable, Optional, Sequence

from google import genai
from google.genai import types

from ..config import ConfigResolver, ServiceConfig, Settings
from ..media.parts import InlineImage, RequestPart, Text
from ..media.utils import build_data_url, validate_aspect_ratio
from ..utils.logging import mask_credential_value, safe_repr
from .base import ProviderError, ProviderNotConfigured
from .errors import ClassifiedError, ErrorCategory, MISSING_KEY_MESSAGE, classify
from .response import RawResponse

logger = logging.getLogger(__name__)

IMAGE_GENERATION_FAILED = 'AI failed to generate image.'
EMPTY_STRUCTURED_RESPONSE = 'AI returned an empty response.'


def build_sdk_client(config: ServiceConfig) -> genai.Client:
    """Construct a google-genai client for one ServiceConfig."""
    http_options = None
    if config.endpoint_override:
        http_options = types.HttpOptions(base_url=config.endpoint_override)
    return genai.Client(api_key=config.credential, http_options=http_options)


class ClientCache:
    """
    Holds one live SDK handle keyed by ServiceConfig.

    get_or_create() returns the cached handle while the config compares equal,
    and builds a new one otherwise. A failed construction clears the cache so
    the next call tries again instead of reusing a broken handle.

    Construction is synchronous, so concurrent operations never observe a
    half-built handle; racing rebuilds are harmless and the last one wins.
    """

    def __init__(self, factory: Optional[Callable[[ServiceConfig], Any]] = None):
        self._factory = factory or build_sdk_client
        self._key: Optional[ServiceConfig] = None
        self._handle: Any = None

    @property
    def key(self) -> Optional[ServiceConfig]:
        return self._key

    def get_or_create(self, config: ServiceConfig) -> Any:
        if self._handle is not None and config == self._key:
            return self._handle

        logger.info(
            f"Initializing AI client (key={mask_credential_value(config.credential)}, "
            f"endpoint={config.endpoint_override or 'default'})"
        )
        try:
            handle = self._factory(config)
        except Exception as e:
            logger.error(f"Failed to initialize AI client: {e}")
            self.invalidate()
            raise ProviderError(f"Failed to initialize AI service: {e}") from e

        self._handle = handle
        self._key = config
        return handle

    def invalidate(self) -> None:
        self._handle = None
        self._key = None


def to_sdk_part(part: RequestPart) -> types.Part:
    if isinstance(part, InlineImage):
        return types.Part.from_bytes(data=base64.b64decode(part.data_b64), mime_type=part.mime_type)
    if isinstance(part, Text):
        return types.Part.from_text(text=part.text)
    raise TypeError(f"Unsupported request part: {type(part).__name__}")


class GeminiServiceClient:
    """Performs the remote calls; every failure leaves as a ClassifiedError."""

    def __init__(
        self,
        resolver: Optional[ConfigResolver] = None,
        cache: Optional[ClientCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.resolver = resolver or ConfigResolver()
        self.cache = cache or ClientCache()
        self.settings = settings or Settings.from_env()

    def _client(self) -> Any:
        config = self.resolver.resolve()
        if config is None:
            raise ProviderNotConfigured(MISSING_KEY_MESSAGE)
        return self.cache.get_or_create(config)

    async def invoke(self, parts: Sequence[RequestPart], action: str) -> RawResponse:
        """Send an image editing request and return the raw candidate structure."""
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Invoking '{action}': {safe_repr({'parts': [asdict(p) for p in parts]})}")
        try:
            client = self._client()
            response = await client.aio.models.generate_content(
                model=self.settings.edit_model,
                contents=[to_sdk_part(p) for p in parts],
                config=types.GenerateContentConfig(response_modalities=['IMAGE', 'TEXT']),
            )
        except Exception as e:
            raise classify(e, action) from e
        return RawResponse.from_sdk(response)

    async def generate_from_text(self, prompt: str, aspect_ratio: str = '1:1') -> str:
        """Text-to-image via the Imagen model; returns a PNG data URL."""
        action = 'generate image'
        validate_aspect_ratio(aspect_ratio)
        try:
            client = self._client()
            response = await client.aio.models.generate_images(
                model=self.settings.image_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type='image/png',
                    aspect_ratio=aspect_ratio,
                ),
            )
        except Exception as e:
            raise classify(e, action) from e

        generated = getattr(response, 'generated_images', None) or []
        image = generated[0].image if generated else None
        image_bytes = getattr(image, 'image_bytes', None) if image is not None else None
        if not image_bytes:
            raise ClassifiedError(ErrorCategory.MALFORMED_RESPONSE, IMAGE_GENERATION_FAILED, action)
        return build_data_url('image/png', base64.b64encode(image_bytes).decode('ascii'))

    async def invoke_structured(self, parts: Sequence[RequestPart], schema: Any, action: str) -> Any:
        """Ask the text model for JSON matching `schema` and return the parsed value."""
        try:
            client = self._client()
            response = await client.aio.models.generate_content(
                model=self.settings.text_model,
                contents=[to_sdk_part(p) for p in parts],
                config=types.GenerateContentConfig(
                    response_mime_type='application/json',
                    response_schema=schema,
                ),
            )
            text = (response.text or '').strip()
            if not text:
                raise ClassifiedError(ErrorCategory.MALFORMED_RESPONSE, EMPTY_STRUCTURED_RESPONSE, action)
            return json.loads(text)
        except ClassifiedError:
            raise
        except Exception as e:
            raise classify(e, action) from e
