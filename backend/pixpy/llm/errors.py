"""
Error classification for calls to the generation service.

Any failure raised while talking to the service is turned into a
ClassifiedError: a small category, a message fit for direct display, the
action that was being attempted, and the original cause.

Classification is data driven. The message basis is picked first (the
service-reported `error.message` wins over transport wrapper text), then the
rules in CLASSIFICATION_RULES are tried in order; the first match decides the
category and message. No match means Unknown with the raw message kept.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

import httpx
from google.genai import errors as genai_errors

from ..utils.logging import sanitize_string
from .base import ProviderNotConfigured

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    INVALID_CREDENTIAL = "InvalidCredential"
    NETWORK_FAILURE = "NetworkFailure"
    SERVICE_REFUSAL = "ServiceRefusal"
    SAFETY_BLOCK = "SafetyBlock"
    MALFORMED_RESPONSE = "MalformedResponse"
    UNKNOWN = "Unknown"


class ClassifiedError(Exception):
    """Terminal, user-presentable failure of one operation."""

    def __init__(
        self,
        category: ErrorCategory,
        user_message: str,
        action: str,
        cause: Any = None,
    ):
        self.category = category
        self.user_message = user_message
        self.action = action
        self.cause = cause
        super().__init__(self.display_message)

    @property
    def display_message(self) -> str:
        return f"Error occurred during '{self.action}': {self.user_message}"

    def __repr__(self) -> str:
        return f"ClassifiedError({self.category.value}, action={self.action!r}, message={self.user_message!r})"


INVALID_KEY_MESSAGE = 'API key is invalid. Please check the key you entered in settings.'
MISSING_KEY_MESSAGE = (
    'API key not found. Please enter your key in settings, '
    'or ensure the system API key is properly configured in the environment.'
)
NETWORK_MESSAGE = (
    'Communication with AI service failed. This may be caused by network issues or an invalid API key.'
)
UNKNOWN_MESSAGE = 'Unknown communication error'

TRANSPORT_EXCEPTIONS = (httpx.TransportError, ConnectionError, TimeoutError)


@dataclass(frozen=True)
class ClassificationRule:
    """One entry of the ordered rule table.

    `matches` receives (message basis, original exception). A rule with
    message None keeps the basis as the user-facing text.
    """
    name: str
    matches: Callable[[str, BaseException], bool]
    category: ErrorCategory
    message: Optional[str] = None


def _contains(*needles: str) -> Callable[[str, BaseException], bool]:
    return lambda message, _exc: any(needle in message for needle in needles)


def _transport_failure(message: str, exc: BaseException) -> bool:
    return 'xhr error' in message or isinstance(exc, TRANSPORT_EXCEPTIONS)


def _missing_credential(_message: str, exc: BaseException) -> bool:
    return isinstance(exc, ProviderNotConfigured)


CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        name='missing-api-key',
        matches=_missing_credential,
        category=ErrorCategory.INVALID_CREDENTIAL,
        message=MISSING_KEY_MESSAGE,
    ),
    ClassificationRule(
        name='invalid-api-key',
        matches=_contains('API key not valid'),
        category=ErrorCategory.INVALID_CREDENTIAL,
        message=INVALID_KEY_MESSAGE,
    ),
    ClassificationRule(
        name='transport',
        matches=_transport_failure,
        category=ErrorCategory.NETWORK_FAILURE,
        message=NETWORK_MESSAGE,
    ),
)


def _nested_json_message(text: str) -> Optional[str]:
    """Return error.message from a JSON error body, or None if text isn't one."""
    try:
        payload = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get('error')
    if isinstance(error, dict) and error.get('message'):
        return str(error['message'])
    return None


def message_basis(raw_error: BaseException) -> str:
    """Pick the text classification works on: the service's own message if available."""
    if isinstance(raw_error, genai_errors.APIError) and raw_error.message:
        return str(raw_error.message)
    raw_message = str(raw_error)
    nested = _nested_json_message(raw_message)
    if nested:
        return nested
    return raw_message or UNKNOWN_MESSAGE


def classify(raw_error: BaseException, action: str) -> ClassifiedError:
    """Normalize any failure into a ClassifiedError tagged with `action`."""
    if isinstance(raw_error, ClassifiedError):
        return raw_error

    basis = message_basis(raw_error)
    logger.error(f'API call for "{action}" failed: {sanitize_string(repr(raw_error))}')

    for rule in CLASSIFICATION_RULES:
        if rule.matches(basis, raw_error):
            logger.debug(f"Error for '{action}' matched rule {rule.name}")
            return ClassifiedError(rule.category, rule.message or basis, action, cause=raw_error)

    return ClassifiedError(ErrorCategory.UNKNOWN, basis, action, cause=raw_error)
