"""
Generation service access: SDK client, response interpretation and error classification.
"""

from .base import ProviderError, ProviderNotConfigured
from .errors import ClassifiedError, ErrorCategory, classify
from .gemini_client import ClientCache, GeminiServiceClient
from .response import (
    GenerationOutcome,
    Malformed,
    RawResponse,
    Refusal,
    SafetyBlocked,
    Success,
    interpret,
)

__all__ = [
    'ProviderError',
    'ProviderNotConfigured',
    'ClassifiedError',
    'ErrorCategory',
    'classify',
    'ClientCache',
    'GeminiServiceClient',
    'GenerationOutcome',
    'Malformed',
    'RawResponse',
    'Refusal',
    'SafetyBlocked',
    'Success',
    'interpret',
]
