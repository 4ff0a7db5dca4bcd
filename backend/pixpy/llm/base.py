from __future__ import annotations


class ProviderNotConfigured(Exception):
    """Raised when no API key can be resolved from user settings or the environment."""


class ProviderError(Exception):
    """Raised when the SDK client cannot be constructed or returns an unusable result."""
