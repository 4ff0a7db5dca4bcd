"""
Runtime configuration for the pixpy backend.

Credential and endpoint are resolved in layers on every call:
    1. User overrides (what the settings dialog stores)
    2. Environment defaults (.env is loaded once via python-dotenv)

Model ids and log level come from the environment only.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Protocol

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_EDIT_MODEL = "gemini-2.5-flash-image-preview"
DEFAULT_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"


class CredentialSource(Protocol):
    """Anything that can hand out an API key and an optional endpoint override."""

    def get_api_key(self) -> Optional[str]:
        ...

    def get_base_url(self) -> Optional[str]:
        ...


class UserOverrides:
    """In-memory stand-in for persisted user settings.

    Blank values count as "not set" so the environment default wins.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self._api_key = api_key
        self._base_url = base_url

    def set_api_key(self, api_key: Optional[str]) -> None:
        self._api_key = api_key

    def set_base_url(self, base_url: Optional[str]) -> None:
        self._base_url = base_url

    def get_api_key(self) -> Optional[str]:
        if self._api_key and self._api_key.strip() != '':
            return self._api_key
        return None

    def get_base_url(self) -> Optional[str]:
        if self._base_url and self._base_url.strip() != '':
            return self._base_url.strip()
        return None


class EnvironmentDefaults:
    """System-level credential taken from the process environment."""

    def get_api_key(self) -> Optional[str]:
        return os.getenv("GOOGLE_API_KEY") or os.getenv("API_KEY") or None

    def get_base_url(self) -> Optional[str]:
        base_url = os.getenv("GEMINI_BASE_URL")
        if base_url and base_url.strip():
            return base_url.strip()
        return None


@dataclass(frozen=True)
class ServiceConfig:
    """Connection settings for one invocation. Compared by value."""
    credential: str
    endpoint_override: Optional[str] = None


@dataclass
class Settings:
    edit_model: str = DEFAULT_EDIT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    text_model: str = DEFAULT_TEXT_MODEL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            edit_model=os.getenv("PIXPY_EDIT_MODEL", DEFAULT_EDIT_MODEL),
            image_model=os.getenv("PIXPY_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
            text_model=os.getenv("PIXPY_TEXT_MODEL", DEFAULT_TEXT_MODEL),
            log_level=os.getenv("PIXPY_LOG_LEVEL", "INFO").upper(),
        )


class ConfigResolver:
    """Derive a ServiceConfig from user overrides, falling back to the environment."""

    def __init__(
        self,
        overrides: Optional[CredentialSource] = None,
        defaults: Optional[CredentialSource] = None,
    ):
        self.overrides = overrides or UserOverrides()
        self.defaults = defaults or EnvironmentDefaults()

    def resolve_api_key(self) -> Optional[str]:
        try:
            api_key = self.overrides.get_api_key()
            if api_key:
                return api_key
        except Exception as e:
            logger.warning(f"Could not read user API key override: {e}")
        return self.defaults.get_api_key()

    def resolve_base_url(self) -> Optional[str]:
        try:
            base_url = self.overrides.get_base_url()
            if base_url:
                return base_url
        except Exception as e:
            logger.warning(f"Could not read user API base URL override: {e}")
        return self.defaults.get_base_url()

    def resolve(self) -> Optional[ServiceConfig]:
        """Return the current config, or None when no credential is available anywhere."""
        api_key = self.resolve_api_key()
        if not api_key:
            return None
        return ServiceConfig(credential=api_key, endpoint_override=self.resolve_base_url())
