"""
Logging helpers that keep API keys and image payloads out of log files.

Raw SDK errors often echo the request URL (with ?key=...) or the request
headers, and request payloads carry megabytes of base64. Everything that
goes to a logger from the service layer passes through these helpers.
"""

import re
from typing import Any, Dict, Optional


REDACTED = '***REDACTED***'

# Patterns to detect credentials inside free text
SECRET_PATTERNS = [
    # JSON style
    (re.compile(r'("(?:api_?key|apiKey|x-goog-api-key|token|secret)"\s*:\s*")[^"]*(")', re.IGNORECASE), rf'\1{REDACTED}\2'),
    # repr() style
    (re.compile(r"('(?:api_?key|apiKey|x-goog-api-key|token|secret)'\s*:\s*')[^']*(')", re.IGNORECASE), rf"\1{REDACTED}\2"),
    # Query string style (Google endpoints accept ?key=...)
    (re.compile(r'([?&](?:key|api_key|token)=)[^\s&"\']+', re.IGNORECASE), rf'\1{REDACTED}'),
    # Bare Google API keys
    (re.compile(r'AIza[0-9A-Za-z_\-]{35}'), REDACTED),
]

# Long base64 runs (inline image data) are shortened rather than redacted
BASE64_RUN = re.compile(r'[A-Za-z0-9+/]{200,}={0,2}')

SECRET_FIELDS = {'api_key', 'apikey', 'credential', 'token', 'secret', 'x-goog-api-key'}
PAYLOAD_FIELDS = {'data', 'data_b64', 'image_bytes'}


def sanitize_string(text: str) -> str:
    """Replace credentials in text and collapse long base64 runs."""
    if not text:
        return text

    result = text
    for pattern, replacement in SECRET_PATTERNS:
        result = pattern.sub(replacement, result)
    result = BASE64_RUN.sub(lambda m: f"<{len(m.group(0))} base64 chars>", result)
    return result


def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively sanitize a request/response dictionary.

    Secret fields are redacted, binary payload fields are replaced by their length.
    """
    if not isinstance(data, dict):
        return data

    result = {}
    for key, value in data.items():
        key_lower = str(key).lower()

        if key_lower in SECRET_FIELDS:
            result[key] = REDACTED
        elif key_lower in PAYLOAD_FIELDS and isinstance(value, (str, bytes)):
            result[key] = f"<{len(value)} bytes>"
        elif isinstance(value, dict):
            result[key] = sanitize_dict(value)
        elif isinstance(value, list):
            result[key] = [sanitize_dict(item) if isinstance(item, dict) else item for item in value]
        elif isinstance(value, str):
            result[key] = sanitize_string(value)
        else:
            result[key] = value

    return result


def mask_credential_value(value: Optional[str], show_suffix: int = 4) -> str:
    """
    Mask a credential, keeping a short suffix so keys can be told apart in logs.

    Returns "***" for empty or short values.
    """
    if not value:
        return '***'
    if len(value) < 12 or show_suffix <= 0:
        return '***'
    return f"***{value[-show_suffix:]}"


def safe_repr(obj: Any, max_length: int = 300) -> str:
    """Sanitized, length-limited repr for log lines."""
    if isinstance(obj, dict):
        obj = sanitize_dict(obj)

    sanitized = sanitize_string(repr(obj))
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + '...(truncated)'
    return sanitized
