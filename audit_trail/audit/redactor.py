"""Shallow redaction of sensitive request payload keys before they are embedded in a record."""

from collections.abc import Mapping
from typing import Any

SENSITIVE_FIELDS = ("password", "confirmPassword", "token", "secret", "key")
REDACTION_MARKER = "[REDACTED]"


def redact(payload: Any) -> Any:
    """
    Return a shallow copy of payload with top-level sensitive keys replaced.
    Nested objects are left as-is; non-mapping payloads are returned unchanged.
    """
    if not isinstance(payload, Mapping):
        return payload
    sanitized = dict(payload)
    for field in SENSITIVE_FIELDS:
        if field in sanitized:
            sanitized[field] = REDACTION_MARKER
    return sanitized
