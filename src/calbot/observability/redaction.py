"""Redaction helpers for safe logging.

Chat text, access tokens and LINE identifiers are user data. Log lengths,
hashes and short prefixes instead of the values themselves.
"""

import hashlib
import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# LINE user/group/room ids: U/C/R followed by 32 hex chars
_LINE_ID_PATTERN = re.compile(r"\b[UCR][0-9a-f]{32}\b")

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Redact PII patterns from a string."""
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    result = _LINE_ID_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # structure only
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def hash_identifier(value: str) -> str:
    """Non-reversible short hash of an identifier (first 12 hex chars of sha256)."""
    return hashlib.sha256(value.encode()).hexdigest()[:12]


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
