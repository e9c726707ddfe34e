"""
Provider error classification.

Maps a raw provider failure to an OutcomeKind:
    TRANSIENT: quota / rate limit, try the next model with the same key
    PERMANENT: invalid or unauthorized key, revoke and move to the next key
    UNKNOWN  : anything else, treated like TRANSIENT by the dispatcher
"""

import re
from typing import Optional, Union

from .models import OutcomeKind

# Error message markers for classification
_QUOTA_MARKERS = ["quota", "rate limit", "resource exhausted", "resource_exhausted", "too many requests"]
_AUTH_MARKERS = [
    "api key not valid",
    "api_key_invalid",
    "invalid api key",
    "invalid_api_key",
    "api key expired",
    "unauthenticated",
]

_QUOTA_CODES = {429}
_AUTH_CODES = {401}

# SDK errors render as "<status> <REASON>. <details>"; only the leading token is a status
_LEADING_STATUS = re.compile(r"^\s*(\d{3})\b")


def error_code(error: Union[Exception, str]) -> Optional[int]:
    """Best-effort HTTP status code from a provider exception."""
    if isinstance(error, str):
        return None
    for attr in ("code", "status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def classify_error(error: Union[Exception, str]) -> OutcomeKind:
    """Classify a provider failure. Pure function."""
    s = str(error).lower()

    code = error_code(error)
    if code is None:
        match = _LEADING_STATUS.match(s)
        code = int(match.group(1)) if match else None
    if code in _AUTH_CODES:
        return OutcomeKind.PERMANENT
    if code in _QUOTA_CODES:
        return OutcomeKind.TRANSIENT

    if any(m in s for m in _AUTH_MARKERS):
        return OutcomeKind.PERMANENT
    if any(m in s for m in _QUOTA_MARKERS):
        return OutcomeKind.TRANSIENT
    return OutcomeKind.UNKNOWN
