"""Secret scrubbing for log output.

OAuth tokens and the cron secret travel through request headers, query
strings (Graph API) and integration rows. Anything that reaches a log record
goes through these helpers first.

Strings longer than MAX_STR_LOG are replaced by a length + digest marker and
never run through the regexes; all patterns are anchored on non-whitespace
runs so they stay linear.
"""

import hashlib
import re
import traceback
from typing import Any

MAX_STR_LOG: int = 2048
MAX_DEPTH: int = 6

REDACTED = "[REDACTED]"

# Dict keys whose values are always dropped (compared lower-cased)
_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "authorization",
    "cookie",
    "password",
    "token",
    "access_token",
    "accesstoken",
    "refresh_token",
    "refreshtoken",
    "client_secret",
    "cron_secret",
    "api_key",
    "secret",
    "email",
    "phone",
})

_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"Bearer \S+"),
    re.compile(r"access_token=[^&\s]+"),
    re.compile(r"refresh_token=[^&\s]+"),
    re.compile(r"client_secret=[^&\s]+"),
]


def is_sensitive_key(key: object) -> bool:
    return isinstance(key, str) and key.lower() in _SENSITIVE_KEYS


def sanitize_str(s: str) -> str:
    """Redact credentials embedded in a string; truncate oversized values."""
    if not isinstance(s, str):
        return s  # type: ignore[return-value]

    if len(s) > MAX_STR_LOG:
        digest = hashlib.sha256(s.encode("utf-8", errors="replace")).hexdigest()[:16]
        return f"[TRUNCATED len={len(s)} sha256={digest}]"

    result = s
    for pattern in _PATTERNS:
        result = pattern.sub(REDACTED, result)
    return result


def sanitize_obj(obj: Any, depth: int = 0) -> Any:
    """Recursively sanitize a log ``extra`` value."""
    if depth >= MAX_DEPTH:
        return "[DEPTH_LIMIT]"

    if isinstance(obj, dict):
        return {
            key: REDACTED
            if is_sensitive_key(key)
            else sanitize_obj(value, depth + 1)
            for key, value in obj.items()
        }

    if isinstance(obj, (list, tuple)):
        return [sanitize_obj(item, depth + 1) for item in obj]

    if isinstance(obj, str):
        return sanitize_str(obj)

    return obj


def sanitize_exc(exc_info: tuple) -> str:
    """Format an exc_info tuple into a redacted traceback string.

    Locals are never captured; they routinely hold tokens.
    """
    _type, value, _tb = exc_info
    if value is None:
        return ""
    try:
        te = traceback.TracebackException.from_exception(value, capture_locals=False)
        return sanitize_str("".join(te.format()))
    except Exception:
        return "[TRACEBACK_FORMAT_ERROR]"
