"""Header and log-field redaction.

Request headers and structured log fields may carry credentials (API keys,
bearer tokens, cookies).  Before any of them reaches a log line or a
``repr`` they go through :func:`redact_mapping`:

* values under a **sensitive key** (matched case-insensitively by
  substring, so ``APCA-API-SECRET-KEY`` and ``x-api-key`` both match) are
  replaced with a masked placeholder that keeps at most the last four
  characters;
* ``Bearer <token>`` fragments inside other string values are masked;
* nested mappings and lists are walked recursively.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

# Substrings: if any of these appear in a key name (case-insensitive), the
# value is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "private_key",
    "api_key",
    "api-key",
    "key-id",
})

_BEARER_RE = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)

# Values shorter than this are fully masked, never partially shown.
_MIN_SUFFIX_LENGTH = 12


def _is_sensitive(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    key_lower = key.lower()
    return any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS)


def mask_secret(value: Any) -> str:
    """Return a placeholder for *value* showing at most its last 4 characters."""
    if isinstance(value, str) and len(value) >= _MIN_SUFFIX_LENGTH:
        return f"<redacted:...{value[-4:]}>"
    return "<redacted>"


def _redact_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return redact_mapping(value)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    if isinstance(value, str):
        return _BEARER_RE.sub(lambda m: f"{m.group(1)}<redacted>", value)
    return value


def redact_mapping(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new dict with sensitive values masked.

    The input is never mutated.

    Examples
    --------
    >>> redact_mapping({"APCA-API-SECRET-KEY": "s3cr3t"})
    {'APCA-API-SECRET-KEY': '<redacted>'}
    >>> redact_mapping({"note": "Bearer abc.def"})
    {'note': 'Bearer <redacted>'}
    """
    result: dict[str, Any] = {}
    for key, value in data.items():
        if _is_sensitive(key):
            result[key] = mask_secret(value)
        else:
            result[key] = _redact_value(value)
    return result


def redact_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    """Mask credential-bearing headers, e.g. before logging a request."""
    if not headers:
        return {}
    return redact_mapping(dict(headers.items()))
