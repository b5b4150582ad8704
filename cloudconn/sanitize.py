"""Cleaning of canonical facts reported by clients."""

from __future__ import annotations

import re
from typing import Any, Mapping

_HEX32 = re.compile(r"^[0-9a-fA-F]{32}$")
_HYPHENATED = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_URN_PREFIX = "urn:uuid:"


def valid_uuid(s: str) -> bool:
    """Return True for a UUID in standard, braced, URN or plain-hex form."""
    if len(s) == 36:
        return bool(_HYPHENATED.match(s))
    if len(s) == 38:
        return s[0] == "{" and s[-1] == "}" and bool(_HYPHENATED.match(s[1:-1]))
    if len(s) == 45:
        return s[:9].lower() == _URN_PREFIX and bool(_HYPHENATED.match(s[9:]))
    if len(s) == 32:
        return bool(_HEX32.match(s))
    return False


def sanitize_canonical_facts(cf: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of the facts without an insights_id that is not a UUID."""
    if cf is None:
        return {}
    sanitized: dict[str, Any] = {}
    for key, value in cf.items():
        if key == "insights_id":
            if not isinstance(value, str):
                raise TypeError(f"insights_id must be a string, got {type(value).__name__}")
            if valid_uuid(value):
                sanitized[key] = value
        else:
            sanitized[key] = value
    return sanitized