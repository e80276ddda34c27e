"""Environment-backed settings lookup.

Modules read settings through :func:`get_secret` so that quoting and
unfilled ``.env`` template values are handled in one place.
"""
from __future__ import annotations

import os
from typing import Mapping, Optional

_EMPTY_MARKERS = {"", "none", "null"}
_PLACEHOLDER_PREFIXES = ("paste_", "paste-", "your_", "your-", "replace_me", "changeme", "xxx")
_PLACEHOLDER_SUFFIXES = ("_here", "-here")


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1].strip()
    return value


def _normalize(value: object) -> str:
    """Trimmed value, or "" for empty markers and template placeholders."""
    text = _strip_quotes(str(value or "").strip())
    lowered = text.lower()
    if lowered in _EMPTY_MARKERS:
        return ""
    if lowered.startswith(_PLACEHOLDER_PREFIXES) or lowered.endswith(_PLACEHOLDER_SUFFIXES):
        return ""
    return text


def get_secret(name: str, default: str = "", environ: Optional[Mapping[str, str]] = None) -> str:
    """Look ``name`` up as given, lower-cased and upper-cased, first hit wins."""
    source = os.environ if environ is None else environ
    for key in dict.fromkeys((name, name.lower(), name.upper())):
        value = _normalize(source.get(key, ""))
        if value:
            return value
    return _normalize(default)
