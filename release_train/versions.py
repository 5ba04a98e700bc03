"""Version parsing utilities.

Versions are plain major.minor.patch strings. Anything else (two or four
components, signs, pre-release or build metadata) is rejected as invalid
rather than coerced, since a bad version must never reach the remote.
"""

from __future__ import annotations

import json

from .models import Version


def _is_number(part: str) -> bool:
    # str.isdigit() also accepts superscripts and other unicode digits
    return part.isascii() and part.isdigit()


def parse_version(text: str) -> Version:
    """Parse a version string into a Version.

    Examples:
        "1.2.3" → valid, next_minor == "1.3.0"
        "1.2"   → invalid
        "a.b.c" → invalid
    """
    parts = text.split(".")
    if len(parts) != 3 or not all(_is_number(p) for p in parts):
        return Version(text=text)
    major, minor, patch = (int(p) for p in parts)
    return Version(text=text, major=major, minor=minor, patch=patch, is_valid=True)


def read_manifest_version(manifest_text: str) -> Version:
    """Extract and parse the "version" field of a JSON manifest.

    A manifest that is not a JSON object, or that has no string "version"
    field, yields an invalid Version.
    """
    try:
        doc = json.loads(manifest_text)
    except json.JSONDecodeError:
        return Version(text=manifest_text[:40])
    version = doc.get("version") if isinstance(doc, dict) else None
    if not isinstance(version, str):
        return Version(text=repr(version))
    return parse_version(version)
