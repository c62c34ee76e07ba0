"""
Input validation utilities.
"""

import re
from typing import Iterable, List, Optional

from exceptions import ValidationError

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def require_text(value: Optional[str], label: str) -> str:
    """
    Ensure a required text field is present and not blank.

    Args:
        value: Raw value from the request body.
        label: Field label used in the error message, e.g. "Folder name".

    Returns:
        The value with surrounding whitespace removed.

    Raises:
        ValidationError: If the value is missing, not a string, or blank.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def validate_color(color: str) -> str:
    """Check a tag color is a CSS hex color (#RGB, #RRGGBB or #RRGGBBAA)."""
    if not _HEX_COLOR.match(color or ""):
        raise ValidationError(f"Invalid color: {color!r}")
    return color


def parse_tags(tags: Optional[str]) -> List[str]:
    """
    Split a denormalized comma-separated tag string.

    Names are trimmed, empty entries dropped and duplicates removed
    (first occurrence wins, order preserved).
    """
    if not tags:
        return []
    seen = set()
    names = []
    for raw in tags.split(","):
        name = raw.strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def join_tags(names: Iterable[str]) -> str:
    """Inverse of parse_tags: build the canonical stored tag string."""
    return ", ".join(names)
