"""Identifier sanitization shared by links, joints, materials and file names."""

import re

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")
_LEADING_DIGIT = re.compile(r"^[0-9]")


def sanitize_name(name: str) -> str:
    """Turn an arbitrary CAD name into a URDF-safe lower-case identifier.

    >>> sanitize_name("Left Arm (v2)")
    'left_arm__v2_'
    >>> sanitize_name("2ndLink")
    '_2ndlink'
    """
    cleaned = _INVALID_CHARS.sub("_", name)
    cleaned = _LEADING_DIGIT.sub(lambda m: "_" + m.group(0), cleaned)
    return cleaned.lower()


def unique_name(name: str, taken: set) -> str:
    """Return ``name`` or the first free ``name_N`` (N >= 2), and reserve it."""
    candidate = name
    counter = 2
    while candidate in taken:
        candidate = f"{name}_{counter}"
        counter += 1
    taken.add(candidate)
    return candidate
