"""Sanitization and validation for user-authored profile text.

Profile values are spliced verbatim into the instruction block of every
encounter prompt, so this module is the prompt-injection boundary for
profile data. Sanitize first, then validate the sanitized result.
"""

import re
from collections.abc import Mapping
from typing import Any

from .models import REQUIRED_FIELDS, VALID_STAKES, ProfileValidation

MAX_FIELD_LENGTH = 200

FORBIDDEN_KEYWORDS = (
    "return only",
    "output only",
    "ignore previous",
    "disregard",
    "instead of",
    "however",
    "but actually",
    "forget",
    "override",
    "system:",
    "assistant:",
    "user:",
    "<|",
    "|>",
    "json",
    "{",
    "}",
    "[",
    "]",
)

STRUCTURAL_CHARS_PATTERN = re.compile(r'[{}\[\]":]')
WHITESPACE_PATTERN = re.compile(r"\s+")
FORBIDDEN_PATTERNS = tuple(
    re.compile(re.escape(keyword), re.IGNORECASE) for keyword in FORBIDDEN_KEYWORDS
)

# Optional text fields that get the same treatment as required ones
OPTIONAL_TEXT_FIELDS = ("name", "description")


def _sanitize_once(value: str) -> str:
    value = STRUCTURAL_CHARS_PATTERN.sub("", value)
    for pattern in FORBIDDEN_PATTERNS:
        value = pattern.sub("", value)
    value = WHITESPACE_PATTERN.sub(" ", value)
    if len(value) > MAX_FIELD_LENGTH:
        value = value[:MAX_FIELD_LENGTH]
    return value.strip()


def sanitize_profile_value(value: Any) -> str:
    """Clean a single profile field.

    Strips structural characters, removes forbidden phrases, collapses
    whitespace, truncates and trims. The pass repeats until the value stops
    changing, since removing one phrase can join the text around it into
    another (``"ign" + "json" + "ore previous"``).

    Args:
        value: Raw field value; anything but a string becomes ""

    Returns:
        Sanitized string of at most MAX_FIELD_LENGTH characters
    """
    if not isinstance(value, str):
        return ""

    previous = None
    while previous != value:
        previous = value
        value = _sanitize_once(value)
    return value


def contains_forbidden_keyword(value: str) -> bool:
    """Check a value against the forbidden phrase list, ignoring case."""
    return any(pattern.search(value) for pattern in FORBIDDEN_PATTERNS)


def sanitize_profile(data: Mapping[str, Any]) -> dict[str, Any]:
    """Sanitize every text field of a placeholder-keyed profile dict.

    Required fields that are missing or empty are left as they are so that
    validation can report them. Stakes are lowercased.

    Args:
        data: Profile payload keyed by placeholder names

    Returns:
        A new, sanitized dict
    """
    sanitized = dict(data)

    for field in REQUIRED_FIELDS:
        if sanitized.get(field):
            sanitized[field] = sanitize_profile_value(sanitized[field])

    for field in OPTIONAL_TEXT_FIELDS:
        if sanitized.get(field):
            sanitized[field] = sanitize_profile_value(sanitized[field])

    stakes = sanitized.get("ENCOUNTER_STAKES")
    if isinstance(stakes, str):
        sanitized["ENCOUNTER_STAKES"] = stakes.lower()

    return sanitized


def validate_profile(data: Any) -> ProfileValidation:
    """Validate a profile payload.

    Checks presence and type of every required field, non-empty values,
    the stakes enum, and re-checks forbidden phrases and length on the
    (already sanitized) values.

    Args:
        data: Profile payload keyed by placeholder names

    Returns:
        ProfileValidation with every problem found
    """
    if not isinstance(data, Mapping):
        return ProfileValidation(valid=False, errors=["Profile must be an object"])

    errors: list[str] = []

    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if not value:
            errors.append(f"Missing required field: {field}")
        elif not isinstance(value, str):
            errors.append(f"Field {field} must be a string")
        elif not value.strip():
            errors.append(f"Field {field} cannot be empty")

    stakes = data.get("ENCOUNTER_STAKES")
    if isinstance(stakes, str) and stakes and stakes.lower() not in VALID_STAKES:
        errors.append('ENCOUNTER_STAKES must be "low", "medium", or "high"')

    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and contains_forbidden_keyword(value):
            errors.append(f"Field {field} contains forbidden keywords")

    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            errors.append(
                f"Field {field} exceeds maximum length of {MAX_FIELD_LENGTH} characters"
            )

    return ProfileValidation(valid=not errors, errors=errors)
