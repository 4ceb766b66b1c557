"""
tomorrow_people.engine.field_validation — Section profile field rules
======================================================================

Validates a single answer against a :class:`SectionProfileField`.  Checks
run in a fixed order and stop at the first failure:

required → (empty optional answers pass) → min length → max length →
pattern → type-specific format.

A pattern that does not compile is ignored rather than rejecting every
answer.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from tomorrow_people.database.models import FieldType

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_PHONE_RE = re.compile(r"[\d\s\-\+\(\)]+", re.ASCII)
_FIELD_NAME_RE = re.compile(r"[a-z][a-z0-9_]*")


@dataclass(frozen=True, slots=True)
class FieldValidation:
    is_valid: bool
    error: str | None = None


_OK = FieldValidation(True)


def option_values(options: list[Any] | None) -> list[str]:
    """Flatten stored options (``{"value", "label"}`` dicts or bare strings)."""
    values: list[str] = []
    for opt in options or []:
        if isinstance(opt, dict):
            values.append(str(opt.get("value", "")))
        else:
            values.append(str(opt))
    return values


def normalize_options(options: list[Any] | None) -> list[dict[str, str]]:
    """Coerce options to ``[{"value", "label"}]``, dropping blanks."""
    normalized: list[dict[str, str]] = []
    for opt in options or []:
        if isinstance(opt, dict):
            value = str(opt.get("value", "")).strip()
            label = str(opt.get("label") or value).strip()
        else:
            value = label = str(opt).strip()
        if value:
            normalized.append({"value": value, "label": label})
    return normalized


def slugify_field_name(label: str) -> str:
    """Derive a field_name from a human label (``"Favourite Tool"`` → ``favourite_tool``)."""
    slug = re.sub(r"[^a-z0-9]+", "_", label.strip().lower()).strip("_")
    if not slug or not slug[0].isalpha():
        slug = f"field_{slug}" if slug else "field"
    return slug


def is_valid_field_name(name: str) -> bool:
    return bool(_FIELD_NAME_RE.fullmatch(name))


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _is_number(value: str) -> bool:
    # float() accepts digit separators such as "1_000"
    if "_" in value:
        return False
    try:
        number = float(value)
    except ValueError:
        return False
    return not math.isnan(number)


def validate_field_value(value: str | None, field) -> FieldValidation:
    """Check *value* against the rules stored on *field*.

    *field* is a :class:`SectionProfileField` (or anything exposing the
    same attributes).
    """
    val = value if value is not None else ""
    label = field.field_label

    if field.is_required and not val.strip():
        return FieldValidation(False, f"{label} is required")

    if not val.strip():
        return _OK

    if field.min_length and len(val) < field.min_length:
        return FieldValidation(
            False, f"{label} must be at least {field.min_length} characters"
        )

    if field.max_length and len(val) > field.max_length:
        return FieldValidation(
            False, f"{label} must be no more than {field.max_length} characters"
        )

    if field.validation_pattern:
        try:
            pattern = re.compile(field.validation_pattern)
        except re.error:
            logger.warning(
                "Ignoring invalid validation pattern on field %s: %r",
                field.field_name, field.validation_pattern,
            )
        else:
            if not pattern.search(val):
                return FieldValidation(False, f"{label} format is invalid")

    field_type = field.field_type
    if field_type == FieldType.EMAIL:
        if not _EMAIL_RE.fullmatch(val):
            return FieldValidation(False, "Please enter a valid email address")
    elif field_type == FieldType.URL:
        if not _is_url(val):
            return FieldValidation(False, "Please enter a valid URL")
    elif field_type == FieldType.NUMBER:
        if not _is_number(val):
            return FieldValidation(False, "Please enter a valid number")
    elif field_type == FieldType.PHONE:
        if not _PHONE_RE.fullmatch(val):
            return FieldValidation(False, "Please enter a valid phone number")
    elif field_type == FieldType.SELECT:
        valid = option_values(field.field_options)
        if valid and val not in valid:
            return FieldValidation(False, "Please select a valid option")
    elif field_type == FieldType.MULTISELECT:
        valid = option_values(field.field_options)
        if valid:
            selected = [v.strip() for v in val.split(",")]
            if not all(v in valid for v in selected):
                return FieldValidation(False, "Please select valid options")

    return _OK
