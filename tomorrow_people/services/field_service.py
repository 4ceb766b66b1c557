"""
tomorrow_people.services.field_service — Section Profile Fields & Answers
==========================================================================

Section admins define custom profile questions; approved members answer
them.  Answers are validated with
:func:`tomorrow_people.engine.field_validation.validate_field_value` and a
save is all-or-nothing: if any field fails, nothing is written and the
per-field errors come back to the caller.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select

from tomorrow_people.constants import ALLOWED_PROFILE_FIELD_ATTRS, FIELD_TYPE_LABELS
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import (
    FieldType,
    Section,
    SectionProfileData,
    SectionProfileField,
)
from tomorrow_people.engine.field_validation import (
    is_valid_field_name,
    normalize_options,
    slugify_field_name,
    validate_field_value,
)
from tomorrow_people.services import section_service
from tomorrow_people.services.serializers import row_to_dict

logger = logging.getLogger(__name__)

_CHOICE_TYPES = {FieldType.SELECT, FieldType.MULTISELECT}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _field_dict(field: SectionProfileField) -> dict:
    data = row_to_dict(field)
    data["field_options"] = list(field.field_options or [])
    data["field_type_label"] = FIELD_TYPE_LABELS.get(field.field_type, field.field_type)
    return data


def _check_definition(values: dict) -> None:
    """Validate a complete field definition (after applying an update)."""
    if not (values.get("field_label") or "").strip():
        raise ValueError("Field label is required")
    field_type = values.get("field_type")
    if field_type not in set(FieldType):
        raise ValueError(f"Invalid field type '{field_type}'")
    if field_type in _CHOICE_TYPES and not values.get("field_options"):
        raise ValueError("Dropdown and multi-select fields need at least one option")
    min_len, max_len = values.get("min_length"), values.get("max_length")
    if min_len is not None and min_len < 0:
        raise ValueError("Minimum length cannot be negative")
    if max_len is not None and max_len < 1:
        raise ValueError("Maximum length must be at least 1")
    if min_len is not None and max_len is not None and min_len > max_len:
        raise ValueError("Minimum length cannot exceed maximum length")


def _coerce_value(value) -> str | None:
    """Turn API input into the stored text form."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v).strip() for v in value if str(v).strip())
    return str(value)


def _load_field_as_admin(session, field_id: int, actor_id: str) -> SectionProfileField | None:
    field = session.get(SectionProfileField, field_id)
    if field is None:
        return None
    if not section_service.is_admin(session, field.section_id, actor_id):
        raise PermissionError("Only section admins can manage profile fields")
    return field


# ---------------------------------------------------------------------------
# Field definitions
# ---------------------------------------------------------------------------
def list_fields(
    engine: Engine,
    section_id: int,
    viewer_id: str | None = None,
    *,
    include_inactive: bool = False,
) -> list[dict] | None:
    """Fields in display order; inactive ones only for admins who ask."""
    with get_session(engine) as session:
        section = session.get(Section, section_id)
        if section is None or not section_service.can_view(session, section, viewer_id):
            return None
        stmt = select(SectionProfileField).where(SectionProfileField.section_id == section_id)
        if not (include_inactive and section_service.is_admin(session, section_id, viewer_id)):
            stmt = stmt.where(SectionProfileField.is_active.is_(True))
        fields = session.scalars(
            stmt.order_by(SectionProfileField.display_order, SectionProfileField.id)
        ).all()
        return [_field_dict(f) for f in fields]


def create_field(
    engine: Engine,
    section_id: int,
    actor_id: str,
    *,
    field_label: str,
    field_type: str,
    field_name: str | None = None,
    **attrs,
) -> dict | None:
    values = {k: v for k, v in attrs.items() if k in ALLOWED_PROFILE_FIELD_ATTRS}
    values["field_label"] = (field_label or "").strip()
    values["field_type"] = field_type
    values["field_options"] = normalize_options(values.get("field_options"))
    _check_definition(values)

    name = (field_name or "").strip().lower() or slugify_field_name(values["field_label"])
    if not is_valid_field_name(name):
        raise ValueError(
            "Field name must start with a letter and contain only lowercase letters, digits and underscores"
        )

    with get_session(engine) as session:
        if session.get(Section, section_id) is None:
            return None
        if not section_service.is_admin(session, section_id, actor_id):
            raise PermissionError("Only section admins can manage profile fields")
        clash = session.scalar(
            select(SectionProfileField.id).where(
                SectionProfileField.section_id == section_id,
                SectionProfileField.field_name == name,
            )
        )
        if clash is not None:
            raise ValueError(f"A field named '{name}' already exists in this section")

        if values.get("display_order") is None:
            last = session.scalar(
                select(func.max(SectionProfileField.display_order))
                .where(SectionProfileField.section_id == section_id)
            )
            values["display_order"] = 0 if last is None else last + 1
        values.setdefault("is_active", True)
        values.setdefault("is_required", False)

        field = SectionProfileField(
            section_id=section_id, field_name=name, created_by=actor_id, **values,
        )
        session.add(field)
        session.flush()
        session.refresh(field)
        logger.info("User %s added field %s (%s) to section %s", actor_id, name, field_type, section_id)
        return _field_dict(field)


def update_field(engine: Engine, field_id: int, actor_id: str, **attrs) -> dict | None:
    """Edit a field definition.  ``field_name`` is fixed once created."""
    updates = {k: v for k, v in attrs.items() if k in ALLOWED_PROFILE_FIELD_ATTRS}
    if "field_options" in updates:
        updates["field_options"] = normalize_options(updates["field_options"])
    if "field_label" in updates:
        updates["field_label"] = (updates["field_label"] or "").strip()

    with get_session(engine) as session:
        field = _load_field_as_admin(session, field_id, actor_id)
        if field is None:
            return None
        merged = {key: getattr(field, key) for key in ALLOWED_PROFILE_FIELD_ATTRS}
        merged.update(updates)
        _check_definition(merged)
        for key, value in updates.items():
            setattr(field, key, value)
        session.flush()
        session.refresh(field)
        return _field_dict(field)


def deactivate_field(engine: Engine, field_id: int, actor_id: str) -> bool:
    """Hide a field from members; stored answers are kept."""
    with get_session(engine) as session:
        field = _load_field_as_admin(session, field_id, actor_id)
        if field is None:
            return False
        field.is_active = False
        logger.info("User %s deactivated field %s", actor_id, field_id)
        return True


def reorder_fields(
    engine: Engine, section_id: int, actor_id: str, ordered_ids: list[int],
) -> list[dict] | None:
    """Persist a drag-and-drop order.  *ordered_ids* must list every field once."""
    with get_session(engine) as session:
        if session.get(Section, section_id) is None:
            return None
        if not section_service.is_admin(session, section_id, actor_id):
            raise PermissionError("Only section admins can manage profile fields")
        fields = {
            f.id: f for f in session.scalars(
                select(SectionProfileField).where(SectionProfileField.section_id == section_id)
            ).all()
        }
        if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(fields):
            raise ValueError("Field order must list each of the section's fields exactly once")
        for position, fid in enumerate(ordered_ids):
            fields[fid].display_order = position
        session.flush()
        return [_field_dict(fields[fid]) for fid in ordered_ids]


# ---------------------------------------------------------------------------
# Member answers
# ---------------------------------------------------------------------------
def get_profile_data(
    engine: Engine, section_id: int, user_id: str, viewer_id: str | None = None,
) -> dict[str, str | None] | None:
    """``{field_name: value}`` for the user's answers to active fields."""
    with get_session(engine) as session:
        section = session.get(Section, section_id)
        if section is None or not section_service.can_view(session, section, viewer_id):
            return None
        rows = session.execute(
            select(SectionProfileField.field_name, SectionProfileData.value)
            .join(SectionProfileField, SectionProfileField.id == SectionProfileData.field_id)
            .where(
                SectionProfileData.section_id == section_id,
                SectionProfileData.user_id == user_id,
                SectionProfileField.is_active.is_(True),
            )
        ).all()
        return {name: value for name, value in rows}


def save_profile_data(
    engine: Engine, section_id: int, user_id: str, values: dict,
) -> dict | None:
    """Validate and store the member's answers.

    *values* maps field_name to the answer (strings; lists for
    multi-select; booleans for checkboxes).  Fields left out keep their
    stored value and are validated with it, so a required field with no
    stored answer must be supplied.

    Returns ``{"saved": bool, "errors": {field_name: message}, "data": {...}}``.
    """
    with get_session(engine) as session:
        if session.get(Section, section_id) is None:
            return None
        if not section_service.is_approved(session, section_id, user_id):
            raise PermissionError("Only approved members can fill out section profile fields")

        fields = session.scalars(
            select(SectionProfileField)
            .where(SectionProfileField.section_id == section_id,
                   SectionProfileField.is_active.is_(True))
            .order_by(SectionProfileField.display_order, SectionProfileField.id)
        ).all()
        by_name = {f.field_name: f for f in fields}
        unknown = sorted(set(values) - set(by_name))
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(unknown)}")

        stored = {
            row.field_id: row for row in session.scalars(
                select(SectionProfileData).where(
                    SectionProfileData.section_id == section_id,
                    SectionProfileData.user_id == user_id,
                )
            ).all()
        }

        errors: dict[str, str] = {}
        final: dict[str, str | None] = {}
        for field in fields:
            if field.field_name in values:
                value = _coerce_value(values[field.field_name])
            else:
                existing = stored.get(field.id)
                value = existing.value if existing else None
            check = validate_field_value(value, field)
            if not check.is_valid:
                errors[field.field_name] = check.error
            final[field.field_name] = value

        if errors:
            return {"saved": False, "errors": errors, "data": final}

        for name in values:
            field = by_name[name]
            row = stored.get(field.id)
            if row is None:
                session.add(SectionProfileData(
                    section_id=section_id, user_id=user_id, field_id=field.id, value=final[name],
                ))
            else:
                row.value = final[name]
        session.flush()
        logger.info("User %s saved %d section field(s) in section %s", user_id, len(values), section_id)
        return {"saved": True, "errors": {}, "data": final}
