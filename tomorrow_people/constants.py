"""
tomorrow_people.constants — Shared Constants & Helpers
=======================================================

Single source of truth for presentation labels, allow-lists and the small
helpers several services need.  Import from here instead of duplicating in
services and routes.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Section profile field presentation
# ---------------------------------------------------------------------------
FIELD_TYPE_LABELS: dict[str, str] = {
    "text": "Short Text",
    "textarea": "Long Text",
    "select": "Dropdown",
    "multiselect": "Multi-Select",
    "checkbox": "Yes/No Toggle",
    "number": "Number",
    "date": "Date",
    "url": "URL Link",
    "email": "Email",
    "phone": "Phone Number",
}

# ---------------------------------------------------------------------------
# Profile links
# ---------------------------------------------------------------------------
LINK_PLATFORMS: frozenset[str] = frozenset({
    "instagram", "linkedin", "twitter", "github", "website", "custom",
})

# ---------------------------------------------------------------------------
# Update allow-lists (fields a caller may set through PATCH bodies)
# ---------------------------------------------------------------------------
ALLOWED_PROFILE_FIELDS: set[str] = {
    "full_name", "bio", "phone", "profile_picture_url", "is_private",
}

ALLOWED_EVENT_FIELDS: set[str] = {
    "title", "description", "location", "starts_at", "ends_at", "image_url",
    "tags", "group_name", "published", "is_private", "rsvp_deadline", "max_capacity",
    "waitlist_enabled", "auto_confirm_waitlist", "guest_list_visibility",
}

ALLOWED_IDEA_FIELDS: set[str] = {
    "title", "description", "statement", "type", "category", "image_url",
    "tags", "expires_at", "is_active",
}

ALLOWED_SECTION_FIELDS: set[str] = {
    "name", "description", "image_url", "is_public", "requires_approval",
}

ALLOWED_PROJECT_FIELDS: set[str] = {
    "title", "summary", "description", "status", "category", "tags", "image_url",
    "gallery_images", "fundraising_enabled", "fundraising_goal", "start_date",
    "target_completion_date", "actual_completion_date", "is_public",
}

ALLOWED_PROFILE_FIELD_ATTRS: set[str] = {
    "field_label", "field_type", "field_options", "placeholder", "help_text",
    "default_value", "is_required", "min_length", "max_length",
    "validation_pattern", "display_order", "is_active",
}

# Channel roles allowed to moderate members and pins
MODERATOR_ROLES: frozenset[str] = frozenset({"owner", "admin", "moderator"})

# Project contributor roles: who manages the project and who is on the team
PROJECT_ADMIN_ROLES: frozenset[str] = frozenset({"creator", "admin"})
PROJECT_TEAM_ROLES: frozenset[str] = frozenset({"creator", "admin", "contributor"})


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Text processing helpers
# ---------------------------------------------------------------------------
_MENTION_REGEX = re.compile(r"@(\w+)")


def extract_mentions(text: str) -> list[str]:
    """Return the distinct ``@handle`` tokens in *text*, lower-cased, in order."""
    seen: list[str] = []
    for handle in _MENTION_REGEX.findall(text):
        handle = handle.lower()
        if handle not in seen:
            seen.append(handle)
    return seen
