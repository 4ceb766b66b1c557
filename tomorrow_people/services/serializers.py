"""
tomorrow_people.services.serializers — Row → dict helpers
==========================================================

Services hand plain dicts to the API layer so no ORM instance ever outlives
its session.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from tomorrow_people.constants import as_utc
from tomorrow_people.database.models import Profile


def row_to_dict(obj: Any, *, exclude: tuple[str, ...] = ()) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        if col.key in exclude:
            continue
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = as_utc(val).isoformat()
        result[col.name] = val
    return result


def author_summaries(session: Session, user_ids) -> dict[str, dict]:
    """Map user ids to ``{id, full_name, profile_picture_url}``."""
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    rows = session.execute(
        select(Profile.id, Profile.full_name, Profile.profile_picture_url)
        .where(Profile.id.in_(ids))
    ).all()
    return {
        row.id: {
            "id": row.id,
            "full_name": row.full_name,
            "profile_picture_url": row.profile_picture_url,
        }
        for row in rows
    }
