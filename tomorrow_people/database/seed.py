"""
tomorrow_people.database.seed — Default Channel Categories
===========================================================

Sidebar categories seeded on first startup so new channels have somewhere
to live.  Idempotent — only inserts names that don't already exist, and
never touches categories an admin has edited or reordered.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from tomorrow_people.database.models import ChannelCategory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default category catalogue
# ---------------------------------------------------------------------------
DEFAULT_CATEGORIES: list[tuple[str, str, str]] = [
    ("General", "Community-wide conversation", "hash"),
    ("Events", "Chat attached to events", "calendar"),
    ("Sections", "Chat for each section", "users"),
    ("Random", "Off-topic", "coffee"),
]
"""Each entry is ``(name, description, icon)``; list order is display order."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_channel_categories(engine: Engine) -> None:
    """Insert default channel categories that don't yet exist."""
    session = Session(engine)
    inserted = 0
    try:
        existing = set(session.scalars(select(ChannelCategory.name)).all())
        for order, (name, description, icon) in enumerate(DEFAULT_CATEGORIES):
            if name in existing:
                continue
            session.add(ChannelCategory(
                name=name,
                description=description,
                icon=icon,
                display_order=order,
            ))
            inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default channel categories.", inserted)


def category_id_by_name(session: Session, name: str) -> int | None:
    """Return the id of the category called *name*, or None."""
    return session.scalar(select(ChannelCategory.id).where(ChannelCategory.name == name))
