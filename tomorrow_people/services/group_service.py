"""
tomorrow_people.services.group_service — Event Groups & Subscriptions
======================================================================

Hosts can file their events under a named group (``events.group_name``),
e.g. a recurring meetup.  A group is identified by its host plus its name;
there is no separate groups table.  Members subscribe to a group to keep
track of the host's series.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, func, select

from tomorrow_people.constants import as_utc, utcnow
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import Event, EventGroupSubscription, Profile
from tomorrow_people.services import event_access
from tomorrow_people.services.event_service import event_dict
from tomorrow_people.services.serializers import author_summaries

logger = logging.getLogger(__name__)


def _subscriber_count(session, creator_id: str, group_name: str) -> int:
    return session.scalar(
        select(func.count()).select_from(EventGroupSubscription).where(
            EventGroupSubscription.creator_id == creator_id,
            EventGroupSubscription.group_name == group_name,
        )
    ) or 0


def _subscription(session, subscriber_id: str, creator_id: str, group_name: str):
    return session.scalar(
        select(EventGroupSubscription).where(
            EventGroupSubscription.subscriber_id == subscriber_id,
            EventGroupSubscription.creator_id == creator_id,
            EventGroupSubscription.group_name == group_name,
        )
    )


def _clean_name(group_name: str) -> str:
    name = (group_name or "").strip()
    if not name:
        raise ValueError("Group name is required")
    return name


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------
def list_groups(engine: Engine, search: str | None = None) -> list[dict]:
    """Every group with a published public event, most recently active first."""
    stmt = (
        select(
            Event.created_by,
            Event.group_name,
            func.count().label("event_count"),
            func.max(Event.starts_at).label("latest_at"),
        )
        .where(
            Event.group_name.is_not(None),
            Event.published.is_(True),
            Event.is_private.is_(False),
        )
        .group_by(Event.created_by, Event.group_name)
    )
    term = (search or "").strip().lower()
    with get_session(engine) as session:
        rows = session.execute(stmt).all()
        hosts = author_summaries(session, [r.created_by for r in rows])
        groups = []
        for row in rows:
            host = hosts.get(row.created_by)
            host_name = (host or {}).get("full_name") or ""
            if term and term not in row.group_name.lower() and term not in host_name.lower():
                continue
            groups.append({
                "creator_id": row.created_by,
                "creator": host,
                "group_name": row.group_name,
                "event_count": row.event_count,
                "latest_at": as_utc(row.latest_at).isoformat() if row.latest_at else None,
                "subscriber_count": _subscriber_count(session, row.created_by, row.group_name),
            })
        groups.sort(key=lambda g: (g["latest_at"] or "", g["group_name"]), reverse=True)
        return groups


def list_host_groups(engine: Engine, creator_id: str) -> list[dict]:
    """A host's group names with how many published events each holds."""
    with get_session(engine) as session:
        rows = session.execute(
            select(Event.group_name, func.count().label("event_count"))
            .where(
                Event.created_by == creator_id,
                Event.group_name.is_not(None),
                Event.published.is_(True),
            )
            .group_by(Event.group_name)
            .order_by(Event.group_name)
        ).all()
        return [{"group_name": r.group_name, "event_count": r.event_count} for r in rows]


def get_group(
    engine: Engine,
    creator_id: str,
    group_name: str,
    viewer_id: str | None = None,
    *,
    now: datetime | None = None,
) -> dict | None:
    """A group page: upcoming and past events the viewer may see, plus subscription state."""
    now = now or utcnow()
    with get_session(engine) as session:
        host = session.get(Profile, creator_id)
        if host is None:
            return None
        events = session.scalars(
            select(Event)
            .where(
                Event.created_by == creator_id,
                Event.group_name == group_name,
                Event.published.is_(True),
            )
            .order_by(Event.starts_at.asc(), Event.id)
        ).all()
        events = [e for e in events if event_access.can_view(session, e, viewer_id)]
        upcoming = [e for e in events if as_utc(e.starts_at) >= now]
        past = [e for e in reversed(events) if as_utc(e.starts_at) < now]
        return {
            "creator_id": creator_id,
            "creator": author_summaries(session, [creator_id]).get(creator_id),
            "group_name": group_name,
            "upcoming": [event_dict(session, e, viewer_id) for e in upcoming],
            "past": [event_dict(session, e, viewer_id) for e in past],
            "subscriber_count": _subscriber_count(session, creator_id, group_name),
            "is_subscribed": bool(
                viewer_id and _subscription(session, viewer_id, creator_id, group_name)
            ),
        }


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------
def subscribe(engine: Engine, subscriber_id: str, creator_id: str, group_name: str) -> dict:
    """Follow a host's group.  Subscribing twice is a no-op."""
    group_name = _clean_name(group_name)
    with get_session(engine) as session:
        if session.get(Profile, creator_id) is None:
            raise ValueError("Host not found")
        row = _subscription(session, subscriber_id, creator_id, group_name)
        if row is None:
            row = EventGroupSubscription(
                subscriber_id=subscriber_id, creator_id=creator_id, group_name=group_name,
            )
            session.add(row)
            session.flush()
            logger.info("User %s subscribed to %s/%s", subscriber_id, creator_id, group_name)
        return {
            "creator_id": creator_id,
            "group_name": group_name,
            "is_subscribed": True,
            "subscriber_count": _subscriber_count(session, creator_id, group_name),
        }


def unsubscribe(engine: Engine, subscriber_id: str, creator_id: str, group_name: str) -> bool:
    with get_session(engine) as session:
        row = _subscription(session, subscriber_id, creator_id, (group_name or "").strip())
        if row is None:
            return False
        session.delete(row)
        return True


def list_subscriptions(engine: Engine, subscriber_id: str) -> list[dict]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(EventGroupSubscription)
            .where(EventGroupSubscription.subscriber_id == subscriber_id)
            .order_by(EventGroupSubscription.created_at.desc(), EventGroupSubscription.id.desc())
        ).all()
        hosts = author_summaries(session, [r.creator_id for r in rows])
        return [
            {
                "creator_id": r.creator_id,
                "creator": hosts.get(r.creator_id),
                "group_name": r.group_name,
            }
            for r in rows
        ]


def list_subscribers(
    engine: Engine, creator_id: str, group_name: str, actor_id: str,
) -> list[dict]:
    """Who follows one of the actor's own groups."""
    if actor_id != creator_id:
        raise PermissionError("Only the host can see who follows a group")
    with get_session(engine) as session:
        ids = session.scalars(
            select(EventGroupSubscription.subscriber_id)
            .where(
                EventGroupSubscription.creator_id == creator_id,
                EventGroupSubscription.group_name == group_name,
            )
            .order_by(EventGroupSubscription.created_at, EventGroupSubscription.id)
        ).all()
        people = author_summaries(session, ids)
        return [people[uid] for uid in ids if uid in people]
