"""
tomorrow_people.services.profile_service — Profiles, Links & Directory
=======================================================================

Every authenticated user owns exactly one ``profiles`` row keyed by the
identity provider's user id.  :func:`ensure_profile` creates it on the
first request; it never overwrites what the member has since edited.

The directory lists public profiles plus the viewer's own, searchable over
name, e-mail and bio.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from sqlalchemy import Engine, func, or_, select

from tomorrow_people.constants import ALLOWED_PROFILE_FIELDS, LINK_PLATFORMS
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import Profile, ProfileLink
from tomorrow_people.services import upload_service
from tomorrow_people.services.serializers import row_to_dict

logger = logging.getLogger(__name__)

DIRECTORY_SORTS = ("latest", "first", "alphabetical")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def default_full_name(email: str | None, full_name: str | None) -> str:
    """Name for a brand-new profile: metadata name, else e-mail local part, else "User"."""
    if full_name and full_name.strip():
        return full_name.strip()
    if email and "@" in email:
        local = email.split("@", 1)[0].strip()
        if local:
            return local
    return "User"


def _profile_dict(profile: Profile, viewer_id: str | None = None) -> dict:
    data = row_to_dict(profile)
    # E-mail addresses are only shown to their owner
    if viewer_id != profile.id:
        data.pop("email", None)
    return data


def _link_dict(link: ProfileLink) -> dict:
    return {
        "id": link.id,
        "platform": link.platform,
        "label": link.label,
        "url": link.url,
        "display_order": link.display_order,
    }


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------
def ensure_profile(
    engine: Engine,
    user_id: str,
    email: str | None = None,
    full_name: str | None = None,
) -> dict:
    """Return the profile for *user_id*, creating it when missing."""
    with get_session(engine) as session:
        profile = session.get(Profile, user_id)
        if profile is None:
            profile = Profile(
                id=user_id,
                email=email,
                full_name=default_full_name(email, full_name),
                is_private=False,
            )
            session.add(profile)
            session.flush()
            session.refresh(profile)
            logger.info("Created profile for user %s (%s)", user_id, profile.full_name)
        return _profile_dict(profile, user_id)


def get_profile(engine: Engine, user_id: str, viewer_id: str | None = None) -> dict | None:
    """Fetch one profile with its active links.

    Private profiles are still returned here; privacy only hides them from
    the directory listing.
    """
    with get_session(engine) as session:
        profile = session.get(Profile, user_id)
        if profile is None:
            return None
        data = _profile_dict(profile, viewer_id)
        data["links"] = [_link_dict(link) for link in profile.links if link.is_active]
        return data


def update_profile(engine: Engine, user_id: str, **fields) -> dict | None:
    """Apply whitelisted profile edits.  Unknown keys are ignored."""
    updates = {k: v for k, v in fields.items() if k in ALLOWED_PROFILE_FIELDS}
    if "full_name" in updates:
        name = (updates["full_name"] or "").strip()
        if not name:
            raise ValueError("Full name cannot be empty")
        updates["full_name"] = name

    with get_session(engine) as session:
        profile = session.get(Profile, user_id)
        if profile is None:
            return None
        old_picture = profile.profile_picture_url
        for key, value in updates.items():
            setattr(profile, key, value)
        session.flush()
        session.refresh(profile)
        result = _profile_dict(profile, user_id)
    upload_service.release_replaced(old_picture, result["profile_picture_url"])
    return result


def list_directory(
    engine: Engine,
    viewer_id: str | None = None,
    search: str | None = None,
    sort: str = "latest",
) -> list[dict]:
    """Directory listing: public profiles plus the viewer's own."""
    if sort not in DIRECTORY_SORTS:
        raise ValueError(f"Unknown sort '{sort}'. Expected one of: {', '.join(DIRECTORY_SORTS)}")

    stmt = select(Profile)
    if viewer_id:
        stmt = stmt.where(or_(Profile.is_private.is_(False), Profile.id == viewer_id))
    else:
        stmt = stmt.where(Profile.is_private.is_(False))

    term = (search or "").strip().lower()
    if term:
        stmt = stmt.where(or_(
            func.lower(Profile.full_name).contains(term, autoescape=True),
            func.lower(func.coalesce(Profile.email, "")).contains(term, autoescape=True),
            func.lower(func.coalesce(Profile.bio, "")).contains(term, autoescape=True),
        ))

    if sort == "first":
        stmt = stmt.order_by(Profile.created_at.asc(), Profile.id.asc())
    elif sort == "alphabetical":
        stmt = stmt.order_by(func.lower(Profile.full_name).asc(), Profile.id.asc())
    else:
        stmt = stmt.order_by(Profile.created_at.desc(), Profile.id.asc())

    with get_session(engine) as session:
        return [_profile_dict(p, viewer_id) for p in session.scalars(stmt).all()]


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------
def list_links(engine: Engine, user_id: str) -> list[dict]:
    with get_session(engine) as session:
        links = session.scalars(
            select(ProfileLink)
            .where(ProfileLink.user_id == user_id, ProfileLink.is_active.is_(True))
            .order_by(ProfileLink.display_order, ProfileLink.id)
        ).all()
        return [_link_dict(link) for link in links]


def set_links(engine: Engine, user_id: str, links: list[dict]) -> list[dict]:
    """Replace the member's links with *links*, keeping the given order.

    Each item is ``{"platform", "url", "label"?}``.  ``custom`` links need
    a label; URLs must be http(s).
    """
    cleaned: list[tuple[str, str | None, str]] = []
    seen: set[tuple[str, str | None]] = set()
    for item in links:
        platform = (item.get("platform") or "").strip().lower()
        url = (item.get("url") or "").strip()
        label = (item.get("label") or "").strip() or None
        if platform not in LINK_PLATFORMS:
            raise ValueError(f"Unknown link platform '{platform}'")
        if platform == "custom" and not label:
            raise ValueError("Custom links need a label")
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid URL for {platform} link: {url!r}")
        if (platform, label) in seen:
            raise ValueError(f"Duplicate {platform} link")
        seen.add((platform, label))
        cleaned.append((platform, label, url))

    with get_session(engine) as session:
        if session.get(Profile, user_id) is None:
            raise ValueError("Profile not found")
        for old in session.scalars(
            select(ProfileLink).where(ProfileLink.user_id == user_id)
        ).all():
            session.delete(old)
        session.flush()

        for order, (platform, label, url) in enumerate(cleaned):
            session.add(ProfileLink(
                user_id=user_id,
                platform=platform,
                label=label,
                url=url,
                display_order=order,
                is_active=True,
            ))
        session.flush()
        rows = session.scalars(
            select(ProfileLink)
            .where(ProfileLink.user_id == user_id)
            .order_by(ProfileLink.display_order)
        ).all()
        logger.info("User %s saved %d profile links", user_id, len(rows))
        return [_link_dict(link) for link in rows]
