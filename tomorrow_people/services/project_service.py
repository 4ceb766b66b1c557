"""
tomorrow_people.services.project_service — Projects, Team, Updates & Discussion
================================================================================

A project is something members build together.  The creator is stored as
the first contributor (role ``creator``); admins share the management
rights.  Anyone who can see a project may join it as a ``contributor``
(team) or a ``supporter``, optionally pledging an amount that is added to
``funds_raised``.

Visibility: public projects are open to everyone; private ones to their
creator and contributors only.

Team members (creator, admins, contributors) are kept in the project's
chat channels; supporters are not.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, or_, select

from tomorrow_people.constants import (
    ALLOWED_PROJECT_FIELDS,
    PROJECT_ADMIN_ROLES,
    PROJECT_TEAM_ROLES,
    as_utc,
    utcnow,
)
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import (
    Channel,
    ChannelRole,
    ContributorRole,
    Profile,
    Project,
    ProjectComment,
    ProjectContributor,
    ProjectReaction,
    ProjectReactionType,
    ProjectStatus,
    ProjectUpdate,
    ProjectUpdateType,
)
from tomorrow_people.services import channel_service, upload_service
from tomorrow_people.services.serializers import author_summaries, row_to_dict

logger = logging.getLogger(__name__)

PROJECT_FILTERS = ("all", "active", "completed", "fundraising", "featured")
PROJECT_SORTS = ("newest", "popular", "funded")

_ROLE_ORDER = {
    ContributorRole.CREATOR: 0,
    ContributorRole.ADMIN: 1,
    ContributorRole.CONTRIBUTOR: 2,
    ContributorRole.SUPPORTER: 3,
}
_SELF_JOIN_ROLES = frozenset({ContributorRole.CONTRIBUTOR, ContributorRole.SUPPORTER})


# ---------------------------------------------------------------------------
# Session-level helpers
# ---------------------------------------------------------------------------
def contributor_row(session, project_id: int, user_id: str | None) -> ProjectContributor | None:
    if not user_id:
        return None
    return session.scalar(
        select(ProjectContributor).where(
            ProjectContributor.project_id == project_id, ProjectContributor.user_id == user_id,
        )
    )


def is_admin(session, project_id: int, user_id: str | None) -> bool:
    row = contributor_row(session, project_id, user_id)
    return row is not None and row.role in PROJECT_ADMIN_ROLES


def can_view(session, project: Project, user_id: str | None) -> bool:
    if project.is_public or project.creator_id == user_id:
        return True
    return contributor_row(session, project.id, user_id) is not None


def funding_progress(raised: float | None, goal: float | None) -> float | None:
    """Percent of the goal raised, one decimal; None without a goal."""
    if not goal or goal <= 0:
        return None
    return round((raised or 0) * 100 / goal, 1)


def _clean_tags(tags) -> list[str]:
    cleaned: list[str] = []
    for tag in tags or []:
        tag = str(tag).strip().lower()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def _validate(values: dict) -> None:
    """Check a full set of project values (after applying an update)."""
    if not (values.get("title") or "").strip():
        raise ValueError("Title is required")
    if not (values.get("description") or "").strip():
        raise ValueError("Description is required")
    status = values.get("status")
    if status is not None and status not in set(ProjectStatus):
        raise ValueError(f"Invalid project status '{status}'")
    goal = values.get("fundraising_goal")
    if goal is not None and goal <= 0:
        raise ValueError("Fundraising goal must be positive")
    if values.get("fundraising_enabled") and goal is None:
        raise ValueError("Set a fundraising goal to raise funds")
    start = as_utc(values.get("start_date"))
    target = as_utc(values.get("target_completion_date"))
    if start is not None and target is not None and target < start:
        raise ValueError("Target completion date must be after the start date")


def _project_channels(session, project_id: int) -> list[Channel]:
    return list(session.scalars(select(Channel).where(Channel.project_id == project_id)).all())


def _sync_channels(session, project_id: int, user_id: str, role: str | None) -> None:
    """Keep *user_id*'s channel membership in line with their project *role*."""
    for channel in _project_channels(session, project_id):
        if role in PROJECT_TEAM_ROLES:
            channel_role = (
                ChannelRole.ADMIN.value if role in PROJECT_ADMIN_ROLES else ChannelRole.MEMBER.value
            )
            channel_service.add_member_row(session, channel, user_id, channel_role)
        else:
            channel_service.remove_member_row(session, channel.id, user_id)


def _adjust_funds(project: Project, delta: float) -> None:
    project.funds_raised = max(round((project.funds_raised or 0) + delta, 2), 0)


def _counts(session, project_ids: list[int]) -> dict[int, dict]:
    counts = {
        pid: {"contributor_count": 0, "likes_count": 0, "comments_count": 0}
        for pid in project_ids
    }
    if not project_ids:
        return counts
    queries = (
        ("contributor_count", select(ProjectContributor.project_id, func.count())
         .where(ProjectContributor.project_id.in_(project_ids))
         .group_by(ProjectContributor.project_id)),
        ("likes_count", select(ProjectReaction.project_id, func.count())
         .where(ProjectReaction.project_id.in_(project_ids),
                ProjectReaction.reaction_type == ProjectReactionType.LIKE.value)
         .group_by(ProjectReaction.project_id)),
        ("comments_count", select(ProjectComment.project_id, func.count())
         .where(ProjectComment.project_id.in_(project_ids),
                ProjectComment.is_deleted.is_(False))
         .group_by(ProjectComment.project_id)),
    )
    for key, stmt in queries:
        for project_id, total in session.execute(stmt).all():
            counts[project_id][key] = total
    return counts


def _project_dict(
    session,
    project: Project,
    viewer_id: str | None = None,
    counts: dict | None = None,
    creators: dict | None = None,
) -> dict:
    data = row_to_dict(project)
    data["tags"] = list(project.tags or [])
    data["gallery_images"] = list(project.gallery_images or [])
    data["funding_progress"] = funding_progress(project.funds_raised, project.fundraising_goal)
    if counts is None:
        counts = _counts(session, [project.id])[project.id]
    data.update(counts)
    if creators is None:
        creators = author_summaries(session, [project.creator_id])
    data["creator"] = creators.get(project.creator_id)
    row = contributor_row(session, project.id, viewer_id)
    data["my_role"] = row.role if row else None
    data["my_reactions"] = sorted(session.scalars(
        select(ProjectReaction.reaction_type).where(
            ProjectReaction.project_id == project.id, ProjectReaction.user_id == viewer_id,
        )
    ).all()) if viewer_id else []
    data["channel_id"] = session.scalar(
        select(Channel.id).where(Channel.project_id == project.id).order_by(Channel.id).limit(1)
    )
    return data


def _load_admin(session, project_id: int, actor_id: str) -> Project | None:
    project = session.get(Project, project_id)
    if project is None:
        return None
    if not is_admin(session, project_id, actor_id):
        raise PermissionError("Only project admins can do that")
    return project


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------
def create_project(
    engine: Engine,
    creator_id: str,
    *,
    title: str,
    description: str,
    **fields,
) -> dict:
    """Create a project and enrol the creator as its first contributor."""
    values = {k: v for k, v in fields.items() if k in ALLOWED_PROJECT_FIELDS}
    values["title"] = title
    values["description"] = description
    values.setdefault("status", ProjectStatus.PLANNING.value)
    _validate(values)
    values["title"] = title.strip()
    values["description"] = description.strip()
    values["category"] = (values.get("category") or "general").strip().lower()
    values["tags"] = _clean_tags(values.get("tags"))
    values["gallery_images"] = list(values.get("gallery_images") or [])
    if values["status"] == ProjectStatus.COMPLETED and not values.get("actual_completion_date"):
        values["actual_completion_date"] = utcnow()

    with get_session(engine) as session:
        project = Project(
            creator_id=creator_id,
            funds_raised=0,
            views_count=0,
            is_featured=False,
            **values,
        )
        session.add(project)
        session.flush()
        session.add(ProjectContributor(
            project_id=project.id, user_id=creator_id, role=ContributorRole.CREATOR.value,
        ))
        session.flush()
        session.refresh(project)
        logger.info("User %s created project %s (%s)", creator_id, project.id, project.title)
        return _project_dict(session, project, creator_id)


def get_project(
    engine: Engine,
    project_id: int,
    viewer_id: str | None = None,
    *,
    count_view: bool = False,
) -> dict | None:
    """Fetch a project the viewer may see.

    With *count_view* the view counter goes up, except for the creator's
    own visits.
    """
    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None or not can_view(session, project, viewer_id):
            return None
        if count_view and viewer_id != project.creator_id:
            project.views_count = (project.views_count or 0) + 1
            session.flush()
        return _project_dict(session, project, viewer_id)


def update_project(engine: Engine, project_id: int, actor_id: str, **fields) -> dict | None:
    updates = {k: v for k, v in fields.items() if k in ALLOWED_PROJECT_FIELDS}

    with get_session(engine) as session:
        project = _load_admin(session, project_id, actor_id)
        if project is None:
            return None
        old_images = [project.image_url, *(project.gallery_images or [])]
        merged = {key: getattr(project, key) for key in ALLOWED_PROJECT_FIELDS}
        merged.update(updates)
        _validate(merged)

        for key in ("title", "description"):
            if key in updates:
                updates[key] = updates[key].strip()
        if "category" in updates:
            updates["category"] = (updates["category"] or "general").strip().lower()
        if "tags" in updates:
            updates["tags"] = _clean_tags(updates["tags"])
        if "gallery_images" in updates:
            updates["gallery_images"] = list(updates["gallery_images"] or [])
        if "status" in updates and updates["status"] != project.status:
            if updates["status"] == ProjectStatus.COMPLETED:
                updates.setdefault("actual_completion_date", utcnow())
            elif project.status == ProjectStatus.COMPLETED:
                updates.setdefault("actual_completion_date", None)
        for key, value in updates.items():
            setattr(project, key, value)
        session.flush()
        session.refresh(project)
        result = _project_dict(session, project, actor_id)

    kept = {result["image_url"], *result["gallery_images"]}
    for url in old_images:
        if url not in kept:
            upload_service.release_replaced(url)
    return result


def delete_project(engine: Engine, project_id: int, actor_id: str) -> bool:
    """Delete a project with its team, updates, discussion and channels (creator only)."""
    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None:
            return False
        if project.creator_id != actor_id:
            raise PermissionError("Only the project creator can delete it")
        images = [project.image_url, *(project.gallery_images or [])]
        images += [u.image_url for u in project.updates]
        for channel in _project_channels(session, project_id):
            session.delete(channel)
        session.delete(project)
        logger.info("User %s deleted project %s", actor_id, project_id)
    for url in images:
        upload_service.release_replaced(url)
    return True


def list_projects(
    engine: Engine,
    viewer_id: str | None = None,
    *,
    search: str | None = None,
    filter: str = "all",
    sort: str = "newest",
) -> list[dict]:
    """Public projects plus the viewer's own, filtered, searched and sorted.

    Search matches title, description, category and tags.  ``fundraising``
    keeps projects still short of their goal.
    """
    if filter not in PROJECT_FILTERS:
        raise ValueError(f"Unknown filter '{filter}'. Expected one of: {', '.join(PROJECT_FILTERS)}")
    if sort not in PROJECT_SORTS:
        raise ValueError(f"Unknown sort '{sort}'. Expected one of: {', '.join(PROJECT_SORTS)}")

    visible = [Project.is_public.is_(True)]
    if viewer_id:
        visible.append(Project.id.in_(
            select(ProjectContributor.project_id).where(ProjectContributor.user_id == viewer_id)
        ))
    stmt = select(Project).where(or_(*visible))
    if filter == "active":
        stmt = stmt.where(Project.status == ProjectStatus.ACTIVE.value)
    elif filter == "completed":
        stmt = stmt.where(Project.status == ProjectStatus.COMPLETED.value)
    elif filter == "fundraising":
        stmt = stmt.where(
            Project.fundraising_enabled.is_(True),
            Project.fundraising_goal.is_not(None),
            Project.funds_raised < Project.fundraising_goal,
        )
    elif filter == "featured":
        stmt = stmt.where(Project.is_featured.is_(True))
    stmt = stmt.order_by(Project.created_at.desc(), Project.id.desc())

    with get_session(engine) as session:
        projects = list(session.scalars(stmt).all())

        term = (search or "").strip().lower()
        if term:
            projects = [
                p for p in projects
                if term in p.title.lower()
                or term in (p.description or "").lower()
                or term in (p.category or "").lower()
                or any(term in tag for tag in p.tags or [])
            ]

        counts = _counts(session, [p.id for p in projects])
        if sort == "popular":
            projects.sort(key=lambda p: counts[p.id]["likes_count"], reverse=True)
        elif sort == "funded":
            projects.sort(
                key=lambda p: funding_progress(p.funds_raised, p.fundraising_goal) or 0.0,
                reverse=True,
            )
        creators = author_summaries(session, [p.creator_id for p in projects])
        return [_project_dict(session, p, viewer_id, counts[p.id], creators) for p in projects]


def list_user_projects(engine: Engine, user_id: str, viewer_id: str | None = None) -> list[dict]:
    """Projects a member is part of, in any role, as shown on their profile."""
    with get_session(engine) as session:
        projects = session.scalars(
            select(Project)
            .join(ProjectContributor, ProjectContributor.project_id == Project.id)
            .where(ProjectContributor.user_id == user_id)
            .order_by(Project.created_at.desc(), Project.id.desc())
        ).all()
        projects = [p for p in projects if can_view(session, p, viewer_id)]
        counts = _counts(session, [p.id for p in projects])
        return [_project_dict(session, p, viewer_id, counts[p.id]) for p in projects]


def list_categories(engine: Engine) -> list[str]:
    with get_session(engine) as session:
        return list(session.scalars(
            select(Project.category)
            .where(Project.is_public.is_(True))
            .distinct()
            .order_by(Project.category)
        ).all())


# ---------------------------------------------------------------------------
# Team
# ---------------------------------------------------------------------------
def _contributor_dict(row: ProjectContributor, people: dict) -> dict:
    data = row_to_dict(row, exclude=("id",))
    data["user"] = people.get(row.user_id)
    return data


def join_project(
    engine: Engine,
    project_id: int,
    user_id: str,
    *,
    role: str = ContributorRole.CONTRIBUTOR.value,
    contribution_type: str | None = None,
    contribution_amount: float | None = None,
) -> dict | None:
    """Join as a contributor or supporter, or update an existing pledge.

    The pledged amount replaces the member's previous one and
    ``funds_raised`` moves by the difference.  Admins keep their role.
    """
    if role not in _SELF_JOIN_ROLES:
        raise ValueError("You can join as a contributor or a supporter")
    if contribution_amount is not None and contribution_amount < 0:
        raise ValueError("Contribution amount cannot be negative")

    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None or not can_view(session, project, user_id):
            return None
        if contribution_amount and not project.fundraising_enabled:
            raise ValueError("This project is not raising funds")

        row = contributor_row(session, project_id, user_id)
        previous = 0.0
        if row is None:
            row = ProjectContributor(project_id=project_id, user_id=user_id, role=role)
            session.add(row)
        else:
            previous = row.contribution_amount or 0.0
            if row.role in _SELF_JOIN_ROLES:
                row.role = role
        row.contribution_type = (contribution_type or "").strip() or None
        row.contribution_amount = contribution_amount
        _adjust_funds(project, (contribution_amount or 0.0) - previous)
        session.flush()
        _sync_channels(session, project_id, user_id, row.role)
        logger.info("User %s joined project %s as %s", user_id, project_id, row.role)
        return _contributor_dict(row, author_summaries(session, [user_id]))


def _drop_contributor(session, project: Project, row: ProjectContributor) -> None:
    _adjust_funds(project, -(row.contribution_amount or 0.0))
    _sync_channels(session, project.id, row.user_id, None)
    session.delete(row)
    session.flush()


def leave_project(engine: Engine, project_id: int, user_id: str) -> bool:
    """Leave a project and withdraw any pledge.  The creator cannot leave."""
    with get_session(engine) as session:
        project = session.get(Project, project_id)
        row = contributor_row(session, project_id, user_id) if project else None
        if row is None:
            return False
        if row.role == ContributorRole.CREATOR:
            raise ValueError("The creator cannot leave the project")
        _drop_contributor(session, project, row)
        return True


def set_contributor(
    engine: Engine, project_id: int, actor_id: str, user_id: str, role: str,
) -> dict | None:
    """Add a member to the team or change their role (admins only)."""
    if role == ContributorRole.CREATOR or role not in set(ContributorRole):
        raise ValueError(f"Invalid contributor role '{role}'")
    with get_session(engine) as session:
        project = _load_admin(session, project_id, actor_id)
        if project is None:
            return None
        if session.get(Profile, user_id) is None:
            raise ValueError("User not found")
        row = contributor_row(session, project_id, user_id)
        if row is not None and row.role == ContributorRole.CREATOR:
            raise ValueError("The creator's role cannot be changed")
        if row is None:
            row = ProjectContributor(project_id=project_id, user_id=user_id, role=role)
            session.add(row)
        else:
            row.role = role
        session.flush()
        _sync_channels(session, project_id, user_id, role)
        logger.info("User %s set %s to %s on project %s", actor_id, user_id, role, project_id)
        return _contributor_dict(row, author_summaries(session, [user_id]))


def remove_contributor(engine: Engine, project_id: int, actor_id: str, user_id: str) -> bool:
    with get_session(engine) as session:
        project = _load_admin(session, project_id, actor_id)
        if project is None:
            return False
        row = contributor_row(session, project_id, user_id)
        if row is None:
            return False
        if row.role == ContributorRole.CREATOR:
            raise ValueError("The creator cannot be removed")
        _drop_contributor(session, project, row)
        logger.info("User %s removed %s from project %s", actor_id, user_id, project_id)
        return True


def list_contributors(engine: Engine, project_id: int, viewer_id: str | None) -> list[dict] | None:
    """Team and supporters, creator first, then admins, contributors, supporters."""
    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None or not can_view(session, project, viewer_id):
            return None
        rows = session.scalars(
            select(ProjectContributor)
            .where(ProjectContributor.project_id == project_id)
            .order_by(ProjectContributor.joined_at, ProjectContributor.id)
        ).all()
        rows = sorted(rows, key=lambda r: _ROLE_ORDER.get(r.role, len(_ROLE_ORDER)))
        people = author_summaries(session, [r.user_id for r in rows])
        return [_contributor_dict(r, people) for r in rows]


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------
def _update_dict(update: ProjectUpdate, people: dict) -> dict:
    data = row_to_dict(update)
    data["author"] = people.get(update.author_id)
    return data


def post_update(
    engine: Engine,
    project_id: int,
    author_id: str,
    *,
    title: str,
    content: str,
    update_type: str = ProjectUpdateType.PROGRESS.value,
    image_url: str | None = None,
) -> dict | None:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or not content:
        raise ValueError("Updates need a title and content")
    if update_type not in set(ProjectUpdateType):
        raise ValueError(f"Invalid update type '{update_type}'")
    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None or not can_view(session, project, author_id):
            return None
        row = contributor_row(session, project_id, author_id)
        if row is None or row.role not in PROJECT_TEAM_ROLES:
            raise PermissionError("Only the project team can post updates")
        update = ProjectUpdate(
            project_id=project_id, author_id=author_id, title=title, content=content,
            update_type=update_type, image_url=image_url,
        )
        session.add(update)
        session.flush()
        session.refresh(update)
        logger.info("User %s posted a %s update on project %s", author_id, update_type, project_id)
        return _update_dict(update, author_summaries(session, [author_id]))


def list_updates(engine: Engine, project_id: int, viewer_id: str | None) -> list[dict] | None:
    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None or not can_view(session, project, viewer_id):
            return None
        updates = session.scalars(
            select(ProjectUpdate)
            .where(ProjectUpdate.project_id == project_id)
            .order_by(ProjectUpdate.created_at.desc(), ProjectUpdate.id.desc())
        ).all()
        people = author_summaries(session, [u.author_id for u in updates])
        return [_update_dict(u, people) for u in updates]


def delete_update(engine: Engine, update_id: int, actor_id: str) -> bool:
    """Authors delete their own updates; project admins may delete any."""
    with get_session(engine) as session:
        update = session.get(ProjectUpdate, update_id)
        if update is None:
            return False
        if update.author_id != actor_id and not is_admin(session, update.project_id, actor_id):
            raise PermissionError("You cannot delete this update")
        image = update.image_url
        session.delete(update)
    upload_service.release_replaced(image)
    return True


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------
def toggle_reaction(
    engine: Engine, project_id: int, user_id: str, reaction_type: str,
) -> dict | None:
    """Switch a like / follow / bookmark on or off."""
    try:
        reaction_type = ProjectReactionType(reaction_type).value
    except ValueError:
        raise ValueError(f"Invalid reaction '{reaction_type}'") from None

    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None or not can_view(session, project, user_id):
            return None
        reaction = session.scalar(
            select(ProjectReaction).where(
                ProjectReaction.project_id == project_id,
                ProjectReaction.user_id == user_id,
                ProjectReaction.reaction_type == reaction_type,
            )
        )
        if reaction is None:
            session.add(ProjectReaction(
                project_id=project_id, user_id=user_id, reaction_type=reaction_type,
            ))
        else:
            session.delete(reaction)
        session.flush()
        return {
            "project_id": project_id,
            "reaction_type": reaction_type,
            "active": reaction is None,
            "likes_count": _counts(session, [project_id])[project_id]["likes_count"],
        }


def list_reacted_projects(engine: Engine, user_id: str, reaction_type: str) -> list[dict]:
    """Projects the user liked, follows or bookmarked, most recent first."""
    if reaction_type not in set(ProjectReactionType):
        raise ValueError(f"Invalid reaction '{reaction_type}'")
    with get_session(engine) as session:
        projects = session.scalars(
            select(Project)
            .join(ProjectReaction, ProjectReaction.project_id == Project.id)
            .where(ProjectReaction.user_id == user_id, ProjectReaction.reaction_type == reaction_type)
            .order_by(ProjectReaction.created_at.desc(), ProjectReaction.id.desc())
        ).all()
        projects = [p for p in projects if can_view(session, p, user_id)]
        counts = _counts(session, [p.id for p in projects])
        return [_project_dict(session, p, user_id, counts[p.id]) for p in projects]


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
def _comment_dict(comment: ProjectComment, people: dict) -> dict:
    return {
        "id": comment.id,
        "project_id": comment.project_id,
        "parent_id": comment.parent_id,
        "user_id": comment.user_id,
        "user": people.get(comment.user_id),
        "content": comment.content,
        "is_deleted": bool(comment.is_deleted),
        "created_at": as_utc(comment.created_at).isoformat() if comment.created_at else None,
        "replies": [],
    }


def add_comment(
    engine: Engine,
    project_id: int,
    user_id: str,
    content: str,
    parent_id: int | None = None,
) -> dict | None:
    content = (content or "").strip()
    if not content:
        raise ValueError("Comment cannot be empty")
    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None or not can_view(session, project, user_id):
            return None
        if parent_id is not None:
            parent = session.get(ProjectComment, parent_id)
            if parent is None or parent.project_id != project_id or parent.is_deleted:
                raise ValueError("Parent comment not found on this project")
            if parent.parent_id is not None:
                raise ValueError("Replies cannot be nested")
        comment = ProjectComment(
            project_id=project_id, user_id=user_id, parent_id=parent_id,
            content=content, is_deleted=False,
        )
        session.add(comment)
        session.flush()
        session.refresh(comment)
        return _comment_dict(comment, author_summaries(session, [user_id]))


def delete_comment(engine: Engine, comment_id: int, actor_id: str) -> bool:
    """Soft-delete a comment.  Authors and project admins may do this."""
    with get_session(engine) as session:
        comment = session.get(ProjectComment, comment_id)
        if comment is None or comment.is_deleted:
            return False
        if comment.user_id != actor_id and not is_admin(session, comment.project_id, actor_id):
            raise PermissionError("You cannot delete this comment")
        comment.is_deleted = True
        return True


def list_comments(engine: Engine, project_id: int, viewer_id: str | None) -> list[dict] | None:
    """Top-level comments oldest first, replies nested under their parent.

    A deleted comment that still has live replies is kept as an empty
    placeholder so the replies stay in context.
    """
    with get_session(engine) as session:
        project = session.get(Project, project_id)
        if project is None or not can_view(session, project, viewer_id):
            return None
        rows = session.scalars(
            select(ProjectComment)
            .where(ProjectComment.project_id == project_id)
            .order_by(ProjectComment.created_at, ProjectComment.id)
        ).all()
        live = [c for c in rows if not c.is_deleted]
        has_replies = {c.parent_id for c in live if c.parent_id is not None}
        people = author_summaries(session, [c.user_id for c in live])

        by_id: dict[int, dict] = {}
        for comment in rows:
            if not comment.is_deleted:
                by_id[comment.id] = _comment_dict(comment, people)
            elif comment.parent_id is None and comment.id in has_replies:
                node = _comment_dict(comment, {})
                node.update(content=None, user_id=None)
                by_id[comment.id] = node
        roots: list[dict] = []
        for comment in rows:
            node = by_id.get(comment.id)
            if node is None:
                continue
            if comment.parent_id is None:
                roots.append(node)
            elif comment.parent_id in by_id:
                by_id[comment.parent_id]["replies"].append(node)
        return roots
