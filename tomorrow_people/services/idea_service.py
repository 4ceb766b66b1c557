"""
tomorrow_people.services.idea_service — Ideas, Votes & Comment Threads
=======================================================================

Swipe-to-vote statements.  Each member holds at most one vote per idea
(agree / disagree / pass); the tallies on the ``ideas`` row are moved in
the same transaction as the ``idea_votes`` row, via
:func:`tomorrow_people.engine.voting.apply_vote_change`.

Comments form a two-level thread (top-level + replies).  Deleting a
comment is a soft delete so reply chains stay intact.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, or_, select

from tomorrow_people.constants import ALLOWED_IDEA_FIELDS, as_utc, utcnow
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import (
    CommentReaction,
    CommentReactionType,
    Idea,
    IdeaComment,
    IdeaType,
    IdeaVote,
    VoteType,
)
from tomorrow_people.engine.voting import (
    VoteTally,
    apply_vote_change,
    controversy_key,
    percentage,
)
from tomorrow_people.services import upload_service
from tomorrow_people.services.serializers import author_summaries, row_to_dict

logger = logging.getLogger(__name__)

IDEA_SORTS = ("latest", "oldest", "most_voted", "most_controversial")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _clean_tags(tags) -> list[str]:
    cleaned: list[str] = []
    for tag in tags or []:
        tag = str(tag).strip().lower()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def _tally(idea: Idea) -> VoteTally:
    return VoteTally(
        agree=idea.agree_votes or 0,
        disagree=idea.disagree_votes or 0,
        passed=idea.pass_votes or 0,
    )


def _store_tally(idea: Idea, tally: VoteTally) -> None:
    idea.agree_votes = tally.agree
    idea.disagree_votes = tally.disagree
    idea.pass_votes = tally.passed
    idea.total_votes = tally.total


def _idea_dict(idea: Idea, my_vote: str | None = None, creator: dict | None = None) -> dict:
    data = row_to_dict(idea)
    data["tags"] = list(idea.tags or [])
    data["agree_percentage"] = percentage(idea.agree_votes or 0, idea.total_votes or 0)
    data["disagree_percentage"] = percentage(idea.disagree_votes or 0, idea.total_votes or 0)
    data["my_vote"] = my_vote
    data["creator"] = creator
    return data


def _is_expired(idea: Idea, now: datetime) -> bool:
    expires = as_utc(idea.expires_at)
    return expires is not None and expires <= now


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
def create_idea(
    engine: Engine,
    creator_id: str,
    *,
    title: str,
    statement: str,
    **fields,
) -> dict:
    title = (title or "").strip()
    statement = (statement or "").strip()
    if not title:
        raise ValueError("Title is required")
    if not statement:
        raise ValueError("Statement is required")
    values = {k: v for k, v in fields.items() if k in ALLOWED_IDEA_FIELDS}
    idea_type = values.get("type", IdeaType.QUESTION.value)
    if idea_type not in set(IdeaType):
        raise ValueError(f"Invalid idea type '{idea_type}'")
    values["type"] = idea_type
    values["category"] = (values.get("category") or "general").strip().lower()
    values["tags"] = _clean_tags(values.get("tags"))

    with get_session(engine) as session:
        idea = Idea(
            creator_id=creator_id,
            title=title,
            statement=statement,
            total_votes=0,
            agree_votes=0,
            disagree_votes=0,
            pass_votes=0,
            comment_count=0,
            is_featured=False,
            **values,
        )
        session.add(idea)
        session.flush()
        session.refresh(idea)
        logger.info("User %s created idea %s (%s)", creator_id, idea.id, idea.title)
        return _idea_dict(idea, creator=author_summaries(session, [creator_id]).get(creator_id))


def get_idea(engine: Engine, idea_id: int, viewer_id: str | None = None) -> dict | None:
    with get_session(engine) as session:
        idea = session.get(Idea, idea_id)
        if idea is None:
            return None
        my_vote = None
        if viewer_id:
            my_vote = session.scalar(
                select(IdeaVote.vote_type).where(IdeaVote.idea_id == idea_id, IdeaVote.user_id == viewer_id)
            )
        creator = author_summaries(session, [idea.creator_id]).get(idea.creator_id)
        return _idea_dict(idea, my_vote, creator)


def update_idea(engine: Engine, idea_id: int, user_id: str, **fields) -> dict | None:
    updates = {k: v for k, v in fields.items() if k in ALLOWED_IDEA_FIELDS}
    for key in ("title", "statement"):
        if key in updates:
            updates[key] = (updates[key] or "").strip()
            if not updates[key]:
                raise ValueError(f"{key.capitalize()} cannot be empty")
    if "type" in updates and updates["type"] not in set(IdeaType):
        raise ValueError(f"Invalid idea type '{updates['type']}'")
    if "tags" in updates:
        updates["tags"] = _clean_tags(updates["tags"])

    with get_session(engine) as session:
        idea = session.get(Idea, idea_id)
        if idea is None:
            return None
        if idea.creator_id != user_id:
            raise PermissionError("Only the creator can edit this idea")
        old_image = idea.image_url
        for key, value in updates.items():
            setattr(idea, key, value)
        session.flush()
        session.refresh(idea)
        result = _idea_dict(idea)
    upload_service.release_replaced(old_image, result["image_url"])
    return result


def delete_idea(engine: Engine, idea_id: int, user_id: str) -> bool:
    with get_session(engine) as session:
        idea = session.get(Idea, idea_id)
        if idea is None:
            return False
        if idea.creator_id != user_id:
            raise PermissionError("Only the creator can delete this idea")
        image = idea.image_url
        session.delete(idea)
        logger.info("User %s deleted idea %s", user_id, idea_id)
    upload_service.release_replaced(image)
    return True


def list_ideas(
    engine: Engine,
    viewer_id: str | None = None,
    *,
    category: str | None = None,
    idea_type: str | None = None,
    tags: list[str] | None = None,
    sort: str = "latest",
    show_expired: bool = False,
    now: datetime | None = None,
) -> list[dict]:
    """Active ideas, filtered and sorted, each with the viewer's vote."""
    if sort not in IDEA_SORTS:
        raise ValueError(f"Unknown sort '{sort}'. Expected one of: {', '.join(IDEA_SORTS)}")
    now = now or utcnow()

    stmt = select(Idea).where(Idea.is_active.is_(True))
    if category and category != "all":
        stmt = stmt.where(Idea.category == category.lower())
    if idea_type and idea_type != "all":
        stmt = stmt.where(Idea.type == idea_type)
    if not show_expired:
        stmt = stmt.where(or_(Idea.expires_at.is_(None), Idea.expires_at > now))

    if sort == "oldest":
        stmt = stmt.order_by(Idea.created_at.asc(), Idea.id.asc())
    elif sort == "most_voted":
        stmt = stmt.order_by(Idea.total_votes.desc(), Idea.created_at.desc(), Idea.id.desc())
    else:
        stmt = stmt.order_by(Idea.created_at.desc(), Idea.id.desc())

    with get_session(engine) as session:
        ideas = list(session.scalars(stmt).all())

        wanted = set(_clean_tags(tags))
        if wanted:
            ideas = [i for i in ideas if wanted & set(i.tags or [])]

        if sort == "most_controversial":
            ideas = [i for i in ideas if (i.total_votes or 0) > 0]
            ideas.sort(key=lambda i: controversy_key(
                i.agree_votes or 0, i.disagree_votes or 0, i.total_votes or 0,
            ))

        my_votes: dict[int, str] = {}
        if viewer_id and ideas:
            my_votes = dict(session.execute(
                select(IdeaVote.idea_id, IdeaVote.vote_type).where(
                    IdeaVote.user_id == viewer_id,
                    IdeaVote.idea_id.in_([i.id for i in ideas]),
                )
            ).all())
        creators = author_summaries(session, [i.creator_id for i in ideas])
        return [_idea_dict(i, my_votes.get(i.id), creators.get(i.creator_id)) for i in ideas]


def list_categories(engine: Engine) -> list[str]:
    with get_session(engine) as session:
        return list(session.scalars(
            select(Idea.category).where(Idea.is_active.is_(True)).distinct().order_by(Idea.category)
        ).all())


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------
def cast_vote(
    engine: Engine,
    idea_id: int,
    user_id: str,
    vote_type: str,
    *,
    now: datetime | None = None,
) -> dict | None:
    """Record or change the user's vote.  Repeating the same vote is a no-op."""
    try:
        vote_type = VoteType(vote_type).value
    except ValueError:
        raise ValueError(f"Invalid vote '{vote_type}'") from None
    now = now or utcnow()

    with get_session(engine) as session:
        idea = session.get(Idea, idea_id)
        if idea is None:
            return None
        if not idea.is_active:
            raise ValueError("This idea is no longer open for voting")
        if _is_expired(idea, now):
            raise ValueError("This idea has expired")

        vote = session.scalar(
            select(IdeaVote).where(IdeaVote.idea_id == idea_id, IdeaVote.user_id == user_id)
        )
        previous = vote.vote_type if vote else None
        if previous != vote_type:
            if vote is None:
                session.add(IdeaVote(idea_id=idea_id, user_id=user_id, vote_type=vote_type))
            else:
                vote.vote_type = vote_type
            _store_tally(idea, apply_vote_change(_tally(idea), previous, vote_type))
            session.flush()
            logger.info("User %s voted %s on idea %s (was %s)", user_id, vote_type, idea_id, previous)
        session.refresh(idea)
        return _idea_dict(idea, vote_type)


def clear_vote(engine: Engine, idea_id: int, user_id: str) -> dict | None:
    with get_session(engine) as session:
        idea = session.get(Idea, idea_id)
        if idea is None:
            return None
        vote = session.scalar(
            select(IdeaVote).where(IdeaVote.idea_id == idea_id, IdeaVote.user_id == user_id)
        )
        if vote is not None:
            _store_tally(idea, apply_vote_change(_tally(idea), vote.vote_type, None))
            session.delete(vote)
            session.flush()
        session.refresh(idea)
        return _idea_dict(idea, None)


def list_voted_idea_ids(engine: Engine, user_id: str) -> list[int]:
    """Ids of ideas the user has already swiped on."""
    with get_session(engine) as session:
        return list(session.scalars(
            select(IdeaVote.idea_id).where(IdeaVote.user_id == user_id)
        ).all())


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
def _comment_dict(comment: IdeaComment, people: dict, my_reactions: dict) -> dict:
    return {
        "id": comment.id,
        "idea_id": comment.idea_id,
        "parent_id": comment.parent_id,
        "user_id": comment.user_id,
        "user": people.get(comment.user_id),
        "content": comment.content,
        "like_count": comment.like_count or 0,
        "reply_count": comment.reply_count or 0,
        "is_deleted": bool(comment.is_deleted),
        "my_reaction": my_reactions.get(comment.id),
        "created_at": as_utc(comment.created_at).isoformat() if comment.created_at else None,
        "replies": [],
    }


def add_comment(
    engine: Engine,
    idea_id: int,
    user_id: str,
    content: str,
    parent_id: int | None = None,
) -> dict | None:
    content = (content or "").strip()
    if not content:
        raise ValueError("Comment cannot be empty")
    with get_session(engine) as session:
        idea = session.get(Idea, idea_id)
        if idea is None:
            return None
        if parent_id is not None:
            parent = session.get(IdeaComment, parent_id)
            if parent is None or parent.idea_id != idea_id or parent.is_deleted:
                raise ValueError("Parent comment not found on this idea")
            parent.reply_count = (parent.reply_count or 0) + 1
        comment = IdeaComment(
            idea_id=idea_id, user_id=user_id, parent_id=parent_id, content=content,
            is_deleted=False, like_count=0, reply_count=0,
        )
        session.add(comment)
        idea.comment_count = (idea.comment_count or 0) + 1
        session.flush()
        session.refresh(comment)
        return _comment_dict(comment, author_summaries(session, [user_id]), {})


def delete_comment(engine: Engine, comment_id: int, user_id: str) -> bool:
    """Soft-delete the author's comment and keep the counters in step."""
    with get_session(engine) as session:
        comment = session.get(IdeaComment, comment_id)
        if comment is None or comment.is_deleted:
            return False
        if comment.user_id != user_id:
            raise PermissionError("You can only delete your own comments")
        comment.is_deleted = True
        idea = session.get(Idea, comment.idea_id)
        idea.comment_count = max((idea.comment_count or 0) - 1, 0)
        if comment.parent_id is not None:
            parent = session.get(IdeaComment, comment.parent_id)
            if parent is not None:
                parent.reply_count = max((parent.reply_count or 0) - 1, 0)
        return True


def list_comments(engine: Engine, idea_id: int, viewer_id: str | None = None) -> list[dict] | None:
    """Top-level comments (oldest first), each with its visible replies.

    A deleted top-level comment that still has live replies stays in the
    tree as a placeholder with no content or author.
    """
    with get_session(engine) as session:
        if session.get(Idea, idea_id) is None:
            return None
        rows = session.scalars(
            select(IdeaComment)
            .where(IdeaComment.idea_id == idea_id)
            .order_by(IdeaComment.created_at, IdeaComment.id)
        ).all()
        comments = [c for c in rows if not c.is_deleted]
        has_replies = {c.parent_id for c in comments if c.parent_id is not None}
        placeholders = [
            c for c in rows if c.is_deleted and c.parent_id is None and c.id in has_replies
        ]
        people = author_summaries(session, [c.user_id for c in comments])
        my_reactions: dict[int, str] = {}
        if viewer_id and comments:
            my_reactions = dict(session.execute(
                select(CommentReaction.comment_id, CommentReaction.reaction_type).where(
                    CommentReaction.user_id == viewer_id,
                    CommentReaction.comment_id.in_([c.id for c in comments]),
                )
            ).all())

        by_id = {c.id: _comment_dict(c, people, my_reactions) for c in comments}
        for comment in placeholders:
            node = _comment_dict(comment, {}, {})
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


def react_to_comment(
    engine: Engine, comment_id: int, user_id: str, reaction_type: str,
) -> dict | None:
    """Toggle a like/dislike.  Repeating removes it; switching replaces it."""
    try:
        reaction_type = CommentReactionType(reaction_type).value
    except ValueError:
        raise ValueError(f"Invalid reaction '{reaction_type}'") from None

    with get_session(engine) as session:
        comment = session.get(IdeaComment, comment_id)
        if comment is None or comment.is_deleted:
            return None
        reaction = session.scalar(
            select(CommentReaction).where(
                CommentReaction.comment_id == comment_id, CommentReaction.user_id == user_id,
            )
        )
        previous = reaction.reaction_type if reaction else None
        likes = comment.like_count or 0

        if previous == reaction_type:
            session.delete(reaction)
            current = None
        elif reaction is None:
            session.add(CommentReaction(comment_id=comment_id, user_id=user_id,
                                        reaction_type=reaction_type))
            current = reaction_type
        else:
            reaction.reaction_type = reaction_type
            current = reaction_type

        if previous == CommentReactionType.LIKE and current != CommentReactionType.LIKE:
            likes -= 1
        elif current == CommentReactionType.LIKE and previous != CommentReactionType.LIKE:
            likes += 1
        comment.like_count = max(likes, 0)
        session.flush()
        return {"comment_id": comment_id, "reaction": current, "like_count": comment.like_count}
