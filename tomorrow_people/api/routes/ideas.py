"""
tomorrow_people.api.routes.ideas — Swipe-to-vote ideas & discussion
====================================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tomorrow_people.api.deps import get_current_user, get_engine, get_optional_user, service_errors
from tomorrow_people.services import idea_service

router = APIRouter(prefix="/ideas", tags=["ideas"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class IdeaCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    statement: str = Field(min_length=1, max_length=1000)
    description: str | None = None
    type: str = "question"
    category: str | None = None
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    expires_at: datetime | None = None


class IdeaUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    statement: str | None = Field(default=None, max_length=1000)
    description: str | None = None
    type: str | None = None
    category: str | None = None
    image_url: str | None = None
    tags: list[str] | None = None
    expires_at: datetime | None = None
    is_active: bool | None = None


class VoteIn(BaseModel):
    vote_type: str


class IdeaCommentIn(BaseModel):
    content: str = Field(min_length=1, max_length=2000)
    parent_id: int | None = None


class ReactionIn(BaseModel):
    reaction_type: str


# ---------------------------------------------------------------------------
# Ideas
# ---------------------------------------------------------------------------
@router.get("")
def list_ideas(
    category: str | None = Query(None),
    type: str | None = Query(None),
    tags: list[str] | None = Query(None),
    sort: str = Query("latest"),
    show_expired: bool = Query(False),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    with service_errors():
        ideas = idea_service.list_ideas(
            engine,
            user["id"] if user else None,
            category=category,
            idea_type=type,
            tags=tags,
            sort=sort,
            show_expired=show_expired,
        )
    return {"ideas": ideas, "total": len(ideas)}


@router.get("/categories")
def categories(engine=Depends(get_engine)):
    return {"categories": idea_service.list_categories(engine)}


@router.get("/voted")
def voted(user: dict = Depends(get_current_user), engine=Depends(get_engine)):
    """Ideas the caller has already swiped on."""
    return {"idea_ids": idea_service.list_voted_idea_ids(engine, user["id"])}


@router.post("", status_code=201)
def create_idea(
    body: IdeaCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    fields = body.model_dump(exclude_none=True)
    with service_errors():
        return idea_service.create_idea(
            engine, user["id"], title=fields.pop("title"), statement=fields.pop("statement"), **fields,
        )


@router.get("/{idea_id}")
def get_idea(
    idea_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    idea = idea_service.get_idea(engine, idea_id, user["id"] if user else None)
    if idea is None:
        raise HTTPException(404, "Idea not found")
    return idea


@router.patch("/{idea_id}")
def update_idea(
    idea_id: int,
    body: IdeaUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    kwargs = body.model_dump(exclude_unset=True)
    if not kwargs:
        raise HTTPException(400, "No fields to update")
    with service_errors():
        idea = idea_service.update_idea(engine, idea_id, user["id"], **kwargs)
    if idea is None:
        raise HTTPException(404, "Idea not found")
    return idea


@router.delete("/{idea_id}", status_code=204)
def delete_idea(
    idea_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = idea_service.delete_idea(engine, idea_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Idea not found")


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------
@router.put("/{idea_id}/vote")
def vote(
    idea_id: int,
    body: VoteIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        idea = idea_service.cast_vote(engine, idea_id, user["id"], body.vote_type)
    if idea is None:
        raise HTTPException(404, "Idea not found")
    return idea


@router.delete("/{idea_id}/vote")
def clear_vote(
    idea_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    idea = idea_service.clear_vote(engine, idea_id, user["id"])
    if idea is None:
        raise HTTPException(404, "Idea not found")
    return idea


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
@router.get("/{idea_id}/comments")
def list_comments(
    idea_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    comments = idea_service.list_comments(engine, idea_id, user["id"] if user else None)
    if comments is None:
        raise HTTPException(404, "Idea not found")
    return {"comments": comments}


@router.post("/{idea_id}/comments", status_code=201)
def add_comment(
    idea_id: int,
    body: IdeaCommentIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        comment = idea_service.add_comment(
            engine, idea_id, user["id"], body.content, parent_id=body.parent_id,
        )
    if comment is None:
        raise HTTPException(404, "Idea not found")
    return comment


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    comment_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = idea_service.delete_comment(engine, comment_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Comment not found")


@router.post("/comments/{comment_id}/reaction")
def react(
    comment_id: int,
    body: ReactionIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        comment = idea_service.react_to_comment(engine, comment_id, user["id"], body.reaction_type)
    if comment is None:
        raise HTTPException(404, "Comment not found")
    return comment
