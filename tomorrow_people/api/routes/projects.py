"""
tomorrow_people.api.routes.projects — Projects, team, updates & discussion
===========================================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tomorrow_people.api.deps import get_current_user, get_engine, get_optional_user, service_errors
from tomorrow_people.services import project_service

router = APIRouter(prefix="/projects", tags=["projects"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProjectCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    summary: str | None = Field(default=None, max_length=500)
    status: str = "planning"
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    image_url: str | None = None
    gallery_images: list[str] = Field(default_factory=list)
    fundraising_enabled: bool = False
    fundraising_goal: float | None = None
    start_date: datetime | None = None
    target_completion_date: datetime | None = None
    is_public: bool = True


class ProjectUpdateBody(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    summary: str | None = Field(default=None, max_length=500)
    status: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    image_url: str | None = None
    gallery_images: list[str] | None = None
    fundraising_enabled: bool | None = None
    fundraising_goal: float | None = None
    start_date: datetime | None = None
    target_completion_date: datetime | None = None
    actual_completion_date: datetime | None = None
    is_public: bool | None = None


class JoinIn(BaseModel):
    role: str = "contributor"
    contribution_type: str | None = Field(default=None, max_length=50)
    contribution_amount: float | None = None


class ContributorIn(BaseModel):
    role: str


class UpdatePost(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    update_type: str = "progress"
    image_url: str | None = None


class ReactionIn(BaseModel):
    reaction_type: str


class ProjectCommentIn(BaseModel):
    content: str = Field(min_length=1, max_length=2000)
    parent_id: int | None = None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------
@router.get("")
def list_projects(
    search: str | None = Query(None),
    filter: str = Query("all"),
    sort: str = Query("newest"),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    with service_errors():
        projects = project_service.list_projects(
            engine, user["id"] if user else None, search=search, filter=filter, sort=sort,
        )
    return {"projects": projects, "total": len(projects)}


@router.get("/categories")
def categories(engine=Depends(get_engine)):
    return {"categories": project_service.list_categories(engine)}


@router.get("/reacted/{reaction_type}")
def reacted(
    reaction_type: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Projects the caller liked, follows or bookmarked."""
    with service_errors():
        projects = project_service.list_reacted_projects(engine, user["id"], reaction_type)
    return {"projects": projects}


@router.post("", status_code=201)
def create_project(
    body: ProjectCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    fields = body.model_dump(exclude_none=True)
    with service_errors():
        return project_service.create_project(
            engine, user["id"],
            title=fields.pop("title"), description=fields.pop("description"), **fields,
        )


@router.get("/{project_id}")
def get_project(
    project_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    project = project_service.get_project(
        engine, project_id, user["id"] if user else None, count_view=True,
    )
    if project is None:
        raise HTTPException(404, "Project not found")
    return project


@router.patch("/{project_id}")
def update_project(
    project_id: int,
    body: ProjectUpdateBody,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    kwargs = body.model_dump(exclude_unset=True)
    if not kwargs:
        raise HTTPException(400, "No fields to update")
    with service_errors():
        project = project_service.update_project(engine, project_id, user["id"], **kwargs)
    if project is None:
        raise HTTPException(404, "Project not found")
    return project


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = project_service.delete_project(engine, project_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Project not found")


# ---------------------------------------------------------------------------
# Team
# ---------------------------------------------------------------------------
@router.get("/{project_id}/contributors")
def contributors(
    project_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    rows = project_service.list_contributors(engine, project_id, user["id"] if user else None)
    if rows is None:
        raise HTTPException(404, "Project not found")
    return {"contributors": rows}


@router.post("/{project_id}/join")
def join(
    project_id: int,
    body: JoinIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        row = project_service.join_project(engine, project_id, user["id"], **body.model_dump())
    if row is None:
        raise HTTPException(404, "Project not found")
    return row


@router.post("/{project_id}/leave", status_code=204)
def leave(
    project_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        left = project_service.leave_project(engine, project_id, user["id"])
    if not left:
        raise HTTPException(404, "Not part of this project")


@router.put("/{project_id}/contributors/{user_id}")
def set_contributor(
    project_id: int,
    user_id: str,
    body: ContributorIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        row = project_service.set_contributor(engine, project_id, user["id"], user_id, body.role)
    if row is None:
        raise HTTPException(404, "Project not found")
    return row


@router.delete("/{project_id}/contributors/{user_id}", status_code=204)
def remove_contributor(
    project_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        removed = project_service.remove_contributor(engine, project_id, user["id"], user_id)
    if not removed:
        raise HTTPException(404, "Contributor not found")


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------
@router.get("/{project_id}/updates")
def list_updates(
    project_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    updates = project_service.list_updates(engine, project_id, user["id"] if user else None)
    if updates is None:
        raise HTTPException(404, "Project not found")
    return {"updates": updates}


@router.post("/{project_id}/updates", status_code=201)
def post_update(
    project_id: int,
    body: UpdatePost,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        update = project_service.post_update(engine, project_id, user["id"], **body.model_dump())
    if update is None:
        raise HTTPException(404, "Project not found")
    return update


@router.delete("/updates/{update_id}", status_code=204)
def delete_update(
    update_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = project_service.delete_update(engine, update_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Update not found")


# ---------------------------------------------------------------------------
# Reactions & comments
# ---------------------------------------------------------------------------
@router.post("/{project_id}/reactions")
def react(
    project_id: int,
    body: ReactionIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = project_service.toggle_reaction(engine, project_id, user["id"], body.reaction_type)
    if result is None:
        raise HTTPException(404, "Project not found")
    return result


@router.get("/{project_id}/comments")
def list_comments(
    project_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    comments = project_service.list_comments(engine, project_id, user["id"] if user else None)
    if comments is None:
        raise HTTPException(404, "Project not found")
    return {"comments": comments}


@router.post("/{project_id}/comments", status_code=201)
def add_comment(
    project_id: int,
    body: ProjectCommentIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        comment = project_service.add_comment(
            engine, project_id, user["id"], body.content, parent_id=body.parent_id,
        )
    if comment is None:
        raise HTTPException(404, "Project not found")
    return comment


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    comment_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = project_service.delete_comment(engine, comment_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Comment not found")
