"""
tomorrow_people.api.routes.profiles — Member directory & profile editing
=========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tomorrow_people.api.deps import get_current_user, get_engine, get_optional_user, service_errors
from tomorrow_people.services import group_service, profile_service, project_service, section_service

router = APIRouter(prefix="/profiles", tags=["profiles"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProfileUpdate(BaseModel):
    full_name: str | None = None
    bio: str | None = Field(default=None, max_length=2000)
    phone: str | None = Field(default=None, max_length=30)
    profile_picture_url: str | None = None
    is_private: bool | None = None


class LinkIn(BaseModel):
    platform: str
    url: str
    label: str | None = None


class LinksUpdate(BaseModel):
    links: list[LinkIn] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------
@router.get("")
def directory(
    search: str | None = Query(None, max_length=100),
    sort: str = Query("latest"),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    with service_errors():
        profiles = profile_service.list_directory(
            engine, viewer_id=user["id"] if user else None, search=search, sort=sort,
        )
    return {"profiles": profiles, "total": len(profiles)}


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------
@router.patch("/me")
def update_me(
    body: ProfileUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    kwargs = body.model_dump(exclude_unset=True)
    if not kwargs:
        raise HTTPException(400, "No fields to update")
    with service_errors():
        profile = profile_service.update_profile(engine, user["id"], **kwargs)
    if profile is None:
        raise HTTPException(404, "Profile not found")
    return profile


@router.put("/me/links")
def replace_links(
    body: LinksUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        links = profile_service.set_links(
            engine, user["id"], [link.model_dump() for link in body.links],
        )
    return {"links": links}


# ---------------------------------------------------------------------------
# Any profile
# ---------------------------------------------------------------------------
@router.get("/{user_id}")
def get_profile(
    user_id: str,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    viewer_id = user["id"] if user else None
    profile = profile_service.get_profile(engine, user_id, viewer_id=viewer_id)
    if profile is None:
        raise HTTPException(404, "Profile not found")
    profile["sections"] = section_service.list_user_sections(engine, user_id, viewer_id)
    profile["projects"] = project_service.list_user_projects(engine, user_id, viewer_id)
    profile["groups"] = group_service.list_host_groups(engine, user_id)
    return profile


@router.get("/{user_id}/links")
def get_links(user_id: str, engine=Depends(get_engine)):
    return {"links": profile_service.list_links(engine, user_id)}
