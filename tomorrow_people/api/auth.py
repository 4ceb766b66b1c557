"""
tomorrow_people.api.auth — Current user endpoints
==================================================

Sign-in happens at the identity provider; these routes only expose who the
bearer token belongs to.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from tomorrow_people.api.deps import get_current_user, get_engine
from tomorrow_people.services import profile_service, section_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
def me(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Return the caller's own profile (including e-mail and links)."""
    profile = profile_service.get_profile(engine, user["id"], viewer_id=user["id"])
    if profile is None:
        raise HTTPException(404, "Profile not found")
    profile["sections"] = section_service.list_user_sections(engine, user["id"], user["id"])
    profile["section_invitations"] = section_service.list_my_invitations(engine, user["id"])
    return profile
