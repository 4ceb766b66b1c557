"""
tomorrow_people.api.routes.sections — Sections, membership & custom fields
===========================================================================

Section CRUD, the join/approve workflow, invitations, the admin-defined
profile fields and each member's answers to them, and the events a section
has been invited to.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tomorrow_people.api.deps import get_current_user, get_engine, get_optional_user, service_errors
from tomorrow_people.services import event_service, field_service, section_service

router = APIRouter(prefix="/sections", tags=["sections"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SectionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    image_url: str | None = None
    is_public: bool = True
    requires_approval: bool = False


class SectionUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    image_url: str | None = None
    is_public: bool | None = None
    requires_approval: bool | None = None


class AdminUpdate(BaseModel):
    is_admin: bool


class VisibilityUpdate(BaseModel):
    show_on_profile: bool


class SectionInviteIn(BaseModel):
    user_id: str
    message: str | None = Field(default=None, max_length=500)


class InvitationResponse(BaseModel):
    accept: bool


class FieldCreate(BaseModel):
    field_label: str = Field(min_length=1, max_length=100)
    field_type: str
    field_name: str | None = Field(default=None, max_length=50)
    field_options: list[Any] | None = None
    placeholder: str | None = None
    help_text: str | None = None
    default_value: str | None = None
    is_required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    validation_pattern: str | None = None
    display_order: int | None = None


class FieldUpdate(BaseModel):
    field_label: str | None = Field(default=None, max_length=100)
    field_type: str | None = None
    field_options: list[Any] | None = None
    placeholder: str | None = None
    help_text: str | None = None
    default_value: str | None = None
    is_required: bool | None = None
    min_length: int | None = None
    max_length: int | None = None
    validation_pattern: str | None = None
    display_order: int | None = None
    is_active: bool | None = None


class FieldOrder(BaseModel):
    field_ids: list[int]


class ProfileDataIn(BaseModel):
    values: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------
@router.get("")
def list_sections(
    search: str | None = Query(None, max_length=100),
    mine: bool = Query(False),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    sections = section_service.list_sections(
        engine, user["id"] if user else None, search=search, mine=mine,
    )
    return {"sections": sections}


@router.post("", status_code=201)
def create_section(
    body: SectionCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        return section_service.create_section(engine, user["id"], **body.model_dump())


@router.get("/invitations")
def my_invitations(user: dict = Depends(get_current_user), engine=Depends(get_engine)):
    return {"invitations": section_service.list_my_invitations(engine, user["id"])}


@router.post("/invitations/{invitation_id}/respond")
def respond(
    invitation_id: int,
    body: InvitationResponse,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = section_service.respond_to_invitation(engine, invitation_id, user["id"], body.accept)
    if result is None:
        raise HTTPException(404, "Invitation not found")
    return result


@router.get("/{section_id}")
def get_section(
    section_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    section = section_service.get_section(engine, section_id, user["id"] if user else None)
    if section is None:
        raise HTTPException(404, "Section not found")
    return section


@router.patch("/{section_id}")
def update_section(
    section_id: int,
    body: SectionUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    kwargs = body.model_dump(exclude_unset=True)
    if not kwargs:
        raise HTTPException(400, "No fields to update")
    with service_errors():
        section = section_service.update_section(engine, section_id, user["id"], **kwargs)
    if section is None:
        raise HTTPException(404, "Section not found")
    return section


@router.delete("/{section_id}", status_code=204)
def delete_section(
    section_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = section_service.delete_section(engine, section_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Section not found")


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
@router.post("/{section_id}/join")
def join(
    section_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = section_service.join_section(engine, section_id, user["id"])
    if result is None:
        raise HTTPException(404, "Section not found")
    return result


@router.post("/{section_id}/leave", status_code=204)
def leave(
    section_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        left = section_service.leave_section(engine, section_id, user["id"])
    if not left:
        raise HTTPException(404, "Not a member of this section")


@router.get("/{section_id}/members")
def members(
    section_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    rows = section_service.list_members(engine, section_id, user["id"] if user else None)
    if rows is None:
        raise HTTPException(404, "Section not found")
    return {"members": rows}


@router.get("/{section_id}/events")
def section_events(
    section_id: int,
    filter: str = Query("upcoming"),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    """Events this section has been invited to."""
    with service_errors():
        events = event_service.list_section_events(
            engine, section_id, user["id"] if user else None, filter,
        )
    if events is None:
        raise HTTPException(404, "Section not found")
    return {"events": events}


@router.get("/{section_id}/pending")
def pending(
    section_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        rows = section_service.list_pending(engine, section_id, user["id"])
    if rows is None:
        raise HTTPException(404, "Section not found")
    return {"pending": rows}


@router.post("/{section_id}/members/{user_id}/approve")
def approve(
    section_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = section_service.approve_member(engine, section_id, user["id"], user_id)
    if result is None:
        raise HTTPException(404, "Membership request not found")
    return result


@router.post("/{section_id}/members/{user_id}/reject")
def reject(
    section_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = section_service.reject_member(engine, section_id, user["id"], user_id)
    if result is None:
        raise HTTPException(404, "Membership request not found")
    return result


@router.delete("/{section_id}/members/{user_id}", status_code=204)
def remove(
    section_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        removed = section_service.remove_member(engine, section_id, user["id"], user_id)
    if not removed:
        raise HTTPException(404, "Member not found")


@router.put("/{section_id}/members/{user_id}/admin")
def set_admin(
    section_id: int,
    user_id: str,
    body: AdminUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = section_service.set_admin(engine, section_id, user["id"], user_id, body.is_admin)
    if result is None:
        raise HTTPException(404, "Member not found")
    return result


@router.put("/{section_id}/visibility")
def visibility(
    section_id: int,
    body: VisibilityUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        updated = section_service.set_visibility(engine, section_id, user["id"], body.show_on_profile)
    if not updated:
        raise HTTPException(404, "Not a member of this section")
    return {"show_on_profile": body.show_on_profile}


@router.post("/{section_id}/invitations", status_code=201)
def invite(
    section_id: int,
    body: SectionInviteIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = section_service.invite_to_section(
            engine, section_id, user["id"], body.user_id, body.message,
        )
    if result is None:
        raise HTTPException(404, "Section not found")
    return result


# ---------------------------------------------------------------------------
# Custom profile fields
# ---------------------------------------------------------------------------
@router.get("/{section_id}/fields")
def list_fields(
    section_id: int,
    include_inactive: bool = Query(False),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    fields = field_service.list_fields(
        engine, section_id, user["id"] if user else None, include_inactive=include_inactive,
    )
    if fields is None:
        raise HTTPException(404, "Section not found")
    return {"fields": fields}


@router.post("/{section_id}/fields", status_code=201)
def create_field(
    section_id: int,
    body: FieldCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    attrs = body.model_dump(exclude_none=True)
    with service_errors():
        field = field_service.create_field(
            engine,
            section_id,
            user["id"],
            field_label=attrs.pop("field_label"),
            field_type=attrs.pop("field_type"),
            **attrs,
        )
    if field is None:
        raise HTTPException(404, "Section not found")
    return field


@router.put("/{section_id}/fields/order")
def reorder_fields(
    section_id: int,
    body: FieldOrder,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        fields = field_service.reorder_fields(engine, section_id, user["id"], body.field_ids)
    if fields is None:
        raise HTTPException(404, "Section not found")
    return {"fields": fields}


@router.patch("/fields/{field_id}")
def update_field(
    field_id: int,
    body: FieldUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    kwargs = body.model_dump(exclude_unset=True)
    if not kwargs:
        raise HTTPException(400, "No fields to update")
    with service_errors():
        field = field_service.update_field(engine, field_id, user["id"], **kwargs)
    if field is None:
        raise HTTPException(404, "Field not found")
    return field


@router.delete("/fields/{field_id}", status_code=204)
def deactivate_field(
    field_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        done = field_service.deactivate_field(engine, field_id, user["id"])
    if not done:
        raise HTTPException(404, "Field not found")


# ---------------------------------------------------------------------------
# Member answers
# ---------------------------------------------------------------------------
@router.get("/{section_id}/profile/{user_id}")
def get_profile_data(
    section_id: int,
    user_id: str,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    data = field_service.get_profile_data(engine, section_id, user_id, user["id"] if user else None)
    if data is None:
        raise HTTPException(404, "Section not found")
    return {"data": data}


@router.put("/{section_id}/profile")
def save_profile_data(
    section_id: int,
    body: ProfileDataIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Validate and store the caller's answers; 400 with per-field errors."""
    with service_errors():
        result = field_service.save_profile_data(engine, section_id, user["id"], body.values)
    if result is None:
        raise HTTPException(404, "Section not found")
    if not result["saved"]:
        raise HTTPException(400, {"message": "Some fields are invalid", "errors": result["errors"]})
    return result
