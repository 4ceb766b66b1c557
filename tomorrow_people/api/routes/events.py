"""
tomorrow_people.api.routes.events — Events, RSVPs, waitlists & guest lists
===========================================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tomorrow_people.api.deps import get_current_user, get_engine, get_optional_user, service_errors
from tomorrow_people.services import event_service, rsvp_service

router = APIRouter(prefix="/events", tags=["events"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    starts_at: datetime
    ends_at: datetime | None = None
    description: str | None = None
    location: str | None = Field(default=None, max_length=300)
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    group_name: str | None = Field(default=None, max_length=100)
    published: bool = True
    is_private: bool = False
    rsvp_deadline: datetime | None = None
    max_capacity: int | None = None
    waitlist_enabled: bool = False
    auto_confirm_waitlist: bool = True
    guest_list_visibility: str = "rsvp_only"


class EventUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    description: str | None = None
    location: str | None = None
    image_url: str | None = None
    tags: list[str] | None = None
    group_name: str | None = Field(default=None, max_length=100)
    published: bool | None = None
    is_private: bool | None = None
    rsvp_deadline: datetime | None = None
    max_capacity: int | None = None
    waitlist_enabled: bool | None = None
    auto_confirm_waitlist: bool | None = None
    guest_list_visibility: str | None = None


class StatusUpdate(BaseModel):
    status: str


class RsvpIn(BaseModel):
    status: str


class CohostIn(BaseModel):
    user_id: str
    role: str = "cohost"


class CommentIn(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class InviteIn(BaseModel):
    user_id: str


class SectionInviteIn(BaseModel):
    section_id: int


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@router.get("")
def list_events(
    filter: str = Query("upcoming"),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    events = event_service.list_events(engine, user["id"] if user else None, filter)
    return {"events": events}


@router.get("/hosted")
def hosted_events(user: dict = Depends(get_current_user), engine=Depends(get_engine)):
    return {"events": event_service.list_hosted_events(engine, user["id"])}


@router.post("", status_code=201)
def create_event(
    body: EventCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    fields = body.model_dump()
    with service_errors():
        return event_service.create_event(
            engine, user["id"], title=fields.pop("title"), starts_at=fields.pop("starts_at"), **fields,
        )


@router.get("/{event_id}")
def get_event(
    event_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    event = event_service.get_event(engine, event_id, user["id"] if user else None)
    if event is None:
        raise HTTPException(404, "Event not found")
    return event


@router.patch("/{event_id}")
def update_event(
    event_id: int,
    body: EventUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    kwargs = body.model_dump(exclude_unset=True)
    if not kwargs:
        raise HTTPException(400, "No fields to update")
    with service_errors():
        event = event_service.update_event(engine, event_id, user["id"], **kwargs)
    if event is None:
        raise HTTPException(404, "Event not found")
    return event


@router.delete("/{event_id}", status_code=204)
def delete_event(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = event_service.delete_event(engine, event_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Event not found")


@router.post("/{event_id}/status")
def set_status(
    event_id: int,
    body: StatusUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        event = event_service.set_event_status(engine, event_id, user["id"], body.status)
    if event is None:
        raise HTTPException(404, "Event not found")
    return event


# ---------------------------------------------------------------------------
# RSVP & guest list
# ---------------------------------------------------------------------------
@router.post("/{event_id}/rsvp")
def rsvp(
    event_id: int,
    body: RsvpIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Set an RSVP; sending the current status again withdraws it."""
    with service_errors():
        result = rsvp_service.rsvp(engine, event_id, user["id"], body.status)
    if result is None:
        raise HTTPException(404, "Event not found")
    return result


@router.get("/{event_id}/rsvp")
def my_rsvp(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    result = rsvp_service.get_my_rsvp(engine, event_id, user["id"])
    if result is None:
        raise HTTPException(404, "Event not found")
    return result


@router.get("/{event_id}/guests")
def guest_list(
    event_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    result = rsvp_service.get_guest_list(engine, event_id, user["id"] if user else None)
    if result is None:
        raise HTTPException(404, "Event not found")
    return result


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------
@router.post("/{event_id}/waitlist")
def join_waitlist(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = rsvp_service.join_waitlist(engine, event_id, user["id"])
    if result is None:
        raise HTTPException(404, "Event not found")
    position, total = result
    return {"position": position, "total": total}


@router.delete("/{event_id}/waitlist", status_code=204)
def leave_waitlist(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    if not rsvp_service.leave_waitlist(engine, event_id, user["id"]):
        raise HTTPException(404, "Not on the waitlist")


@router.get("/{event_id}/waitlist")
def get_waitlist(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        entries = rsvp_service.get_waitlist(engine, event_id, user["id"])
    if entries is None:
        raise HTTPException(404, "Event not found")
    return {"waitlist": entries}


@router.post("/{event_id}/waitlist/{user_id}/confirm")
def confirm_waitlisted(
    event_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        confirmed = rsvp_service.confirm_from_waitlist(
            engine, event_id, user_id, actor_id=user["id"],
        )
    if not confirmed:
        raise HTTPException(404, "User is not on the waitlist")
    return {"confirmed": True}


# ---------------------------------------------------------------------------
# Co-hosts
# ---------------------------------------------------------------------------
@router.get("/{event_id}/cohosts")
def list_cohosts(
    event_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    cohosts = event_service.list_cohosts(engine, event_id, user["id"] if user else None)
    if cohosts is None:
        raise HTTPException(404, "Event not found")
    return {"cohosts": cohosts}


@router.post("/{event_id}/cohosts", status_code=201)
def add_cohost(
    event_id: int,
    body: CohostIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = event_service.add_cohost(engine, event_id, user["id"], body.user_id, body.role)
    if result is None:
        raise HTTPException(404, "Event not found")
    return result


@router.delete("/{event_id}/cohosts/{user_id}", status_code=204)
def remove_cohost(
    event_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        removed = event_service.remove_cohost(engine, event_id, user["id"], user_id)
    if not removed:
        raise HTTPException(404, "Co-host not found")


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
@router.get("/{event_id}/comments")
def list_comments(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        comments = event_service.list_comments(engine, event_id, user["id"])
    if comments is None:
        raise HTTPException(404, "Event not found")
    return {"comments": comments}


@router.post("/{event_id}/comments", status_code=201)
def add_comment(
    event_id: int,
    body: CommentIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        comment = event_service.add_comment(engine, event_id, user["id"], body.content)
    if comment is None:
        raise HTTPException(404, "Event not found")
    return comment


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    comment_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = event_service.delete_comment(engine, comment_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Comment not found")


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------
@router.get("/{event_id}/invitations")
def list_invitations(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        invitations = event_service.list_invitations(engine, event_id, user["id"])
    if invitations is None:
        raise HTTPException(404, "Event not found")
    return {"invitations": invitations}


@router.post("/{event_id}/invitations", status_code=201)
def invite(
    event_id: int,
    body: InviteIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = event_service.invite_user(engine, event_id, user["id"], body.user_id)
    if result is None:
        raise HTTPException(404, "Event not found")
    return result


# ---------------------------------------------------------------------------
# Section invites
# ---------------------------------------------------------------------------
@router.get("/{event_id}/sections")
def list_section_invites(
    event_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    sections = event_service.list_section_invites(engine, event_id, user["id"] if user else None)
    if sections is None:
        raise HTTPException(404, "Event not found")
    return {"sections": sections}


@router.post("/{event_id}/sections", status_code=201)
def invite_section(
    event_id: int,
    body: SectionInviteIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        result = event_service.invite_section(engine, event_id, user["id"], body.section_id)
    if result is None:
        raise HTTPException(404, "Event not found")
    return result


@router.delete("/{event_id}/sections/{section_id}", status_code=204)
def uninvite_section(
    event_id: int,
    section_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        removed = event_service.uninvite_section(engine, event_id, user["id"], section_id)
    if not removed:
        raise HTTPException(404, "Section invite not found")


@router.get("/{event_id}/sections/members")
def invited_members(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Everyone invited through a section (hosts only)."""
    with service_errors():
        members = event_service.list_invited_members(engine, event_id, user["id"])
    if members is None:
        raise HTTPException(404, "Event not found")
    return {"members": members}
