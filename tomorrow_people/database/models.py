"""
tomorrow_people.database.models — SQLAlchemy 2.0 Data Models
=============================================================

Tables:
- profiles                 — Member profiles (identity-provider user id PK)
- profile_links            — Social / website links shown on a profile
- events                   — Listings with lifecycle status and RSVP counters
- event_rsvps              — One attendance response per user per event
- event_waitlist           — Ordered queue for full events
- event_cohosts            — Users who manage an event alongside its creator
- event_comments           — Guest discussion on an event page
- event_invitations        — Invitations to private events
- event_section_invites    — Sections invited to an event as a whole
- event_group_subscriptions — Follows of a host's named event series
- ideas                    — Swipe-to-vote statements with vote tallies
- idea_votes               — One vote per user per idea
- idea_comments            — Threaded discussion on ideas
- comment_reactions        — Like / dislike on idea comments
- sections                 — Sub-communities
- section_members          — Membership with approval workflow
- section_invitations      — Admin-issued invitations
- section_profile_fields   — Custom profile fields defined per section
- section_profile_data     — Member answers to those fields
- section_membership_visibility — Per-member "show that I'm a member" flag
- projects                 — Community projects with optional fundraising
- project_contributors     — Team members, supporters and their pledges
- project_updates          — Progress posts by the team
- project_reactions        — Like / follow / bookmark toggles
- project_comments         — Threaded discussion on projects
- channel_categories       — Grouping for the channel sidebar
- channels                 — Chat channels (public, private, event, project, section)
- channel_members          — Membership, roles and moderation state
- channel_messages         — Messages, replies, attachments
- message_reactions        — Emoji reactions
- message_read_receipts    — Per-user read marks
- channel_typing_indicators — Short-lived "is typing" rows
- channel_pinned_messages  — Pinned messages per channel
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Tomorrow People ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class EventStatus(enum.StrEnum):
    """Event lifecycle states."""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PENDING = "pending"
    ACTIVE = "active"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


class RsvpStatus(enum.StrEnum):
    GOING = "going"
    MAYBE = "maybe"
    NOT_GOING = "not_going"


class GuestListVisibility(enum.StrEnum):
    PUBLIC = "public"
    RSVP_ONLY = "rsvp_only"
    HIDDEN = "hidden"


class CohostRole(enum.StrEnum):
    COHOST = "cohost"
    ORGANIZER = "organizer"
    MODERATOR = "moderator"


class VoteType(enum.StrEnum):
    AGREE = "agree"
    DISAGREE = "disagree"
    PASS = "pass"


class IdeaType(enum.StrEnum):
    QUESTION = "question"
    STATEMENT = "statement"
    PROPOSAL = "proposal"


class CommentReactionType(enum.StrEnum):
    LIKE = "like"
    DISLIKE = "dislike"


class MembershipStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class InvitationStatus(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class FieldType(enum.StrEnum):
    """Input kinds a section can ask its members to fill out."""
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    MULTISELECT = "multiselect"
    CHECKBOX = "checkbox"
    NUMBER = "number"
    DATE = "date"
    URL = "url"
    EMAIL = "email"
    PHONE = "phone"


class ProjectStatus(enum.StrEnum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class ContributorRole(enum.StrEnum):
    CREATOR = "creator"
    ADMIN = "admin"
    CONTRIBUTOR = "contributor"
    SUPPORTER = "supporter"


class ProjectUpdateType(enum.StrEnum):
    PROGRESS = "progress"
    MILESTONE = "milestone"
    ANNOUNCEMENT = "announcement"
    FUNDRAISING = "fundraising"


class ProjectReactionType(enum.StrEnum):
    LIKE = "like"
    FOLLOW = "follow"
    BOOKMARK = "bookmark"


class ChannelType(enum.StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"
    EVENT = "event"
    PROJECT = "project"
    SECTION = "section"


class ChannelRole(enum.StrEnum):
    OWNER = "owner"
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


class MessageType(enum.StrEnum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"
    SYSTEM = "system"


# ---------------------------------------------------------------------------
# Profiles — one row per authenticated user
# ---------------------------------------------------------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="User")
    bio: Mapped[str | None] = mapped_column(Text, default=None)
    phone: Mapped[str | None] = mapped_column(String(30), default=None)
    profile_picture_url: Mapped[str | None] = mapped_column(String(500), default=None)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    links: Mapped[list[ProfileLink]] = relationship(
        back_populates="profile", cascade="all, delete-orphan",
        order_by="ProfileLink.display_order",
    )

    __table_args__ = (
        Index("ix_profiles_created_at", "created_at"),
        Index("ix_profiles_full_name", "full_name"),
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id} name={self.full_name!r}>"


class ProfileLink(Base):
    __tablename__ = "profile_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    label: Mapped[str | None] = mapped_column(String(100), default=None)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    profile: Mapped[Profile] = relationship(back_populates="links")

    __table_args__ = (
        UniqueConstraint("user_id", "platform", "label", name="uq_profile_links_user_platform_label"),
        Index("ix_profile_links_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<ProfileLink user={self.user_id} platform={self.platform!r}>"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    location: Mapped[str | None] = mapped_column(String(300), default=None)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    group_name: Mapped[str | None] = mapped_column(String(100), default=None)  # host's event series
    created_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    published: Mapped[bool] = mapped_column(Boolean, default=True)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EventStatus.DRAFT.value
    )
    status_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    status_updated_by: Mapped[str | None] = mapped_column(String(36), default=None)

    # Capacity & waitlist
    rsvp_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    max_capacity: Mapped[int | None] = mapped_column(Integer, default=None)
    waitlist_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_confirm_waitlist: Mapped[bool] = mapped_column(Boolean, default=True)
    guest_list_visibility: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GuestListVisibility.RSVP_ONLY.value
    )

    # Denormalised counters (maintained by rsvp_service)
    rsvp_count: Mapped[int] = mapped_column(Integer, default=0)
    maybe_count: Mapped[int] = mapped_column(Integer, default=0)
    not_going_count: Mapped[int] = mapped_column(Integer, default=0)
    waitlist_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    rsvps: Mapped[list[EventRsvp]] = relationship(
        back_populates="event", cascade="all, delete-orphan"
    )
    waitlist: Mapped[list[EventWaitlistEntry]] = relationship(
        back_populates="event", cascade="all, delete-orphan",
        order_by="EventWaitlistEntry.position",
    )
    cohosts: Mapped[list[EventCohost]] = relationship(cascade="all, delete-orphan")
    comments: Mapped[list[EventComment]] = relationship(cascade="all, delete-orphan")
    invitations: Mapped[list[EventInvitation]] = relationship(cascade="all, delete-orphan")
    section_invites: Mapped[list[EventSectionInvite]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_events_starts_at", "starts_at"),
        Index("ix_events_status", "status"),
        Index("ix_events_created_by", "created_by"),
        Index("ix_events_group", "created_by", "group_name"),
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} title={self.title!r} status={self.status}>"


class EventRsvp(Base):
    __tablename__ = "event_rsvps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RsvpStatus.GOING.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    event: Mapped[Event] = relationship(back_populates="rsvps")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_rsvps_event_user"),
        Index("ix_event_rsvps_user", "user_id"),
        Index("ix_event_rsvps_event_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<EventRsvp event={self.event_id} user={self.user_id} status={self.status}>"


class EventWaitlistEntry(Base):
    __tablename__ = "event_waitlist"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # 1 = first in line
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    event: Mapped[Event] = relationship(back_populates="waitlist")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_waitlist_event_user"),
        Index("ix_event_waitlist_event_position", "event_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<EventWaitlistEntry event={self.event_id} user={self.user_id} pos={self.position}>"


class EventCohost(Base):
    __tablename__ = "event_cohosts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    added_by: Mapped[str | None] = mapped_column(String(36), default=None)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=CohostRole.COHOST.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_cohosts_event_user"),
    )

    def __repr__(self) -> str:
        return f"<EventCohost event={self.event_id} user={self.user_id} role={self.role}>"


class EventComment(Base):
    __tablename__ = "event_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_event_comments_event", "event_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventComment id={self.id} event={self.event_id}>"


class EventInvitation(Base):
    __tablename__ = "event_invitations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    invited_by: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_invitations_event_user"),
    )

    def __repr__(self) -> str:
        return f"<EventInvitation event={self.event_id} user={self.user_id}>"


class EventSectionInvite(Base):
    """A whole section invited to an event; its approved members count as invitees."""
    __tablename__ = "event_section_invites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    section_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False
    )
    invited_by: Mapped[str] = mapped_column(String(36), nullable=False)
    invited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("event_id", "section_id", name="uq_event_section_invites_event_section"),
        Index("ix_event_section_invites_section", "section_id"),
    )

    def __repr__(self) -> str:
        return f"<EventSectionInvite event={self.event_id} section={self.section_id}>"


class EventGroupSubscription(Base):
    __tablename__ = "event_group_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subscriber_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    creator_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    group_name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "subscriber_id", "creator_id", "group_name", name="uq_event_group_subscriptions",
        ),
        Index("ix_event_group_subscriptions_group", "creator_id", "group_name"),
    )

    def __repr__(self) -> str:
        return (
            f"<EventGroupSubscription subscriber={self.subscriber_id} "
            f"creator={self.creator_id} group={self.group_name!r}>"
        )


# ---------------------------------------------------------------------------
# Ideas
# ---------------------------------------------------------------------------
class Idea(Base):
    __tablename__ = "ideas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    statement: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=IdeaType.QUESTION.value)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    creator_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)

    total_votes: Mapped[int] = mapped_column(Integer, default=0)
    agree_votes: Mapped[int] = mapped_column(Integer, default=0)
    disagree_votes: Mapped[int] = mapped_column(Integer, default=0)
    pass_votes: Mapped[int] = mapped_column(Integer, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    votes: Mapped[list[IdeaVote]] = relationship(cascade="all, delete-orphan")
    comments: Mapped[list[IdeaComment]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_ideas_category", "category"),
        Index("ix_ideas_created_at", "created_at"),
        Index("ix_ideas_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Idea id={self.id} title={self.title!r} votes={self.total_votes}>"


class IdeaVote(Base):
    __tablename__ = "idea_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    vote_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("idea_id", "user_id", name="uq_idea_votes_idea_user"),
        Index("ix_idea_votes_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<IdeaVote idea={self.idea_id} user={self.user_id} vote={self.vote_type}>"


class IdeaComment(Base):
    __tablename__ = "idea_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("idea_comments.id", ondelete="CASCADE"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    like_count: Mapped[int] = mapped_column(Integer, default=0)
    reply_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    reactions: Mapped[list[CommentReaction]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_idea_comments_idea", "idea_id", "created_at"),
        Index("ix_idea_comments_parent", "parent_id"),
    )

    def __repr__(self) -> str:
        return f"<IdeaComment id={self.id} idea={self.idea_id} parent={self.parent_id}>"


class CommentReaction(Base):
    __tablename__ = "comment_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("idea_comments.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    reaction_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_reactions_comment_user"),
    )

    def __repr__(self) -> str:
        return f"<CommentReaction comment={self.comment_id} user={self.user_id} type={self.reaction_type}>"


# ---------------------------------------------------------------------------
# Sections — sub-communities
# ---------------------------------------------------------------------------
class Section(Base):
    __tablename__ = "sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    creator_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    members: Mapped[list[SectionMember]] = relationship(
        back_populates="section", cascade="all, delete-orphan"
    )
    fields: Mapped[list[SectionProfileField]] = relationship(
        back_populates="section", cascade="all, delete-orphan",
        order_by="SectionProfileField.display_order",
    )
    invitations: Mapped[list[SectionInvitation]] = relationship(cascade="all, delete-orphan")
    visibility: Mapped[list[SectionMembershipVisibility]] = relationship(
        cascade="all, delete-orphan"
    )
    profile_data: Mapped[list[SectionProfileData]] = relationship(cascade="all, delete-orphan")
    event_invites: Mapped[list[EventSectionInvite]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("creator_id", "name", name="uq_sections_creator_name"),
        Index("ix_sections_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Section id={self.id} name={self.name!r}>"


class SectionMember(Base):
    __tablename__ = "section_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MembershipStatus.PENDING.value
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    approved_by: Mapped[str | None] = mapped_column(String(36), default=None)

    section: Mapped[Section] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("section_id", "user_id", name="uq_section_members_section_user"),
        Index("ix_section_members_user", "user_id"),
        Index("ix_section_members_status", "section_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<SectionMember section={self.section_id} user={self.user_id} "
            f"status={self.status} admin={self.is_admin}>"
        )


class SectionInvitation(Base):
    __tablename__ = "section_invitations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    invited_by: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvitationStatus.PENDING.value
    )
    message: Mapped[str | None] = mapped_column(Text, default=None)
    invited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        # One pending invitation per user per section
        Index(
            "ix_section_invitations_unique_pending",
            "section_id",
            "user_id",
            unique=True,
            postgresql_where=(status == InvitationStatus.PENDING.value),
            sqlite_where=(status == InvitationStatus.PENDING.value),
        ),
        Index("ix_section_invitations_user", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<SectionInvitation section={self.section_id} user={self.user_id} status={self.status}>"


class SectionProfileField(Base):
    """A custom profile question a section asks its members."""
    __tablename__ = "section_profile_fields"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False
    )
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    field_label: Mapped[str] = mapped_column(String(200), nullable=False)
    field_type: Mapped[str] = mapped_column(String(20), nullable=False)
    field_options: Mapped[list | None] = mapped_column(JSONB, default=list)  # [{value, label}]
    placeholder: Mapped[str | None] = mapped_column(String(200), default=None)
    help_text: Mapped[str | None] = mapped_column(Text, default=None)
    default_value: Mapped[str | None] = mapped_column(Text, default=None)

    # Validation
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    min_length: Mapped[int | None] = mapped_column(Integer, default=None)
    max_length: Mapped[int | None] = mapped_column(Integer, default=None)
    validation_pattern: Mapped[str | None] = mapped_column(Text, default=None)

    # Display
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_by: Mapped[str | None] = mapped_column(String(36), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    section: Mapped[Section] = relationship(back_populates="fields")

    __table_args__ = (
        UniqueConstraint("section_id", "field_name", name="uq_section_fields_section_name"),
        Index("ix_section_fields_order", "section_id", "display_order"),
    )

    def __repr__(self) -> str:
        return f"<SectionProfileField id={self.id} name={self.field_name!r} type={self.field_type}>"


class SectionProfileData(Base):
    __tablename__ = "section_profile_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    section_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False
    )
    field_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("section_profile_fields.id", ondelete="CASCADE"), nullable=False
    )
    value: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "field_id", name="uq_section_data_user_field"),
        Index("ix_section_data_user_section", "user_id", "section_id"),
    )

    def __repr__(self) -> str:
        return f"<SectionProfileData user={self.user_id} field={self.field_id}>"


class SectionMembershipVisibility(Base):
    __tablename__ = "section_membership_visibility"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    section_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False
    )
    show_membership: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "section_id", name="uq_section_visibility_user_section"),
    )

    def __repr__(self) -> str:
        return f"<SectionMembershipVisibility user={self.user_id} section={self.section_id}>"


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------
class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    summary: Mapped[str | None] = mapped_column(String(500), default=None)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    creator_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProjectStatus.PLANNING.value
    )
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    gallery_images: Mapped[list | None] = mapped_column(JSONB, default=list)

    # Fundraising (amounts in the community's currency, two decimals)
    fundraising_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    fundraising_goal: Mapped[float | None] = mapped_column(
        Numeric(12, 2, asdecimal=False), default=None
    )
    funds_raised: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0)

    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    target_completion_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    actual_completion_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    views_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    contributors: Mapped[list[ProjectContributor]] = relationship(cascade="all, delete-orphan")
    updates: Mapped[list[ProjectUpdate]] = relationship(cascade="all, delete-orphan")
    reactions: Mapped[list[ProjectReaction]] = relationship(cascade="all, delete-orphan")
    comments: Mapped[list[ProjectComment]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_projects_creator", "creator_id"),
        Index("ix_projects_status", "status"),
        Index("ix_projects_category", "category"),
        Index("ix_projects_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Project id={self.id} title={self.title!r} status={self.status}>"


class ProjectContributor(Base):
    __tablename__ = "project_contributors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContributorRole.CONTRIBUTOR.value
    )
    contribution_type: Mapped[str | None] = mapped_column(String(50), default=None)
    contribution_amount: Mapped[float | None] = mapped_column(
        Numeric(12, 2, asdecimal=False), default=None
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_contributors_project_user"),
        Index("ix_project_contributors_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<ProjectContributor project={self.project_id} user={self.user_id} role={self.role}>"


class ProjectUpdate(Base):
    __tablename__ = "project_updates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    update_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProjectUpdateType.PROGRESS.value
    )
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_project_updates_project", "project_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ProjectUpdate id={self.id} project={self.project_id} type={self.update_type}>"


class ProjectReaction(Base):
    __tablename__ = "project_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    reaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "project_id", "user_id", "reaction_type", name="uq_project_reactions_project_user_type",
        ),
        Index("ix_project_reactions_user", "user_id", "reaction_type"),
    )

    def __repr__(self) -> str:
        return f"<ProjectReaction project={self.project_id} user={self.user_id} type={self.reaction_type}>"


class ProjectComment(Base):
    __tablename__ = "project_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("project_comments.id", ondelete="CASCADE"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_project_comments_project", "project_id", "created_at"),
        Index("ix_project_comments_parent", "parent_id"),
    )

    def __repr__(self) -> str:
        return f"<ProjectComment id={self.id} project={self.project_id} parent={self.parent_id}>"


# ---------------------------------------------------------------------------
# Channels — chat
# ---------------------------------------------------------------------------
class ChannelCategory(Base):
    __tablename__ = "channel_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    icon: Mapped[str | None] = mapped_column(String(50), default=None)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<ChannelCategory id={self.id} name={self.name!r}>"


class Channel(Base):
    __tablename__ = "channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("channel_categories.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=ChannelType.PUBLIC.value)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    is_read_only: Mapped[bool] = mapped_column(Boolean, default=False)

    # Integration with events / sections / projects (at most one)
    event_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=True
    )
    section_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=True
    )
    project_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True
    )

    created_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    members: Mapped[list[ChannelMember]] = relationship(
        back_populates="channel", cascade="all, delete-orphan"
    )
    messages: Mapped[list[ChannelMessage]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "(event_id IS NULL OR section_id IS NULL) "
            "AND (event_id IS NULL OR project_id IS NULL) "
            "AND (section_id IS NULL OR project_id IS NULL)",
            name="ck_channels_single_owner",
        ),
        Index("ix_channels_type", "type"),
        Index("ix_channels_section", "section_id"),
        Index("ix_channels_project", "project_id"),
        Index("ix_channels_last_message", "last_message_at"),
    )

    def __repr__(self) -> str:
        return f"<Channel id={self.id} name={self.name!r} type={self.type!r}>"


class ChannelMember(Base):
    __tablename__ = "channel_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ChannelRole.MEMBER.value)
    is_muted: Mapped[bool] = mapped_column(Boolean, default=False)
    muted_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False)
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    last_read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    channel: Mapped[Channel] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("channel_id", "user_id", name="uq_channel_members_channel_user"),
        Index("ix_channel_members_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<ChannelMember channel={self.channel_id} user={self.user_id} role={self.role}>"


class ChannelMessage(Base):
    __tablename__ = "channel_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MessageType.TEXT.value
    )
    attachments: Mapped[list | None] = mapped_column(JSONB, default=list)  # [{type, url, filename, size, thumbnail}]

    # Threading
    parent_message_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("channel_messages.id", ondelete="CASCADE"), nullable=True
    )
    thread_count: Mapped[int] = mapped_column(Integer, default=0)

    mentioned_user_ids: Mapped[list | None] = mapped_column(JSONB, default=list)

    # Editing & deletion
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    deleted_by: Mapped[str | None] = mapped_column(String(36), default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    reactions: Mapped[list[MessageReaction]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_channel_messages_channel", "channel_id", "id"),
        Index("ix_channel_messages_parent", "parent_message_id"),
        Index("ix_channel_messages_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<ChannelMessage id={self.id} channel={self.channel_id} user={self.user_id}>"


class MessageReaction(Base):
    __tablename__ = "message_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("channel_messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_message_reactions_msg_user_emoji"),
    )

    def __repr__(self) -> str:
        return f"<MessageReaction message={self.message_id} user={self.user_id} emoji={self.emoji!r}>"


class MessageReadReceipt(Base):
    __tablename__ = "message_read_receipts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("channel_messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_read_receipts_message_user"),
    )

    def __repr__(self) -> str:
        return f"<MessageReadReceipt message={self.message_id} user={self.user_id}>"


class TypingIndicator(Base):
    __tablename__ = "channel_typing_indicators"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("channel_id", "user_id", name="uq_typing_channel_user"),
        Index("ix_typing_expires", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<TypingIndicator channel={self.channel_id} user={self.user_id}>"


class PinnedMessage(Base):
    __tablename__ = "channel_pinned_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("channel_messages.id", ondelete="CASCADE"), nullable=False
    )
    pinned_by: Mapped[str] = mapped_column(String(36), nullable=False)
    pinned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("channel_id", "message_id", name="uq_pinned_channel_message"),
    )

    def __repr__(self) -> str:
        return f"<PinnedMessage channel={self.channel_id} message={self.message_id}>"
