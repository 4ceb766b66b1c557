"""Baseline schema: profiles, events, ideas, sections, channels

Revision ID: 0a1c2e3f4b5d
Revises:
Create Date: 2026-10-19 06:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0a1c2e3f4b5d"
down_revision = None
branch_labels = None
depends_on = None


def _ts(name: str, *, default: bool = True, nullable: bool = True) -> sa.Column:
    if default:
        return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _user_fk(name: str = "user_id") -> sa.Column:
    return sa.Column(
        name, sa.String(36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )


def _pk() -> sa.Column:
    return sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True)


def upgrade() -> None:
    # -- Profiles -----------------------------------------------------------
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(200), nullable=False, server_default="User"),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("profile_picture_url", sa.String(500), nullable=True),
        sa.Column("is_private", sa.Boolean(), server_default="false"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_profiles_created_at", "profiles", ["created_at"])
    op.create_index("ix_profiles_full_name", "profiles", ["full_name"])

    op.create_table(
        "profile_links",
        _pk(),
        _user_fk(),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column("label", sa.String(100), nullable=True),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("display_order", sa.Integer(), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        _ts("created_at"),
        sa.UniqueConstraint("user_id", "platform", "label", name="uq_profile_links_user_platform_label"),
    )
    op.create_index("ix_profile_links_user_active", "profile_links", ["user_id", "is_active"])

    # -- Events -------------------------------------------------------------
    op.create_table(
        "events",
        _pk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(300), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        _ts("ends_at", default=False),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=True),
        _user_fk("created_by"),
        sa.Column("published", sa.Boolean(), server_default="true"),
        sa.Column("is_private", sa.Boolean(), server_default="false"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        _ts("status_updated_at", default=False),
        sa.Column("status_updated_by", sa.String(36), nullable=True),
        _ts("rsvp_deadline", default=False),
        sa.Column("max_capacity", sa.Integer(), nullable=True),
        sa.Column("waitlist_enabled", sa.Boolean(), server_default="false"),
        sa.Column("auto_confirm_waitlist", sa.Boolean(), server_default="true"),
        sa.Column("guest_list_visibility", sa.String(20), nullable=False, server_default="rsvp_only"),
        sa.Column("rsvp_count", sa.Integer(), server_default="0"),
        sa.Column("maybe_count", sa.Integer(), server_default="0"),
        sa.Column("not_going_count", sa.Integer(), server_default="0"),
        sa.Column("waitlist_count", sa.Integer(), server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_events_starts_at", "events", ["starts_at"])
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_created_by", "events", ["created_by"])

    op.create_table(
        "event_rsvps",
        _pk(),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("status", sa.String(20), nullable=False, server_default="going"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_rsvps_event_user"),
    )
    op.create_index("ix_event_rsvps_user", "event_rsvps", ["user_id"])
    op.create_index("ix_event_rsvps_event_status", "event_rsvps", ["event_id", "status"])

    op.create_table(
        "event_waitlist",
        _pk(),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("position", sa.Integer(), nullable=False),
        _ts("created_at"),
        _ts("notified_at", default=False),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_waitlist_event_user"),
    )
    op.create_index("ix_event_waitlist_event_position", "event_waitlist", ["event_id", "position"])

    op.create_table(
        "event_cohosts",
        _pk(),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("added_by", sa.String(36), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="cohost"),
        _ts("created_at"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_cohosts_event_user"),
    )

    op.create_table(
        "event_comments",
        _pk(),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("content", sa.Text(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_event_comments_event", "event_comments", ["event_id", "created_at"])

    op.create_table(
        "event_invitations",
        _pk(),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("invited_by", sa.String(36), nullable=False),
        _ts("created_at"),
        _ts("accepted_at", default=False),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_invitations_event_user"),
    )

    # -- Ideas --------------------------------------------------------------
    op.create_table(
        "ideas",
        _pk(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("statement", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="question"),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=True),
        _user_fk("creator_id"),
        _ts("expires_at", default=False),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("is_featured", sa.Boolean(), server_default="false"),
        sa.Column("total_votes", sa.Integer(), server_default="0"),
        sa.Column("agree_votes", sa.Integer(), server_default="0"),
        sa.Column("disagree_votes", sa.Integer(), server_default="0"),
        sa.Column("pass_votes", sa.Integer(), server_default="0"),
        sa.Column("comment_count", sa.Integer(), server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_ideas_category", "ideas", ["category"])
    op.create_index("ix_ideas_created_at", "ideas", ["created_at"])
    op.create_index("ix_ideas_is_active", "ideas", ["is_active"])

    op.create_table(
        "idea_votes",
        _pk(),
        sa.Column("idea_id", sa.Integer(), sa.ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("vote_type", sa.String(10), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("idea_id", "user_id", name="uq_idea_votes_idea_user"),
    )
    op.create_index("ix_idea_votes_user", "idea_votes", ["user_id"])

    op.create_table(
        "idea_comments",
        _pk(),
        sa.Column("idea_id", sa.Integer(), sa.ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column(
            "parent_id", sa.Integer(),
            sa.ForeignKey("idea_comments.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default="false"),
        sa.Column("like_count", sa.Integer(), server_default="0"),
        sa.Column("reply_count", sa.Integer(), server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_idea_comments_idea", "idea_comments", ["idea_id", "created_at"])
    op.create_index("ix_idea_comments_parent", "idea_comments", ["parent_id"])

    op.create_table(
        "comment_reactions",
        _pk(),
        sa.Column(
            "comment_id", sa.Integer(),
            sa.ForeignKey("idea_comments.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk(),
        sa.Column("reaction_type", sa.String(10), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("comment_id", "user_id", name="uq_comment_reactions_comment_user"),
    )

    # -- Sections -----------------------------------------------------------
    op.create_table(
        "sections",
        _pk(),
        _user_fk("creator_id"),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("is_public", sa.Boolean(), server_default="true"),
        sa.Column("requires_approval", sa.Boolean(), server_default="false"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("creator_id", "name", name="uq_sections_creator_name"),
    )
    op.create_index("ix_sections_name", "sections", ["name"])

    op.create_table(
        "section_members",
        _pk(),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("is_admin", sa.Boolean(), server_default="false"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        _ts("joined_at"),
        _ts("approved_at", default=False),
        sa.Column("approved_by", sa.String(36), nullable=True),
        sa.UniqueConstraint("section_id", "user_id", name="uq_section_members_section_user"),
    )
    op.create_index("ix_section_members_user", "section_members", ["user_id"])
    op.create_index("ix_section_members_status", "section_members", ["section_id", "status"])

    op.create_table(
        "section_invitations",
        _pk(),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("invited_by", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("message", sa.Text(), nullable=True),
        _ts("invited_at"),
        _ts("responded_at", default=False),
    )
    op.create_index(
        "ix_section_invitations_unique_pending",
        "section_invitations",
        ["section_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index("ix_section_invitations_user", "section_invitations", ["user_id", "status"])

    op.create_table(
        "section_profile_fields",
        _pk(),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("field_name", sa.String(100), nullable=False),
        sa.Column("field_label", sa.String(200), nullable=False),
        sa.Column("field_type", sa.String(20), nullable=False),
        sa.Column("field_options", postgresql.JSONB(), nullable=True),
        sa.Column("placeholder", sa.String(200), nullable=True),
        sa.Column("help_text", sa.Text(), nullable=True),
        sa.Column("default_value", sa.Text(), nullable=True),
        sa.Column("is_required", sa.Boolean(), server_default="false"),
        sa.Column("min_length", sa.Integer(), nullable=True),
        sa.Column("max_length", sa.Integer(), nullable=True),
        sa.Column("validation_pattern", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_by", sa.String(36), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("section_id", "field_name", name="uq_section_fields_section_name"),
    )
    op.create_index("ix_section_fields_order", "section_profile_fields", ["section_id", "display_order"])

    op.create_table(
        "section_profile_data",
        _pk(),
        _user_fk(),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "field_id", sa.Integer(),
            sa.ForeignKey("section_profile_fields.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("value", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("user_id", "field_id", name="uq_section_data_user_field"),
    )
    op.create_index("ix_section_data_user_section", "section_profile_data", ["user_id", "section_id"])

    op.create_table(
        "section_membership_visibility",
        _pk(),
        _user_fk(),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("show_membership", sa.Boolean(), server_default="true"),
        _ts("updated_at"),
        sa.UniqueConstraint("user_id", "section_id", name="uq_section_visibility_user_section"),
    )

    # -- Channels -----------------------------------------------------------
    op.create_table(
        "channel_categories",
        _pk(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("display_order", sa.Integer(), server_default="0"),
        _ts("created_at"),
    )

    op.create_table(
        "channels",
        _pk(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "category_id", sa.Integer(),
            sa.ForeignKey("channel_categories.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("type", sa.String(20), nullable=False, server_default="public"),
        sa.Column("is_archived", sa.Boolean(), server_default="false"),
        sa.Column("is_read_only", sa.Boolean(), server_default="false"),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=True),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=True),
        _user_fk("created_by"),
        _ts("created_at"),
        _ts("updated_at"),
        _ts("last_message_at", default=False),
        sa.CheckConstraint("event_id IS NULL OR section_id IS NULL", name="ck_channels_single_owner"),
    )
    op.create_index("ix_channels_type", "channels", ["type"])
    op.create_index("ix_channels_section", "channels", ["section_id"])
    op.create_index("ix_channels_last_message", "channels", ["last_message_at"])

    op.create_table(
        "channel_members",
        _pk(),
        sa.Column("channel_id", sa.Integer(), sa.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("is_muted", sa.Boolean(), server_default="false"),
        _ts("muted_until", default=False),
        sa.Column("is_banned", sa.Boolean(), server_default="false"),
        sa.Column("notifications_enabled", sa.Boolean(), server_default="true"),
        _ts("joined_at"),
        _ts("last_read_at", default=False),
        sa.UniqueConstraint("channel_id", "user_id", name="uq_channel_members_channel_user"),
    )
    op.create_index("ix_channel_members_user", "channel_members", ["user_id"])

    op.create_table(
        "channel_messages",
        _pk(),
        sa.Column("channel_id", sa.Integer(), sa.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("attachments", postgresql.JSONB(), nullable=True),
        sa.Column(
            "parent_message_id", sa.Integer(),
            sa.ForeignKey("channel_messages.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("thread_count", sa.Integer(), server_default="0"),
        sa.Column("mentioned_user_ids", postgresql.JSONB(), nullable=True),
        _ts("edited_at", default=False),
        _ts("deleted_at", default=False),
        sa.Column("deleted_by", sa.String(36), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_channel_messages_channel", "channel_messages", ["channel_id", "id"])
    op.create_index("ix_channel_messages_parent", "channel_messages", ["parent_message_id"])
    op.create_index("ix_channel_messages_user", "channel_messages", ["user_id"])

    op.create_table(
        "message_reactions",
        _pk(),
        sa.Column(
            "message_id", sa.Integer(),
            sa.ForeignKey("channel_messages.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk(),
        sa.Column("emoji", sa.String(32), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("message_id", "user_id", "emoji", name="uq_message_reactions_msg_user_emoji"),
    )

    op.create_table(
        "message_read_receipts",
        _pk(),
        sa.Column(
            "message_id", sa.Integer(),
            sa.ForeignKey("channel_messages.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk(),
        _ts("read_at"),
        sa.UniqueConstraint("message_id", "user_id", name="uq_read_receipts_message_user"),
    )

    op.create_table(
        "channel_typing_indicators",
        _pk(),
        sa.Column("channel_id", sa.Integer(), sa.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        _ts("started_at", default=False, nullable=False),
        _ts("expires_at", default=False, nullable=False),
        sa.UniqueConstraint("channel_id", "user_id", name="uq_typing_channel_user"),
    )
    op.create_index("ix_typing_expires", "channel_typing_indicators", ["expires_at"])

    op.create_table(
        "channel_pinned_messages",
        _pk(),
        sa.Column("channel_id", sa.Integer(), sa.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "message_id", sa.Integer(),
            sa.ForeignKey("channel_messages.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("pinned_by", sa.String(36), nullable=False),
        _ts("pinned_at"),
        sa.UniqueConstraint("channel_id", "message_id", name="uq_pinned_channel_message"),
    )


def downgrade() -> None:
    for table in (
        "channel_pinned_messages",
        "channel_typing_indicators",
        "message_read_receipts",
        "message_reactions",
        "channel_messages",
        "channel_members",
        "channels",
        "channel_categories",
        "section_membership_visibility",
        "section_profile_data",
        "section_profile_fields",
        "section_invitations",
        "section_members",
        "sections",
        "comment_reactions",
        "idea_comments",
        "idea_votes",
        "ideas",
        "event_invitations",
        "event_comments",
        "event_cohosts",
        "event_waitlist",
        "event_rsvps",
        "events",
        "profile_links",
        "profiles",
    ):
        op.drop_table(table)
