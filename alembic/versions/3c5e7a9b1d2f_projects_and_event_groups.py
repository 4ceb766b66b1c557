"""Projects, event groups and section invites for events

Revision ID: 3c5e7a9b1d2f
Revises: 0a1c2e3f4b5d
Create Date: 2026-10-19 14:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3c5e7a9b1d2f"
down_revision = "0a1c2e3f4b5d"
branch_labels = None
depends_on = None


def _ts(name: str, *, default: bool = True) -> sa.Column:
    if default:
        return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())
    return sa.Column(name, sa.DateTime(timezone=True), nullable=True)


def _user_fk(name: str = "user_id") -> sa.Column:
    return sa.Column(
        name, sa.String(36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )


def _project_fk() -> sa.Column:
    return sa.Column(
        "project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )


def _pk() -> sa.Column:
    return sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True)


def _money(name: str, *, nullable: bool = True, default: str | None = None) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, server_default=default)


def upgrade() -> None:
    # -- Event groups & section invites --------------------------------------
    op.add_column("events", sa.Column("group_name", sa.String(100), nullable=True))
    op.create_index("ix_events_group", "events", ["created_by", "group_name"])

    op.create_table(
        "event_group_subscriptions",
        _pk(),
        _user_fk("subscriber_id"),
        _user_fk("creator_id"),
        sa.Column("group_name", sa.String(100), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint(
            "subscriber_id", "creator_id", "group_name", name="uq_event_group_subscriptions",
        ),
    )
    op.create_index(
        "ix_event_group_subscriptions_group",
        "event_group_subscriptions",
        ["creator_id", "group_name"],
    )

    op.create_table(
        "event_section_invites",
        _pk(),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invited_by", sa.String(36), nullable=False),
        _ts("invited_at"),
        sa.UniqueConstraint("event_id", "section_id", name="uq_event_section_invites_event_section"),
    )
    op.create_index("ix_event_section_invites_section", "event_section_invites", ["section_id"])

    # -- Projects -----------------------------------------------------------
    op.create_table(
        "projects",
        _pk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("summary", sa.String(500), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        _user_fk("creator_id"),
        sa.Column("status", sa.String(20), nullable=False, server_default="planning"),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("tags", postgresql.JSONB(), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("gallery_images", postgresql.JSONB(), nullable=True),
        sa.Column("fundraising_enabled", sa.Boolean(), server_default="false"),
        _money("fundraising_goal"),
        _money("funds_raised", default="0"),
        _ts("start_date", default=False),
        _ts("target_completion_date", default=False),
        _ts("actual_completion_date", default=False),
        sa.Column("is_public", sa.Boolean(), server_default="true"),
        sa.Column("is_featured", sa.Boolean(), server_default="false"),
        sa.Column("views_count", sa.Integer(), server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_projects_creator", "projects", ["creator_id"])
    op.create_index("ix_projects_status", "projects", ["status"])
    op.create_index("ix_projects_category", "projects", ["category"])
    op.create_index("ix_projects_created_at", "projects", ["created_at"])

    op.create_table(
        "project_contributors",
        _pk(),
        _project_fk(),
        _user_fk(),
        sa.Column("role", sa.String(20), nullable=False, server_default="contributor"),
        sa.Column("contribution_type", sa.String(50), nullable=True),
        _money("contribution_amount"),
        _ts("joined_at"),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_contributors_project_user"),
    )
    op.create_index("ix_project_contributors_user", "project_contributors", ["user_id"])

    op.create_table(
        "project_updates",
        _pk(),
        _project_fk(),
        _user_fk("author_id"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("update_type", sa.String(20), nullable=False, server_default="progress"),
        sa.Column("image_url", sa.String(500), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_project_updates_project", "project_updates", ["project_id", "created_at"])

    op.create_table(
        "project_reactions",
        _pk(),
        _project_fk(),
        _user_fk(),
        sa.Column("reaction_type", sa.String(20), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint(
            "project_id", "user_id", "reaction_type", name="uq_project_reactions_project_user_type",
        ),
    )
    op.create_index("ix_project_reactions_user", "project_reactions", ["user_id", "reaction_type"])

    op.create_table(
        "project_comments",
        _pk(),
        _project_fk(),
        _user_fk(),
        sa.Column(
            "parent_id", sa.Integer(),
            sa.ForeignKey("project_comments.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default="false"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_project_comments_project", "project_comments", ["project_id", "created_at"])
    op.create_index("ix_project_comments_parent", "project_comments", ["parent_id"])

    # -- Project channels -----------------------------------------------------
    op.add_column(
        "channels",
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True),
    )
    op.create_index("ix_channels_project", "channels", ["project_id"])
    op.drop_constraint("ck_channels_single_owner", "channels", type_="check")
    op.create_check_constraint(
        "ck_channels_single_owner",
        "channels",
        "(event_id IS NULL OR section_id IS NULL) "
        "AND (event_id IS NULL OR project_id IS NULL) "
        "AND (section_id IS NULL OR project_id IS NULL)",
    )


def downgrade() -> None:
    op.execute("DELETE FROM channels WHERE project_id IS NOT NULL")
    op.drop_constraint("ck_channels_single_owner", "channels", type_="check")
    op.create_check_constraint(
        "ck_channels_single_owner", "channels", "event_id IS NULL OR section_id IS NULL",
    )
    op.drop_index("ix_channels_project", table_name="channels")
    op.drop_column("channels", "project_id")

    for table in (
        "project_comments",
        "project_reactions",
        "project_updates",
        "project_contributors",
        "projects",
        "event_section_invites",
        "event_group_subscriptions",
    ):
        op.drop_table(table)

    op.drop_index("ix_events_group", table_name="events")
    op.drop_column("events", "group_name")
