"""coverage_tracker_initial_schema

Create `users`, `stories` and `coverage_history`.

Revision ID: a1c0f3e2b701
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1c0f3e2b701"
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum("manager", "engineer", "reviewer", name="user_role")
story_status = sa.Enum("pending", "in_review", "reviewed", name="story_status")


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("username", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("role", user_role, nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
            sa.UniqueConstraint("email"),
        )

    if "stories" not in existing_tables:
        op.create_table(
            "stories",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("ticket_id", sa.String(length=64), nullable=False),
            sa.Column("title", sa.Text(), nullable=False),
            sa.Column("creator_id", sa.String(length=36), nullable=False),
            sa.Column("reviewer_id", sa.String(length=36), nullable=True),
            sa.Column("coverage_score", sa.Numeric(precision=5, scale=2), nullable=True),
            sa.Column("status", story_status, nullable=False),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("date_completed", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["creator_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["reviewer_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("ticket_id"),
        )
        op.create_index("ix_stories_creator_id", "stories", ["creator_id"])
        op.create_index("ix_stories_reviewer_id", "stories", ["reviewer_id"])
        op.create_index("ix_stories_created_at", "stories", ["created_at"])

    if "coverage_history" not in existing_tables:
        op.create_table(
            "coverage_history",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("story_id", sa.String(length=36), nullable=False),
            sa.Column("updated_by_id", sa.String(length=36), nullable=False),
            sa.Column("previous_score", sa.Numeric(precision=5, scale=2), nullable=True),
            sa.Column("new_score", sa.Numeric(precision=5, scale=2), nullable=False),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["story_id"], ["stories.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["updated_by_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_coverage_history_story_id", "coverage_history", ["story_id"])
        op.create_index("ix_coverage_history_created_at", "coverage_history", ["created_at"])


def downgrade():
    op.drop_index("ix_coverage_history_created_at", table_name="coverage_history")
    op.drop_index("ix_coverage_history_story_id", table_name="coverage_history")
    op.drop_table("coverage_history")
    op.drop_index("ix_stories_created_at", table_name="stories")
    op.drop_index("ix_stories_reviewer_id", table_name="stories")
    op.drop_index("ix_stories_creator_id", table_name="stories")
    op.drop_table("stories")
    op.drop_table("users")
    story_status.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
