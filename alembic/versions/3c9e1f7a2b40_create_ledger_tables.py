"""Create users, cases, votes, comments, replies, point_history

Revision ID: 3c9e1f7a2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c9e1f7a2b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create the engagement ledger schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("nickname", sa.String(50), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_level0_claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_active_date", sa.Date(), nullable=True),
        sa.Column("daily_vote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("daily_comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("daily_post_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_level1_claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_level2_claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_vote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_post_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )
    op.create_index("ix_users_nickname", "users", ["nickname"], unique=True)

    op.create_table(
        "cases",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "author_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(10), nullable=False, server_default="OPEN"),
        sa.Column("guilty_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("innocent_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("hot_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_hot_listed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("vote_end_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_cases_status_vote_end", "cases", ["status", "vote_end_at"])
    op.create_index("ix_cases_author_hot", "cases", ["author_id", "status", "is_hot_listed"])
    op.create_index("ix_cases_hot_score", "cases", ["hot_score"])

    op.create_table(
        "votes",
        sa.Column(
            "case_id",
            sa.String(32),
            sa.ForeignKey("cases.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("vote", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "comments",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "case_id",
            sa.String(32),
            sa.ForeignKey("cases.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.String(128), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("vote", sa.String(10), nullable=True),
        sa.Column("likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_comments_case_time", "comments", ["case_id", "created_at"])

    op.create_table(
        "replies",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "case_id",
            sa.String(32),
            sa.ForeignKey("cases.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "comment_id",
            sa.String(32),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.String(128), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("vote", sa.String(10), nullable=True),
        sa.Column("likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_replies_comment_time", "replies", ["comment_id", "created_at"])
    op.create_index("ix_replies_case", "replies", ["case_id"])

    op.create_table(
        "point_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(10), nullable=False, server_default="EARN"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_point_history_user_time", "point_history", ["user_id", "created_at"])


def downgrade() -> None:
    """Drop the engagement ledger schema."""
    op.drop_index("ix_point_history_user_time", table_name="point_history")
    op.drop_table("point_history")
    op.drop_index("ix_replies_case", table_name="replies")
    op.drop_index("ix_replies_comment_time", table_name="replies")
    op.drop_table("replies")
    op.drop_index("ix_comments_case_time", table_name="comments")
    op.drop_table("comments")
    op.drop_table("votes")
    op.drop_index("ix_cases_hot_score", table_name="cases")
    op.drop_index("ix_cases_author_hot", table_name="cases")
    op.drop_index("ix_cases_status_vote_end", table_name="cases")
    op.drop_table("cases")
    op.drop_index("ix_users_nickname", table_name="users")
    op.drop_table("users")
