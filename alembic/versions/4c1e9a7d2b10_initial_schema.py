"""initial schema

Revision ID: 4c1e9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4c1e9a7d2b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=25), nullable=False),
        sa.Column("last_name", sa.String(length=25), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("initials", sa.String(length=5), nullable=True),
        sa.Column("grade_or_position", sa.String(length=100), nullable=True),
        sa.Column("suspension_reason", sa.String(length=500), nullable=True),
        sa.Column("suspension_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "resources",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("subject", sa.String(length=50), nullable=True),
        sa.Column("grade_level", sa.String(length=30), nullable=True),
        sa.Column("resource_type", sa.String(length=30), nullable=True),
        sa.Column("quarter", sa.String(length=50), nullable=True),
        sa.Column("file_path", sa.String(length=500), nullable=True),
        sa.Column("file_format", sa.String(length=20), nullable=True),
        sa.Column("file_size", sa.String(length=20), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date_uploaded", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_resources_id", "resources", ["id"])
    op.create_index("ix_resources_subject", "resources", ["subject"])
    op.create_index("ix_resources_status", "resources", ["status"])
    op.create_index("ix_resources_user_id", "resources", ["user_id"])

    op.create_table(
        "likes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("target_type", sa.String(length=20), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("user_id", "target_type", "target_id", name="uq_likes_user_target"),
    )
    op.create_index("ix_likes_id", "likes", ["id"])
    op.create_index("ix_likes_target", "likes", ["target_type", "target_id"])

    op.create_table(
        "reading_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("progress_status", sa.String(length=20), nullable=False),
        sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_position", sa.String(length=50), nullable=True),
        sa.Column("is_bookmarked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_accessed", sa.DateTime(), nullable=True),
        sa.Column("completed_date", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("user_id", "resource_id", name="uq_reading_history_user_resource"),
    )
    op.create_index("ix_reading_history_id", "reading_history", ["id"])
    op.create_index("ix_reading_history_user_id", "reading_history", ["user_id"])
    op.create_index("ix_reading_history_resource_id", "reading_history", ["resource_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("message", sa.String(length=500), nullable=True),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("icon_color", sa.String(length=20), nullable=True),
        sa.Column("link", sa.String(length=500), nullable=True),
        sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id"), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])

    op.create_table(
        "user_activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id"), nullable=True),
        sa.Column("activity_type", sa.String(length=50), nullable=False),
        sa.Column("target_title", sa.String(length=200), nullable=True),
        sa.Column("activity_date", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_user_activity_logs_id", "user_activity_logs", ["id"])
    op.create_index("ix_user_activity_logs_user_id", "user_activity_logs", ["user_id"])
    op.create_index("ix_user_activity_logs_resource_id", "user_activity_logs", ["resource_id"])
    op.create_index("ix_user_activity_logs_activity_date", "user_activity_logs", ["activity_date"])

    op.create_table(
        "recommendations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("recommendation_type", sa.String(length=30), nullable=True),
    )
    op.create_index("ix_recommendations_id", "recommendations", ["id"])
    op.create_index("ix_recommendations_user_id", "recommendations", ["user_id"])
    op.create_index("ix_recommendations_resource_id", "recommendations", ["resource_id"])

    op.create_table(
        "lessons_learned",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("content", sa.String(length=2000), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("tags", sa.String(length=500), nullable=True),
        sa.Column("date_submitted", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_lessons_learned_id", "lessons_learned", ["id"])
    op.create_index("ix_lessons_learned_resource_id", "lessons_learned", ["resource_id"])
    op.create_index("ix_lessons_learned_user_id", "lessons_learned", ["user_id"])

    op.create_table(
        "discussions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("content", sa.String(length=2000), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("type", sa.String(length=30), nullable=True),
        sa.Column("tags", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("best_answer_post_id", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date_created", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_discussions_id", "discussions", ["id"])
    op.create_index("ix_discussions_user_id", "discussions", ["user_id"])
    op.create_index("ix_discussions_date_created", "discussions", ["date_created"])

    op.create_table(
        "discussion_posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("discussion_id", sa.Integer(), sa.ForeignKey("discussions.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("date_posted", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_discussion_posts_id", "discussion_posts", ["id"])
    op.create_index("ix_discussion_posts_discussion_id", "discussion_posts", ["discussion_id"])
    op.create_index("ix_discussion_posts_user_id", "discussion_posts", ["user_id"])


def downgrade() -> None:
    op.drop_table("discussion_posts")
    op.drop_table("discussions")
    op.drop_table("lessons_learned")
    op.drop_table("recommendations")
    op.drop_table("user_activity_logs")
    op.drop_table("notifications")
    op.drop_table("reading_history")
    op.drop_table("likes")
    op.drop_table("resources")
    op.drop_table("users")
