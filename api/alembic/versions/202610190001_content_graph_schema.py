"""content graph schema

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None

SOFT_DELETE_CHECK = "is_deleted = (deleted_at IS NOT NULL)"
TARGET_ONEOF_CHECK = (
    "(post_id IS NOT NULL AND comment_id IS NULL) "
    "OR (post_id IS NULL AND comment_id IS NOT NULL)"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_sqid", sa.String(length=32), nullable=True),
        sa.Column("handle", sa.String(length=80), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("posts_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("followers_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("following_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(SOFT_DELETE_CHECK, name="ck_users_soft_delete"),
        sa.CheckConstraint("posts_count >= 0", name="ck_users_posts_count"),
        sa.CheckConstraint("followers_count >= 0", name="ck_users_followers_count"),
        sa.CheckConstraint("following_count >= 0", name="ck_users_following_count"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_public_sqid", "users", ["public_sqid"], unique=True)
    op.create_index("ix_users_handle", "users", ["handle"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_is_deleted", "users", ["is_deleted"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_roles_name", "roles", ["name"], unique=True)

    op.create_table(
        "user_roles",
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "role_id",
            sa.Integer(),
            sa.ForeignKey("roles.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_sqid", sa.String(length=32), nullable=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "media_urls",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("visibility", sa.String(length=20), nullable=False),
        sa.Column("like_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("comment_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_edited", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(SOFT_DELETE_CHECK, name="ck_posts_soft_delete"),
        sa.CheckConstraint("like_count >= 0", name="ck_posts_like_count"),
        sa.CheckConstraint("comment_count >= 0", name="ck_posts_comment_count"),
    )
    op.create_index("ix_posts_id", "posts", ["id"])
    op.create_index("ix_posts_public_sqid", "posts", ["public_sqid"], unique=True)
    op.create_index("ix_posts_owner_id", "posts", ["owner_id"])
    op.create_index("ix_posts_is_deleted", "posts", ["is_deleted"])
    op.create_index("ix_posts_deleted_at", "posts", ["is_deleted", "deleted_at"])
    op.create_index("ix_posts_created_at", "posts", ["created_at"])
    op.create_index(
        "ix_posts_owner_created", "posts", ["owner_id", sa.text("created_at DESC")]
    )

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_sqid", sa.String(length=32), nullable=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("like_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_edited", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("post_deleted", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(SOFT_DELETE_CHECK, name="ck_comments_soft_delete"),
        sa.CheckConstraint("like_count >= 0", name="ck_comments_like_count"),
    )
    op.create_index("ix_comments_id", "comments", ["id"])
    op.create_index("ix_comments_public_sqid", "comments", ["public_sqid"], unique=True)
    op.create_index("ix_comments_post_id", "comments", ["post_id"])
    op.create_index("ix_comments_owner_id", "comments", ["owner_id"])
    op.create_index("ix_comments_post_deleted", "comments", ["post_deleted"])
    op.create_index("ix_comments_created_at", "comments", ["created_at"])
    op.create_index(
        "ix_comments_post_created", "comments", ["post_id", sa.text("created_at DESC")]
    )

    op.create_table(
        "likes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=True),
        sa.Column("comment_id", sa.Integer(), sa.ForeignKey("comments.id"), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(TARGET_ONEOF_CHECK, name="ck_likes_target_oneof"),
    )
    op.create_index("ix_likes_user_id", "likes", ["user_id"])
    op.create_index("ix_likes_post_id", "likes", ["post_id"])
    op.create_index("ix_likes_comment_id", "likes", ["comment_id"])
    op.create_index("ix_likes_created_at", "likes", ["created_at"])
    op.create_index(
        "uq_likes_user_post",
        "likes",
        ["user_id", "post_id"],
        unique=True,
        postgresql_where=sa.text("post_id IS NOT NULL"),
        sqlite_where=sa.text("post_id IS NOT NULL"),
    )
    op.create_index(
        "uq_likes_user_comment",
        "likes",
        ["user_id", "comment_id"],
        unique=True,
        postgresql_where=sa.text("comment_id IS NOT NULL"),
        sqlite_where=sa.text("comment_id IS NOT NULL"),
    )

    op.create_table(
        "follows",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("follower_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("followed_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("follower_id", "followed_id", name="uq_follow_follower_followed"),
        sa.CheckConstraint("follower_id <> followed_id", name="ck_follows_not_self"),
    )
    op.create_index("ix_follows_follower_id", "follows", ["follower_id"])
    op.create_index("ix_follows_followed_id", "follows", ["followed_id"])
    op.create_index("ix_follows_created_at", "follows", ["created_at"])
    op.create_index(
        "ix_follows_followed_created", "follows", ["followed_id", sa.text("created_at DESC")]
    )

    op.create_table(
        "mentions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("from_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("mentioned_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=True),
        sa.Column("comment_id", sa.Integer(), sa.ForeignKey("comments.id"), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(TARGET_ONEOF_CHECK, name="ck_mentions_target_oneof"),
    )
    op.create_index("ix_mentions_from_user_id", "mentions", ["from_user_id"])
    op.create_index("ix_mentions_mentioned_user_id", "mentions", ["mentioned_user_id"])
    op.create_index("ix_mentions_post_id", "mentions", ["post_id"])
    op.create_index("ix_mentions_comment_id", "mentions", ["comment_id"])
    op.create_index("ix_mentions_created_at", "mentions", ["created_at"])
    op.create_index(
        "uq_mentions_post",
        "mentions",
        ["from_user_id", "mentioned_user_id", "post_id"],
        unique=True,
        postgresql_where=sa.text("post_id IS NOT NULL"),
        sqlite_where=sa.text("post_id IS NOT NULL"),
    )
    op.create_index(
        "uq_mentions_comment",
        "mentions",
        ["from_user_id", "mentioned_user_id", "comment_id"],
        unique=True,
        postgresql_where=sa.text("comment_id IS NOT NULL"),
        sqlite_where=sa.text("comment_id IS NOT NULL"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipient_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("notification_type", sa.String(length=20), nullable=False),
        sa.Column("reference_type", sa.String(length=20), nullable=False),
        sa.Column("reference_id", sa.Integer(), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "notification_type IN ('like', 'comment', 'follow', 'mention', 'post')",
            name="ck_notifications_type",
        ),
        sa.CheckConstraint(
            "reference_type IN ('post', 'comment', 'user')",
            name="ck_notifications_reference_type",
        ),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_actor_id", "notifications", ["actor_id"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index(
        "ix_notifications_recipient_unread", "notifications", ["recipient_id", "is_read"]
    )
    op.create_index(
        "ix_notifications_reference", "notifications", ["reference_type", "reference_id"]
    )

    op.create_table(
        "maintenance_markers",
        sa.Column("name", sa.String(length=50), primary_key=True),
        sa.Column("last_run_epoch", sa.Integer(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("maintenance_markers")
    op.drop_table("notifications")
    op.drop_table("mentions")
    op.drop_table("follows")
    op.drop_table("likes")
    op.drop_table("comments")
    op.drop_table("posts")
    op.drop_table("user_roles")
    op.drop_table("roles")
    op.drop_table("users")
