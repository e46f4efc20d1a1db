from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from .db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
JSONList = JSON().with_variant(JSONB(), "postgresql")

# A row is soft-deleted exactly when it carries a deletion timestamp
SOFT_DELETE_CHECK = "is_deleted = (deleted_at IS NOT NULL)"


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """User account with denormalized social tallies."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    public_sqid = Column(
        String(32), unique=True, nullable=True, index=True
    )  # Sqids-encoded public handle (set after insert)
    handle = Column(String(80), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)

    # Denormalized tallies, maintained by the counter maintainer
    posts_count = Column(Integer, nullable=False, default=0, server_default="0")
    followers_count = Column(Integer, nullable=False, default=0, server_default="0")
    following_count = Column(Integer, nullable=False, default=0, server_default="0")

    # Soft delete (handle and email are prefixed while deleted)
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=text("false"), index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    posts = relationship("Post", back_populates="owner", foreign_keys="Post.owner_id")
    comments = relationship(
        "Comment", back_populates="owner", foreign_keys="Comment.owner_id"
    )
    roles = relationship("Role", secondary="user_roles", back_populates="users")

    __table_args__ = (
        CheckConstraint(SOFT_DELETE_CHECK, name="ck_users_soft_delete"),
        CheckConstraint("posts_count >= 0", name="ck_users_posts_count"),
        CheckConstraint("followers_count >= 0", name="ck_users_followers_count"),
        CheckConstraint("following_count >= 0", name="ck_users_following_count"),
    )


class Role(Base):
    """Named role (user, moderator, admin, superadmin)."""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)

    users = relationship("User", secondary="user_roles", back_populates="roles")


class UserRole(Base):
    """Role assignment (many-to-many between users and roles)."""

    __tablename__ = "user_roles"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Post(Base):
    """User-created post."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    public_sqid = Column(
        String(32), unique=True, nullable=True, index=True
    )  # Sqids-encoded public handle (set after insert)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Content
    body = Column(Text, nullable=False)
    media_urls = Column(JSONList, nullable=False, default=list)
    visibility = Column(String(20), nullable=False, default="public")

    # Denormalized counters
    like_count = Column(Integer, nullable=False, default=0, server_default="0")
    comment_count = Column(Integer, nullable=False, default=0, server_default="0")

    # Lifecycle
    is_edited = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=text("false"), index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    owner = relationship("User", back_populates="posts", foreign_keys=[owner_id])
    comments = relationship("Comment", back_populates="post")

    __table_args__ = (
        CheckConstraint(SOFT_DELETE_CHECK, name="ck_posts_soft_delete"),
        CheckConstraint("like_count >= 0", name="ck_posts_like_count"),
        CheckConstraint("comment_count >= 0", name="ck_posts_comment_count"),
        Index("ix_posts_owner_created", owner_id, created_at.desc()),
        Index("ix_posts_deleted_at", is_deleted, deleted_at),
    )


class Comment(Base):
    """Comment on a post."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    public_sqid = Column(
        String(32), unique=True, nullable=True, index=True
    )  # Sqids-encoded public handle (set after insert)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    body = Column(Text, nullable=False)

    like_count = Column(Integer, nullable=False, default=0, server_default="0")

    # Lifecycle
    is_edited = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    post_deleted = Column(
        Boolean, nullable=False, default=False, server_default=text("false"), index=True
    )  # Parent post is soft-deleted; rendered as "post was deleted"

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    post = relationship("Post", back_populates="comments")
    owner = relationship("User", back_populates="comments", foreign_keys=[owner_id])

    __table_args__ = (
        CheckConstraint(SOFT_DELETE_CHECK, name="ck_comments_soft_delete"),
        CheckConstraint("like_count >= 0", name="ck_comments_like_count"),
        Index("ix_comments_post_created", post_id, created_at.desc()),
    )


# ============================================================================
# SOCIAL FEATURES
# ============================================================================


class Like(Base):
    """Like on exactly one post or one comment."""

    __tablename__ = "likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id"), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        CheckConstraint(
            "(post_id IS NOT NULL AND comment_id IS NULL) "
            "OR (post_id IS NULL AND comment_id IS NOT NULL)",
            name="ck_likes_target_oneof",
        ),
        # At most one like per (user, target)
        Index(
            "uq_likes_user_post",
            "user_id",
            "post_id",
            unique=True,
            postgresql_where=text("post_id IS NOT NULL"),
            sqlite_where=text("post_id IS NOT NULL"),
        ),
        Index(
            "uq_likes_user_comment",
            "user_id",
            "comment_id",
            unique=True,
            postgresql_where=text("comment_id IS NOT NULL"),
            sqlite_where=text("comment_id IS NOT NULL"),
        ),
    )


class Follow(Base):
    """User following relationship."""

    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    followed_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        UniqueConstraint(
            "follower_id", "followed_id", name="uq_follow_follower_followed"
        ),
        CheckConstraint("follower_id <> followed_id", name="ck_follows_not_self"),
        Index("ix_follows_followed_created", followed_id, created_at.desc()),
    )


class Mention(Base):
    """@handle reference from one user to another inside a post or comment."""

    __tablename__ = "mentions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    mentioned_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id"), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    from_user = relationship("User", foreign_keys=[from_user_id])

    __table_args__ = (
        CheckConstraint(
            "(post_id IS NOT NULL AND comment_id IS NULL) "
            "OR (post_id IS NULL AND comment_id IS NOT NULL)",
            name="ck_mentions_target_oneof",
        ),
        Index(
            "uq_mentions_post",
            "from_user_id",
            "mentioned_user_id",
            "post_id",
            unique=True,
            postgresql_where=text("post_id IS NOT NULL"),
            sqlite_where=text("post_id IS NOT NULL"),
        ),
        Index(
            "uq_mentions_comment",
            "from_user_id",
            "mentioned_user_id",
            "comment_id",
            unique=True,
            postgresql_where=text("comment_id IS NOT NULL"),
            sqlite_where=text("comment_id IS NOT NULL"),
        ),
    )


class Notification(Base):
    """
    Notification for a user about another user's action.

    The referenced content is stored as a loose (reference_type, reference_id)
    pair without a foreign key; purges delete these rows explicitly.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    notification_type = Column(String(20), nullable=False)  # like, comment, follow, mention, post
    reference_type = Column(String(20), nullable=False)  # post, comment, user
    reference_id = Column(Integer, nullable=False)

    is_read = Column(Boolean, nullable=False, default=False, server_default=text("false"), index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # Relationships
    actor = relationship("User", foreign_keys=[actor_id])

    __table_args__ = (
        CheckConstraint(
            "notification_type IN ('like', 'comment', 'follow', 'mention', 'post')",
            name="ck_notifications_type",
        ),
        CheckConstraint(
            "reference_type IN ('post', 'comment', 'user')",
            name="ck_notifications_reference_type",
        ),
        Index("ix_notifications_recipient_unread", recipient_id, is_read),
        Index("ix_notifications_reference", reference_type, reference_id),
    )


# ============================================================================
# MAINTENANCE
# ============================================================================


class MaintenanceMarker(Base):
    """Durable last-run marker for periodic maintenance jobs."""

    __tablename__ = "maintenance_markers"

    name = Column(String(50), primary_key=True)
    last_run_epoch = Column(Integer, nullable=True)  # Unix seconds of the last completed run
