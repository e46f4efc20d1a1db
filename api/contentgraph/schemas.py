from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .settings import MAX_BODY_LENGTH


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Problem(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs."""

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str | None = None


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    next_cursor: str | None = None


def _require_text(value: str | None) -> str | None:
    if value is not None and not value.strip():
        raise ValueError("must not be blank")
    return value


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserSummary(BaseModel):
    """Public view of a user."""

    model_config = ConfigDict(from_attributes=True)

    public_sqid: str
    handle: str
    display_name: str | None = None


class UserProfile(UserSummary):
    """User with social tallies."""

    posts_count: int
    followers_count: int
    following_count: int
    is_deleted: bool


class RoleAssignment(BaseModel):
    role: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z_]+$")


class RecoverUserRequest(BaseModel):
    handle: str = Field(..., min_length=1, max_length=80)


# ============================================================================
# POST SCHEMAS
# ============================================================================


Visibility = Literal["public", "followers", "private"]


class PostCreate(BaseModel):
    """Create post request."""

    body: str = Field(..., min_length=1, max_length=MAX_BODY_LENGTH)
    media_urls: list[str] = Field(default_factory=list, max_length=10)
    visibility: Visibility = "public"

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, value: str | None) -> str | None:
        return _require_text(value)


class PostUpdate(BaseModel):
    """
    Partial post update.

    Only fields the client actually sent are written; unset fields are left
    alone (model_dump(exclude_unset=True)).
    """

    body: str | None = Field(None, min_length=1, max_length=MAX_BODY_LENGTH)
    media_urls: list[str] | None = Field(None, max_length=10)
    visibility: Visibility | None = None

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, value: str | None) -> str | None:
        return _require_text(value)


class Post(BaseModel):
    """Post as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    public_sqid: str
    owner: UserSummary
    body: str
    media_urls: list[str]
    visibility: str
    like_count: int
    comment_count: int
    is_edited: bool
    is_deleted: bool
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class CommentCreate(BaseModel):
    """Create comment request."""

    body: str = Field(..., min_length=1, max_length=MAX_BODY_LENGTH)

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, value: str | None) -> str | None:
        return _require_text(value)


class CommentUpdate(BaseModel):
    """Update comment request."""

    body: str = Field(..., min_length=1, max_length=MAX_BODY_LENGTH)

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, value: str | None) -> str | None:
        return _require_text(value)


class Comment(BaseModel):
    """Comment on a post."""

    model_config = ConfigDict(from_attributes=True)

    public_sqid: str
    owner: UserSummary
    body: str
    like_count: int
    is_edited: bool
    is_deleted: bool
    post_deleted: bool
    created_at: datetime
    updated_at: datetime | None = None


# ============================================================================
# SOCIAL SCHEMAS
# ============================================================================


class LikeToggleResult(BaseModel):
    liked: bool
    like_count: int


class FollowToggleResult(BaseModel):
    following: bool
    followers_count: int


class LikeList(BaseModel):
    """Who liked a post or comment."""

    like_count: int
    users: list[UserSummary]


class Mention(BaseModel):
    """A mention of the current user inside a post or comment."""

    content_type: Literal["post", "comment"]
    content_sqid: str
    from_user: UserSummary
    created_at: datetime


class Notification(BaseModel):
    """Notification as returned to its recipient."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    notification_type: str
    reference_type: str
    reference_id: int
    actor: UserSummary
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class MarkReadRequest(BaseModel):
    ids: list[int] = Field(..., min_length=1, max_length=500)


class CountResponse(BaseModel):
    count: int


class DeleteResult(BaseModel):
    """Result of a soft delete or recovery."""

    public_sqid: str
    is_deleted: bool
    comments_affected: int
