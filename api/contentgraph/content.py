"""Content kinds and references shared by likes, mentions and notifications."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .errors import ContractError


class ContentType(str, enum.Enum):
    POST = "post"
    COMMENT = "comment"


class ReferenceType(str, enum.Enum):
    POST = "post"
    COMMENT = "comment"
    USER = "user"


class NotificationType(str, enum.Enum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    MENTION = "mention"
    POST = "post"


@dataclass(frozen=True)
class ContentRef:
    """
    Reference to exactly one content item.

    Likes and mentions store this as a (post_id, comment_id) pair where exactly
    one side is set; building the pair from a ContentRef keeps that invariant.
    """

    content_type: ContentType
    content_id: int

    def __post_init__(self) -> None:
        if not isinstance(self.content_type, ContentType):
            raise ContractError(f"Unknown content type: {self.content_type!r}")
        if self.content_id is None:
            raise ContractError("Content reference requires an id")

    @classmethod
    def post(cls, post_id: int) -> "ContentRef":
        return cls(ContentType.POST, post_id)

    @classmethod
    def comment(cls, comment_id: int) -> "ContentRef":
        return cls(ContentType.COMMENT, comment_id)

    @classmethod
    def from_columns(cls, post_id: int | None, comment_id: int | None) -> "ContentRef":
        """Rebuild a reference from a row's XOR column pair."""
        if (post_id is None) == (comment_id is None):
            raise ContractError(
                "Exactly one of post_id or comment_id must be set",
                post_id=post_id,
                comment_id=comment_id,
            )
        if post_id is not None:
            return cls.post(post_id)
        return cls.comment(comment_id)

    @property
    def post_id(self) -> int | None:
        return self.content_id if self.content_type is ContentType.POST else None

    @property
    def comment_id(self) -> int | None:
        return self.content_id if self.content_type is ContentType.COMMENT else None

    def as_columns(self) -> dict[str, int | None]:
        return {"post_id": self.post_id, "comment_id": self.comment_id}
