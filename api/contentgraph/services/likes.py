"""
Like toggling.

Per (user, target) the state is either not-liked or liked. The existence check
and the mutation run in the caller's transaction with the target row locked,
and the likes table carries partial unique indexes, so two racing toggles can
never leave two like rows behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import models, store
from ..content import ContentRef, ContentType
from ..errors import NotFoundError
from . import counters
from .notifications import LikeEvent, NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LikeToggle:
    liked: bool
    like_count: int


def _target_model(ref: ContentRef) -> type[models.Post] | type[models.Comment]:
    return models.Post if ref.content_type is ContentType.POST else models.Comment


def load_likeable_target(
    db: Session, ref: ContentRef, for_update: bool = True
) -> models.Post | models.Comment:
    """Return the target, row-locked when ``for_update``; raise NotFoundError if missing or deleted."""
    target_store = store.posts if ref.content_type is ContentType.POST else store.comments
    target = target_store.find(db, ref.content_id, for_update=for_update)
    if target is None or target.is_deleted:
        raise NotFoundError(
            f"{ref.content_type.value.capitalize()} not found",
            content_type=ref.content_type.value,
            content_id=ref.content_id,
        )
    if isinstance(target, models.Comment) and target.post_deleted:
        raise NotFoundError(
            "Comment belongs to a deleted post",
            content_type=ref.content_type.value,
            content_id=ref.content_id,
        )
    return target


def _like_filter(user_id: int, ref: ContentRef):
    if ref.content_type is ContentType.POST:
        return (
            models.Like.user_id == user_id,
            models.Like.post_id == ref.content_id,
            models.Like.comment_id.is_(None),
        )
    return (
        models.Like.user_id == user_id,
        models.Like.comment_id == ref.content_id,
        models.Like.post_id.is_(None),
    )


def find_like(db: Session, user_id: int, ref: ContentRef) -> models.Like | None:
    return db.scalars(select(models.Like).where(*_like_filter(user_id, ref))).first()


def has_liked(db: Session, user_id: int, ref: ContentRef) -> bool:
    return find_like(db, user_id, ref) is not None


def count_likes(db: Session, ref: ContentRef) -> int:
    column = models.Like.post_id if ref.content_type is ContentType.POST else models.Like.comment_id
    return db.scalar(select(func.count(models.Like.id)).where(column == ref.content_id)) or 0


def list_likers(db: Session, ref: ContentRef, limit: int = 50) -> list[models.User]:
    column = models.Like.post_id if ref.content_type is ContentType.POST else models.Like.comment_id
    return list(
        db.scalars(
            select(models.User)
            .join(models.Like, models.Like.user_id == models.User.id)
            .where(column == ref.content_id)
            .order_by(models.Like.created_at.desc(), models.Like.id.desc())
            .limit(limit)
        )
    )


def toggle_like(db: Session, user_id: int, ref: ContentRef) -> LikeToggle:
    """
    Flip the like state of ``user_id`` on ``ref``.

    not-liked -> liked: insert the like, bump like_count, notify the owner.
    liked -> not-liked: delete the like by primary key, drop like_count.

    Raises:
        NotFoundError: the target is missing or soft-deleted
        ConflictError: a concurrent toggle inserted the same like first
    """
    target = load_likeable_target(db, ref)
    model = _target_model(ref)
    existing = find_like(db, user_id, ref)

    if existing is not None:
        store.likes.delete(db, existing.id)
        counters.adjust(db, model, target.id, "like_count", -1)
        liked = False
    else:
        store.likes.create(db, {"user_id": user_id, **ref.as_columns()})
        counters.adjust(db, model, target.id, "like_count", 1)
        NotificationService.create_notification(
            db,
            LikeEvent(
                recipient_id=target.owner_id,
                actor_id=user_id,
                content_type=ref.content_type,
                content_id=target.id,
            ),
        )
        liked = True

    db.refresh(target, ["like_count"])
    logger.info(
        "User %s %s %s %s (like_count=%s)",
        user_id,
        "liked" if liked else "unliked",
        ref.content_type.value,
        target.id,
        target.like_count,
    )
    return LikeToggle(liked=liked, like_count=target.like_count)


def remove_likes_by_user(db: Session, user_id: int) -> int:
    """Delete every like by ``user_id``, keeping each target's like_count in step."""
    removed = 0
    for like in list(db.scalars(select(models.Like).where(models.Like.user_id == user_id))):
        ref = ContentRef.from_columns(like.post_id, like.comment_id)
        store.likes.delete(db, like.id)
        counters.adjust(db, _target_model(ref), ref.content_id, "like_count", -1)
        removed += 1
    return removed
