"""Follow toggling with follower/following tallies."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .. import models, store
from ..errors import NotFoundError, ValidationError
from . import counters
from .notifications import FollowEvent, NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FollowToggle:
    following: bool
    followers_count: int


def find_follow(db: Session, follower_id: int, followed_id: int) -> models.Follow | None:
    return db.scalars(
        select(models.Follow).where(
            models.Follow.follower_id == follower_id,
            models.Follow.followed_id == followed_id,
        )
    ).first()


def is_following(db: Session, follower_id: int, followed_id: int) -> bool:
    return find_follow(db, follower_id, followed_id) is not None


def follower_ids(db: Session, user_id: int) -> list[int]:
    """Ids of active users following ``user_id``."""
    return list(
        db.scalars(
            select(models.Follow.follower_id)
            .join(models.User, models.User.id == models.Follow.follower_id)
            .where(
                models.Follow.followed_id == user_id,
                models.User.is_deleted.is_(False),
            )
            .order_by(models.Follow.follower_id)
        )
    )


def list_followers(db: Session, user_id: int, limit: int = 50) -> list[models.User]:
    """Active users following ``user_id``, most recent follow first."""
    return list(
        db.scalars(
            select(models.User)
            .join(models.Follow, models.Follow.follower_id == models.User.id)
            .where(models.Follow.followed_id == user_id, models.User.is_deleted.is_(False))
            .order_by(models.Follow.created_at.desc(), models.Follow.id.desc())
            .limit(limit)
        )
    )


def list_following(db: Session, user_id: int, limit: int = 50) -> list[models.User]:
    """Active users ``user_id`` follows, most recent follow first."""
    return list(
        db.scalars(
            select(models.User)
            .join(models.Follow, models.Follow.followed_id == models.User.id)
            .where(models.Follow.follower_id == user_id, models.User.is_deleted.is_(False))
            .order_by(models.Follow.created_at.desc(), models.Follow.id.desc())
            .limit(limit)
        )
    )


def toggle_follow(db: Session, follower_id: int, followed_id: int) -> FollowToggle:
    """
    Follow ``followed_id`` if not yet following, otherwise unfollow.

    Raises:
        ValidationError: a user tried to follow themselves
        NotFoundError: the followed user is missing or deleted
    """
    if follower_id == followed_id:
        raise ValidationError("You cannot follow yourself.", user_id=follower_id)

    followed = store.users.find(db, followed_id, for_update=True)
    if followed is None or followed.is_deleted:
        raise NotFoundError("User not found", user_id=followed_id)

    existing = find_follow(db, follower_id, followed_id)
    if existing is not None:
        store.follows.delete(db, existing.id)
        counters.adjust(db, models.User, follower_id, "following_count", -1)
        counters.adjust(db, models.User, followed_id, "followers_count", -1)
        following = False
    else:
        store.follows.create(db, {"follower_id": follower_id, "followed_id": followed_id})
        counters.adjust(db, models.User, follower_id, "following_count", 1)
        counters.adjust(db, models.User, followed_id, "followers_count", 1)
        NotificationService.create_notification(
            db, FollowEvent(recipient_id=followed_id, actor_id=follower_id)
        )
        following = True

    db.refresh(followed, ["followers_count"])
    logger.info(
        "User %s %s user %s",
        follower_id,
        "followed" if following else "unfollowed",
        followed_id,
    )
    return FollowToggle(following=following, followers_count=followed.followers_count)


def remove_follows_for_user(db: Session, user_id: int) -> int:
    """Drop every follow edge touching ``user_id``, keeping both sides' tallies in step."""
    edges = list(
        db.scalars(
            select(models.Follow).where(
                or_(models.Follow.follower_id == user_id, models.Follow.followed_id == user_id)
            )
        )
    )
    for edge in edges:
        store.follows.delete(db, edge.id)
        counters.adjust(db, models.User, edge.follower_id, "following_count", -1)
        counters.adjust(db, models.User, edge.followed_id, "followers_count", -1)
    return len(edges)
