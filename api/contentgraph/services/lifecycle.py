"""
Soft delete and recovery of content.

A soft-deleted post keeps all of its rows; its comments are flagged
``post_deleted`` so read paths can render them as orphaned rather than hide
them. Recovery clears both. Each function only flushes, so a failure in the
comment step rolls back the post step with it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from .. import models
from ..errors import ConflictError, NotFoundError
from . import counters
from .notifications import NotificationService

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def soft_delete_post(db: Session, post: models.Post, now: datetime | None = None) -> int:
    """
    Move ``post`` from active to soft-deleted and flag its comments.

    Returns:
        Number of comments flagged post_deleted
    """
    if post.is_deleted:
        raise NotFoundError("Post not found", post_id=post.id)

    now = now or utcnow()
    db.execute(
        update(models.Post)
        .where(models.Post.id == post.id)
        .values(is_deleted=True, deleted_at=now)
        .execution_options(synchronize_session="fetch")
    )
    result = db.execute(
        update(models.Comment)
        .where(
            models.Comment.post_id == post.id,
            models.Comment.is_deleted.is_(False),
        )
        .values(post_deleted=True, updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    logger.info("Soft-deleted post %s, flagged %d comment(s)", post.id, result.rowcount)
    return result.rowcount


def recover_post(db: Session, post: models.Post, now: datetime | None = None) -> int:
    """
    Move ``post`` from soft-deleted back to active and unflag its comments.

    Returns:
        Number of comments unflagged
    """
    if not post.is_deleted:
        raise ConflictError("Post is not deleted", post_id=post.id)

    now = now or utcnow()
    db.execute(
        update(models.Post)
        .where(models.Post.id == post.id)
        .values(is_deleted=False, deleted_at=None)
        .execution_options(synchronize_session="fetch")
    )
    result = db.execute(
        update(models.Comment)
        .where(
            models.Comment.post_id == post.id,
            models.Comment.post_deleted.is_(True),
        )
        .values(post_deleted=False, updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    logger.info("Recovered post %s, unflagged %d comment(s)", post.id, result.rowcount)
    return result.rowcount


def soft_delete_comment(db: Session, comment: models.Comment, now: datetime | None = None) -> None:
    """Soft-delete one comment, drop its post's comment_count and its notifications."""
    if comment.is_deleted:
        raise NotFoundError("Comment not found", comment_id=comment.id)

    now = now or utcnow()
    db.execute(
        update(models.Comment)
        .where(models.Comment.id == comment.id)
        .values(is_deleted=True, deleted_at=now)
        .execution_options(synchronize_session="fetch")
    )
    counters.adjust(db, models.Post, comment.post_id, "comment_count", -1)
    removed = NotificationService.delete_for_content(db, comment_ids=[comment.id])
    logger.info(
        "Soft-deleted comment %s on post %s, removed %d notification(s)",
        comment.id,
        comment.post_id,
        removed,
    )
