"""
Permanent purge of soft-deleted posts past their retention window.

The purge itself is one transaction. Whether it is due is decided from a
durable marker row, so the opportunistic request-time trigger and the Celery
beat task can both call ``ReaperService.run_if_due`` without double runs.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .. import models, settings
from ..db import SessionLocal, transaction
from . import counters
from .lifecycle import utcnow
from .notifications import NotificationService

logger = logging.getLogger(__name__)

REAPER_MARKER = "post_reaper"


@dataclass
class ReapResult:
    posts: int = 0
    comments: int = 0
    likes: int = 0
    mentions: int = 0
    notifications: int = 0
    owners: dict[int, int] = field(default_factory=dict)


def find_expired_post_ids(db: Session, cutoff: datetime) -> list[int]:
    return list(
        db.scalars(
            select(models.Post.id)
            .where(
                models.Post.is_deleted.is_(True),
                models.Post.deleted_at.isnot(None),
                models.Post.deleted_at < cutoff,
            )
            .order_by(models.Post.id)
            .with_for_update()
        )
    )


def reap_expired_posts(
    db: Session,
    now: datetime | None = None,
    retention: timedelta | None = None,
) -> ReapResult:
    """
    Purge posts soft-deleted before ``now - retention`` and everything hanging off them.

    Order: notifications (loose references), likes, mentions, comments, posts,
    then one posts_count decrement per purged post on its owner.
    """
    now = now or utcnow()
    retention = retention if retention is not None else timedelta(days=settings.POST_RETENTION_DAYS)
    post_ids = find_expired_post_ids(db, now - retention)
    result = ReapResult()
    if not post_ids:
        logger.info("Reaper found no expired posts")
        return result

    comment_ids = list(
        db.scalars(select(models.Comment.id).where(models.Comment.post_id.in_(post_ids)))
    )
    owners = Counter(
        db.scalars(select(models.Post.owner_id).where(models.Post.id.in_(post_ids)))
    )

    result.notifications = NotificationService.delete_for_content(
        db, post_ids=post_ids, comment_ids=comment_ids
    )

    like_targets = [models.Like.post_id.in_(post_ids)]
    mention_targets = [models.Mention.post_id.in_(post_ids)]
    if comment_ids:
        like_targets.append(models.Like.comment_id.in_(comment_ids))
        mention_targets.append(models.Mention.comment_id.in_(comment_ids))

    result.likes = db.execute(
        delete(models.Like).where(or_(*like_targets)).execution_options(synchronize_session=False)
    ).rowcount
    result.mentions = db.execute(
        delete(models.Mention).where(or_(*mention_targets)).execution_options(synchronize_session=False)
    ).rowcount
    result.comments = db.execute(
        delete(models.Comment)
        .where(models.Comment.post_id.in_(post_ids))
        .execution_options(synchronize_session=False)
    ).rowcount
    result.posts = db.execute(
        delete(models.Post)
        .where(models.Post.id.in_(post_ids))
        .execution_options(synchronize_session=False)
    ).rowcount

    for owner_id, purged in owners.items():
        for _ in range(purged):
            counters.adjust(db, models.User, owner_id, "posts_count", -1)
    result.owners = dict(owners)

    logger.info(
        "Reaped %d post(s): %d comment(s), %d like(s), %d mention(s), %d notification(s)",
        result.posts,
        result.comments,
        result.likes,
        result.mentions,
        result.notifications,
    )
    return result


def _insert_for(db: Session):
    """Dialect-specific INSERT that supports ON CONFLICT DO NOTHING."""
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


class ReaperService:
    """Decides when the reaper is due and runs it in its own transaction."""

    @staticmethod
    def read_last_run(db: Session) -> int | None:
        """Unlocked read of the marker, used for the cheap due-check."""
        return db.scalar(
            select(models.MaintenanceMarker.last_run_epoch).where(
                models.MaintenanceMarker.name == REAPER_MARKER
            )
        )

    @staticmethod
    def _lock_marker(db: Session) -> models.MaintenanceMarker:
        # Concurrent first runs may both get here; only one insert lands
        db.execute(
            _insert_for(db)(models.MaintenanceMarker)
            .values(name=REAPER_MARKER, last_run_epoch=None)
            .on_conflict_do_nothing(index_elements=["name"])
        )
        return db.scalars(
            select(models.MaintenanceMarker)
            .where(models.MaintenanceMarker.name == REAPER_MARKER)
            .with_for_update()
        ).one()

    @staticmethod
    def is_due(last_run_epoch: int | None, now: datetime, interval_seconds: int) -> bool:
        if last_run_epoch is None:
            return True
        return int(now.timestamp()) - last_run_epoch >= interval_seconds

    @staticmethod
    def run_if_due(
        session_factory: Callable[[], Session] | None = None,
        now: datetime | None = None,
        interval_seconds: int | None = None,
        retention: timedelta | None = None,
    ) -> ReapResult | None:
        """
        Run the reaper when the marker is older than the interval.

        The marker is first read without a lock, so callers that find the
        reaper not due never wait on a running purge. Only a due run takes
        the row lock, and it checks again under the lock before purging.
        The purge and the marker update commit together, so a failed purge
        leaves the marker untouched and the next trigger retries it.

        Returns:
            ReapResult when the reaper ran, None when it was not due
        """
        now = now or utcnow()
        interval = settings.REAPER_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        factory = session_factory or SessionLocal

        with factory() as db:
            last_run = ReaperService.read_last_run(db)
        if not ReaperService.is_due(last_run, now, interval):
            return None

        with transaction(factory) as db:
            marker = ReaperService._lock_marker(db)
            if not ReaperService.is_due(marker.last_run_epoch, now, interval):
                logger.info("Reaper already ran in this interval")
                return None
            result = reap_expired_posts(db, now=now, retention=retention)
            marker.last_run_epoch = int(now.timestamp())
            db.flush()
            return result
