"""@handle mention extraction."""

from __future__ import annotations

import logging
import re

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from .. import models, store
from ..content import ContentRef
from .notifications import MentionEvent, NotificationService

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@([a-z0-9_]+)", re.IGNORECASE)


def extract_handles(body: str | None) -> list[str]:
    """Return the lowercased, de-duplicated handles mentioned in ``body``, in order."""
    if not body:
        return []
    seen: dict[str, None] = {}
    for match in MENTION_PATTERN.finditer(body):
        seen.setdefault(match.group(1).lower(), None)
    return list(seen)


def resolve_handles(db: Session, handles: list[str], exclude_user_id: int) -> list[int]:
    """Batch-resolve handles to ids of active users, excluding ``exclude_user_id``."""
    if not handles:
        return []
    return list(
        db.scalars(
            select(models.User.id)
            .where(
                func.lower(models.User.handle).in_(handles),
                models.User.is_deleted.is_(False),
                models.User.id != exclude_user_id,
            )
            .order_by(models.User.id)
        )
    )


def process_mentions(
    db: Session, body: str | None, actor_id: int, ref: ContentRef
) -> list[models.Mention]:
    """
    Record new mentions in ``body`` and notify each newly mentioned user.

    Users already mentioned by ``actor_id`` in the same content are skipped,
    so running this again on an edited body only picks up added mentions.
    Any failure propagates and aborts the enclosing mutation.

    Returns:
        The newly inserted Mention rows
    """
    user_ids = resolve_handles(db, extract_handles(body), actor_id)
    if not user_ids:
        return []

    ref_column = models.Mention.post_id if ref.post_id is not None else models.Mention.comment_id
    already_mentioned = set(
        db.scalars(
            select(models.Mention.mentioned_user_id).where(
                models.Mention.from_user_id == actor_id,
                ref_column == ref.content_id,
                models.Mention.mentioned_user_id.in_(user_ids),
            )
        )
    )

    created: list[models.Mention] = []
    for user_id in user_ids:
        if user_id in already_mentioned:
            continue
        mention = store.mentions.create(
            db,
            {"from_user_id": actor_id, "mentioned_user_id": user_id, **ref.as_columns()},
        )
        created.append(mention)
        NotificationService.create_notification(
            db,
            MentionEvent(
                recipient_id=user_id,
                actor_id=actor_id,
                content_type=ref.content_type,
                content_id=ref.content_id,
            ),
        )

    if created:
        logger.info(
            "Recorded %d new mention(s) from user %s in %s %s",
            len(created),
            actor_id,
            ref.content_type.value,
            ref.content_id,
        )
    return created


def list_mentions_of(db: Session, user_id: int, limit: int = 50) -> list[models.Mention]:
    """Mentions of ``user_id`` in content that is still visible, newest first."""
    return list(
        db.scalars(
            select(models.Mention)
            .outerjoin(models.Post, models.Post.id == models.Mention.post_id)
            .outerjoin(models.Comment, models.Comment.id == models.Mention.comment_id)
            .where(
                models.Mention.mentioned_user_id == user_id,
                or_(
                    models.Post.is_deleted.is_(False),
                    and_(models.Comment.is_deleted.is_(False), models.Comment.post_deleted.is_(False)),
                ),
            )
            .order_by(models.Mention.created_at.desc(), models.Mention.id.desc())
            .limit(limit)
        )
    )
