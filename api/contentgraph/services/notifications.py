"""
Notification fan-out.

Each triggering action is described by one event class carrying exactly the
context its notification needs. Creating a notification only flushes; the
row commits or rolls back with the action that triggered it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Union

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from .. import models, store
from ..content import ContentType, NotificationType, ReferenceType
from ..errors import ContractError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LikeEvent:
    recipient_id: int
    actor_id: int
    content_type: ContentType
    content_id: int

    notification_type: ClassVar[NotificationType] = NotificationType.LIKE

    def reference(self) -> tuple[ReferenceType, int]:
        return ReferenceType(self.content_type.value), self.content_id


@dataclass(frozen=True)
class MentionEvent:
    recipient_id: int
    actor_id: int
    content_type: ContentType
    content_id: int

    notification_type: ClassVar[NotificationType] = NotificationType.MENTION

    def reference(self) -> tuple[ReferenceType, int]:
        return ReferenceType(self.content_type.value), self.content_id


@dataclass(frozen=True)
class CommentEvent:
    recipient_id: int
    actor_id: int
    post_id: int

    notification_type: ClassVar[NotificationType] = NotificationType.COMMENT

    def reference(self) -> tuple[ReferenceType, int]:
        return ReferenceType.POST, self.post_id


@dataclass(frozen=True)
class PostEvent:
    recipient_id: int
    actor_id: int
    post_id: int

    notification_type: ClassVar[NotificationType] = NotificationType.POST

    def reference(self) -> tuple[ReferenceType, int]:
        return ReferenceType.POST, self.post_id


@dataclass(frozen=True)
class FollowEvent:
    recipient_id: int
    actor_id: int

    notification_type: ClassVar[NotificationType] = NotificationType.FOLLOW

    def reference(self) -> tuple[ReferenceType, int]:
        # Follow notifications point at the follower's profile
        return ReferenceType.USER, self.actor_id


NotificationEvent = Union[LikeEvent, MentionEvent, CommentEvent, PostEvent, FollowEvent]

# Context keys each notification type requires, besides recipient and actor
REQUIRED_CONTEXT: dict[NotificationType, tuple[str, ...]] = {
    NotificationType.LIKE: ("content_type", "content_id"),
    NotificationType.MENTION: ("content_type", "content_id"),
    NotificationType.COMMENT: ("post_id",),
    NotificationType.POST: ("post_id",),
    NotificationType.FOLLOW: (),
}


def build_event(
    notification_type: str | NotificationType,
    recipient_id: int | None,
    actor_id: int | None,
    context: Mapping[str, Any] | None = None,
) -> NotificationEvent:
    """
    Build a typed event from a string type and a loose context mapping.

    Missing ids or context are caller bugs and raise ContractError right away.
    """
    try:
        kind = NotificationType(notification_type)
    except ValueError as exc:
        raise ContractError(f"Unknown notification type: {notification_type!r}") from exc

    if recipient_id is None or actor_id is None:
        raise ContractError(
            f"{kind.value} notification requires recipient_id and actor_id",
            recipient_id=recipient_id,
            actor_id=actor_id,
        )

    context = dict(context or {})
    missing = [key for key in REQUIRED_CONTEXT[kind] if context.get(key) is None]
    if missing:
        raise ContractError(
            f"{kind.value} notification is missing context: {', '.join(missing)}",
            missing=missing,
        )

    if kind in (NotificationType.LIKE, NotificationType.MENTION):
        try:
            content_type = ContentType(context["content_type"])
        except ValueError as exc:
            raise ContractError(f"Invalid content_type: {context['content_type']!r}") from exc
        event_cls = LikeEvent if kind is NotificationType.LIKE else MentionEvent
        return event_cls(recipient_id, actor_id, content_type, int(context["content_id"]))
    if kind is NotificationType.COMMENT:
        return CommentEvent(recipient_id, actor_id, int(context["post_id"]))
    if kind is NotificationType.POST:
        return PostEvent(recipient_id, actor_id, int(context["post_id"]))
    return FollowEvent(recipient_id, actor_id)


class NotificationService:
    """Service for creating and managing notifications."""

    @staticmethod
    def create_notification(
        db: Session, event: NotificationEvent
    ) -> models.Notification | None:
        """
        Persist one unread notification for ``event``.

        Args:
            db: Session of the enclosing transaction
            event: The typed notification event

        Returns:
            Created notification, or None if skipped (self-action)
        """
        # Don't notify users about their own actions
        if event.recipient_id == event.actor_id:
            logger.debug(
                "Skipping self-notification (%s) for user %s",
                event.notification_type.value,
                event.recipient_id,
            )
            return None

        reference_type, reference_id = event.reference()
        notification = store.notifications.create(
            db,
            {
                "recipient_id": event.recipient_id,
                "actor_id": event.actor_id,
                "notification_type": event.notification_type.value,
                "reference_type": reference_type.value,
                "reference_id": reference_id,
            },
        )

        logger.info(
            "Created %s notification %s for user %s",
            event.notification_type.value,
            notification.id,
            event.recipient_id,
        )
        return notification

    @staticmethod
    def notify(
        db: Session,
        notification_type: str | NotificationType,
        recipient_id: int | None,
        actor_id: int | None,
        context: Mapping[str, Any] | None = None,
    ) -> models.Notification | None:
        """String-typed entry point; see build_event for the context rules."""
        event = build_event(notification_type, recipient_id, actor_id, context)
        return NotificationService.create_notification(db, event)

    @staticmethod
    def get_unread_count(db: Session, user_id: int) -> int:
        return (
            db.scalar(
                select(func.count(models.Notification.id)).where(
                    models.Notification.recipient_id == user_id,
                    models.Notification.is_read.is_(False),
                )
            )
            or 0
        )

    @staticmethod
    def list_notifications(
        db: Session,
        user_id: int,
        limit: int = 50,
        cursor: int | None = None,
        unread_only: bool = False,
    ) -> tuple[list[models.Notification], int | None]:
        """
        List notifications for a user, newest first, with id-based cursor pagination.

        Args:
            db: Database session
            user_id: Recipient id
            limit: Maximum number of notifications to return
            cursor: Notification id cursor for pagination (exclusive)
            unread_only: If True, only return unread notifications

        Returns:
            Tuple of (notifications, next_cursor)
        """
        stmt = select(models.Notification).where(
            models.Notification.recipient_id == user_id
        )
        if unread_only:
            stmt = stmt.where(models.Notification.is_read.is_(False))
        if cursor is not None:
            stmt = stmt.where(models.Notification.id < cursor)

        # Fetch limit + 1 to determine if there are more results
        rows = list(db.scalars(stmt.order_by(models.Notification.id.desc()).limit(limit + 1)))
        items = rows[:limit]
        next_cursor = items[-1].id if len(rows) > limit and items else None
        return items, next_cursor

    @staticmethod
    def mark_as_read(db: Session, notification_ids: Iterable[int], user_id: int) -> int:
        """Mark specific notifications as read; returns the number updated."""
        ids = list(notification_ids)
        if not ids:
            return 0
        result = db.execute(
            update(models.Notification)
            .where(
                models.Notification.id.in_(ids),
                models.Notification.recipient_id == user_id,
                models.Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int) -> int:
        result = db.execute(
            update(models.Notification)
            .where(
                models.Notification.recipient_id == user_id,
                models.Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def delete_notification(db: Session, notification_id: int, user_id: int) -> bool:
        result = db.execute(
            delete(models.Notification)
            .where(
                models.Notification.id == notification_id,
                models.Notification.recipient_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    def delete_for_content(
        db: Session,
        post_ids: Iterable[int] = (),
        comment_ids: Iterable[int] = (),
    ) -> int:
        """Delete every notification whose loose reference points at these posts or comments."""
        post_ids = list(post_ids)
        comment_ids = list(comment_ids)
        clauses = []
        if post_ids:
            clauses.append(
                (models.Notification.reference_type == ReferenceType.POST.value)
                & models.Notification.reference_id.in_(post_ids)
            )
        if comment_ids:
            clauses.append(
                (models.Notification.reference_type == ReferenceType.COMMENT.value)
                & models.Notification.reference_id.in_(comment_ids)
            )
        if not clauses:
            return 0
        result = db.execute(
            delete(models.Notification)
            .where(or_(*clauses))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
