"""
Mutation orchestrator.

Every public method is one logical operation and owns exactly one
transaction: it opens it, sequences the consistency mechanisms inside it and
commits only if all of them succeed. The mechanisms themselves never commit
or roll back. Failures are logged with the operation name and entity ids and
re-raised to the caller; nothing is retried here.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping, TypeVar

import pydantic
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas, store
from .actor import Actor
from .content import ContentRef, ContentType
from .db import transaction
from .errors import (
    ContentGraphError,
    ContractError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .services import counters, follows, likes, lifecycle, users
from .services.mentions import list_mentions_of, process_mentions
from .services.notifications import CommentEvent, NotificationService, PostEvent
from .sqids_config import encode_handle
from .store import translate_db_error

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=pydantic.BaseModel)


def validate_payload(schema: type[SchemaT], payload: SchemaT | Mapping[str, Any]) -> SchemaT:
    """Validate input before any transaction opens."""
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid {schema.__name__}", errors=exc.errors(include_url=False)
        ) from exc


class MutationOrchestrator:
    """Sequences store writes, counters, notifications and mentions per operation."""

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self.session_factory = session_factory

    @contextmanager
    def _operation(self, name: str, **context: object) -> Iterator[Session]:
        try:
            with transaction(self.session_factory) as db:
                yield db
        except ContractError as exc:
            logger.error("%s: contract violation: %s %s", name, exc.message, {**context, **exc.context})
            raise
        except ContentGraphError as exc:
            logger.warning("%s failed: %s %s", name, exc.message, {**context, **exc.context})
            raise
        except SQLAlchemyError as exc:
            logger.exception("%s failed and was rolled back %s", name, context)
            raise translate_db_error(exc, name, **context) from exc
        except Exception:
            logger.exception("%s failed and was rolled back %s", name, context)
            raise

    # =========================================================================
    # Loading helpers
    # =========================================================================

    @staticmethod
    def _load_user(db: Session, user_id: int) -> models.User:
        user = store.users.find(db, user_id)
        if user is None or user.is_deleted:
            raise NotFoundError("User not found", user_id=user_id)
        return user

    @staticmethod
    def _load_user_by_handle(db: Session, handle: str) -> models.User:
        user = store.users.find_by_handle(db, handle)
        if user is None or user.is_deleted:
            raise NotFoundError("User not found", user_handle=handle)
        return user

    @staticmethod
    def _load_post(
        db: Session, handle: str, *, include_deleted: bool = False, for_update: bool = True
    ) -> models.Post:
        post = store.posts.find_by_handle(db, handle, for_update=for_update)
        if post is None or (post.is_deleted and not include_deleted):
            raise NotFoundError("Post not found", post_handle=handle)
        return post

    @staticmethod
    def _load_comment(db: Session, handle: str) -> models.Comment:
        comment = store.comments.find_by_handle(db, handle, for_update=True)
        if comment is None or comment.is_deleted or comment.post_deleted:
            raise NotFoundError("Comment not found", comment_handle=handle)
        return comment

    @staticmethod
    def _require_owner(db: Session, actor: Actor, owner_id: int) -> None:
        if actor.id != owner_id and not users.is_admin(db, actor.id):
            raise PermissionDeniedError(
                "Only the owner can change this content", actor_id=actor.id, owner_id=owner_id
            )

    @staticmethod
    def _require_admin(db: Session, actor: Actor) -> None:
        if not users.is_admin(db, actor.id):
            raise PermissionDeniedError("Admin role required", actor_id=actor.id)

    # =========================================================================
    # Posts
    # =========================================================================

    def create_post(
        self, actor: Actor, payload: schemas.PostCreate | Mapping[str, Any]
    ) -> schemas.Post:
        """Insert post, bump posts_count, notify followers, record mentions."""
        data = validate_payload(schemas.PostCreate, payload)
        with self._operation("create_post", actor_id=actor.id) as db:
            self._load_user(db, actor.id)
            post = store.posts.create(db, {**data.model_dump(), "owner_id": actor.id})
            counters.adjust(db, models.User, actor.id, "posts_count", 1)

            for follower_id in follows.follower_ids(db, actor.id):
                NotificationService.create_notification(
                    db, PostEvent(recipient_id=follower_id, actor_id=actor.id, post_id=post.id)
                )

            process_mentions(db, post.body, actor.id, ContentRef.post(post.id))
            db.refresh(post)
            logger.info("User %s created post %s", actor.id, post.id)
            return schemas.Post.model_validate(post)

    def update_post(
        self,
        actor: Actor,
        post_handle: str,
        payload: schemas.PostUpdate | Mapping[str, Any],
    ) -> schemas.Post:
        """Apply a partial update; a changed body picks up newly added mentions."""
        data = validate_payload(schemas.PostUpdate, payload)
        with self._operation("update_post", actor_id=actor.id, post_handle=post_handle) as db:
            post = self._load_post(db, post_handle)
            self._require_owner(db, actor, post.owner_id)

            if store.posts.update(db, post.id, data):
                post.is_edited = True
                db.flush()
                if data.body is not None:
                    process_mentions(db, post.body, post.owner_id, ContentRef.post(post.id))

            db.refresh(post)
            return schemas.Post.model_validate(post)

    def delete_post(self, actor: Actor, post_handle: str) -> schemas.DeleteResult:
        """Soft-delete a post and flag its comments."""
        with self._operation("delete_post", actor_id=actor.id, post_handle=post_handle) as db:
            post = self._load_post(db, post_handle, include_deleted=True)
            self._require_owner(db, actor, post.owner_id)
            flagged = lifecycle.soft_delete_post(db, post)
            return schemas.DeleteResult(
                public_sqid=post.public_sqid, is_deleted=True, comments_affected=flagged
            )

    def recover_post(self, actor: Actor, post_handle: str) -> schemas.DeleteResult:
        """Recover a soft-deleted post and unflag its comments."""
        with self._operation("recover_post", actor_id=actor.id, post_handle=post_handle) as db:
            post = self._load_post(db, post_handle, include_deleted=True)
            self._require_owner(db, actor, post.owner_id)
            unflagged = lifecycle.recover_post(db, post)
            return schemas.DeleteResult(
                public_sqid=post.public_sqid, is_deleted=False, comments_affected=unflagged
            )

    def get_post(self, post_handle: str) -> schemas.Post:
        with self._operation("get_post", post_handle=post_handle) as db:
            return schemas.Post.model_validate(self._load_post(db, post_handle, for_update=False))

    # =========================================================================
    # Comments
    # =========================================================================

    def create_comment(
        self,
        actor: Actor,
        post_handle: str,
        payload: schemas.CommentCreate | Mapping[str, Any],
    ) -> schemas.Comment:
        """Insert comment, bump comment_count, notify the post owner, record mentions."""
        data = validate_payload(schemas.CommentCreate, payload)
        with self._operation("create_comment", actor_id=actor.id, post_handle=post_handle) as db:
            self._load_user(db, actor.id)
            post = self._load_post(db, post_handle)
            comment = store.comments.create(
                db, {"body": data.body, "post_id": post.id, "owner_id": actor.id}
            )
            counters.adjust(db, models.Post, post.id, "comment_count", 1)
            NotificationService.create_notification(
                db, CommentEvent(recipient_id=post.owner_id, actor_id=actor.id, post_id=post.id)
            )
            process_mentions(db, comment.body, actor.id, ContentRef.comment(comment.id))
            db.refresh(comment)
            logger.info("User %s commented %s on post %s", actor.id, comment.id, post.id)
            return schemas.Comment.model_validate(comment)

    def update_comment(
        self,
        actor: Actor,
        comment_handle: str,
        payload: schemas.CommentUpdate | Mapping[str, Any],
    ) -> schemas.Comment:
        data = validate_payload(schemas.CommentUpdate, payload)
        with self._operation(
            "update_comment", actor_id=actor.id, comment_handle=comment_handle
        ) as db:
            comment = self._load_comment(db, comment_handle)
            self._require_owner(db, actor, comment.owner_id)
            store.comments.update(db, comment.id, data)
            comment.is_edited = True
            db.flush()
            process_mentions(db, comment.body, comment.owner_id, ContentRef.comment(comment.id))
            db.refresh(comment)
            return schemas.Comment.model_validate(comment)

    def delete_comment(self, actor: Actor, comment_handle: str) -> schemas.DeleteResult:
        with self._operation(
            "delete_comment", actor_id=actor.id, comment_handle=comment_handle
        ) as db:
            comment = self._load_comment(db, comment_handle)
            self._require_owner(db, actor, comment.owner_id)
            lifecycle.soft_delete_comment(db, comment)
            return schemas.DeleteResult(
                public_sqid=comment.public_sqid, is_deleted=True, comments_affected=1
            )

    def list_comments(self, post_handle: str, limit: int = 50) -> list[schemas.Comment]:
        with self._operation("list_comments", post_handle=post_handle) as db:
            post = self._load_post(db, post_handle, for_update=False)
            rows = db.scalars(
                select(models.Comment)
                .where(
                    models.Comment.post_id == post.id,
                    models.Comment.is_deleted.is_(False),
                )
                .order_by(models.Comment.created_at.asc(), models.Comment.id.asc())
                .limit(limit)
            )
            return [schemas.Comment.model_validate(c) for c in rows]

    # =========================================================================
    # Likes, follows & mentions
    # =========================================================================

    @staticmethod
    def _likeable_type(target_type: str | ContentType) -> ContentType:
        try:
            return ContentType(target_type)
        except ValueError as exc:
            raise ValidationError(f"Cannot like a {target_type!r}") from exc

    @staticmethod
    def _resolve_target(db: Session, content_type: ContentType, target_handle: str) -> ContentRef:
        target_store = store.posts if content_type is ContentType.POST else store.comments
        target_id = target_store.resolve_handle(db, target_handle)
        if target_id is None:
            raise NotFoundError(
                f"{content_type.value.capitalize()} not found", target_handle=target_handle
            )
        return ContentRef(content_type, target_id)

    def toggle_like(
        self, actor: Actor, target_type: str | ContentType, target_handle: str
    ) -> schemas.LikeToggleResult:
        """Like or unlike a post or comment."""
        content_type = self._likeable_type(target_type)
        with self._operation(
            "toggle_like",
            actor_id=actor.id,
            target_type=content_type.value,
            target_handle=target_handle,
        ) as db:
            ref = self._resolve_target(db, content_type, target_handle)
            result = likes.toggle_like(db, actor.id, ref)
            return schemas.LikeToggleResult(liked=result.liked, like_count=result.like_count)

    def like_status(
        self, actor: Actor, target_type: str | ContentType, target_handle: str
    ) -> schemas.LikeToggleResult:
        """Whether ``actor`` currently likes the target, without changing it."""
        content_type = self._likeable_type(target_type)
        with self._operation("like_status", actor_id=actor.id, target_handle=target_handle) as db:
            ref = self._resolve_target(db, content_type, target_handle)
            likes.load_likeable_target(db, ref, for_update=False)
            return schemas.LikeToggleResult(
                liked=likes.has_liked(db, actor.id, ref), like_count=likes.count_likes(db, ref)
            )

    def list_likes(
        self, target_type: str | ContentType, target_handle: str, limit: int = 50
    ) -> schemas.LikeList:
        content_type = self._likeable_type(target_type)
        with self._operation("list_likes", target_handle=target_handle) as db:
            ref = self._resolve_target(db, content_type, target_handle)
            likes.load_likeable_target(db, ref, for_update=False)
            return schemas.LikeList(
                like_count=likes.count_likes(db, ref),
                users=[
                    schemas.UserSummary.model_validate(u) for u in likes.list_likers(db, ref, limit)
                ],
            )

    def toggle_follow(self, actor: Actor, user_handle: str) -> schemas.FollowToggleResult:
        with self._operation("toggle_follow", actor_id=actor.id, user_handle=user_handle) as db:
            self._load_user(db, actor.id)
            target = self._load_user_by_handle(db, user_handle)
            result = follows.toggle_follow(db, actor.id, target.id)
            return schemas.FollowToggleResult(
                following=result.following, followers_count=result.followers_count
            )

    def follow_status(self, actor: Actor, user_handle: str) -> schemas.FollowToggleResult:
        with self._operation("follow_status", actor_id=actor.id, user_handle=user_handle) as db:
            target = self._load_user_by_handle(db, user_handle)
            return schemas.FollowToggleResult(
                following=follows.is_following(db, actor.id, target.id),
                followers_count=target.followers_count,
            )

    def list_followers(self, user_handle: str, limit: int = 50) -> list[schemas.UserSummary]:
        with self._operation("list_followers", user_handle=user_handle) as db:
            user = self._load_user_by_handle(db, user_handle)
            followers = follows.list_followers(db, user.id, limit)
            return [schemas.UserSummary.model_validate(u) for u in followers]

    def list_following(self, user_handle: str, limit: int = 50) -> list[schemas.UserSummary]:
        with self._operation("list_following", user_handle=user_handle) as db:
            user = self._load_user_by_handle(db, user_handle)
            followed = follows.list_following(db, user.id, limit)
            return [schemas.UserSummary.model_validate(u) for u in followed]

    def list_mentions(self, actor: Actor, limit: int = 50) -> list[schemas.Mention]:
        """Mentions of ``actor`` in posts and comments that are still visible."""
        with self._operation("list_mentions", actor_id=actor.id) as db:
            results = []
            for mention in list_mentions_of(db, actor.id, limit):
                ref = ContentRef.from_columns(mention.post_id, mention.comment_id)
                results.append(
                    schemas.Mention(
                        content_type=ref.content_type.value,
                        content_sqid=encode_handle(ref.content_type.value, ref.content_id),
                        from_user=schemas.UserSummary.model_validate(mention.from_user),
                        created_at=mention.created_at,
                    )
                )
            return results

    # =========================================================================
    # Users & roles
    # =========================================================================

    def delete_user(self, actor: Actor) -> None:
        with self._operation("delete_user", actor_id=actor.id) as db:
            users.soft_delete_user(db, self._load_user(db, actor.id))

    def get_user(self, user_handle: str) -> schemas.UserProfile:
        with self._operation("get_user", user_handle=user_handle) as db:
            return schemas.UserProfile.model_validate(self._load_user_by_handle(db, user_handle))

    def recover_user(self, actor: Actor, handle: str) -> schemas.UserProfile:
        """Restore a deleted account by its original handle (admin only)."""
        with self._operation("recover_user", actor_id=actor.id, handle=handle) as db:
            self._require_admin(db, actor)
            return schemas.UserProfile.model_validate(users.recover_user(db, handle))

    def assign_role(self, actor: Actor, user_handle: str, role_name: str) -> bool:
        with self._operation("assign_role", actor_id=actor.id, user_handle=user_handle) as db:
            self._require_admin(db, actor)
            user = self._load_user_by_handle(db, user_handle)
            return users.assign_role(db, user.id, role_name)

    def remove_role(self, actor: Actor, user_handle: str, role_name: str) -> bool:
        with self._operation("remove_role", actor_id=actor.id, user_handle=user_handle) as db:
            self._require_admin(db, actor)
            user = self._load_user_by_handle(db, user_handle)
            return users.remove_role(db, user.id, role_name)

    # =========================================================================
    # Notifications
    # =========================================================================

    def list_notifications(
        self,
        actor: Actor,
        limit: int = 50,
        cursor: int | None = None,
        unread_only: bool = False,
    ) -> schemas.Page[schemas.Notification]:
        with self._operation("list_notifications", actor_id=actor.id) as db:
            items, next_cursor = NotificationService.list_notifications(
                db, actor.id, limit=limit, cursor=cursor, unread_only=unread_only
            )
            return schemas.Page[schemas.Notification](
                items=[schemas.Notification.model_validate(n) for n in items],
                next_cursor=str(next_cursor) if next_cursor is not None else None,
            )

    def unread_count(self, actor: Actor) -> int:
        with self._operation("unread_count", actor_id=actor.id) as db:
            return NotificationService.get_unread_count(db, actor.id)

    def mark_notifications_read(self, actor: Actor, notification_ids: list[int]) -> int:
        with self._operation("mark_notifications_read", actor_id=actor.id) as db:
            return NotificationService.mark_as_read(db, notification_ids, actor.id)

    def mark_all_notifications_read(self, actor: Actor) -> int:
        with self._operation("mark_all_notifications_read", actor_id=actor.id) as db:
            return NotificationService.mark_all_as_read(db, actor.id)

    def delete_notification(self, actor: Actor, notification_id: int) -> bool:
        with self._operation(
            "delete_notification", actor_id=actor.id, notification_id=notification_id
        ) as db:
            return NotificationService.delete_notification(db, notification_id, actor.id)
