"""User soft delete, recovery and role assignment."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from .. import models, store
from ..errors import ConflictError, NotFoundError
from .follows import remove_follows_for_user
from .likes import remove_likes_by_user
from .lifecycle import utcnow

logger = logging.getLogger(__name__)

DELETED_PREFIX = "deleted_"


def soft_delete_user(db: Session, user: models.User) -> None:
    """
    Mark ``user`` deleted, prefix handle and email, and drop follows and likes.

    The prefix frees the original handle and email while the account is
    deleted. Follow and like removals keep every affected tally consistent.
    """
    if user.is_deleted:
        raise NotFoundError("User not found", user_id=user.id)

    db.execute(
        update(models.User)
        .where(models.User.id == user.id)
        .values(
            is_deleted=True,
            deleted_at=utcnow(),
            handle=DELETED_PREFIX + user.handle,
            email=DELETED_PREFIX + user.email,
        )
        .execution_options(synchronize_session="fetch")
    )
    follows = remove_follows_for_user(db, user.id)
    likes = remove_likes_by_user(db, user.id)
    logger.info(
        "Soft-deleted user %s (removed %d follow(s), %d like(s))", user.id, follows, likes
    )


def recover_user(db: Session, handle: str) -> models.User:
    """Restore the deleted account originally called ``handle``."""
    user = db.scalars(
        select(models.User)
        .where(
            models.User.handle == DELETED_PREFIX + handle,
            models.User.is_deleted.is_(True),
        )
        .with_for_update()
    ).first()
    if user is None:
        raise NotFoundError("Deleted user not found", handle=handle)

    taken = db.scalar(select(models.User.id).where(models.User.handle == handle))
    if taken is not None:
        raise ConflictError("Handle is already taken", handle=handle)

    email = user.email
    if email.startswith(DELETED_PREFIX):
        email = email[len(DELETED_PREFIX):]

    db.execute(
        update(models.User)
        .where(models.User.id == user.id)
        .values(is_deleted=False, deleted_at=None, handle=handle, email=email)
        .execution_options(synchronize_session="fetch")
    )
    db.refresh(user)
    logger.info("Recovered user %s as %s", user.id, handle)
    return user


def get_or_create_role(db: Session, role_name: str) -> models.Role:
    role = db.scalars(select(models.Role).where(models.Role.name == role_name)).first()
    if role is None:
        role = models.Role(name=role_name)
        db.add(role)
        db.flush()
    return role


def get_user_roles(db: Session, user_id: int) -> list[str]:
    return list(
        db.scalars(
            select(models.Role.name)
            .join(models.UserRole, models.UserRole.role_id == models.Role.id)
            .where(models.UserRole.user_id == user_id)
            .order_by(models.Role.name)
        )
    )


def assign_role(db: Session, user_id: int, role_name: str) -> bool:
    """Grant ``role_name``; returns False when the user already had it."""
    role = get_or_create_role(db, role_name)
    existing = db.get(models.UserRole, (user_id, role.id))
    if existing is not None:
        return False
    db.add(models.UserRole(user_id=user_id, role_id=role.id))
    db.flush()
    return True


def remove_role(db: Session, user_id: int, role_name: str) -> bool:
    role = db.scalars(select(models.Role).where(models.Role.name == role_name)).first()
    if role is None:
        return False
    result = db.execute(
        delete(models.UserRole)
        .where(models.UserRole.user_id == user_id, models.UserRole.role_id == role.id)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount > 0


def is_admin(db: Session, user_id: int) -> bool:
    return bool({"admin", "superadmin"} & set(get_user_roles(db, user_id)))


def create_user(db: Session, handle: str, email: str, display_name: str | None = None) -> models.User:
    """Create an account. Registration proper lives in the identity service."""
    return store.users.create(
        db, {"handle": handle, "email": email, "display_name": display_name}
    )
