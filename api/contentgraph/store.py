"""
Generic entity store.

Thin CRUD over one mapped table keyed by an integer primary key and, where the
table has one, an external public handle. Writes accept a field bag (a mapping
or a Pydantic model) and keep only the entity's fillable columns; anything
else the caller passes is dropped without error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import ConflictError, WriteError
from .sqids_config import decode_handle, encode_handle

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=models.Base)


def _field_bag(fields: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    if isinstance(fields, BaseModel):
        return fields.model_dump(exclude_unset=True, exclude_none=True)
    return dict(fields)


def translate_db_error(exc: SQLAlchemyError, operation: str, **context: object) -> Exception:
    """Map a SQLAlchemy failure onto the domain error taxonomy."""
    if isinstance(exc, IntegrityError) and "unique" in str(exc.orig).lower():
        return ConflictError(f"{operation}: duplicate row", **context)
    return WriteError(f"{operation} failed: {exc.__class__.__name__}", **context)


class EntityStore(Generic[ModelT]):
    """CRUD for one entity type with fillable filtering."""

    def __init__(
        self,
        model: type[ModelT],
        fillable: Iterable[str],
        handle_kind: str | None = None,
    ) -> None:
        self.model = model
        self.fillable = frozenset(fillable)
        self.handle_kind = handle_kind

    @property
    def name(self) -> str:
        return self.model.__tablename__

    def filter_fields(self, fields: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
        bag = _field_bag(fields)
        dropped = set(bag) - self.fillable
        if dropped:
            logger.debug("Dropping non-fillable fields for %s: %s", self.name, sorted(dropped))
        return {key: value for key, value in bag.items() if key in self.fillable}

    def find(self, db: Session, entity_id: int, *, for_update: bool = False) -> ModelT | None:
        stmt = select(self.model).where(self.model.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update()
        return db.scalars(stmt).first()

    def find_by_handle(self, db: Session, handle: str, *, for_update: bool = False) -> ModelT | None:
        entity_id = self.resolve_handle(db, handle)
        if entity_id is None:
            return None
        return self.find(db, entity_id, for_update=for_update)

    def resolve_handle(self, db: Session, handle: str) -> int | None:
        """Translate a public handle into an internal id, or None if unknown."""
        if self.handle_kind is None:
            return None
        entity_id = decode_handle(self.handle_kind, handle)
        if entity_id is None:
            return None
        return db.scalar(
            select(self.model.id).where(
                self.model.id == entity_id,
                self.model.public_sqid == handle,
            )
        )

    def create(self, db: Session, fields: Mapping[str, Any] | BaseModel) -> ModelT:
        """
        Insert a row built from the fillable subset of ``fields``.

        The row is flushed so its id is available, then its public handle is
        assigned. Constraint violations surface as ConflictError (duplicates)
        or WriteError (everything else).
        """
        entity = self.model(**self.filter_fields(fields))
        db.add(entity)
        try:
            db.flush()
            if self.handle_kind is not None:
                entity.public_sqid = encode_handle(self.handle_kind, entity.id)
                db.flush()
        except SQLAlchemyError as exc:
            raise translate_db_error(exc, f"create {self.name}") from exc
        return entity

    def update(self, db: Session, entity_id: int, fields: Mapping[str, Any] | BaseModel) -> bool:
        """Update fillable columns; returns False when nothing matched or nothing was fillable."""
        values = self.filter_fields(fields)
        if not values:
            return False
        try:
            result = db.execute(
                update(self.model)
                .where(self.model.id == entity_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as exc:
            raise translate_db_error(exc, f"update {self.name}", id=entity_id) from exc
        return result.rowcount > 0

    def delete(self, db: Session, entity_id: int) -> bool:
        """Hard delete. Only the reaper removes content rows permanently."""
        try:
            result = db.execute(
                delete(self.model)
                .where(self.model.id == entity_id)
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as exc:
            raise translate_db_error(exc, f"delete {self.name}", id=entity_id) from exc
        return result.rowcount > 0


users = EntityStore(
    models.User,
    fillable={"handle", "email", "display_name", "bio"},
    handle_kind="user",
)
posts = EntityStore(
    models.Post,
    fillable={"owner_id", "body", "media_urls", "visibility"},
    handle_kind="post",
)
comments = EntityStore(
    models.Comment,
    fillable={"post_id", "owner_id", "body"},
    handle_kind="comment",
)
likes = EntityStore(models.Like, fillable={"user_id", "post_id", "comment_id"})
follows = EntityStore(models.Follow, fillable={"follower_id", "followed_id"})
mentions = EntityStore(
    models.Mention,
    fillable={"from_user_id", "mentioned_user_id", "post_id", "comment_id"},
)
notifications = EntityStore(
    models.Notification,
    fillable={"recipient_id", "actor_id", "notification_type", "reference_type", "reference_id"},
)
