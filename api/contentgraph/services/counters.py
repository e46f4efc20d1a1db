"""
Denormalized counter maintenance.

Counters move by exactly one step per call and always through a single
``UPDATE ... SET n = n + delta`` so concurrent writers never lose updates.
There is no floor: the tables carry ``>= 0`` check constraints, so a counter
driven below zero fails the enclosing transaction instead of being masked.
"""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..errors import ContractError, NotFoundError
from ..store import translate_db_error

logger = logging.getLogger(__name__)

COUNTER_FIELDS: dict[type[models.Base], frozenset[str]] = {
    models.Post: frozenset({"like_count", "comment_count"}),
    models.Comment: frozenset({"like_count"}),
    models.User: frozenset({"posts_count", "followers_count", "following_count"}),
}


def adjust(
    db: Session,
    model: type[models.Base],
    entity_id: int,
    field: str,
    delta: int,
) -> None:
    """
    Atomically add ``delta`` (+1 or -1) to ``model.field`` for one row.

    Raises:
        ContractError: unknown counter or a delta other than +1/-1
        NotFoundError: no row with that id
        WriteError: the update violated a constraint (e.g. went negative)
    """
    if delta not in (1, -1):
        raise ContractError(f"Counter delta must be +1 or -1, got {delta!r}")
    if field not in COUNTER_FIELDS.get(model, frozenset()):
        raise ContractError(f"{model.__name__}.{field} is not a maintained counter")

    column = getattr(model, field)
    try:
        result = db.execute(
            update(model)
            .where(model.id == entity_id)
            .values({field: column + delta})
            .execution_options(synchronize_session="fetch")
        )
    except SQLAlchemyError as exc:
        raise translate_db_error(
            exc, "adjust counter", model=model.__name__, id=entity_id, field=field
        ) from exc

    if result.rowcount == 0:
        raise NotFoundError(
            f"{model.__name__} {entity_id} not found", model=model.__name__, id=entity_id
        )
    logger.debug("Adjusted %s.%s for id %s by %+d", model.__name__, field, entity_id, delta)
