from __future__ import annotations

from dataclasses import dataclass

from . import models


@dataclass(frozen=True)
class Actor:
    """An already-authenticated user acting on the content graph."""

    id: int
    public_sqid: str
    handle: str

    @classmethod
    def from_user(cls, user: models.User) -> "Actor":
        return cls(id=user.id, public_sqid=user.public_sqid, handle=user.handle)
