"""Test soft delete and recovery of posts and comments."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from contentgraph import models, store
from contentgraph.errors import ConflictError, NotFoundError
from contentgraph.services import lifecycle
from contentgraph.services.notifications import NotificationService


@pytest.fixture
def post(db: Session, alice: models.User) -> models.Post:
    return store.posts.create(db, {"owner_id": alice.id, "body": "round trip"})


def _add_comment(db: Session, post: models.Post, owner: models.User, body: str) -> models.Comment:
    comment = store.comments.create(db, {"post_id": post.id, "owner_id": owner.id, "body": body})
    post.comment_count += 1
    db.flush()
    return comment


def test_soft_delete_round_trip(db: Session, post: models.Post, bob: models.User):
    first = _add_comment(db, post, bob, "first")
    second = _add_comment(db, post, bob, "second")
    before = (post.body, post.like_count, post.comment_count, first.body, second.body)

    assert lifecycle.soft_delete_post(db, post) == 2
    db.refresh(post)
    db.refresh(first)
    assert post.is_deleted is True
    assert post.deleted_at is not None
    assert first.post_deleted is True

    assert lifecycle.recover_post(db, post) == 2
    for row in (post, first, second):
        db.refresh(row)
    assert post.is_deleted is False
    assert post.deleted_at is None
    assert first.post_deleted is False
    assert second.post_deleted is False
    assert (post.body, post.like_count, post.comment_count, first.body, second.body) == before


def test_deleted_comments_are_not_flagged(db: Session, post: models.Post, bob: models.User):
    kept = _add_comment(db, post, bob, "kept")
    gone = _add_comment(db, post, bob, "gone")
    lifecycle.soft_delete_comment(db, gone)

    assert lifecycle.soft_delete_post(db, post) == 1
    db.refresh(kept)
    db.refresh(gone)
    assert kept.post_deleted is True
    assert gone.post_deleted is False


def test_state_guards(db: Session, post: models.Post):
    with pytest.raises(ConflictError):
        lifecycle.recover_post(db, post)

    lifecycle.soft_delete_post(db, post)
    db.refresh(post)
    with pytest.raises(NotFoundError):
        lifecycle.soft_delete_post(db, post)


def test_soft_delete_comment(db: Session, post: models.Post, alice: models.User, bob: models.User):
    comment = _add_comment(db, post, bob, "bye")
    NotificationService.notify(
        db, "like", bob.id, alice.id, {"content_type": "comment", "content_id": comment.id}
    )

    lifecycle.soft_delete_comment(db, comment)

    db.refresh(post)
    db.refresh(comment)
    assert post.comment_count == 0
    assert comment.is_deleted is True
    assert comment.deleted_at is not None
    assert db.scalar(select(func.count(models.Notification.id))) == 0
    with pytest.raises(NotFoundError):
        lifecycle.soft_delete_comment(db, comment)
