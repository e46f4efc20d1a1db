"""Test the generic entity store and public handles."""

import pytest
from sqlalchemy.orm import Session

from contentgraph import models, store
from contentgraph.errors import ConflictError
from contentgraph.schemas import PostUpdate
from contentgraph.sqids_config import decode_handle, encode_handle


def test_handles_are_tagged_per_entity_kind():
    handle = encode_handle("post", 42)

    assert decode_handle("post", handle) == 42
    assert decode_handle("comment", handle) is None
    assert decode_handle("user", handle) is None


def test_decode_rejects_garbage():
    assert decode_handle("post", "") is None
    assert decode_handle("post", "not a handle!") is None


def test_create_drops_non_fillable_fields(db: Session, alice: models.User):
    post = store.posts.create(
        db,
        {
            "owner_id": alice.id,
            "body": "hello",
            "like_count": 999,
            "is_deleted": True,
            "unknown": "ignored",
        },
    )

    assert post.like_count == 0
    assert post.is_deleted is False
    assert post.public_sqid == encode_handle("post", post.id)


def test_resolve_handle_requires_stored_handle(db: Session, alice: models.User):
    post = store.posts.create(db, {"owner_id": alice.id, "body": "hello"})

    assert store.posts.resolve_handle(db, post.public_sqid) == post.id
    # A well-formed handle for a row that does not exist
    assert store.posts.resolve_handle(db, encode_handle("post", post.id + 100)) is None
    assert store.posts.find_by_handle(db, "zzzzzz") is None


def test_update_with_partial_model_only_writes_sent_fields(db: Session, alice: models.User):
    post = store.posts.create(
        db, {"owner_id": alice.id, "body": "hello", "visibility": "followers"}
    )

    assert store.posts.update(db, post.id, PostUpdate(body="edited")) is True
    db.refresh(post)

    assert post.body == "edited"
    assert post.visibility == "followers"


def test_update_without_fillable_fields_is_a_no_op(db: Session, alice: models.User):
    post = store.posts.create(db, {"owner_id": alice.id, "body": "hello"})

    assert store.posts.update(db, post.id, {"like_count": 5}) is False
    assert store.posts.update(db, post.id + 100, {"body": "x"}) is False


def test_duplicate_row_raises_conflict(db: Session, alice: models.User, bob: models.User):
    store.follows.create(db, {"follower_id": alice.id, "followed_id": bob.id})

    with pytest.raises(ConflictError):
        store.follows.create(db, {"follower_id": alice.id, "followed_id": bob.id})
