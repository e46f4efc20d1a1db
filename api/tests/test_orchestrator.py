"""Test the mutation orchestrator: one transaction per operation."""

from unittest.mock import patch

import pytest
from sqlalchemy import select

from contentgraph import models
from contentgraph.actor import Actor
from contentgraph.db import SessionLocal
from contentgraph.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    WriteError,
)
from contentgraph.orchestrator import MutationOrchestrator
from contentgraph.services.notifications import NotificationService


def _notifications(recipient: models.User) -> list[models.Notification]:
    with SessionLocal() as session:
        return list(
            session.scalars(
                select(models.Notification)
                .where(models.Notification.recipient_id == recipient.id)
                .order_by(models.Notification.id)
            )
        )


def _post_row(handle: str) -> models.Post:
    with SessionLocal() as session:
        return session.scalars(select(models.Post).where(models.Post.public_sqid == handle)).one()


def _comment_rows(post_handle: str) -> list[models.Comment]:
    with SessionLocal() as session:
        post_id = session.scalar(select(models.Post.id).where(models.Post.public_sqid == post_handle))
        return list(session.scalars(select(models.Comment).where(models.Comment.post_id == post_id)))


def test_like_delete_recover_scenario(
    orchestrator: MutationOrchestrator, alice: models.User, bob: models.User, carol: models.User
):
    a, b = Actor.from_user(alice), Actor.from_user(bob)
    post = orchestrator.create_post(a, {"body": "P"})
    orchestrator.create_comment(Actor.from_user(carol), post.public_sqid, {"body": "C"})

    liked = orchestrator.toggle_like(b, "post", post.public_sqid)

    assert liked.liked is True
    assert liked.like_count == 1
    like_notifications = [n for n in _notifications(alice) if n.notification_type == "like"]
    assert len(like_notifications) == 1
    assert like_notifications[0].actor_id == bob.id

    unliked = orchestrator.toggle_like(b, "post", post.public_sqid)

    assert unliked.liked is False
    assert unliked.like_count == 0
    assert len([n for n in _notifications(alice) if n.notification_type == "like"]) == 1
    with SessionLocal() as session:
        assert session.scalars(select(models.Like)).first() is None

    deleted = orchestrator.delete_post(a, post.public_sqid)

    assert deleted.is_deleted is True
    assert deleted.comments_affected == 1
    assert _post_row(post.public_sqid).is_deleted is True
    assert [c.post_deleted for c in _comment_rows(post.public_sqid)] == [True]

    recovered = orchestrator.recover_post(a, post.public_sqid)

    assert recovered.is_deleted is False
    assert _post_row(post.public_sqid).is_deleted is False
    assert [c.post_deleted for c in _comment_rows(post.public_sqid)] == [False]


def test_create_post_fans_out_to_followers(
    orchestrator: MutationOrchestrator, alice: models.User, bob: models.User, carol: models.User
):
    orchestrator.toggle_follow(Actor.from_user(bob), alice.public_sqid)
    orchestrator.toggle_follow(Actor.from_user(carol), alice.public_sqid)

    post = orchestrator.create_post(Actor.from_user(alice), {"body": "hello @carol"})

    assert post.owner.handle == "alice"
    assert [n.notification_type for n in _notifications(bob)] == ["post"]
    assert [n.notification_type for n in _notifications(carol)] == ["post", "mention"]
    with SessionLocal() as session:
        assert session.get(models.User, alice.id).posts_count == 1


def test_create_comment_notifies_owner_but_not_self(
    orchestrator: MutationOrchestrator, alice: models.User, bob: models.User
):
    a = Actor.from_user(alice)
    post = orchestrator.create_post(a, {"body": "P"})

    orchestrator.create_comment(a, post.public_sqid, {"body": "my own"})
    orchestrator.create_comment(Actor.from_user(bob), post.public_sqid, {"body": "hi"})

    assert [n.notification_type for n in _notifications(alice)] == ["comment"]
    assert orchestrator.get_post(post.public_sqid).comment_count == 2


def test_failed_counter_rolls_back_the_whole_comment(
    orchestrator: MutationOrchestrator, alice: models.User, bob: models.User, snapshot
):
    post = orchestrator.create_post(Actor.from_user(alice), {"body": "P"})
    before = snapshot()

    with patch(
        "contentgraph.orchestrator.counters.adjust", side_effect=WriteError("counter update failed")
    ):
        with pytest.raises(WriteError):
            orchestrator.create_comment(Actor.from_user(bob), post.public_sqid, {"body": "@alice hi"})

    assert snapshot() == before


def test_failed_notification_rolls_back_the_whole_comment(
    orchestrator: MutationOrchestrator, alice: models.User, bob: models.User, snapshot
):
    post = orchestrator.create_post(Actor.from_user(alice), {"body": "P"})
    before = snapshot()

    with patch.object(
        NotificationService, "create_notification", side_effect=RuntimeError("insert failed")
    ):
        with pytest.raises(RuntimeError):
            orchestrator.create_comment(Actor.from_user(bob), post.public_sqid, {"body": "hi"})

    assert snapshot() == before


def test_failed_mention_rolls_back_the_whole_comment(
    orchestrator: MutationOrchestrator, alice: models.User, bob: models.User, snapshot
):
    post = orchestrator.create_post(Actor.from_user(alice), {"body": "P"})
    before = snapshot()

    with patch(
        "contentgraph.orchestrator.process_mentions", side_effect=WriteError("mention insert failed")
    ):
        with pytest.raises(WriteError):
            orchestrator.create_comment(Actor.from_user(bob), post.public_sqid, {"body": "@alice"})

    assert snapshot() == before


def test_invalid_payload_is_rejected_before_writing(
    orchestrator: MutationOrchestrator, alice: models.User, snapshot
):
    before = snapshot()

    with pytest.raises(ValidationError):
        orchestrator.create_post(Actor.from_user(alice), {"body": "   "})
    with pytest.raises(ValidationError):
        orchestrator.create_post(Actor.from_user(alice), {"body": "x", "visibility": "everyone"})

    assert snapshot() == before


def test_update_post_is_partial_and_picks_up_new_mentions(
    orchestrator: MutationOrchestrator, alice: models.User, bob: models.User, carol: models.User
):
    a = Actor.from_user(alice)
    post = orchestrator.create_post(a, {"body": "hi @bob", "visibility": "followers"})

    updated = orchestrator.update_post(a, post.public_sqid, {"body": "hi @bob and @carol"})

    assert updated.is_edited is True
    assert updated.visibility == "followers"
    assert [n.notification_type for n in _notifications(bob)] == ["mention"]
    assert [n.notification_type for n in _notifications(carol)] == ["mention"]


def test_only_owner_or_admin_can_change_content(
    orchestrator: MutationOrchestrator, make_user, alice: models.User, bob: models.User
):
    admin = make_user("moderator", admin=True)
    post = orchestrator.create_post(Actor.from_user(alice), {"body": "P"})

    with pytest.raises(PermissionDeniedError):
        orchestrator.delete_post(Actor.from_user(bob), post.public_sqid)

    result = orchestrator.delete_post(Actor.from_user(admin), post.public_sqid)
    assert result.is_deleted is True


def test_deleted_post_is_not_found_and_not_deleted_twice(
    orchestrator: MutationOrchestrator, alice: models.User, bob: models.User
):
    a = Actor.from_user(alice)
    post = orchestrator.create_post(a, {"body": "P"})
    orchestrator.delete_post(a, post.public_sqid)

    with pytest.raises(NotFoundError):
        orchestrator.get_post(post.public_sqid)
    with pytest.raises(NotFoundError):
        orchestrator.delete_post(a, post.public_sqid)
    with pytest.raises(NotFoundError):
        orchestrator.create_comment(Actor.from_user(bob), post.public_sqid, {"body": "late"})
    with pytest.raises(NotFoundError):
        orchestrator.toggle_like(Actor.from_user(bob), "post", post.public_sqid)


def test_recover_active_post_conflicts(orchestrator: MutationOrchestrator, alice: models.User):
    a = Actor.from_user(alice)
    post = orchestrator.create_post(a, {"body": "P"})

    with pytest.raises(ConflictError):
        orchestrator.recover_post(a, post.public_sqid)


def test_toggle_like_rejects_unknown_target_type(orchestrator: MutationOrchestrator, alice: models.User):
    with pytest.raises(ValidationError):
        orchestrator.toggle_like(Actor.from_user(alice), "user", alice.public_sqid)


def test_comment_lifecycle(orchestrator: MutationOrchestrator, alice: models.User, bob: models.User):
    post = orchestrator.create_post(Actor.from_user(alice), {"body": "P"})
    b = Actor.from_user(bob)
    comment = orchestrator.create_comment(b, post.public_sqid, {"body": "first"})

    edited = orchestrator.update_comment(b, comment.public_sqid, {"body": "first, edited"})
    liked = orchestrator.toggle_like(Actor.from_user(alice), "comment", comment.public_sqid)

    assert edited.is_edited is True
    assert liked.like_count == 1
    assert [c.body for c in orchestrator.list_comments(post.public_sqid)] == ["first, edited"]

    orchestrator.delete_comment(b, comment.public_sqid)

    assert orchestrator.list_comments(post.public_sqid) == []
    assert orchestrator.get_post(post.public_sqid).comment_count == 0


def test_notification_inbox(orchestrator: MutationOrchestrator, alice: models.User, bob: models.User):
    a = Actor.from_user(alice)
    orchestrator.toggle_follow(Actor.from_user(bob), alice.public_sqid)
    post = orchestrator.create_post(a, {"body": "P"})
    orchestrator.toggle_like(Actor.from_user(bob), "post", post.public_sqid)

    page = orchestrator.list_notifications(a, limit=1)

    assert [n.notification_type for n in page.items] == ["like"]
    assert page.items[0].actor.handle == "bob"
    assert page.next_cursor is not None
    assert orchestrator.unread_count(a) == 2
    assert orchestrator.mark_notifications_read(a, [page.items[0].id]) == 1
    assert orchestrator.mark_all_notifications_read(a) == 1
    assert orchestrator.unread_count(a) == 0
    assert orchestrator.delete_notification(a, page.items[0].id) is True


@pytest.mark.parametrize("target_type", ["post", "comment"])
def test_stale_like_check_hits_unique_index(
    orchestrator: MutationOrchestrator,
    alice: models.User,
    bob: models.User,
    carol: models.User,
    snapshot,
    target_type,
):
    post = orchestrator.create_post(Actor.from_user(alice), {"body": "P"})
    handle = post.public_sqid
    if target_type == "comment":
        comment = orchestrator.create_comment(Actor.from_user(carol), post.public_sqid, {"body": "C"})
        handle = comment.public_sqid
    b = Actor.from_user(bob)
    assert orchestrator.toggle_like(b, target_type, handle).liked is True
    before = snapshot()

    # A racing toggle that has not seen the committed like yet
    with patch("contentgraph.services.likes.find_like", return_value=None):
        with pytest.raises(ConflictError):
            orchestrator.toggle_like(b, target_type, handle)

    after = snapshot()
    assert after == before
    assert after["likes"] == 1
    target_counters = after["post_counters"] if target_type == "post" else after["comment_counters"]
    assert [row[1] for row in target_counters] == [1]
