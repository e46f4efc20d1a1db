"""Test the HTTP surface: routing, auth and error mapping."""

import asyncio
from unittest.mock import patch

from fastapi.testclient import TestClient

from contentgraph import models, settings
from contentgraph.services.reaper import ReaperService


def _create_post(client: TestClient, headers: dict, body: str = "hello") -> dict:
    response = client.post("/post", json={"body": body}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_mutations_require_auth(client: TestClient):
    response = client.post("/post", json={"body": "hello"})

    assert response.status_code == 401


def test_invalid_token(client: TestClient):
    response = client.post(
        "/post", json={"body": "hello"}, headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 401


def test_create_and_get_post(client: TestClient, alice: models.User, auth_headers):
    post = _create_post(client, auth_headers(alice), "hello world")

    assert post["owner"]["handle"] == "alice"
    assert post["like_count"] == 0
    assert post["visibility"] == "public"

    response = client.get(f"/post/{post['public_sqid']}")
    assert response.status_code == 200
    assert response.json()["body"] == "hello world"


def test_blank_body_is_rejected(client: TestClient, alice: models.User, auth_headers):
    response = client.post("/post", json={"body": "   "}, headers=auth_headers(alice))

    assert response.status_code == 422


def test_like_toggle_round_trip(
    client: TestClient, alice: models.User, bob: models.User, auth_headers
):
    post = _create_post(client, auth_headers(alice))
    url = f"/post/{post['public_sqid']}/like"

    first = client.post(url, headers=auth_headers(bob))
    second = client.post(url, headers=auth_headers(bob))

    assert first.json() == {"liked": True, "like_count": 1}
    assert second.json() == {"liked": False, "like_count": 0}

    count = client.get("/notifications/unread-count", headers=auth_headers(alice))
    assert count.json() == {"count": 1}


def test_error_mapping(client: TestClient, alice: models.User, bob: models.User, auth_headers):
    post = _create_post(client, auth_headers(alice))

    missing = client.get("/post/zzzzzz")
    forbidden = client.delete(f"/post/{post['public_sqid']}", headers=auth_headers(bob))
    conflict = client.post(f"/post/{post['public_sqid']}/recover", headers=auth_headers(alice))
    self_follow = client.post(f"/user/{alice.public_sqid}/follow", headers=auth_headers(alice))

    assert missing.status_code == 404
    assert missing.json()["title"] == "Not found"
    assert forbidden.status_code == 403
    assert conflict.status_code == 409
    assert self_follow.status_code == 422
    assert self_follow.json()["detail"] == "You cannot follow yourself."


def test_comments_and_soft_delete(
    client: TestClient, alice: models.User, bob: models.User, auth_headers
):
    post = _create_post(client, auth_headers(alice))
    sqid = post["public_sqid"]

    created = client.post(f"/post/{sqid}/comments", json={"body": "nice"}, headers=auth_headers(bob))
    assert created.status_code == 201

    deleted = client.delete(f"/post/{sqid}", headers=auth_headers(alice))
    assert deleted.json() == {"public_sqid": sqid, "is_deleted": True, "comments_affected": 1}
    assert client.get(f"/post/{sqid}/comments").status_code == 404

    recovered = client.post(f"/post/{sqid}/recover", headers=auth_headers(alice))
    assert recovered.json()["is_deleted"] is False

    comments = client.get(f"/post/{sqid}/comments").json()
    assert [(c["body"], c["post_deleted"]) for c in comments] == [("nice", False)]


def test_follow_and_notifications(
    client: TestClient, alice: models.User, bob: models.User, auth_headers
):
    response = client.post(f"/user/{alice.public_sqid}/follow", headers=auth_headers(bob))
    assert response.json() == {"following": True, "followers_count": 1}

    page = client.get("/notifications", headers=auth_headers(alice)).json()
    assert [n["notification_type"] for n in page["items"]] == ["follow"]
    assert page["items"][0]["actor"]["handle"] == "bob"
    assert page["next_cursor"] is None

    notification_id = page["items"][0]["id"]
    marked = client.post(
        "/notifications/mark-read", json={"ids": [notification_id]}, headers=auth_headers(alice)
    )
    assert marked.json() == {"count": 1}

    assert client.delete(f"/notifications/{notification_id}", headers=auth_headers(bob)).status_code == 404
    assert client.delete(f"/notifications/{notification_id}", headers=auth_headers(alice)).status_code == 204


def test_deleted_user_cannot_authenticate(
    client: TestClient, make_user, bob: models.User, auth_headers
):
    headers = auth_headers(bob)
    assert client.delete("/user/me", headers=headers).status_code == 204

    assert client.post("/post", json={"body": "ghost"}, headers=headers).status_code == 401

    admin = make_user("root", admin=True)
    recovered = client.post("/user/recover", json={"handle": "bob"}, headers=auth_headers(admin))
    assert recovered.status_code == 200
    assert recovered.json()["handle"] == "bob"


def test_authenticated_requests_trigger_reaper_check(
    client: TestClient, monkeypatch, alice: models.User, auth_headers
):
    monkeypatch.setattr(settings, "OPPORTUNISTIC_REAPER", True)

    with patch.object(ReaperService, "run_if_due", return_value=None) as run_if_due:
        _create_post(client, auth_headers(alice))

    run_if_due.assert_called_once_with()


def test_reaper_check_runs_off_the_event_loop(
    client: TestClient, monkeypatch, alice: models.User, auth_headers
):
    monkeypatch.setattr(settings, "OPPORTUNISTIC_REAPER", True)
    seen = []

    def record():
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            seen.append("worker thread")
        else:
            seen.append("event loop")

    with patch.object(ReaperService, "run_if_due", side_effect=record):
        _create_post(client, auth_headers(alice))

    assert seen == ["worker thread"]


def test_reaper_failure_does_not_fail_the_request(
    client: TestClient, monkeypatch, alice: models.User, auth_headers
):
    monkeypatch.setattr(settings, "OPPORTUNISTIC_REAPER", True)

    with patch.object(ReaperService, "run_if_due", side_effect=RuntimeError("db down")):
        _create_post(client, auth_headers(alice))


def test_social_reads(
    client: TestClient, alice: models.User, bob: models.User, carol: models.User, auth_headers
):
    sqid = _create_post(client, auth_headers(alice), "hello @bob")["public_sqid"]
    client.post(f"/post/{sqid}/like", headers=auth_headers(bob))
    client.post(f"/post/{sqid}/like", headers=auth_headers(carol))
    client.post(f"/user/{alice.public_sqid}/follow", headers=auth_headers(bob))

    listed = client.get(f"/post/{sqid}/likes").json()
    assert listed["like_count"] == 2
    assert [u["handle"] for u in listed["users"]] == ["carol", "bob"]

    status = client.get(f"/post/{sqid}/like", headers=auth_headers(bob)).json()
    assert status == {"liked": True, "like_count": 2}
    status = client.get(f"/post/{sqid}/like", headers=auth_headers(alice)).json()
    assert status == {"liked": False, "like_count": 2}

    followers = client.get(f"/user/{alice.public_sqid}/followers").json()
    assert [u["handle"] for u in followers] == ["bob"]
    following = client.get(f"/user/{bob.public_sqid}/following").json()
    assert [u["handle"] for u in following] == ["alice"]
    follow = client.get(f"/user/{alice.public_sqid}/follow", headers=auth_headers(bob)).json()
    assert follow == {"following": True, "followers_count": 1}

    mentions = client.get("/user/me/mentions", headers=auth_headers(bob)).json()
    assert [(m["content_type"], m["content_sqid"]) for m in mentions] == [("post", sqid)]
    assert mentions[0]["from_user"]["handle"] == "alice"


def test_comment_likes_listing(
    client: TestClient, alice: models.User, bob: models.User, auth_headers
):
    sqid = _create_post(client, auth_headers(alice))["public_sqid"]
    comment = client.post(
        f"/post/{sqid}/comments", json={"body": "nice"}, headers=auth_headers(bob)
    ).json()
    client.post(f"/comment/{comment['public_sqid']}/like", headers=auth_headers(alice))

    listed = client.get(f"/comment/{comment['public_sqid']}/likes").json()
    assert listed["like_count"] == 1
    assert [u["handle"] for u in listed["users"]] == ["alice"]

    client.delete(f"/post/{sqid}", headers=auth_headers(alice))
    assert client.get(f"/comment/{comment['public_sqid']}/likes").status_code == 404
    assert client.get(f"/post/{sqid}/likes").status_code == 404
