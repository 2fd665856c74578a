import logging
import sqlite3

import pytest

from edumedia import create_app, store as store_module
from edumedia.db import execute_db
from edumedia.errors import StoreError


def edit(client, headers, post_id, content):
    return client.put("/api/posts/edit", json={"post_id": post_id, "content": content}, headers=headers)


def delete(client, headers, post_id):
    return client.delete("/api/posts/delete", json={"post_id": post_id}, headers=headers)


def undo(client, headers):
    return client.post("/api/posts/undo", headers=headers)


def status(client, headers):
    res = client.get("/api/posts/undo-status", headers=headers)
    assert res.status_code == 200
    return res.get_json()["data"]


def my_posts(client, headers):
    return client.get("/api/posts/my-posts", headers=headers).get_json()["data"]["posts"]


def fail(message):
    def _raise(*args, **kwargs):
        raise StoreError(message, error="database is locked")
    return _raise


def test_edit_status_undo_scenario(client, signup, make_post):
    user, headers = signup("Una")
    post = make_post(headers, "draft")

    res = edit(client, headers, post["id"], "  final  ")
    assert res.status_code == 200
    body = res.get_json()
    assert body["success"] is True
    assert body["data"]["post"]["content"] == "final"
    assert body["data"]["undo_available"] is True

    st = status(client, headers)
    assert st["undo_available"] is True
    assert st["undo_count"] == 1
    assert st["last_action"]["kind"] == "EDIT"
    assert st["last_action"]["recorded_at"]

    res = undo(client, headers)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["action"] == "UNDO_EDIT"
    assert data["post"]["post_id"] == post["id"]
    assert data["post"]["content"] == "draft"
    assert data["remaining_undos"] == 0

    assert my_posts(client, headers)[0]["content"] == "draft"
    st = status(client, headers)
    assert st == {"undo_available": False, "undo_count": 0, "last_action": None}


def test_remaining_undos_matches_size_before_edit(client, signup, make_post):
    _, headers = signup("Una")
    post = make_post(headers, "A")
    edit(client, headers, post["id"], "B")
    edit(client, headers, post["id"], "C")

    data = undo(client, headers).get_json()["data"]
    assert data["post"]["content"] == "B"
    assert data["remaining_undos"] == 1

    data = undo(client, headers).get_json()["data"]
    assert data["post"]["content"] == "A"
    assert data["remaining_undos"] == 0


def test_delete_undo_preserves_id_and_requeries_counts(app, client, signup, make_post, post_store):
    _, owner = signup("Una")
    post = make_post(owner, "bye")
    for name in ("Ben", "Cat", "Dan"):
        _, headers = signup(name)
        assert client.post("/api/posts/like", json={"post_id": post["id"]}, headers=headers).status_code == 200
    client.post("/api/comments/add", json={"post_id": post["id"], "text": "nice"}, headers=owner)

    res = delete(client, owner, post["id"])
    assert res.status_code == 200
    assert res.get_json()["data"] == {"deleted_post_id": post["id"], "undo_available": True}
    assert my_posts(client, owner) == []
    assert status(client, owner)["last_action"]["kind"] == "DELETE"

    res = undo(client, owner)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["action"] == "UNDO_DELETE"
    assert data["post"]["post_id"] == post["id"]
    assert data["post"]["content"] == "bye"
    assert data["post"]["timestamp"] == post["created_at"]
    # likes and comments were removed with the post; counts are live, not snapshotted
    assert data["post"]["likes_count"] == 0
    assert data["post"]["comments_count"] == 0
    assert data["remaining_undos"] == 0

    with app.app_context():
        restored = post_store.fetch(post["id"])
    assert restored["likes"] == 3
    assert restored["content"] == "bye"


def test_undo_on_empty_stack(client, signup, make_post):
    _, headers = signup("Una")
    post = make_post(headers, "unchanged")

    res = undo(client, headers)
    assert res.status_code == 400
    assert res.get_json() == {"success": False, "message": "No actions to undo"}
    assert my_posts(client, headers)[0]["content"] == "unchanged"


@pytest.mark.parametrize("action", ["edit", "delete"])
def test_foreign_post_is_not_found_and_nothing_is_recorded(client, signup, make_post, undo_stack, action):
    owner, owner_headers = signup("Una")
    intruder, intruder_headers = signup("Vic")
    post = make_post(owner_headers, "mine")

    if action == "edit":
        res = edit(client, intruder_headers, post["id"], "hijacked")
        missing = edit(client, intruder_headers, 9999, "hijacked")
    else:
        res = delete(client, intruder_headers, post["id"])
        missing = delete(client, intruder_headers, 9999)

    assert res.status_code == 404
    assert res.get_json()["success"] is False
    assert missing.status_code == 404
    assert missing.get_json()["message"] == res.get_json()["message"]
    assert undo_stack.size(owner["id"]) == 0
    assert undo_stack.size(intruder["id"]) == 0
    assert my_posts(client, owner_headers)[0]["content"] == "mine"


def test_edit_validation(client, signup, make_post, undo_stack):
    user, headers = signup("Una")
    post = make_post(headers, "text")

    assert edit(client, headers, post["id"], "   ").status_code == 400
    assert client.put("/api/posts/edit", json={"post_id": post["id"]}, headers=headers).status_code == 400
    assert client.put("/api/posts/edit", json={"content": "x"}, headers=headers).status_code == 400
    assert edit(client, headers, "abc", "x").status_code == 400
    assert delete(client, headers, None).status_code == 400
    # ids SQLite cannot store, and digit-like strings int() rejects
    for bad_id in (2 ** 70, 2 ** 63, "99999999999999999999999", "\u00b2", "\u0663", -1, 0, 1.5):
        res = edit(client, headers, bad_id, "x")
        assert res.status_code == 400, bad_id
        assert res.get_json()["success"] is False
        assert delete(client, headers, bad_id).status_code == 400, bad_id
    assert undo_stack.size(user["id"]) == 0


def test_numeric_string_post_id_is_accepted(client, signup, make_post):
    _, headers = signup("Una")
    post = make_post(headers, "text")
    assert edit(client, headers, str(post["id"]), "new").status_code == 200


def test_failed_undo_edit_pushes_action_back(client, signup, make_post, undo_stack, post_store, monkeypatch):
    user, headers = signup("Una")
    post = make_post(headers, "A")
    edit(client, headers, post["id"], "B")
    top = undo_stack.peek(user["id"])

    monkeypatch.setattr(post_store, "update_content", fail("Failed to update post"))
    res = undo(client, headers)
    assert res.status_code == 500
    body = res.get_json()
    assert body["success"] is False
    assert body["message"] == "Failed to undo edit"
    assert body["error"] == "database is locked"
    assert undo_stack.size(user["id"]) == 1
    assert undo_stack.peek(user["id"]) is top

    monkeypatch.undo()
    res = undo(client, headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["post"]["content"] == "A"


def test_failed_undo_delete_pushes_action_back(app, client, signup, make_post, undo_stack):
    user, headers = signup("Una")
    post = make_post(headers, "hello")
    delete(client, headers, post["id"])

    # something else has taken the id in the meantime
    with app.app_context():
        execute_db("INSERT INTO posts (id, author_id, content) VALUES (?, ?, ?)", (post["id"], user["id"], "squatter"))

    res = undo(client, headers)
    assert res.status_code == 500
    assert res.get_json()["message"] == "Failed to undo delete"
    assert undo_stack.size(user["id"]) == 1

    with app.app_context():
        execute_db("DELETE FROM posts WHERE id = ?", (post["id"],))

    res = undo(client, headers)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["post"]["post_id"] == post["id"]
    assert data["post"]["content"] == "hello"


def test_store_failure_during_edit_leaves_stale_action(client, signup, make_post, undo_stack, post_store, monkeypatch):
    user, headers = signup("Una")
    post = make_post(headers, "A")
    monkeypatch.setattr(post_store, "update_content", fail("Failed to update post"))

    res = edit(client, headers, post["id"], "B")
    assert res.status_code == 500
    assert res.get_json()["message"] == "Failed to update post"
    assert undo_stack.size(user["id"]) == 1


def test_dependent_row_cleanup_failure_is_not_fatal(client, signup, make_post, monkeypatch, caplog):
    _, headers = signup("Una")
    post = make_post(headers, "no likes here")
    real_execute = store_module.execute_db

    def flaky_execute(query, args=()):
        if query.startswith("DELETE FROM likes"):
            raise sqlite3.OperationalError("likes table unavailable")
        return real_execute(query, args)

    monkeypatch.setattr(store_module, "execute_db", flaky_execute)
    with caplog.at_level(logging.ERROR, logger="edumedia.store"):
        res = delete(client, headers, post["id"])

    assert res.status_code == 200
    assert my_posts(client, headers) == []
    assert "Error deleting likes" in caplog.text


def test_unknown_action_is_a_client_error(client, signup, undo_stack):
    user, headers = signup("Una")
    undo_stack.push(user["id"], object())

    res = undo(client, headers)
    assert res.status_code == 400
    assert res.get_json() == {"success": False, "message": "Unknown action type"}
    assert undo_stack.size(user["id"]) == 0


def test_history_bound_is_configurable(tmp_path):
    app = create_app({"TESTING": True, "DATABASE": str(tmp_path / "bound.db"), "UNDO_LIMIT": 3})
    client = app.test_client()
    res = client.post("/api/auth/signup", json={"name": "Una", "email": "una@example.com", "password": "secret123"})
    headers = {"Authorization": "Bearer " + res.get_json()["data"]["token"]}
    post = client.post("/api/posts/create", json={"content": "v0"}, headers=headers).get_json()["data"]["post"]

    for n in range(1, 5):
        edit(client, headers, post["id"], f"v{n}")
    assert status(client, headers)["undo_count"] == 3

    for _ in range(3):
        assert undo(client, headers).status_code == 200
    assert my_posts(client, headers)[0]["content"] == "v1"
    assert undo(client, headers).status_code == 400


def test_histories_are_per_user(client, signup, make_post):
    _, una = signup("Una")
    _, vic = signup("Vic")
    post = make_post(una, "A")
    edit(client, una, post["id"], "B")

    assert status(client, vic)["undo_count"] == 0
    assert undo(client, vic).status_code == 400
    assert status(client, una)["undo_count"] == 1


@pytest.mark.parametrize("method,path", [
    ("put", "/api/posts/edit"),
    ("delete", "/api/posts/delete"),
    ("post", "/api/posts/undo"),
    ("get", "/api/posts/undo-status"),
])
def test_undo_endpoints_require_auth(client, method, path):
    res = getattr(client, method)(path)
    assert res.status_code == 401
    assert res.get_json()["message"] == "Access token required"

    res = getattr(client, method)(path, headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 403
    assert res.get_json()["success"] is False


def test_post_row_delete_failure_is_fatal_and_keeps_action(client, signup, make_post, undo_stack, monkeypatch):
    user, headers = signup("Una")
    post = make_post(headers, "stays put")
    real_execute = store_module.execute_db

    def flaky_execute(query, args=()):
        if query.startswith("DELETE FROM posts"):
            raise sqlite3.OperationalError("database is locked")
        return real_execute(query, args)

    monkeypatch.setattr(store_module, "execute_db", flaky_execute)
    res = delete(client, headers, post["id"])

    assert res.status_code == 500
    body = res.get_json()
    assert body["success"] is False
    assert body["message"] == "Failed to delete post"
    assert body["error"] == "database is locked"
    assert undo_stack.size(user["id"]) == 1
    assert undo_stack.peek(user["id"]).kind == "DELETE"

    monkeypatch.undo()
    assert [p["content"] for p in my_posts(client, headers)] == ["stays put"]
