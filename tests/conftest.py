"""Shared fixtures: an app per test on a throwaway SQLite file, plus helpers
for signing users up and creating posts through the HTTP surface."""

import pytest

from edumedia import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "DATABASE": str(tmp_path / "test.db"),
        "SECRET_KEY": "test-secret-key-that-is-at-least-32-bytes",
        "LOG_LEVEL": "WARNING",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def undo_stack(app):
    return app.extensions["edumedia"]["undo_stack"]


@pytest.fixture
def post_store(app):
    return app.extensions["edumedia"]["post_store"]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def signup(client):
    """Factory: signup("Ada Lovelace") -> (user dict, auth headers)."""

    def _signup(name, email=None, password="secret123"):
        email = email or f"{name.split()[0].lower()}@example.com"
        res = client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})
        assert res.status_code == 201, res.get_json()
        data = res.get_json()["data"]
        return data["user"], bearer(data["token"])

    return _signup


@pytest.fixture
def make_post(client):
    def _make(headers, content):
        res = client.post("/api/posts/create", json={"content": content}, headers=headers)
        assert res.status_code == 201, res.get_json()
        return res.get_json()["data"]["post"]

    return _make
