"""Shared fixtures: a Flask app on a throwaway SQLite file and helpers around it."""
import json
from urllib.parse import urlsplit

import pytest
import requests

from kanban_app import create_app


@pytest.fixture
def make_app(tmp_path):
    def factory(**overrides):
        config = {
            "KANBAN_DB": f"sqlite:///{tmp_path / 'kanban.db'}",
            "KANBAN_PIN": "",
            "KANBAN_SECRET_KEY": "test-secret",
            "KANBAN_IMPORT_FILE": "",
            "KANBAN_DEBUG": False,
        }
        config.update(overrides)
        app = create_app(config)
        app.config["TESTING"] = True
        return app

    return factory


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions["kanban"]["store"]


@pytest.fixture
def boards(app):
    return app.extensions["kanban"]["boards"]


@pytest.fixture
def moves(app):
    return app.extensions["kanban"]["moves"]


@pytest.fixture
def board(store):
    """The seeded 'Personal' board as (board_id, [to_do, doing, done])."""
    snapshot, _ = store.read_snapshot()
    board_id = snapshot["activeBoard"]
    return board_id, list(snapshot["boards"][board_id]["sectionOrder"])


@pytest.fixture
def add_tasks(boards, board):
    def add(section_id, *titles):
        return [boards.create_task(board[0], section_id, {"title": title})["id"] for title in titles]

    return add


class FlaskSession:
    """A requests-compatible session that routes into a Flask test client."""

    def __init__(self, client):
        self.client = client
        self.calls = []
        self.fail_with = None

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append((method, urlsplit(url).path, json))
        if self.fail_with is not None:
            raise self.fail_with
        result = self.client.open(urlsplit(url).path, method=method, json=json, headers=headers or {})
        response = requests.Response()
        response.status_code = result.status_code
        response.reason = result.status.split(" ", 1)[-1]
        response.url = url
        response._content = result.get_data()
        response.headers.update({"Content-Type": result.content_type or ""})
        return response


@pytest.fixture
def flask_session(client):
    return FlaskSession(client)


@pytest.fixture
def canned():
    """Build a requests.Response with a fixed status and body."""
    def build(status, body):
        response = requests.Response()
        response.status_code = status
        response.reason = "OK" if status < 400 else "Error"
        response._content = body if isinstance(body, bytes) else json.dumps(body).encode()
        return response

    return build


@pytest.fixture
def session_for():
    """Build a FlaskSession for an app other than the default one."""
    return lambda app: FlaskSession(app.test_client())
