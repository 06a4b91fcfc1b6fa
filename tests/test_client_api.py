"""
Tests for the HTTP transport used by the client.
"""
import pytest

from kanban_app.client.api import ApiError, AuthRequired, KanbanApi, MalformedResponse


class CannedSession:
    def __init__(self, response):
        self.response = response
        self.sent = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.sent.append({"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout})
        return self.response


def test_round_trip_through_app(flask_session, board):
    api = KanbanApi("http://kanban.local/", session=flask_session)
    board_id, (todo, doing, _) = board
    task = api.create_task(board_id, todo, "Ship it", priority="urgent")
    assert task["priority"] == "urgent"

    result = api.move_task(board_id, task["id"], todo, doing, 0)

    assert result["sections"][doing]["taskIds"] == [task["id"]]
    assert api.load_snapshot()["tasks"][task["id"]]["sectionId"] == doing
    assert flask_session.calls[-1][1] == "/api/boards"


def test_error_body_becomes_api_error(flask_session):
    api = KanbanApi("http://kanban.local", session=flask_session)
    with pytest.raises(ApiError) as excinfo:
        api.rename_board("nosuchbrd", "x")
    assert excinfo.value.status == 404
    assert excinfo.value.message == "Board not found"


def test_pin_is_sent_as_header(canned):
    session = CannedSession(canned(200, {"success": True}))
    api = KanbanApi("http://kanban.local", session=session, timeout=2.5)
    api.verify_pin("2468")
    api.delete_task("t1")
    assert session.sent[0]["json"] == {"pin": "2468"}
    assert session.sent[1]["headers"] == {"X-Kanban-Pin": "2468"}
    assert session.sent[1]["timeout"] == 2.5


def test_unauthorized_raises_auth_required(canned):
    api = KanbanApi("http://kanban.local", session=CannedSession(canned(401, {"error": "Authentication required"})))
    with pytest.raises(AuthRequired):
        api.load_snapshot()


@pytest.mark.parametrize("body", [b"<html>oops</html>", {"boards": []}, {"boards": {}, "sections": {}}])
def test_malformed_snapshot(canned, body):
    api = KanbanApi("http://kanban.local", session=CannedSession(canned(200, body)))
    with pytest.raises(MalformedResponse):
        api.load_snapshot()


def test_section_move_must_be_acknowledged(canned):
    api = KanbanApi("http://kanban.local", session=CannedSession(canned(200, {"success": False})))
    with pytest.raises(MalformedResponse):
        api.move_section("b", "s", 0)


def test_section_move_without_order(canned):
    api = KanbanApi("http://kanban.local", session=CannedSession(canned(200, {"success": True})))
    assert api.move_section("b", "s", 0) is None


def test_task_move_result_must_name_the_task(canned):
    body = {"success": True, "task": {"id": "other"}, "sections": {"s2": {}}}
    api = KanbanApi("http://kanban.local", session=CannedSession(canned(200, body)))
    with pytest.raises(MalformedResponse):
        api.move_task("b", "t1", "s1", "s2", 0)
