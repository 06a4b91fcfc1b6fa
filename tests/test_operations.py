"""
Tests for board, section and task CRUD.
"""
import pytest

from kanban_app.errors import NotFound, ValidationError
from kanban_app.snapshot import check_invariants


def current(store):
    return store.read_snapshot()[0]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Boards
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_board_gets_default_sections(boards, store):
    board = boards.create_board("  Work  ")
    snapshot = current(store)
    assert board["name"] == "Work"
    assert [snapshot["sections"][s]["name"] for s in board["sectionOrder"]] == ["To Do", "Doing", "Done"]
    assert all(snapshot["sections"][s]["boardId"] == board["id"] for s in board["sectionOrder"])


@pytest.mark.parametrize("name", [None, "", "   ", 7])
def test_create_board_requires_name(boards, name):
    with pytest.raises(ValidationError):
        boards.create_board(name)


def test_rename_board(boards, store, board):
    board_id, _ = board
    boards.rename_board(board_id, "Home")
    assert current(store)["boards"][board_id]["name"] == "Home"


def test_rename_unknown_board(boards):
    with pytest.raises(NotFound):
        boards.rename_board("nosuchbrd", "x")


def test_delete_board_cascades_and_moves_active(boards, store, board, add_tasks):
    board_id, (todo, _, _) = board
    add_tasks(todo, "a", "b")
    other = boards.create_board("Work")

    boards.delete_board(board_id)

    snapshot = current(store)
    assert board_id not in snapshot["boards"]
    assert snapshot["tasks"] == {}
    assert all(s["boardId"] == other["id"] for s in snapshot["sections"].values())
    assert snapshot["activeBoard"] == other["id"]
    assert check_invariants(snapshot) == []


def test_delete_last_board_clears_active(boards, store, board):
    boards.delete_board(board[0])
    snapshot = current(store)
    assert snapshot["boards"] == {}
    assert snapshot["activeBoard"] is None


def test_set_active_board(boards, store):
    other = boards.create_board("Work")
    assert boards.set_active_board(other["id"]) == other["id"]
    assert current(store)["activeBoard"] == other["id"]


@pytest.mark.parametrize("board_id", ["nosuchbrd", None, 3])
def test_set_active_board_unknown(boards, board_id):
    with pytest.raises(NotFound):
        boards.set_active_board(board_id)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sections
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_section_appends_to_order(boards, store, board):
    board_id, sections = board
    section = boards.create_section(board_id, "Blocked")
    assert current(store)["boards"][board_id]["sectionOrder"] == sections + [section["id"]]
    assert section["taskIds"] == []


def test_create_section_on_unknown_board(boards):
    with pytest.raises(NotFound):
        boards.create_section("nosuchbrd", "Blocked")


def test_rename_section_checks_board(boards, board):
    _, (todo, _, _) = board
    other = boards.create_board("Work")
    with pytest.raises(NotFound):
        boards.rename_section(other["id"], todo, "x")
    assert boards.rename_section(board[0], todo, "Backlog")["name"] == "Backlog"


def test_delete_section_drops_its_tasks(boards, store, board, add_tasks):
    board_id, (todo, doing, done) = board
    add_tasks(todo, "a", "b")
    (kept,) = add_tasks(doing, "c")

    boards.delete_section(board_id, todo)

    snapshot = current(store)
    assert list(snapshot["tasks"]) == [kept]
    assert snapshot["boards"][board_id]["sectionOrder"] == [doing, done]
    assert check_invariants(snapshot) == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tasks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_task_defaults(boards, board):
    board_id, (todo, _, _) = board
    task = boards.create_task(board_id, todo, {"title": " Write report "})
    assert task["title"] == "Write report"
    assert task["priority"] == "medium"
    assert task["status"] == "active"
    assert task["description"] == ""
    assert task["dueDate"] is None and task["startDate"] is None
    assert task["createdAt"] == task["updatedAt"]
    assert task["sectionId"] == todo and task["boardId"] == board_id


def test_create_task_unknown_priority_falls_back(boards, board):
    board_id, (todo, _, _) = board
    assert boards.create_task(board_id, todo, {"title": "x", "priority": "asap"})["priority"] == "medium"
    assert boards.create_task(board_id, todo, {"title": "y", "priority": "urgent"})["priority"] == "urgent"


def test_create_task_appends(boards, store, board, add_tasks):
    board_id, (todo, _, _) = board
    first = add_tasks(todo, "a", "b")
    task = boards.create_task(board_id, todo, {"title": "c"})
    assert current(store)["sections"][todo]["taskIds"] == first + [task["id"]]


@pytest.mark.parametrize("data", [{}, {"title": ""}, {"title": "x", "dueDate": "tomorrow"},
                                  {"title": "x", "startDate": 5}, {"title": "x", "description": 1}])
def test_create_task_validation(boards, board, data):
    board_id, (todo, _, _) = board
    with pytest.raises(ValidationError):
        boards.create_task(board_id, todo, data)


def test_create_task_in_section_of_other_board(boards, board):
    _, (todo, _, _) = board
    other = boards.create_board("Work")
    with pytest.raises(NotFound):
        boards.create_task(other["id"], todo, {"title": "x"})


def test_update_task_fields(boards, board, add_tasks):
    _, (todo, _, _) = board
    (a,) = add_tasks(todo, "a")
    task = boards.update_task(a, {"title": "renamed", "dueDate": "2026-03-01", "tags": ["home"],
                                  "priority": "high"})
    assert task["title"] == "renamed"
    assert task["dueDate"] == "2026-03-01"
    assert task["tags"] == ["home"]
    assert task["priority"] == "high"


def test_update_task_unknown_priority_keeps_current(boards, board, add_tasks):
    _, (todo, _, _) = board
    (a,) = add_tasks(todo, "a")
    boards.update_task(a, {"priority": "low"})
    assert boards.update_task(a, {"priority": "whenever"})["priority"] == "low"


def test_update_task_cannot_relocate(boards, store, board, add_tasks):
    _, (todo, doing, _) = board
    (a,) = add_tasks(todo, "a")
    with pytest.raises(ValidationError):
        boards.update_task(a, {"sectionId": doing})
    assert boards.update_task(a, {"sectionId": todo, "title": "same"})["sectionId"] == todo


def test_update_task_rejects_unknown_field(boards, board, add_tasks):
    _, (todo, _, _) = board
    (a,) = add_tasks(todo, "a")
    with pytest.raises(ValidationError):
        boards.update_task(a, {"colour": "red"})


def test_update_task_scoped_to_section(boards, board, add_tasks):
    board_id, (todo, doing, _) = board
    (a,) = add_tasks(todo, "a")
    with pytest.raises(NotFound):
        boards.update_task(a, {"title": "x"}, section_id=doing, board_id=board_id)


def test_delete_task(boards, store, board, add_tasks):
    board_id, (todo, _, _) = board
    a, b = add_tasks(todo, "a", "b")
    boards.delete_task(a, section_id=todo, board_id=board_id)
    boards.delete_task(b)
    snapshot = current(store)
    assert snapshot["tasks"] == {}
    assert snapshot["sections"][todo]["taskIds"] == []


def test_delete_task_from_wrong_section(boards, board, add_tasks):
    board_id, (todo, doing, _) = board
    (a,) = add_tasks(todo, "a")
    with pytest.raises(NotFound):
        boards.delete_task(a, section_id=doing, board_id=board_id)
