"""Board, section and task CRUD. Each call is one store mutation."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .errors import NotFound, ValidationError
from .snapshot import (
    DEFAULT_STATUS,
    Board,
    Section,
    Snapshot,
    Task,
    add_board,
    add_section,
    coerce_priority,
    now_iso,
    parse_date,
    require_text,
)

logger = logging.getLogger(__name__)

EDITABLE_TASK_FIELDS = {"title", "description", "status", "priority", "dueDate", "startDate", "tags", "assignee"}
# Accepted in an update body only when unchanged; relocation goes through the move service.
FIXED_TASK_FIELDS = {"id", "sectionId", "boardId", "createdAt", "updatedAt"}


# Snapshot lookups
# ────────────────────────────────────────────────────────────────────────────────
def get_board(snapshot: Snapshot, board_id: str) -> Board:
    board = snapshot["boards"].get(board_id)
    if board is None:
        raise NotFound("Board not found")
    return board


def get_section(snapshot: Snapshot, section_id: str, board_id: Optional[str] = None) -> Section:
    section = snapshot["sections"].get(section_id)
    if section is None or (board_id is not None and section["boardId"] != board_id):
        raise NotFound("Section not found")
    return section


def get_task(snapshot: Snapshot, task_id: str, section_id: Optional[str] = None,
             board_id: Optional[str] = None) -> Task:
    task = snapshot["tasks"].get(task_id)
    if (task is None
            or (section_id is not None and task["sectionId"] != section_id)
            or (board_id is not None and task["boardId"] != board_id)):
        raise NotFound("Task not found")
    return task


def delete_section_from(snapshot: Snapshot, section_id: str) -> None:
    """Drop a section, its tasks and its slot in the board's sectionOrder."""
    section = snapshot["sections"].pop(section_id)
    for task_id in section["taskIds"]:
        snapshot["tasks"].pop(task_id, None)
    board = snapshot["boards"].get(section["boardId"])
    if board is not None and section_id in board["sectionOrder"]:
        board["sectionOrder"].remove(section_id)


def apply_task_updates(task: Task, updates: Dict[str, Any]) -> Task:
    changes: Dict[str, Any] = {}
    for key, value in updates.items():
        if key in FIXED_TASK_FIELDS:
            if value != task.get(key):
                raise ValidationError(f"{key} cannot be changed here; use the move endpoint")
        elif key not in EDITABLE_TASK_FIELDS:
            raise ValidationError(f"Unknown task field: {key}")
        elif key == "title":
            changes["title"] = require_text(updates, "title", "Task title")
        elif key == "priority":
            changes["priority"] = coerce_priority(value, fallback=task["priority"])
        elif key in ("dueDate", "startDate"):
            changes[key] = parse_date(value, key)
        elif key == "status":
            changes["status"] = require_text(updates, "status", "Task status")
        elif key == "tags":
            if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
                raise ValidationError("tags must be a list of strings")
            changes["tags"] = value
        elif key == "description":
            changes["description"] = value if isinstance(value, str) else ""
        else:
            changes[key] = value
    task.update(changes)
    task["updatedAt"] = now_iso()
    return task


class BoardService:
    def __init__(self, store):
        self.store = store

    def snapshot(self) -> Snapshot:
        snapshot, _ = self.store.read_snapshot()
        return snapshot

    # Boards
    def create_board(self, name: Any) -> Board:
        name = require_text({"name": name}, "name", "Board name")

        def mutation(snapshot: Snapshot) -> Board:
            board = add_board(snapshot, name, lambda: self.store.new_id(snapshot))
            if snapshot["activeBoard"] is None:
                snapshot["activeBoard"] = board["id"]
            return board

        board = self.store.mutate(mutation)
        logger.info(f"Created board {board['id']} '{name}'")
        return board

    def rename_board(self, board_id: str, name: Any) -> Board:
        name = require_text({"name": name}, "name", "Board name")

        def mutation(snapshot: Snapshot) -> Board:
            board = get_board(snapshot, board_id)
            board["name"] = name
            return board

        return self.store.mutate(mutation)

    def delete_board(self, board_id: str) -> None:
        def mutation(snapshot: Snapshot) -> None:
            board = get_board(snapshot, board_id)
            owned = [s_id for s_id, s in snapshot["sections"].items() if s["boardId"] == board_id]
            for section_id in owned:
                delete_section_from(snapshot, section_id)
            del snapshot["boards"][board["id"]]
            if snapshot["activeBoard"] == board_id:
                snapshot["activeBoard"] = next(iter(snapshot["boards"]), None)

        self.store.mutate(mutation)
        logger.info(f"Deleted board {board_id}")

    def set_active_board(self, board_id: Any) -> str:
        def mutation(snapshot: Snapshot) -> str:
            if not isinstance(board_id, str):
                raise NotFound("Board not found")
            snapshot["activeBoard"] = get_board(snapshot, board_id)["id"]
            return board_id

        return self.store.mutate(mutation)

    # Sections
    def create_section(self, board_id: str, name: Any) -> Section:
        name = require_text({"name": name}, "name", "Section name")

        def mutation(snapshot: Snapshot) -> Section:
            get_board(snapshot, board_id)
            return add_section(snapshot, board_id, name, lambda: self.store.new_id(snapshot))

        section = self.store.mutate(mutation)
        logger.info(f"Created section {section['id']} '{name}' on board {board_id}")
        return section

    def rename_section(self, board_id: str, section_id: str, name: Any) -> Section:
        name = require_text({"name": name}, "name", "Section name")

        def mutation(snapshot: Snapshot) -> Section:
            section = get_section(snapshot, section_id, board_id)
            section["name"] = name
            return section

        return self.store.mutate(mutation)

    def delete_section(self, board_id: str, section_id: str) -> None:
        def mutation(snapshot: Snapshot) -> None:
            get_board(snapshot, board_id)
            get_section(snapshot, section_id, board_id)
            delete_section_from(snapshot, section_id)

        self.store.mutate(mutation)
        logger.info(f"Deleted section {section_id} from board {board_id}")

    # Tasks
    def create_task(self, board_id: str, section_id: str, data: Dict[str, Any]) -> Task:
        title = require_text(data, "title", "Task title")
        description = data.get("description") or ""
        if not isinstance(description, str):
            raise ValidationError("description must be a string")
        due_date = parse_date(data.get("dueDate"), "dueDate")
        start_date = parse_date(data.get("startDate"), "startDate")
        status = data.get("status") or DEFAULT_STATUS
        if not isinstance(status, str):
            raise ValidationError("status must be a string")

        def mutation(snapshot: Snapshot) -> Task:
            section = get_section(snapshot, section_id, board_id)
            task_id = self.store.new_id(snapshot)
            now = now_iso()
            task = {
                "id": task_id,
                "title": title,
                "description": description,
                "createdAt": now,
                "updatedAt": now,
                "sectionId": section_id,
                "boardId": board_id,
                "priority": coerce_priority(data.get("priority")),
                "status": status,
                "tags": [],
                "assignee": None,
                "dueDate": due_date,
                "startDate": start_date,
            }
            snapshot["tasks"][task_id] = task
            section["taskIds"].append(task_id)
            return task

        task = self.store.mutate(mutation)
        logger.info(f"Created task {task['id']} in section {section_id}")
        return task

    def update_task(self, task_id: str, updates: Dict[str, Any], section_id: Optional[str] = None,
                    board_id: Optional[str] = None) -> Task:
        if not isinstance(updates, dict):
            raise ValidationError("Task update must be a JSON object")
        return self.store.mutate(
            lambda snapshot: apply_task_updates(get_task(snapshot, task_id, section_id, board_id), updates)
        )

    def delete_task(self, task_id: str, section_id: Optional[str] = None, board_id: Optional[str] = None) -> None:
        def mutation(snapshot: Snapshot) -> None:
            if section_id is not None:
                section = get_section(snapshot, section_id, board_id)
                if task_id not in section["taskIds"]:
                    raise NotFound("Task not found")
            task = get_task(snapshot, task_id, section_id, board_id)
            owner = get_section(snapshot, task["sectionId"])
            owner["taskIds"].remove(task_id)
            del snapshot["tasks"][task_id]

        self.store.mutate(mutation)
        logger.info(f"Deleted task {task_id}")
