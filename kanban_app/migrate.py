"""Importing board data from a JSON file, including the old column-based layout.

Old files look like ``{"boards": {id: {"name": ..., "columns": {id: {"name": ...,
"tasks": [...]}}}}, "activeBoard": id}``; tasks lived inline in their column.
"""
from __future__ import annotations

import json
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Dict, Tuple

from .errors import PersistenceError, ValidationError
from .snapshot import DEFAULT_STATUS, Snapshot, coerce_priority, empty_snapshot, normalize, now_iso, unique_id

logger = logging.getLogger(__name__)


def is_old_format(data: Any) -> bool:
    if not isinstance(data, dict) or not isinstance(data.get("boards"), dict):
        return False
    first = next(iter(data["boards"].values()), None)
    return isinstance(first, dict) and bool(first.get("columns"))


def migrate_data(old: Dict[str, Any], new_id=None) -> Snapshot:
    """Convert the old column layout into a snapshot with fresh section and task ids."""
    snapshot = empty_snapshot()
    make_id = new_id or (lambda: unique_id(snapshot))

    for old_board_id, old_board in old["boards"].items():
        taken = any(old_board_id in snapshot[key] for key in ("boards", "sections", "tasks"))
        board_id = old_board_id if len(old_board_id) == 9 and not taken else make_id()
        board = {"id": board_id, "name": old_board.get("name") or "Untitled Board", "sectionOrder": []}
        snapshot["boards"][board_id] = board

        for old_column in (old_board.get("columns") or {}).values():
            section_id = make_id()
            section = {"id": section_id, "name": old_column.get("name") or "Untitled",
                       "boardId": board_id, "taskIds": []}
            snapshot["sections"][section_id] = section
            board["sectionOrder"].append(section_id)

            for old_task in old_column.get("tasks") or []:
                task_id = make_id()
                now = now_iso()
                snapshot["tasks"][task_id] = {
                    "id": task_id,
                    "title": old_task.get("title") or "Untitled Task",
                    "description": old_task.get("description") or "",
                    "createdAt": old_task.get("createdAt") or now,
                    "updatedAt": old_task.get("updatedAt") or now,
                    "sectionId": section_id,
                    "boardId": board_id,
                    "priority": coerce_priority(old_task.get("priority")),
                    "status": old_task.get("status") or DEFAULT_STATUS,
                    "tags": old_task.get("tags") or [],
                    "assignee": old_task.get("assignee"),
                    "dueDate": old_task.get("dueDate"),
                    "startDate": old_task.get("startDate"),
                }
                section["taskIds"].append(task_id)

        if old.get("activeBoard") == old_board_id:
            snapshot["activeBoard"] = board_id

    if snapshot["activeBoard"] is None:
        snapshot["activeBoard"] = next(iter(snapshot["boards"]), None)
    logger.info(f"Migrated legacy data: {len(snapshot['boards'])} boards, "
                f"{len(snapshot['sections'])} sections, {len(snapshot['tasks'])} tasks")
    return snapshot


def load_file(path: Path) -> Tuple[Snapshot, bool]:
    """Read a data file; return the snapshot and whether it was in the old layout."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise PersistenceError(f"Could not read import file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError(f"Import file {path} does not contain a JSON object")
    if is_old_format(data):
        return migrate_data(data), True
    return normalize(data), False


def import_file(store, path: str | Path) -> bool:
    """Import ``path`` into ``store`` unless the store already holds tasks or extra boards.

    Returns True when data was imported. A migrated legacy file is copied
    to a timestamped backup next to itself.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"Import file {path} not found, skipping import.")
        return False
    imported, legacy = load_file(path)

    def mutation(snapshot: Snapshot) -> bool:
        if snapshot["tasks"] or len(snapshot["boards"]) > 1:
            return False
        snapshot.clear()
        snapshot.update(imported)
        return True

    if not store.mutate(mutation):
        logger.info(f"Store already has data, not importing {path}.")
        return False
    if legacy:
        backup = path.with_name(f"{path.name}.backup-{int(time.time() * 1000)}")
        shutil.copyfile(path, backup)
        logger.info(f"Created backup of legacy data at {backup}")
    logger.info(f"Imported board data from {path}")
    return True
