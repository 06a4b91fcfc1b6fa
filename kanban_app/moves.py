"""Move service: relocating tasks between sections and sections within a board.

A move is remove-then-insert on the owning sequence(s). ``new_index`` is the
final position of the item, counted after it has been taken out; indices
beyond the end append and negative ones clamp to the front.

The ``apply_*`` functions only touch the snapshot they are given, so the
client cache reuses them for optimistic updates.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .errors import NotFound, ValidationError
from .snapshot import Snapshot, Task, now_iso, parse_index

logger = logging.getLogger(__name__)


def clamp(index: int, length: int) -> int:
    return max(0, min(index, length))


def insert_at(sequence: List[str], item: str, index: Optional[int]) -> int:
    """Insert ``item`` at ``index`` (clamped) or append when ``index`` is None; return where it landed."""
    position = len(sequence) if index is None else clamp(index, len(sequence))
    sequence.insert(position, item)
    return position


def apply_task_move(snapshot: Snapshot, task_id: str, from_section_id: str, to_section_id: str,
                    new_index: Any = None, now: str | None = None) -> Task:
    new_index = parse_index(new_index)
    sections = snapshot["sections"]
    lookup = lambda section_id: sections.get(section_id) if isinstance(section_id, str) else None
    source, target = lookup(from_section_id), lookup(to_section_id)
    if source is None or target is None:
        raise NotFound("Section not found")
    task = snapshot["tasks"].get(task_id)
    if task is None or task_id not in source["taskIds"]:
        raise NotFound("Task not found")

    source["taskIds"].remove(task_id)
    insert_at(target["taskIds"], task_id, new_index)
    task["sectionId"] = to_section_id
    task["boardId"] = target["boardId"]
    task["updatedAt"] = now or now_iso()
    return task


def apply_section_move(snapshot: Snapshot, section_id: str, new_index: Any,
                       board_id: str | None = None) -> List[str]:
    new_index = parse_index(new_index)
    if new_index is None:
        raise ValidationError("newIndex is required")
    section = snapshot["sections"].get(section_id)
    board = snapshot["boards"].get(section["boardId"]) if section else None
    if board is None or (board_id is not None and board["id"] != board_id):
        raise NotFound("Board not found")
    order = board["sectionOrder"]
    if section_id not in order:
        raise NotFound("Section not found in board")

    order.remove(section_id)
    insert_at(order, section_id, new_index)
    return order


class MoveService:
    def __init__(self, store):
        self.store = store

    def move_task(self, task_id: str, from_section_id: str, to_section_id: str,
                  new_index: Any = None) -> Dict[str, Any]:
        """Move a task (possibly across sections); return the task and both affected sections."""
        return self._move_task(task_id, lambda snapshot: from_section_id, to_section_id, new_index)

    def move_task_to(self, task_id: str, to_section_id: str, new_index: Any = None) -> Dict[str, Any]:
        """Same as move_task, with the task's current section as the source."""
        def current_section(snapshot: Snapshot) -> str:
            task = snapshot["tasks"].get(task_id)
            if task is None:
                raise NotFound("Task not found")
            return task["sectionId"]

        return self._move_task(task_id, current_section, to_section_id, new_index)

    def move_section(self, section_id: str, new_index: Any, board_id: str | None = None) -> List[str]:
        order = self.store.mutate(lambda snapshot: apply_section_move(snapshot, section_id, new_index, board_id))
        logger.info(f"Moved section {section_id} to {order.index(section_id)}")
        return order

    def _move_task(self, task_id, source_of, to_section_id, new_index) -> Dict[str, Any]:
        def mutation(snapshot: Snapshot) -> Dict[str, Any]:
            from_section_id = source_of(snapshot)
            task = apply_task_move(snapshot, task_id, from_section_id, to_section_id, new_index)
            sections = snapshot["sections"]
            return {
                "task": task,
                "sections": {
                    from_section_id: sections[from_section_id],
                    to_section_id: sections[to_section_id],
                },
            }

        result = self.store.mutate(mutation)
        logger.info(f"Moved task {task_id} to {to_section_id} "
                    f"at {result['sections'][to_section_id]['taskIds'].index(task_id)}")
        return result
