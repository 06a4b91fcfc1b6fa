"""Client-side mirror of the board snapshot.

One ``ClientState`` is created by the application and handed to the
reconciler and the gesture controller; nothing looks it up globally.
Display reads skip ids that are missing from the snapshot (for instance
while a delete is in flight) instead of raising.
"""
from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..snapshot import Board, Section, Snapshot, Task


class ClientState:
    def __init__(self, snapshot: Optional[Snapshot] = None):
        self.boards: Dict[str, Board] = {}
        self.sections: Dict[str, Section] = {}
        self.tasks: Dict[str, Task] = {}
        self.active_board: Optional[str] = None
        self.stale = True
        self.loaded_at: Optional[datetime] = None
        if snapshot is not None:
            self.replace(snapshot)

    def replace(self, snapshot: Snapshot) -> None:
        """Swap in a complete snapshot from the server."""
        snapshot = copy.deepcopy(snapshot)
        self.boards = snapshot.get("boards") or {}
        self.sections = snapshot.get("sections") or {}
        self.tasks = snapshot.get("tasks") or {}
        active = snapshot.get("activeBoard")
        self.active_board = active if active in self.boards else next(iter(self.boards), None)
        self.stale = False
        self.loaded_at = datetime.now()

    def as_snapshot(self) -> Snapshot:
        """A snapshot view sharing this cache's collections, so in-place moves patch the cache."""
        return {"boards": self.boards, "sections": self.sections, "tasks": self.tasks,
                "activeBoard": self.active_board}

    def copy_snapshot(self) -> Snapshot:
        return copy.deepcopy(self.as_snapshot())

    # Merging server results
    def merge_task(self, task: Task) -> None:
        self.tasks[task["id"]] = copy.deepcopy(task)

    def merge_sections(self, sections: Dict[str, Section]) -> None:
        for section_id, section in sections.items():
            self.sections[section_id] = copy.deepcopy(section)

    def set_section_order(self, board_id: str, order: List[str]) -> None:
        board = self.boards.get(board_id)
        if board is not None:
            board["sectionOrder"] = list(order)

    def select_board(self, board_id: str) -> bool:
        if board_id not in self.boards:
            return False
        self.active_board = board_id
        return True

    # Display reads
    def boards_list(self) -> List[Board]:
        return list(self.boards.values())

    def active_board_name(self) -> Optional[str]:
        board = self.boards.get(self.active_board) if self.active_board else None
        return board.get("name") if board else None

    def board_sections(self, board_id: Optional[str] = None) -> List[Section]:
        board = self.boards.get(board_id or self.active_board or "")
        if board is None:
            return []
        return [self.sections[s_id] for s_id in board.get("sectionOrder", []) if s_id in self.sections]

    def section_tasks(self, section_id: str) -> List[Task]:
        section = self.sections.get(section_id)
        if section is None:
            return []
        return [self.tasks[t_id] for t_id in section.get("taskIds", []) if t_id in self.tasks]

    # Positions
    def task_position(self, task_id: str) -> Optional[Tuple[str, int]]:
        task = self.tasks.get(task_id)
        section = self.sections.get(task["sectionId"]) if task else None
        if section is None or task_id not in section["taskIds"]:
            return None
        return section["id"], section["taskIds"].index(task_id)

    def section_position(self, section_id: str) -> Optional[Tuple[str, int]]:
        section = self.sections.get(section_id)
        board = self.boards.get(section["boardId"]) if section else None
        if board is None or section_id not in board["sectionOrder"]:
            return None
        return board["id"], board["sectionOrder"].index(section_id)

    def owner_of(self, kind: str, entity_id: str) -> Optional[str]:
        position = self.task_position(entity_id) if kind == "task" else self.section_position(entity_id)
        return position[0] if position else None

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return (f"ClientState(boards={len(self.boards)}, sections={len(self.sections)}, "
                f"tasks={len(self.tasks)}, active={self.active_board}, stale={self.stale})")

    def describe(self) -> Dict[str, Any]:
        return {"activeBoard": self.active_board_name(),
                "sections": [(s["name"], [t["title"] for t in self.section_tasks(s["id"])])
                             for s in self.board_sections()]}
