"""Shape of the stored document and the helpers that build and check it.

A snapshot is a plain JSON-compatible dict::

    {"boards": {id: Board}, "sections": {id: Section},
     "tasks": {id: Task}, "activeBoard": id | None}

Positions are never stored: a task's position is its index in its section's
``taskIds`` and a section's position is its index in its board's
``sectionOrder``.
"""
from __future__ import annotations

import secrets
import string
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .errors import ValidationError

Snapshot = Dict[str, Any]
Board = Dict[str, Any]
Section = Dict[str, Any]
Task = Dict[str, Any]
IdFactory = Callable[[], str]

DEFAULT_SECTIONS = ["To Do", "Doing", "Done"]
DEFAULT_BOARD_NAME = "Personal"
PRIORITIES = ["urgent", "high", "medium", "low"]
DEFAULT_PRIORITY = "medium"
DEFAULT_STATUS = "active"

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 9


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def random_id() -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def unique_id(snapshot: Snapshot, factory: IdFactory = random_id) -> str:
    """Return an id not used by any board, section or task in ``snapshot``."""
    taken = lambda candidate: any(candidate in snapshot.get(key, {}) for key in ("boards", "sections", "tasks"))
    candidate = factory()
    while taken(candidate):
        candidate = factory()
    return candidate


def empty_snapshot() -> Snapshot:
    return {"boards": {}, "sections": {}, "tasks": {}, "activeBoard": None}


def add_board(snapshot: Snapshot, name: str, new_id: IdFactory) -> Board:
    """Create a board with the default To Do / Doing / Done sections."""
    board_id = new_id()
    board = {"id": board_id, "name": name, "sectionOrder": []}
    snapshot["boards"][board_id] = board
    for section_name in DEFAULT_SECTIONS:
        add_section(snapshot, board_id, section_name, new_id)
    return board


def add_section(snapshot: Snapshot, board_id: str, name: str, new_id: IdFactory) -> Section:
    section_id = new_id()
    section = {"id": section_id, "name": name, "boardId": board_id, "taskIds": []}
    snapshot["sections"][section_id] = section
    snapshot["boards"][board_id]["sectionOrder"].append(section_id)
    return section


def default_snapshot(new_id_for: Callable[[Snapshot], str] | None = None) -> Snapshot:
    """The document a brand new store starts with: one 'Personal' board."""
    snapshot = empty_snapshot()
    factory = lambda: (new_id_for or unique_id)(snapshot)
    board = add_board(snapshot, DEFAULT_BOARD_NAME, factory)
    snapshot["activeBoard"] = board["id"]
    return snapshot


# Field validation
# ────────────────────────────────────────────────────────────────────────────────
def require_text(data: Dict[str, Any], field: str, label: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def parse_date(value: Any, field: str) -> Optional[str]:
    """Accept None or an ISO date (optionally with a time part); return it unchanged."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO date string")
    try:
        if len(value) > 10:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
        else:
            date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD), got {value!r}") from None
    return value


def parse_index(value: Any) -> Optional[int]:
    if value is None:
        return None
    # bool is an int subclass; true/false is never a position
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("newIndex must be an integer")
    return value


def coerce_priority(value: Any, fallback: str = DEFAULT_PRIORITY) -> str:
    return value if value in PRIORITIES else fallback


# Invariants
# ────────────────────────────────────────────────────────────────────────────────
def _duplicates(ids: Iterable[str]) -> List[str]:
    seen, dupes = set(), []
    for item in ids:
        if item in seen:
            dupes.append(item)
        seen.add(item)
    return dupes


def check_invariants(snapshot: Snapshot) -> List[str]:
    """Return a human readable list of ordering invariant violations (empty when consistent)."""
    problems: List[str] = []
    boards, sections, tasks = snapshot["boards"], snapshot["sections"], snapshot["tasks"]
    tasks_by_section: Dict[Any, set] = {}
    for t_id, t in tasks.items():
        tasks_by_section.setdefault(t.get("sectionId"), set()).add(t_id)
    sections_by_board: Dict[Any, set] = {}
    for s_id, s in sections.items():
        sections_by_board.setdefault(s.get("boardId"), set()).add(s_id)

    for section_id, section in sections.items():
        owned = tasks_by_section.get(section_id, set())
        listed = section.get("taskIds", [])
        for dupe in _duplicates(listed):
            problems.append(f"section {section_id} lists task {dupe} twice")
        if set(listed) != owned:
            problems.append(f"section {section_id} taskIds {sorted(listed)} != owned tasks {sorted(owned)}")
        if section.get("boardId") not in boards:
            problems.append(f"section {section_id} points at unknown board {section.get('boardId')}")

    for board_id, board in boards.items():
        owned = sections_by_board.get(board_id, set())
        listed = board.get("sectionOrder", [])
        for dupe in _duplicates(listed):
            problems.append(f"board {board_id} lists section {dupe} twice")
        if set(listed) != owned:
            problems.append(f"board {board_id} sectionOrder {sorted(listed)} != owned sections {sorted(owned)}")

    for task_id, task in tasks.items():
        section = sections.get(task.get("sectionId"))
        if section is None:
            problems.append(f"task {task_id} points at unknown section {task.get('sectionId')}")
        elif task.get("boardId") != section.get("boardId"):
            problems.append(f"task {task_id} boardId {task.get('boardId')} != section board {section.get('boardId')}")

    active = snapshot.get("activeBoard")
    if active is None and boards:
        problems.append("activeBoard is null while boards exist")
    if active is not None and active not in boards:
        problems.append(f"activeBoard {active} is not a board")
    return problems


def normalize(snapshot: Snapshot) -> Snapshot:
    """Repair a document read from an untrusted source so the invariants hold.

    Sequences are authoritative for order; back-references are authoritative
    for membership. Dangling ids are dropped and unlisted members appended.
    """
    result = empty_snapshot()
    for key in ("boards", "sections", "tasks"):
        raw = snapshot.get(key) or {}
        result[key] = {str(k): dict(v, id=str(k)) for k, v in raw.items() if isinstance(v, dict)}
    boards, sections, tasks = result["boards"], result["sections"], result["tasks"]

    for section_id, section in list(sections.items()):
        if section.get("boardId") not in boards:
            del sections[section_id]
    for task_id, task in list(tasks.items()):
        section = sections.get(task.get("sectionId"))
        if section is None:
            del tasks[task_id]
            continue
        task["boardId"] = section["boardId"]
        task.setdefault("description", "")
        task.setdefault("status", DEFAULT_STATUS)
        task["priority"] = coerce_priority(task.get("priority"))
        task.setdefault("dueDate", None)
        task.setdefault("startDate", None)
        task.setdefault("tags", [])
        task.setdefault("assignee", None)

    def reconcile(listed: Iterable[str], owned: List[str]) -> List[str]:
        ordered = [i for i in dict.fromkeys(listed) if i in owned]
        return ordered + [i for i in owned if i not in ordered]

    for section_id, section in sections.items():
        owned = [t_id for t_id, t in tasks.items() if t["sectionId"] == section_id]
        section["taskIds"] = reconcile(section.get("taskIds") or [], owned)
    for board_id, board in boards.items():
        owned = [s_id for s_id, s in sections.items() if s["boardId"] == board_id]
        board["sectionOrder"] = reconcile(board.get("sectionOrder") or [], owned)

    active = snapshot.get("activeBoard")
    result["activeBoard"] = active if active in boards else next(iter(boards), None)
    return result
