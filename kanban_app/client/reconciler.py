"""Sends move intents to the server and reconciles the client cache with the answer.

On success the returned task/sections are merged and only the affected parts
re-rendered. On any failure the cache is first put back from a copy taken
before the optimistic change, then the whole snapshot is reloaded (except
when the server asks for authentication, which only re-prompts).
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Set

import requests

from ..errors import KanbanError
from ..moves import apply_section_move, apply_task_move
from .api import ApiError, AuthRequired, KanbanApi
from .state import ClientState

logger = logging.getLogger(__name__)

TASK = "task"
SECTION = "section"


@dataclass(frozen=True)
class MoveIntent:
    """A completed drag: put ``entity_id`` at ``index`` of ``target_id``.

    For tasks the source/target are section ids, for sections both are the board id.
    """
    kind: str
    entity_id: str
    source_id: str
    target_id: str
    index: int


class Renderer:
    """Rendering hooks; the default implementation draws nothing."""

    def render_sections(self, section_ids: Iterable[str]) -> None:
        pass

    def render_board(self, board_id: str) -> None:
        pass

    def render_all(self) -> None:
        pass

    def notify_error(self, message: str) -> None:
        pass


class Reconciler:
    def __init__(self, api: KanbanApi, state: ClientState, renderer: Optional[Renderer] = None,
                 on_auth_required: Optional[Callable[[], None]] = None):
        self.api = api
        self.state = state
        self.renderer = renderer or Renderer()
        self.on_auth_required = on_auth_required
        self._pending: Set[str] = set()
        self._lock = threading.Lock()

    def is_pending(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._pending

    def dispatch(self, intent: MoveIntent) -> bool:
        if intent.kind == TASK:
            return self.move_task(intent.entity_id, intent.source_id, intent.target_id, intent.index)
        if intent.kind == SECTION:
            return self.move_section(intent.entity_id, intent.index)
        raise ValueError(f"Unknown move kind: {intent.kind}")

    def move_task(self, task_id: str, from_section_id: str, to_section_id: str,
                  new_index: Optional[int] = None) -> bool:
        source = self.state.sections.get(from_section_id)
        board_id = source["boardId"] if source else self.state.active_board
        with self._track(task_id):
            saved = self.state.copy_snapshot()
            try:
                apply_task_move(self.state.as_snapshot(), task_id, from_section_id, to_section_id, new_index)
                self.renderer.render_sections({from_section_id, to_section_id})
            except KanbanError as exc:
                logger.warning(f"Cache disagrees with task move {task_id}: {exc.message}; sending it anyway")
            try:
                result = self.api.move_task(board_id, task_id, from_section_id, to_section_id, new_index)
            except AuthRequired:
                self._discard(saved)
                self.renderer.render_all()
                self._auth_required()
                return False
            except (requests.RequestException, ApiError) as exc:
                logger.warning(f"Task move {task_id} failed ({exc}), reloading board data")
                self._discard(saved)
                self.renderer.notify_error("Failed to move task. Please try again.")
                if not self.reload():
                    self.renderer.render_all()
                return False

        self.state.merge_task(result["task"])
        self.state.merge_sections(result["sections"])
        self.renderer.render_sections(result["sections"].keys())
        return True

    def move_section(self, section_id: str, new_index: int) -> bool:
        section = self.state.sections.get(section_id)
        board_id = section["boardId"] if section else self.state.active_board
        with self._track(section_id):
            saved = self.state.copy_snapshot()
            try:
                apply_section_move(self.state.as_snapshot(), section_id, new_index)
                self.renderer.render_board(board_id)
            except KanbanError as exc:
                logger.warning(f"Cache disagrees with section move {section_id}: {exc.message}; sending it anyway")
            try:
                order = self.api.move_section(board_id, section_id, new_index)
            except AuthRequired:
                self._discard(saved)
                self.renderer.render_all()
                self._auth_required()
                return False
            except (requests.RequestException, ApiError) as exc:
                logger.warning(f"Section move {section_id} failed ({exc}), reloading board data")
                self._discard(saved)
                self.renderer.notify_error("Failed to move column. Please try again.")
                if not self.reload():
                    self.renderer.render_all()
                return False

        if order is not None:
            self.state.set_section_order(board_id, order)
        self.renderer.render_board(board_id)
        return True

    def reload(self) -> bool:
        """Replace the whole cache with the server's snapshot and redraw everything."""
        try:
            snapshot = self.api.load_snapshot()
        except AuthRequired:
            self._auth_required()
            return False
        except (requests.RequestException, ApiError) as exc:
            self.state.stale = True
            logger.error(f"Failed to reload board data: {exc}")
            self.renderer.notify_error("Failed to load boards. Please try again later.")
            return False
        self.state.replace(snapshot)
        self.renderer.render_all()
        return True

    def _discard(self, saved) -> None:
        """Put back the cache as it was before the optimistic move; stale until the server confirms."""
        self.state.replace(saved)
        self.state.stale = True

    def _auth_required(self) -> None:
        self.state.stale = True
        logger.info("Server requires authentication")
        if self.on_auth_required is not None:
            self.on_auth_required()

    @contextmanager
    def _track(self, entity_id: str):
        with self._lock:
            self._pending.add(entity_id)
        try:
            yield
        finally:
            with self._lock:
                self._pending.discard(entity_id)
