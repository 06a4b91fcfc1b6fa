"""Drag gestures for tasks and sections, independent of any particular UI toolkit.

Raw pointer and touch events are turned into ``GestureEvent``s by
``InputNormalizer``; ``GestureController`` runs the drag state machine on
top of them and hands the finished move to the reconciler. Geometry comes
from a ``Layout`` so the controller never inspects widgets itself.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .reconciler import SECTION, TASK, MoveIntent, Reconciler
from .state import ClientState

logger = logging.getLogger(__name__)

# Controller states
IDLE = "idle"
DRAGGING = "dragging"
DROPPED = "dropped"
CANCELLED = "cancelled"

# Gesture phases
START = "start"
MOVE = "move"
END = "end"
CANCEL = "cancel"


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def mid_x(self) -> float:
        return self.left + self.width / 2

    @property
    def mid_y(self) -> float:
        return self.top + self.height / 2

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x < self.left + self.width and self.top <= y < self.top + self.height


@dataclass(frozen=True)
class GestureEvent:
    phase: str
    x: float
    y: float


class Layout:
    """Answers geometry questions for the gesture controller."""

    def collection_at(self, x: float, y: float, kind: str) -> Optional[str]:
        """Id of the section (for tasks) or board (for sections) under the point, if any."""
        raise NotImplementedError

    def sibling_rects(self, collection_id: str, kind: str, exclude: str) -> List[Tuple[str, Rect]]:
        """Ordered rectangles of the items in ``collection_id``, without ``exclude``."""
        raise NotImplementedError


class StaticLayout(Layout):
    """In-memory layout: collection areas plus the on-screen rectangle of every item."""

    def __init__(self, state: ClientState):
        self.state = state
        self.areas: Dict[str, Dict[str, Rect]] = {TASK: {}, SECTION: {}}
        self.rects: Dict[str, Rect] = {}

    def place_area(self, kind: str, collection_id: str, rect: Rect) -> None:
        self.areas[kind][collection_id] = rect

    def place_item(self, entity_id: str, rect: Rect) -> None:
        self.rects[entity_id] = rect

    def collection_at(self, x, y, kind):
        for collection_id, rect in self.areas[kind].items():
            if rect.contains(x, y):
                return collection_id
        return None

    def sibling_rects(self, collection_id, kind, exclude):
        if kind == TASK:
            members = [t["id"] for t in self.state.section_tasks(collection_id)]
        else:
            members = [s["id"] for s in self.state.board_sections(collection_id)]
        return [(m, self.rects[m]) for m in members if m != exclude and m in self.rects]


def insertion_index(siblings: Sequence[Tuple[str, Rect]], coord: float, axis: str) -> int:
    """Index before the first sibling whose midpoint lies past ``coord``; the end when none does."""
    for index, (_, rect) in enumerate(siblings):
        middle = rect.mid_y if axis == "y" else rect.mid_x
        if coord < middle:
            return index
    return len(siblings)


class InputNormalizer:
    """Maps mouse/pen pointer events and touch events onto one gesture vocabulary.

    Events are plain mappings with a ``type`` plus either ``x``/``y`` (pointer)
    or ``touches``/``changedTouches`` lists of ``{"x", "y"}`` (touch).
    """

    POINTER_PHASES = {
        "pointerdown": START,
        "dragstart": START,
        "pointermove": MOVE,
        "dragover": MOVE,
        "pointerup": END,
        "drop": END,
        "pointercancel": CANCEL,
    }
    TOUCH_PHASES = {"touchstart": START, "touchmove": MOVE, "touchend": END, "touchcancel": CANCEL}

    def __init__(self):
        self._last: Tuple[float, float] = (0.0, 0.0)

    def normalize(self, event: Mapping[str, Any]) -> Optional[GestureEvent]:
        kind = event.get("type")
        if kind == "dragend":
            # dragend after a drop is a no-op; without one the drag was abandoned
            return None if event.get("dropped") else GestureEvent(CANCEL, *self._last)
        if kind in self.POINTER_PHASES:
            return self._emit(self.POINTER_PHASES[kind], event.get("x"), event.get("y"))
        if kind in self.TOUCH_PHASES:
            phase = self.TOUCH_PHASES[kind]
            if phase == CANCEL:
                return GestureEvent(CANCEL, *self._last)
            touches = event.get("changedTouches" if phase == END else "touches") or []
            if not touches:
                return None
            return self._emit(phase, touches[0].get("x"), touches[0].get("y"))
        return None

    def _emit(self, phase: str, x: Any, y: Any) -> GestureEvent:
        if x is None or y is None:
            x, y = self._last
        self._last = (float(x), float(y))
        return GestureEvent(phase, *self._last)


@dataclass
class Drag:
    kind: str
    entity_id: str
    source_id: str
    source_index: int
    preview: Optional[Tuple[str, int]] = None


class GestureController:
    def __init__(self, state: ClientState, reconciler: Reconciler, layout: Layout,
                 on_preview: Optional[Callable[[Optional[Tuple[str, int]]], None]] = None):
        self.state = state
        self.reconciler = reconciler
        self.layout = layout
        self.on_preview = on_preview
        self.status = IDLE
        self.drag: Optional[Drag] = None
        self._armed: Optional[Tuple[str, str]] = None

    def arm(self, kind: str, entity_id: str) -> None:
        """Name what the next START event picks up (the element under the pointer)."""
        self._armed = (kind, entity_id)

    def handle(self, event: Optional[GestureEvent]) -> Optional[MoveIntent]:
        if event is None:
            return None
        if event.phase == START:
            if self._armed is not None:
                kind, entity_id = self._armed
                self._armed = None
                self.start(kind, entity_id, event.x, event.y)
            return None
        if event.phase == MOVE:
            self.over(event.x, event.y)
            return None
        if event.phase == END:
            return self.drop(event.x, event.y)
        self.cancel()
        return None

    def start(self, kind: str, entity_id: str, x: float, y: float) -> bool:
        if kind not in (TASK, SECTION):
            raise ValueError(f"Unknown drag kind: {kind}")
        if self.status == DRAGGING:
            self.cancel()
        if self.reconciler.is_pending(entity_id):
            logger.info(f"Ignoring drag of {entity_id}: its previous move is still in flight")
            return False
        position = self.state.task_position(entity_id) if kind == TASK else self.state.section_position(entity_id)
        if position is None:
            logger.debug(f"Ignoring drag of unknown {kind} {entity_id}")
            return False
        self.drag = Drag(kind, entity_id, position[0], position[1])
        self.status = DRAGGING
        self.over(x, y)
        return True

    def over(self, x: float, y: float) -> Optional[Tuple[str, int]]:
        if self.status != DRAGGING:
            return None
        preview = self._target(x, y)
        if preview != self.drag.preview:
            self.drag.preview = preview
            if self.on_preview is not None:
                self.on_preview(preview)
        return preview

    def drop(self, x: float, y: float) -> Optional[MoveIntent]:
        if self.status != DRAGGING:
            return None
        drag = self.drag
        target = self._target(x, y)
        if target is None:
            self.cancel()
            return None

        target_id, index = target
        self.status = DROPPED
        intent = None
        if (target_id, index) != (drag.source_id, drag.source_index):
            intent = MoveIntent(drag.kind, drag.entity_id, drag.source_id, target_id, index)
        self._reset()
        if intent is not None:
            self.reconciler.dispatch(intent)
        return intent

    def cancel(self) -> None:
        if self.status != DRAGGING:
            return
        self.status = CANCELLED
        logger.debug(f"Drag of {self.drag.entity_id} cancelled")
        self._reset()

    def _target(self, x: float, y: float) -> Optional[Tuple[str, int]]:
        drag = self.drag
        collection_id = self.layout.collection_at(x, y, drag.kind)
        if collection_id is None:
            return None
        # sections only reorder inside their own board
        if drag.kind == SECTION and collection_id != drag.source_id:
            return None
        siblings = self.layout.sibling_rects(collection_id, drag.kind, drag.entity_id)
        axis = "y" if drag.kind == TASK else "x"
        return collection_id, insertion_index(siblings, y if axis == "y" else x, axis)

    def _reset(self) -> None:
        self.drag = None
        if self.on_preview is not None:
            self.on_preview(None)
        self.status = IDLE
