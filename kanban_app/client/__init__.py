"""Client side of the board: API transport, local cache, reconciler and drag gestures."""
from .api import ApiError, AuthRequired, KanbanApi, MalformedResponse
from .gestures import GestureController, InputNormalizer, Layout, Rect, StaticLayout
from .reconciler import SECTION, TASK, MoveIntent, Reconciler, Renderer
from .state import ClientState

__all__ = [
    "ApiError", "AuthRequired", "KanbanApi", "MalformedResponse",
    "GestureController", "InputNormalizer", "Layout", "Rect", "StaticLayout",
    "SECTION", "TASK", "MoveIntent", "Reconciler", "Renderer",
    "ClientState",
]
