"""Kanban boards with ordered sections and tasks, drag moves and a reconciling client."""
from .server import create_app

__version__ = "0.3.0"

__all__ = ["create_app", "__version__"]
