"""Error taxonomy shared by the store, the services and the HTTP layer."""
from __future__ import annotations


class KanbanError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message}


class NotFound(KanbanError):
    """A board/section/task id is unknown, or not a member of the collection it should be in."""
    status_code = 404


class ValidationError(KanbanError):
    status_code = 400


class PersistenceError(KanbanError):
    status_code = 500


class VersionConflict(PersistenceError):
    """The stored document changed between our read and our write."""

    def __init__(self, expected: int, message: str | None = None):
        super().__init__(message or f"Document version moved on from {expected}")
        self.expected = expected


class AuthRequired(KanbanError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)
