"""HTTP transport for the board API, built on a ``requests`` session."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

PIN_HEADER = "X-Kanban-Pin"


class ApiError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class AuthRequired(ApiError):
    """The server wants credentials; re-prompt, never retry as if transient."""


class MalformedResponse(ApiError):
    pass


def _expect(condition: bool, status: int, what: str) -> None:
    if not condition:
        raise MalformedResponse(status, f"Malformed response: {what}")


class KanbanApi:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 pin: Optional[str] = None, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.pin = pin

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/api{path}"
        headers = {PIN_HEADER: self.pin} if self.pin else {}
        logger.debug(f"{method} {url} {payload if payload is not None else ''}")
        response = self.session.request(method, url, json=payload, headers=headers, timeout=self.timeout)
        try:
            data = response.json()
        except ValueError:
            data = None
        message = data.get("error") if isinstance(data, dict) else None
        if response.status_code == 401:
            raise AuthRequired(401, message or "Authentication required")
        if not response.ok:
            logger.warning(f"{method} {url} failed with {response.status_code}: {message}")
            raise ApiError(response.status_code, message or response.reason or "Request failed")
        _expect(data is not None, response.status_code, "body is not JSON")
        return data

    # Auth
    def verify_pin(self, pin: str) -> bool:
        self._request("POST", "/verify-pin", {"pin": pin})
        self.pin = pin
        return True

    # Reads
    def load_snapshot(self) -> Dict[str, Any]:
        data = self._request("GET", "/boards")
        _expect(isinstance(data, dict), 200, "snapshot is not an object")
        for key in ("boards", "sections", "tasks"):
            _expect(isinstance(data.get(key), dict), 200, f"snapshot.{key} is not an object")
        return data

    # Boards
    def create_board(self, name: str) -> Dict[str, Any]:
        return self._request("POST", "/boards", {"name": name})

    def rename_board(self, board_id: str, name: str) -> Dict[str, Any]:
        return self._request("PUT", f"/boards/{board_id}", {"name": name})

    def delete_board(self, board_id: str) -> None:
        self._request("DELETE", f"/boards/{board_id}")

    def set_active_board(self, board_id: str) -> str:
        return self._request("POST", "/boards/active", {"boardId": board_id})["activeBoard"]

    # Sections
    def create_section(self, board_id: str, name: str) -> Dict[str, Any]:
        return self._request("POST", f"/boards/{board_id}/sections", {"name": name})

    def rename_section(self, board_id: str, section_id: str, name: str) -> Dict[str, Any]:
        return self._request("PUT", f"/boards/{board_id}/sections/{section_id}", {"name": name})

    def delete_section(self, board_id: str, section_id: str) -> None:
        self._request("DELETE", f"/boards/{board_id}/sections/{section_id}")

    def move_section(self, board_id: str, section_id: str, new_index: int) -> Optional[list]:
        """Returns the server's new sectionOrder when it sends one."""
        data = self._request("POST", f"/boards/{board_id}/sections/{section_id}/move", {"newIndex": new_index})
        _expect(isinstance(data, dict) and data.get("success") is True, 200, "move was not acknowledged")
        order = data.get("sectionOrder")
        _expect(order is None or isinstance(order, list), 200, "sectionOrder is not a list")
        return order

    # Tasks
    def create_task(self, board_id: str, section_id: str, title: str, **fields: Any) -> Dict[str, Any]:
        return self._request("POST", f"/boards/{board_id}/sections/{section_id}/tasks", {"title": title, **fields})

    def update_task(self, task_id: str, **updates: Any) -> Dict[str, Any]:
        return self._request("PUT", f"/tasks/{task_id}", updates)

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/tasks/{task_id}")

    def move_task(self, board_id: str, task_id: str, from_section_id: str, to_section_id: str,
                  new_index: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"fromSectionId": from_section_id, "toSectionId": to_section_id}
        if new_index is not None:
            payload["newIndex"] = new_index
        data = self._request("POST", f"/boards/{board_id}/tasks/{task_id}/move", payload)
        _expect(isinstance(data, dict), 200, "move result is not an object")
        _expect(isinstance(data.get("task"), dict) and data["task"].get("id") == task_id, 200, "task missing")
        _expect(isinstance(data.get("sections"), dict) and to_section_id in data["sections"], 200, "sections missing")
        return data
