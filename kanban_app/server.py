from __future__ import annotations

import hmac
import logging
from typing import Any, Dict, Mapping

from flask import Blueprint, Flask, current_app, jsonify, request, session

from .config import load_config
from .errors import AuthRequired, KanbanError, ValidationError
from .migrate import import_file
from .models import db
from .moves import MoveService
from .operations import BoardService
from .store import DocumentStore

api = Blueprint("api", __name__, url_prefix="/api")

PIN_HEADER = "X-Kanban-Pin"
OPEN_ENDPOINTS = {"api.auth_status", "api.verify_pin"}


# App factory
# ────────────────────────────────────────────────────────────────────────────────
def create_app(overrides: Mapping[str, Any] | None = None) -> Flask:
    config = load_config(overrides)
    app = Flask(__name__)
    app.logger.setLevel(logging.DEBUG if config["KANBAN_DEBUG"] else logging.INFO)
    app.config.update(
        SQLALCHEMY_DATABASE_URI=config["KANBAN_DB"],
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SQLALCHEMY_ECHO=False,  # Set to True for verbose SQL
        SECRET_KEY=config["KANBAN_SECRET_KEY"],
        **config,
    )

    db.init_app(app)
    with app.app_context():
        db.create_all()
        app.logger.info("db.create_all() completed.")

    store = DocumentStore(app, max_retries=config["KANBAN_WRITE_RETRIES"])
    app.extensions["kanban"] = {
        "store": store,
        "boards": BoardService(store),
        "moves": MoveService(store),
    }
    if config["KANBAN_IMPORT_FILE"]:
        import_file(store, config["KANBAN_IMPORT_FILE"])

    app.register_blueprint(api)
    app.register_error_handler(KanbanError, handle_kanban_error)
    return app


def handle_kanban_error(error: KanbanError):
    if error.status_code >= 500:
        current_app.logger.error(f"{request.method} {request.path} failed: {error.message}")
    else:
        current_app.logger.debug(f"{request.method} {request.path} rejected: {error.message}")
    return jsonify(error.to_dict()), error.status_code


# Helpers
# ────────────────────────────────────────────────────────────────────────────────
def _boards() -> BoardService:
    return current_app.extensions["kanban"]["boards"]


def _moves() -> MoveService:
    return current_app.extensions["kanban"]["moves"]


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data():
            raise ValidationError("Request body must be valid JSON")
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _pin_matches(candidate: Any) -> bool:
    pin = current_app.config["KANBAN_PIN"]
    return isinstance(candidate, str) and hmac.compare_digest(candidate.encode(), pin.encode())


@api.before_request
def require_pin():
    """Reject API calls without an authenticated session or a valid PIN header when a PIN is set."""
    if not current_app.config["KANBAN_PIN"] or request.endpoint in OPEN_ENDPOINTS:
        return None
    if session.get("authenticated") or _pin_matches(request.headers.get(PIN_HEADER)):
        return None
    raise AuthRequired()


# Auth routes
# ────────────────────────────────────────────────────────────────────────────────
@api.get("/auth")
def auth_status():
    pin_required = bool(current_app.config["KANBAN_PIN"])
    return jsonify({"pinRequired": pin_required,
                    "authenticated": not pin_required or bool(session.get("authenticated"))})


@api.post("/verify-pin")
def verify_pin():
    current_app.logger.debug("POST /api/verify-pin called")
    if not current_app.config["KANBAN_PIN"]:
        return jsonify({"success": True})
    if not _pin_matches(_body().get("pin")):
        current_app.logger.warning(f"Invalid PIN attempt from {request.remote_addr}")
        raise AuthRequired("Invalid PIN")
    session["authenticated"] = True
    return jsonify({"success": True})


# Board routes
# ────────────────────────────────────────────────────────────────────────────────
@api.get("/boards")
def api_boards():
    current_app.logger.debug("GET /api/boards called")
    return jsonify(_boards().snapshot())


@api.post("/boards")
def api_create_board():
    current_app.logger.debug("POST /api/boards called")
    return jsonify(_boards().create_board(_body().get("name")))


@api.post("/boards/active")
def api_set_active_board():
    data = _body()
    current_app.logger.debug(f"POST /api/boards/active called with {data}")
    return jsonify({"activeBoard": _boards().set_active_board(data.get("boardId"))})


@api.put("/boards/<board_id>")
def api_update_board(board_id):
    current_app.logger.debug(f"PUT /api/boards/{board_id} called")
    return jsonify(_boards().rename_board(board_id, _body().get("name")))


@api.delete("/boards/<board_id>")
def api_delete_board(board_id):
    current_app.logger.debug(f"DELETE /api/boards/{board_id} called")
    _boards().delete_board(board_id)
    return jsonify({"success": True})


# Section routes
# ────────────────────────────────────────────────────────────────────────────────
@api.post("/boards/<board_id>/sections")
def api_create_section(board_id):
    current_app.logger.debug(f"POST /api/boards/{board_id}/sections called")
    return jsonify(_boards().create_section(board_id, _body().get("name")))


@api.put("/boards/<board_id>/sections/<section_id>")
def api_update_section(board_id, section_id):
    current_app.logger.debug(f"PUT /api/boards/{board_id}/sections/{section_id} called")
    return jsonify(_boards().rename_section(board_id, section_id, _body().get("name")))


@api.delete("/boards/<board_id>/sections/<section_id>")
def api_delete_section(board_id, section_id):
    current_app.logger.debug(f"DELETE /api/boards/{board_id}/sections/{section_id} called")
    _boards().delete_section(board_id, section_id)
    return jsonify({"success": True})


@api.post("/boards/<board_id>/sections/<section_id>/move")
def api_move_section(board_id, section_id):
    data = _body()
    current_app.logger.debug(f"POST /api/boards/{board_id}/sections/{section_id}/move called with {data}")
    order = _moves().move_section(section_id, data.get("newIndex"), board_id=board_id)
    return jsonify({"success": True, "sectionOrder": order})


# Task routes
# ────────────────────────────────────────────────────────────────────────────────
@api.post("/boards/<board_id>/sections/<section_id>/tasks")
def api_create_task(board_id, section_id):
    data = _body()
    current_app.logger.debug(f"POST /api/boards/{board_id}/sections/{section_id}/tasks called with data: {data}")
    return jsonify(_boards().create_task(board_id, section_id, data))


@api.put("/boards/<board_id>/sections/<section_id>/tasks/<task_id>")
def api_update_task(board_id, section_id, task_id):
    current_app.logger.debug(f"PUT /api/boards/{board_id}/sections/{section_id}/tasks/{task_id} called")
    return jsonify(_boards().update_task(task_id, _body(), section_id=section_id, board_id=board_id))


@api.delete("/boards/<board_id>/sections/<section_id>/tasks/<task_id>")
def api_delete_task(board_id, section_id, task_id):
    current_app.logger.debug(f"DELETE /api/boards/{board_id}/sections/{section_id}/tasks/{task_id} called")
    _boards().delete_task(task_id, section_id=section_id, board_id=board_id)
    return jsonify({"success": True})


@api.post("/boards/<board_id>/tasks/<task_id>/move")
def api_move_task(board_id, task_id):
    data = _body()
    current_app.logger.debug(f"POST /api/boards/{board_id}/tasks/{task_id}/move called with {data}")
    result = _moves().move_task(task_id, data.get("fromSectionId"), data.get("toSectionId"), data.get("newIndex"))
    return jsonify({"success": True, **result})


# Standalone task routes (addressed by task id only)
@api.put("/tasks/<task_id>")
def api_update_task_standalone(task_id):
    current_app.logger.debug(f"PUT /api/tasks/{task_id} called")
    return jsonify(_boards().update_task(task_id, _body()))


@api.delete("/tasks/<task_id>")
def api_delete_task_standalone(task_id):
    current_app.logger.debug(f"DELETE /api/tasks/{task_id} called")
    _boards().delete_task(task_id)
    return jsonify({"success": True})


@api.post("/tasks/<task_id>/move")
def api_move_task_standalone(task_id):
    data = _body()
    current_app.logger.debug(f"POST /api/tasks/{task_id}/move called with {data}")
    if not data.get("toSectionId"):
        raise ValidationError("Target section ID is required")
    result = _moves().move_task_to(task_id, data["toSectionId"], data.get("newIndex"))
    return jsonify({"success": True, **result})
