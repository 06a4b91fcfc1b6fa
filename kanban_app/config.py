from __future__ import annotations

import os
import secrets
from typing import Any, Dict, Mapping


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    """Read the KANBAN_* environment, then apply explicit overrides on top."""
    config: Dict[str, Any] = {
        "KANBAN_DB": os.getenv("KANBAN_DB", "sqlite:///kanban.db"),
        "KANBAN_PORT": int(os.getenv("KANBAN_PORT", 5000)),
        "KANBAN_PIN": os.getenv("KANBAN_PIN", "").strip(),
        "KANBAN_SECRET_KEY": os.getenv("KANBAN_SECRET_KEY") or secrets.token_hex(32),
        "KANBAN_DEBUG": _env_bool("KANBAN_DEBUG"),
        "KANBAN_IMPORT_FILE": os.getenv("KANBAN_IMPORT_FILE", "").strip(),
        "KANBAN_WRITE_RETRIES": int(os.getenv("KANBAN_WRITE_RETRIES", 5)),
    }
    if overrides:
        config.update(overrides)
    if config["KANBAN_WRITE_RETRIES"] < 1:
        raise ValueError("KANBAN_WRITE_RETRIES must be at least 1")
    return config
