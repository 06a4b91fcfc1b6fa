from __future__ import annotations

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# The whole board state lives in one row and is rewritten in full on every mutation.
DOCUMENT_ID = 1


def utcnow():
    return datetime.now(timezone.utc)


# ORM models
# ────────────────────────────────────────────────────────────────────────────────
class Document(db.Model):
    __tablename__ = "document"

    id = db.Column(db.Integer, primary_key=True)
    payload = db.Column(db.JSON, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"Document(id={self.id}, version={self.version})"
