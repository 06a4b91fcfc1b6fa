"""Data access layer: the whole snapshot is read, mutated in memory and written back.

Every mutation of one store runs on a single-writer lane (a lock held for the
whole read/mutate/write cycle) and every write is a compare-and-swap on the
document version, so writers outside this process cannot silently clobber
each other either: a conflicting write re-reads and re-applies the mutation.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Tuple, TypeVar

from flask import Flask
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import PersistenceError, VersionConflict
from .models import DOCUMENT_ID, Document, utcnow, db
from .snapshot import IdFactory, Snapshot, check_invariants, default_snapshot, random_id, unique_id

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DocumentStore:
    def __init__(self, app: Flask, max_retries: int = 5, id_factory: IdFactory = random_id):
        self._app = app
        self._id_factory = id_factory
        self._lock = threading.Lock()
        self.max_retries = max_retries

    def new_id(self, snapshot: Snapshot) -> str:
        return unique_id(snapshot, self._id_factory)

    def read_snapshot(self) -> Tuple[Snapshot, int]:
        """Return the full document and its version stamp, seeding a default board on first use."""
        with self._app.app_context():
            return self._read()

    def write_snapshot(self, snapshot: Snapshot, expected_version: int | None = None) -> int:
        """Overwrite the full document; with ``expected_version`` only if nobody wrote since."""
        with self._app.app_context():
            return self._write(snapshot, expected_version)

    def mutate(self, mutation: Callable[[Snapshot], T]) -> T:
        """Apply ``mutation`` to a fresh snapshot and persist it as one logical step.

        If ``mutation`` raises, nothing is written.
        """
        with self._lock, self._app.app_context():
            for attempt in range(1, self.max_retries + 1):
                snapshot, version = self._read()
                result = mutation(snapshot)
                problems = check_invariants(snapshot)
                if problems:
                    logger.error(f"Refusing to persist inconsistent document: {problems}")
                    raise PersistenceError("Mutation left the board data inconsistent")
                try:
                    self._write(snapshot, version)
                except VersionConflict:
                    logger.warning(f"Document changed underneath us (attempt {attempt}/{self.max_retries}), retrying")
                    continue
                return result
        raise PersistenceError(f"Gave up after {self.max_retries} conflicting writes")

    # Helpers (caller holds an app context)
    # ────────────────────────────────────────────────────────────────────────────
    def _select(self):
        return db.session.execute(
            select(Document.payload, Document.version).where(Document.id == DOCUMENT_ID)
        ).first()

    def _read(self) -> Tuple[Snapshot, int]:
        try:
            row = self._select()
            if row is None:
                return self._seed()
            db.session.commit()
            return row.payload, row.version
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"Failed to read board data: {exc}")
            raise PersistenceError("Failed to read board data") from exc

    def _seed(self) -> Tuple[Snapshot, int]:
        snapshot = default_snapshot(self.new_id)
        db.session.add(Document(id=DOCUMENT_ID, payload=snapshot, version=1))
        try:
            db.session.commit()
        except IntegrityError:
            # someone else seeded first; use theirs
            db.session.rollback()
            row = self._select()
            db.session.commit()
            return row.payload, row.version
        logger.info(f"No board data found, seeded default board {snapshot['activeBoard']}.")
        return snapshot, 1

    def _write(self, snapshot: Snapshot, expected_version: int | None) -> int:
        table = Document.__table__
        try:
            if expected_version is None:
                current = db.session.execute(select(Document.version).where(Document.id == DOCUMENT_ID)).scalar()
                if current is None:
                    db.session.add(Document(id=DOCUMENT_ID, payload=snapshot, version=1))
                    db.session.commit()
                    return 1
                expected_version = current
            result = db.session.execute(
                update(table)
                .where(table.c.id == DOCUMENT_ID, table.c.version == expected_version)
                .values(payload=snapshot, version=expected_version + 1, updated_at=utcnow())
            )
            if result.rowcount != 1:
                db.session.rollback()
                conflict = True
            else:
                db.session.commit()
                conflict = False
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"Failed to write board data: {exc}")
            raise PersistenceError("Failed to write board data") from exc
        if conflict:
            raise VersionConflict(expected_version)
        logger.debug(f"Document written at version {expected_version + 1}")
        return expected_version + 1
