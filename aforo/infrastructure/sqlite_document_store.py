"""DocumentStore local basado en SQLite. Cada lote es una transacción."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from aforo.application.ports.document_store import Filter, StoredDocument, matches, split_path
from aforo.domain.exceptions import WriteError

logger = structlog.get_logger()

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    path        TEXT PRIMARY KEY,
    parent      TEXT NOT NULL,
    doc_id      TEXT NOT NULL,
    data        TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_documents_parent ON documents(parent);
"""

_DATETIME_TAG = "__datetime__"


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    return value


def _from_json(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {_DATETIME_TAG}:
            return datetime.fromisoformat(value[_DATETIME_TAG])
        return {k: _from_json(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_json(v) for v in value]
    return value


def encode_document(data: dict[str, Any]) -> str:
    return json.dumps(_to_json(data), ensure_ascii=False)


def decode_document(raw: str) -> dict[str, Any]:
    return _from_json(json.loads(raw))


class SqliteBatch:
    def __init__(self, store: "SqliteDocumentStore") -> None:
        self._store = store
        self._ops: list[tuple[str, str, dict[str, Any]]] = []
        self._committed = False

    def create(self, path: str, fields: dict[str, Any]) -> None:
        split_path(path)
        self._ops.append(("create", path, dict(fields)))

    def upsert(self, path: str, fields: dict[str, Any]) -> None:
        split_path(path)
        self._ops.append(("upsert", path, dict(fields)))

    def commit(self) -> None:
        if self._committed:
            raise WriteError("el lote ya fue confirmado")
        self._committed = True
        self._store._apply(self._ops)


class SqliteDocumentStore:
    """Almacén de documentos jerárquico (colección/doc/sub-colección/doc) sobre una tabla."""

    def __init__(self, db_path: str) -> None:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.info("sqlite_store_initialized", db_path=db_path)

    def begin_batch(self) -> SqliteBatch:
        return SqliteBatch(self)

    def get_document(self, path: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT data FROM documents WHERE path=?", (path.strip("/"),)
        ).fetchone()
        if not row:
            return None
        return decode_document(row[0])

    def list_documents(self, collection_path: str) -> list[StoredDocument]:
        cursor = self._conn.execute(
            "SELECT doc_id, data FROM documents WHERE parent=? ORDER BY doc_id",
            (collection_path.strip("/"),),
        )
        return [StoredDocument(id=doc_id, data=decode_document(data)) for doc_id, data in cursor]

    def query(self, collection_path: str, filters: list[Filter]) -> list[StoredDocument]:
        return [doc for doc in self.list_documents(collection_path) if matches(doc.data, filters)]

    def _apply(self, ops: list[tuple[str, str, dict[str, Any]]]) -> None:
        now = datetime.now(UTC).isoformat()
        try:
            self._conn.execute("BEGIN IMMEDIATE")
            for kind, path, fields in ops:
                path = path.strip("/")
                parent, doc_id = split_path(path)
                row = self._conn.execute(
                    "SELECT data FROM documents WHERE path=?", (path,)
                ).fetchone()
                if kind == "create":
                    if row:
                        raise WriteError(f"el documento ya existe: {path}")
                    data = fields
                else:
                    data = {**(decode_document(row[0]) if row else {}), **fields}
                self._conn.execute(
                    """INSERT INTO documents (path, parent, doc_id, data, updated_at)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT(path) DO UPDATE SET data=excluded.data,
                                                       updated_at=excluded.updated_at""",
                    (path, parent, doc_id, encode_document(data), now),
                )
            self._conn.execute("COMMIT")
        except WriteError as e:
            self._conn.execute("ROLLBACK")
            logger.error("sqlite_batch_failed", error=e.reason, writes=len(ops))
            raise
        except sqlite3.Error as e:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            logger.error("sqlite_batch_failed", error=str(e), writes=len(ops))
            raise WriteError(str(e)) from e
        logger.debug("sqlite_batch_committed", writes=len(ops))

    def close(self) -> None:
        """Cierra la conexión a la base de datos."""
        self._conn.close()
