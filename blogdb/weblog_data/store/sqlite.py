"""
SQLite document store.

Documents are kept as JSON text and queried with SQLite's built-in JSON
functions: json_extract for field paths, json_each for array membership,
json_set for patches and json_remove for projections.

A connection is opened per operation, so one store instance can be shared by
concurrent callers; WAL mode lets readers proceed while a batch is written.

Invariants:
    - Write batches run under BEGIN IMMEDIATE and either COMMIT or ROLLBACK
    - Foreign keys are enforced on every connection
    - Case-insensitive sorts use COLLATE NOCASE; everything else is BINARY

How to change safely:
    - The JSON functions need SQLite 3.38+ (bundled with current Pythons)
    - Test with concurrent writers before changing pragmas
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..config import DatabaseConfig
from .base import ArrayOverlap, Comparison, FieldIn, Sort, check_field, flatten_criteria
from .relational import RelationalDocumentStore, Statement
from .tables import DOCUMENT_TABLES, INDEXES, REVISION_TABLES, Table, index_name

logger = logging.getLogger(__name__)


def sqlite_path(uri: str) -> str:
    """Extract the database file path from a sqlite URI.

    sqlite:///relative.db and sqlite:////absolute/path.db follow the usual
    three/four slash convention; sqlite:file.db is also accepted.
    """
    rest = uri.split(":", 1)[1]
    if rest.startswith("///"):
        return rest[3:]
    if rest.startswith("//"):
        return rest[2:]
    return rest


def _json_path(path: str) -> str:
    return f"'$.{check_field(path)}'"


def _extract(path: str) -> str:
    return f"json_extract(data, {_json_path(path)})"


class SQLiteDocumentStore(RelationalDocumentStore):
    """Document store backed by a single SQLite file.

    Attributes:
        db_path: Path to the database file
        busy_timeout_ms: How long to wait for a locked database
        wal_mode: Whether the database runs in WAL journal mode
    """

    param = "?"
    no_limit = "-1"

    def __init__(self, db_path: str | Path, busy_timeout_ms: int = 5000, wal_mode: bool = True) -> None:
        if str(db_path) in ("", ":memory:"):
            raise ValueError("SQLiteDocumentStore needs a database file, not an in-memory database")
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self.wal_mode = wal_mode
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> SQLiteDocumentStore:
        return cls(
            sqlite_path(config.uri),
            busy_timeout_ms=config.sqlite_busy_timeout_ms,
            wal_mode=config.sqlite_wal_mode,
        )

    @contextmanager
    def _cursor(self, write: bool = False) -> Iterator[sqlite3.Cursor]:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000,
            isolation_level=None,
        )
        try:
            conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            conn.execute("PRAGMA foreign_keys = ON")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
                conn.execute("PRAGMA synchronous = NORMAL")

            cursor = conn.cursor()
            if not write:
                yield cursor
                return

            cursor.execute("BEGIN IMMEDIATE")
            try:
                yield cursor
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()

    async def close(self) -> None:
        # Connections are per operation; nothing is held open
        pass

    def _schema_statements(self) -> list[str]:
        statements = [
            f"CREATE TABLE IF NOT EXISTS {table} (id TEXT PRIMARY KEY, data TEXT NOT NULL)"
            for table in DOCUMENT_TABLES
        ]
        for table, revisions in REVISION_TABLES.items():
            statements.append(
                f"CREATE TABLE IF NOT EXISTS {revisions} ("
                f"{table}_id TEXT NOT NULL REFERENCES {table} (id) ON DELETE CASCADE, "
                "as_of TEXT NOT NULL, "
                "revision_text TEXT NOT NULL, "
                f"PRIMARY KEY ({table}_id, as_of))"
            )
        for table, indexes in INDEXES.items():
            for fields in indexes:
                columns = ", ".join(_extract(f) for f in fields)
                statements.append(
                    f"CREATE INDEX IF NOT EXISTS {index_name(table, fields)} ON {table} ({columns})"
                )
        statements.append(f"CREATE TABLE IF NOT EXISTS {Table.DB_VERSION} (id TEXT PRIMARY KEY)")
        return statements

    def _containment(self, criteria: dict[str, Any]) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for path, value in flatten_criteria(criteria):
            if value is None:
                clauses.append(f"{_extract(path)} IS NULL")
            elif isinstance(value, list):
                for item in value:
                    clauses.append(
                        f"EXISTS (SELECT 1 FROM json_each(data, {_json_path(path)}) WHERE value = ?)"
                    )
                    params.append(item)
            else:
                clauses.append(f"{_extract(path)} = ?")
                params.append(value)
        return " AND ".join(clauses), params

    def _field_in(self, predicate: FieldIn) -> tuple[str, list[Any]]:
        marks = ", ".join("?" for _ in predicate.values)
        return f"{_extract(predicate.field)} IN ({marks})", list(predicate.values)

    def _array_overlap(self, predicate: ArrayOverlap) -> tuple[str, list[Any]]:
        marks = ", ".join("?" for _ in predicate.values)
        return (
            f"EXISTS (SELECT 1 FROM json_each(data, {_json_path(predicate.field)}) "
            f"WHERE value IN ({marks}))",
            list(predicate.values),
        )

    def _comparison(self, predicate: Comparison) -> tuple[str, list[Any]]:
        return f"{_extract(predicate.field)} {predicate.op.value} ?", [predicate.value]

    def _sort_expression(self, sort: Sort) -> str:
        collation = " COLLATE NOCASE" if sort.case_insensitive else ""
        return f"{_extract(sort.field)}{collation}{self._sort_suffix(sort)}"

    def _projection(self, exclude: tuple[str, ...]) -> str:
        if not exclude:
            return "data"
        return f"json_remove(data, {', '.join(_json_path(f) for f in exclude)})"

    def _encode(self, document: dict[str, Any]) -> str:
        return json.dumps(document, separators=(",", ":"))

    def _decode(self, value: Any) -> dict[str, Any]:
        return json.loads(value)

    def _patch_statement(self, table: str, document_id: str, fields: dict[str, Any]) -> Statement:
        if not fields:
            return (f"UPDATE {table} SET data = data WHERE id = ?", [(document_id,)])
        assignments = ", ".join(f"{_json_path(key)}, json(?)" for key in fields)
        params = [json.dumps(value) for value in fields.values()]
        return (
            f"UPDATE {table} SET data = json_set(data, {assignments}) WHERE id = ?",
            [(*params, document_id)],
        )
