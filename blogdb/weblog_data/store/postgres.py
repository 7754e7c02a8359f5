"""
PostgreSQL document store.

Documents live in JSONB columns. Containment criteria compile to the @>
operator (served by a GIN jsonb_path_ops index), array overlap to ?| and
field paths to #>> text extraction.

psycopg2 is blocking, so every call runs on a dedicated thread pool sized to
the connection pool; a thread never waits for a pooled connection.

Invariants:
    - One pooled connection per batch; psycopg2's connection context manager
      commits on success and rolls back on error
    - Text comparisons and non-case-insensitive sorts use the "C" collation so
      ISO-8601 instants order chronologically regardless of the database locale
    - Revision as_of columns are declared COLLATE "C" for the same reason

How to change safely:
    - Keep pool size and executor size equal
    - Changing the GIN operator class changes which operators can use the index
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any

from psycopg2.extras import Json
from psycopg2.pool import ThreadedConnectionPool

from ..config import DatabaseConfig, redact_uri
from .base import ArrayOverlap, Comparison, FieldIn, Sort, check_field
from .relational import RelationalDocumentStore, Statement, text_path
from .tables import DOCUMENT_TABLES, INDEXES, REVISION_TABLES, Table, index_name

logger = logging.getLogger(__name__)


def _text(path: str) -> str:
    return f"(data #>> '{{{','.join(text_path(path))}}}')"


def _json(path: str) -> str:
    return f"(data #> '{{{','.join(text_path(path))}}}')"


class PostgresDocumentStore(RelationalDocumentStore):
    """Document store backed by PostgreSQL JSONB tables.

    Attributes:
        dsn: libpq connection string or postgresql:// URI
        min_connections: Connections opened when the pool is created
        max_connections: Upper bound on pooled connections and worker threads
    """

    param = "%s"
    no_limit = "ALL"

    def __init__(self, dsn: str, min_connections: int = 1, max_connections: int = 10) -> None:
        self.dsn = dsn
        self.min_connections = min_connections
        self.max_connections = max_connections
        self._pool: ThreadedConnectionPool | None = None
        self._pool_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_connections, thread_name_prefix="weblog-postgres"
        )

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> PostgresDocumentStore:
        return cls(
            config.uri,
            min_connections=config.postgres_min_connections,
            max_connections=config.postgres_max_connections,
        )

    def _get_pool(self) -> ThreadedConnectionPool:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadedConnectionPool(
                    self.min_connections, self.max_connections, dsn=self.dsn
                )
                logger.info(
                    "PostgreSQL pool opened",
                    extra={"dsn": redact_uri(self.dsn), "max_connections": self.max_connections},
                )
            return self._pool

    @contextmanager
    def _cursor(self, write: bool = False) -> Iterator[Any]:
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            with conn:
                with conn.cursor() as cursor:
                    yield cursor
        finally:
            pool.putconn(conn, close=bool(conn.closed))

    def _close_sync(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None

    async def close(self) -> None:
        await self._run(self._close_sync)
        self._executor.shutdown(wait=False)

    def _schema_statements(self) -> list[str]:
        statements: list[str] = []
        for table in DOCUMENT_TABLES:
            statements.append(
                f"CREATE TABLE IF NOT EXISTS {table} (id TEXT NOT NULL PRIMARY KEY, data JSONB NOT NULL)"
            )
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_document ON {table} USING GIN (data jsonb_path_ops)"
            )
        for table, revisions in REVISION_TABLES.items():
            statements.append(
                f"CREATE TABLE IF NOT EXISTS {revisions} ("
                f"{table}_id TEXT NOT NULL REFERENCES {table} (id) ON DELETE CASCADE, "
                'as_of TEXT COLLATE "C" NOT NULL, '
                "revision_text TEXT NOT NULL, "
                f"PRIMARY KEY ({table}_id, as_of))"
            )
        for table, indexes in INDEXES.items():
            for fields in indexes:
                columns = ", ".join(_text(f) for f in fields)
                statements.append(
                    f"CREATE INDEX IF NOT EXISTS {index_name(table, fields)} ON {table} ({columns})"
                )
        statements.append(f"CREATE TABLE IF NOT EXISTS {Table.DB_VERSION} (id TEXT NOT NULL PRIMARY KEY)")
        return statements

    def _containment(self, criteria: dict[str, Any]) -> tuple[str, list[Any]]:
        for key in criteria:
            check_field(key)
        return "data @> %s", [Json(criteria)]

    def _field_in(self, predicate: FieldIn) -> tuple[str, list[Any]]:
        return f"{_text(predicate.field)} = ANY(%s)", [[str(v) for v in predicate.values]]

    def _array_overlap(self, predicate: ArrayOverlap) -> tuple[str, list[Any]]:
        return f"{_json(predicate.field)} ?| %s", [[str(v) for v in predicate.values]]

    def _comparison(self, predicate: Comparison) -> tuple[str, list[Any]]:
        return f'{_text(predicate.field)} COLLATE "C" {predicate.op.value} %s', [predicate.value]

    def _sort_expression(self, sort: Sort) -> str:
        if sort.case_insensitive:
            expression = f"LOWER{_text(sort.field)}"
        else:
            expression = f'{_text(sort.field)} COLLATE "C"'
        return expression + self._sort_suffix(sort)

    def _projection(self, exclude: tuple[str, ...]) -> str:
        return "data" + "".join(f" - '{check_field(f)}'" for f in exclude)

    def _encode(self, document: dict[str, Any]) -> Json:
        return Json(document)

    def _decode(self, value: Any) -> dict[str, Any]:
        return value

    def _patch_statement(self, table: str, document_id: str, fields: dict[str, Any]) -> Statement:
        for key in fields:
            check_field(key)
        return (f"UPDATE {table} SET data = data || %s WHERE id = %s", [(Json(fields), document_id)])
