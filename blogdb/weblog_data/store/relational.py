"""
Document storage on relational engines.

Each document table has two columns: id (the document's Id) and data (the
whole document as JSON). Page and post revisions live in side tables keyed by
(owner id, as_of), so saving a page rewrites only the revisions that changed.

This module holds everything the SQLite and PostgreSQL stores share: SQL
assembly for queries and batch operations, and running blocking driver calls
off the event loop. Subclasses supply the connection handling and the dialect
helpers where the two engines differ.

Invariants:
    - Every batch runs in one transaction on one connection
    - Field paths are validated before being written into SQL; values are
      always bound parameters
    - Text ordering is explicit: case-insensitive sorts lower-case the value,
      all other text compares byte-wise

How to change safely:
    - New dialect helpers need an implementation in both subclasses
    - Schema changes must keep CREATE ... IF NOT EXISTS so start_up stays
      idempotent
"""

from __future__ import annotations

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import Executor
from contextlib import contextmanager
from typing import Any, TypeVar

from .base import (
    ArrayOverlap,
    Comparison,
    DeleteByQuery,
    DeleteDocuments,
    DeleteRevisions,
    DeleteRevisionsByQuery,
    DocumentQuery,
    DocumentStoreBase,
    FieldIn,
    InsertDocuments,
    InsertRevisions,
    Operation,
    PatchDocuments,
    ReplaceDocuments,
    SaveDocuments,
    Sort,
    check_field,
)
from .tables import DB_VERSION, DOCUMENT_TABLES, INDEXES, Table, revision_table

logger = logging.getLogger(__name__)

R = TypeVar("R")

Statement = tuple[str, list[Sequence[Any]]]

_KNOWN_TABLES = frozenset(DOCUMENT_TABLES)


def check_table(table: str) -> str:
    if table not in _KNOWN_TABLES:
        raise ValueError(f"Unknown document table: {table!r}")
    return table


class RelationalDocumentStore(DocumentStoreBase, ABC):
    """Document store over a DB-API 2.0 driver with JSON support.

    Attributes:
        param: The driver's parameter placeholder
        no_limit: LIMIT value meaning "no limit" (needed before OFFSET)
    """

    param: str = "?"
    no_limit: str = "ALL"

    _executor: Executor | None = None

    # ── Connection handling (subclasses) ─────────────────────

    @abstractmethod
    @contextmanager
    def _cursor(self, write: bool = False) -> Iterator[Any]:
        """Yield a cursor; with write=True the block runs in one transaction."""
        ...

    @abstractmethod
    def _schema_statements(self) -> list[str]:
        ...

    # ── Dialect helpers (subclasses) ─────────────────────────

    @abstractmethod
    def _containment(self, criteria: dict[str, Any]) -> tuple[str, list[Any]]:
        ...

    @abstractmethod
    def _field_in(self, predicate: FieldIn) -> tuple[str, list[Any]]:
        ...

    @abstractmethod
    def _array_overlap(self, predicate: ArrayOverlap) -> tuple[str, list[Any]]:
        ...

    @abstractmethod
    def _comparison(self, predicate: Comparison) -> tuple[str, list[Any]]:
        ...

    @abstractmethod
    def _sort_expression(self, sort: Sort) -> str:
        ...

    @abstractmethod
    def _projection(self, exclude: tuple[str, ...]) -> str:
        ...

    @abstractmethod
    def _encode(self, document: dict[str, Any]) -> Any:
        ...

    @abstractmethod
    def _decode(self, value: Any) -> dict[str, Any]:
        ...

    @abstractmethod
    def _patch_statement(self, table: str, document_id: str, fields: dict[str, Any]) -> Statement:
        ...

    # ── Execution ─────────────────────────────────────────────

    async def _run(self, func: Callable[..., R], *args: Any) -> R:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    # ── SQL assembly ──────────────────────────────────────────

    def _where(self, query: DocumentQuery) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        if query.criteria:
            sql, values = self._containment(query.criteria)
            if sql:
                clauses.append(sql)
                params.extend(values)

        for predicate in query.where:
            if isinstance(predicate, FieldIn):
                if not predicate.values:
                    clauses.append("1 = 0")
                    continue
                sql, values = self._field_in(predicate)
            elif isinstance(predicate, ArrayOverlap):
                if not predicate.values:
                    clauses.append("1 = 0")
                    continue
                sql, values = self._array_overlap(predicate)
            elif isinstance(predicate, Comparison):
                sql, values = self._comparison(predicate)
            else:
                raise TypeError(f"Unsupported predicate: {predicate!r}")
            clauses.append(sql)
            params.extend(values)

        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def _select(self, table: str, query: DocumentQuery) -> tuple[str, list[Any]]:
        where, params = self._where(query)
        sql = f"SELECT {self._projection(query.exclude)} FROM {check_table(table)}{where}"
        if query.order_by:
            sql += " ORDER BY " + ", ".join(self._sort_expression(s) for s in query.order_by)
        if query.limit is not None:
            sql += f" LIMIT {int(query.limit)}"
        elif query.offset:
            sql += f" LIMIT {self.no_limit}"
        if query.offset:
            sql += f" OFFSET {int(query.offset)}"
        return sql, params

    @staticmethod
    def _sort_suffix(sort: Sort) -> str:
        direction = " DESC" if sort.descending else ""
        nulls = " NULLS FIRST" if sort.nulls_first else " NULLS LAST"
        return direction + nulls

    def _compile(self, operation: Operation) -> list[Statement]:
        """Translate one batch operation into statements with parameter sets."""
        p = self.param
        table = check_table(operation.table)

        if isinstance(operation, InsertDocuments):
            return [
                (
                    f"INSERT INTO {table} (id, data) VALUES ({p}, {p})",
                    [(d["Id"], self._encode(d)) for d in operation.documents],
                )
            ]
        if isinstance(operation, SaveDocuments):
            return [
                (
                    f"INSERT INTO {table} (id, data) VALUES ({p}, {p}) "
                    "ON CONFLICT (id) DO UPDATE SET data = excluded.data",
                    [(d["Id"], self._encode(d)) for d in operation.documents],
                )
            ]
        if isinstance(operation, ReplaceDocuments):
            return [
                (
                    f"UPDATE {table} SET data = {p} WHERE id = {p}",
                    [(self._encode(d), d["Id"]) for d in operation.documents],
                )
            ]
        if isinstance(operation, PatchDocuments):
            return [self._patch_statement(table, doc_id, fields) for doc_id, fields in operation.patches]
        if isinstance(operation, DeleteDocuments):
            return [(f"DELETE FROM {table} WHERE id = {p}", [(doc_id,) for doc_id in operation.ids])]
        if isinstance(operation, DeleteByQuery):
            where, params = self._where(operation.query)
            return [(f"DELETE FROM {table}{where}", [params])]

        revisions = revision_table(table)
        if isinstance(operation, InsertRevisions):
            return [
                (
                    f"INSERT INTO {revisions} ({table}_id, as_of, revision_text) VALUES ({p}, {p}, {p})",
                    [(owner, rev["AsOf"], rev["Text"]) for owner, rev in operation.entries],
                )
            ]
        if isinstance(operation, DeleteRevisions):
            return [
                (
                    f"DELETE FROM {revisions} WHERE {table}_id = {p} AND as_of = {p}",
                    [(owner, as_of) for owner, as_of in operation.entries],
                )
            ]
        if isinstance(operation, DeleteRevisionsByQuery):
            where, params = self._where(operation.query)
            return [
                (
                    f"DELETE FROM {revisions} WHERE {table}_id IN (SELECT id FROM {table}{where})",
                    [params],
                )
            ]
        raise TypeError(f"Unsupported batch operation: {operation!r}")

    # ── Blocking implementations ─────────────────────────────

    def _start_up_sync(self) -> None:
        with self._cursor(write=True) as cursor:
            for statement in self._schema_statements():
                cursor.execute(statement)
            cursor.execute(
                f"INSERT INTO {Table.DB_VERSION} (id) VALUES ({self.param}) ON CONFLICT DO NOTHING",
                (DB_VERSION,),
            )

    def _find_sync(self, table: str, query: DocumentQuery) -> list[dict[str, Any]]:
        sql, params = self._select(table, query)
        with self._cursor() as cursor:
            cursor.execute(sql, params)
            return [self._decode(row[0]) for row in cursor.fetchall()]

    def _count_sync(self, table: str, query: DocumentQuery) -> int:
        where, params = self._where(query)
        with self._cursor() as cursor:
            cursor.execute(f"SELECT COUNT(*) FROM {check_table(table)}{where}", params)
            return int(cursor.fetchone()[0])

    def _find_revisions_sync(self, table: str, document_id: str) -> list[dict[str, Any]]:
        table = check_table(table)
        sql = (
            f"SELECT as_of, revision_text FROM {revision_table(table)} "
            f"WHERE {table}_id = {self.param} ORDER BY as_of DESC"
        )
        with self._cursor() as cursor:
            cursor.execute(sql, (document_id,))
            return [{"AsOf": as_of, "Text": text} for as_of, text in cursor.fetchall()]

    def _find_revisions_for_sync(
        self, table: str, query: DocumentQuery
    ) -> dict[str, list[dict[str, Any]]]:
        table = check_table(table)
        where, params = self._where(query)
        sql = (
            f"SELECT {table}_id, as_of, revision_text FROM {revision_table(table)} "
            f"WHERE {table}_id IN (SELECT id FROM {table}{where}) "
            f"ORDER BY {table}_id, as_of DESC"
        )
        found: dict[str, list[dict[str, Any]]] = {}
        with self._cursor() as cursor:
            cursor.execute(sql, params)
            for owner, as_of, text in cursor.fetchall():
                found.setdefault(owner, []).append({"AsOf": as_of, "Text": text})
        return found

    def _execute_batch_sync(self, statements: list[Statement]) -> None:
        with self._cursor(write=True) as cursor:
            for sql, param_sets in statements:
                if len(param_sets) == 1:
                    cursor.execute(sql, param_sets[0])
                else:
                    cursor.executemany(sql, param_sets)

    # ── DocumentStore ─────────────────────────────────────────

    async def start_up(self) -> None:
        await self._run(self._start_up_sync)
        logger.info(f"{type(self).__name__} schema verified", extra={"db_version": DB_VERSION})

    async def find(self, table: str, query: DocumentQuery) -> list[dict[str, Any]]:
        return await self._run(self._find_sync, table, query)

    async def count(self, table: str, query: DocumentQuery) -> int:
        return await self._run(self._count_sync, table, query)

    async def find_revisions(self, table: str, document_id: str) -> list[dict[str, Any]]:
        return await self._run(self._find_revisions_sync, table, document_id)

    async def find_revisions_for(
        self, table: str, query: DocumentQuery
    ) -> dict[str, list[dict[str, Any]]]:
        return await self._run(self._find_revisions_for_sync, table, query)

    async def execute_batch(self, operations: Sequence[Operation]) -> None:
        statements = [
            (sql, param_sets)
            for operation in operations
            for sql, param_sets in self._compile(operation)
            if param_sets
        ]
        if not statements:
            return
        await self._run(self._execute_batch_sync, statements)
        logger.debug(
            "Batch committed",
            extra={"operations": len(operations), "statements": len(statements)},
        )


def text_path(path: str) -> list[str]:
    """Split a validated dotted field path into its segments."""
    return check_field(path).split(".")
