"""
Base protocol and types for the document store abstraction.

This module defines the DocumentStore protocol every backend implements, the
query values the data classes build, and the batch operations that make up
one transaction.

A store keeps whole entities as documents (PascalCase field names, see
model.support). Relational backends hold them in a JSON column with revisions
in side tables; the document backend stores them natively with revisions
embedded. Callers never see the difference.

Invariants:
    - A missing document is None, never an exception
    - Containment criteria match documents that are a superset of the pattern:
      nested dicts compare by path, lists require every listed element
    - Empty FieldIn / ArrayOverlap value lists match nothing
    - execute_batch applies every operation or none of them
    - Returned documents never contain the Revisions field

How to change safely:
    - Protocol changes require updating all three implementations
    - New query features need the same semantics in every backend; add a
      case to the integration tests, which run against each backend
"""

from __future__ import annotations

import logging
import re
from abc import abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable

from ..config import Backend, DatabaseConfig, backend_for_uri, redact_uri
from ..errors import UnsupportedBackendError

logger = logging.getLogger(__name__)

_FIELD_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]*(\.[A-Za-z][A-Za-z0-9]*)*$")


def check_field(path: str) -> str:
    """Validate a (dotted) document field path.

    Field paths are written into SQL text, so only plain identifiers pass.

    Raises:
        ValueError: If the path is not a plain dotted identifier.
    """
    if not _FIELD_PATTERN.match(path):
        raise ValueError(f"Invalid document field path: {path!r}")
    return path


def flatten_criteria(criteria: dict[str, Any], prefix: str = "") -> Iterator[tuple[str, Any]]:
    """Yield (dotted path, value) pairs for every leaf of a containment pattern."""
    for key, value in criteria.items():
        path = check_field(f"{prefix}{key}")
        if isinstance(value, dict):
            yield from flatten_criteria(value, f"{path}.")
        else:
            yield path, value


class CompareOp(Enum):
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="


@dataclass(frozen=True)
class FieldIn:
    """Scalar field equals one of the values."""

    field: str
    values: Sequence[Any]


@dataclass(frozen=True)
class ArrayOverlap:
    """Array field contains at least one of the values."""

    field: str
    values: Sequence[Any]


@dataclass(frozen=True)
class Comparison:
    """Field compares to a value; NULL/missing fields never match."""

    field: str
    op: CompareOp
    value: Any


Predicate = Union[FieldIn, ArrayOverlap, Comparison]


@dataclass(frozen=True)
class Sort:
    """One ordering key.

    Attributes:
        field: Dotted field path
        descending: Sort high to low
        case_insensitive: Compare text ignoring case
        nulls_first: Put missing/null values before the others
    """

    field: str
    descending: bool = False
    case_insensitive: bool = False
    nulls_first: bool = False


@dataclass(frozen=True)
class DocumentQuery:
    """What to find, in which order, and which top-level fields to leave out.

    Attributes:
        criteria: Containment pattern (partial document)
        where: Additional predicates, all of which must hold
        order_by: Ordering keys, most significant first
        limit: Maximum documents returned
        offset: Documents skipped before the first returned
        exclude: Top-level fields removed from returned documents
    """

    criteria: dict[str, Any] = field(default_factory=dict)
    where: tuple[Predicate, ...] = ()
    order_by: tuple[Sort, ...] = ()
    limit: int | None = None
    offset: int = 0
    exclude: tuple[str, ...] = ()

    def page(self, page_nbr: int, page_size: int) -> DocumentQuery:
        """Restrict to one page, fetching one extra row to signal a next page."""
        return replace(self, limit=page_size + 1, offset=(max(page_nbr, 1) - 1) * page_size)


def by_web_log(web_log_id: str, **criteria: Any) -> dict[str, Any]:
    """Containment pattern scoped to a web log."""
    return {"WebLogId": web_log_id, **criteria}


@dataclass(frozen=True)
class InsertDocuments:
    table: str
    documents: Sequence[dict[str, Any]]


@dataclass(frozen=True)
class SaveDocuments:
    """Insert documents, replacing any with the same Id."""

    table: str
    documents: Sequence[dict[str, Any]]


@dataclass(frozen=True)
class ReplaceDocuments:
    """Replace existing documents; ids with no document are ignored."""

    table: str
    documents: Sequence[dict[str, Any]]


@dataclass(frozen=True)
class PatchDocuments:
    """Merge top-level fields into existing documents."""

    table: str
    patches: Sequence[tuple[str, dict[str, Any]]]


@dataclass(frozen=True)
class DeleteDocuments:
    table: str
    ids: Sequence[str]


@dataclass(frozen=True)
class DeleteByQuery:
    table: str
    query: DocumentQuery


@dataclass(frozen=True)
class InsertRevisions:
    """Add revisions; entries are (owning document id, revision document)."""

    table: str
    entries: Sequence[tuple[str, dict[str, Any]]]


@dataclass(frozen=True)
class DeleteRevisions:
    """Remove revisions; entries are (owning document id, AsOf string)."""

    table: str
    entries: Sequence[tuple[str, str]]


@dataclass(frozen=True)
class DeleteRevisionsByQuery:
    """Remove every revision of the documents matching the query."""

    table: str
    query: DocumentQuery


Operation = Union[
    InsertDocuments,
    SaveDocuments,
    ReplaceDocuments,
    PatchDocuments,
    DeleteDocuments,
    DeleteByQuery,
    InsertRevisions,
    DeleteRevisions,
    DeleteRevisionsByQuery,
]


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store backends.

    All implementations must:
    - Keep the tenant key inside the query predicate, never as a post-filter
    - Apply a batch atomically
    - Let driver errors propagate unmodified
    - Be safe for concurrent use from one event loop
    """

    @abstractmethod
    async def start_up(self) -> None:
        """Create tables/collections and indexes that do not exist yet."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def find(self, table: str, query: DocumentQuery) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def count(self, table: str, query: DocumentQuery) -> int:
        ...

    @abstractmethod
    async def find_revisions(self, table: str, document_id: str) -> list[dict[str, Any]]:
        """Revisions of one document, newest first."""
        ...

    @abstractmethod
    async def find_revisions_for(
        self, table: str, query: DocumentQuery
    ) -> dict[str, list[dict[str, Any]]]:
        """Revisions of every matching document, keyed by document id, newest first."""
        ...

    @abstractmethod
    async def execute_batch(self, operations: Sequence[Operation]) -> None:
        ...

    async def find_one(self, table: str, query: DocumentQuery) -> dict[str, Any] | None:
        ...

    async def find_by_id(
        self,
        table: str,
        document_id: str,
        web_log_id: str | None = None,
        exclude: tuple[str, ...] = (),
    ) -> dict[str, Any] | None:
        ...

    async def exists(self, table: str, query: DocumentQuery) -> bool:
        ...

    async def insert(self, table: str, document: dict[str, Any]) -> None:
        ...

    async def save(self, table: str, document: dict[str, Any]) -> None:
        ...

    async def update(self, table: str, document: dict[str, Any]) -> None:
        ...

    async def patch(self, table: str, document_id: str, fields: dict[str, Any]) -> None:
        ...

    async def delete(self, table: str, document_id: str) -> None:
        ...


class DocumentStoreBase:
    """Operations every backend derives from its primitives.

    Subclasses provide find, count and execute_batch; the single-document
    helpers below are expressed through them.
    """

    async def find(self, table: str, query: DocumentQuery) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def count(self, table: str, query: DocumentQuery) -> int:
        raise NotImplementedError

    async def execute_batch(self, operations: Sequence[Operation]) -> None:
        raise NotImplementedError

    async def find_one(self, table: str, query: DocumentQuery) -> dict[str, Any] | None:
        found = await self.find(table, replace(query, limit=1))
        return found[0] if found else None

    async def find_by_id(
        self,
        table: str,
        document_id: str,
        web_log_id: str | None = None,
        exclude: tuple[str, ...] = (),
    ) -> dict[str, Any] | None:
        criteria: dict[str, Any] = {"Id": document_id}
        if web_log_id is not None:
            criteria["WebLogId"] = web_log_id
        return await self.find_one(table, DocumentQuery(criteria=criteria, exclude=exclude))

    async def exists(self, table: str, query: DocumentQuery) -> bool:
        found = await self.find(table, replace(query, limit=1, order_by=()))
        return bool(found)

    async def insert(self, table: str, document: dict[str, Any]) -> None:
        await self.execute_batch([InsertDocuments(table, [document])])

    async def save(self, table: str, document: dict[str, Any]) -> None:
        await self.execute_batch([SaveDocuments(table, [document])])

    async def update(self, table: str, document: dict[str, Any]) -> None:
        await self.execute_batch([ReplaceDocuments(table, [document])])

    async def patch(self, table: str, document_id: str, fields: dict[str, Any]) -> None:
        await self.execute_batch([PatchDocuments(table, [(document_id, fields)])])

    async def delete(self, table: str, document_id: str) -> None:
        await self.execute_batch([DeleteDocuments(table, [document_id])])


def create_document_store(config: DatabaseConfig | str) -> DocumentStore:
    """Factory function to create a document store from its connection URI.

    Args:
        config: Database configuration, or just the connection URI

    Returns:
        Appropriate DocumentStore implementation

    Raises:
        UnsupportedBackendError: If the URI scheme has no backend
    """
    if isinstance(config, str):
        config = DatabaseConfig(uri=config)

    backend = backend_for_uri(config.uri)
    if backend == Backend.SQLITE:
        from .sqlite import SQLiteDocumentStore

        return SQLiteDocumentStore.from_config(config)
    elif backend == Backend.POSTGRES:
        from .postgres import PostgresDocumentStore

        return PostgresDocumentStore.from_config(config)
    elif backend == Backend.MONGODB:
        from .mongo import MongoDocumentStore

        return MongoDocumentStore.from_config(config)

    scheme = config.uri.split(":", 1)[0] if ":" in config.uri else config.uri
    raise UnsupportedBackendError(redact_uri(config.uri), scheme)
