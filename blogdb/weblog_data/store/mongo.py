"""
MongoDB document store.

Documents are stored natively, keyed by _id = Id. Page and post revisions stay
embedded in their owner as a Revisions array and change through $push / $pull,
so there are no side collections. Reads go through aggregation pipelines so
case-insensitive ordering and null placement can be expressed without a
collation (a collation would also make equality matches case-insensitive).

Invariants:
    - Returned documents never carry _id, Revisions or pipeline helper fields
    - Batches run inside a multi-document transaction; this needs a replica
      set or mongos unless standalone mode is explicitly allowed
    - Instants are stored as the same fixed-width strings the relational
      stores use, so ordering and comparisons match across backends

How to change safely:
    - Keep pipeline helper fields prefixed with "__"
    - Saving uses $set so embedded revisions survive a document update
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession
from pymongo import ASCENDING, UpdateOne

from ..config import DatabaseConfig, redact_uri
from ..errors import ConfigurationError
from .base import (
    ArrayOverlap,
    CompareOp,
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
    check_field,
    flatten_criteria,
)
from .tables import DB_VERSION, DOCUMENT_TABLES, INDEXES, Table, index_name, revision_table

logger = logging.getLogger(__name__)

_OPERATORS = {
    CompareOp.LT: "$lt",
    CompareOp.LE: "$lte",
    CompareOp.GT: "$gt",
    CompareOp.GE: "$gte",
}


def _field(path: str) -> str:
    return "_id" if path == "Id" else check_field(path)


def _newest_first(revisions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(revisions, key=lambda r: r["AsOf"], reverse=True)


def build_filter(query: DocumentQuery) -> dict[str, Any]:
    """Translate a query's criteria and predicates into a MongoDB filter."""
    clauses: list[dict[str, Any]] = []

    for path, value in flatten_criteria(query.criteria):
        if isinstance(value, list):
            if value:
                clauses.append({_field(path): {"$all": value}})
        else:
            clauses.append({_field(path): value})

    for predicate in query.where:
        if isinstance(predicate, (FieldIn, ArrayOverlap)):
            clauses.append({_field(predicate.field): {"$in": list(predicate.values)}})
        elif isinstance(predicate, Comparison):
            clauses.append({_field(predicate.field): {_OPERATORS[predicate.op]: predicate.value}})
        else:
            raise TypeError(f"Unsupported predicate: {predicate!r}")

    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def build_pipeline(query: DocumentQuery) -> list[dict[str, Any]]:
    """Translate a query into an aggregation pipeline."""
    pipeline: list[dict[str, Any]] = [{"$match": build_filter(query)}]
    helpers: dict[str, Any] = {}
    sort: dict[str, int] = {}

    for i, order in enumerate(query.order_by):
        field = f"${check_field(order.field)}"
        is_null = {"$eq": [{"$ifNull": [field, None]}, None]}
        null_key = f"__null{i}"
        helpers[null_key] = {"$cond": [is_null, 0 if order.nulls_first else 1, 1 if order.nulls_first else 0]}
        sort[null_key] = ASCENDING
        if order.case_insensitive:
            key = f"__sort{i}"
            helpers[key] = {"$toLower": field}
        else:
            key = order.field
        sort[key] = -1 if order.descending else 1

    if helpers:
        pipeline.append({"$addFields": helpers})
    if sort:
        pipeline.append({"$sort": sort})
    if query.offset:
        pipeline.append({"$skip": int(query.offset)})
    if query.limit is not None:
        pipeline.append({"$limit": int(query.limit)})
    pipeline.append({"$unset": ["_id", "Revisions", *helpers, *(check_field(f) for f in query.exclude)]})
    return pipeline


class MongoDocumentStore(DocumentStoreBase):
    """Document store backed by a MongoDB database.

    Attributes:
        uri: mongodb:// or mongodb+srv:// connection URI
        allow_standalone: Apply batches without a transaction when the server
            cannot run transactions
    """

    def __init__(self, uri: str, database: str = "myweblog", allow_standalone: bool = False) -> None:
        self.uri = uri
        self.allow_standalone = allow_standalone
        self._client = AsyncIOMotorClient(uri)
        self._db = self._client.get_default_database(default=database)
        self._transactions_supported: bool | None = None
        self._detect_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> MongoDocumentStore:
        return cls(
            config.uri,
            database=config.mongodb_database,
            allow_standalone=config.mongodb_allow_standalone,
        )

    async def _use_transactions(self) -> bool:
        async with self._detect_lock:
            if self._transactions_supported is None:
                hello = await self._client.admin.command("hello")
                # Replica set members report setName; mongos reports isdbgrid
                self._transactions_supported = bool(
                    hello.get("setName") or hello.get("msg") == "isdbgrid"
                )
                if not self._transactions_supported and self.allow_standalone:
                    logger.warning(
                        "MongoDB server cannot run transactions; batches will not be atomic",
                        extra={"uri": redact_uri(self.uri)},
                    )
        if not self._transactions_supported and not self.allow_standalone:
            raise ConfigurationError(
                "MongoDB batches need a replica set or mongos; "
                "set WEBLOG_MONGODB_ALLOW_STANDALONE=true for development"
            )
        return self._transactions_supported

    async def start_up(self) -> None:
        await self._use_transactions()

        existing = set(await self._db.list_collection_names())
        for table in DOCUMENT_TABLES:
            if table not in existing:
                await self._db.create_collection(table)
                logger.info(f"Created collection {table}")

        for table, indexes in INDEXES.items():
            for fields in indexes:
                await self._db[table].create_index(
                    [(f, ASCENDING) for f in fields], name=index_name(table, fields)
                )

        await self._db[Table.DB_VERSION].update_one(
            {"_id": DB_VERSION}, {"$setOnInsert": {"Version": DB_VERSION}}, upsert=True
        )
        logger.info("MongoDocumentStore schema verified", extra={"db_version": DB_VERSION})

    async def close(self) -> None:
        self._client.close()

    async def find(self, table: str, query: DocumentQuery) -> list[dict[str, Any]]:
        cursor = self._db[table].aggregate(build_pipeline(query))
        return await cursor.to_list(length=None)

    async def count(self, table: str, query: DocumentQuery) -> int:
        return await self._db[table].count_documents(build_filter(query))

    async def find_revisions(self, table: str, document_id: str) -> list[dict[str, Any]]:
        revision_table(table)
        document = await self._db[table].find_one({"_id": document_id}, {"Revisions": 1})
        if document is None:
            return []
        return _newest_first(document.get("Revisions", []))

    async def find_revisions_for(
        self, table: str, query: DocumentQuery
    ) -> dict[str, list[dict[str, Any]]]:
        revision_table(table)
        found: dict[str, list[dict[str, Any]]] = {}
        async for document in self._db[table].find(build_filter(query), {"Revisions": 1}):
            revisions = document.get("Revisions", [])
            if revisions:
                found[document["_id"]] = _newest_first(revisions)
        return found

    async def execute_batch(self, operations: Sequence[Operation]) -> None:
        if not operations:
            return
        if await self._use_transactions():
            async with await self._client.start_session() as session:
                async with session.start_transaction():
                    for operation in operations:
                        await self._apply(operation, session)
        else:
            for operation in operations:
                await self._apply(operation, None)
        logger.debug("Batch committed", extra={"operations": len(operations)})

    async def _apply(self, operation: Operation, session: AsyncIOMotorClientSession | None) -> None:
        collection = self._db[operation.table]

        if isinstance(operation, InsertDocuments):
            if operation.documents:
                await collection.insert_many(
                    [{"_id": d["Id"], **d} for d in operation.documents], session=session
                )
            return
        if isinstance(operation, (SaveDocuments, ReplaceDocuments)):
            upsert = isinstance(operation, SaveDocuments)
            requests = [UpdateOne({"_id": d["Id"]}, {"$set": d}, upsert=upsert) for d in operation.documents]
        elif isinstance(operation, PatchDocuments):
            requests = [
                UpdateOne({"_id": doc_id}, {"$set": {check_field(k): v for k, v in fields.items()}})
                for doc_id, fields in operation.patches
                if fields
            ]
        elif isinstance(operation, DeleteDocuments):
            if operation.ids:
                await collection.delete_many({"_id": {"$in": list(operation.ids)}}, session=session)
            return
        elif isinstance(operation, DeleteByQuery):
            await collection.delete_many(build_filter(operation.query), session=session)
            return
        elif isinstance(operation, InsertRevisions):
            revision_table(operation.table)
            grouped: dict[str, list[dict[str, Any]]] = {}
            for owner, revision in operation.entries:
                grouped.setdefault(owner, []).append(revision)
            requests = [
                UpdateOne({"_id": owner}, {"$push": {"Revisions": {"$each": revisions}}})
                for owner, revisions in grouped.items()
            ]
        elif isinstance(operation, DeleteRevisions):
            revision_table(operation.table)
            removed: dict[str, list[str]] = {}
            for owner, as_of in operation.entries:
                removed.setdefault(owner, []).append(as_of)
            requests = [
                UpdateOne({"_id": owner}, {"$pull": {"Revisions": {"AsOf": {"$in": as_ofs}}}})
                for owner, as_ofs in removed.items()
            ]
        elif isinstance(operation, DeleteRevisionsByQuery):
            revision_table(operation.table)
            await collection.update_many(
                build_filter(operation.query), {"$set": {"Revisions": []}}, session=session
            )
            return
        else:
            raise TypeError(f"Unsupported batch operation: {operation!r}")

        if requests:
            await collection.bulk_write(requests, ordered=True, session=session)
