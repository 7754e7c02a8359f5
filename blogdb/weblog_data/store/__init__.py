"""
Document store backends for the web log data layer.

Backends:
    - SQLiteDocumentStore: JSON text column, revision side tables
    - PostgresDocumentStore: JSONB column, revision side tables
    - MongoDocumentStore: native documents, embedded revisions

The backend is chosen once, from the connection URI, by create_document_store.
Backend modules are imported lazily so only the selected driver is needed.

Invariants:
    - All backends give identical observable results for the same queries
    - All backends apply a batch atomically
"""

from .base import (
    ArrayOverlap,
    CompareOp,
    Comparison,
    DeleteByQuery,
    DeleteDocuments,
    DeleteRevisions,
    DeleteRevisionsByQuery,
    DocumentQuery,
    DocumentStore,
    DocumentStoreBase,
    FieldIn,
    InsertDocuments,
    InsertRevisions,
    Operation,
    PatchDocuments,
    ReplaceDocuments,
    SaveDocuments,
    Sort,
    by_web_log,
    create_document_store,
)
from .tables import Table

__all__ = [
    "ArrayOverlap",
    "CompareOp",
    "Comparison",
    "DeleteByQuery",
    "DeleteDocuments",
    "DeleteRevisions",
    "DeleteRevisionsByQuery",
    "DocumentQuery",
    "DocumentStore",
    "DocumentStoreBase",
    "FieldIn",
    "InsertDocuments",
    "InsertRevisions",
    "Operation",
    "PatchDocuments",
    "ReplaceDocuments",
    "SaveDocuments",
    "Sort",
    "Table",
    "by_web_log",
    "create_document_store",
]
