"""
Web log data - polyglot document persistence for a multi-tenant blogging
platform.

One data contract (WebLogData) is implemented over three storage engines:
- SQLite: documents in a JSON text column, revisions in side tables
- PostgreSQL: documents in a JSONB column, revisions in side tables
- MongoDB: native documents with embedded revisions

Architecture:
    ┌──────────────┐     ┌──────────────────────────────────────────┐
    │  Web layer   │────▶│ WebLogData (category, page, post, ...)   │
    │  (callers)   │     └────────────────────┬─────────────────────┘
    └──────────────┘                          │
                          ┌───────────────────┼───────────────────┐
                          │                   │                   │
                          ▼                   ▼                   ▼
                   ┌─────────────┐     ┌─────────────┐     ┌─────────────┐
                   │ Revision    │     │ Category    │     │ Backup /    │
                   │ diff        │     │ hierarchy   │     │ restore     │
                   └─────────────┘     └─────────────┘     └─────────────┘
                                              │
                                              ▼
                        ┌─────────────────────────────────────────┐
                        │      DocumentStore (chosen by URI)      │
                        └─────────────────────────────────────────┘
                             │               │               │
                             ▼               ▼               ▼
                        ┌─────────┐     ┌──────────┐    ┌─────────┐
                        │ SQLite  │     │PostgreSQL│    │ MongoDB │
                        └─────────┘     └──────────┘    └─────────┘

Invariants:
    - Every entity except themes belongs to exactly one web log, and every
      tenant-scoped query carries the web log id in its predicate
    - Multi-step writes go through one atomic batch
    - All three stores give the same observable results

How to change safely:
    - Stored field names are a contract shared by every store and by backup
      archives; add fields with defaults, never rename
    - A new query feature needs an implementation in all three stores
"""

from ._version import __version__

__all__ = ["__version__"]
