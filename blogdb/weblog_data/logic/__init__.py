"""
Backend-independent logic run above the document stores.

Invariants:
    - Functions here are pure; they never touch a store
"""

from .hierarchy import (
    creates_cycle,
    descendant_ids,
    effective_category_ids,
    order_by_hierarchy,
    reassign_children,
)
from .revisions import (
    ListDiff,
    apply_revision_diff,
    diff_lists,
    diff_meta_items,
    diff_permalinks,
    diff_revisions,
)

__all__ = [
    "ListDiff",
    "apply_revision_diff",
    "creates_cycle",
    "descendant_ids",
    "diff_lists",
    "diff_meta_items",
    "diff_permalinks",
    "diff_revisions",
    "effective_category_ids",
    "order_by_hierarchy",
    "reassign_children",
]
