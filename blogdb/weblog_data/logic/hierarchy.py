"""
Category hierarchy resolution.

Categories form a forest through their optional ParentId. This module arranges
a web log's categories for display, works out which categories sit below a
given one, and guards writes against parent assignments that would close a
loop.

Invariants:
    - Resolution is iterative and always terminates; a category whose parent
      cannot be placed after a full pass raises CategoryHierarchyError
    - ParentNames are root first; their length equals the category's depth
    - Siblings are ordered by name, case-insensitively

How to change safely:
    - Keep every walk bounded by a visited set; stored data may already be bad
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Sequence

from ..errors import CategoryHierarchyError
from ..model import Category, DisplayCategory


def _resolve_ancestry(categories: Sequence[Category]) -> dict[str, list[Category]]:
    """Map each category id to its ancestors, root first."""
    ancestry: dict[str, list[Category]] = {}
    by_id = {c.id: c for c in categories}
    pending = deque(categories)
    deferred = 0

    while pending:
        category = pending.popleft()
        if category.parent_id is None:
            ancestry[category.id] = []
            deferred = 0
        elif category.parent_id in ancestry:
            parent = by_id[category.parent_id]
            ancestry[category.id] = [*ancestry[parent.id], parent]
            deferred = 0
        else:
            pending.append(category)
            deferred += 1
            # Every waiting category was deferred since the last placement
            if deferred >= len(pending):
                raise CategoryHierarchyError([c.id for c in pending])

    return ancestry


def order_by_hierarchy(categories: Sequence[Category]) -> list[DisplayCategory]:
    """Arrange categories for display.

    Each category is followed by its descendants; siblings are sorted by name.

    Args:
        categories: All categories of one web log

    Returns:
        DisplayCategory records with full slugs and ParentNames; PostCount is 0.

    Raises:
        CategoryHierarchyError: If a parent is missing or the parents loop.
    """
    ancestry = _resolve_ancestry(categories)

    children: dict[str | None, list[Category]] = defaultdict(list)
    for category in categories:
        children[category.parent_id].append(category)
    for siblings in children.values():
        siblings.sort(key=lambda c: c.name.lower())

    ordered: list[DisplayCategory] = []
    stack = list(reversed(children[None]))
    while stack:
        category = stack.pop()
        ancestors = ancestry[category.id]
        ordered.append(
            DisplayCategory(
                id=category.id,
                slug="/".join([*(a.slug for a in ancestors), category.slug]),
                name=category.name,
                description=category.description,
                parent_names=[a.name for a in ancestors],
            )
        )
        stack.extend(reversed(children[category.id]))

    return ordered


def descendant_ids(categories: Sequence[Category]) -> dict[str, set[str]]:
    """Map each category id to itself and every category below it.

    Raises:
        CategoryHierarchyError: If a parent is missing or the parents loop.
    """
    below: dict[str, set[str]] = {c.id: {c.id} for c in categories}
    for category_id, ancestors in _resolve_ancestry(categories).items():
        for ancestor in ancestors:
            below[ancestor.id].add(category_id)
    return below


def effective_category_ids(categories: Sequence[Category], category_id: str) -> set[str]:
    """Return the category and every category below it."""
    return descendant_ids(categories).get(category_id, {category_id})


def creates_cycle(categories: Sequence[Category], category_id: str, parent_id: str | None) -> bool:
    """Check whether giving category_id the parent parent_id would close a loop.

    Walks up from the proposed parent; reaching category_id, or revisiting any
    category, means a loop.
    """
    if parent_id is None:
        return False
    parents = {c.id: c.parent_id for c in categories}
    visited: set[str] = set()
    current: str | None = parent_id
    while current is not None:
        if current == category_id or current in visited:
            return True
        visited.add(current)
        current = parents.get(current)
    return False


def reassign_children(categories: Sequence[Category], deleted: Category) -> list[Category]:
    """Move the children of a category being deleted up to its parent."""
    return [
        c.model_copy(update={"parent_id": deleted.parent_id})
        for c in categories
        if c.parent_id == deleted.id
    ]
