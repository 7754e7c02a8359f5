"""
Minimal change sets for the lists embedded in pages and posts.

Relational stores keep revisions in side tables, so saving a page or post
rewrites only the revisions that changed: the ones no longer present are
deleted and the new ones inserted. The same keyed diff serves metadata items,
prior permalinks and custom feeds.

Invariants:
    - Diffs are pure; the same inputs always give the same two lists
    - A revision's identity is its (as-of instant, text) pair, so an edited
      text under an unchanged instant shows up as one delete plus one add
    - apply_revision_diff(old, diff_revisions(old, new)) equals new as a set
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ..model import MetaItem, Revision

T = TypeVar("T")


@dataclass(frozen=True)
class ListDiff(Generic[T]):
    """Items to remove from and add to a stored list.

    Attributes:
        to_delete: Items present in the old list only
        to_add: Items present in the new list only
    """

    to_delete: list[T] = field(default_factory=list)
    to_add: list[T] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_add


def diff_lists(old: Iterable[T], new: Iterable[T], key: Callable[[T], Hashable]) -> ListDiff[T]:
    """Compare two lists by a key function.

    Args:
        old: Currently stored items
        new: Items that should be stored
        key: Identity of an item

    Returns:
        ListDiff with the items to delete and to add, each in input order.
    """
    old_items = list(old)
    new_items = list(new)
    old_keys = {key(item) for item in old_items}
    new_keys = {key(item) for item in new_items}
    return ListDiff(
        to_delete=[item for item in old_items if key(item) not in new_keys],
        to_add=[item for item in new_items if key(item) not in old_keys],
    )


def revision_key(revision: Revision) -> Hashable:
    return (revision.as_of, revision.text)


def diff_revisions(old: Sequence[Revision], new: Sequence[Revision]) -> ListDiff[Revision]:
    """Find the revisions to delete and insert when old is replaced by new."""
    return diff_lists(old, new, revision_key)


def apply_revision_diff(old: Sequence[Revision], diff: ListDiff[Revision]) -> list[Revision]:
    """Apply a diff to a revision list; the result is newest-first."""
    removed = {revision_key(r) for r in diff.to_delete}
    kept = [r for r in old if revision_key(r) not in removed]
    merged = {revision_key(r): r for r in [*kept, *diff.to_add]}
    return sorted(merged.values(), key=lambda r: r.as_of, reverse=True)


def diff_meta_items(old: Sequence[MetaItem], new: Sequence[MetaItem]) -> ListDiff[MetaItem]:
    return diff_lists(old, new, lambda item: (item.name, item.value))


def diff_permalinks(old: Sequence[str], new: Sequence[str]) -> ListDiff[str]:
    return diff_lists(old, new, lambda link: link)
