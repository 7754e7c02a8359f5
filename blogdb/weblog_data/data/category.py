"""
Category data operations.

Invariants:
    - A category's parent is a category of the same web log
    - Parent assignments that would close a loop are refused before writing
    - Deleting a category moves its children up to its own parent and strips
      its id from every post, in the same transaction as the delete
"""

from __future__ import annotations

import logging

from ..logic import creates_cycle, descendant_ids, order_by_hierarchy, reassign_children
from ..model import Category, CategoryDeleteResult, DisplayCategory, PostStatus, Result
from ..store import (
    ArrayOverlap,
    DeleteDocuments,
    DocumentQuery,
    DocumentStore,
    InsertDocuments,
    Operation,
    PatchDocuments,
    ReplaceDocuments,
    Sort,
    Table,
    by_web_log,
)

logger = logging.getLogger(__name__)

# Post fields a category count never reads
_COUNT_EXCLUDE = ("Text", "Metadata", "Episode", "PriorPermalinks", "Tags")


class CategoryData:
    """Category operations for one document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _check_parent(self, category: Category, categories: list[Category]) -> str | None:
        """Return why the category's parent is unacceptable, or None."""
        if category.parent_id is None:
            return None
        if not any(c.id == category.parent_id for c in categories):
            return f"Parent category {category.parent_id} not found"
        if creates_cycle(categories, category.id, category.parent_id):
            return f"Parent category {category.parent_id} would make category {category.id} its own ancestor"
        return None

    async def add(self, category: Category) -> Result[None]:
        """Add a category.

        Returns:
            Failure if the parent is not a category of the same web log.
        """
        categories = await self.find_by_web_log(category.web_log_id)
        problem = self._check_parent(category, categories)
        if problem:
            logger.warning(problem, extra={"web_log_id": category.web_log_id})
            return Result.failure(problem)
        await self._store.insert(Table.CATEGORY, category.to_document())
        return Result.success()

    async def count_all(self, web_log_id: str) -> int:
        return await self._store.count(Table.CATEGORY, DocumentQuery(criteria=by_web_log(web_log_id)))

    async def count_top_level(self, web_log_id: str) -> int:
        return await self._store.count(
            Table.CATEGORY, DocumentQuery(criteria=by_web_log(web_log_id, ParentId=None))
        )

    async def delete(self, category_id: str, web_log_id: str) -> CategoryDeleteResult:
        """Delete a category.

        Children are reassigned to the deleted category's parent and the id is
        removed from every post that references it.

        Returns:
            Which of the delete outcomes occurred.
        """
        categories = await self.find_by_web_log(web_log_id)
        target = next((c for c in categories if c.id == category_id), None)
        if target is None:
            return CategoryDeleteResult.CATEGORY_NOT_FOUND

        children = reassign_children(categories, target)
        posts = await self._store.find(
            Table.POST,
            DocumentQuery(
                criteria=by_web_log(web_log_id),
                where=(ArrayOverlap("CategoryIds", [category_id]),),
            ),
        )

        operations: list[Operation] = []
        if children:
            operations.append(
                PatchDocuments(Table.CATEGORY, [(c.id, {"ParentId": c.parent_id}) for c in children])
            )
        if posts:
            operations.append(
                PatchDocuments(
                    Table.POST,
                    [
                        (p["Id"], {"CategoryIds": [cid for cid in p["CategoryIds"] if cid != category_id]})
                        for p in posts
                    ],
                )
            )
        operations.append(DeleteDocuments(Table.CATEGORY, [category_id]))
        await self._store.execute_batch(operations)

        logger.info(
            f"Deleted category {category_id}",
            extra={"web_log_id": web_log_id, "children": len(children), "posts": len(posts)},
        )
        if children:
            return CategoryDeleteResult.REASSIGNED_CHILD_CATEGORIES
        return CategoryDeleteResult.CATEGORY_DELETED

    async def find_all_for_view(self, web_log_id: str) -> list[DisplayCategory]:
        """All categories in display order, with published post counts.

        A category's count includes posts filed under any of its descendants;
        each post is counted once.
        """
        categories = await self.find_by_web_log(web_log_id)
        ordered = order_by_hierarchy(categories)
        if not ordered:
            return []

        below = descendant_ids(categories)
        posts = await self._store.find(
            Table.POST,
            DocumentQuery(
                criteria=by_web_log(web_log_id, Status=PostStatus.PUBLISHED.value),
                where=(ArrayOverlap("CategoryIds", sorted(below)),),
                exclude=_COUNT_EXCLUDE,
            ),
        )
        filed = [set(p.get("CategoryIds", [])) for p in posts]
        return [
            c.model_copy(update={"post_count": sum(1 for ids in filed if ids & below[c.id])})
            for c in ordered
        ]

    async def find_by_id(self, category_id: str, web_log_id: str) -> Category | None:
        document = await self._store.find_by_id(Table.CATEGORY, category_id, web_log_id)
        return Category.from_document(document) if document else None

    async def find_by_web_log(self, web_log_id: str) -> list[Category]:
        documents = await self._store.find(
            Table.CATEGORY,
            DocumentQuery(
                criteria=by_web_log(web_log_id),
                order_by=(Sort("Name", case_insensitive=True),),
            ),
        )
        return [Category.from_document(d) for d in documents]

    async def restore(self, categories: list[Category]) -> None:
        await self._store.execute_batch(
            [InsertDocuments(Table.CATEGORY, [c.to_document() for c in categories])]
        )

    async def update(self, category: Category) -> Result[None]:
        """Replace a category (name, slug, description and parent).

        Returns:
            Failure if the category is not found in its web log, or the new
            parent is missing or would create a loop.
        """
        categories = await self.find_by_web_log(category.web_log_id)
        if not any(c.id == category.id for c in categories):
            return Result.failure(f"Category {category.id} not found")
        problem = self._check_parent(category, categories)
        if problem:
            logger.warning(problem, extra={"web_log_id": category.web_log_id})
            return Result.failure(problem)
        await self._store.execute_batch(
            [ReplaceDocuments(Table.CATEGORY, [category.to_document()])]
        )
        return Result.success()
