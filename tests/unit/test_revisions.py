"""
Unit tests for revision and list diffs.

Tests cover:
- Keyed list diffs
- Revision identity (as-of instant plus text)
- Applying a diff back onto the old list
- Metadata and permalink diffs
"""

from datetime import datetime, timedelta, timezone

from blogdb.weblog_data.logic import (
    ListDiff,
    apply_revision_diff,
    diff_lists,
    diff_meta_items,
    diff_permalinks,
    diff_revisions,
)
from blogdb.weblog_data.model import MarkupText, MetaItem, Revision

BASE = datetime(2024, 1, 20, 22, 0, 0, tzinfo=timezone.utc)


def rev(minutes: int, text: str = "text") -> Revision:
    return Revision(as_of=BASE + timedelta(minutes=minutes), text=MarkupText.markdown(text))


class TestDiffLists:
    """Tests for the generic keyed diff."""

    def test_identical_lists_give_empty_diff(self):
        """Equal inputs produce nothing to do."""
        diff = diff_lists([1, 2, 3], [3, 2, 1], key=lambda x: x)

        assert diff.is_empty
        assert diff.to_delete == []
        assert diff.to_add == []

    def test_items_split_into_delete_and_add(self):
        """Items only in old are deleted; items only in new are added."""
        diff = diff_lists(["a", "b", "c"], ["b", "c", "d"], key=lambda x: x)

        assert diff.to_delete == ["a"]
        assert diff.to_add == ["d"]
        assert not diff.is_empty

    def test_input_order_is_kept(self):
        """Both lists keep the order of their inputs."""
        diff = diff_lists(["z", "y", "x"], ["c", "b", "a"], key=lambda x: x)

        assert diff.to_delete == ["z", "y", "x"]
        assert diff.to_add == ["c", "b", "a"]

    def test_default_diff_is_empty(self):
        """A ListDiff built without items is empty."""
        assert ListDiff().is_empty


class TestDiffRevisions:
    """Tests for revision diffs."""

    def test_new_revision_is_added(self):
        """Saving with one more revision inserts only that revision."""
        old = [rev(1)]
        new = [rev(2, "newer"), rev(1)]

        diff = diff_revisions(old, new)

        assert diff.to_delete == []
        assert diff.to_add == [rev(2, "newer")]

    def test_removed_revision_is_deleted(self):
        """Dropping a revision deletes only that revision."""
        old = [rev(3), rev(2), rev(1)]
        new = [rev(3), rev(1)]

        diff = diff_revisions(old, new)

        assert diff.to_delete == [rev(2)]
        assert diff.to_add == []

    def test_changed_text_is_delete_plus_add(self):
        """Editing the text of a revision replaces it."""
        old = [rev(1, "before")]
        new = [rev(1, "after")]

        diff = diff_revisions(old, new)

        assert diff.to_delete == [rev(1, "before")]
        assert diff.to_add == [rev(1, "after")]

    def test_markup_kind_is_part_of_identity(self):
        """The same text in a different markup kind is a different revision."""
        markdown = Revision(as_of=BASE, text=MarkupText.markdown("same"))
        html = Revision(as_of=BASE, text=MarkupText.html("same"))

        diff = diff_revisions([markdown], [html])

        assert diff.to_delete == [markdown]
        assert diff.to_add == [html]

    def test_apply_gives_new_list_newest_first(self):
        """Applying the diff to old yields new, newest first."""
        old = [rev(5), rev(3, "kept"), rev(1)]
        new = [rev(1), rev(9, "latest"), rev(3, "kept"), rev(4, "edited")]

        result = apply_revision_diff(old, diff_revisions(old, new))

        assert result == [rev(9, "latest"), rev(4, "edited"), rev(3, "kept"), rev(1)]

    def test_apply_empty_diff_keeps_old(self):
        """An empty diff leaves the revisions alone."""
        old = [rev(2), rev(1)]

        assert apply_revision_diff(old, ListDiff()) == old

    def test_apply_to_empty_history(self):
        """Every revision of a new page is an insert."""
        new = [rev(1), rev(2)]

        diff = diff_revisions([], new)

        assert diff.to_add == new
        assert apply_revision_diff([], diff) == [rev(2), rev(1)]


class TestOtherDiffs:
    """Tests for metadata and permalink diffs."""

    def test_meta_items_compare_name_and_value(self):
        """A changed value is a delete plus an add."""
        old = [MetaItem(name="Cool", value="true"), MetaItem(name="Warm", value="false")]
        new = [MetaItem(name="Cool", value="true"), MetaItem(name="Warm", value="true")]

        diff = diff_meta_items(old, new)

        assert diff.to_delete == [MetaItem(name="Warm", value="false")]
        assert diff.to_add == [MetaItem(name="Warm", value="true")]

    def test_permalinks(self):
        """Permalinks diff by value."""
        diff = diff_permalinks(["2024/old.html", "2023/older.html"], ["2024/old.html", "2024/new.html"])

        assert diff.to_delete == ["2023/older.html"]
        assert diff.to_add == ["2024/new.html"]

    def test_unchanged_permalinks(self):
        """Reordering permalinks is not a change."""
        assert diff_permalinks(["a", "b"], ["b", "a"]).is_empty
