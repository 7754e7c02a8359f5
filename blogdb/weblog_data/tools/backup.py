"""
Backup and restore of one web log.

A backup is a single JSON archive holding the web log and every entity
scoped to it, in the order they must be restored: web log, users,
categories, tag mappings, pages (with revisions), posts (with revisions),
uploads (base64 data). Themes are shared by every web log and are not part of
a backup.

Invariants:
    - Restore writes parents before anything that references them
    - Every entity kind is restored in one batch, except uploads, which are
      written in fixed-size chunks
    - A failed restore removes whatever part of the web log it wrote and puts
      back the web log it was replacing
    - Restoring under a new URL base gives every entity a new id and rewrites
      every reference to the old ids

How to change safely:
    - Bump ARCHIVE_VERSION when the archive layout changes, and keep reading
      the versions listed in SUPPORTED_VERSIONS
    - Archives carry revision instants to the microsecond; never round them
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from ..data import WebLogData
from ..errors import ArchiveError
from ..model import (
    Category,
    Page,
    Post,
    Record,
    TagMap,
    Upload,
    WebLog,
    WebLogUser,
    new_id,
)

logger = logging.getLogger(__name__)

ARCHIVE_VERSION = 1
SUPPORTED_VERSIONS = frozenset({1})


class Archive(Record):
    """Everything belonging to one web log.

    Attributes:
        version: Archive layout version
        web_log: The web log itself
        users: Its users
        categories: Its categories
        tag_mappings: Its tag mappings
        pages: Its pages, each with its revisions
        posts: Its posts, each with its revisions
        uploads: Its uploaded files, with data
    """

    version: int = ARCHIVE_VERSION
    web_log: WebLog
    users: list[WebLogUser] = []
    categories: list[Category] = []
    tag_mappings: list[TagMap] = []
    pages: list[Page] = []
    posts: list[Post] = []
    uploads: list[Upload] = []

    def counts(self) -> dict[str, int]:
        return {
            "users": len(self.users),
            "categories": len(self.categories),
            "tag_mappings": len(self.tag_mappings),
            "pages": len(self.pages),
            "posts": len(self.posts),
            "uploads": len(self.uploads),
        }

    def check_consistency(self) -> None:
        """Verify every entity belongs to the archived web log.

        Raises:
            ArchiveError: If any entity names another web log.
        """
        web_log_id = self.web_log.id
        for kind in ("users", "categories", "tag_mappings", "pages", "posts", "uploads"):
            strays = [e.id for e in getattr(self, kind) if e.web_log_id != web_log_id]
            if strays:
                raise ArchiveError(
                    f"Archive {kind} belong to another web log than {web_log_id}: {', '.join(strays)}"
                )


@dataclass
class BackupResult:
    """Result of a backup.

    Attributes:
        success: Whether the archive was written
        web_log_id: Web log that was backed up
        path: Where the archive was written
        counts: Entities archived, by kind
        duration_ms: Total backup duration
        error: Error message if failed
    """

    success: bool
    web_log_id: str
    path: str | None = None
    counts: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0
    error: str | None = None


@dataclass
class RestoreResult:
    """Result of a restore.

    Attributes:
        success: Whether the web log was fully restored
        web_log_id: Id of the restored web log (the new id when re-keyed)
        url_base: URL base of the restored web log
        counts: Entities restored, by kind
        duration_ms: Total restore duration
        error: Error message if failed
    """

    success: bool
    web_log_id: str
    url_base: str
    counts: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0
    error: str | None = None


async def create_backup(data: WebLogData, web_log_id: str) -> Archive:
    """Collect a web log and everything scoped to it.

    Raises:
        ArchiveError: If the web log does not exist.
    """
    web_log = await data.web_log.find_by_id(web_log_id)
    if web_log is None:
        raise ArchiveError(f"Web log {web_log_id} not found")

    archive = Archive(
        web_log=web_log,
        users=await data.web_log_user.find_by_web_log(web_log_id),
        categories=await data.category.find_by_web_log(web_log_id),
        tag_mappings=await data.tag_map.find_by_web_log(web_log_id),
        pages=await data.page.find_full_by_web_log(web_log_id),
        posts=await data.post.find_full_by_web_log(web_log_id),
        uploads=await data.upload.find_by_web_log_with_data(web_log_id),
    )
    logger.info(f"Collected backup of web log {web_log_id}", extra=archive.counts())
    return archive


def write_archive(archive: Archive, path: str | Path) -> Path:
    """Write an archive as JSON, creating parent directories as needed."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(archive.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    return target


def read_archive(path: str | Path) -> Archive:
    """Read and check an archive.

    Raises:
        ArchiveError: If the file is not a readable, consistent archive.
    """
    source = Path(path)
    try:
        archive = Archive.model_validate_json(source.read_bytes())
    except OSError as e:
        raise ArchiveError(f"Cannot read archive {source}: {e}") from e
    except ValidationError as e:
        raise ArchiveError(f"Invalid archive {source}: {e}") from e

    if archive.version not in SUPPORTED_VERSIONS:
        raise ArchiveError(f"Unsupported archive version {archive.version} in {source}")
    archive.check_consistency()
    return archive


def rekey_archive(archive: Archive, new_url_base: str) -> Archive:
    """Copy an archive with new ids everywhere and a new URL base.

    Author ids, category parents, post category ids, the default page and
    category-sourced custom feeds are rewritten to the new ids. References to
    ids the archive does not contain are left as they are.
    """
    web_log_id = new_id()
    user_ids = {u.id: new_id() for u in archive.users}
    category_ids = {c.id: new_id() for c in archive.categories}
    page_ids = {p.id: new_id() for p in archive.pages}

    feeds = []
    for feed in archive.web_log.rss.custom_feeds:
        old_category = feed.source_category_id
        if old_category in category_ids:
            feed = feed.model_copy(update={"source": f"category:{category_ids[old_category]}"})
        feeds.append(feed.model_copy(update={"id": new_id()}))

    web_log = archive.web_log.model_copy(
        update={
            "id": web_log_id,
            "url_base": new_url_base,
            "default_page": page_ids.get(archive.web_log.default_page, archive.web_log.default_page),
            "rss": archive.web_log.rss.model_copy(update={"custom_feeds": feeds}),
        }
    )

    return archive.model_copy(
        update={
            "web_log": web_log,
            "users": [
                u.model_copy(update={"id": user_ids[u.id], "web_log_id": web_log_id})
                for u in archive.users
            ],
            "categories": [
                c.model_copy(
                    update={
                        "id": category_ids[c.id],
                        "web_log_id": web_log_id,
                        "parent_id": category_ids.get(c.parent_id, c.parent_id) if c.parent_id else None,
                    }
                )
                for c in archive.categories
            ],
            "tag_mappings": [
                t.model_copy(update={"id": new_id(), "web_log_id": web_log_id})
                for t in archive.tag_mappings
            ],
            "pages": [
                p.model_copy(
                    update={
                        "id": page_ids[p.id],
                        "web_log_id": web_log_id,
                        "author_id": user_ids.get(p.author_id, p.author_id),
                    }
                )
                for p in archive.pages
            ],
            "posts": [
                p.model_copy(
                    update={
                        "id": new_id(),
                        "web_log_id": web_log_id,
                        "author_id": user_ids.get(p.author_id, p.author_id),
                        "category_ids": [category_ids.get(c, c) for c in p.category_ids],
                    }
                )
                for p in archive.posts
            ],
            "uploads": [
                u.model_copy(update={"id": new_id(), "web_log_id": web_log_id})
                for u in archive.uploads
            ],
        }
    )


async def _load(data: WebLogData, archive: Archive) -> None:
    """Write an archive's entities, parents first."""
    await data.web_log.add(archive.web_log)
    await data.web_log_user.restore(archive.users)
    await data.category.restore(archive.categories)
    await data.tag_map.restore(archive.tag_mappings)
    await data.page.restore(archive.pages)
    await data.post.restore(archive.posts)
    await data.upload.restore(archive.uploads)


async def restore_backup(
    data: WebLogData, archive: Archive, new_url_base: str | None = None
) -> RestoreResult:
    """Load an archive into a store.

    Without a new URL base the web log keeps its ids, and an existing web log
    with the same id is replaced. With one, the archive is re-keyed so it can
    sit next to the web log it was taken from.

    If the load fails, whatever it wrote is removed and a replaced web log is
    put back as it was.

    Returns:
        RestoreResult indicating success/failure
    """
    start_time = time.time()
    if new_url_base:
        archive = rekey_archive(archive, new_url_base)
    web_log = archive.web_log
    counts = archive.counts()
    replaced: Archive | None = None
    writing = False

    try:
        archive.check_consistency()
        if await data.web_log.find_by_id(web_log.id) is not None:
            replaced = await create_backup(data, web_log.id)
            logger.warning(f"Replacing existing web log {web_log.id}", extra=replaced.counts())
            writing = True
            await data.web_log.delete(web_log.id)

        logger.info(f"Starting restore of web log {web_log.id}", extra={"url_base": web_log.url_base})
        writing = True
        await _load(data, archive)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Restored web log {web_log.id}", extra={**counts, "duration_ms": duration_ms})
        return RestoreResult(
            success=True,
            web_log_id=web_log.id,
            url_base=web_log.url_base,
            counts=counts,
            duration_ms=duration_ms,
        )

    except Exception as e:
        logger.error(f"Restore failed: {e}", exc_info=True)
        if writing:
            await _roll_back(data, web_log.id, replaced)
        return RestoreResult(
            success=False,
            web_log_id=web_log.id,
            url_base=web_log.url_base,
            duration_ms=int((time.time() - start_time) * 1000),
            error=str(e),
        )


async def _roll_back(data: WebLogData, web_log_id: str, replaced: Archive | None) -> None:
    """Remove a partial restore and put back the web log it replaced."""
    try:
        await data.web_log.delete(web_log_id)
        if replaced is not None:
            await _load(data, replaced)
            logger.info(f"Put back web log {web_log_id} as it was before the restore")
    except Exception:
        logger.exception(f"Could not roll back restore of web log {web_log_id}")


async def backup_web_log(data: WebLogData, web_log_id: str, path: str | Path) -> BackupResult:
    """Back up a web log to an archive file.

    Returns:
        BackupResult indicating success/failure
    """
    start_time = time.time()
    try:
        archive = await create_backup(data, web_log_id)
        target = write_archive(archive, path)
        return BackupResult(
            success=True,
            web_log_id=web_log_id,
            path=str(target),
            counts=archive.counts(),
            duration_ms=int((time.time() - start_time) * 1000),
        )
    except Exception as e:
        logger.error(f"Backup failed: {e}", exc_info=True)
        return BackupResult(
            success=False,
            web_log_id=web_log_id,
            duration_ms=int((time.time() - start_time) * 1000),
            error=str(e),
        )
