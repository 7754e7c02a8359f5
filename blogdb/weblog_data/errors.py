"""
Exceptions raised by the web log data layer.

Only programming and configuration problems are raised from here. Missing
entities are returned as None, and domain conflicts (deleting a user who wrote
posts, assigning a cyclic category parent) come back as Result values.

Invariants:
    - Driver errors (sqlite3.Error, psycopg2.Error, PyMongoError) are never
      wrapped; they reach the caller unmodified
    - Every exception defined here derives from WebLogDataError
"""

from __future__ import annotations


class WebLogDataError(Exception):
    """Base class for data layer errors."""

    pass


class ConfigurationError(WebLogDataError):
    """Configuration is missing or invalid."""

    pass


class UnsupportedBackendError(ConfigurationError):
    """Connection URI names a backend with no adapter."""

    def __init__(self, uri: str, scheme: str) -> None:
        super().__init__(f"No document store for scheme '{scheme}' (uri: {uri})")
        self.scheme = scheme


class CategoryHierarchyError(WebLogDataError):
    """Stored categories cannot be arranged into a forest.

    Attributes:
        unresolved: IDs of the categories that could not be placed
    """

    def __init__(self, unresolved: list[str]) -> None:
        super().__init__(
            "Categories could not be placed in the hierarchy "
            f"(cycle or missing parent): {', '.join(sorted(unresolved))}"
        )
        self.unresolved = unresolved


class ArchiveError(WebLogDataError):
    """A backup archive could not be read or is inconsistent."""

    pass
