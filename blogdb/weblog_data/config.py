"""
Configuration management for the web log data layer.

All configuration is done via environment variables. The only input a
document store needs is its connection URI; everything else tunes the
adapters, the backup tooling and logging.

Invariants:
    - All settings have sensible defaults for local development
    - The connection URI scheme selects exactly one backend
    - Credentials embedded in the URI are never logged

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep adapter-specific tuning in DatabaseConfig, not in the adapters
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)


class Backend(Enum):
    """Supported document store backends."""

    SQLITE = "sqlite"
    POSTGRES = "postgres"
    MONGODB = "mongodb"


_SCHEMES: dict[str, Backend] = {
    "sqlite": Backend.SQLITE,
    "postgresql": Backend.POSTGRES,
    "postgres": Backend.POSTGRES,
    "mongodb": Backend.MONGODB,
    "mongodb+srv": Backend.MONGODB,
}


def backend_for_uri(uri: str) -> Backend | None:
    """Map a connection URI to its backend, or None for an unknown scheme."""
    scheme = uri.split(":", 1)[0].lower() if ":" in uri else ""
    return _SCHEMES.get(scheme)


def redact_uri(uri: str) -> str:
    """Hide the password portion of a connection URI."""
    parts = urlsplit(uri)
    if parts.password is None:
        return uri
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


@dataclass(frozen=True)
class DatabaseConfig:
    """Document store configuration.

    Attributes:
        uri: Connection URI (sqlite:///path, postgresql://..., mongodb://...)
        sqlite_busy_timeout_ms: How long SQLite waits on a locked database
        sqlite_wal_mode: Whether SQLite runs in WAL journal mode
        postgres_min_connections: Minimum pooled PostgreSQL connections
        postgres_max_connections: Maximum pooled PostgreSQL connections
        mongodb_database: Database name when the Mongo URI does not carry one
        mongodb_allow_standalone: Run batches without a transaction on a
            standalone server (development only; batches are then not atomic)
    """

    uri: str = "sqlite:///./data/myweblog.db"
    sqlite_busy_timeout_ms: int = 5000
    sqlite_wal_mode: bool = True
    postgres_min_connections: int = 1
    postgres_max_connections: int = 10
    mongodb_database: str = "myweblog"
    mongodb_allow_standalone: bool = False

    @property
    def backend(self) -> Backend | None:
        return backend_for_uri(self.uri)

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        """Load configuration from environment variables."""
        return cls(
            uri=os.getenv("WEBLOG_DATABASE_URI", "sqlite:///./data/myweblog.db"),
            sqlite_busy_timeout_ms=int(os.getenv("WEBLOG_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            sqlite_wal_mode=os.getenv("WEBLOG_SQLITE_WAL", "true").lower() == "true",
            postgres_min_connections=int(os.getenv("WEBLOG_POSTGRES_MIN_CONNECTIONS", "1")),
            postgres_max_connections=int(os.getenv("WEBLOG_POSTGRES_MAX_CONNECTIONS", "10")),
            mongodb_database=os.getenv("WEBLOG_MONGODB_DATABASE", "myweblog"),
            mongodb_allow_standalone=os.getenv("WEBLOG_MONGODB_ALLOW_STANDALONE", "false").lower()
            == "true",
        )


@dataclass(frozen=True)
class BackupConfig:
    """Backup/restore configuration.

    Attributes:
        upload_chunk_size: Uploads written per restore transaction
    """

    upload_chunk_size: int = 5

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load configuration from environment variables."""
        return cls(upload_chunk_size=int(os.getenv("WEBLOG_UPLOAD_CHUNK_SIZE", "5")))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json or text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass(frozen=True)
class DataConfig:
    """Complete data layer configuration.

    Attributes:
        database: Document store configuration
        backup: Backup/restore configuration
        observability: Logging configuration
    """

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> DataConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            database=DatabaseConfig.from_env(),
            backup=BackupConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.database.uri:
            raise ValueError("WEBLOG_DATABASE_URI is required")
        if self.database.backend is None:
            raise ValueError(
                f"Unsupported WEBLOG_DATABASE_URI scheme in '{redact_uri(self.database.uri)}'. "
                f"Must be one of: {', '.join(sorted(_SCHEMES))}"
            )
        if self.database.postgres_min_connections < 1:
            raise ValueError("WEBLOG_POSTGRES_MIN_CONNECTIONS must be at least 1")
        if self.database.postgres_max_connections < self.database.postgres_min_connections:
            raise ValueError(
                "WEBLOG_POSTGRES_MAX_CONNECTIONS must not be less than WEBLOG_POSTGRES_MIN_CONNECTIONS"
            )
        if self.backup.upload_chunk_size < 1:
            raise ValueError("WEBLOG_UPLOAD_CHUNK_SIZE must be at least 1")
        if self.observability.log_format not in ("text", "json"):
            raise ValueError("LOG_FORMAT must be 'text' or 'json'")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        backend = self.database.backend
        logger.info(
            "Data configuration loaded",
            extra={
                "backend": backend.value if backend else None,
                "database_uri": redact_uri(self.database.uri),
                "upload_chunk_size": self.backup.upload_chunk_size,
                "log_level": self.observability.log_level,
            },
        )
