"""
weblog-data Test Suite.

This package contains:
- unit/: Unit tests (no database needed)
- integration/: Integration tests (SQLite always; PostgreSQL and MongoDB when
  WEBLOG_TEST_POSTGRES_URI / WEBLOG_TEST_MONGODB_URI are set)
"""
