"""Tests for database schema."""

import sqlite3

import pytest

from salesbinder_cache.core.database.schema import (
    SCHEMA_VERSION,
    create_schema,
    get_metadata,
    get_schema_version,
    migrate_schema,
    set_metadata,
)
from salesbinder_cache.exceptions import SchemaVersionError, StoreError


def _names(conn: sqlite3.Connection, kind: str) -> set[str]:
    return {
        row[0]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type = ?", (kind,)).fetchall()
    }


def test_create_schema_creates_tables() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    assert {"documents", "item_documents", "cache_meta"} <= _names(conn, "table")


def test_create_schema_creates_indexes() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    assert {
        "idx_item_documents_item",
        "idx_documents_context",
        "idx_documents_modified",
        "idx_item_documents_doc",
    } <= _names(conn, "index")


def test_migrate_schema_on_empty_db_creates_schema_and_sets_version() -> None:
    conn = sqlite3.connect(":memory:")
    assert get_schema_version(conn) == 0
    migrate_schema(conn)
    assert get_schema_version(conn) == SCHEMA_VERSION


def test_migrate_schema_is_idempotent() -> None:
    conn = sqlite3.connect(":memory:")
    migrate_schema(conn)
    set_metadata(conn, "k", "v")
    migrate_schema(conn)
    assert get_metadata(conn, "k") == "v"


def test_migrate_schema_rejects_unknown_version() -> None:
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA user_version = 99")
    with pytest.raises(SchemaVersionError) as exc_info:
        migrate_schema(conn)
    assert exc_info.value.found == 99
    assert isinstance(exc_info.value, StoreError)


def test_metadata_missing_key_is_none() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    assert get_metadata(conn, "nope") is None


def test_set_metadata_overwrites() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    set_metadata(conn, "state", "a")
    set_metadata(conn, "state", "b")
    assert get_metadata(conn, "state") == "b"
