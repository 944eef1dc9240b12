"""SQLite schema creation and version checks for the document cache."""

import sqlite3

from salesbinder_cache.exceptions import SchemaVersionError

SCHEMA_VERSION = 1

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    doc_id TEXT PRIMARY KEY,
    context_id INTEGER NOT NULL,
    doc_number INTEGER NOT NULL,
    issue_date TEXT NOT NULL,
    customer_id TEXT NOT NULL,
    modified INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS item_documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    quantity INTEGER NOT NULL,
    price REAL NOT NULL,
    FOREIGN KEY (doc_id) REFERENCES documents(doc_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS cache_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_item_documents_item ON item_documents(item_id);
CREATE INDEX IF NOT EXISTS idx_documents_context ON documents(context_id);
CREATE INDEX IF NOT EXISTS idx_documents_modified ON documents(modified);
CREATE INDEX IF NOT EXISTS idx_item_documents_doc ON item_documents(doc_id);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes and stamp the schema version."""
    conn.executescript(_SCHEMA_SQL)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the stored schema version (0 for a fresh database)."""
    return int(conn.execute("PRAGMA user_version").fetchone()[0])


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Create the schema on a fresh database, or verify the existing version.

    There are no in-place migrations: a database stamped with any other
    version must be deleted and rebuilt by a full sync.
    """
    version = get_schema_version(conn)
    if version == 0:
        create_schema(conn)
    elif version != SCHEMA_VERSION:
        raise SchemaVersionError(version, SCHEMA_VERSION)


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    """Return a value from ``cache_meta``, or None if the key is absent."""
    row = conn.execute("SELECT value FROM cache_meta WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Insert or replace a value in ``cache_meta``."""
    conn.execute(
        "INSERT OR REPLACE INTO cache_meta (key, value) VALUES (?, ?)",
        (key, value),
    )
    conn.commit()
