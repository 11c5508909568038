"""
Centralized SQLite Schema Initialization.

Defines the schema of the local store that backs the offline credential
table, the persisted session and the bearer token, and provides a single
entry-point -- :func:`initialize_schema` -- that creates the tables
idempotently.  A ``schema_version`` table records which layout a database
file was created with.

The ``local_storage`` table is a plain key/value store whose values are
JSON documents::

    local_storage
    ├── key        TEXT PRIMARY KEY
    ├── value      TEXT            (JSON)
    └── updated_at TIMESTAMP

Usage::

    import sqlite3
    from najjak.logger import StructuredLogger
    from najjak.schema import initialize_schema

    conn = sqlite3.connect("najjak_local.db")
    initialize_schema(conn, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3

from najjak.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 1

_TABLE_DEFINITIONS: list[str] = [
    # -- key/value documents (credentials, session, bearer token) -------------
    """
    CREATE TABLE IF NOT EXISTS local_storage (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the ``schema_version`` table if it does not yet exist."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            version INTEGER NOT NULL,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.commit()


def _get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the current schema version, or ``0`` if unset."""
    row = conn.execute(
        "SELECT version FROM schema_version WHERE id = 1"
    ).fetchone()
    return row[0] if row is not None else 0


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Ensure the local SQLite database has every table this package uses.

    Safe to call on every startup.  Table creation and the version bump
    happen in one transaction; on failure the database is rolled back
    and the error re-raised.

    Args:
        conn: An open SQLite connection.
        logger: Logger for structured output.
    """
    _ensure_version_table(conn)
    current: int = _get_schema_version(conn)

    if current >= CURRENT_SCHEMA_VERSION:
        logger.debug("Schema is up to date (version %d).", current)
        return

    try:
        for ddl in _TABLE_DEFINITIONS:
            conn.execute(ddl)
        conn.execute(
            """
            INSERT INTO schema_version (id, version) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET version = excluded.version,
                                          applied_at = CURRENT_TIMESTAMP
            """,
            (CURRENT_SCHEMA_VERSION,),
        )
        conn.commit()
    except Exception:
        conn.rollback()
        logger.error(
            "Schema initialisation failed; rolled back to version %d.", current,
        )
        raise

    logger.info("Schema initialised at version %d.", CURRENT_SCHEMA_VERSION)
