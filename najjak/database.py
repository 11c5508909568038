"""
Local Database Layer.

Owns the SQLite connection behind the offline side of authentication.
The remote identity service is the system of record; this file only keeps
the fallback credential table, the current session and the bearer token
so they survive restarts.

This module only manages the raw *connection* and its schema; the
documents stored in it are read and written by ``SessionStore``.

Security Note
-------------
The local database is **not** encrypted at rest and the fallback
credential table holds plaintext passwords.  It is a degraded-mode cache,
never the authority on identity.

Usage (dependency injection at app startup)::

    from najjak.database import DatabaseManager
    from najjak.logger import StructuredLogger

    db = DatabaseManager(
        sqlite_path=config.LOCAL_STORE_PATH,
        logger=StructuredLogger(name="database"),
    )
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from najjak.logger import StructuredLogger
from najjak.schema import initialize_schema


class DatabaseManager:
    """Manages the connection to the local SQLite store.

    Fully configured at construction time: the file is opened (or
    created) and the schema initialised before the constructor returns.

    Parameters
    ----------
    sqlite_path:
        Filesystem path for the SQLite database file.  Parent directories
        are created when missing.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(self, sqlite_path: Path, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._sqlite_conn: Optional[sqlite3.Connection] = self._connect_sqlite(
            Path(sqlite_path)
        )
        initialize_schema(self._sqlite_conn, logger)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the open SQLite connection.

        Raises
        ------
        RuntimeError
            If :meth:`close` has already been called.
        """
        if self._sqlite_conn is None:
            raise RuntimeError("The local database has been closed.")
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Lock to hold around every write + ``commit()`` pair."""
        return self._write_lock

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the local SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            if self._sqlite_conn is None:
                return
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                # Connection was already closed; nothing to do.
                pass
            self._sqlite_conn = None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Path) -> sqlite3.Connection:
        """Open (or create) the SQLite database.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local store at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
