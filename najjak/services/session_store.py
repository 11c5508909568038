"""
Session Store Service.

Persists the offline credential table, the current session user and the
bearer token in the local SQLite ``local_storage`` table, one JSON
document per key::

    najjak_users         [{username, password, role, firstName?, lastName?}, ...]
    najjak_current_user  {username, role, firstName?, lastName?} | null
    auth_token           "<opaque bearer token>"

Persistence model
-----------------
- Write-through: every mutating call commits before it returns, so a
  crash right after a call cannot lose what it wrote.
- Reads never raise on bad data.  A missing, unparseable or
  schema-violating document degrades to its default (seed accounts, no
  session, no token) and is logged.
- Write failures do raise (``SessionStoreError``); a storage failure must
  not look like a success.

The credential table is seeded on first hydration with a fixed set of
bootstrap accounts so that the offline fallback can be exercised before
any remote registration has happened.
"""

from __future__ import annotations

import hmac
import json
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from najjak.database import DatabaseManager
from najjak.logger import StructuredLogger
from najjak.models.enums import Role
from najjak.models.user import AuthUser, StoredCredential

__all__ = [
    "BOOTSTRAP_ACCOUNTS",
    "CredentialTable",
    "SessionStore",
    "SessionStoreError",
]

CredentialTable = dict[str, StoredCredential]
"""Lowercased username -> credential, in insertion order."""

_KEY_USERS: str = "najjak_users"
_KEY_CURRENT_USER: str = "najjak_current_user"
_KEY_TOKEN: str = "auth_token"

_RAW_LIST = TypeAdapter(list[Any])
_OPTIONAL_USER = TypeAdapter(Optional[AuthUser])
_OPTIONAL_TOKEN = TypeAdapter(Optional[str])

BOOTSTRAP_ACCOUNTS: tuple[StoredCredential, ...] = (
    StoredCredential(
        username="admin@najjak.com",
        password="najjakadmin123",
        role=Role.ADMIN,
        first_name="Admin",
        last_name="User",
    ),
    StoredCredential(
        username="user@example",
        password="12345678",
        role=Role.USER,
        first_name="Test",
        last_name="User",
    ),
    StoredCredential(
        username="sofi@sofi",
        password="123123123",
        role=Role.USER,
        first_name="Sofi",
        last_name="Laurent",
    ),
)


def _lookup_key(username: str) -> str:
    return username.strip().lower()


class SessionStoreError(RuntimeError):
    """Raised when a write to the local store fails."""


class SessionStore:
    """Owns the local credential table, the current session and the token.

    Construct once per process, call :meth:`hydrate` before use and
    :meth:`dispose` on shutdown.  Pass the instance to whoever needs it;
    there is no module-level store.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager``.
    logger:
        Structured logger.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db: DatabaseManager = db
        self._logger: StructuredLogger = logger
        self._credentials: Optional[CredentialTable] = None
        self._session: Optional[AuthUser] = None
        self._token: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def hydrate(self) -> tuple[CredentialTable, Optional[AuthUser]]:
        """Load persisted state, falling back to defaults on bad data.

        Bootstrap accounts missing from the persisted table are appended
        (persisted entries win) and the merged table is written back.

        Returns
        -------
        tuple[CredentialTable, Optional[AuthUser]]
            A copy of the credential table and the current session.
        """
        stored = self._read_credentials()

        table: CredentialTable = {}
        for cred in stored:
            table.setdefault(_lookup_key(cred.username), cred)

        seeded: list[str] = []
        for seed in BOOTSTRAP_ACCOUNTS:
            key = _lookup_key(seed.username)
            if key not in table:
                table[key] = seed.model_copy()
                seeded.append(seed.username)

        self._credentials = table
        self._session = self._read_document(
            _KEY_CURRENT_USER, _OPTIONAL_USER, default=None,
        )
        self._token = self._read_document(_KEY_TOKEN, _OPTIONAL_TOKEN, default=None)

        if seeded:
            self._write_credentials()
            self._logger.info(
                "Seeded %d bootstrap account(s) into the local credential table.",
                len(seeded),
                extra={"event": "STORE_SEEDED", "accounts": ",".join(seeded)},
            )

        self._logger.info(
            "Session store hydrated: %d credential(s), session=%s.",
            len(table),
            self._session.username if self._session else None,
        )
        return dict(table), self._session

    def dispose(self) -> None:
        """Drop in-memory state.  The store must be hydrated again before reuse."""
        self._credentials = None
        self._session = None
        self._token = None
        self._logger.debug("Session store disposed.")

    @property
    def is_hydrated(self) -> bool:
        return self._credentials is not None

    # ------------------------------------------------------------------
    # Credential table
    # ------------------------------------------------------------------

    @property
    def credentials(self) -> list[StoredCredential]:
        """Snapshot of the credential table in insertion order."""
        return list(self._table().values())

    def find_credential(self, username: str) -> Optional[StoredCredential]:
        """Case-insensitive lookup of a cached credential."""
        return self._table().get(_lookup_key(username))

    def verify_password(self, username: str, password: str) -> Optional[StoredCredential]:
        """Return the cached credential when *password* matches, else ``None``."""
        cred = self.find_credential(username)
        if cred is None:
            return None
        if not hmac.compare_digest(
            cred.password.encode("utf-8"), password.encode("utf-8"),
        ):
            return None
        return cred

    def upsert_credential(self, cred: StoredCredential) -> StoredCredential:
        """Insert or overwrite a credential keyed by lowercased username.

        An existing entry keeps its original username casing and its
        position in the table; every other field is replaced.

        Returns
        -------
        StoredCredential
            The record as stored.
        """
        table = self._table()
        key = _lookup_key(cred.username)
        existing = table.get(key)
        if existing is not None:
            cred = cred.model_copy(update={"username": existing.username})
        table[key] = cred
        self._write_credentials()
        self._logger.debug(
            "Credential %s for %s.",
            "updated" if existing is not None else "added",
            cred.username,
        )
        return cred

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def session(self) -> Optional[AuthUser]:
        self._table()
        return self._session

    def set_session(self, user: Optional[AuthUser]) -> None:
        """Replace the current session and persist it immediately."""
        self._table()
        if isinstance(user, StoredCredential):
            user = user.to_user()
        payload: Optional[dict[str, object]] = (
            user.model_dump(mode="json", by_alias=True, exclude_none=True)
            if user is not None
            else None
        )
        self._write_document(_KEY_CURRENT_USER, payload)
        self._session = user

    # ------------------------------------------------------------------
    # Bearer token
    # ------------------------------------------------------------------

    def get_token(self) -> Optional[str]:
        """Return the persisted bearer token, or ``None``."""
        self._table()
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        """Persist (or with ``None``, forget) the bearer token."""
        self._table()
        self._write_document(_KEY_TOKEN, token)
        self._token = token

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _table(self) -> CredentialTable:
        if self._credentials is None:
            raise RuntimeError(
                "SessionStore is not hydrated. Call hydrate() first."
            )
        return self._credentials

    def _write_credentials(self) -> None:
        payload = [
            cred.model_dump(mode="json", by_alias=True, exclude_none=True)
            for cred in self._table().values()
        ]
        self._write_document(_KEY_USERS, payload)

    def _read_credentials(self) -> list[StoredCredential]:
        """Read the credential list entry by entry.

        Entries that fail validation are skipped and logged; the rest of
        the table is kept.
        """
        raw_entries: list[Any] = self._read_document(_KEY_USERS, _RAW_LIST, default=[]) or []

        credentials: list[StoredCredential] = []
        skipped = 0
        for entry in raw_entries:
            try:
                credentials.append(StoredCredential.model_validate(entry))
            except ValidationError:
                skipped += 1

        if skipped:
            self._logger.warning(
                "Skipped %d malformed entr%s in local_storage[%s].",
                skipped,
                "y" if skipped == 1 else "ies",
                _KEY_USERS,
                extra={"event": "STORE_CORRUPT", "key": _KEY_USERS},
            )
        return credentials

    def _read_document(self, key: str, adapter: TypeAdapter, default: object) -> object:
        """Read and validate one JSON document, returning *default* on any problem."""
        try:
            row = self._db.sqlite.execute(
                "SELECT value FROM local_storage WHERE key = ?",
                (key,),
            ).fetchone()
        except Exception as exc:
            self._logger.warning(
                "Failed to read local_storage[%s]: %s", key, exc,
                extra={"event": "STORE_CORRUPT", "key": key},
            )
            return default

        if row is None:
            return default

        try:
            return adapter.validate_json(row["value"])
        except ValidationError as exc:
            self._logger.warning(
                "local_storage[%s] is malformed; using defaults. (%d error(s))",
                key,
                exc.error_count(),
                extra={"event": "STORE_CORRUPT", "key": key},
            )
            return default

    def _write_document(self, key: str, value: object) -> None:
        """Upsert one JSON document and commit before returning."""
        try:
            serialized = json.dumps(value, ensure_ascii=False)
            with self._db.write_lock:
                self._db.sqlite.execute(
                    """
                    INSERT INTO local_storage (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value      = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, serialized),
                )
                self._db.sqlite.commit()
        except Exception as exc:
            self._logger.error("Failed to write local_storage[%s]: %s", key, exc)
            raise SessionStoreError(
                f"Could not persist '{key}' to the local store."
            ) from exc
