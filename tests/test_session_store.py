"""
Unit tests for the SessionStore: hydration, seeding, corruption recovery
and write-through persistence.

Run with:
    pytest tests/test_session_store.py -v
"""

import json

import pytest

from najjak.models.enums import Role
from najjak.models.user import AuthUser, StoredCredential
from najjak.services.session_store import BOOTSTRAP_ACCOUNTS, SessionStore


def _raw_put(db, key, value):
    db.sqlite.execute(
        "INSERT OR REPLACE INTO local_storage (key, value) VALUES (?, ?)",
        (key, value),
    )
    db.sqlite.commit()


def _raw_get(db, key):
    row = db.sqlite.execute(
        "SELECT value FROM local_storage WHERE key = ?", (key,),
    ).fetchone()
    return None if row is None else json.loads(row["value"])


class TestHydrate:
    """Hydration on fresh, existing and corrupted stores."""

    def test_fresh_store_has_exactly_the_seed_accounts(self, db, logger):
        store = SessionStore(db=db, logger=logger)
        table, session = store.hydrate()

        assert session is None
        assert list(table) == [seed.username.lower() for seed in BOOTSTRAP_ACCOUNTS]
        assert table["admin@najjak.com"].role is Role.ADMIN
        assert store.get_token() is None

    def test_seeds_are_written_back(self, db, logger):
        SessionStore(db=db, logger=logger).hydrate()

        persisted = _raw_get(db, "najjak_users")
        assert [entry["username"] for entry in persisted] == [
            "admin@najjak.com", "user@example", "sofi@sofi",
        ]
        assert persisted[2]["firstName"] == "Sofi"

    def test_corrupted_json_degrades_to_defaults(self, db, logger):
        _raw_put(db, "najjak_users", "{not json")
        _raw_put(db, "najjak_current_user", "[1, 2")

        table, session = SessionStore(db=db, logger=logger).hydrate()

        assert session is None
        assert len(table) == len(BOOTSTRAP_ACCOUNTS)

    def test_schema_violation_degrades_to_defaults(self, db, logger):
        _raw_put(db, "najjak_users", json.dumps([{"username": "x"}]))
        _raw_put(db, "najjak_current_user", json.dumps({"role": "admin"}))

        table, session = SessionStore(db=db, logger=logger).hydrate()

        assert session is None
        assert "x" not in table

    def test_one_bad_entry_does_not_discard_the_table(self, db, logger):
        _raw_put(db, "najjak_users", json.dumps([
            {"username": "mila@shop", "password": "pw", "role": "user"},
            {"username": "broken"},
            "not-an-object",
        ]))

        table, _ = SessionStore(db=db, logger=logger).hydrate()

        assert table["mila@shop"].password == "pw"
        assert "broken" not in table
        persisted = [entry["username"] for entry in _raw_get(db, "najjak_users")]
        assert persisted[0] == "mila@shop"

        reloaded, _ = SessionStore(db=db, logger=logger).hydrate()
        assert "mila@shop" in reloaded

    def test_existing_entries_win_over_seeds(self, db, logger):
        _raw_put(db, "najjak_users", json.dumps([
            {"username": "Admin@Najjak.com", "password": "changed", "role": "admin"},
            {"username": "mila@shop", "password": "pw", "role": "user", "firstName": "Mila"},
        ]))

        table, _ = SessionStore(db=db, logger=logger).hydrate()

        assert table["admin@najjak.com"].password == "changed"
        assert table["admin@najjak.com"].username == "Admin@Najjak.com"
        assert table["mila@shop"].first_name == "Mila"
        assert len(table) == 4

    def test_state_survives_a_reload(self, db, logger, store):
        user = AuthUser(username="Mila@Shop", role=Role.USER, first_name="Mila")
        store.upsert_credential(StoredCredential(**user.model_dump(), password="pw"))
        store.set_session(user)
        store.set_token("bearer-1")

        reloaded = SessionStore(db=db, logger=logger)
        table, session = reloaded.hydrate()

        assert session == user
        assert reloaded.get_token() == "bearer-1"
        assert table["mila@shop"].password == "pw"


class TestCredentials:
    """Case-insensitive lookup and upsert semantics."""

    def test_find_is_case_insensitive(self, store):
        cred = store.find_credential("  SOFI@sofi ")
        assert cred is not None
        assert cred.username == "sofi@sofi"

    def test_upsert_overwrites_but_keeps_original_casing_and_position(self, store):
        store.upsert_credential(StoredCredential(
            username="USER@EXAMPLE", password="new", role=Role.ADMIN,
        ))

        keys = [c.username for c in store.credentials]
        assert keys == ["admin@najjak.com", "user@example", "sofi@sofi"]
        cred = store.find_credential("user@example")
        assert cred.password == "new"
        assert cred.role is Role.ADMIN
        assert cred.first_name is None

    def test_upsert_inserts_new_users_at_the_end(self, store):
        store.upsert_credential(StoredCredential(username="New@Shop", password="pw"))
        assert store.credentials[-1].username == "New@Shop"

    def test_verify_password(self, store):
        assert store.verify_password("sofi@sofi", "123123123") is not None
        assert store.verify_password("sofi@sofi", "wrong") is None
        assert store.verify_password("ghost@nowhere", "123123123") is None


class TestSession:
    """Write-through session persistence."""

    def test_set_session_persists_without_password(self, db, store):
        cred = store.find_credential("admin@najjak.com")
        store.set_session(cred)

        persisted = _raw_get(db, "najjak_current_user")
        assert persisted == {
            "username": "admin@najjak.com",
            "role": "admin",
            "firstName": "Admin",
            "lastName": "User",
        }
        assert "password" not in store.session.model_dump()

    def test_clearing_session_persists_null(self, db, store):
        store.set_session(AuthUser(username="a@b"))
        store.set_session(None)
        assert _raw_get(db, "najjak_current_user") is None
        assert store.session is None


class TestLifecycle:
    """hydrate()/dispose() guard rails."""

    def test_use_before_hydrate_raises(self, db, logger):
        store = SessionStore(db=db, logger=logger)
        with pytest.raises(RuntimeError):
            store.find_credential("admin@najjak.com")

    def test_dispose_then_rehydrate(self, store):
        store.set_session(AuthUser(username="a@b"))
        store.dispose()
        assert store.is_hydrated is False
        with pytest.raises(RuntimeError):
            store.set_session(None)

        _, session = store.hydrate()
        assert session.username == "a@b"
