"""
Role Resolution.

Folds the backend's many role encodings into the canonical ``Role``.

The backend has been seen returning roles as strings (``"admin"``,
``"Administrator"``), as integer ids (``1`` = admin, ``2`` = buyer,
``3`` = seller), as numeric strings, and as nested role objects
(``{"id": 1, "name": "admin"}``).  Anything that is not recognisably the
admin role, including a missing role, resolves to ``Role.USER``.

Pure functions: no I/O, no logging, never raise.
"""

from __future__ import annotations

from collections.abc import Mapping

from najjak.models.enums import Role

__all__ = ["is_admin_value", "resolve_role"]

_ADMIN_STRINGS: frozenset[str] = frozenset({"admin", "administrator", "1"})
_ADMIN_ROLE_ID: int = 1
_NESTED_ROLE_KEYS: tuple[str, ...] = ("id", "value", "name", "label")


def is_admin_value(raw: object) -> bool:
    """Return ``True`` when *raw* denotes the admin role."""
    if raw is None or isinstance(raw, bool):
        return False
    if isinstance(raw, int):
        return raw == _ADMIN_ROLE_ID
    if isinstance(raw, str):
        return raw.strip().lower() in _ADMIN_STRINGS
    if isinstance(raw, Mapping):
        return any(is_admin_value(raw.get(key)) for key in _NESTED_ROLE_KEYS)
    return False


def resolve_role(raw: object) -> Role:
    """Normalise a single remote role value.

    >>> resolve_role("ADMIN")
    <Role.ADMIN: 'admin'>
    >>> resolve_role("editor")
    <Role.USER: 'user'>
    """
    return Role.ADMIN if is_admin_value(raw) else Role.USER
