"""
Shared Enumerations for Najjak Models.

StrEnum values compare equal to their string equivalents, so persisted
records holding ``"admin"`` / ``"user"`` validate straight into ``Role``.
"""

from __future__ import annotations
from enum import StrEnum


class Role(StrEnum):
    """Canonical storefront role.

    The remote backend encodes roles in several ways (strings, integer
    ids, nested role objects); ``role_resolver`` folds all of them into
    one of these two values.
    """

    ADMIN = "admin"
    USER = "user"


class AuthState(StrEnum):
    """States of the authentication state machine.

    There is no terminal state: the machine lives as long as the process.
    """

    ANONYMOUS = "ANONYMOUS"
    AUTHENTICATING = "AUTHENTICATING"
    AUTHENTICATED = "AUTHENTICATED"
