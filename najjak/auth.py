"""
Authentication State.

Provides an injectable ``SessionStateMachine`` that tracks where the
client is in the sign-in lifecycle::

    ANONYMOUS ──login/register──▶ AUTHENTICATING ──success──▶ AUTHENTICATED(user)
        ▲                              │                           │
        └────────────failure───────────┘◀──────────logout──────────┘

A failed attempt settles back on whatever the persisted session says:
``AUTHENTICATED`` with the existing user if one is still signed in,
otherwise ``ANONYMOUS``.

Usage::

    from najjak.auth import SessionStateMachine

    machine = SessionStateMachine(initial_user=store.session)
    machine.begin()
    machine.settle(user)
"""

from __future__ import annotations

from typing import Optional

from najjak.models.enums import AuthState
from najjak.models.user import AuthUser


class SessionStateMachine:
    """In-memory holder of the current ``AuthState`` and user.

    Every instance owns its own state; pass a single one through the
    composition root so every component sees the same machine.  All
    access happens on the event loop thread, so no locking is done.
    """

    def __init__(self, initial_user: Optional[AuthUser] = None) -> None:
        self._user: Optional[AuthUser] = initial_user
        self._state: AuthState = (
            AuthState.AUTHENTICATED if initial_user is not None else AuthState.ANONYMOUS
        )

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def current_user(self) -> Optional[AuthUser]:
        """The user of the last settled state.

        An attempt in progress does not hide the user it may replace;
        only a failed attempt without a prior session or a logout does.
        """
        return self._user

    @property
    def is_admin(self) -> bool:
        return self._user is not None and self._user.is_admin

    def begin(self) -> None:
        """Enter ``AUTHENTICATING`` for a login or registration attempt."""
        self._state = AuthState.AUTHENTICATING

    def settle(self, user: Optional[AuthUser]) -> None:
        """Leave the attempt: ``AUTHENTICATED(user)`` or ``ANONYMOUS``."""
        self._user = user
        self._state = (
            AuthState.AUTHENTICATED if user is not None else AuthState.ANONYMOUS
        )

    def clear(self) -> None:
        """End the session."""
        self.settle(None)
