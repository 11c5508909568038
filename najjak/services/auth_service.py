"""
Authentication Orchestrator.

Single entry point for every authentication concern of the storefront:
login, registration, logout, profile refresh and password reset.

Sits between the UI layer and the remote identity client / local session
store.  The remote service is tried first.  Only a login that cannot
reach the service at all falls back to the local credential table;
anything the service answers (accepted, rejected, invalid) is final.

All methods return ``AuthResult`` models; the UI never inspects raw
exceptions.
"""

from __future__ import annotations

from typing import Optional

from najjak.auth import SessionStateMachine
from najjak.logger import StructuredLogger
from najjak.models.auth_models import (
    AuthErrorCode,
    AuthResult,
    InvalidCredentials,
    NetworkUnreachable,
    RegisteredNotSignedIn,
    RemoteIdentity,
    ValidationFailed,
    ValidationResult,
)
from najjak.models.enums import AuthState
from najjak.models.user import AuthUser, StoredCredential
from najjak.services.identity_client import RemoteIdentityClient
from najjak.services.role_resolver import resolve_role
from najjak.services.session_store import SessionStore, SessionStoreError


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

MSG_EMAIL_REQUIRED: str = "Email is required."
MSG_IDENTITY_REQUIRED: str = "Username/Email is required."
MSG_PASSWORD_REQUIRED: str = "Password is required."
MSG_PASSWORD_MISMATCH: str = "Passwords do not match."
MSG_INVALID_LOGIN: str = "Invalid email or password."
MSG_LOGIN_FAILED: str = "Login failed. Please try again."
MSG_REGISTER_UNREACHABLE: str = (
    "Unable to connect to server. Please ensure the backend is running."
)
MSG_REGISTER_FAILED: str = "Registration failed. Please try again."
MSG_REGISTER_SIGN_IN: str = "Registration succeeded. Please log in."
MSG_SESSION_EXPIRED: str = "Your session has expired. Please sign in again."
MSG_RESET_UNREACHABLE: str = "Unable to connect to server. Please try again."
MSG_RESET_FAILED: str = "Unable to send reset email."
MSG_RESET_SENT: str = "Password reset email sent."


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class AuthOrchestrator:
    """Authentication state machine over the remote client and local store.

    Receives all collaborators via ``__init__``.  The store must already
    be hydrated: the initial state is taken from its persisted session.

    Parameters
    ----------
    store:
        Hydrated session store (credential table, session, token).
    client:
        Remote identity client.
    logger:
        Structured JSON logger.
    machine:
        State holder; a fresh one seeded from ``store.session`` is
        created when omitted.
    """

    def __init__(
        self,
        store: SessionStore,
        client: RemoteIdentityClient,
        logger: StructuredLogger,
        machine: Optional[SessionStateMachine] = None,
    ) -> None:
        self._store: SessionStore = store
        self._client: RemoteIdentityClient = client
        self._logger: StructuredLogger = logger
        self._machine: SessionStateMachine = machine or SessionStateMachine(store.session)

    # ==================================================================
    # Queries
    # ==================================================================

    @property
    def state(self) -> AuthState:
        return self._machine.state

    def current_user(self) -> Optional[AuthUser]:
        """The signed-in user, or ``None``."""
        return self._machine.current_user

    def is_admin(self) -> bool:
        return self._machine.is_admin

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def validate_registration(
        identity: str,
        password: str,
        password_confirmation: Optional[str] = None,
    ) -> ValidationResult:
        """Local checks that must pass before registration touches the network.

        A confirmation is only compared when one was supplied.
        """
        if not identity or not identity.strip():
            return ValidationResult(is_valid=False, error_message=MSG_IDENTITY_REQUIRED)
        if not password:
            return ValidationResult(is_valid=False, error_message=MSG_PASSWORD_REQUIRED)
        if password_confirmation and password != password_confirmation:
            return ValidationResult(is_valid=False, error_message=MSG_PASSWORD_MISMATCH)
        return ValidationResult(is_valid=True)

    # ==================================================================
    # Login
    # ==================================================================

    async def login(self, identity: str, password: str) -> AuthResult:
        """Authenticate against the identity service, falling back to the
        local credential table when the service cannot be reached.

        Parameters
        ----------
        identity:
            Email / username as typed by the user.
        password:
            Plaintext password as typed by the user.

        Returns
        -------
        AuthResult
            ``success=True`` with the signed-in ``user``, or a structured
            failure.  The session is only touched on success.
        """
        identity = identity.strip()
        if not identity:
            return self._failure(AuthErrorCode.VALIDATION_ERROR, MSG_EMAIL_REQUIRED)

        self._machine.begin()
        outcome = await self._client.preflight()
        if outcome is None:
            outcome = await self._client.login(identity, password)

        if isinstance(outcome, RemoteIdentity):
            remote = await self._with_profile(outcome)
            user = self._reconcile(remote, identity, password)
            self._logger.info(
                "User authenticated: %s (role: %s)",
                user.username,
                user.role,
                extra={"event": "LOGIN", "username": user.username},
            )
            return AuthResult(success=True, user=user)

        if isinstance(outcome, NetworkUnreachable):
            return self._offline_login(identity, password)

        self._settle_after_failure()
        self._logger.warning(
            "Login rejected for %s: %s",
            identity,
            outcome.kind,
            extra={"event": "LOGIN_FAILED", "error_code": outcome.kind},
        )
        if isinstance(outcome, InvalidCredentials):
            return self._failure(AuthErrorCode.INVALID_CREDENTIALS, outcome.message)
        if isinstance(outcome, ValidationFailed):
            return self._failure(AuthErrorCode.VALIDATION_ERROR, outcome.message)
        return self._failure(AuthErrorCode.SERVER_ERROR, MSG_LOGIN_FAILED)

    def _offline_login(self, identity: str, password: str) -> AuthResult:
        """Verify against the local credential table.

        Parameters
        ----------
        identity:
            Trimmed identity.
        password:
            Plaintext password entered by the user.
        """
        cached = self._store.verify_password(identity, password)
        if cached is None:
            self._settle_after_failure()
            self._logger.warning(
                "Offline login failed for %s.",
                identity,
                extra={"event": "LOGIN_FAILED", "error_code": "offline_mismatch"},
            )
            return self._failure(AuthErrorCode.INVALID_CREDENTIALS, MSG_INVALID_LOGIN)

        user = cached.to_user()
        self._persist_session(user)

        self._logger.info(
            "Offline login: %s from local credential table.",
            user.username,
            extra={"event": "OFFLINE_LOGIN", "username": user.username},
        )
        return AuthResult(success=True, user=user, is_offline_login=True)

    # ==================================================================
    # Registration
    # ==================================================================

    async def register(
        self,
        identity: str,
        password: str,
        password_confirmation: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> AuthResult:
        """Create an account remotely and sign it in.

        Registration has no offline path: without the identity service
        there is nothing authoritative to create.

        Returns
        -------
        AuthResult
        """
        check = self.validate_registration(identity, password, password_confirmation)
        if not check.is_valid:
            return self._failure(AuthErrorCode.VALIDATION_ERROR, check.error_message)

        identity = identity.strip()
        first_name = _clean(first_name)
        last_name = _clean(last_name)

        self._machine.begin()
        outcome = await self._client.preflight()
        if outcome is None:
            outcome = await self._client.register(
                identity,
                password,
                password_confirmation or password,
                first_name,
                last_name,
            )

        if isinstance(outcome, RemoteIdentity):
            user = self._reconcile(
                outcome, identity, password, first_name=first_name, last_name=last_name,
            )
            self._logger.info(
                "User registered: %s (role: %s)",
                user.username,
                user.role,
                extra={"event": "REGISTER", "username": user.username},
            )
            return AuthResult(success=True, user=user)

        self._settle_after_failure()
        self._logger.warning(
            "Registration failed for %s: %s",
            identity,
            outcome.kind,
            extra={"event": "REGISTER_FAILED", "error_code": outcome.kind},
        )
        if isinstance(outcome, RegisteredNotSignedIn):
            return self._failure(
                AuthErrorCode.SIGN_IN_REQUIRED, outcome.message or MSG_REGISTER_SIGN_IN,
            )
        if isinstance(outcome, ValidationFailed):
            return self._failure(AuthErrorCode.VALIDATION_ERROR, outcome.message)
        if isinstance(outcome, NetworkUnreachable):
            return self._failure(AuthErrorCode.NETWORK_ERROR, MSG_REGISTER_UNREACHABLE)
        if isinstance(outcome, InvalidCredentials):
            return self._failure(AuthErrorCode.INVALID_CREDENTIALS, MSG_REGISTER_FAILED)
        return self._failure(AuthErrorCode.SERVER_ERROR, MSG_REGISTER_FAILED)

    # ==================================================================
    # Logout
    # ==================================================================

    async def logout(self) -> AuthResult:
        """Best-effort remote sign-out, then unconditional local cleanup.

        Remote failures, returned or raised, are logged and never
        surfaced; the local session is always cleared.
        """
        previous = self._store.session
        username = previous.username if previous is not None else "unknown"

        try:
            failure = await self._client.logout()
            if failure is not None:
                self._logger.warning(
                    "Server-side logout failed for %s: %s", username, failure.kind,
                )
        except Exception as exc:
            self._logger.warning(
                "Server-side logout raised for %s: %s", username, exc,
            )

        self._store.set_session(None)
        self._store.set_token(None)
        self._machine.clear()

        self._logger.info(
            "User logged out: %s",
            username,
            extra={"event": "LOGOUT", "username": username},
        )
        return AuthResult(success=True)

    # ==================================================================
    # Profile refresh
    # ==================================================================

    async def refresh_profile(self) -> AuthResult:
        """Re-read the signed-in user's profile from the backend.

        Meant to run once at startup.  Does nothing without both a
        session and a bearer token.  A 401 ends the session; any other
        failure keeps it as is.
        """
        session = self._store.session
        if session is None or not self._store.get_token():
            return AuthResult(success=True, user=session)

        outcome = await self._client.fetch_profile()

        if isinstance(outcome, RemoteIdentity):
            role = resolve_role(outcome.raw_role) if outcome.raw_role is not None else session.role
            updated = AuthUser(
                username=outcome.username or session.username,
                role=role,
                first_name=outcome.first_name or session.first_name,
                last_name=outcome.last_name or session.last_name,
            )
            cached = self._store.find_credential(session.username)
            if cached is not None:
                self._store.upsert_credential(
                    cached.model_copy(update={
                        "role": updated.role,
                        "first_name": updated.first_name,
                        "last_name": updated.last_name,
                    }),
                )
            self._persist_session(updated)
            self._logger.info(
                "Profile refreshed for %s (role: %s)",
                updated.username,
                updated.role,
                extra={"event": "PROFILE_REFRESHED", "username": updated.username},
            )
            return AuthResult(success=True, user=updated)

        if isinstance(outcome, InvalidCredentials):
            self._logger.warning(
                "Bearer token rejected for %s; clearing session.",
                session.username,
                extra={"event": "SESSION_EXPIRED", "username": session.username},
            )
            self._store.set_session(None)
            self._store.set_token(None)
            self._machine.clear()
            return self._failure(AuthErrorCode.INVALID_CREDENTIALS, MSG_SESSION_EXPIRED)

        self._logger.warning(
            "Could not refresh profile for %s: %s", session.username, outcome.kind,
        )
        return AuthResult(success=True, user=session)

    # ==================================================================
    # Password reset
    # ==================================================================

    async def forgot_password(self, email: str) -> AuthResult:
        """Ask the backend to send a password-reset email.

        On success ``error_message`` carries the server's status text.
        """
        email = email.strip()
        if not email:
            return self._failure(AuthErrorCode.VALIDATION_ERROR, MSG_EMAIL_REQUIRED)

        outcome = await self._client.forgot_password(email)
        if isinstance(outcome, str):
            self._logger.info(
                "Password reset requested for %s.", email,
                extra={"event": "PASSWORD_RESET_REQUESTED"},
            )
            return AuthResult(success=True, error_message=outcome or MSG_RESET_SENT)
        if isinstance(outcome, ValidationFailed):
            return self._failure(AuthErrorCode.VALIDATION_ERROR, outcome.message)
        if isinstance(outcome, NetworkUnreachable):
            return self._failure(AuthErrorCode.NETWORK_ERROR, MSG_RESET_UNREACHABLE)
        return self._failure(AuthErrorCode.SERVER_ERROR, outcome.message or MSG_RESET_FAILED)

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _reconcile(
        self,
        remote: RemoteIdentity,
        identity: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> AuthUser:
        """Write the remote's authoritative view into the local store.

        Locally supplied names (registration form) win over the remote's.
        """
        user = AuthUser(
            username=remote.username or identity,
            role=resolve_role(remote.raw_role),
            first_name=first_name or remote.first_name,
            last_name=last_name or remote.last_name,
        )
        try:
            self._store.upsert_credential(
                StoredCredential(**user.model_dump(), password=password),
            )
            if remote.token:
                self._store.set_token(remote.token)
        except SessionStoreError:
            self._settle_after_failure()
            raise
        self._persist_session(user)
        return user

    async def _with_profile(self, remote: RemoteIdentity) -> RemoteIdentity:
        """Overlay the profile endpoint's view on a login response.

        The login body does not always carry the role.  The token is
        stored first so the profile request is authenticated; a profile
        that cannot be read leaves the login response as is.
        """
        if remote.token:
            try:
                self._store.set_token(remote.token)
            except SessionStoreError:
                self._settle_after_failure()
                raise

        profile = await self._client.fetch_profile()
        if not isinstance(profile, RemoteIdentity):
            self._logger.debug(
                "Profile unavailable after login (%s); using the login response.",
                profile.kind,
            )
            return remote

        return remote.model_copy(update={
            "username": profile.username or remote.username,
            "raw_role": profile.raw_role if profile.raw_role is not None else remote.raw_role,
            "first_name": profile.first_name or remote.first_name,
            "last_name": profile.last_name or remote.last_name,
        })

    def _persist_session(self, user: AuthUser) -> None:
        try:
            self._store.set_session(user)
        except SessionStoreError:
            self._settle_after_failure()
            raise
        self._machine.settle(user)

    def _settle_after_failure(self) -> None:
        """Fall back to whatever the persisted session says."""
        self._machine.settle(self._store.session)

    @staticmethod
    def _failure(code: AuthErrorCode, message: Optional[str]) -> AuthResult:
        return AuthResult(success=False, error_code=code, error_message=message)
