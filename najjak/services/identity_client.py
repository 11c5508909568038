"""
Remote Identity Client.

Async wrapper around the storefront backend's cookie-session identity
endpoints (Laravel Sanctum SPA authentication)::

    GET  /sanctum/csrf-cookie   preflight; sets the XSRF-TOKEN cookie
    POST /login                 {email, password}
    POST /register              {name, email, password, password_confirmation}
    POST /logout
    GET  /api/user, /api/me     profile, tried in order
    POST /forgot-password       {email}

Every method returns a value: either the success payload or one of the
``AuthFailure`` variants.  Transport and HTTP errors never escape as
exceptions, so callers can branch exhaustively on the result type.

Response normalisation lives here and only here.  The backend is
inconsistent about where it puts the user (``user``, ``data.user``,
``data``, or the body itself), how it spells keys (``roleId`` vs
``role_id``) and whether it sends a single ``name`` or explicit first/last
names.  All of that is folded into one ``RemoteIdentity`` before anything
else sees it.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional, Union
from urllib.parse import unquote

import httpx

from najjak.config import AppConfig
from najjak.logger import StructuredLogger
from najjak.models.auth_models import (
    AuthFailure,
    InvalidCredentials,
    NetworkUnreachable,
    RegisteredNotSignedIn,
    RemoteIdentity,
    ServerRejected,
    ValidationFailed,
    is_failure,
)
from najjak.utils.string_helpers import JsonValue, normalize_keys

__all__ = ["IdentityOutcome", "RemoteIdentityClient", "split_full_name"]

IdentityOutcome = Union[RemoteIdentity, AuthFailure]

# Ordered candidates, checked after keys are snake_cased.
_TOKEN_KEYS: tuple[str, ...] = ("token", "access_token")
_ROLE_KEYS: tuple[str, ...] = ("role", "role_id", "user_role")
_USERNAME_KEYS: tuple[str, ...] = ("email", "username")
_CREDENTIAL_ERROR_FIELDS: tuple[str, ...] = ("email", "password")

_DEFAULT_INVALID_MESSAGE: str = "Invalid email or password."
_DEFAULT_VALIDATION_MESSAGE: str = "Validation failed. Please check your input."
_REGISTERED_NOT_SIGNED_IN_MESSAGE: str = "Registration succeeded. Please log in."
_SKIPPABLE_PROFILE_STATUSES: frozenset[int] = frozenset({404, 405})


def split_full_name(name: object) -> tuple[Optional[str], Optional[str]]:
    """Split a full name on its first whitespace boundary.

    >>> split_full_name("Sofi  Laurent Dubois")
    ('Sofi', 'Laurent Dubois')
    >>> split_full_name("Cher")
    ('Cher', None)
    """
    if not isinstance(name, str):
        return None, None
    parts = name.strip().split(None, 1)
    if not parts:
        return None, None
    first = parts[0]
    last = parts[1].strip() if len(parts) > 1 else None
    return first, last or None


def _first_present(payload: dict[str, JsonValue], keys: tuple[str, ...]) -> JsonValue:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_text(value: JsonValue) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class RemoteIdentityClient:
    """Talks to the remote identity service.

    Parameters
    ----------
    config:
        Application settings (base URL, paths, XSRF cookie/header names,
        timeout).
    logger:
        Structured logger.
    token_provider:
        Returns the current bearer token (or ``None``); it is attached
        as ``Authorization: Bearer`` on every request.
    http_client:
        Pre-built ``httpx.AsyncClient``.  When omitted the client builds
        and owns one; an injected client is never closed here.
    """

    def __init__(
        self,
        config: AppConfig,
        logger: StructuredLogger,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config: AppConfig = config
        self._logger: StructuredLogger = logger
        self._token_provider: Callable[[], Optional[str]] = token_provider or (lambda: None)
        self._owns_client: bool = http_client is None
        self._http: httpx.AsyncClient = http_client or httpx.AsyncClient(
            base_url=config.BACKEND_BASE_URL,
            timeout=httpx.Timeout(config.HTTP_TIMEOUT_S),
            headers={"Accept": "application/json"},
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def preflight(self) -> Optional[AuthFailure]:
        """Fetch the CSRF cookie the backend checks on every write.

        Returns ``None`` on success, otherwise the failure.
        """
        outcome = await self._request("GET", self._config.CSRF_COOKIE_PATH)
        if is_failure(outcome):
            return outcome
        self._logger.debug(
            "CSRF preflight complete (cookie present: %s).",
            self._xsrf_token() is not None,
        )
        return None

    async def login(self, identity: str, password: str) -> IdentityOutcome:
        """``POST /login`` and normalise the returned user."""
        outcome = await self._request(
            "POST",
            self._config.auth_path(self._config.LOGIN_PATH),
            json={"email": identity, "password": password},
        )
        if is_failure(outcome):
            return outcome
        body = normalize_keys(self._json_body(outcome))
        return self._to_identity(
            body, self._user_payload(body, allow_root=True) or {}, identity,
        )

    async def register(
        self,
        identity: str,
        password: str,
        password_confirmation: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> IdentityOutcome:
        """``POST /register``.

        The backend may answer with a token and user, with only one of
        them, or with an empty 201/204.  A missing token or user triggers
        one follow-up login.  If that fails too and the backend did hand
        out a token, the profile is read with it.  With still no user the
        result is ``RegisteredNotSignedIn``: the account exists but nobody
        is signed in.
        """
        outcome = await self._request(
            "POST",
            self._config.auth_path(self._config.REGISTER_PATH),
            json={
                "name": self._display_name(identity, first_name, last_name),
                "email": identity,
                "password": password,
                "password_confirmation": password_confirmation,
            },
        )
        if is_failure(outcome):
            return outcome

        body = normalize_keys(self._json_body(outcome))
        user_payload = self._user_payload(body, allow_root=False)
        token = _as_text(_first_present(body, _TOKEN_KEYS))

        if user_payload is not None and token is not None:
            return self._to_identity(body, user_payload, identity)

        self._logger.info(
            "Registration response lacked %s; signing in to complete it.",
            "a user" if user_payload is None else "a token",
        )
        follow_up = await self.login(identity, password)
        if isinstance(follow_up, RemoteIdentity):
            if user_payload is None:
                return follow_up.model_copy(update={"token": token or follow_up.token})
            return self._to_identity(body, user_payload, identity).model_copy(
                update={"token": token or follow_up.token},
            )

        self._logger.warning(
            "Registration succeeded but the follow-up login failed: %s",
            follow_up.kind,
        )
        if user_payload is not None:
            return self._to_identity(body, user_payload, identity)

        if token is not None:
            profile = await self.fetch_profile(bearer=token)
            if isinstance(profile, RemoteIdentity):
                return profile.model_copy(update={"token": token})

        return RegisteredNotSignedIn(message=_REGISTERED_NOT_SIGNED_IN_MESSAGE)

    async def logout(self) -> Optional[AuthFailure]:
        """``POST /logout``.  Returns ``None`` on success."""
        outcome = await self._request(
            "POST", self._config.auth_path(self._config.LOGOUT_PATH),
        )
        return outcome if is_failure(outcome) else None

    async def fetch_profile(self, bearer: Optional[str] = None) -> IdentityOutcome:
        """Fetch the signed-in user's profile.

        Endpoints from ``PROFILE_ENDPOINTS`` are tried in order; a 404 or
        405 moves on to the next one, any other failure is returned.
        *bearer* overrides the token from ``token_provider``.
        """
        for endpoint in self._config.PROFILE_ENDPOINTS:
            outcome = await self._request("GET", endpoint, bearer=bearer)
            if isinstance(outcome, ServerRejected) and outcome.status_code in _SKIPPABLE_PROFILE_STATUSES:
                self._logger.debug("Profile endpoint %s unavailable (%s).", endpoint, outcome.status_code)
                continue
            if is_failure(outcome):
                return outcome
            body = normalize_keys(self._json_body(outcome))
            return self._to_identity(body, self._user_payload(body, allow_root=True) or {}, "")

        return ServerRejected(status_code=404, message="No profile endpoint is available.")

    async def forgot_password(self, email: str) -> Union[str, AuthFailure]:
        """``POST /forgot-password``.  Returns the server's status text on success."""
        outcome = await self._request(
            "POST",
            self._config.auth_path(self._config.FORGOT_PASSWORD_PATH),
            json={"email": email},
        )
        if is_failure(outcome):
            return outcome
        return _as_text(self._json_body(outcome).get("status")) or ""

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict[str, JsonValue]] = None,
        bearer: Optional[str] = None,
    ) -> Union[httpx.Response, AuthFailure]:
        headers: dict[str, str] = {}
        token = bearer or self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if method != "GET":
            xsrf = self._xsrf_token()
            if xsrf is not None:
                headers[self._config.XSRF_HEADER_NAME] = xsrf

        try:
            response = await self._http.request(method, path, json=json, headers=headers)
        except httpx.TransportError as exc:
            self._logger.warning(
                "Identity service unreachable (%s %s): %s",
                method,
                path,
                exc,
                extra={"event": "REMOTE_UNREACHABLE", "error_type": type(exc).__name__},
            )
            return NetworkUnreachable(detail=str(exc) or type(exc).__name__)

        if response.is_error:
            failure = self._classify(response)
            self._logger.info(
                "Identity service rejected %s %s with %d (%s).",
                method,
                path,
                response.status_code,
                failure.kind,
            )
            return failure
        return response

    def _xsrf_token(self) -> Optional[str]:
        # Iterate the jar directly: cookies.get() raises on duplicate names
        # set for different paths.
        for cookie in self._http.cookies.jar:
            if cookie.name == self._config.XSRF_COOKIE_NAME and cookie.value:
                return unquote(cookie.value)
        return None

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _classify(self, response: httpx.Response) -> AuthFailure:
        """Map an HTTP error response onto an ``AuthFailure`` variant."""
        body = self._json_body(response)
        server_message = _as_text(body.get("message"))
        field_errors = self._field_errors(body.get("errors"))

        if response.status_code == 401:
            credential_message = next(
                (
                    field_errors[field][0]
                    for field in _CREDENTIAL_ERROR_FIELDS
                    if field_errors.get(field)
                ),
                None,
            )
            return InvalidCredentials(
                message=credential_message or server_message or _DEFAULT_INVALID_MESSAGE,
            )

        if response.status_code == 422:
            first_error = next(
                (messages[0] for messages in field_errors.values() if messages),
                None,
            )
            return ValidationFailed(
                field_errors=field_errors,
                message=first_error or server_message or _DEFAULT_VALIDATION_MESSAGE,
            )

        return ServerRejected(
            status_code=response.status_code,
            message=server_message or response.reason_phrase,
        )

    @staticmethod
    def _field_errors(raw: JsonValue) -> dict[str, list[str]]:
        if not isinstance(raw, dict):
            return {}
        errors: dict[str, list[str]] = {}
        for field, messages in raw.items():
            if isinstance(messages, list):
                errors[field] = [str(message) for message in messages if message]
            elif messages:
                errors[field] = [str(messages)]
        return errors

    # ------------------------------------------------------------------
    # Normalisation
    # ------------------------------------------------------------------

    @staticmethod
    def _json_body(response: httpx.Response) -> dict[str, JsonValue]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _user_payload(
        body: dict[str, JsonValue], allow_root: bool,
    ) -> Optional[dict[str, JsonValue]]:
        """Locate the user object: ``user``, ``data.user``, ``data``, then the body."""
        user = body.get("user")
        if isinstance(user, dict):
            return user
        data = body.get("data")
        if isinstance(data, dict):
            nested = data.get("user")
            if isinstance(nested, dict):
                return nested
            if allow_root:
                return data
        return body if allow_root else None

    @staticmethod
    def _to_identity(
        body: dict[str, JsonValue],
        user: dict[str, JsonValue],
        fallback_username: str,
    ) -> RemoteIdentity:
        first_name = _as_text(user.get("first_name"))
        last_name = _as_text(user.get("last_name"))
        if first_name is None and last_name is None:
            first_name, last_name = split_full_name(user.get("name"))

        return RemoteIdentity(
            username=_as_text(_first_present(user, _USERNAME_KEYS)) or fallback_username,
            raw_role=_first_present(user, _ROLE_KEYS),
            first_name=first_name,
            last_name=last_name,
            token=_as_text(_first_present(body, _TOKEN_KEYS)),
        )

    @staticmethod
    def _display_name(
        identity: str, first_name: Optional[str], last_name: Optional[str],
    ) -> str:
        if first_name and last_name:
            return f"{first_name} {last_name}".strip()
        return first_name or last_name or identity
