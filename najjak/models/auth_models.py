"""
Authentication Pipeline Models.

Pydantic models and enumerations for the contracts between the
remote identity client, the auth orchestrator and the UI layer.

Remote outcomes travel as values: the identity client returns either a
``RemoteIdentity`` or one of the ``AuthFailure`` variants, and the
orchestrator returns an ``AuthResult``.  Nothing in the auth flow uses
exceptions to signal an expected outcome.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from najjak.models.user import AuthUser


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Error categories surfaced to the UI in ``AuthResult.error_code``."""

    INVALID_CREDENTIALS = "invalid_credentials"
    VALIDATION_ERROR = "validation_error"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"
    SIGN_IN_REQUIRED = "sign_in_required"


# ---------------------------------------------------------------------------
# Remote failure variants
# ---------------------------------------------------------------------------

class NetworkUnreachable(BaseModel):
    """No response was received: backend down, unroutable, or timed out."""

    kind: Literal["network_unreachable"] = "network_unreachable"
    detail: str = ""


class InvalidCredentials(BaseModel):
    """HTTP 401."""

    kind: Literal["invalid_credentials"] = "invalid_credentials"
    message: str


class ValidationFailed(BaseModel):
    """HTTP 422.

    Attributes
    ----------
    field_errors:
        Every field error the server reported, in response order.
    message:
        The first violated field's message (or the server's top-level
        message when no field errors were given).
    """

    kind: Literal["validation_failed"] = "validation_failed"
    field_errors: dict[str, list[str]] = Field(default_factory=dict)
    message: str


class ServerRejected(BaseModel):
    """Any other HTTP error status."""

    kind: Literal["server_rejected"] = "server_rejected"
    status_code: Optional[int] = None
    message: str = ""


class RegisteredNotSignedIn(BaseModel):
    """The account was created but no user could be obtained to sign in.

    Returned by registration when the backend answered with an empty
    body and the follow-up sign-in did not produce a user either.
    """

    kind: Literal["registered_not_signed_in"] = "registered_not_signed_in"
    message: str = ""


AuthFailure = Annotated[
    Union[
        NetworkUnreachable,
        InvalidCredentials,
        ValidationFailed,
        ServerRejected,
        RegisteredNotSignedIn,
    ],
    Field(discriminator="kind"),
]

FAILURE_TYPES: tuple[type[BaseModel], ...] = (
    NetworkUnreachable,
    InvalidCredentials,
    ValidationFailed,
    ServerRejected,
    RegisteredNotSignedIn,
)


def is_failure(outcome: object) -> bool:
    """``True`` when *outcome* is one of the ``AuthFailure`` variants."""
    return isinstance(outcome, FAILURE_TYPES)


# ---------------------------------------------------------------------------
# Canonical remote identity
# ---------------------------------------------------------------------------

class RemoteIdentity(BaseModel):
    """One canonical shape for every user payload the backend returns.

    ``raw_role`` is deliberately left unnormalised; turning it into a
    ``Role`` is the orchestrator's call via ``role_resolver``.
    """

    username: str
    raw_role: Any = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    token: Optional[str] = None


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a client-side precondition check."""

    is_valid: bool
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Unified auth response
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Unified response for login, registration, logout, profile refresh
    and password-reset operations.

    Attributes
    ----------
    success:
        ``True`` when the operation completed without error.
    error_code:
        Structured error category (``None`` on success).
    error_message:
        Human-readable message; also carries informational text on some
        successful operations (password reset).
    user:
        The signed-in user after the operation, when there is one.
    is_offline_login:
        ``True`` when sign-in succeeded against the local credential
        table because the backend could not be reached.
    """

    success: bool
    error_code: Optional[AuthErrorCode] = None
    error_message: Optional[str] = None
    user: Optional[AuthUser] = None
    is_offline_login: bool = False
