from __future__ import annotations

"""
Data Models Package.

Re-exports the Pydantic models for short imports:
    from najjak.models import AuthUser, StoredCredential, Role, AuthState
    from najjak.models import AuthResult, AuthFailure, RemoteIdentity
"""

from najjak.models.enums import AuthState, Role
from najjak.models.user import AuthUser, StoredCredential
from najjak.models.auth_models import (
    AuthErrorCode,
    AuthFailure,
    AuthResult,
    InvalidCredentials,
    NetworkUnreachable,
    RegisteredNotSignedIn,
    RemoteIdentity,
    ServerRejected,
    ValidationFailed,
    ValidationResult,
)

__all__ = [
    "AuthState",
    "Role",
    "AuthUser",
    "StoredCredential",
    "AuthErrorCode",
    "AuthFailure",
    "AuthResult",
    "InvalidCredentials",
    "NetworkUnreachable",
    "RegisteredNotSignedIn",
    "RemoteIdentity",
    "ServerRejected",
    "ValidationFailed",
    "ValidationResult",
]
