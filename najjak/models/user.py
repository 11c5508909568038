"""
User Models.

``AuthUser`` is the publicly visible identity handed to the UI layer.
``StoredCredential`` adds the cached password and only ever lives inside
``SessionStore``.

Both serialise with camelCase name fields (``firstName`` / ``lastName``)
so the persisted records keep the storefront's original shape, and both
accept either spelling on input.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from najjak.models.enums import Role


class AuthUser(BaseModel):
    """The signed-in identity.  Holds no secret.

    ``username`` keeps the casing it was created with; lookups in the
    credential table are case-insensitive.
    """

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    username: str
    role: Role = Role.USER
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class StoredCredential(AuthUser):
    """An ``AuthUser`` plus its locally cached plaintext password."""

    password: str

    def to_user(self) -> AuthUser:
        """Return the public identity, without the password."""
        return AuthUser.model_validate(self.model_dump(exclude={"password"}))
