"""
String Helpers: Key Normalisation for Remote Payloads.

The identity backend is inconsistent about key casing (``role_id`` next to
``roleId``, ``first_name`` next to ``firstName``).  Every payload is passed
through :func:`normalize_keys` at the client boundary so that the lookup
tables in ``identity_client`` only need to list snake_case candidates.
"""

from __future__ import annotations

import re
from typing import Union, overload

__all__ = [
    "to_snake_case",
    "normalize_keys",
]

# ---------------------------------------------------------------------------
# Recursive JSON value type
# ---------------------------------------------------------------------------

JsonValue = Union[
    str,
    int,
    float,
    bool,
    None,
    dict[str, "JsonValue"],
    list["JsonValue"],
]

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

# Inserts underscore between a run of uppercase letters and an uppercase
# letter followed by a lowercase letter.  e.g. "XSRFToken" -> "XSRF_Token"
_RE_UPPER_RUN = re.compile(r"([A-Z]+)([A-Z][a-z])")

# Inserts underscore at the camelCase boundary where a lowercase letter or
# digit is followed by an uppercase letter.  e.g. "roleId" -> "role_Id"
_RE_CAMEL_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")

# Collapses multiple consecutive underscores into a single one.
_RE_MULTI_UNDERSCORE = re.compile(r"_+")


def to_snake_case(name: str) -> str:
    """Convert a camelCase, PascalCase, or mixed-case string to snake_case.

    Examples from identity payloads::

        roleId       -> role_id
        userRole     -> user_role
        firstName    -> first_name
        access_token -> access_token
        AccessToken  -> access_token

    Known limitation: an all-uppercase acronym followed directly by a
    lowercase letter (``XMLproperty``) splits in the wrong place.
    """
    s1 = _RE_UPPER_RUN.sub(r"\1_\2", name)
    s2 = _RE_CAMEL_BOUNDARY.sub(r"\1_\2", s1)
    s3 = _RE_MULTI_UNDERSCORE.sub("_", s2)
    return s3.lower()


@overload
def normalize_keys(data: dict[str, JsonValue]) -> dict[str, JsonValue]: ...


@overload
def normalize_keys(data: list[JsonValue]) -> list[JsonValue]: ...


@overload
def normalize_keys(data: JsonValue) -> JsonValue: ...


def normalize_keys(
    data: Union[dict[str, JsonValue], list[JsonValue], JsonValue],
) -> Union[dict[str, JsonValue], list[JsonValue], JsonValue]:
    """Recursively convert all dictionary keys to snake_case.

    When two spellings collapse onto the same key (``role_id`` and
    ``roleId``), the one that appears first in the payload wins.
    """
    if isinstance(data, dict):
        normalized: dict[str, JsonValue] = {}
        for key, value in data.items():
            snake = to_snake_case(str(key))
            if snake not in normalized:
                normalized[snake] = normalize_keys(value)
        return normalized
    if isinstance(data, list):
        return [normalize_keys(item) for item in data]
    return data
