"""Shared utility functions for the Najjak auth client.

Re-exports so consumers can ``from najjak.utils import normalize_keys``;
full imports from ``najjak.utils.string_helpers`` remain supported.
"""

from najjak.utils.string_helpers import normalize_keys, to_snake_case

__all__ = [
    "normalize_keys",
    "to_snake_case",
]
