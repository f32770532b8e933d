"""Argument checks shared by the public matching entry points."""

from __future__ import annotations

from typing import Any

from .errors import InvalidInput


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def validate_inputs(identifiers: Any, names: Any) -> None:
    """Raise :class:`InvalidInput` unless both arguments are lists of non-blank strings."""

    if not _is_sequence(identifiers):
        raise InvalidInput("identifiers must be a list")
    if not _is_sequence(names):
        raise InvalidInput("names must be a list")
    for identifier in identifiers:
        if not isinstance(identifier, str) or not identifier.strip():
            raise InvalidInput("Invalid identifier: expected non-empty string")
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("Invalid name: expected non-empty string")
