"""Identifier and display name normalization helpers."""

from __future__ import annotations

import re
from typing import Set

from unidecode import unidecode


FREE_SUFFIX = "free"
FREE_ID_SUFFIX = "-" + FREE_SUFFIX

_NON_KEY_PATTERN = re.compile(r"[^a-z0-9.]")
_NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
_WORD_PATTERN = re.compile(r"[a-z]{2,}")


def normalize(value: str) -> str:
    """Return the comparison key for `value`.

    Lowercases and then drops everything except ASCII letters, digits and
    periods, so ``"GLM 4.7"`` and ``"glm-4.7"`` share the key ``"glm4.7"``.
    """

    return _NON_KEY_PATTERN.sub("", value.lower())


def _scan_tokens(text: str, tokens: Set[str]) -> None:
    tokens.update(match.group(0) for match in _NUMBER_PATTERN.finditer(text))
    tokens.update(match.group(0) for match in _WORD_PATTERN.finditer(text))


def extract_tokens(value: str) -> Set[str]:
    """Return the significant tokens of `value`: numbers and 2+ letter runs."""

    lower = value.lower()
    tokens: Set[str] = set()
    _scan_tokens(lower, tokens)
    ascii_friendly = unidecode(lower).lower()
    if ascii_friendly != lower:
        _scan_tokens(ascii_friendly, tokens)
    return tokens


def has_free_suffix(identifier: str) -> bool:
    return identifier.lower().endswith(FREE_ID_SUFFIX)
