"""Lookup structures built from the identifier universe."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable

from .normalization import normalize


@dataclass
class IdentifierIndex:
    """Case-insensitive and normalized lookups onto the original identifiers.

    Both maps are keyed on a transformed identifier and hold the identifier
    as supplied. When two identifiers share a key the later one replaces the
    earlier one.
    """

    by_lowercase: Dict[str, str] = field(default_factory=dict)
    by_normalized: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, identifiers: Iterable[str]) -> "IdentifierIndex":
        index = cls()
        for identifier in identifiers:
            index.by_lowercase[identifier.lower()] = identifier
            index.by_normalized[normalize(identifier)] = identifier
        return index

    def lookup(self, identifier: str) -> str | None:
        return self.by_lowercase.get(identifier.lower())

    def lookup_normalized(self, key: str) -> str | None:
        return self.by_normalized.get(key)

    def __len__(self) -> int:
        return len(self.by_lowercase)


def build_index(identifiers: Iterable[str]) -> IdentifierIndex:
    return IdentifierIndex.build(identifiers)
