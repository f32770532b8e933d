"""Candidate prefiltering ahead of the LLM prompt."""

from __future__ import annotations

from typing import List, Sequence, Set

from .normalization import FREE_SUFFIX, extract_tokens, has_free_suffix, normalize


def _name_tokens(names: Sequence[str]) -> Set[str]:
    tokens: Set[str] = set()
    for name in names:
        tokens.update(extract_tokens(name))
    return tokens


def _name_keys(names: Sequence[str]) -> Set[str]:
    keys: Set[str] = set()
    for name in names:
        key = normalize(name)
        keys.add(key)
        keys.add(key + FREE_SUFFIX)
    return keys


def prefilter_candidates(identifiers: Sequence[str], names: Sequence[str]) -> List[str]:
    """Return the identifiers worth showing the LLM for `names`.

    An identifier is kept when it shares a significant token with any name,
    when its normalized key equals a name's key (with or without the
    ``free`` suffix), or when it ends in ``-free``. Input order is preserved.
    """

    tokens = _name_tokens(names)
    keys = _name_keys(names)

    candidates: dict[str, None] = {}
    for identifier in identifiers:
        if (
            not tokens.isdisjoint(extract_tokens(identifier))
            or normalize(identifier) in keys
            or has_free_suffix(identifier)
        ):
            candidates.setdefault(identifier, None)
    return list(candidates)
