"""Resolve display names to canonical identifiers without the LLM."""

from __future__ import annotations

import logging
from typing import Iterable, List

from .normalization import FREE_SUFFIX, normalize
from .structures import IdentifierIndex

logger = logging.getLogger(__name__)


def resolve_name(name: str, index: IdentifierIndex) -> str | None:
    """Return the identifier for `name`, trying its key and then its key plus ``free``."""

    key = normalize(name)
    resolved = index.lookup_normalized(key)
    if resolved is None:
        # Pricing tables drop the "-free" marker carried by some identifiers.
        resolved = index.lookup_normalized(key + FREE_SUFFIX)
    return resolved


def match_deterministic(names: Iterable[str], index: IdentifierIndex) -> List[str]:
    """Return the unique identifiers resolved from `names`, in first-seen order."""

    matched: dict[str, None] = {}
    for name in names:
        resolved = resolve_name(name, index)
        if resolved is None:
            logger.debug("No identifier for %r", name)
            continue
        matched.setdefault(resolved, None)
    return list(matched)
