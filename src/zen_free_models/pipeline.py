"""Core pipeline resolving display names to model identifiers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Set, Tuple

from .candidates import prefilter_candidates
from .canonical import match_deterministic, resolve_name
from .errors import BackendError, MatcherExhausted
from .llm import LLMClient, LLMConfig, LLMMatch
from .structures import IdentifierIndex
from .validation import validate_inputs

logger = logging.getLogger(__name__)


def name_key(name: str) -> str:
    return name.strip().lower()


@dataclass
class PartialMatch:
    """Identifiers found by one strategy and the names it accounted for."""

    identifiers: List[str] = field(default_factory=list)
    matched_names: Set[str] = field(default_factory=set)


Strategy = Callable[[Sequence[str], IdentifierIndex], PartialMatch]


def deterministic_strategy(names: Sequence[str], index: IdentifierIndex) -> PartialMatch:
    partial = PartialMatch()
    for name in names:
        resolved = resolve_name(name, index)
        if resolved is None:
            continue
        if resolved not in partial.identifiers:
            partial.identifiers.append(resolved)
        partial.matched_names.add(name_key(name))
    return partial


def reconcile_matches(matches: Sequence[LLMMatch], index: IdentifierIndex) -> PartialMatch:
    """Keep the pairs whose identifier exists in `index`, in its original casing."""

    partial = PartialMatch()
    for match in matches:
        actual = index.lookup(match.api_id)
        if actual is None:
            logger.warning('LLM returned invalid API ID: "%s" for "%s"', match.api_id, match.display_name)
            continue
        if actual not in partial.identifiers:
            partial.identifiers.append(actual)
        partial.matched_names.add(name_key(match.display_name))
        logger.info('LLM: "%s" -> "%s"', match.display_name, actual)
    return partial


class LLMStrategy:
    """Ask the model about `names`, restricted to prefiltered candidates.

    Backend failures are logged and reported as an empty partial result so the
    later deterministic stages take over.
    """

    def __init__(self, client: LLMClient, identifiers: Sequence[str]) -> None:
        self.client = client
        self.identifiers = identifiers
        self.candidate_count = 0
        self.failed = False

    def __call__(self, names: Sequence[str], index: IdentifierIndex) -> PartialMatch:
        candidates = prefilter_candidates(self.identifiers, names)
        self.candidate_count = len(candidates)
        logger.info(
            "Using LLM to match %d display names (pre-filtered to %d/%d candidate IDs)...",
            len(names),
            len(candidates),
            len(self.identifiers),
        )
        if not candidates:
            logger.warning("No candidate IDs for the LLM - skipping the request")
            return PartialMatch()

        try:
            matches = self.client.match_names(names, candidates)
        except (BackendError, MatcherExhausted) as exc:
            self.failed = True
            status = getattr(exc, "status_code", None)
            if status is not None:
                logger.error("LLM backend error (%s): %s", status, exc)
            else:
                logger.error("LLM call failed: %s", exc)
            logger.warning("Falling back to normalization matching due to LLM error")
            return PartialMatch()

        partial = reconcile_matches(matches, index)
        missed = [name for name in names if name_key(name) not in partial.matched_names]
        if missed:
            logger.warning("LLM did not match %d names: %s", len(missed), missed)
        return partial


@dataclass
class Resolution:
    identifiers: List[str]
    contributions: Dict[str, int]
    fell_back: bool = False


def resolve(
    names: Sequence[str],
    index: IdentifierIndex,
    stages: Sequence[Tuple[str, Strategy]],
    fallback: Strategy | None = None,
) -> Resolution:
    """Run `stages` in order, each on the names still unmatched, and merge the results.

    When every stage comes back empty, `fallback` is run over all `names`
    and its result replaces the merged one.
    """

    merged: List[str] = []
    matched: Set[str] = set()
    contributions: Dict[str, int] = {}
    for label, strategy in stages:
        remaining = [name for name in names if name_key(name) not in matched]
        if not remaining:
            break
        partial = strategy(remaining, index)
        added = [identifier for identifier in partial.identifiers if identifier not in merged]
        if added:
            logger.info("Stage %s matched %d new IDs: %s", label, len(added), added)
        merged.extend(added)
        matched |= partial.matched_names
        contributions[label] = len(added)

    if not merged and fallback is not None:
        logger.warning("No valid matches - falling back to normalization over all names")
        return Resolution(identifiers=fallback(names, index).identifiers, contributions=contributions, fell_back=True)
    return Resolution(identifiers=merged, contributions=contributions)


@dataclass
class MatchStats:
    """Summary metrics for a matching run."""

    total_names: int
    total_identifiers: int
    candidate_count: int
    matches_by_stage: Dict[str, int]
    used_llm: bool
    llm_failed: bool
    fell_back: bool
    runtime_seconds: float


@dataclass
class MatchOutcome:
    """Result bundle returned by :meth:`ModelMatcher.run`."""

    identifiers: List[str]
    stats: MatchStats


@dataclass
class MatcherConfig:
    """Configuration parameters for :class:`ModelMatcher`."""

    use_llm: bool = True
    llm: LLMConfig = field(default_factory=LLMConfig)


class ModelMatcher:
    """Resolve pricing-table display names to canonical model identifiers."""

    def __init__(self, config: MatcherConfig | None = None, llm_client: LLMClient | None = None) -> None:
        self.config = config or MatcherConfig()
        self.llm_client = llm_client or LLMClient(self.config.llm)

    @property
    def llm_available(self) -> bool:
        return self.config.use_llm and self.llm_client.config.has_credential

    def run(self, identifiers: Sequence[str], names: Sequence[str]) -> MatchOutcome:
        """Validate the inputs and resolve `names` against `identifiers`.

        Only :class:`~zen_free_models.errors.InvalidInput` escapes; backend
        and response problems degrade to normalization matching.
        """

        validate_inputs(identifiers, names)
        started = time.time()

        if not names:
            return MatchOutcome([], self._stats(identifiers, names, started))

        index = IdentifierIndex.build(identifiers)

        if not self.llm_available:
            if self.config.use_llm:
                logger.warning("OPENAI_API_KEY not set - falling back to normalization matching")
            result = match_deterministic(names, index)
            stats = self._stats(identifiers, names, started, matches_by_stage={"normalization": len(result)})
            return MatchOutcome(result, stats)

        llm_stage = LLMStrategy(self.llm_client, identifiers)
        resolution = resolve(
            names,
            index,
            stages=[("llm", llm_stage), ("normalization", deterministic_strategy)],
            fallback=deterministic_strategy,
        )
        stats = self._stats(
            identifiers,
            names,
            started,
            candidate_count=llm_stage.candidate_count,
            matches_by_stage=resolution.contributions,
            used_llm=True,
            llm_failed=llm_stage.failed,
            fell_back=resolution.fell_back,
        )
        return MatchOutcome(resolution.identifiers, stats)

    def match(self, identifiers: Sequence[str], names: Sequence[str]) -> List[str]:
        return self.run(identifiers, names).identifiers

    @staticmethod
    def _stats(
        identifiers: Sequence[str],
        names: Sequence[str],
        started: float,
        candidate_count: int = 0,
        matches_by_stage: Dict[str, int] | None = None,
        used_llm: bool = False,
        llm_failed: bool = False,
        fell_back: bool = False,
    ) -> MatchStats:
        return MatchStats(
            total_names=len(names),
            total_identifiers=len(identifiers),
            candidate_count=candidate_count,
            matches_by_stage=matches_by_stage or {},
            used_llm=used_llm,
            llm_failed=llm_failed,
            fell_back=fell_back,
            runtime_seconds=time.time() - started,
        )


def match_models(identifiers: Sequence[str], names: Sequence[str]) -> List[str]:
    """Normalization-only matching; never touches the network."""

    validate_inputs(identifiers, names)
    return match_deterministic(names, IdentifierIndex.build(identifiers))


def match_models_with_llm(
    identifiers: Sequence[str],
    names: Sequence[str],
    config: MatcherConfig | None = None,
    llm_client: LLMClient | None = None,
) -> List[str]:
    return ModelMatcher(config, llm_client).match(identifiers, names)


__all__ = [
    "MatchOutcome",
    "MatchStats",
    "MatcherConfig",
    "ModelMatcher",
    "PartialMatch",
    "LLMStrategy",
    "deterministic_strategy",
    "reconcile_matches",
    "resolve",
    "match_models",
    "match_models_with_llm",
]
