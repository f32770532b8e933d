"""zen-free-models library initialization."""

from .candidates import prefilter_candidates
from .canonical import match_deterministic
from .errors import (
    InvalidInput,
    MatcherExhausted,
    NonRetryableBackendError,
    TransientBackendError,
)
from .llm import LLMClient, LLMConfig
from .normalization import normalize
from .pipeline import MatcherConfig, MatchOutcome, MatchStats, ModelMatcher, match_models, match_models_with_llm
from .structures import IdentifierIndex, build_index
from .validation import validate_inputs

__all__ = [
    "IdentifierIndex",
    "InvalidInput",
    "LLMClient",
    "LLMConfig",
    "MatchOutcome",
    "MatchStats",
    "MatcherConfig",
    "MatcherExhausted",
    "ModelMatcher",
    "NonRetryableBackendError",
    "TransientBackendError",
    "build_index",
    "match_deterministic",
    "match_models",
    "match_models_with_llm",
    "normalize",
    "prefilter_candidates",
    "validate_inputs",
]
