"""Convenience helpers for running a scrape end-to-end."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import ftfy
import pandas as pd
import requests

from .config import ScraperConfig
from .output import FreeModelsOutput, build_output, write_output
from .pipeline import MatcherConfig, ModelMatcher

logger = logging.getLogger(__name__)


def fetch_identifier_universe(url: str, timeout: float, session: requests.Session | None = None) -> List[str]:
    """Return every model identifier listed by the models endpoint at `url`."""

    logger.info("Fetching models from API: %s...", url)
    http = session or requests
    response = http.get(url, timeout=timeout)
    response.raise_for_status()
    identifiers = [entry["id"] for entry in response.json()["data"]]
    logger.info("Found %d models from API", len(identifiers))
    return identifiers


def load_display_names(path: str | Path, name_column: str = "name") -> List[str]:
    """Read the display names produced by the pricing-page extraction."""

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        raw = _load_json_names(path)
    elif suffix == ".txt":
        raw = path.read_text(encoding="utf-8").splitlines()
    else:
        dataframe = _load_dataframe(path)
        if name_column not in dataframe.columns:
            raise KeyError(f"Column '{name_column}' not found in '{path}'")
        raw = dataframe[name_column].fillna("").astype(str).tolist()

    names = [ftfy.fix_text(str(name)).strip() for name in raw]
    return [name for name in names if name]


def _load_json_names(path: Path) -> list:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("freeModels", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of names in '{path}'")
    return data


def load_identifiers(path: str | Path) -> List[str]:
    """Read model identifiers from a JSON listing or a text file with one per line.

    JSON may be a plain list or a saved models endpoint response
    (``{"data": [{"id": ...}]}``). Identifiers are kept verbatim apart from
    surrounding whitespace.
    """

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        raw = _load_json_identifiers(path)
    elif suffix == ".txt":
        raw = path.read_text(encoding="utf-8").splitlines()
    else:
        raise ValueError(f"Unsupported file format: '{suffix}'")

    # non-strings pass through so validation can reject them
    identifiers = [item.strip() if isinstance(item, str) else item for item in raw]
    return [item for item in identifiers if item != ""]


def _load_json_identifiers(path: Path) -> list:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        entries = data.get("data")
        if not isinstance(entries, list):
            raise ValueError(f"Expected a 'data' list of models in '{path}'")
        return [entry.get("id") if isinstance(entry, dict) else entry for entry in entries]
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of identifiers in '{path}'")
    return data


def _load_dataframe(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype=str)
    if suffix in {".xls", ".xlsx"}:
        return pd.read_excel(path, dtype=str)
    raise ValueError(f"Unsupported file format: '{suffix}'")


def run_scrape(
    config: ScraperConfig,
    names: List[str],
    matcher_config: Optional[MatcherConfig] = None,
    matcher: Optional[ModelMatcher] = None,
    session: requests.Session | None = None,
) -> FreeModelsOutput | None:
    """Fetch identifiers, match `names` against them and write the artifact.

    Returns ``None`` when the identifiers cannot be fetched or nothing matched;
    the previous artifact is left untouched in both cases.
    """

    logger.debug("Free model names from pricing table: %s", names)
    try:
        identifiers = fetch_identifier_universe(config.zen_api_url, config.fetch_timeout, session)
    except (requests.RequestException, KeyError, ValueError) as exc:
        logger.error("Failed to fetch model IDs from %s: %s", config.zen_api_url, exc)
        return None

    if matcher is None:
        matcher_config = matcher_config or MatcherConfig(llm=config.llm_config())
        matcher = ModelMatcher(matcher_config)
    outcome = matcher.run(identifiers, names)
    logger.debug("Match stats: %s", outcome.stats)

    if not outcome.identifiers:
        logger.error("No free models found!")
        logger.error("API model IDs: %s", identifiers)
        logger.error("Free model names from scrape: %s", names)
        return None

    output = build_output(identifiers, outcome.identifiers, config.zen_docs_url)
    logger.info("Found %d free Zen models:", len(output.model_ids))
    for identifier in output.model_ids:
        logger.info("  - %s", identifier)

    path = write_output(output, config.output_path)
    logger.info("Wrote output to %s", path)
    return output
