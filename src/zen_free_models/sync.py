"""Keep the local opencode configuration in step with the published artifact."""

from __future__ import annotations

import base64
import binascii
import enum
import json
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

import requests

from .config import SyncConfig

logger = logging.getLogger(__name__)

PROVIDER = "opencode"


class SyncStatus(enum.Enum):
    FRESH = "fresh"
    UPDATED = "updated"
    DISABLED = "disabled"
    FETCH_FAILED = "fetch_failed"
    PARSE_FAILED = "parse_failed"


@contextmanager
def directory_lock(path: Path, attempts: int, interval: float, sleep=time.sleep) -> Iterator[bool]:
    """Hold `path` as a lock directory. Yields False when it could not be taken in time."""

    acquired = False
    for attempt in range(attempts + 1):
        try:
            path.mkdir()
            acquired = True
            break
        except FileExistsError:
            if attempt == attempts:
                break
            sleep(interval)
    if not acquired:
        logger.warning("Lock timeout on %s - continuing without it", path)
    try:
        yield acquired
    finally:
        if acquired:
            try:
                path.rmdir()
            except OSError as exc:
                logger.warning("Could not release lock %s: %s", path, exc)


def cache_is_fresh(path: Path, max_age_seconds: int, now: float | None = None) -> bool:
    if not path.is_file():
        return False
    age = (time.time() if now is None else now) - path.stat().st_mtime
    return age < max_age_seconds


def decode_artifact(body: Any) -> Tuple[str, List[str]]:
    """Return the artifact text and its ``modelIds`` from a fetch response body.

    The body is either a GitHub contents envelope with base64 ``content`` or
    the artifact itself.
    """

    if not isinstance(body, dict):
        raise ValueError("Response is not a JSON object")
    if "content" in body:
        encoded = body.get("content") or ""
        if not encoded:
            raise ValueError("Response has empty content")
        try:
            text = base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError(f"Content is not valid base64 text: {exc}") from exc
        data = json.loads(text)
    else:
        data = body
        text = json.dumps(body, indent=2)
    if not isinstance(data, dict):
        raise ValueError("Artifact is not a JSON object")
    ids = data.get("modelIds") or []
    if not isinstance(ids, list) or not all(isinstance(item, str) for item in ids):
        raise ValueError("modelIds is not a list of strings")
    return text, ids


def save_cache(path: Path, text: str) -> None:
    tmp = path.with_name(f"{path.name}.tmp.{os.getpid()}")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


def patch_config(config: dict, ids: List[str]) -> dict:
    """Whitelist `ids` for the provider, or disable the provider when `ids` is empty."""

    if ids:
        config.setdefault("provider", {})[PROVIDER] = {"whitelist": list(ids)}
        disabled = config.get("disabled_providers")
        if disabled is not None:
            disabled = [provider for provider in disabled if provider != PROVIDER]
            if disabled:
                config["disabled_providers"] = disabled
            else:
                del config["disabled_providers"]
    else:
        provider = config.get("provider")
        if isinstance(provider, dict):
            provider.pop(PROVIDER, None)
        disabled = config.setdefault("disabled_providers", [])
        if PROVIDER not in disabled:
            disabled.append(PROVIDER)
    return config


def update_target_config(path: Path, ids: List[str]) -> bool:
    """Rewrite the config at `path` in place. Missing or unreadable files are left alone."""

    if not path.is_file():
        logger.debug("No config at %s - nothing to patch", path)
        return False
    try:
        config = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return False
    if not isinstance(config, dict):
        logger.warning("Config at %s is not a JSON object", path)
        return False
    save_cache(path, json.dumps(patch_config(config, ids), indent=2))
    return True


def fetch_artifact(config: SyncConfig, session: requests.Session | None = None) -> Optional[Any]:
    http = session or requests
    try:
        response = http.get(
            config.artifact_url,
            headers={"Accept": "application/vnd.github.v3+json"},
            timeout=config.fetch_timeout,
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Fetch failed: %s", exc)
        return None
    if not response.content:
        logger.warning("Empty response")
        return None
    try:
        return response.json()
    except ValueError as exc:
        logger.warning("Parse failed: %s", exc)
        return None


def sync(config: SyncConfig | None = None, session: requests.Session | None = None, sleep=time.sleep) -> SyncStatus:
    config = config or SyncConfig.from_env()
    config.cache_dir.mkdir(parents=True, exist_ok=True)

    with directory_lock(config.lock_dir, config.lock_attempts, config.lock_interval, sleep):
        if cache_is_fresh(config.cache_file, config.max_age_seconds):
            logger.debug("Cache %s is fresh", config.cache_file)
            return SyncStatus.FRESH

        body = fetch_artifact(config, session)
        if body is None:
            return SyncStatus.FETCH_FAILED

        try:
            text, ids = decode_artifact(body)
        except ValueError as exc:
            logger.warning("Parse failed: %s", exc)
            return SyncStatus.PARSE_FAILED

        save_cache(config.cache_file, text)
        update_target_config(config.target_config, ids)
        if not ids:
            logger.warning("No free models")
            return SyncStatus.DISABLED
        logger.info("Synced %d free models", len(ids))
        return SyncStatus.UPDATED
