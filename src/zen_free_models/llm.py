"""LLM integration helpers."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence

import ftfy
import requests
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .errors import BackendError, MatcherExhausted, NonRetryableBackendError, TransientBackendError

logger = logging.getLogger(__name__)


DEFAULT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_SERVICE_TIER = "flex"
SERVICE_TIERS = ("default", "flex", "auto", "scale", "priority")

_EXCERPT_LENGTH = 200
_TRANSIENT_MARKERS = ("network", "timeout", "econnreset", "connection reset", "connectionreset")
_TRANSPORT_ERRORS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
)

_DEFAULT_PROMPT = """You are a model name matcher. Match display names to their corresponding API IDs.
Rules:
- Display names are human-readable (e.g., "Big Pickle", "GLM 4.7")
- API IDs are kebab-case (e.g., "big-pickle", "glm-4.7-free")
- Some API IDs have a "-free" suffix that is NOT in the display name
- Match each display name to exactly one API ID from the available list
- Only return matches you are confident about
Return JSON: {"matches": [{"displayName": "...", "apiId": "..."}]}"""


def parse_service_tier(value: str | None) -> str:
    if value and value in SERVICE_TIERS:
        return value
    return DEFAULT_SERVICE_TIER


@dataclass
class LLMConfig:
    """Configuration for the LLM matching step."""

    enabled: bool = True
    token: str | None = None
    url: str = ""
    model: str = ""
    service_tier: str = ""
    max_retries: int = 3
    initial_delay: float = 1.0  # seconds, doubled after every failed attempt
    timeout_seconds: int = 120
    connection_timeout: int = 30
    prompt: str = _DEFAULT_PROMPT

    def __post_init__(self) -> None:
        if self.token is None:
            self.token = os.getenv("OPENAI_API_KEY")
        if not self.url:
            self.url = os.getenv("LLM_URL", DEFAULT_URL)
        if not self.model:
            self.model = os.getenv("MATCHING_MODEL", DEFAULT_MODEL)
        self.service_tier = parse_service_tier(self.service_tier or os.getenv("LLM_SERVICE_TIER"))
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be non-negative")

    @property
    def has_credential(self) -> bool:
        return self.enabled and bool(self.token)

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def backoff(self, attempt: int) -> float:
        """Delay before retrying after failed `attempt` (1-based)."""

        return self.initial_delay * 2 ** (attempt - 1)


class LLMMatch(BaseModel):
    """One display name to identifier pair proposed by the model."""

    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(alias="displayName")
    api_id: str = Field(alias="apiId")

    @field_validator("display_name", "api_id", mode="before")
    @classmethod
    def _fix_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ftfy.fix_text(value).strip()
        return value


class MatchEnvelope(BaseModel):
    matches: List[LLMMatch]


_MATCH_LIST = TypeAdapter(List[LLMMatch])


def _parse_envelope(parsed: Any) -> List[LLMMatch] | None:
    if not isinstance(parsed, dict) or "matches" not in parsed:
        return None
    try:
        return MatchEnvelope.model_validate(parsed).matches
    except ValidationError:
        return None


def _parse_bare_list(parsed: Any) -> List[LLMMatch] | None:
    if not isinstance(parsed, list):
        return None
    try:
        return _MATCH_LIST.validate_python(parsed)
    except ValidationError:
        return None


def _parse_keyed_list(parsed: Any) -> List[LLMMatch] | None:
    if not isinstance(parsed, dict):
        return None
    for value in parsed.values():
        matches = _parse_bare_list(value)
        if matches is not None:
            return matches
    return None


_RESPONSE_SHAPES = (_parse_envelope, _parse_bare_list, _parse_keyed_list)


def parse_llm_response(content: str) -> List[LLMMatch]:
    """Return the pairs in `content`, or an empty list when it cannot be read.

    Accepts ``{"matches": [...]}``, a bare list of pairs, or an object with any
    key holding such a list, in that order of preference.
    """

    try:
        parsed = json.loads(content)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Failed to parse LLM response: %s", str(content)[:_EXCERPT_LENGTH])
        return []

    for shape in _RESPONSE_SHAPES:
        matches = shape(parsed)
        if matches is not None:
            return matches

    logger.warning("LLM response format unknown: %s", content[:_EXCERPT_LENGTH])
    return []


def build_messages(names: Sequence[str], identifiers: Sequence[str], prompt: str = _DEFAULT_PROMPT) -> List[Dict[str, str]]:
    name_lines = "\n".join(f'- "{ftfy.fix_text(name)}"' for name in names)
    id_lines = "\n".join(f'- "{identifier}"' for identifier in identifiers)
    return [
        {"role": "system", "content": prompt},
        {
            "role": "user",
            "content": (
                "Match these display names to API IDs:\n\n"
                f"Display names:\n{name_lines}\n\n"
                f"Available API IDs:\n{id_lines}"
            ),
        },
    ]


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, TransientBackendError):
        return True
    if isinstance(exc, BackendError):
        return False
    if isinstance(exc, _TRANSPORT_ERRORS):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


def error_for_status(status_code: int | None, message: str) -> BackendError:
    if status_code is not None and (status_code == 429 or status_code >= 500):
        return TransientBackendError(message, status_code)
    return NonRetryableBackendError(message, status_code)


def _extract_content(payload: Any) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return "{}"
    return content or "{}"


class LLMClient:
    """Ask a chat-completions backend to pair display names with identifiers."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or LLMConfig()
        self.session = session or requests.Session()
        self._sleep = sleep

    def complete(self, messages: Sequence[Dict[str, str]]) -> str:
        """Send one request and return the message content as a JSON string."""

        body = {
            "model": self.config.model,
            "messages": list(messages),
            "response_format": {"type": "json_object"},
            "service_tier": self.config.service_tier,
        }
        try:
            # (connect, read) so a slow handshake does not eat the read budget
            response = self.session.post(
                self.config.url,
                headers=self.config.headers(),
                json=body,
                timeout=(self.config.connection_timeout, self.config.timeout_seconds),
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise error_for_status(status, f"HTTP {status}: {exc}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise TransientBackendError(f"{type(exc).__name__}: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise NonRetryableBackendError("Backend returned a non-JSON body", response.status_code) from exc
        return _extract_content(payload)

    def complete_with_retry(self, messages: Sequence[Dict[str, str]]) -> str:
        """Call :meth:`complete`, retrying transient failures with exponential backoff.

        Raises :class:`NonRetryableBackendError` on the first permanent failure
        and :class:`MatcherExhausted` once every attempt has failed.
        """

        max_retries = self.config.max_retries
        last_error: BaseException | None = None
        for attempt in range(1, max_retries + 1):
            try:
                return self.complete(messages)
            except (BackendError, requests.exceptions.RequestException, OSError) as exc:
                if not is_retryable(exc):
                    if isinstance(exc, BackendError):
                        raise
                    raise NonRetryableBackendError(f"{type(exc).__name__}: {exc}") from exc
                last_error = exc
                if attempt < max_retries:
                    delay = self.config.backoff(attempt)
                    logger.warning("LLM call failed (%d/%d): %s. Retrying in %.1fs", attempt, max_retries, exc, delay)
                    self._sleep(delay)
        raise MatcherExhausted(max_retries, last_error)

    def match_names(self, names: Sequence[str], candidates: Sequence[str]) -> List[LLMMatch]:
        messages = build_messages(names, candidates, self.config.prompt)
        logger.debug("Prompting %s with %d names and %d candidates", self.config.model, len(names), len(candidates))
        return parse_llm_response(self.complete_with_retry(messages))

    def close(self) -> None:
        self.session.close()
