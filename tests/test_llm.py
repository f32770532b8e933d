import json

import pytest
import requests

from conftest import FakeResponse, FakeSession, completion
from zen_free_models.errors import MatcherExhausted, NonRetryableBackendError, TransientBackendError
from zen_free_models.llm import LLMClient, LLMConfig, build_messages, is_retryable, parse_llm_response


def make_client(session, sleeps, **overrides):
    options = {
        "token": "test-key",
        "url": "https://llm.test/v1/chat/completions",
        "model": "test-model",
        "service_tier": "flex",
        "initial_delay": 1.0,
    }
    options.update(overrides)
    return LLMClient(LLMConfig(**options), session=session, sleep=sleeps.append)


PAIR = {"displayName": "Big Pickle", "apiId": "big-pickle"}


def test_parse_matches_envelope():
    matches = parse_llm_response(json.dumps({"matches": [PAIR]}))
    assert [(m.display_name, m.api_id) for m in matches] == [("Big Pickle", "big-pickle")]


def test_parse_bare_list():
    assert [m.api_id for m in parse_llm_response(json.dumps([PAIR]))] == ["big-pickle"]


def test_parse_list_under_any_key():
    content = json.dumps({"note": "ok", "results": [PAIR]})
    assert [m.api_id for m in parse_llm_response(content)] == ["big-pickle"]


def test_parse_invalid_json_returns_empty(caplog):
    assert parse_llm_response("not json" + "x" * 500) == []
    assert "Failed to parse LLM response" in caplog.text
    assert "x" * 201 not in caplog.text


def test_parse_unknown_shape_returns_empty(caplog):
    assert parse_llm_response('{"foo": 1}') == []
    assert parse_llm_response('"just a string"') == []
    assert "format unknown" in caplog.text


def test_parse_rejects_incomplete_pairs():
    assert parse_llm_response('{"matches": [{"displayName": "Big Pickle"}]}') == []
    assert parse_llm_response('[{"displayName": "Big Pickle", "apiId": 7}]') == []


def test_build_messages_lists_names_and_candidates():
    system, user = build_messages(["Big Pickle"], ["big-pickle", "glm-4.7-free"])
    assert system["role"] == "system"
    assert '"matches"' in system["content"]
    assert '- "Big Pickle"' in user["content"]
    assert '- "glm-4.7-free"' in user["content"]


def test_complete_sends_json_object_request(sleeps):
    session = FakeSession(completion({"matches": [PAIR]}))
    client = make_client(session, sleeps)
    assert json.loads(client.complete(build_messages(["Big Pickle"], ["big-pickle"]))) == {"matches": [PAIR]}

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://llm.test/v1/chat/completions")
    assert kwargs["headers"]["Authorization"] == "Bearer test-key"
    assert kwargs["json"]["model"] == "test-model"
    assert kwargs["json"]["response_format"] == {"type": "json_object"}
    assert kwargs["json"]["service_tier"] == "flex"


def test_complete_defaults_missing_content(sleeps):
    session = FakeSession(FakeResponse(payload={"choices": []}))
    assert make_client(session, sleeps).complete([]) == "{}"


def test_retries_rate_limits_and_server_errors(sleeps):
    session = FakeSession(FakeResponse(429), FakeResponse(502), completion({"matches": []}))
    client = make_client(session, sleeps)
    assert client.complete_with_retry([]) == '{"matches": []}'
    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_retries_network_errors(sleeps):
    session = FakeSession(requests.ConnectionError("reset"), requests.Timeout("slow"), completion("{}"))
    assert make_client(session, sleeps).complete_with_retry([]) == "{}"
    assert sleeps == [1.0, 2.0]


def test_retries_connection_reset_mid_body(sleeps):
    reset = requests.exceptions.ChunkedEncodingError(
        "Connection broken: ConnectionResetError(104, 'Connection reset by peer')"
    )
    session = FakeSession(reset, completion("{}"))
    assert make_client(session, sleeps).complete_with_retry([]) == "{}"
    assert len(session.calls) == 2
    assert sleeps == [1.0]


def test_client_errors_are_not_retried(sleeps):
    session = FakeSession(FakeResponse(401), completion("{}"))
    with pytest.raises(NonRetryableBackendError) as excinfo:
        make_client(session, sleeps).complete_with_retry([])
    assert excinfo.value.status_code == 401
    assert len(session.calls) == 1
    assert sleeps == []


def test_exhausted_retries_raise_with_attempt_count(sleeps):
    session = FakeSession(*(FakeResponse(503) for _ in range(4)))
    client = make_client(session, sleeps, max_retries=4, initial_delay=0.5)
    with pytest.raises(MatcherExhausted) as excinfo:
        client.complete_with_retry([])
    assert excinfo.value.attempts == 4
    assert "after 4 attempts" in str(excinfo.value)
    assert "503" in str(excinfo.value)
    assert sleeps == [0.5, 1.0, 2.0]


def test_unknown_errors_classified_by_message(sleeps):
    session = FakeSession(OSError("socket timeout"), requests.exceptions.InvalidURL("boom"))
    with pytest.raises(NonRetryableBackendError, match="boom"):
        make_client(session, sleeps).complete_with_retry([])
    assert sleeps == [1.0]


def test_programming_errors_propagate(sleeps):
    session = FakeSession(TypeError("unexpected keyword argument"), completion("{}"))
    with pytest.raises(TypeError):
        make_client(session, sleeps).complete_with_retry([])
    assert len(session.calls) == 1
    assert sleeps == []


def test_is_retryable():
    assert is_retryable(TransientBackendError("rate limited", 429))
    assert not is_retryable(NonRetryableBackendError("bad request", 400))
    assert is_retryable(OSError("ECONNRESET by peer"))
    assert is_retryable(OSError("Connection reset by peer"))
    assert is_retryable(requests.exceptions.ChunkedEncodingError("Connection broken"))
    assert is_retryable(requests.exceptions.ContentDecodingError("incomplete gzip stream"))
    assert not is_retryable(ValueError("bad"))


def test_config_reads_token_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "from-env")
    assert LLMConfig().token == "from-env"
    assert LLMConfig(token="").has_credential is False


def test_config_falls_back_to_flex_tier():
    assert LLMConfig(token="", service_tier="turbo").service_tier == "flex"
    assert LLMConfig(token="", service_tier="priority").service_tier == "priority"


def test_config_backoff_doubles():
    config = LLMConfig(token="", initial_delay=0.25)
    assert [config.backoff(attempt) for attempt in (1, 2, 3)] == [0.25, 0.5, 1.0]
