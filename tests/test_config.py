import logging
from pathlib import Path

from zen_free_models.config import LOG_LEVELS, ScraperConfig, SyncConfig, parse_int, parse_log_level


def test_scraper_defaults():
    config = ScraperConfig.from_env({})
    assert config.zen_api_url == "https://opencode.ai/zen/v1/models"
    assert config.zen_docs_url == "https://opencode.ai/docs/zen/"
    assert config.output_path == Path("zen-free-models.json")
    assert config.llm_service_tier == "flex"
    assert (config.max_retries, config.initial_delay_ms, config.fetch_timeout) == (3, 1000, 30.0)
    assert config.log_level == "info"


def test_scraper_reads_environment():
    config = ScraperConfig.from_env(
        {
            "ZEN_API_URL": "https://zen.test/models",
            "MATCHING_MODEL": "gpt-test",
            "LLM_SERVICE_TIER": "priority",
            "MAX_RETRIES": "5",
            "INITIAL_DELAY_MS": "250",
            "FETCH_TIMEOUT_MS": "oops",
            "LOG_LEVEL": "debug",
        }
    )
    assert config.zen_api_url == "https://zen.test/models"
    assert config.llm_service_tier == "priority"
    assert config.max_retries == 5
    assert config.fetch_timeout_ms == 30000
    assert config.log_level == "debug"

    llm = config.llm_config(token="key")
    assert (llm.model, llm.service_tier, llm.max_retries, llm.initial_delay) == ("gpt-test", "priority", 5, 0.25)


def test_parsers_fall_back_to_defaults():
    assert parse_int("", 7) == 7
    assert parse_int("12", 7) == 12
    assert parse_log_level("loud") == "info"
    assert LOG_LEVELS["silent"] > logging.CRITICAL


def test_sync_config_paths(tmp_path):
    config = SyncConfig.from_env({"ZEN_CACHE_MAX_AGE": "60"})
    assert config.max_age_seconds == 60
    config.cache_dir = tmp_path
    assert config.cache_file == tmp_path / "models.json"
    assert config.lock_dir == tmp_path / ".lock"


def test_max_retries_is_at_least_one():
    for value in ("0", "-2"):
        config = ScraperConfig.from_env({"MAX_RETRIES": value})
        assert config.max_retries == 1
        assert config.llm_config(token="key").max_retries == 1
