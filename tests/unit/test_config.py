import pytest

ENV_VARS = [
    "FETCH_RETRY_MAX", "FETCH_RETRY_BASE_DELAY_MS", "FETCH_RETRY_MAX_DELAY_MS",
    "FETCH_TIMEOUT", "SANDBOX_TIMEOUT", "HOME_URL", "FEED_TITLE", "FEED_LINK",
    "FEED_DESCRIPTION", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    from core.config import Settings

    s = Settings(_env_file=None)
    assert s.fetch_retry_max == 3
    assert s.fetch_retry_base_delay_ms == 500
    assert s.fetch_retry_max_delay_ms == 8000
    assert s.sandbox_timeout == 1.0
    assert s.home_url == "https://m.huxiu.com/"
    assert s.channel_link == "https://m.huxiu.com/"


def test_environment_overrides(monkeypatch):
    from core.config import Settings

    monkeypatch.setenv("FETCH_RETRY_MAX", "5")
    monkeypatch.setenv("FETCH_RETRY_BASE_DELAY_MS", "250")
    monkeypatch.setenv("FETCH_RETRY_MAX_DELAY_MS", "1000.5")
    monkeypatch.setenv("FEED_LINK", "https://example.com/feed")
    s = Settings(_env_file=None)
    assert s.fetch_retry_max == 5
    assert s.fetch_retry_base_delay_ms == 250
    assert s.fetch_retry_max_delay_ms == 1000.5
    assert s.channel_link == "https://example.com/feed"


@pytest.mark.parametrize("raw", ["", "   ", "abc", "nan", "inf", "-1", "1e400"])
def test_invalid_numbers_fall_back_to_defaults(monkeypatch, raw):
    from core.config import Settings

    monkeypatch.setenv("FETCH_RETRY_MAX", raw)
    monkeypatch.setenv("FETCH_RETRY_BASE_DELAY_MS", raw)
    monkeypatch.setenv("FETCH_RETRY_MAX_DELAY_MS", raw)
    s = Settings(_env_file=None)
    assert (s.fetch_retry_max, s.fetch_retry_base_delay_ms, s.fetch_retry_max_delay_ms) == (3, 500, 8000)


def test_fractional_attempts_are_truncated():
    from core.config import Settings

    assert Settings(_env_file=None, fetch_retry_max="2.7").fetch_retry_max == 2


def test_yaml_file_supplies_values_below_environment(tmp_path, monkeypatch):
    from pydantic_settings import SettingsConfigDict
    from core.config import Settings

    cfg = tmp_path / "feed.yaml"
    cfg.write_text('feed_title: "From YAML"\nfeed_description: "yaml desc"\nfetch_retry_max: 7\n', encoding="utf-8")

    class FileSettings(Settings):
        model_config = SettingsConfigDict(yaml_file=cfg)

    s = FileSettings(_env_file=None)
    assert s.feed_title == "From YAML"
    assert s.feed_description == "yaml desc"
    assert s.fetch_retry_max == 7

    monkeypatch.setenv("FEED_TITLE", "From env")
    assert FileSettings(_env_file=None).feed_title == "From env"
