"""Tests for the configuration system."""

from pathlib import Path

import pytest

from leira_sync.config import (
    Settings,
    get_settings,
    override_settings,
    reset_settings,
    settings,
)


@pytest.mark.unit
class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self) -> None:
        s = Settings()
        assert s.endpoint_prefix == "/.netlify/functions"
        assert s.sync_interval_seconds == 60.0
        assert s.clear_policy == "all_or_nothing"
        assert s.bounded_queue_capacity == 100
        assert s.bounded_max_item_bytes == 50 * 1024
        assert s.bounded_max_attempts == 3
        assert s.bounded_batch_size == 10
        assert s.bounded_batch_delay_seconds == 0.5
        assert s.auto_flush_on_enqueue is True
        assert s.log_level == "INFO"

    def test_custom_values(self) -> None:
        s = Settings(data_path="/custom/path", clear_policy="per_type", log_level="debug")
        assert s.data_path == Path("/custom/path")
        assert s.clear_policy == "per_type"
        assert s.log_level == "DEBUG"

    def test_base_url_trailing_slash_stripped(self) -> None:
        s = Settings(remote_base_url="https://yard.example.com/")
        assert s.remote_base_url == "https://yard.example.com"

    def test_base_url_requires_http_scheme(self) -> None:
        with pytest.raises(ValueError):
            Settings(remote_base_url="ftp://yard.example.com")

    def test_endpoint_prefix_normalized(self) -> None:
        s = Settings(endpoint_prefix="api/functions/")
        assert s.endpoint_prefix == "/api/functions"

    def test_unknown_clear_policy_rejected(self) -> None:
        with pytest.raises(ValueError):
            Settings(clear_policy="best_effort")

    def test_bounds(self) -> None:
        with pytest.raises(ValueError):
            Settings(bounded_queue_capacity=0)
        with pytest.raises(ValueError):
            Settings(request_timeout_seconds=0)
        with pytest.raises(ValueError):
            Settings(connectivity_port=70000)

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LEIRA_SYNC_SYNC_INTERVAL_SECONDS", "15")
        monkeypatch.setenv("LEIRA_SYNC_CLEAR_POLICY", "per_type")
        s = Settings()
        assert s.sync_interval_seconds == 15.0
        assert s.clear_policy == "per_type"


@pytest.mark.unit
class TestSettingsInjection:
    """Tests for settings dependency injection."""

    def test_get_settings_returns_singleton(self) -> None:
        reset_settings()
        assert get_settings() is get_settings()
        reset_settings()

    def test_override_settings(self) -> None:
        reset_settings()
        original = get_settings()

        custom = Settings(data_path="/override/path")
        override_settings(custom)

        current = get_settings()
        assert current.data_path == Path("/override/path")
        assert current is custom
        assert current is not original
        reset_settings()

    def test_proxy_follows_override(self) -> None:
        override_settings(Settings(bounded_batch_size=3))
        assert settings.bounded_batch_size == 3
        reset_settings()
