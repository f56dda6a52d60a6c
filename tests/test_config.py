"""
Tests for configuration loading, overrides and validation.
"""
import pytest

from invite_console import config
from invite_console.config import (
    DEFAULT_CONFIG_STRUCTURE,
    _apply_env_vars_to_merged_config,
    _merge_configs,
    get_config_value,
    validate_config,
)


def _valid_config(**backend) -> dict:
    merged = _merge_configs({}, DEFAULT_CONFIG_STRUCTURE)
    merged["backend"]["base_url"] = "https://admin.example.com"
    merged["backend"].update(backend)
    return merged


class TestLoading:

    def test_yaml_values_override_defaults(self):
        merged = _merge_configs(
            {"backend": {"base_url": "https://b", "api_prefix": "/v2"}}, DEFAULT_CONFIG_STRUCTURE
        )

        assert merged["backend"]["base_url"] == "https://b"
        assert merged["backend"]["api_prefix"] == "/v2"
        assert merged["backend"]["request_timeout_seconds"] == 15
        assert merged["reviews"]["high_risk_threshold"] == 0.7

    def test_env_vars_are_typed(self, monkeypatch):
        monkeypatch.setenv("BACKEND_REQUEST_TIMEOUT_SECONDS", "30")
        monkeypatch.setenv("REVIEWS_HIGH_RISK_THRESHOLD", "0.8")
        monkeypatch.setenv("CONSOLE_SETTINGS_DEBUG_MODE", "yes")
        merged = _merge_configs({}, DEFAULT_CONFIG_STRUCTURE)

        _apply_env_vars_to_merged_config(merged, DEFAULT_CONFIG_STRUCTURE)

        assert merged["backend"]["request_timeout_seconds"] == 30
        assert merged["reviews"]["high_risk_threshold"] == 0.8
        assert merged["console_settings"]["debug_mode"] is True

    def test_bad_env_value_keeps_current(self, monkeypatch):
        monkeypatch.setenv("REVIEWS_PAGE_SIZE", "many")
        merged = _merge_configs({}, DEFAULT_CONFIG_STRUCTURE)

        _apply_env_vars_to_merged_config(merged, DEFAULT_CONFIG_STRUCTURE)

        assert merged["reviews"]["page_size"] == 20

    def test_load_from_named_file(self, tmp_path, monkeypatch):
        path = tmp_path / "console.yaml"
        path.write_text("backend:\n  base_url: https://from-file\nreviews:\n  page_size: 50\n")
        monkeypatch.setattr(config, "APP_CONFIG", {})
        try:
            config.load_app_config(str(path))

            assert get_config_value("backend.base_url") == "https://from-file"
            assert get_config_value("reviews.page_size") == 50
        finally:
            config.load_app_config()

    def test_dot_path_default(self):
        assert get_config_value("no.such.key", "fallback") == "fallback"


class TestValidation:

    def test_valid_config_passes(self, monkeypatch):
        monkeypatch.setattr(config, "APP_CONFIG", _valid_config())

        validate_config()

    def test_missing_base_url_exits(self, monkeypatch):
        merged = _valid_config()
        merged["backend"]["base_url"] = None
        monkeypatch.setattr(config, "APP_CONFIG", merged)

        with pytest.raises(SystemExit):
            validate_config()

    def test_non_positive_timeout_exits(self, monkeypatch):
        monkeypatch.setattr(config, "APP_CONFIG", _valid_config(request_timeout_seconds=0))

        with pytest.raises(SystemExit):
            validate_config()

    def test_inverted_thresholds_exit(self, monkeypatch):
        merged = _valid_config()
        merged["reviews"]["medium_risk_threshold"] = 0.9
        monkeypatch.setattr(config, "APP_CONFIG", merged)

        with pytest.raises(SystemExit):
            validate_config()
