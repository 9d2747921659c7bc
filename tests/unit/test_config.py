"""Tests for configuration loading and coercion."""

import datetime
import logging

import pytest

from ics_availability.core.config_loader import Config, load_config
from ics_availability.core.config_manager import ConfigManager, parse_env_file

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestConfigFromDict:
    """Tests for Config.from_dict coercion rules."""

    def test_defaults(self):
        cfg = Config.from_dict({})
        assert cfg.ics_url == ""
        assert cfg.cache_ttl_seconds == 300
        assert cfg.rate_limit_per_minute == 30
        assert cfg.min_free_minutes == 120
        assert cfg.max_window_days == 90
        assert cfg.fetch_timeout_seconds == 15
        assert cfg.month_view == "dayGridMonth"
        assert cfg.opening_start_time == datetime.time(9, 0)
        assert cfg.opening_end_time == datetime.time(17, 0)
        assert cfg.tzinfo == datetime.timezone.utc

    def test_cache_ttl_raised_to_minimum(self, caplog):
        with caplog.at_level(logging.WARNING):
            cfg = Config.from_dict({"cache_ttl_seconds": "30"})
        assert cfg.cache_ttl_seconds == 60
        assert "cache_ttl_seconds" in caplog.text

    def test_non_numeric_falls_back_to_default(self):
        assert Config.from_dict({"rate_limit_per_minute": "lots"}).rate_limit_per_minute == 30

    @pytest.mark.parametrize("value", ["9:00", "08:30", "23:59"])
    def test_valid_opening_hours(self, value):
        assert Config.from_dict({"opening_hours_start": value}).opening_hours_start == value

    @pytest.mark.parametrize("value", ["24:00", "9", "09:60", "nine", ""])
    def test_invalid_opening_hours_use_default(self, value):
        assert Config.from_dict({"opening_hours_end": value}).opening_hours_end == "17:00"

    def test_unknown_timezone_falls_back_to_utc(self):
        assert Config.from_dict({"business_timezone": "Nowhere/Special"}).business_timezone == "UTC"

    def test_bool_coercion(self):
        cfg = Config.from_dict({"trust_proxy_headers": "yes", "debug_logging": "0"})
        assert cfg.trust_proxy_headers is True
        assert cfg.debug_logging is False

    def test_admin_token_not_in_repr(self):
        assert "s3cret" not in repr(Config.from_dict({"admin_token": "s3cret"}))


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "missing.yaml") == Config()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("ics_url: https://example.com/cal.ics\nmin_free_minutes: 90\n")
        cfg = load_config(path)
        assert cfg.ics_url == "https://example.com/cal.ics"
        assert cfg.min_free_minutes == 90

    def test_non_mapping_yaml_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            load_config(path)


class TestConfigManager:
    """Tests for layered configuration resolution."""

    def test_parse_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text('# comment\nA=1\nB="two"\n\nnot a pair\n')
        assert parse_env_file(env) == {"A": "1", "B": "two"}

    def test_environment_overrides_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("ics_url: https://yaml.example.com/a.ics\ncache_ttl_seconds: 600\n")
        environ = {"ICS_AVAILABILITY_ICS_URL": "https://env.example.com/b.ics"}
        manager = ConfigManager(env_file_path=tmp_path / ".env", environ=environ)

        cfg = manager.load_full_config(path)

        assert cfg.ics_url == "https://env.example.com/b.ics"
        assert cfg.cache_ttl_seconds == 600

    def test_env_file_does_not_override_environment(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("ICS_AVAILABILITY_WEB_PORT=9000\nICS_AVAILABILITY_TIMEZONE=Europe/Prague\n")
        environ = {"ICS_AVAILABILITY_WEB_PORT": "8081"}
        cfg = ConfigManager(env_file_path=env_file, environ=environ).load_full_config()
        assert cfg.server_port == 8081
        assert cfg.business_timezone == "Europe/Prague"

    def test_overrides_win(self, tmp_path):
        environ = {"ICS_AVAILABILITY_WEB_PORT": "8081"}
        manager = ConfigManager(env_file_path=tmp_path / ".env", environ=environ)
        cfg = manager.load_full_config(overrides={"server_port": 3000, "server_bind": None})
        assert cfg.server_port == 3000
        assert cfg.server_bind == "0.0.0.0"

    def test_config_path_from_environment(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("month_view: month\n")
        environ = {"ICS_AVAILABILITY_CONFIG": str(path)}
        cfg = ConfigManager(env_file_path=tmp_path / ".env", environ=environ).load_full_config()
        assert cfg.month_view == "month"
