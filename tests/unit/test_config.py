"""Tests for configuration validation"""
import pytest

from wellness_ledger import config
from wellness_ledger.exceptions import ConfigurationError


class TestConfigValidation:
    """Test validate_config against module-level settings"""

    def test_defaults_are_valid(self, monkeypatch):
        """Test that the development defaults pass validation"""
        monkeypatch.setattr(config, "STORE_BACKEND", "memory")
        monkeypatch.setattr(config, "DEFAULT_TIMEZONE", "UTC")
        config.validate_config()

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setattr(config, "STORE_BACKEND", "redis")
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_config()
        assert exc_info.value.config_key == "STORE_BACKEND"

    def test_postgres_requires_database_url(self, monkeypatch):
        monkeypatch.setattr(config, "STORE_BACKEND", "postgres")
        monkeypatch.setattr(config, "DATABASE_URL", "")
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_config()
        assert exc_info.value.config_key == "DATABASE_URL"

    def test_unknown_timezone(self, monkeypatch):
        monkeypatch.setattr(config, "STORE_BACKEND", "memory")
        monkeypatch.setattr(config, "DEFAULT_TIMEZONE", "Mars/Olympus_Mons")
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_config()
        assert exc_info.value.config_key == "DEFAULT_TIMEZONE"

    @pytest.mark.parametrize("key", ["POINTS_PER_CHALLENGE", "TRANSACTION_MAX_ATTEMPTS", "LEADERBOARD_TOP_N"])
    def test_non_positive_numbers(self, monkeypatch, key):
        monkeypatch.setattr(config, "STORE_BACKEND", "memory")
        monkeypatch.setattr(config, "DEFAULT_TIMEZONE", "UTC")
        monkeypatch.setattr(config, key, 0)
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_config()
        assert exc_info.value.config_key == key
