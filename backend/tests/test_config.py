"""Tests for application settings."""
import pytest
from pydantic import ValidationError

from slideout.config import Settings, get_settings


class TestSettings:
    """Test cases for Settings."""

    def test_defaults(self, monkeypatch):
        """Test the generator defaults."""
        monkeypatch.delenv("GENERATOR_STRATEGY", raising=False)
        settings = Settings(_env_file=None)
        assert settings.generator_strategy == "reverse_fill"
        assert settings.use_time_seed is False
        assert settings.worker_threads >= 1

    def test_env_override(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("GENERATOR_STRATEGY", "depth_layered")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = Settings(_env_file=None)
        assert settings.generator_strategy == "depth_layered"
        assert settings.log_level == "DEBUG"

    def test_unknown_strategy(self):
        """Test that an unknown strategy is rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, generator_strategy="spiral")

    @pytest.mark.parametrize("raw,expected", [
        ('["http://a.test"]', ["http://a.test"]),
        ("http://a.test, http://b.test", ["http://a.test", "http://b.test"]),
    ])
    def test_cors_origins(self, raw, expected):
        """Test JSON and comma-separated CORS origins."""
        assert Settings(_env_file=None, cors_origins=raw).get_cors_origins() == expected

    @pytest.mark.parametrize("field", ["solvability_attempts", "worker_threads"])
    def test_generator_counts_positive(self, field):
        """Test that generator counts below one are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})

    def test_get_settings_singleton(self, monkeypatch):
        """Test that get_settings returns one shared instance."""
        monkeypatch.setenv("DEBUG", "true")
        assert get_settings() is get_settings()
