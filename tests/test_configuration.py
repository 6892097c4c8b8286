"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
from omegaconf.errors import ConfigKeyError

from poster_gen_backend.configuration import load_settings, make_runtime_config
from poster_gen_backend.models import ArtifactMode


class TestLoadSettings:
    def test_environment_is_honoured(self, test_dirs):
        settings = load_settings()
        assert settings.storage.output_dir == Path(test_dirs["output"])
        assert settings.storage.templates_dir == Path(test_dirs["templates"])
        assert settings.rendering.settle_delay_ms == 0

    def test_env_read_at_call_time(self, monkeypatch):
        monkeypatch.setenv("RENDER_TIMEOUT_SECONDS", "12.5")
        monkeypatch.setenv("ARTIFACT_MODE", "image")
        settings = load_settings()
        assert settings.rendering.timeout_seconds == 12.5
        assert settings.rendering.artifact_mode is ArtifactMode.IMAGE

    def test_allowed_origins_split(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")
        assert load_settings().app.allowed_origins == ["https://a.example", "https://b.example"]

    def test_overrides_win(self):
        settings = load_settings({"rendering": {"page_format": "Letter", "landscape": True}})
        assert settings.rendering.page_format == "Letter"
        assert settings.rendering.landscape is True

    def test_unknown_override_rejected(self):
        with pytest.raises(ConfigKeyError):
            make_runtime_config({"rendering": {"dpi": 300}})

    def test_invalid_value_rejected(self, monkeypatch):
        monkeypatch.setenv("ARTIFACT_MODE", "gif")
        with pytest.raises(ValueError):
            load_settings()
