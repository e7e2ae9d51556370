"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from live_kb_sync.core.config import Settings, clean_env_value
from live_kb_sync.core.errors import ConfigError


class TestCleanEnvValue:
    """Test raw env value cleaning."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ('"vs_123"', "vs_123"),
            ("'vs_123'", "vs_123"),
            ("“vs_123”", "vs_123"),
            ("„vs_123“", "vs_123"),
            ("  vs_123 \n", "vs_123"),
            ('""', None),
            ("   ", None),
            (None, None),
        ],
    )
    def test_strips_quotes_and_whitespace(self, raw, expected):
        assert clean_env_value(raw) == expected

    def test_non_string_passthrough(self):
        assert clean_env_value(5) == 5


class TestSettings:
    """Test Settings construction."""

    def test_env_values_are_cleaned(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OPENAI_API_KEY", '"sk-from-env"')
        monkeypatch.setenv("VECTOR_STORE_ID", "“vs_env”")
        monkeypatch.setenv("ASSISTANT_ID", "  asst_env  ")

        settings = Settings(project_root=tmp_path)

        assert settings.api_key == "sk-from-env"
        assert settings.vector_store_id == "vs_env"
        assert settings.assistant_id == "asst_env"

    def test_base_urls_lose_trailing_slash(self, tmp_path):
        settings = Settings(
            project_root=tmp_path,
            openai_base_url="https://api.test/",
            site_base_url="'https://obec.test/'",
        )

        assert settings.openai_base_url == "https://api.test"
        assert settings.site_base_url == "https://obec.test"

    def test_empty_base_url_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            Settings(project_root=tmp_path, openai_base_url='""')

    def test_defaults(self, settings):
        assert settings.live_filename == "10_LIVE_obec_chomutice.txt"
        assert settings.cleanup_old is True
        assert settings.batch_poll_timeout == 1
        assert settings.list_limit == 100
        assert settings.chunk_size == 1200
        assert settings.chunk_overlap == 150
        assert settings.kb_output_path == Path("kb") / "kb.json"

    def test_settings_are_immutable(self, settings):
        with pytest.raises(ValueError):
            settings.cleanup_old = False

    def test_model_copy_overrides(self, settings):
        updated = settings.model_copy(update={"cleanup_old": False})

        assert updated.cleanup_old is False
        assert settings.cleanup_old is True

    @pytest.mark.parametrize(
        "overrides",
        [{"netlify": "true"}, {"aws_lambda_function_name": "live-sync"}, {"ephemeral_storage": True}],
    )
    def test_serverless_detection(self, settings, overrides):
        assert settings.is_serverless is False
        assert settings.model_copy(update=overrides).is_serverless is True


class TestRequireSyncCredentials:
    """Test the pre-flight credential check."""

    def test_passes_with_credentials(self, settings):
        settings.require_sync_credentials()

    def test_reports_every_missing_setting(self, settings):
        bare = settings.model_copy(update={"openai_api_key": None, "vector_store_id": None})

        with pytest.raises(ConfigError) as exc_info:
            bare.require_sync_credentials()

        assert exc_info.value.missing == ["OPENAI_API_KEY", "VECTOR_STORE_ID"]
        assert "OPENAI_API_KEY" in str(exc_info.value)

    def test_reports_missing_store_only(self, settings):
        with pytest.raises(ConfigError) as exc_info:
            settings.model_copy(update={"vector_store_id": None}).require_sync_credentials()

        assert exc_info.value.missing == ["VECTOR_STORE_ID"]
