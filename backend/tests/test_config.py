"""
JBin Backend — Settings Tests
===============================

What:  Tests for environment parsing, derived values and consistency checks.
"""

import pytest
from pydantic import ValidationError

from app.config import Settings


class TestSettingsParsing:

    def test_defaults(self, make_settings):
        settings = make_settings()

        assert settings.port == 3001
        assert settings.json_size_limit == 10 * 1024 * 1024
        assert settings.blob_id_length == 10
        assert settings.rate_limit_window_ms == 900_000
        assert settings.rate_limit_max == 100
        assert settings.create_limit_window_ms == 3_600_000
        assert settings.create_limit_max == 30
        assert settings.recaptcha_min_score == 0.5
        assert settings.trust_proxy is True
        assert settings.recaptcha_enabled is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("JSON_SIZE_LIMIT", "512kb")
        monkeypatch.setenv("BLOB_ID_LENGTH", "21")
        monkeypatch.setenv("RECAPTCHA_SECRET_KEY", "s3cret")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")

        settings = Settings(_env_file=None)

        assert settings.port == 8080
        assert settings.json_size_limit == 512 * 1024
        assert settings.blob_id_length == 21
        assert settings.recaptcha_enabled is True
        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]

    @pytest.mark.parametrize(
        "raw, expected",
        [("10mb", 10 * 1024 ** 2), ("1.5kb", 1536), ("2048", 2048), ("1GB", 1024 ** 3)],
    )
    def test_size_strings(self, make_settings, raw, expected):
        assert make_settings(json_size_limit=raw).json_size_limit == expected

    @pytest.mark.parametrize("raw", ["ten megabytes", "10tb", "-5mb"])
    def test_invalid_size_rejected(self, make_settings, raw):
        with pytest.raises(ValidationError):
            make_settings(json_size_limit=raw)

    def test_invalid_log_level_rejected(self, make_settings):
        with pytest.raises(ValidationError):
            make_settings(log_level="LOUD")

    def test_log_level_normalized(self, make_settings):
        assert make_settings(log_level="debug").log_level == "DEBUG"


class TestDerivedValues:

    def test_database_url_defaults_to_data_dir(self, make_settings, tmp_path):
        settings = make_settings(data_dir=str(tmp_path / "store"))

        assert settings.resolved_database_url == (
            f"sqlite+aiosqlite:///{(tmp_path / 'store').resolve() / 'jbin.db'}"
        )

    def test_explicit_database_url_wins(self, make_settings):
        settings = make_settings(database_url="sqlite+aiosqlite:///elsewhere.db")
        assert settings.resolved_database_url == "sqlite+aiosqlite:///elsewhere.db"

    def test_csp_lists(self, make_settings):
        settings = make_settings(
            csp_extra_script_src="https://a.example,https://b.example",
            csp_extra_worker_src="",
        )

        assert settings.csp_extra_script_src_list == ["https://a.example", "https://b.example"]
        assert settings.csp_extra_worker_src_list == []


class TestConsistency:

    def test_complete_configuration_passes(self, make_settings):
        make_settings(
            recaptcha_secret_key="s",
            recaptcha_site_key="p",
            umami_url="https://stats.example",
            umami_website_id="id",
        ).validate_consistency()

    def test_site_key_without_secret_reported(self, make_settings):
        with pytest.raises(ValueError, match="RECAPTCHA_SECRET_KEY"):
            make_settings(recaptcha_site_key="p").validate_consistency()

    def test_half_umami_reported(self, make_settings):
        with pytest.raises(ValueError, match="UMAMI"):
            make_settings(umami_url="https://stats.example").validate_consistency()
