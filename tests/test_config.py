"""Tests for environment-driven settings."""

import pytest

from pgcdc_quickstart.config import (
    DEFAULT_SOURCE_URL,
    PLACEHOLDER_ENDPOINT,
    ConfigurationError,
    get_settings,
)


class TestDefaults:
    def test_defaults(self):
        settings = get_settings()
        assert settings.source_database_url == DEFAULT_SOURCE_URL
        assert settings.source_schema == "healthcare"
        assert settings.publication_name == "healthcare_cdc_publication"
        assert settings.postgres_endpoint == PLACEHOLDER_ENDPOINT
        assert settings.metadata_profile == "openflow"
        assert not settings.has_snowflake_credentials


class TestEnvironment:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SOURCE_DATABASE_URL", "postgresql://postgres:pw@localhost:5432/clinic")
        monkeypatch.setenv("SNOWFLAKE_ACCOUNT", "xy12345")
        monkeypatch.setenv("SNOWFLAKE_USER", "quickstart")
        monkeypatch.setenv("SEED", "7")
        monkeypatch.setenv("CDC_METADATA_PROFILE", "CHANGE_STREAM")

        settings = get_settings()
        assert settings.source_database_url.startswith("postgresql://")
        assert settings.has_snowflake_credentials
        assert settings.seed == 7
        assert settings.metadata_profile == "change_stream"

    def test_empty_values_are_ignored(self, monkeypatch):
        monkeypatch.setenv("SNOWFLAKE_ROLE", "")
        assert get_settings().snowflake_role == "QUICKSTART_ROLE"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_ENDPOINT", "a.example.com:5432")
        settings = get_settings(postgres_endpoint="b.example.com:6543", snowflake_role=None)
        assert settings.postgres_endpoint == "b.example.com:6543"
        assert settings.snowflake_role == "QUICKSTART_ROLE"


class TestValidation:
    @pytest.mark.parametrize("env,value", [
        ("SOURCE_DATABASE_URL", "mysql://localhost/clinic"),
        ("CDC_METADATA_PROFILE", "debezium"),
        ("POSTGRES_ENDPOINT", "db.example.com"),
        ("POSTGRES_ENDPOINT", "db.example.com:port"),
        ("POSTGRES_ENDPOINT", "db.example.com:5432'"),
        ("SEED", "forty-two"),
    ])
    def test_invalid_values(self, monkeypatch, env, value):
        monkeypatch.setenv(env, value)
        with pytest.raises(ConfigurationError):
            get_settings()

    def test_password_hidden_from_repr(self):
        settings = get_settings(snowflake_password="s3cret")
        assert "s3cret" not in repr(settings)
