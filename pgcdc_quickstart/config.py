"""Environment-driven settings for the source database and the Snowflake account."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv(override=True)

DEFAULT_SOURCE_URL = f"sqlite:///{Path(__file__).parent / 'healthcare' / 'healthcare.db'}"
PLACEHOLDER_ENDPOINT = "YOUR-POSTGRES-HOST:5432"
METADATA_PROFILES = ("openflow", "change_stream")


def validate_endpoint(v: str) -> str:
    """Accept `host:port` with a numeric port, as network rules need it."""
    host, sep, port = v.rpartition(":")
    if not sep or not host or not port.isdigit() or "'" in v:
        raise ValueError(f"endpoint must look like host:port, got {v!r}")
    return v


class ConfigurationError(Exception):
    """Raised when a setting is missing or malformed."""
    pass


class Settings(BaseModel):
    """All knobs of the quickstart, one field per environment variable."""

    # Source (PostgreSQL, or SQLite for local runs)
    source_database_url: str = DEFAULT_SOURCE_URL
    source_schema: str = "healthcare"
    replication_user: str = "postgres"
    publication_name: str = "healthcare_cdc_publication"

    # Destination (Snowflake)
    snowflake_account: str | None = None
    snowflake_user: str | None = None
    snowflake_password: str | None = Field(None, repr=False)
    snowflake_authenticator: str | None = None
    snowflake_role: str = "QUICKSTART_ROLE"
    snowflake_database: str = "QUICKSTART_PGCDC_DB"
    snowflake_warehouse: str = "QUICKSTART_PGCDC_WH"
    snowflake_schema: str = "healthcare"
    postgres_endpoint: str = PLACEHOLDER_ENDPOINT

    # Demo behaviour
    metadata_profile: str = "openflow"
    seed: int = 42
    log_level: str = "INFO"

    @field_validator("source_database_url")
    @classmethod
    def check_source_url(cls, v):
        if not v.startswith(("postgresql://", "postgres://", "sqlite:///")):
            raise ValueError(f"unsupported source database URL: {v!r}")
        return v

    @field_validator("metadata_profile")
    @classmethod
    def check_profile(cls, v):
        v = v.lower()
        if v not in METADATA_PROFILES:
            raise ValueError(f"metadata profile must be one of {', '.join(METADATA_PROFILES)}")
        return v

    @field_validator("postgres_endpoint")
    @classmethod
    def check_endpoint(cls, v):
        return validate_endpoint(v)

    @property
    def has_snowflake_credentials(self) -> bool:
        return bool(self.snowflake_account and self.snowflake_user)


# Environment variable -> Settings field
ENV_FIELDS = {
    "SOURCE_DATABASE_URL": "source_database_url",
    "SOURCE_SCHEMA": "source_schema",
    "PGUSER": "replication_user",
    "PUBLICATION_NAME": "publication_name",
    "SNOWFLAKE_ACCOUNT": "snowflake_account",
    "SNOWFLAKE_USER": "snowflake_user",
    "SNOWFLAKE_PASSWORD": "snowflake_password",
    "SNOWFLAKE_AUTHENTICATOR": "snowflake_authenticator",
    "SNOWFLAKE_ROLE": "snowflake_role",
    "SNOWFLAKE_DATABASE": "snowflake_database",
    "SNOWFLAKE_WAREHOUSE": "snowflake_warehouse",
    "SNOWFLAKE_SCHEMA": "snowflake_schema",
    "POSTGRES_ENDPOINT": "postgres_endpoint",
    "CDC_METADATA_PROFILE": "metadata_profile",
    "SEED": "seed",
    "LOG_LEVEL": "log_level",
}


def get_settings(**overrides) -> Settings:
    """Build settings from the environment, with keyword overrides on top."""
    values = {
        field: os.environ[env]
        for env, field in ENV_FIELDS.items()
        if os.environ.get(env)
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**values)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
