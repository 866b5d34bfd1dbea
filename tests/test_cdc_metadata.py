"""Tests for the CDC metadata column profiles."""

import pytest

from pgcdc_quickstart.cdc_metadata import CHANGE_STREAM, OPENFLOW, PROFILES, get_profile
from pgcdc_quickstart.config import ConfigurationError


class TestGetProfile:
    def test_default_is_openflow(self):
        assert get_profile() is OPENFLOW

    def test_environment_selects_profile(self, monkeypatch):
        monkeypatch.setenv("CDC_METADATA_PROFILE", "change_stream")
        assert get_profile() is CHANGE_STREAM

    def test_name_is_case_insensitive(self):
        assert get_profile("OpenFlow") is OPENFLOW

    def test_unknown_profile(self):
        with pytest.raises(ConfigurationError):
            get_profile("debezium")

    def test_profiles_have_three_columns(self):
        for profile in PROFILES.values():
            assert len(profile.columns) == 3


class TestExpressions:
    def test_openflow_latency(self):
        assert OPENFLOW.latency_seconds("a") == (
            'TIMESTAMPDIFF(SECOND, a."updated_at", '
            'COALESCE(a."_SNOWFLAKE_UPDATED_AT", a."_SNOWFLAKE_INSERTED_AT"))'
        )

    def test_change_stream_latency_without_alias(self):
        assert CHANGE_STREAM.latency_seconds() == (
            'TIMESTAMPDIFF(SECOND, "_COMMIT_TIMESTAMP", "_INGESTION_TIMESTAMP")'
        )

    def test_openflow_change_type_handles_deletes(self):
        expr = OPENFLOW.change_type_expr()
        assert expr.startswith('CASE WHEN "_SNOWFLAKE_DELETED" THEN \'DELETE\'')
        assert "'UPDATE'" in expr
        assert "'INSERT'" in expr

    def test_change_stream_change_type_is_a_column(self):
        assert CHANGE_STREAM.change_type_expr("x") == 'x."_CHANGE_TYPE"'

    def test_loaded_at(self):
        assert OPENFLOW.loaded_at_expr() == '"_SNOWFLAKE_INSERTED_AT"'
        assert CHANGE_STREAM.loaded_at_expr("v") == 'v."_INGESTION_TIMESTAMP"'

    def test_select_columns(self):
        assert CHANGE_STREAM.select_columns("a") == (
            'a."_CHANGE_TYPE", a."_COMMIT_TIMESTAMP", a."_INGESTION_TIMESTAMP"'
        )
