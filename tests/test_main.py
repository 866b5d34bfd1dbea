"""Tests for the pgcdc-quickstart command line."""

from unittest.mock import patch

import pytest

from pgcdc_quickstart.main import build_parser, main


@pytest.fixture
def source(monkeypatch, db_url):
    monkeypatch.setenv("SOURCE_DATABASE_URL", db_url)
    return db_url


def run(*argv):
    return main(["--log-level", "WARNING", *argv])


class TestParser:
    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_bad_date(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["simulate", "--today", "16/10/2026"])

    def test_defaults(self):
        args = build_parser().parse_args(["check"])
        assert args.target == "source"
        assert args.after_live is False

    def test_verify_profile_choices(self):
        assert build_parser().parse_args(["verify", "--profile", "openflow"]).profile == "openflow"
        with pytest.raises(SystemExit):
            build_parser().parse_args(["verify", "--profile", "debezium"])


class TestSourceCommands:
    def test_init_source(self, source, capsys):
        assert run("init-source", "--today", "2026-10-16", "--seed", "42") == 0
        out = capsys.readouterr().out
        assert "Snapshot data loaded" in out
        assert "skipped" in out

    def test_check_after_init(self, source, capsys):
        run("init-source", "--today", "2026-10-16")
        assert run("check") == 0
        assert "All integrity checks passed" in capsys.readouterr().out

    def test_simulate_then_check(self, source, capsys):
        run("init-source", "--today", "2026-10-16")
        assert run("simulate", "--today", "2026-10-16", "--pause-scale", "0") == 0
        assert "CDC Demo Summary" in capsys.readouterr().out

        assert run("check") == 1
        assert run("check", "--after-live") == 0

    def test_check_on_empty_database_fails(self, source, db):
        assert run("check") == 1


class TestWarehouseSetup:
    def test_writes_script(self, tmp_path, capsys):
        output = tmp_path / "setup.sql"
        assert run("warehouse-setup", "--endpoint", "db.example.com:5432", "--output", str(output)) == 0
        script = output.read_text()
        assert "VALUE_LIST = ('db.example.com:5432')" in script
        assert "-- Step 6: Verify Setup" in script

    def test_placeholder_warning(self, tmp_path, capsys):
        assert run("warehouse-setup", "--output", str(tmp_path / "setup.sql")) == 0
        assert "placeholder" in capsys.readouterr().out

    def test_execute_refuses_placeholder(self, capsys):
        assert run("warehouse-setup", "--execute") == 1
        assert "Error:" in capsys.readouterr().out

    def test_bad_endpoint(self, capsys):
        assert run("warehouse-setup", "--endpoint", "no-port-here") == 1

    def test_non_numeric_port(self, tmp_path, capsys):
        output = tmp_path / "setup.sql"
        assert run("warehouse-setup", "--endpoint", "db.example.com:abc", "--output", str(output)) == 1
        assert not output.exists()


class TestWarehouseCommands:
    def test_verify_needs_credentials(self, capsys):
        assert run("verify") == 1
        assert "SNOWFLAKE_ACCOUNT" in capsys.readouterr().out

    def test_analytics_unknown_section(self):
        with pytest.raises(SystemExit):
            run("analytics", "--section", "billing")

    def test_verify_prints_results(self, monkeypatch, capsys):
        monkeypatch.setenv("SNOWFLAKE_ACCOUNT", "xy12345")
        monkeypatch.setenv("SNOWFLAKE_USER", "quickstart")
        with patch("pgcdc_quickstart.snowflake_client.snowflake.connector.connect") as connect:
            cursor = connect.return_value.cursor.return_value
            cursor.fetchall.return_value = [{"TABLE_NAME": "patients", "RECORD_COUNT": 100}]
            assert run("verify", "--section", "counts") == 0
        out = capsys.readouterr().out
        assert "Record counts" in out
        assert "record_count" in out

    def test_verify_metadata_follows_profile(self, monkeypatch, capsys):
        monkeypatch.setenv("SNOWFLAKE_ACCOUNT", "xy12345")
        monkeypatch.setenv("SNOWFLAKE_USER", "quickstart")
        with patch("pgcdc_quickstart.snowflake_client.snowflake.connector.connect") as connect:
            cursor = connect.return_value.cursor.return_value
            cursor.fetchall.return_value = [{"TABLE_NAME": "patients", "FIRST_LOAD": "2026-10-16 07:05:00"}]
            assert run("verify", "--section", "metadata", "--profile", "change_stream") == 0
        executed = [c.args[0] for c in cursor.execute.call_args_list]
        assert any("_INGESTION_TIMESTAMP" in sql for sql in executed)
        assert not any("_SNOWFLAKE_INSERTED_AT" in sql for sql in executed)
