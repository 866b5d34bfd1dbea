"""Tests for the Snowflake provisioning statements."""

import pytest

from pgcdc_quickstart.config import ConfigurationError, get_settings
from pgcdc_quickstart.warehouse_setup import (
    WarehouseObjects,
    render_setup_script,
    require_real_endpoint,
    setup_statements,
    verification_statements,
)

ENDPOINT = "db.example.com:5432"


@pytest.fixture
def objects():
    return WarehouseObjects(endpoint=ENDPOINT)


def index_of(statements, prefix):
    return next(i for i, s in enumerate(statements) if s.sql.startswith(prefix))


class TestSetupStatements:
    def test_steps_run_in_order(self, objects):
        steps = [s.step for s in setup_statements(objects)]
        assert steps == sorted(steps)
        assert set(steps) == {1, 2, 3, 4, 5}

    def test_starts_as_accountadmin(self, objects):
        assert setup_statements(objects)[0].sql == "USE ROLE ACCOUNTADMIN"

    def test_network_rule_before_integration(self, objects):
        statements = setup_statements(objects)
        rule = index_of(statements, "CREATE OR REPLACE NETWORK RULE")
        integration = index_of(statements, "CREATE OR REPLACE EXTERNAL ACCESS INTEGRATION")
        assert rule < integration
        assert "QUICKSTART_PGCDC_DB.NETWORKS.postgres_network_rule" in statements[integration].sql

    def test_endpoint_lands_in_network_rule(self, objects):
        rule = next(s for s in setup_statements(objects) if "NETWORK RULE" in s.sql)
        assert f"VALUE_LIST = ('{ENDPOINT}')" in rule.sql
        assert rule.title == "Create Network Rules"

    def test_role_granted_to_admin_role(self, objects):
        sqls = [s.sql for s in setup_statements(objects)]
        assert "GRANT ROLE QUICKSTART_ROLE TO ROLE OPENFLOW_ADMIN" in sqls
        assert "GRANT USAGE ON INTEGRATION quickstart_pgcdc_access TO ROLE QUICKSTART_ROLE" in sqls

    def test_warehouse_sizing(self, objects):
        warehouse = next(s.sql for s in setup_statements(objects) if s.sql.startswith("CREATE WAREHOUSE"))
        assert "WAREHOUSE_SIZE = MEDIUM" in warehouse
        assert "AUTO_SUSPEND = 300" in warehouse
        assert "AUTO_RESUME = TRUE" in warehouse

    def test_destination_schema_left_to_connector(self, objects):
        statements = setup_statements(objects) + verification_statements(objects)
        assert not any("healthcare" in s.sql.lower() for s in statements)

    def test_verification_is_step_six(self, objects):
        statements = verification_statements(objects)
        assert {s.step for s in statements} == {6}
        assert "DESC INTEGRATION quickstart_pgcdc_access" in [s.sql for s in statements]


class TestObjects:
    def test_bad_identifier(self):
        with pytest.raises(ValueError):
            WarehouseObjects(role="QUICKSTART ROLE; DROP DATABASE X")

    @pytest.mark.parametrize("endpoint", [
        "db.example.com')",
        "db.example.com:abc",
        ":5432",
        "db.example.com",
        "db.example.com:5432'",
    ])
    def test_bad_endpoint(self, endpoint):
        with pytest.raises(ValueError):
            WarehouseObjects(endpoint=endpoint)

    def test_ipv4_endpoint(self):
        assert WarehouseObjects(endpoint="10.0.0.12:6543").endpoint == "10.0.0.12:6543"

    def test_from_settings(self):
        settings = get_settings(snowflake_role="DEMO_ROLE", postgres_endpoint=ENDPOINT)
        objects = WarehouseObjects.from_settings(settings)
        assert objects.role == "DEMO_ROLE"
        assert objects.endpoint == ENDPOINT
        assert not objects.has_placeholder_endpoint

    def test_from_settings_override_and_error(self):
        settings = get_settings()
        assert WarehouseObjects.from_settings(settings, endpoint=ENDPOINT).endpoint == ENDPOINT
        with pytest.raises(ConfigurationError):
            WarehouseObjects.from_settings(settings, database="not-valid")

    def test_placeholder_is_refused(self):
        objects = WarehouseObjects()
        assert objects.has_placeholder_endpoint
        with pytest.raises(ConfigurationError):
            require_real_endpoint(objects)

    def test_real_endpoint_is_accepted(self, objects):
        require_real_endpoint(objects)


class TestRenderScript:
    def test_step_headers(self, objects):
        script = render_setup_script(objects)
        for header in (
            "-- Step 1: Create Role and Database",
            "-- Step 3: Create Network Rules",
            "-- Step 6: Verify Setup",
        ):
            assert header in script

    def test_every_statement_terminated(self, objects):
        script = render_setup_script(objects, verify=False)
        assert script.count(";") == len(setup_statements(objects))
        assert "Step 6" not in script

    def test_placeholder_note(self, objects):
        assert "NOTE" not in render_setup_script(objects)
        assert "-- NOTE: replace YOUR-POSTGRES-HOST:5432" in render_setup_script(WarehouseObjects())
