"""Snowflake objects the CDC connector needs before it can start.

Run as ACCOUNTADMIN, once, before the connector is configured. The
destination schema itself is not created here; the connector creates it
during the snapshot load.
"""

import re
from dataclasses import dataclass

from pydantic import BaseModel, field_validator

from pgcdc_quickstart.config import (
    PLACEHOLDER_ENDPOINT,
    ConfigurationError,
    Settings,
    get_settings,
    validate_endpoint,
)

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

STEP_TITLES = {
    1: "Create Role and Database",
    2: "Create Schema and Stage",
    3: "Create Network Rules",
    4: "Create External Access Integration",
    5: "Setup Snowflake Intelligence",
    6: "Verify Setup",
}


class WarehouseObjects(BaseModel):
    """Names of every object the setup creates or grants on."""

    role: str = "QUICKSTART_ROLE"
    database: str = "QUICKSTART_PGCDC_DB"
    warehouse: str = "QUICKSTART_PGCDC_WH"
    warehouse_size: str = "MEDIUM"
    auto_suspend: int = 300
    admin_role: str = "OPENFLOW_ADMIN"
    network_schema: str = "NETWORKS"
    stage: str = "semantic_models"
    network_rule: str = "postgres_network_rule"
    integration: str = "quickstart_pgcdc_access"
    intelligence_database: str = "snowflake_intelligence"
    agents_schema: str = "agents"
    endpoint: str = PLACEHOLDER_ENDPOINT

    @field_validator(
        "role", "database", "warehouse", "warehouse_size", "admin_role", "network_schema",
        "stage", "network_rule", "integration", "intelligence_database", "agents_schema",
    )
    @classmethod
    def check_identifier(cls, v):
        if not IDENTIFIER.match(v):
            raise ValueError(f"not a plain Snowflake identifier: {v!r}")
        return v

    @field_validator("endpoint")
    @classmethod
    def check_endpoint(cls, v):
        return validate_endpoint(v)

    @property
    def network_rule_path(self) -> str:
        return f"{self.database}.{self.network_schema}.{self.network_rule}"

    @property
    def has_placeholder_endpoint(self) -> bool:
        return self.endpoint == PLACEHOLDER_ENDPOINT

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides) -> "WarehouseObjects":
        settings = settings or get_settings()
        values = {
            "role": settings.snowflake_role,
            "database": settings.snowflake_database,
            "warehouse": settings.snowflake_warehouse,
            "endpoint": settings.postgres_endpoint,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e


@dataclass
class Statement:
    step: int
    sql: str

    @property
    def title(self) -> str:
        return STEP_TITLES[self.step]


def setup_statements(objects: WarehouseObjects) -> list[Statement]:
    """Provisioning statements, in execution order (steps 1-5)."""
    o = objects
    steps = {
        1: [
            "USE ROLE ACCOUNTADMIN",
            f"CREATE ROLE IF NOT EXISTS {o.role}",
            f"CREATE DATABASE IF NOT EXISTS {o.database}",
            f"CREATE WAREHOUSE IF NOT EXISTS {o.warehouse}\n"
            f"  WAREHOUSE_SIZE = {o.warehouse_size}\n"
            f"  AUTO_SUSPEND = {o.auto_suspend}\n"
            f"  AUTO_RESUME = TRUE",
            f"GRANT OWNERSHIP ON DATABASE {o.database} TO ROLE {o.role}",
            f"GRANT OWNERSHIP ON SCHEMA {o.database}.PUBLIC TO ROLE {o.role}",
            f"GRANT USAGE ON WAREHOUSE {o.warehouse} TO ROLE {o.role}",
            f"GRANT ROLE {o.role} TO ROLE {o.admin_role}",
        ],
        2: [
            f"USE ROLE {o.role}",
            f"USE DATABASE {o.database}",
            f"CREATE SCHEMA IF NOT EXISTS {o.database}.{o.network_schema}",
            "USE SCHEMA PUBLIC",
            f"CREATE STAGE IF NOT EXISTS {o.stage}\n"
            f"  DIRECTORY = (ENABLE = TRUE)\n"
            f"  COMMENT = 'Stage for Snowflake Intelligence semantic models'",
            f"GRANT READ ON STAGE {o.stage} TO ROLE ACCOUNTADMIN",
        ],
        3: [
            f"CREATE OR REPLACE NETWORK RULE {o.network_rule_path}\n"
            f"  MODE = EGRESS\n"
            f"  TYPE = HOST_PORT\n"
            f"  VALUE_LIST = ('{o.endpoint}')",
        ],
        4: [
            "USE ROLE ACCOUNTADMIN",
            f"CREATE OR REPLACE EXTERNAL ACCESS INTEGRATION {o.integration}\n"
            f"  ALLOWED_NETWORK_RULES = ({o.network_rule_path})\n"
            f"  ENABLED = TRUE\n"
            f"  COMMENT = 'OpenFlow SPCS runtime access for PostgreSQL CDC'",
            f"GRANT USAGE ON INTEGRATION {o.integration} TO ROLE {o.role}",
        ],
        5: [
            f"CREATE DATABASE IF NOT EXISTS {o.intelligence_database}",
            f"GRANT USAGE ON DATABASE {o.intelligence_database} TO ROLE PUBLIC",
            f"CREATE SCHEMA IF NOT EXISTS {o.intelligence_database}.{o.agents_schema}",
            f"GRANT USAGE ON SCHEMA {o.intelligence_database}.{o.agents_schema} TO ROLE PUBLIC",
            f"GRANT CREATE AGENT ON SCHEMA {o.intelligence_database}.{o.agents_schema} TO ROLE {o.role}",
        ],
    }
    return [Statement(step, sql) for step, sqls in steps.items() for sql in sqls]


def verification_statements(objects: WarehouseObjects) -> list[Statement]:
    """Step 6: SHOW/DESC statements whose output confirms the setup."""
    o = objects
    sqls = [
        f"USE ROLE {o.role}",
        f"SHOW ROLES LIKE '{o.role}'",
        f"SHOW GRANTS TO ROLE {o.role}",
        f"SHOW SCHEMAS IN DATABASE {o.database}",
        f"SHOW INTEGRATIONS LIKE '{o.integration}'",
        f"DESC INTEGRATION {o.integration}",
    ]
    return [Statement(6, sql) for sql in sqls]


def require_real_endpoint(objects: WarehouseObjects) -> None:
    """Refuse to provision a network rule that points at the placeholder host."""
    if objects.has_placeholder_endpoint:
        raise ConfigurationError(
            f"POSTGRES_ENDPOINT is still the placeholder {PLACEHOLDER_ENDPOINT}; "
            "set it (or pass --endpoint) to your PostgreSQL host:port"
        )


def render_setup_script(objects: WarehouseObjects, verify: bool = True) -> str:
    """The whole setup as a SQL script for the Snowflake worksheet."""
    statements = setup_statements(objects)
    if verify:
        statements += verification_statements(objects)

    lines = ["-- PostgreSQL CDC quickstart: Snowflake setup", ""]
    current = None
    for statement in statements:
        if statement.step != current:
            current = statement.step
            title = f"-- Step {current}: {statement.title}"
            lines += ["", title, "-- " + "-" * (len(title) - 3)]
        lines.append(f"{statement.sql};")
    if objects.has_placeholder_endpoint:
        lines += ["", "-- NOTE: replace YOUR-POSTGRES-HOST:5432 with your PostgreSQL endpoint"]
    return "\n".join(lines) + "\n"
