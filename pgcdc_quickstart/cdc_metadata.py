"""CDC metadata column profiles.

The connector stamps every destination row with metadata columns, and their
names depend on the connector flavour. A profile names those columns and
renders the SQL expressions the audit queries are built from.
"""

from dataclasses import dataclass

from pgcdc_quickstart.config import ConfigurationError, get_settings


@dataclass(frozen=True)
class MetadataProfile:
    name: str
    columns: tuple[str, ...]
    change_type: str
    change_time: str
    latency_from: str
    latency_to: str
    loaded_at: str
    description: str = ""

    def latency_seconds(self, alias: str = "") -> str:
        """Seconds between the source change and its arrival in the warehouse."""
        prefix = f"{alias}." if alias else ""
        start = self.latency_from.format(t=prefix)
        end = self.latency_to.format(t=prefix)
        return f"TIMESTAMPDIFF(SECOND, {start}, {end})"

    def change_type_expr(self, alias: str = "") -> str:
        return self.change_type.format(t=f"{alias}." if alias else "")

    def loaded_at_expr(self, alias: str = "") -> str:
        return self.loaded_at.format(t=f"{alias}." if alias else "")

    def change_time_expr(self, alias: str = "") -> str:
        return self.change_time.format(t=f"{alias}." if alias else "")

    def select_columns(self, alias: str = "") -> str:
        prefix = f"{alias}." if alias else ""
        return ", ".join(f'{prefix}"{c}"' for c in self.columns)


OPENFLOW = MetadataProfile(
    name="openflow",
    columns=("_SNOWFLAKE_INSERTED_AT", "_SNOWFLAKE_UPDATED_AT", "_SNOWFLAKE_DELETED"),
    change_type=(
        "CASE WHEN {t}\"_SNOWFLAKE_DELETED\" THEN 'DELETE' "
        "WHEN {t}\"_SNOWFLAKE_UPDATED_AT\" > {t}\"_SNOWFLAKE_INSERTED_AT\" THEN 'UPDATE' "
        "ELSE 'INSERT' END"
    ),
    change_time='COALESCE({t}"_SNOWFLAKE_UPDATED_AT", {t}"_SNOWFLAKE_INSERTED_AT")',
    latency_from='{t}"updated_at"',
    latency_to='COALESCE({t}"_SNOWFLAKE_UPDATED_AT", {t}"_SNOWFLAKE_INSERTED_AT")',
    loaded_at='{t}"_SNOWFLAKE_INSERTED_AT"',
    description="Openflow PostgreSQL connector: insert/update timestamps and a soft-delete flag",
)

CHANGE_STREAM = MetadataProfile(
    name="change_stream",
    columns=("_CHANGE_TYPE", "_COMMIT_TIMESTAMP", "_INGESTION_TIMESTAMP"),
    change_type='{t}"_CHANGE_TYPE"',
    change_time='{t}"_COMMIT_TIMESTAMP"',
    latency_from='{t}"_COMMIT_TIMESTAMP"',
    latency_to='{t}"_INGESTION_TIMESTAMP"',
    loaded_at='{t}"_INGESTION_TIMESTAMP"',
    description="Change-stream style: explicit change type, commit and ingestion timestamps",
)

PROFILES = {p.name: p for p in (OPENFLOW, CHANGE_STREAM)}


def get_profile(name: str | None = None) -> MetadataProfile:
    """Look up a profile by name, defaulting to CDC_METADATA_PROFILE."""
    name = (name or get_settings().metadata_profile).lower()
    try:
        return PROFILES[name]
    except KeyError:
        raise ConfigurationError(
            f"unknown CDC metadata profile {name!r}; expected one of {', '.join(PROFILES)}"
        ) from None
