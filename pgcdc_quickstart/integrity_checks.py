"""Data integrity checks, runnable on the source or the replicated tables.

Every check is a SQL query with quoted lower-case identifiers, which
PostgreSQL, SQLite and the connector-created Snowflake tables all accept.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from pgcdc_quickstart.state_machine import AppointmentStatus, status_values

logger = logging.getLogger(__name__)

FetchAll = Callable[[str], list[dict]]


@dataclass
class CheckResult:
    name: str
    passed: bool
    observed: object
    expected: object


@dataclass(frozen=True)
class ExpectedVolumes:
    """Row counts right after the snapshot load."""
    patients: int = 100
    doctors: int = 10
    appointments: int = 170
    visits: int = 100

    def items(self):
        return [
            ("patients", self.patients),
            ("doctors", self.doctors),
            ("appointments", self.appointments),
            ("visits", self.visits),
        ]


SNAPSHOT_VOLUMES = ExpectedVolumes()

NULL_CHECKS = [
    ("Patients with NULL names", "patients", '"first_name" IS NULL OR "last_name" IS NULL'),
    ("Doctors with NULL names", "doctors", '"first_name" IS NULL OR "last_name" IS NULL'),
    ("Appointments with NULL dates", "appointments", '"appointment_date" IS NULL OR "appointment_time" IS NULL'),
    ("Visits with NULL charges", "visits", '"total_charge" IS NULL'),
]

ORPHAN_CHECKS = [
    ("Appointments without a patient", "appointments", "patient_id", "patients"),
    ("Appointments without a doctor", "appointments", "doctor_id", "doctors"),
    ("Visits without an appointment", "visits", "appointment_id", "appointments"),
    ("Visits without a patient", "visits", "patient_id", "patients"),
    ("Visits without a doctor", "visits", "doctor_id", "doctors"),
]


def _count(fetch_all: FetchAll, sql: str) -> int:
    rows = fetch_all(sql)
    return int(rows[0]["n"]) if rows else 0


def check_row_counts(
    fetch_all: FetchAll,
    expected: ExpectedVolumes = SNAPSHOT_VOLUMES,
    after_live: bool = False,
) -> list[CheckResult]:
    """Exact seed volumes at snapshot, at least those volumes afterwards."""
    results = []
    for table, volume in expected.items():
        n = _count(fetch_all, f'SELECT COUNT(*) AS n FROM "{table}"')
        if after_live:
            results.append(CheckResult(f"{table} row count", n >= volume, n, f">= {volume}"))
        else:
            results.append(CheckResult(f"{table} row count", n == volume, n, volume))
    return results


def check_no_nulls(fetch_all: FetchAll) -> list[CheckResult]:
    results = []
    for name, table, predicate in NULL_CHECKS:
        n = _count(fetch_all, f'SELECT COUNT(*) AS n FROM "{table}" WHERE {predicate}')
        results.append(CheckResult(name, n == 0, n, 0))
    return results


def check_status_domain(fetch_all: FetchAll) -> CheckResult:
    allowed = ", ".join(f"'{s}'" for s in status_values())
    n = _count(fetch_all, f'SELECT COUNT(*) AS n FROM "appointments" WHERE "status" NOT IN ({allowed})')
    return CheckResult("Appointments with unknown status", n == 0, n, 0)


def check_visits_completed(fetch_all: FetchAll) -> CheckResult:
    n = _count(fetch_all, f"""
SELECT COUNT(*) AS n
FROM "visits" v
JOIN "appointments" a ON v."appointment_id" = a."appointment_id"
WHERE a."status" <> '{AppointmentStatus.COMPLETED.value}'
""")
    return CheckResult("Visits on non-completed appointments", n == 0, n, 0)


def check_status_totals(fetch_all: FetchAll) -> CheckResult:
    rows = fetch_all('SELECT "status", COUNT(*) AS n FROM "appointments" GROUP BY "status"')
    by_status = sum(int(row["n"]) for row in rows)
    total = _count(fetch_all, 'SELECT COUNT(*) AS n FROM "appointments"')
    return CheckResult("Status counts add up to total", by_status == total, by_status, total)


def check_single_visit(fetch_all: FetchAll) -> CheckResult:
    n = _count(fetch_all, """
SELECT COUNT(*) AS n FROM (
    SELECT "appointment_id" FROM "visits" GROUP BY "appointment_id" HAVING COUNT(*) > 1
) dup
""")
    return CheckResult("Appointments with more than one visit", n == 0, n, 0)


def check_charges(fetch_all: FetchAll) -> CheckResult:
    n = _count(fetch_all, 'SELECT COUNT(*) AS n FROM "visits" WHERE "total_charge" < 0')
    return CheckResult("Visits with negative charges", n == 0, n, 0)


def check_references(fetch_all: FetchAll) -> list[CheckResult]:
    """Foreign keys, re-checked where the destination has none."""
    results = []
    for name, child, column, parent in ORPHAN_CHECKS:
        n = _count(fetch_all, f"""
SELECT COUNT(*) AS n
FROM "{child}" c
LEFT JOIN "{parent}" p ON c."{column}" = p."{column}"
WHERE p."{column}" IS NULL
""")
        results.append(CheckResult(name, n == 0, n, 0))
    return results


def run_checks(
    fetch_all: FetchAll,
    after_live: bool = False,
    expected: ExpectedVolumes = SNAPSHOT_VOLUMES,
) -> list[CheckResult]:
    """Run every integrity check against one database."""
    results = check_row_counts(fetch_all, expected, after_live)
    results += check_no_nulls(fetch_all)
    results.append(check_status_domain(fetch_all))
    results.append(check_visits_completed(fetch_all))
    results.append(check_status_totals(fetch_all))
    results.append(check_single_visit(fetch_all))
    results.append(check_charges(fetch_all))
    results += check_references(fetch_all)

    failed = [r.name for r in results if not r.passed]
    if failed:
        logger.warning("%d integrity check(s) failed: %s", len(failed), ", ".join(failed))
    return results
