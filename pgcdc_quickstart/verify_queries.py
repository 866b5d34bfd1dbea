"""Snapshot verification queries, run on Snowflake once the connector's
initial load has finished (and again after the live activity)."""

from pgcdc_quickstart.cdc_metadata import MetadataProfile, get_profile
from pgcdc_quickstart.snowflake_client import Query

SECTIONS = (
    "counts", "metadata", "samples", "quality", "status", "workload",
    "demographics", "upcoming", "revenue", "diagnoses", "follow_up",
)

DOCTOR_WORKLOAD = """
SELECT
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    d."department",
    COUNT(a."appointment_id") AS total_appointments,
    SUM(CASE WHEN a."status" = 'completed' THEN 1 ELSE 0 END) AS completed_appointments,
    SUM(CASE WHEN a."status" IN ('scheduled', 'confirmed') THEN 1 ELSE 0 END) AS upcoming_appointments
FROM "doctors" d
LEFT JOIN "appointments" a ON d."doctor_id" = a."doctor_id"
GROUP BY d."doctor_id", d."first_name", d."last_name", d."specialization", d."department"
ORDER BY total_appointments DESC
"""

AGE_GROUP = """CASE
        WHEN DATEDIFF(year, {col}, CURRENT_DATE) < 18 THEN 'Pediatric (0-17)'
        WHEN DATEDIFF(year, {col}, CURRENT_DATE) BETWEEN 18 AND 30 THEN 'Young Adult (18-30)'
        WHEN DATEDIFF(year, {col}, CURRENT_DATE) BETWEEN 31 AND 50 THEN 'Adult (31-50)'
        WHEN DATEDIFF(year, {col}, CURRENT_DATE) BETWEEN 51 AND 65 THEN 'Middle Age (51-65)'
        ELSE 'Senior (65+)'
    END"""


def verify_queries(profile: MetadataProfile | None = None) -> list[Query]:
    """The full verification catalog, in the order an operator runs it."""
    profile = profile or get_profile()
    loaded_at = profile.loaded_at_expr()
    age_group = AGE_GROUP.format(col='"date_of_birth"')

    return [
        Query("counts", "Record counts", """
SELECT 'patients' AS table_name, COUNT(*) AS record_count FROM "patients"
UNION ALL SELECT 'doctors', COUNT(*) FROM "doctors"
UNION ALL SELECT 'appointments', COUNT(*) FROM "appointments"
UNION ALL SELECT 'visits', COUNT(*) FROM "visits"
ORDER BY table_name
""", "appointments 170, doctors 10, patients 100, visits 100 (more after the live activity)"),

        Query("metadata", "CDC metadata columns", f"""
SELECT
    COUNT(*) AS total_rows,
    MIN({loaded_at}) AS earliest_loaded,
    MAX({loaded_at}) AS latest_loaded,
    COUNT(DISTINCT {loaded_at}) AS unique_load_timestamps
FROM "appointments"
""", f"170 rows stamped by the snapshot load ({', '.join(profile.columns)})"),

        Query("samples", "Sample patients", 'SELECT * FROM "patients" LIMIT 10'),
        Query("samples", "Doctors", 'SELECT * FROM "doctors" ORDER BY "specialization", "last_name"'),
        Query("samples", "Sample scheduled appointments", """
SELECT
    "appointment_id", "patient_id", "doctor_id", "appointment_date", "appointment_time",
    "status", "reason_for_visit", "appointment_type"
FROM "appointments"
WHERE "status" = 'scheduled'
LIMIT 10
"""),
        Query("samples", "Sample visits", """
SELECT "visit_id", "patient_id", "doctor_id", "visit_date", "diagnosis", "total_charge"
FROM "visits"
LIMIT 10
"""),

        Query("quality", "NULLs in key fields", """
SELECT 'Patients with NULL names' AS check_name, COUNT(*) AS issue_count
FROM "patients" WHERE "first_name" IS NULL OR "last_name" IS NULL
UNION ALL
SELECT 'Doctors with NULL names', COUNT(*)
FROM "doctors" WHERE "first_name" IS NULL OR "last_name" IS NULL
UNION ALL
SELECT 'Appointments with NULL dates', COUNT(*)
FROM "appointments" WHERE "appointment_date" IS NULL OR "appointment_time" IS NULL
UNION ALL
SELECT 'Visits with NULL charges', COUNT(*)
FROM "visits" WHERE "total_charge" IS NULL
""", "every issue_count is 0"),

        Query("status", "Appointment status distribution", """
SELECT
    "status",
    COUNT(*) AS count,
    ROUND(COUNT(*) * 100.0 / SUM(COUNT(*)) OVER (), 2) AS percentage
FROM "appointments"
GROUP BY "status"
ORDER BY count DESC
""", "completed 100, cancelled 40, scheduled 15, no_show 10, confirmed 5"),

        Query("workload", "Doctor workload", DOCTOR_WORKLOAD),
        Query("workload", "Top 5 doctors by appointment volume", DOCTOR_WORKLOAD.rstrip() + "\nLIMIT 5\n"),

        Query("demographics", "Insurance provider distribution", """
SELECT "insurance_provider", COUNT(*) AS patient_count
FROM "patients"
GROUP BY "insurance_provider"
ORDER BY patient_count DESC
"""),
        Query("demographics", "Patients by state", """
SELECT "state", COUNT(*) AS patient_count
FROM "patients"
GROUP BY "state"
ORDER BY patient_count DESC
LIMIT 10
"""),
        Query("demographics", "Age distribution", f"""
SELECT
    {age_group} AS age_group,
    COUNT(*) AS patient_count
FROM "patients"
GROUP BY age_group
ORDER BY age_group
"""),

        Query("upcoming", "Upcoming appointments", """
SELECT
    p."first_name" || ' ' || p."last_name" AS patient_name,
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    a."appointment_date",
    a."appointment_time",
    a."status",
    a."reason_for_visit",
    a."appointment_type"
FROM "appointments" a
JOIN "patients" p ON a."patient_id" = p."patient_id"
JOIN "doctors" d ON a."doctor_id" = d."doctor_id"
WHERE a."appointment_date" >= CURRENT_DATE
  AND a."status" IN ('scheduled', 'confirmed')
ORDER BY a."appointment_date", a."appointment_time"
""", "20 rows at snapshot"),

        Query("revenue", "Visit revenue summary", """
SELECT
    COUNT(*) AS total_visits,
    SUM("total_charge") AS total_revenue,
    AVG("total_charge") AS average_charge,
    MIN("total_charge") AS min_charge,
    MAX("total_charge") AS max_charge
FROM "visits"
"""),
        Query("revenue", "Revenue by doctor", """
SELECT
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    COUNT(v."visit_id") AS visit_count,
    SUM(v."total_charge") AS total_revenue,
    ROUND(AVG(v."total_charge"), 2) AS avg_revenue_per_visit
FROM "doctors" d
JOIN "visits" v ON d."doctor_id" = v."doctor_id"
GROUP BY d."doctor_id", d."first_name", d."last_name", d."specialization"
ORDER BY total_revenue DESC
"""),

        Query("diagnoses", "Common diagnoses", """
SELECT "diagnosis", COUNT(*) AS frequency
FROM "visits"
GROUP BY "diagnosis"
ORDER BY frequency DESC
LIMIT 10
"""),

        Query("follow_up", "Follow-up and prescription statistics", """
SELECT
    SUM(CASE WHEN "follow_up_required" THEN 1 ELSE 0 END) AS visits_requiring_followup,
    SUM(CASE WHEN "prescription_given" THEN 1 ELSE 0 END) AS visits_with_prescription,
    COUNT(*) AS total_visits,
    ROUND(SUM(CASE WHEN "follow_up_required" THEN 1 ELSE 0 END) * 100.0 / COUNT(*), 2) AS followup_percentage,
    ROUND(SUM(CASE WHEN "prescription_given" THEN 1 ELSE 0 END) * 100.0 / COUNT(*), 2) AS prescription_percentage
FROM "visits"
"""),
    ]


def queries_for(section: str | None = None, profile: MetadataProfile | None = None) -> list[Query]:
    queries = verify_queries(profile)
    if section is None:
        return queries
    if section not in SECTIONS:
        raise ValueError(f"unknown section {section!r}; expected one of {', '.join(SECTIONS)}")
    return [q for q in queries if q.section == section]
