"""Analytics over the replicated healthcare tables.

Operational dashboards, patient flow, doctor performance, revenue, clinical
and patient insights, the CDC audit trail and an executive summary.
"""

from pgcdc_quickstart.cdc_metadata import MetadataProfile, get_profile
from pgcdc_quickstart.snowflake_client import Query
from pgcdc_quickstart.verify_queries import AGE_GROUP

SECTIONS = (
    "dashboard", "patient_flow", "doctor_performance", "revenue",
    "clinical", "patients", "cdc_audit", "kpis",
)

COMPLETED = """SUM(CASE WHEN {a}"status" = 'completed' THEN 1 ELSE 0 END)"""


def dashboard_queries() -> list[Query]:
    return [
        Query("dashboard", "Today's appointment status", """
SELECT
    "status",
    COUNT(*) AS appointment_count,
    ROUND(COUNT(*) * 100.0 / SUM(COUNT(*)) OVER (), 1) AS percentage,
    LISTAGG(DISTINCT TO_CHAR("appointment_time", 'HH24:MI'), ', ')
        WITHIN GROUP (ORDER BY TO_CHAR("appointment_time", 'HH24:MI')) AS time_slots
FROM "appointments"
WHERE "appointment_date" = CURRENT_DATE
GROUP BY "status"
ORDER BY appointment_count DESC
"""),
        Query("dashboard", "Patients currently in clinic", """
SELECT
    p."first_name" || ' ' || p."last_name" AS patient_name,
    p."phone",
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    a."appointment_time",
    a."status",
    a."reason_for_visit",
    TIMESTAMPDIFF(MINUTE,
        TIMESTAMP_NTZ_FROM_PARTS(a."appointment_date", a."appointment_time"),
        CURRENT_TIMESTAMP()::TIMESTAMP_NTZ) AS minutes_since_appointment
FROM "appointments" a
JOIN "patients" p ON a."patient_id" = p."patient_id"
JOIN "doctors" d ON a."doctor_id" = d."doctor_id"
WHERE a."appointment_date" = CURRENT_DATE
  AND a."status" IN ('checked_in', 'in_progress')
ORDER BY a."status" DESC, a."appointment_time"
""", "patients checked in or being seen right now"),
        Query("dashboard", "Doctor availability today", """
SELECT
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    d."department",
    d."accepting_new_patients",
    COUNT(CASE WHEN a."status" = 'completed' THEN 1 END) AS completed_today,
    COUNT(CASE WHEN a."status" = 'in_progress' THEN 1 END) AS currently_seeing,
    COUNT(CASE WHEN a."status" IN ('confirmed', 'checked_in') THEN 1 END) AS waiting,
    COUNT(a."appointment_id") AS total_appointments_today
FROM "doctors" d
LEFT JOIN "appointments" a ON d."doctor_id" = a."doctor_id" AND a."appointment_date" = CURRENT_DATE
GROUP BY d."doctor_id", d."first_name", d."last_name", d."specialization",
         d."department", d."accepting_new_patients"
ORDER BY total_appointments_today DESC
"""),
    ]


def patient_flow_queries() -> list[Query]:
    return [
        Query("patient_flow", "Average time to final status", """
SELECT
    "appointment_date",
    AVG(TIMESTAMPDIFF(MINUTE, "created_at", "updated_at")) AS avg_minutes_to_update,
    COUNT(*) AS appointments
FROM "appointments"
WHERE "status" IN ('completed', 'cancelled', 'no_show')
  AND "created_at" != "updated_at"
  AND "appointment_date" >= DATEADD(day, -30, CURRENT_DATE)
GROUP BY "appointment_date"
ORDER BY "appointment_date" DESC
LIMIT 30
"""),
        Query("patient_flow", "Completion rate, last 30 days", """
WITH appointment_metrics AS (
    SELECT
        "appointment_date",
        COUNT(*) AS total_appointments,
        SUM(CASE WHEN "status" = 'completed' THEN 1 ELSE 0 END) AS completed,
        SUM(CASE WHEN "status" = 'cancelled' THEN 1 ELSE 0 END) AS cancelled,
        SUM(CASE WHEN "status" = 'no_show' THEN 1 ELSE 0 END) AS no_shows
    FROM "appointments"
    WHERE "appointment_date" >= DATEADD(day, -30, CURRENT_DATE)
      AND "appointment_date" <= CURRENT_DATE
    GROUP BY "appointment_date"
)
SELECT
    "appointment_date",
    total_appointments,
    completed,
    cancelled,
    no_shows,
    ROUND(completed * 100.0 / NULLIF(total_appointments, 0), 1) AS completion_rate,
    ROUND(no_shows * 100.0 / NULLIF(total_appointments, 0), 1) AS no_show_rate
FROM appointment_metrics
ORDER BY "appointment_date" DESC
"""),
        Query("patient_flow", "Peak hours", """
SELECT
    TO_CHAR("appointment_time", 'HH24:00') AS hour_block,
    COUNT(*) AS total_appointments,
    AVG(CASE WHEN "status" = 'completed' THEN 1.0 ELSE 0.0 END) * 100 AS completion_rate,
    AVG(CASE WHEN "status" = 'no_show' THEN 1.0 ELSE 0.0 END) * 100 AS no_show_rate
FROM "appointments"
WHERE "appointment_date" >= DATEADD(day, -30, CURRENT_DATE)
GROUP BY hour_block
ORDER BY hour_block
"""),
        Query("patient_flow", "Busiest days of week", """
SELECT
    DAYNAME("appointment_date") AS day_of_week,
    DAYOFWEEK("appointment_date") AS day_num,
    COUNT(*) AS total_appointments,
    AVG(CASE WHEN "status" = 'completed' THEN 1.0 ELSE 0.0 END) * 100 AS completion_rate
FROM "appointments"
WHERE "appointment_date" >= DATEADD(day, -90, CURRENT_DATE)
GROUP BY day_of_week, day_num
ORDER BY day_num
"""),
    ]


def doctor_performance_queries() -> list[Query]:
    completed = COMPLETED.format(a="a.")
    return [
        Query("doctor_performance", "Doctor productivity, last 30 days", f"""
SELECT
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    COUNT(a."appointment_id") AS total_appointments,
    {completed} AS completed,
    SUM(CASE WHEN a."status" = 'cancelled' THEN 1 ELSE 0 END) AS cancelled,
    SUM(CASE WHEN a."status" = 'no_show' THEN 1 ELSE 0 END) AS no_shows,
    ROUND({completed} * 100.0 / NULLIF(COUNT(a."appointment_id"), 0), 1) AS completion_rate,
    COUNT(DISTINCT a."appointment_date") AS days_worked
FROM "doctors" d
LEFT JOIN "appointments" a ON d."doctor_id" = a."doctor_id"
    AND a."appointment_date" >= DATEADD(day, -30, CURRENT_DATE)
    AND a."appointment_date" <= CURRENT_DATE
GROUP BY d."doctor_id", d."first_name", d."last_name", d."specialization"
ORDER BY completed DESC
"""),
        Query("doctor_performance", "Average completed appointments per day", """
SELECT
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    COUNT(a."appointment_id") AS total_appointments,
    COUNT(DISTINCT a."appointment_date") AS days_with_appointments,
    ROUND(COUNT(a."appointment_id") * 1.0 / NULLIF(COUNT(DISTINCT a."appointment_date"), 0), 1)
        AS avg_appointments_per_day
FROM "doctors" d
LEFT JOIN "appointments" a ON d."doctor_id" = a."doctor_id"
    AND a."appointment_date" >= DATEADD(day, -30, CURRENT_DATE)
    AND a."status" = 'completed'
GROUP BY d."doctor_id", d."first_name", d."last_name", d."specialization"
HAVING COUNT(DISTINCT a."appointment_date") > 0
ORDER BY avg_appointments_per_day DESC
"""),
        Query("doctor_performance", "Follow-up and prescription rates", """
SELECT
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    COUNT(v."visit_id") AS total_visits,
    SUM(CASE WHEN v."follow_up_required" THEN 1 ELSE 0 END) AS followups_needed,
    ROUND(SUM(CASE WHEN v."follow_up_required" THEN 1 ELSE 0 END) * 100.0
          / NULLIF(COUNT(v."visit_id"), 0), 1) AS followup_rate,
    SUM(CASE WHEN v."prescription_given" THEN 1 ELSE 0 END) AS prescriptions_written,
    ROUND(SUM(CASE WHEN v."prescription_given" THEN 1 ELSE 0 END) * 100.0
          / NULLIF(COUNT(v."visit_id"), 0), 1) AS prescription_rate
FROM "doctors" d
JOIN "visits" v ON d."doctor_id" = v."doctor_id"
GROUP BY d."doctor_id", d."first_name", d."last_name", d."specialization"
ORDER BY total_visits DESC
"""),
    ]


def revenue_queries() -> list[Query]:
    return [
        Query("revenue", "Daily revenue trend", """
SELECT
    "visit_date",
    COUNT(*) AS visit_count,
    SUM("total_charge") AS daily_revenue,
    AVG("total_charge") AS avg_revenue_per_visit,
    MIN("total_charge") AS min_charge,
    MAX("total_charge") AS max_charge
FROM "visits"
WHERE "visit_date" >= DATEADD(day, -30, CURRENT_DATE)
GROUP BY "visit_date"
ORDER BY "visit_date" DESC
"""),
        Query("revenue", "Revenue by department", """
SELECT
    d."department",
    COUNT(v."visit_id") AS visit_count,
    SUM(v."total_charge") AS total_revenue,
    ROUND(AVG(v."total_charge"), 2) AS avg_revenue_per_visit,
    ROUND(SUM(v."total_charge") * 100.0 / SUM(SUM(v."total_charge")) OVER (), 1) AS revenue_percentage
FROM "doctors" d
JOIN "visits" v ON d."doctor_id" = v."doctor_id"
GROUP BY d."department"
ORDER BY total_revenue DESC
"""),
        Query("revenue", "Revenue by doctor (top 10)", """
SELECT
    d."first_name" || ' ' || d."last_name" AS doctor_name,
    d."specialization",
    d."department",
    COUNT(v."visit_id") AS total_visits,
    SUM(v."total_charge") AS total_revenue,
    ROUND(AVG(v."total_charge"), 2) AS avg_charge_per_visit
FROM "doctors" d
JOIN "visits" v ON d."doctor_id" = v."doctor_id"
GROUP BY d."doctor_id", d."first_name", d."last_name", d."specialization", d."department"
ORDER BY total_revenue DESC
LIMIT 10
"""),
        Query("revenue", "Monthly revenue summary", """
SELECT
    TO_CHAR("visit_date", 'YYYY-MM') AS month,
    COUNT(*) AS total_visits,
    SUM("total_charge") AS monthly_revenue,
    ROUND(AVG("total_charge"), 2) AS avg_revenue_per_visit,
    COUNT(DISTINCT "patient_id") AS unique_patients
FROM "visits"
GROUP BY month
ORDER BY month DESC
"""),
    ]


def clinical_queries() -> list[Query]:
    return [
        Query("clinical", "Most common diagnoses", """
SELECT
    "diagnosis",
    COUNT(*) AS frequency,
    ROUND(COUNT(*) * 100.0 / SUM(COUNT(*)) OVER (), 1) AS percentage,
    ROUND(AVG("total_charge"), 2) AS avg_cost,
    SUM(CASE WHEN "follow_up_required" THEN 1 ELSE 0 END) AS followups_needed
FROM "visits"
GROUP BY "diagnosis"
ORDER BY frequency DESC
LIMIT 15
"""),
        Query("clinical", "Most common reasons for visit", """
SELECT
    "reason_for_visit",
    COUNT(*) AS frequency,
    ROUND(COUNT(*) * 100.0 / SUM(COUNT(*)) OVER (), 1) AS percentage_of_appointments,
    SUM(CASE WHEN "status" = 'completed' THEN 1 ELSE 0 END) AS completed,
    SUM(CASE WHEN "status" = 'no_show' THEN 1 ELSE 0 END) AS no_shows
FROM "appointments"
WHERE "appointment_date" >= DATEADD(day, -60, CURRENT_DATE)
GROUP BY "reason_for_visit"
ORDER BY frequency DESC
LIMIT 15
"""),
        Query("clinical", "Appointment types by specialization", """
SELECT
    d."specialization",
    a."appointment_type",
    COUNT(*) AS count,
    ROUND(COUNT(*) * 100.0 / SUM(COUNT(*)) OVER (PARTITION BY d."specialization"), 1) AS percentage
FROM "appointments" a
JOIN "doctors" d ON a."doctor_id" = d."doctor_id"
WHERE a."appointment_date" >= DATEADD(day, -60, CURRENT_DATE)
GROUP BY d."specialization", a."appointment_type"
ORDER BY d."specialization", count DESC
"""),
    ]


def patient_queries() -> list[Query]:
    age_group = AGE_GROUP.format(col='p."date_of_birth"')
    return [
        Query("patients", "Frequent patients (3+ visits)", """
SELECT
    p."patient_id",
    p."first_name" || ' ' || p."last_name" AS patient_name,
    p."insurance_provider",
    COUNT(v."visit_id") AS total_visits,
    MIN(v."visit_date") AS first_visit,
    MAX(v."visit_date") AS most_recent_visit,
    SUM(v."total_charge") AS total_spent,
    ROUND(AVG(v."total_charge"), 2) AS avg_per_visit
FROM "patients" p
JOIN "visits" v ON p."patient_id" = v."patient_id"
GROUP BY p."patient_id", p."first_name", p."last_name", p."insurance_provider"
HAVING COUNT(v."visit_id") >= 3
ORDER BY total_visits DESC, total_spent DESC
"""),
        Query("patients", "New vs returning patients, last 30 days", """
WITH patient_visits AS (
    SELECT
        p."patient_id",
        MIN(v."visit_date") AS first_visit_ever,
        MAX(v."visit_date") AS last_visit
    FROM "patients" p
    LEFT JOIN "visits" v ON p."patient_id" = v."patient_id"
    GROUP BY p."patient_id"
)
SELECT
    CASE
        WHEN pv.first_visit_ever >= DATEADD(day, -30, CURRENT_DATE) THEN 'New Patient'
        ELSE 'Returning Patient'
    END AS patient_type,
    COUNT(DISTINCT v."patient_id") AS patient_count,
    COUNT(v."visit_id") AS total_visits,
    SUM(v."total_charge") AS total_revenue
FROM "visits" v
JOIN patient_visits pv ON v."patient_id" = pv."patient_id"
WHERE v."visit_date" >= DATEADD(day, -30, CURRENT_DATE)
GROUP BY patient_type
"""),
        Query("patients", "Demographics by age group", f"""
SELECT
    {age_group} AS age_group,
    COUNT(DISTINCT p."patient_id") AS patient_count,
    COUNT(v."visit_id") AS total_visits,
    ROUND(AVG(v."total_charge"), 2) AS avg_visit_cost
FROM "patients" p
LEFT JOIN "visits" v ON p."patient_id" = v."patient_id"
GROUP BY age_group
ORDER BY age_group
"""),
    ]


def cdc_audit_queries(profile: MetadataProfile) -> list[Query]:
    """Change tracking queries, phrased in the profile's metadata columns."""
    change_type = profile.change_type_expr()
    change_time = profile.change_time_expr()
    latency = profile.latency_seconds()
    expectation = f"metadata profile {profile.name}: {', '.join(profile.columns)}"

    return [
        Query("cdc_audit", "Recent changes to appointments", f"""
SELECT
    "appointment_id",
    "patient_id",
    "doctor_id",
    "appointment_date",
    "appointment_time",
    "status",
    "reason_for_visit",
    {profile.select_columns()},
    {change_type} AS change_type,
    {latency} AS latency_seconds
FROM "appointments"
WHERE {change_time} >= DATEADD(hour, -24, CURRENT_TIMESTAMP())
ORDER BY {change_time} DESC
LIMIT 50
""", expectation),
        Query("cdc_audit", "Change volume by type, last 24 hours", f"""
SELECT table_name, change_type, COUNT(*) AS change_count,
       MIN(change_time) AS first_change, MAX(change_time) AS last_change
FROM (
    SELECT 'APPOINTMENTS' AS table_name, {change_type} AS change_type, {change_time} AS change_time
    FROM "appointments"
    UNION ALL
    SELECT 'VISITS', {change_type}, {change_time}
    FROM "visits"
) changes
WHERE change_time >= DATEADD(hour, -24, CURRENT_TIMESTAMP())
GROUP BY table_name, change_type
ORDER BY table_name, change_type
""", "INSERT and UPDATE rows for appointments, INSERT rows for visits"),
        Query("cdc_audit", "Replication latency per minute", f"""
SELECT
    DATE_TRUNC('MINUTE', {change_time}) AS minute_block,
    COUNT(*) AS changes,
    AVG({latency}) AS avg_latency_seconds,
    MAX({latency}) AS max_latency_seconds
FROM "appointments"
WHERE {change_time} >= DATEADD(hour, -4, CURRENT_TIMESTAMP())
GROUP BY minute_block
ORDER BY minute_block DESC
""", expectation),
    ]


def kpi_queries() -> list[Query]:
    completed = COMPLETED.format(a="a.")
    return [
        Query("kpis", "Executive summary, last 30 days", f"""
SELECT
    COUNT(DISTINCT a."patient_id") AS unique_patients_served,
    COUNT(DISTINCT a."appointment_id") AS total_appointments,
    {completed} AS completed_appointments,
    ROUND({completed} * 100.0 / NULLIF(COUNT(a."appointment_id"), 0), 1) AS completion_rate,
    SUM(CASE WHEN a."status" = 'no_show' THEN 1 ELSE 0 END) AS no_shows,
    ROUND(SUM(CASE WHEN a."status" = 'no_show' THEN 1 ELSE 0 END) * 100.0
          / NULLIF(COUNT(a."appointment_id"), 0), 1) AS no_show_rate,
    COUNT(DISTINCT v."visit_id") AS total_visits,
    SUM(v."total_charge") AS total_revenue,
    ROUND(AVG(v."total_charge"), 2) AS avg_revenue_per_visit,
    COUNT(DISTINCT v."doctor_id") AS active_doctors
FROM "appointments" a
LEFT JOIN "visits" v ON a."appointment_id" = v."appointment_id"
WHERE a."appointment_date" >= DATEADD(day, -30, CURRENT_DATE)
  AND a."appointment_date" <= CURRENT_DATE
"""),
    ]


def analytics_queries(profile: MetadataProfile | None = None) -> list[Query]:
    profile = profile or get_profile()
    return (
        dashboard_queries()
        + patient_flow_queries()
        + doctor_performance_queries()
        + revenue_queries()
        + clinical_queries()
        + patient_queries()
        + cdc_audit_queries(profile)
        + kpi_queries()
    )


def queries_for(section: str | None = None, profile: MetadataProfile | None = None) -> list[Query]:
    queries = analytics_queries(profile)
    if section is None:
        return queries
    if section not in SECTIONS:
        raise ValueError(f"unknown section {section!r}; expected one of {', '.join(SECTIONS)}")
    return [q for q in queries if q.section == section]
