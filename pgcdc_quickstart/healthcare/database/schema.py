"""
Healthcare source schema.
Patients, doctors, appointments (the main CDC table) and visits, plus the
replication grant and publication the CDC connector reads from.
"""

import logging

from psycopg2 import sql

from pgcdc_quickstart.state_machine import AppointmentStatus, AppointmentType
from .connection import SourceDatabase

logger = logging.getLogger(__name__)

TABLES = ("patients", "doctors", "appointments", "visits")

_STATUSES = ", ".join(f"'{s.value}'" for s in AppointmentStatus)
_TYPES = ", ".join(f"'{t.value}'" for t in AppointmentType)

# {pk} is the dialect's auto-increment primary key column type
SCHEMA = f"""
-- =============================================================================
-- 1. PATIENTS - Identity, demographics, contact and insurance
-- =============================================================================
CREATE TABLE patients (
    patient_id {{pk}},
    first_name VARCHAR(50) NOT NULL,
    last_name VARCHAR(50) NOT NULL,
    date_of_birth DATE NOT NULL,
    phone VARCHAR(20),
    email VARCHAR(100),
    address VARCHAR(200),
    city VARCHAR(50),
    state VARCHAR(2),
    insurance_provider VARCHAR(100),
    registration_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);


-- =============================================================================
-- 2. DOCTORS - Specialization, department and availability
-- =============================================================================
CREATE TABLE doctors (
    doctor_id {{pk}},
    first_name VARCHAR(50) NOT NULL,
    last_name VARCHAR(50) NOT NULL,
    specialization VARCHAR(50) NOT NULL,
    department VARCHAR(50),
    phone VARCHAR(20),
    email VARCHAR(100),
    years_of_experience INT CHECK (years_of_experience >= 0),
    accepting_new_patients BOOLEAN DEFAULT TRUE,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);


-- =============================================================================
-- 3. APPOINTMENTS - Main CDC demo table
-- =============================================================================
CREATE TABLE appointments (
    appointment_id {{pk}},
    patient_id INT NOT NULL,
    doctor_id INT NOT NULL,
    appointment_date DATE NOT NULL,
    appointment_time TIME NOT NULL,
    status VARCHAR(20) NOT NULL CHECK (status IN ({_STATUSES})),
    reason_for_visit VARCHAR(200),
    appointment_type VARCHAR(20) CHECK (appointment_type IN ({_TYPES})),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (patient_id) REFERENCES patients(patient_id),
    FOREIGN KEY (doctor_id) REFERENCES doctors(doctor_id)
);


-- =============================================================================
-- 4. VISITS - One record per completed appointment
-- =============================================================================
CREATE TABLE visits (
    visit_id {{pk}},
    appointment_id INT NOT NULL,
    patient_id INT NOT NULL,
    doctor_id INT NOT NULL,
    visit_date DATE NOT NULL,
    visit_start_time TIMESTAMP NOT NULL,
    visit_end_time TIMESTAMP,
    diagnosis VARCHAR(200),
    treatment_notes TEXT,
    follow_up_required BOOLEAN DEFAULT FALSE,
    prescription_given BOOLEAN DEFAULT FALSE,
    total_charge DECIMAL(10,2) CHECK (total_charge >= 0),
    FOREIGN KEY (appointment_id) REFERENCES appointments(appointment_id),
    FOREIGN KEY (patient_id) REFERENCES patients(patient_id),
    FOREIGN KEY (doctor_id) REFERENCES doctors(doctor_id)
);

CREATE INDEX idx_appointments_patient ON appointments(patient_id);
CREATE INDEX idx_appointments_doctor ON appointments(doctor_id);
CREATE INDEX idx_appointments_date ON appointments(appointment_date);
CREATE INDEX idx_appointments_status ON appointments(status);
CREATE INDEX idx_visits_patient ON visits(patient_id);
CREATE INDEX idx_visits_doctor ON visits(doctor_id);
CREATE INDEX idx_visits_date ON visits(visit_date);
CREATE UNIQUE INDEX idx_visits_appointment ON visits(appointment_id);
"""

PRIMARY_KEYS = {
    "postgresql": "SERIAL PRIMARY KEY",
    "sqlite": "INTEGER PRIMARY KEY AUTOINCREMENT",
}


def render_schema(dialect: str) -> str:
    """Render the table DDL for a dialect."""
    return SCHEMA.replace("{pk}", PRIMARY_KEYS[dialect])


def schema_statements(dialect: str) -> list[str]:
    """Split the rendered DDL into individual statements."""
    statements = []
    for chunk in render_schema(dialect).split(";"):
        lines = [line for line in chunk.splitlines() if not line.strip().startswith("--")]
        statement = "\n".join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


def init_schema(db: SourceDatabase, replication_user: str | None = None) -> None:
    """Recreate the healthcare schema from scratch.

    On PostgreSQL this also grants REPLICATION to the CDC user and resets the
    schema; on SQLite the four tables are dropped and recreated.
    """
    conn = db.connect()
    try:
        if db.is_postgres:
            if replication_user:
                logger.info("Granting REPLICATION to %s", replication_user)
                conn.execute(
                    sql.SQL("ALTER USER {} WITH REPLICATION").format(sql.Identifier(replication_user))
                )
            schema = sql.Identifier(db.schema)
            conn.execute(sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(schema))
            conn.execute(sql.SQL("CREATE SCHEMA {}").format(schema))
            conn.execute(sql.SQL("SET search_path TO {}").format(schema))
        else:
            for table in reversed(TABLES):
                conn.execute(f"DROP TABLE IF EXISTS {table}")

        for statement in schema_statements(db.dialect):
            conn.execute(statement)
        conn.commit()
        logger.info("Created tables: %s", ", ".join(TABLES))
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def create_publication(db: SourceDatabase, name: str = "healthcare_cdc_publication") -> bool:
    """Create the logical replication publication covering all tables.

    Returns False on SQLite, which has no logical replication.
    """
    if not db.is_postgres:
        logger.warning("Skipping publication %s: %s has no logical replication", name, db.dialect)
        return False

    publication = sql.Identifier(name)
    with db.connect() as conn:
        conn.execute(sql.SQL("DROP PUBLICATION IF EXISTS {}").format(publication))
        conn.execute(sql.SQL("CREATE PUBLICATION {} FOR ALL TABLES").format(publication))
    logger.info("Created publication %s for all tables", name)
    return True
