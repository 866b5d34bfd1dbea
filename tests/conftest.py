"""Shared pytest fixtures."""

from datetime import date, datetime, time, timedelta

import pytest

from pgcdc_quickstart.healthcare.database import (
    AppointmentRepository,
    DoctorRepository,
    PatientRepository,
    SourceDatabase,
    init_schema,
)
from pgcdc_quickstart.healthcare.database.doctor_repository import Doctor
from pgcdc_quickstart.healthcare.database.patient_repository import Patient
from pgcdc_quickstart.healthcare.scripts.seed_database import seed_database

TODAY = date(2026, 10, 16)
SEEDED_AT = datetime.combine(TODAY, time(7, 0))
SEED = 42


class FakeClock:
    """Callable clock that moves one minute forward on every reading."""

    def __init__(self, start: datetime, step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current += self.step
        return now


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer's .env or shell settings out of the tests."""
    for var in (
        "SOURCE_DATABASE_URL", "SOURCE_SCHEMA", "PGUSER", "PUBLICATION_NAME",
        "SNOWFLAKE_ACCOUNT", "SNOWFLAKE_USER", "SNOWFLAKE_PASSWORD", "SNOWFLAKE_AUTHENTICATOR",
        "SNOWFLAKE_ROLE", "SNOWFLAKE_DATABASE", "SNOWFLAKE_WAREHOUSE", "SNOWFLAKE_SCHEMA",
        "POSTGRES_ENDPOINT", "CDC_METADATA_PROFILE", "SEED", "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'healthcare.db'}"


@pytest.fixture
def db(db_url):
    """An empty healthcare schema in a throwaway SQLite file."""
    database = SourceDatabase(db_url)
    init_schema(database)
    return database


@pytest.fixture
def seeded_db(db):
    """The full synthetic snapshot, seeded at 07:00 on TODAY."""
    seed_database(db, seed=SEED, now=SEEDED_AT)
    return db


@pytest.fixture
def clinic(db):
    """Two doctors and two patients, for repository tests."""
    doctors = DoctorRepository(db).create_many([
        Doctor("Sarah", "Johnson", "General Practice", "Primary Care", years_of_experience=15,
               updated_at=SEEDED_AT),
        Doctor("David", "Patel", "Cardiology", "Cardiovascular", years_of_experience=20,
               updated_at=SEEDED_AT),
    ])
    patients = PatientRepository(db).create_many([
        Patient("John", "Smith", date(1980, 3, 15), phone="555-1001", registration_date=SEEDED_AT),
        Patient("Mary", "Johnson", date(1975, 7, 22), phone="555-1002", registration_date=SEEDED_AT),
    ])
    return {"db": db, "doctors": doctors, "patients": patients}


@pytest.fixture
def appointments(db):
    return AppointmentRepository(db)


@pytest.fixture
def clock():
    return FakeClock(datetime.combine(TODAY, time(8, 0)))
