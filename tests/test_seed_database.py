"""Tests for the synthetic snapshot generator."""

from datetime import time, timedelta
from decimal import Decimal

import pytest

from pgcdc_quickstart.healthcare.database import (
    AppointmentRepository,
    DoctorRepository,
    PatientRepository,
    SourceDatabase,
    init_schema,
)
from pgcdc_quickstart.healthcare.scripts.seed_database import (
    DIAGNOSES,
    INSURANCE_PROVIDERS,
    TREATMENT_NOTES,
    UPCOMING_APPOINTMENTS,
    init_healthcare,
    seed_database,
)
from pgcdc_quickstart.state_machine import AppointmentStatus

from conftest import SEED, SEEDED_AT, TODAY


@pytest.fixture
def patients(seeded_db):
    repo = PatientRepository(seeded_db)
    return [repo.get_by_id(i) for i in range(1, 101)]


class TestVolumes:
    def test_summary(self, db):
        summary = seed_database(db, seed=SEED, now=SEEDED_AT)
        assert summary.patients == 100
        assert summary.doctors == 10
        assert summary.past_appointments == 150
        assert summary.upcoming_appointments == 20
        assert summary.appointments == 170
        assert summary.visits == 100

    def test_status_distribution(self, seeded_db):
        assert AppointmentRepository(seeded_db).status_counts() == {
            "completed": 100,
            "cancelled": 40,
            "scheduled": 15,
            "no_show": 10,
            "confirmed": 5,
        }

    def test_init_healthcare_without_publication(self, db_url):
        db = SourceDatabase(db_url)
        summary = init_healthcare(db, seed=SEED, now=SEEDED_AT)
        assert summary.appointments == 170
        assert summary.publication is False


class TestPatients:
    def test_phone_numbers_are_sequential(self, patients):
        assert [p.phone for p in patients] == [f"555-{1000 + i}" for i in range(1, 101)]

    def test_pediatric_patients_use_parent_email(self, patients):
        for p in patients[40:50]:
            assert p.email.endswith(".parent@email.com")
            assert (TODAY - p.date_of_birth).days < 18 * 366

    def test_seniors_are_on_medicare(self, patients):
        for p in patients[50:60]:
            assert p.insurance_provider == "Medicare"
            assert (TODAY - p.date_of_birth).days > 65 * 365

    def test_adults(self, patients):
        for p in patients[:40] + patients[60:]:
            assert not p.email.endswith(".parent@email.com")
            assert p.insurance_provider in INSURANCE_PROVIDERS
            assert (TODAY - p.date_of_birth).days >= 25 * 365

    def test_registered_in_the_past(self, patients):
        assert all(p.registration_date.date() < TODAY for p in patients)


class TestAppointments:
    def test_past_appointments_within_ninety_days(self, seeded_db):
        repo = AppointmentRepository(seeded_db)
        for status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW):
            for a in repo.list_by_status(status):
                assert TODAY - timedelta(days=90) <= a.appointment_date < TODAY
                assert a.created_at < a.starts_at
                assert a.updated_at >= a.created_at

    def test_quarter_hour_slots(self, seeded_db):
        repo = AppointmentRepository(seeded_db)
        for a in repo.list_by_status(AppointmentStatus.COMPLETED):
            assert a.appointment_time.minute in (0, 15, 30, 45)
            assert time(8, 0) <= a.appointment_time < time(17, 0)

    def test_upcoming_appointments(self, seeded_db):
        repo = AppointmentRepository(seeded_db)
        upcoming = repo.list_by_status(AppointmentStatus.SCHEDULED) + repo.list_by_status(AppointmentStatus.CONFIRMED)
        assert len(upcoming) == len(UPCOMING_APPOINTMENTS)
        for a in upcoming:
            assert TODAY < a.appointment_date <= TODAY + timedelta(days=30)
            assert a.created_at <= SEEDED_AT

    def test_nothing_booked_for_today(self, seeded_db):
        rows = seeded_db.fetch_all("SELECT COUNT(*) AS n FROM appointments WHERE appointment_date = ?", (TODAY,))
        assert rows[0]["n"] == 0

    def test_doctor_timestamps(self, seeded_db):
        doctors = DoctorRepository(seeded_db).list_all()
        assert len(doctors) == 10
        assert all(d.updated_at == SEEDED_AT for d in doctors)
        assert all(d.accepting_new_patients for d in doctors)


class TestVisits:
    def test_one_visit_per_completed_appointment(self, seeded_db):
        repo = AppointmentRepository(seeded_db)
        visits = repo.list_visits()
        assert len({v.appointment_id for v in visits}) == len(visits) == 100
        for v in visits:
            assert repo.get_by_id(v.appointment_id).status == AppointmentStatus.COMPLETED

    def test_visit_contents(self, seeded_db):
        repo = AppointmentRepository(seeded_db)
        for v in repo.list_visits():
            appointment = repo.get_by_id(v.appointment_id)
            assert v.visit_date == appointment.appointment_date
            assert v.visit_start_time == appointment.starts_at
            assert v.visit_end_time - v.visit_start_time == timedelta(minutes=30)
            assert v.diagnosis in DIAGNOSES
            assert v.treatment_notes in TREATMENT_NOTES
            assert Decimal("75.00") <= v.total_charge <= Decimal("350.00")


class TestDeterminism:
    def _names(self, tmp_path, name, seed):
        db = SourceDatabase(f"sqlite:///{tmp_path / name}")
        init_schema(db)
        seed_database(db, seed=seed, now=SEEDED_AT)
        return db.fetch_all(
            "SELECT first_name, last_name, city, date_of_birth FROM patients ORDER BY patient_id"
        ), db.fetch_all(
            "SELECT patient_id, doctor_id, appointment_date, appointment_time, status "
            "FROM appointments ORDER BY appointment_id"
        )

    def test_same_seed_same_rows(self, tmp_path):
        assert self._names(tmp_path, "a.db", 7) == self._names(tmp_path, "b.db", 7)

    def test_different_seed_different_rows(self, tmp_path):
        assert self._names(tmp_path, "a.db", 7) != self._names(tmp_path, "b.db", 8)
