"""Seed the source database with the synthetic clinic snapshot.

100 patients, 10 doctors, 170 appointments (150 past + 20 upcoming) and a
visit for every completed past appointment. The same seed and clock always
produce the same rows.
"""

import logging
import random
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from faker import Faker

from pgcdc_quickstart.config import get_settings
from pgcdc_quickstart.state_machine import AppointmentStatus, AppointmentType
from pgcdc_quickstart.healthcare.database import (
    AppointmentRepository,
    DoctorRepository,
    PatientRepository,
    SourceDatabase,
    create_publication,
    init_schema,
)
from pgcdc_quickstart.healthcare.database.appointment_repository import Appointment, Visit
from pgcdc_quickstart.healthcare.database.doctor_repository import Doctor
from pgcdc_quickstart.healthcare.database.patient_repository import Patient

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

MOCK_DOCTORS = [
    Doctor("Sarah", "Johnson", "General Practice", "Primary Care", "555-0101", "sarah.johnson@democlinic.example", 15),
    Doctor("Michael", "Chen", "General Practice", "Primary Care", "555-0102", "michael.chen@democlinic.example", 8),
    Doctor("Emily", "Rodriguez", "General Practice", "Primary Care", "555-0103", "emily.rodriguez@democlinic.example", 12),
    Doctor("David", "Patel", "Cardiology", "Cardiovascular", "555-0104", "david.patel@democlinic.example", 20),
    Doctor("Jennifer", "Williams", "Cardiology", "Cardiovascular", "555-0105", "jennifer.williams@democlinic.example", 18),
    Doctor("Robert", "Brown", "Pediatrics", "Children Services", "555-0106", "robert.brown@democlinic.example", 10),
    Doctor("Lisa", "Martinez", "Pediatrics", "Children Services", "555-0107", "lisa.martinez@democlinic.example", 7),
    Doctor("James", "Taylor", "Orthopedics", "Surgical Services", "555-0108", "james.taylor@democlinic.example", 25),
    Doctor("Amanda", "Anderson", "Dermatology", "Specialty Care", "555-0109", "amanda.anderson@democlinic.example", 9),
    Doctor("Christopher", "Thomas", "Internal Medicine", "Primary Care", "555-0110", "christopher.thomas@democlinic.example", 14),
]

# (label, how many, youngest age, oldest age), in patient_id order
PATIENT_COHORTS = [
    ("adult", 40, 25, 60),
    ("pediatric", 10, 8, 16),
    ("senior", 10, 73, 83),
    ("adult", 40, 25, 57),
]

CITY_POOL = [
    ("Springfield", "IL"), ("Portland", "OR"), ("Austin", "TX"), ("Denver", "CO"),
    ("Seattle", "WA"), ("Boston", "MA"), ("Phoenix", "AZ"), ("Miami", "FL"),
    ("Chicago", "IL"), ("Atlanta", "GA"), ("Dallas", "TX"), ("San Diego", "CA"),
    ("Philadelphia", "PA"), ("Houston", "TX"), ("San Antonio", "TX"), ("San Jose", "CA"),
    ("Jacksonville", "FL"), ("Columbus", "OH"), ("Charlotte", "NC"), ("Nashville", "TN"),
]

INSURANCE_PROVIDERS = [
    "HealthGuard Insurance", "WellCare Plus", "Premier Health Network",
    "Wellness First Insurance", "CareBridge Health", "LifeSecure Health",
    "Guardian Health Plans", "Medicare", "Medicaid",
]

REASONS_FOR_VISIT = [
    "Annual physical examination", "Flu symptoms and fever", "Hypertension follow-up",
    "Diabetes management", "Chest pain evaluation", "Sports injury - knee pain",
    "Skin rash examination", "Routine checkup", "Migraine headaches",
    "Back pain assessment", "Respiratory infection", "Allergic reaction",
    "Cardiac assessment", "Pediatric wellness check", "General consultation",
]

DIAGNOSES = [
    "Hypertension, controlled", "Type 2 Diabetes Mellitus", "Acute upper respiratory infection",
    "Acute bronchitis", "Essential hypertension", "Acute pharyngitis", "Allergic rhinitis",
    "Contact dermatitis", "Sprain of knee ligaments", "Migraine without aura", "Acute sinusitis",
    "Gastroesophageal reflux disease", "Osteoarthritis of knee", "Anxiety disorder",
    "Hyperlipidemia", "Vitamin D deficiency", "Chronic lower back pain", "Atrial fibrillation",
    "Asthma, mild persistent", "Eczema", "General wellness - no acute findings",
]

TREATMENT_NOTES = [
    "Patient counseled on lifestyle modifications. Continue current medication regimen.",
    "Prescribed antibiotics for infection. Rest and fluids recommended.",
    "Blood pressure within normal range. Continue monitoring at home.",
    "Ordered lab work including CBC and metabolic panel. Follow up in 2 weeks.",
    "Referred to specialist for further evaluation.",
    "Started new medication. Patient educated on side effects and dosing.",
    "Physical therapy recommended. Provided exercises and home care instructions.",
    "All vital signs stable. Routine screening tests ordered.",
    "Discussed treatment options with patient. Shared decision making approach.",
    "Patient doing well. Continue current treatment plan. No changes needed.",
]

# Past appointment outcomes: 100 completed, 40 cancelled, 10 no-shows
PAST_OUTCOMES = {
    AppointmentStatus.COMPLETED: 100,
    AppointmentStatus.CANCELLED: 40,
    AppointmentStatus.NO_SHOW: 10,
}
PAST_WINDOW_DAYS = 90
MAX_SNAPSHOT_VISITS = 100

APPOINTMENT_TYPE_WEIGHTS = {
    AppointmentType.ROUTINE: 60,
    AppointmentType.FOLLOW_UP: 34,
    AppointmentType.URGENT: 6,
}

# (patient, doctor, days ahead, time, status, reason, type, created days ago, updated days ago)
UPCOMING_APPOINTMENTS = [
    (1, 1, 1, "09:00", "scheduled", "Annual physical examination", "routine", 2, 2),
    (15, 2, 1, "10:00", "confirmed", "Diabetes management checkup", "follow_up", 3, 1),
    (23, 4, 2, "09:30", "confirmed", "Cardiac stress test", "routine", 5, 2),
    (42, 6, 2, "11:00", "scheduled", "Pediatric wellness check", "routine", 1, 1),
    (56, 3, 3, "14:00", "confirmed", "Hypertension follow-up", "follow_up", 4, 1),
    (67, 8, 3, "15:30", "scheduled", "Knee pain evaluation", "urgent", 1, 1),
    (78, 9, 5, "10:30", "scheduled", "Skin rash treatment", "routine", 2, 2),
    (89, 10, 5, "13:00", "confirmed", "Respiratory infection", "urgent", 1, 0),
    (12, 1, 7, "08:30", "scheduled", "Routine checkup", "routine", 3, 3),
    (34, 5, 7, "14:30", "scheduled", "Cardiac consultation", "routine", 4, 4),
    (45, 7, 10, "09:00", "confirmed", "Child vaccination", "routine", 6, 2),
    (58, 2, 10, "11:30", "scheduled", "Blood pressure monitoring", "follow_up", 2, 2),
    (69, 3, 14, "10:00", "scheduled", "Annual wellness visit", "annual", 7, 7),
    (81, 4, 14, "15:00", "scheduled", "Heart health screening", "routine", 5, 5),
    (92, 6, 21, "09:30", "scheduled", "Growth and development check", "routine", 3, 3),
    (25, 8, 21, "13:30", "scheduled", "Sports physical", "routine", 4, 4),
    (37, 9, 28, "11:00", "scheduled", "Acne treatment follow-up", "follow_up", 2, 2),
    (48, 10, 28, "14:00", "scheduled", "Chronic disease management", "follow_up", 5, 5),
    (59, 1, 30, "08:00", "scheduled", "Pre-operative consultation", "routine", 6, 6),
    (71, 2, 30, "16:00", "scheduled", "Medication review", "follow_up", 3, 3),
]


@dataclass
class SeedSummary:
    patients: int
    doctors: int
    past_appointments: int
    upcoming_appointments: int
    visits: int
    publication: bool = False

    @property
    def appointments(self) -> int:
        return self.past_appointments + self.upcoming_appointments


def generate_patients(rng: random.Random, fake: Faker, today: date) -> list[Patient]:
    """Generate the 100 synthetic patients, cohort by cohort."""
    patients = []
    for cohort, size, youngest, oldest in PATIENT_COHORTS:
        for _ in range(size):
            number = len(patients) + 1
            first_name = fake.first_name()
            last_name = fake.last_name()
            city, state = rng.choice(CITY_POOL)
            handle = f"{first_name}.{last_name}".lower().replace(" ", "")

            if cohort == "pediatric":
                email = f"{handle}.parent@email.com"
            else:
                email = f"{handle}@email.com"
            if cohort == "senior":
                insurance = "Medicare"
            else:
                insurance = rng.choice(INSURANCE_PROVIDERS)

            age_days = rng.randint(youngest * 365, oldest * 365 + 364)
            registered = today - timedelta(days=rng.randint(30, 1000))

            patients.append(Patient(
                first_name=first_name,
                last_name=last_name,
                date_of_birth=today - timedelta(days=age_days),
                phone=f"555-{1000 + number}",
                email=email,
                address=fake.street_address(),
                city=city,
                state=state,
                insurance_provider=insurance,
                registration_date=datetime.combine(registered, _clinic_time(rng)),
            ))
    return patients


def generate_past_appointments(
    rng: random.Random,
    patient_ids: list[int],
    doctor_ids: list[int],
    today: date,
) -> list[Appointment]:
    """Generate 150 historical appointments over the last 90 days."""
    outcomes = [status for status, n in PAST_OUTCOMES.items() for _ in range(n)]
    rng.shuffle(outcomes)
    types = list(APPOINTMENT_TYPE_WEIGHTS)
    weights = list(APPOINTMENT_TYPE_WEIGHTS.values())

    appointments = []
    for status in outcomes:
        appointment_date = today - timedelta(days=rng.randint(1, PAST_WINDOW_DAYS))
        appointment_time = _clinic_time(rng)
        starts_at = datetime.combine(appointment_date, appointment_time)
        created_at = datetime.combine(
            appointment_date - timedelta(days=rng.randint(1, 30)), _clinic_time(rng)
        )

        if status == AppointmentStatus.COMPLETED:
            updated_at = starts_at + timedelta(minutes=rng.randint(30, 60))
        elif status == AppointmentStatus.NO_SHOW:
            updated_at = starts_at + timedelta(minutes=20)
        else:
            updated_at = max(created_at, starts_at - timedelta(hours=rng.randint(2, 48)))

        appointments.append(Appointment(
            patient_id=rng.choice(patient_ids),
            doctor_id=rng.choice(doctor_ids),
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            status=status,
            reason_for_visit=rng.choice(REASONS_FOR_VISIT),
            appointment_type=rng.choices(types, weights=weights)[0].value,
            created_at=created_at,
            updated_at=updated_at,
        ))
    return appointments


def generate_upcoming_appointments(
    patient_ids: list[int],
    doctor_ids: list[int],
    now: datetime,
) -> list[Appointment]:
    """The 20 scheduled/confirmed appointments over the next 30 days."""
    appointments = []
    for (patient, doctor, days_ahead, at, status, reason, kind,
         created_ago, updated_ago) in UPCOMING_APPOINTMENTS:
        appointments.append(Appointment(
            patient_id=patient_ids[patient - 1],
            doctor_id=doctor_ids[doctor - 1],
            appointment_date=now.date() + timedelta(days=days_ahead),
            appointment_time=time.fromisoformat(at),
            status=AppointmentStatus(status),
            reason_for_visit=reason,
            appointment_type=kind,
            created_at=now - timedelta(days=created_ago),
            updated_at=now - timedelta(days=updated_ago),
        ))
    return appointments


def generate_visit(rng: random.Random, appointment: Appointment) -> Visit:
    """Build the visit record of a completed snapshot appointment."""
    starts_at = appointment.starts_at
    return Visit(
        appointment_id=appointment.appointment_id,
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        visit_date=appointment.appointment_date,
        visit_start_time=starts_at,
        visit_end_time=starts_at + timedelta(minutes=30),
        diagnosis=rng.choice(DIAGNOSES),
        treatment_notes=rng.choice(TREATMENT_NOTES),
        follow_up_required=rng.random() < 0.30,
        prescription_given=rng.random() < 0.40,
        total_charge=Decimal(75 + rng.random() * 275).quantize(CENTS),
    )


def seed_database(
    db: SourceDatabase,
    today: date | None = None,
    seed: int | None = None,
    now: datetime | None = None,
) -> SeedSummary:
    """Load the synthetic snapshot into an empty healthcare schema."""
    seed = get_settings().seed if seed is None else seed
    now = now or datetime.now().replace(microsecond=0)
    if today is not None:
        now = datetime.combine(today, now.time())
    today = now.date()

    rng = random.Random(seed)
    fake = Faker("en_US")
    fake.seed_instance(seed)

    logger.info("Creating %d doctors...", len(MOCK_DOCTORS))
    doctors = DoctorRepository(db).create_many(
        [replace(d, updated_at=now) for d in MOCK_DOCTORS]
    )
    doctor_ids = [d.doctor_id for d in doctors]

    logger.info("Creating patients...")
    patients = PatientRepository(db).create_many(generate_patients(rng, fake, today))
    patient_ids = [p.patient_id for p in patients]

    appointments = AppointmentRepository(db)
    logger.info("Creating past appointments (last %d days)...", PAST_WINDOW_DAYS)
    past = appointments.insert_many(generate_past_appointments(rng, patient_ids, doctor_ids, today))

    logger.info("Creating upcoming appointments...")
    upcoming = appointments.insert_many(generate_upcoming_appointments(patient_ids, doctor_ids, now))

    logger.info("Creating visit records for completed appointments...")
    completed = sorted(
        (a for a in past if a.status == AppointmentStatus.COMPLETED),
        key=lambda a: a.appointment_id,
    )[:MAX_SNAPSHOT_VISITS]
    visits = appointments.record_visits([generate_visit(rng, a) for a in completed])

    summary = SeedSummary(
        patients=len(patients),
        doctors=len(doctors),
        past_appointments=len(past),
        upcoming_appointments=len(upcoming),
        visits=len(visits),
    )
    logger.info(
        "Seeded %d patients, %d doctors, %d appointments, %d visits",
        summary.patients, summary.doctors, summary.appointments, summary.visits,
    )
    return summary


def init_healthcare(
    db: SourceDatabase,
    today: date | None = None,
    seed: int | None = None,
    now: datetime | None = None,
    publication: bool = True,
) -> SeedSummary:
    """Schema, snapshot data and CDC publication, in that order."""
    settings = get_settings()
    init_schema(db, replication_user=settings.replication_user)
    summary = seed_database(db, today=today, seed=seed, now=now)
    if publication:
        summary.publication = create_publication(db, settings.publication_name)
    return summary


def _clinic_time(rng: random.Random) -> time:
    """A quarter-hour slot between 08:00 and 16:45."""
    minutes = rng.randrange(0, 9 * 60, 15)
    return time(8 + minutes // 60, minutes % 60)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    init_healthcare(SourceDatabase())
