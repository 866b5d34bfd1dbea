"""A morning at the clinic: live transactional activity for the CDC demo.

Every step is a plain repository call, so each one lands in the source
database as ordinary INSERTs and UPDATEs that the connector picks up.
"""

import logging
import time as systime
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pgcdc_quickstart.state_machine import AppointmentStatus, AppointmentType
from pgcdc_quickstart.healthcare.database import (
    AppointmentRepository,
    DoctorRepository,
    SourceDatabase,
)
from pgcdc_quickstart.healthcare.database.appointment_repository import Appointment, Visit

logger = logging.getLogger(__name__)

# Dr. Anderson goes on vacation next week
VACATION_DOCTOR_ID = 9
RECENT_CHANGES_LIMIT = 10


@dataclass
class VisitTemplate:
    """How a visit record is derived from the appointment it closes.

    Diagnosis and flags cycle on the appointment id so reruns on the same
    data write the same visits.
    """

    duration_minutes: int
    diagnoses: tuple[str, ...]
    treatment_notes: str
    follow_up_every: int
    prescription_every: int
    base_charge: Decimal
    charge_step: Decimal
    charge_cycle: int

    def build(self, appointment: Appointment) -> Visit:
        aid = appointment.appointment_id
        starts_at = appointment.starts_at
        return Visit(
            appointment_id=aid,
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            visit_date=appointment.appointment_date,
            visit_start_time=starts_at,
            visit_end_time=starts_at + timedelta(minutes=self.duration_minutes),
            diagnosis=self.diagnoses[aid % len(self.diagnoses)],
            treatment_notes=self.treatment_notes,
            follow_up_required=aid % self.follow_up_every == 0,
            prescription_given=aid % self.prescription_every == 0,
            total_charge=self.base_charge + (aid % self.charge_cycle) * self.charge_step,
        )


MORNING_VISITS = VisitTemplate(
    duration_minutes=25,
    diagnoses=(
        "Acute upper respiratory infection",
        "Hypertension, controlled",
        "Type 2 Diabetes Mellitus",
        "Annual wellness - no acute findings",
        "Follow-up visit - stable condition",
    ),
    treatment_notes=(
        "Patient examined and vitals recorded. Treatment plan discussed. "
        "Patient educated on medication adherence and lifestyle modifications."
    ),
    follow_up_every=3,
    prescription_every=2,
    base_charge=Decimal("125.00"),
    charge_step=Decimal("15.00"),
    charge_cycle=10,
)

LATE_MORNING_VISITS = VisitTemplate(
    duration_minutes=30,
    diagnoses=(
        "Allergic rhinitis",
        "Acute sinusitis",
        "Contact dermatitis",
        "Routine checkup - all normal",
    ),
    treatment_notes=(
        "Comprehensive examination completed. Lab work ordered as needed. "
        "Follow-up scheduled if required."
    ),
    follow_up_every=4,
    prescription_every=3,
    base_charge=Decimal("150.00"),
    charge_step=Decimal("20.00"),
    charge_cycle=8,
)

# (patient, doctor, days ahead, time, reason, type)
PHONE_BOOKINGS = [
    (5, 1, 3, time(9, 0), "Persistent cough and fever", AppointmentType.URGENT),
    (17, 2, 5, time(10, 30), "Blood sugar monitoring", AppointmentType.FOLLOW_UP),
    (29, 3, 7, time(14, 0), "Annual wellness visit", AppointmentType.ROUTINE),
]

WALK_INS = [
    (41, 1, 0, time(10, 45), "Severe allergic reaction", AppointmentType.URGENT),
    (53, 3, 0, time(11, 15), "Chest pain evaluation", AppointmentType.URGENT),
]

FUTURE_BOOKINGS = [
    (8, 4, 10, time(9, 30), "Follow-up cardiac evaluation", AppointmentType.FOLLOW_UP),
    (19, 6, 12, time(10, 0), "Child immunization", AppointmentType.ROUTINE),
    (31, 8, 14, time(14, 30), "Sports injury follow-up", AppointmentType.FOLLOW_UP),
    (44, 9, 15, time(11, 0), "Skin condition check", AppointmentType.ROUTINE),
    (57, 10, 17, time(13, 0), "Chronic disease management", AppointmentType.FOLLOW_UP),
]


@dataclass
class ScenarioStep:
    clock: str
    narration: str
    action: Callable[[], int]
    outcome: str
    pause: float = 2.0


@dataclass
class StepResult:
    clock: str
    narration: str
    affected: int
    outcome: str


@dataclass
class SimulationReport:
    started_at: datetime
    steps: list[StepResult] = field(default_factory=list)
    new_appointments: int = 0
    status_changes: int = 0
    visits_today: int = 0
    doctors_updated: int = 0
    status_distribution: dict[str, int] = field(default_factory=dict)
    recent_changes: list[Appointment] = field(default_factory=list)
    visit_charges: dict[int, Decimal] = field(default_factory=dict)

    def summary_rows(self) -> list[tuple[str, int]]:
        return [
            ("New appointments created", self.new_appointments),
            ("Appointments updated (status changes)", self.status_changes),
            ("New visit records created", self.visits_today),
            ("Doctor records updated", self.doctors_updated),
        ]


class ClinicDay:
    """The clinic's morning, one method per scheduled event."""

    def __init__(
        self,
        db: SourceDatabase,
        today: date | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.appointments = AppointmentRepository(db)
        self.doctors = DoctorRepository(db)
        self.clock = clock
        self.today = today or clock().date()
        # ids of appointments moved along the lifecycle during the run
        self.changed_ids: set[int] = set()

    def now(self) -> datetime:
        return self.clock().replace(microsecond=0)

    def steps(self) -> list[ScenarioStep]:
        return [
            ScenarioStep("8:00 AM", "New appointment requests coming in...",
                         self.phone_bookings, "{n} new appointments scheduled"),
            ScenarioStep("8:15 AM", "Front desk confirming today's appointments...",
                         self.confirm_today, "{n} of today's appointments confirmed"),
            ScenarioStep("8:30 AM", "Patients checking in for their appointments...",
                         self.first_check_ins, "{n} patients checked in"),
            ScenarioStep("9:00 AM", "Doctors beginning patient visits...",
                         self.first_visits_start, "{n} visits now in progress", pause=3.0),
            ScenarioStep("9:30 AM", "Completing visits and creating visit records...",
                         self.complete_morning_visits, "{n} visits completed with records created"),
            ScenarioStep("10:00 AM", "Walk-in patients arriving...",
                         self.walk_ins, "{n} urgent walk-in appointments added"),
            ScenarioStep("10:30 AM", "Appointment cancellation received...",
                         self.afternoon_cancellation, "{n} appointment cancelled"),
            ScenarioStep("11:00 AM", "Processing more appointments...",
                         self.second_check_ins, "{n} more patients checked in"),
            ScenarioStep("11:00 AM", "",
                         self.second_visits_start, "{n} new visits in progress", pause=3.0),
            ScenarioStep("11:30 AM", "Completing more visits...",
                         self.complete_late_visits, "{n} additional visits completed"),
            ScenarioStep("12:00 PM", "Scheduling future appointments...",
                         self.future_bookings, "{n} new appointments scheduled for next two weeks"),
            ScenarioStep("12:15 PM", "Marking no-show for missed appointment...",
                         self.mark_no_show, "{n} patient marked as no-show", pause=0),
            ScenarioStep("12:30 PM", "Updating doctor schedules...",
                         self.doctor_vacation, "{n} doctor availability updated", pause=0),
        ]

    # Bookings

    def _book(self, bookings, status: AppointmentStatus) -> int:
        batch = [
            Appointment(
                patient_id=patient,
                doctor_id=doctor,
                appointment_date=self.today + timedelta(days=days_ahead),
                appointment_time=at,
                status=status,
                reason_for_visit=reason,
                appointment_type=kind.value,
            )
            for patient, doctor, days_ahead, at, reason, kind in bookings
        ]
        return len(self.appointments.book_many(batch, now=self.now()))

    def phone_bookings(self) -> int:
        return self._book(PHONE_BOOKINGS, AppointmentStatus.SCHEDULED)

    def walk_ins(self) -> int:
        return self._book(WALK_INS, AppointmentStatus.CONFIRMED)

    def future_bookings(self) -> int:
        return self._book(FUTURE_BOOKINGS, AppointmentStatus.SCHEDULED)

    # Status changes

    def _advance(self, to_status, **predicate) -> int:
        moved = self.appointments.advance_status(to_status, now=self.now(), **predicate)
        self.changed_ids.update(a.appointment_id for a in moved)
        return len(moved)

    def confirm_today(self) -> int:
        return self._advance(
            AppointmentStatus.CONFIRMED,
            from_status=AppointmentStatus.SCHEDULED,
            on_date=self.today,
        )

    def first_check_ins(self) -> int:
        return self._advance(
            AppointmentStatus.CHECKED_IN,
            from_status=AppointmentStatus.CONFIRMED,
            on_date=self.today,
            limit=4,
        )

    def first_visits_start(self) -> int:
        return self._advance(
            AppointmentStatus.IN_PROGRESS,
            from_status=AppointmentStatus.CHECKED_IN,
            limit=2,
        )

    def afternoon_cancellation(self) -> int:
        return self._advance(
            AppointmentStatus.CANCELLED,
            from_status=AppointmentStatus.CONFIRMED,
            on_date=self.today,
            time_after=time(12, 0),
            limit=1,
        )

    def second_check_ins(self) -> int:
        return self._advance(
            AppointmentStatus.CHECKED_IN,
            from_status=AppointmentStatus.CONFIRMED,
            on_date=self.today,
            time_until=time(11, 30),
            limit=2,
        )

    def second_visits_start(self) -> int:
        return self._advance(
            AppointmentStatus.IN_PROGRESS,
            from_status=AppointmentStatus.CHECKED_IN,
            on_date=self.today,
            limit=2,
        )

    def mark_no_show(self) -> int:
        return self._advance(
            AppointmentStatus.NO_SHOW,
            from_status=AppointmentStatus.CONFIRMED,
            on_date=self.today,
            time_before=time(12, 0),
            limit=1,
        )

    # Visits

    def _complete(self, template: VisitTemplate) -> int:
        visits = self.appointments.complete_in_progress(template.build, now=self.now())
        self.changed_ids.update(v.appointment_id for v in visits)
        return len(visits)

    def complete_morning_visits(self) -> int:
        return self._complete(MORNING_VISITS)

    def complete_late_visits(self) -> int:
        return self._complete(LATE_MORNING_VISITS)

    # Doctors

    def doctor_vacation(self) -> int:
        doctor = self.doctors.set_accepting_new_patients(VACATION_DOCTOR_ID, False, now=self.now())
        return 1 if doctor else 0

    def report(self, started_at: datetime) -> SimulationReport:
        """Summarise what changed since `started_at`."""
        recent = self.appointments.recent_changes(started_at, RECENT_CHANGES_LIMIT)
        charges = {}
        for a in recent:
            if a.status == AppointmentStatus.COMPLETED:
                visit = self.appointments.get_visit_for_appointment(a.appointment_id)
                if visit:
                    charges[a.appointment_id] = visit.total_charge
        return SimulationReport(
            started_at=started_at,
            new_appointments=self.appointments.count_created_since(started_at),
            status_changes=len(self.changed_ids),
            visits_today=self.appointments.count_visits_on(self.today),
            doctors_updated=self.doctors.count_updated_since(started_at),
            status_distribution=self.appointments.status_counts(),
            recent_changes=recent,
            visit_charges=charges,
        )


def run_clinic_day(
    db: SourceDatabase | None = None,
    console: Console | None = None,
    sleep: Callable[[float], None] = systime.sleep,
    today: date | None = None,
    pause_scale: float = 1.0,
    clock: Callable[[], datetime] = datetime.now,
) -> SimulationReport:
    """Play the clinic's morning against the source database."""
    db = db or SourceDatabase()
    console = console or Console()
    day = ClinicDay(db, today=today, clock=clock)
    started_at = day.now()
    results = []

    console.print(Panel.fit(
        f"Morning operations at DemoClinic Healthcare ({day.today.isoformat()})",
        style="bold cyan",
    ))
    for step in day.steps():
        if step.narration:
            console.print(f"[bold]🕐 {step.clock}[/bold] - {step.narration}")
        affected = step.action()
        outcome = step.outcome.format(n=affected)
        console.print(f"[green]✅ {outcome}[/green]\n")
        logger.debug("%s %s: %d row(s)", step.clock, step.action.__name__, affected)
        results.append(StepResult(step.clock, step.narration, affected, outcome))
        if step.pause and pause_scale > 0:
            sleep(step.pause * pause_scale)

    report = day.report(started_at)
    report.steps = results
    print_report(report, console)
    return report


def print_report(report: SimulationReport, console: Console) -> None:
    summary = Table(title="CDC Demo Summary - Changes Generated")
    summary.add_column("Activity")
    summary.add_column("Count", justify="right")
    for activity, count in report.summary_rows():
        summary.add_row(activity, str(count))
    console.print(summary)

    distribution = Table(title="Current appointment status distribution")
    distribution.add_column("Status")
    distribution.add_column("Count", justify="right")
    for status, count in report.status_distribution.items():
        distribution.add_row(status, str(count))
    console.print(distribution)

    recent = Table(title="Sample of recent changes")
    for column in ("ID", "Patient", "Doctor", "Date", "Status", "Reason", "Charge", "Updated"):
        recent.add_column(column)
    for a in report.recent_changes:
        recent.add_row(
            str(a.appointment_id),
            str(a.patient_id),
            str(a.doctor_id),
            a.appointment_date.isoformat(),
            a.status.value,
            a.reason_for_visit or "",
            str(report.visit_charges.get(a.appointment_id, "")),
            a.updated_at.isoformat(sep=" ") if a.updated_at else "",
        )
    console.print(recent)
    console.print(
        "[bold]Next:[/bold] query APPOINTMENTS and VISITS in Snowflake and watch "
        "the CDC metadata columns, then run the analytics queries."
    )
