"""Appointment and visit repository with lifecycle transitions."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable

from pgcdc_quickstart.state_machine import (
    INITIAL_STATUSES,
    AppointmentStatus,
    validate_transition,
)
from .connection import SourceDatabase, as_date, as_datetime, as_decimal, as_time

logger = logging.getLogger(__name__)


@dataclass
class Appointment:
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    reason_for_visit: str | None = None
    appointment_type: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    appointment_id: int | None = None

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.appointment_date, self.appointment_time)


@dataclass
class Visit:
    appointment_id: int
    patient_id: int
    doctor_id: int
    visit_date: date
    visit_start_time: datetime
    visit_end_time: datetime | None = None
    diagnosis: str | None = None
    treatment_notes: str | None = None
    follow_up_required: bool = False
    prescription_given: bool = False
    total_charge: Decimal | None = None
    visit_id: int | None = None


class VisitError(Exception):
    """Raised when a visit can't be recorded for an appointment."""
    pass


class DuplicateVisitError(VisitError):
    """Raised when an appointment already has its visit."""

    def __init__(self, appointment_id: int):
        self.appointment_id = appointment_id
        super().__init__(f"appointment {appointment_id} already has a visit record")


class AppointmentRepository:
    """Repository for appointments and the visits they produce."""

    APPOINTMENT_FIELDS = [
        "patient_id", "doctor_id", "appointment_date", "appointment_time", "status",
        "reason_for_visit", "appointment_type", "created_at", "updated_at",
    ]

    VISIT_FIELDS = [
        "appointment_id", "patient_id", "doctor_id", "visit_date", "visit_start_time",
        "visit_end_time", "diagnosis", "treatment_notes", "follow_up_required",
        "prescription_given", "total_charge",
    ]

    # Stable order for "pick N rows" predicates
    ORDER_BY = "ORDER BY appointment_date, appointment_time, appointment_id"

    def __init__(self, db: SourceDatabase | None = None):
        self.db = db or SourceDatabase()

    # Booking

    def book(self, appointment: Appointment, now: datetime | None = None) -> Appointment:
        """Book a new appointment in `scheduled` or `confirmed` state."""
        return self.book_many([appointment], now=now)[0]

    def book_many(self, appointments: list[Appointment], now: datetime | None = None) -> list[Appointment]:
        """Book several new appointments in one transaction."""
        for appointment in appointments:
            if AppointmentStatus(appointment.status) not in INITIAL_STATUSES:
                raise ValueError(
                    f"new appointments must be scheduled or confirmed, got {appointment.status}"
                )
        now = now or datetime.now()
        for appointment in appointments:
            appointment.created_at = appointment.created_at or now
            appointment.updated_at = appointment.updated_at or now
        return self.insert_many(appointments)

    def insert_many(self, appointments: list[Appointment]) -> list[Appointment]:
        """Insert appointments as-is, including historical terminal ones."""
        columns = ", ".join(self.APPOINTMENT_FIELDS)
        placeholders = ", ".join("?" for _ in self.APPOINTMENT_FIELDS)
        query = f"INSERT INTO appointments ({columns}) VALUES ({placeholders}) RETURNING appointment_id"

        now = datetime.now()
        with self.db.connect() as conn:
            for appointment in appointments:
                appointment.status = AppointmentStatus(appointment.status)
                appointment.created_at = appointment.created_at or now
                appointment.updated_at = appointment.updated_at or appointment.created_at
                row = conn.fetch_one(query, self._appointment_params(appointment))
                appointment.appointment_id = row["appointment_id"]
        return appointments

    # Lookups

    def get_by_id(self, appointment_id: int) -> Appointment | None:
        with self.db.connect() as conn:
            row = conn.fetch_one("SELECT * FROM appointments WHERE appointment_id = ?", (appointment_id,))
        return self._row_to_appointment(row) if row else None

    def get_many(self, appointment_ids: list[int]) -> list[Appointment]:
        """Fetch appointments by id, in the order given."""
        if not appointment_ids:
            return []
        placeholders = ", ".join("?" for _ in appointment_ids)
        with self.db.connect() as conn:
            rows = conn.fetch_all(
                f"SELECT * FROM appointments WHERE appointment_id IN ({placeholders})",
                appointment_ids,
            )
        by_id = {row["appointment_id"]: self._row_to_appointment(row) for row in rows}
        return [by_id[i] for i in appointment_ids if i in by_id]

    def list_by_status(self, status: AppointmentStatus) -> list[Appointment]:
        with self.db.connect() as conn:
            rows = conn.fetch_all(
                f"SELECT * FROM appointments WHERE status = ? {self.ORDER_BY}",
                (AppointmentStatus(status).value,),
            )
        return [self._row_to_appointment(row) for row in rows]

    # Lifecycle

    def advance_status(
        self,
        to_status: AppointmentStatus,
        *,
        from_status: AppointmentStatus,
        on_date: date | None = None,
        time_after: time | None = None,
        time_until: time | None = None,
        time_before: time | None = None,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[Appointment]:
        """Move every appointment matching the predicate to a new status.

        Rows are picked in date, time, id order, so a `limit` always selects
        the same rows for the same data. `time_after` and `time_before` are
        exclusive bounds, `time_until` is inclusive. Returns the updated
        appointments.
        """
        to_status = validate_transition(from_status, to_status)
        from_status = AppointmentStatus(from_status)
        now = now or datetime.now()

        where = ["status = ?"]
        params: list = [from_status.value]
        if on_date is not None:
            where.append("appointment_date = ?")
            params.append(on_date)
        if time_after is not None:
            where.append("appointment_time > ?")
            params.append(time_after)
        if time_until is not None:
            where.append("appointment_time <= ?")
            params.append(time_until)
        if time_before is not None:
            where.append("appointment_time < ?")
            params.append(time_before)

        query = f"SELECT appointment_id FROM appointments WHERE {' AND '.join(where)} {self.ORDER_BY}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.db.connect() as conn:
            ids = [row["appointment_id"] for row in conn.fetch_all(query, params)]
            if ids:
                placeholders = ", ".join("?" for _ in ids)
                conn.execute(
                    f"UPDATE appointments SET status = ?, updated_at = ? "
                    f"WHERE status = ? AND appointment_id IN ({placeholders})",
                    [to_status.value, now, from_status.value, *ids],
                )

        logger.debug("%s -> %s: %d appointment(s)", from_status.value, to_status.value, len(ids))
        return self.get_many(ids)

    def complete_in_progress(
        self,
        build_visit: Callable[[Appointment], Visit],
        now: datetime | None = None,
    ) -> list[Visit]:
        """Complete every in-progress appointment and record its visit.

        The status change and the visit inserts share one transaction.
        """
        to_status = validate_transition(AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED)
        now = now or datetime.now()
        visits = []

        with self.db.connect() as conn:
            rows = conn.fetch_all(
                f"SELECT * FROM appointments WHERE status = ? {self.ORDER_BY}",
                (AppointmentStatus.IN_PROGRESS.value,),
            )
            for row in rows:
                appointment = self._row_to_appointment(row)
                conn.execute(
                    "UPDATE appointments SET status = ?, updated_at = ? WHERE appointment_id = ?",
                    (to_status.value, now, appointment.appointment_id),
                )
                appointment.status = to_status
                appointment.updated_at = now
                visits.append(self._insert_visit(conn, build_visit(appointment)))

        return visits

    # Visits

    def record_visits(self, visits: list[Visit]) -> list[Visit]:
        """Record visits of completed appointments in one transaction, at most once each."""
        with self.db.connect() as conn:
            for visit in visits:
                row = conn.fetch_one(
                    "SELECT status FROM appointments WHERE appointment_id = ?",
                    (visit.appointment_id,),
                )
                if row is None:
                    raise VisitError(f"appointment {visit.appointment_id} does not exist")
                if row["status"] != AppointmentStatus.COMPLETED.value:
                    raise VisitError(
                        f"appointment {visit.appointment_id} is {row['status']}, visits need a completed appointment"
                    )
                self._insert_visit(conn, visit)
        return visits

    def get_visit_for_appointment(self, appointment_id: int) -> Visit | None:
        with self.db.connect() as conn:
            row = conn.fetch_one("SELECT * FROM visits WHERE appointment_id = ?", (appointment_id,))
        return self._row_to_visit(row) if row else None

    def list_visits(self, visit_date: date | None = None) -> list[Visit]:
        query = "SELECT * FROM visits"
        params = []
        if visit_date is not None:
            query += " WHERE visit_date = ?"
            params.append(visit_date)
        with self.db.connect() as conn:
            rows = conn.fetch_all(f"{query} ORDER BY visit_id", params)
        return [self._row_to_visit(row) for row in rows]

    # Reporting

    def count(self) -> int:
        with self.db.connect() as conn:
            return conn.scalar("SELECT COUNT(*) AS n FROM appointments")

    def status_counts(self) -> dict[str, int]:
        """Appointment count per status, largest first."""
        with self.db.connect() as conn:
            rows = conn.fetch_all(
                "SELECT status, COUNT(*) AS n FROM appointments GROUP BY status ORDER BY n DESC, status"
            )
        return {row["status"]: row["n"] for row in rows}

    def count_created_since(self, since: datetime) -> int:
        with self.db.connect() as conn:
            return conn.scalar("SELECT COUNT(*) AS n FROM appointments WHERE created_at >= ?", (since,))

    def count_visits_on(self, visit_date: date) -> int:
        with self.db.connect() as conn:
            return conn.scalar("SELECT COUNT(*) AS n FROM visits WHERE visit_date = ?", (visit_date,))

    def recent_changes(self, since: datetime, limit: int = 10) -> list[Appointment]:
        """Most recently touched appointments, newest first."""
        with self.db.connect() as conn:
            rows = conn.fetch_all(
                "SELECT * FROM appointments WHERE updated_at >= ? "
                "ORDER BY updated_at DESC, appointment_id DESC LIMIT ?",
                (since, limit),
            )
        return [self._row_to_appointment(row) for row in rows]

    # Private helpers

    def _insert_visit(self, conn, visit: Visit) -> Visit:
        existing = conn.fetch_one(
            "SELECT visit_id FROM visits WHERE appointment_id = ?", (visit.appointment_id,)
        )
        if existing:
            raise DuplicateVisitError(visit.appointment_id)

        columns = ", ".join(self.VISIT_FIELDS)
        placeholders = ", ".join("?" for _ in self.VISIT_FIELDS)
        row = conn.fetch_one(
            f"INSERT INTO visits ({columns}) VALUES ({placeholders}) RETURNING visit_id",
            [getattr(visit, f) for f in self.VISIT_FIELDS],
        )
        visit.visit_id = row["visit_id"]
        return visit

    def _appointment_params(self, appointment: Appointment) -> list:
        values = [getattr(appointment, f) for f in self.APPOINTMENT_FIELDS]
        values[self.APPOINTMENT_FIELDS.index("status")] = AppointmentStatus(appointment.status).value
        return values

    def _row_to_appointment(self, row) -> Appointment:
        """Convert a database row to an Appointment object."""
        return Appointment(
            appointment_id=row["appointment_id"],
            patient_id=row["patient_id"],
            doctor_id=row["doctor_id"],
            appointment_date=as_date(row["appointment_date"]),
            appointment_time=as_time(row["appointment_time"]),
            status=AppointmentStatus(row["status"]),
            reason_for_visit=row["reason_for_visit"],
            appointment_type=row["appointment_type"],
            created_at=as_datetime(row["created_at"]),
            updated_at=as_datetime(row["updated_at"]),
        )

    def _row_to_visit(self, row) -> Visit:
        """Convert a database row to a Visit object."""
        return Visit(
            visit_id=row["visit_id"],
            appointment_id=row["appointment_id"],
            patient_id=row["patient_id"],
            doctor_id=row["doctor_id"],
            visit_date=as_date(row["visit_date"]),
            visit_start_time=as_datetime(row["visit_start_time"]),
            visit_end_time=as_datetime(row["visit_end_time"]),
            diagnosis=row["diagnosis"],
            treatment_notes=row["treatment_notes"],
            follow_up_required=bool(row["follow_up_required"]),
            prescription_given=bool(row["prescription_given"]),
            total_charge=as_decimal(row["total_charge"]),
        )
