"""Doctor repository with availability updates."""

from dataclasses import dataclass
from datetime import datetime

from .connection import SourceDatabase, as_datetime


@dataclass
class Doctor:
    first_name: str
    last_name: str
    specialization: str
    department: str | None = None
    phone: str | None = None
    email: str | None = None
    years_of_experience: int | None = None
    accepting_new_patients: bool = True
    updated_at: datetime | None = None
    doctor_id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class DoctorRepository:
    """Repository for doctors. The only mutation is the availability flag."""

    INSERT_FIELDS = [
        "first_name", "last_name", "specialization", "department", "phone",
        "email", "years_of_experience", "accepting_new_patients", "updated_at",
    ]

    def __init__(self, db: SourceDatabase | None = None):
        self.db = db or SourceDatabase()

    def create(self, doctor: Doctor) -> Doctor:
        return self.create_many([doctor])[0]

    def create_many(self, doctors: list[Doctor]) -> list[Doctor]:
        """Insert doctors in order, in a single transaction."""
        columns = ", ".join(self.INSERT_FIELDS)
        placeholders = ", ".join("?" for _ in self.INSERT_FIELDS)
        query = f"INSERT INTO doctors ({columns}) VALUES ({placeholders}) RETURNING doctor_id"

        now = datetime.now().replace(microsecond=0)
        with self.db.connect() as conn:
            for doctor in doctors:
                if doctor.updated_at is None:
                    doctor.updated_at = now
                row = conn.fetch_one(query, [getattr(doctor, f) for f in self.INSERT_FIELDS])
                doctor.doctor_id = row["doctor_id"]
        return doctors

    def get_by_id(self, doctor_id: int) -> Doctor | None:
        with self.db.connect() as conn:
            row = conn.fetch_one("SELECT * FROM doctors WHERE doctor_id = ?", (doctor_id,))
        return self._row_to_doctor(row) if row else None

    def list_all(self) -> list[Doctor]:
        """All doctors ordered by specialization, then last name."""
        with self.db.connect() as conn:
            rows = conn.fetch_all("SELECT * FROM doctors ORDER BY specialization, last_name")
        return [self._row_to_doctor(row) for row in rows]

    def set_accepting_new_patients(
        self,
        doctor_id: int,
        accepting: bool,
        now: datetime | None = None,
    ) -> Doctor | None:
        """Flip a doctor's availability and bump updated_at."""
        now = now or datetime.now()
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE doctors SET accepting_new_patients = ?, updated_at = ? WHERE doctor_id = ?",
                (accepting, now, doctor_id),
            )
            if cursor.rowcount == 0:
                return None
        return self.get_by_id(doctor_id)

    def count_updated_since(self, since: datetime) -> int:
        with self.db.connect() as conn:
            return conn.scalar("SELECT COUNT(*) AS n FROM doctors WHERE updated_at >= ?", (since,))

    def _row_to_doctor(self, row) -> Doctor:
        """Convert a database row to a Doctor object."""
        return Doctor(
            doctor_id=row["doctor_id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            specialization=row["specialization"],
            department=row["department"],
            phone=row["phone"],
            email=row["email"],
            years_of_experience=row["years_of_experience"],
            accepting_new_patients=bool(row["accepting_new_patients"]),
            updated_at=as_datetime(row["updated_at"]),
        )
