"""Patient repository."""

from dataclasses import dataclass
from datetime import date, datetime

from .connection import SourceDatabase, as_date, as_datetime


@dataclass
class Patient:
    first_name: str
    last_name: str
    date_of_birth: date
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    insurance_provider: str | None = None
    registration_date: datetime | None = None
    patient_id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class PatientRepository:
    """Repository for patient records. Patients are only ever inserted."""

    INSERT_FIELDS = [
        "first_name", "last_name", "date_of_birth", "phone", "email",
        "address", "city", "state", "insurance_provider", "registration_date",
    ]

    def __init__(self, db: SourceDatabase | None = None):
        self.db = db or SourceDatabase()

    def create(self, patient: Patient) -> Patient:
        """Insert a patient and fill in its generated id."""
        return self.create_many([patient])[0]

    def create_many(self, patients: list[Patient]) -> list[Patient]:
        """Insert patients in order, in a single transaction."""
        columns = ", ".join(self.INSERT_FIELDS)
        placeholders = ", ".join("?" for _ in self.INSERT_FIELDS)
        query = f"INSERT INTO patients ({columns}) VALUES ({placeholders}) RETURNING patient_id"

        with self.db.connect() as conn:
            for patient in patients:
                if patient.registration_date is None:
                    patient.registration_date = datetime.now().replace(microsecond=0)
                row = conn.fetch_one(query, [getattr(patient, f) for f in self.INSERT_FIELDS])
                patient.patient_id = row["patient_id"]
        return patients

    def get_by_id(self, patient_id: int) -> Patient | None:
        """Get a patient by ID."""
        with self.db.connect() as conn:
            row = conn.fetch_one("SELECT * FROM patients WHERE patient_id = ?", (patient_id,))
        return self._row_to_patient(row) if row else None

    def count(self) -> int:
        with self.db.connect() as conn:
            return conn.scalar("SELECT COUNT(*) AS n FROM patients")

    def _row_to_patient(self, row) -> Patient:
        """Convert a database row to a Patient object."""
        return Patient(
            patient_id=row["patient_id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            date_of_birth=as_date(row["date_of_birth"]),
            phone=row["phone"],
            email=row["email"],
            address=row["address"],
            city=row["city"],
            state=row["state"],
            insurance_provider=row["insurance_provider"],
            registration_date=as_datetime(row["registration_date"]),
        )
