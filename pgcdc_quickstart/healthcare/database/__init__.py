from .connection import SourceDatabase, get_connection
from .schema import init_schema, create_publication
from .patient_repository import PatientRepository
from .doctor_repository import DoctorRepository
from .appointment_repository import AppointmentRepository

__all__ = [
    "SourceDatabase",
    "get_connection",
    "init_schema",
    "create_publication",
    "PatientRepository",
    "DoctorRepository",
    "AppointmentRepository",
]
