"""SQLAlchemy models."""

from clinic_history.models.access import MedicalAccessGrant
from clinic_history.models.auth import ClinicianSession
from clinic_history.models.billing import Billing
from clinic_history.models.encounter import Appointment, Consultation
from clinic_history.models.lab import LabResult
from clinic_history.models.patient import Patient, UnregisteredPatient
from clinic_history.models.prescription import Prescription, PrescriptionItem
from clinic_history.models.queue import NurseQueueEntry
from clinic_history.models.user import User

__all__ = [
    "Appointment",
    "Billing",
    "ClinicianSession",
    "Consultation",
    "LabResult",
    "MedicalAccessGrant",
    "NurseQueueEntry",
    "Patient",
    "Prescription",
    "PrescriptionItem",
    "UnregisteredPatient",
    "User",
]
