"""Pydantic schemas."""

from clinic_history.schemas.history import (
    AggregateCounters,
    BillingSnapshot,
    DoctorRef,
    Encounter,
    EncounterKind,
    LabResultView,
    MedicationView,
    PatientHistoryResponse,
    PatientRef,
    PrescriptionView,
    RegisteredPatient,
    UnregisteredPatient,
)
from clinic_history.schemas.patients import ListMeta, PatientListItem, PatientListResponse
from clinic_history.schemas.queue import QueueHistoryResponse, QueueVisit

__all__ = [
    "AggregateCounters",
    "BillingSnapshot",
    "DoctorRef",
    "Encounter",
    "EncounterKind",
    "LabResultView",
    "MedicationView",
    "PatientHistoryResponse",
    "PatientRef",
    "PrescriptionView",
    "RegisteredPatient",
    "UnregisteredPatient",
    # Roster schemas
    "ListMeta",
    "PatientListItem",
    "PatientListResponse",
    # Queue schemas
    "QueueHistoryResponse",
    "QueueVisit",
]
