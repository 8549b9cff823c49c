"""Pydantic schemas for deduplicated nurse queue visits."""

from datetime import date

from clinic_history.schemas.base import CamelModel
from clinic_history.schemas.history import PatientRef


class QueueVisit(CamelModel):
    """Latest meaningful queue entry for one day."""

    queue_date: date
    arrival_time: str | None = None
    status: str
    chief_complaint: str | None = None
    nurse_notes: str | None = None
    doctor_name: str | None = None
    vital_signs_taken: bool = False


class QueueHistoryResponse(CamelModel):
    """Most recent attended visits for a patient, one per day."""

    patient: PatientRef
    visits: list[QueueVisit]
    total: int
