"""Plain row records returned by the repositories.

ORM instances are converted at the repository boundary so the reconciler,
enricher and aggregator work on immutable values and never trigger lazy
loads. Timestamps are kept exactly as stored (datetime or legacy text); the
pipeline parses them leniently.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any

Timestamp = datetime | str | None


def _copy_columns(cls, obj, **overrides):
    values = {f.name: getattr(obj, f.name) for f in fields(cls) if f.name not in overrides}
    values.update(overrides)
    return cls(**values)


@dataclass(frozen=True)
class PatientKeys:
    """Patient identifiers to match in a fetch.

    Rows match when ``patient_id`` is in ``patient_ids`` or
    ``unregistered_patient_id`` is in ``unregistered_ids``.
    """

    patient_ids: frozenset[uuid.UUID] = frozenset()
    unregistered_ids: frozenset[uuid.UUID] = frozenset()

    def __bool__(self) -> bool:
        return bool(self.patient_ids or self.unregistered_ids)


@dataclass(frozen=True)
class AppointmentRow:
    id: uuid.UUID
    patient_id: uuid.UUID | None
    unregistered_patient_id: uuid.UUID | None
    doctor_id: str
    organization_id: uuid.UUID | None
    scheduled_at: Timestamp
    duration_minutes: int | None
    status: str | None
    location: str | None
    reason: str | None
    notes: str | None
    created_at: Timestamp

    @classmethod
    def from_model(cls, obj) -> AppointmentRow:
        return _copy_columns(cls, obj)


@dataclass(frozen=True)
class ConsultationRow:
    id: uuid.UUID
    appointment_id: uuid.UUID | None
    patient_id: uuid.UUID | None
    unregistered_patient_id: uuid.UUID | None
    doctor_id: str
    organization_id: uuid.UUID | None
    chief_complaint: str | None
    diagnosis: str | None
    icd11_code: str | None
    icd11_title: str | None
    notes: str | None
    vitals: Any
    started_at: Timestamp
    ended_at: Timestamp
    created_at: Timestamp

    @classmethod
    def from_model(cls, obj) -> ConsultationRow:
        return _copy_columns(cls, obj)


@dataclass(frozen=True)
class PrescriptionItemRow:
    id: uuid.UUID
    name: str
    dosage: str | None
    form: str | None
    frequency: str | None
    duration: str | None
    instructions: str | None

    @classmethod
    def from_model(cls, obj) -> PrescriptionItemRow:
        return _copy_columns(cls, obj)


@dataclass(frozen=True)
class PrescriptionRow:
    id: uuid.UUID
    patient_id: uuid.UUID | None
    unregistered_patient_id: uuid.UUID | None
    doctor_id: str
    consultation_id: uuid.UUID | None
    issued_at: Timestamp
    valid_until: date | None
    status: str | None
    notes: str | None
    created_at: Timestamp
    items: tuple[PrescriptionItemRow, ...] = ()

    @classmethod
    def from_model(cls, obj) -> PrescriptionRow:
        items = tuple(PrescriptionItemRow.from_model(item) for item in obj.items)
        return _copy_columns(cls, obj, items=items)


@dataclass(frozen=True)
class LabResultRow:
    id: uuid.UUID
    patient_id: uuid.UUID | None
    unregistered_patient_id: uuid.UUID | None
    consultation_id: uuid.UUID | None
    result_type: str | None
    result: Any
    attachments: Any
    is_critical: bool
    reported_at: Timestamp
    created_at: Timestamp

    @classmethod
    def from_model(cls, obj) -> LabResultRow:
        return _copy_columns(cls, obj)


@dataclass(frozen=True)
class BillingRow:
    id: uuid.UUID
    appointment_id: uuid.UUID | None
    total: Decimal | None
    currency: str | None
    payment_status: str | None
    paid_at: Timestamp
    created_at: Timestamp

    @classmethod
    def from_model(cls, obj) -> BillingRow:
        return _copy_columns(cls, obj)


@dataclass(frozen=True)
class QueueEntryRow:
    id: uuid.UUID
    queue_date: date
    arrival_time: str | None
    status: str
    chief_complaint: str | None
    nurse_notes: str | None
    doctor_name: str | None
    vital_signs_taken: bool

    @classmethod
    def from_model(cls, obj) -> QueueEntryRow:
        return _copy_columns(cls, obj)
