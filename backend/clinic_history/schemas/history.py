"""Pydantic schemas for the patient history projection.

These are the shapes handed to UI and report consumers: the reconciled
``Encounter`` timeline, normalized prescriptions and lab results, and the
aggregate counters.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import ConfigDict, Field, computed_field

from clinic_history.schemas.base import CamelModel
from clinic_history.utils.timestamps import first_timestamp


# === Patient identity ===


class RegisteredPatient(CamelModel):
    """Patient with a platform account.

    ``linked_unregistered_id`` points at the walk-in record the patient was
    registered from; history filed under either id belongs to this patient.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["registered"] = "registered"
    id: UUID
    linked_unregistered_id: UUID | None = None


class UnregisteredPatient(CamelModel):
    """Walk-in patient without an account."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unregistered"] = "unregistered"
    id: UUID


PatientRef = Annotated[RegisteredPatient | UnregisteredPatient, Field(discriminator="kind")]


# === Encounter timeline ===


class EncounterKind(str, Enum):
    """Which source rows back an encounter."""

    APPOINTMENT_ONLY = "AppointmentOnly"
    CONSULTATION_ONLY = "ConsultationOnly"
    MERGED = "Merged"


class DoctorRef(CamelModel):
    """Clinician id plus display name resolved from the directory."""

    id: str
    name: str | None = None


class BillingSnapshot(CamelModel):
    """Billing attached to an appointment."""

    id: UUID
    amount: Decimal | None = None
    currency: str | None = None
    payment_status: str | None = None
    payment_date: datetime | None = None


class Encounter(CamelModel):
    """A single clinical visit, reconciled from an appointment and/or a consultation."""

    id: UUID = Field(description="Appointment id when one exists, else consultation id")
    kind: EncounterKind
    appointment_id: UUID | None = None
    consultation_id: UUID | None = None
    patient: PatientRef
    doctor: DoctorRef
    organization_id: UUID | None = None

    scheduled_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    created_at: datetime | None = None

    status: str
    reason_or_complaint: str | None = None
    diagnosis: str | None = None
    icd11_code: str | None = None
    icd11_title: str | None = None
    notes: str | None = None
    vitals: dict[str, Any] | None = None
    location: str | None = None
    duration_minutes: int

    billing: BillingSnapshot | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def effective_date(self) -> datetime | None:
        """First non-null of scheduled_at, started_at, created_at."""
        return first_timestamp(self.scheduled_at, self.started_at, self.created_at)


# === Prescriptions ===


class MedicationView(CamelModel):
    """Prescription line item with synthesized display strings."""

    id: UUID
    name: str
    dose: str | None = Field(default=None, description="Dosage with form in parentheses, or form alone")
    instructions: str | None = None
    dosage: str | None = None
    form: str | None = None
    frequency: str | None = None
    duration: str | None = None


class PrescriptionView(CamelModel):
    """Normalized prescription."""

    id: UUID
    doctor: DoctorRef
    consultation_id: UUID | None = None
    issued_at: datetime | None = None
    valid_until: date | None = None
    status: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    medications: list[MedicationView] = Field(default_factory=list)


# === Lab results ===


class LabResultView(CamelModel):
    """Lab result with fields pulled out of the semi-structured payload."""

    id: UUID
    test_name: str | None = None
    result_type: str | None = None
    result: Any = None
    unit: str | None = None
    reference_range: Any = None
    comment: str | None = None
    status: str | None = None
    is_critical: bool = False
    date: datetime | None = None
    consultation_id: UUID | None = None
    attachments: list[str] = Field(default_factory=list)


# === Aggregates ===


class AggregateCounters(CamelModel):
    """Per-patient counters, computed fresh for every request."""

    consultations_count: int = 0
    prescriptions_count: int = 0
    lab_results_count: int = 0
    billings_count: int = 0
    last_consultation_at: datetime | None = None
    last_prescription_at: datetime | None = None
    last_lab_result_at: datetime | None = None
    last_activity_at: datetime | None = None
    organizations: list[UUID] = Field(default_factory=list)


class PatientHistoryResponse(CamelModel):
    """Projected history for one patient as seen by the requesting clinician."""

    patient: PatientRef
    access: Literal["owned_only", "full_access"]
    summary: AggregateCounters
    consultations: list[Encounter]
    prescriptions: list[PrescriptionView]
    lab_results: list[LabResultView]
