"""Timeline enrichment.

Attaches billing snapshots and doctor display names to encounters, and
normalizes prescriptions and lab results into their display shapes. All
lookups work on maps built from one batched fetch each.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from clinic_history.repositories.rows import (
    AppointmentRow,
    BillingRow,
    ConsultationRow,
    LabResultRow,
    PrescriptionItemRow,
    PrescriptionRow,
)
from clinic_history.schemas.history import (
    BillingSnapshot,
    DoctorRef,
    Encounter,
    LabResultView,
    MedicationView,
    PrescriptionView,
)
from clinic_history.utils.payload import decode_json_text, read_first
from clinic_history.utils.timestamps import first_timestamp, parse_timestamp, recency_key

logger = logging.getLogger(__name__)

# Accepted key spellings in lab payloads, in priority order
VALUE_KEYS = ("value", "result")
UNIT_KEYS = ("unit", "units")
REFERENCE_RANGE_KEYS = ("referenceRange", "reference_range")
COMMENT_KEYS = ("comment", "comments")
STATUS_KEYS = ("status",)
TEST_NAME_KEYS = ("testName", "test_name", "name")


# =============================================================================
# Billing
# =============================================================================


def build_billing_index(rows: Iterable[BillingRow]) -> dict[uuid.UUID, BillingSnapshot]:
    """Map appointment id to its billing snapshot.

    An appointment is expected to have at most one billing row. When there
    are several, the most recently created one is kept.
    """
    by_appointment: dict[uuid.UUID, list[BillingRow]] = {}
    for row in rows:
        if row.appointment_id is not None:
            by_appointment.setdefault(row.appointment_id, []).append(row)

    index: dict[uuid.UUID, BillingSnapshot] = {}
    for appointment_id, candidates in by_appointment.items():
        if len(candidates) > 1:
            candidates.sort(key=lambda r: recency_key(r.created_at), reverse=True)
            logger.warning(
                "%d billing rows for appointment %s; keeping %s",
                len(candidates),
                appointment_id,
                candidates[0].id,
            )
        row = candidates[0]
        index[appointment_id] = BillingSnapshot(
            id=row.id,
            amount=row.total,
            currency=row.currency,
            payment_status=row.payment_status,
            payment_date=parse_timestamp(row.paid_at),
        )
    return index


def attach_billing(
    encounters: list[Encounter],
    billing: dict[uuid.UUID, BillingSnapshot],
) -> list[Encounter]:
    """Attach billing by appointment id; consultation-only encounters never get billing."""
    return [
        e.model_copy(update={"billing": billing.get(e.appointment_id) if e.appointment_id else None})
        for e in encounters
    ]


# =============================================================================
# Doctor names
# =============================================================================


def collect_doctor_ids(
    appointments: Iterable[AppointmentRow],
    consultations: Iterable[ConsultationRow],
    prescriptions: Iterable[PrescriptionRow],
) -> set[str]:
    """Distinct clinician ids across every source that displays a doctor."""
    ids: set[str] = set()
    for rows in (appointments, consultations, prescriptions):
        ids.update(r.doctor_id for r in rows if r.doctor_id)
    return ids


def doctor_ref(doctor_id: str, names: dict[str, str | None], placeholder: str) -> DoctorRef:
    return DoctorRef(id=doctor_id, name=names.get(doctor_id) or placeholder)


def attach_doctor_names(
    encounters: list[Encounter],
    names: dict[str, str | None],
    placeholder: str,
) -> list[Encounter]:
    return [
        e.model_copy(update={"doctor": doctor_ref(e.doctor.id, names, placeholder)})
        for e in encounters
    ]


# =============================================================================
# Prescriptions
# =============================================================================


def format_dose(dosage: str | None, form: str | None) -> str | None:
    """'500mg (tablet)', '500mg', 'tablet', or None."""
    if dosage:
        return f"{dosage} ({form})" if form else dosage
    return form or None


def format_instructions(
    instructions: str | None,
    frequency: str | None,
    duration: str | None,
) -> str | None:
    """Explicit instructions, else '<frequency> por <duration>', else whichever is present."""
    if instructions:
        return instructions
    if frequency and duration:
        return f"{frequency} por {duration}"
    return frequency or duration or None


def normalize_medication(item: PrescriptionItemRow) -> MedicationView:
    return MedicationView(
        id=item.id,
        name=item.name,
        dose=format_dose(item.dosage, item.form),
        instructions=format_instructions(item.instructions, item.frequency, item.duration),
        dosage=item.dosage,
        form=item.form,
        frequency=item.frequency,
        duration=item.duration,
    )


def normalize_prescription(
    row: PrescriptionRow,
    names: dict[str, str | None],
    placeholder: str,
) -> PrescriptionView:
    return PrescriptionView(
        id=row.id,
        doctor=doctor_ref(row.doctor_id, names, placeholder),
        consultation_id=row.consultation_id,
        issued_at=parse_timestamp(row.issued_at),
        valid_until=row.valid_until,
        status=row.status,
        notes=row.notes,
        created_at=parse_timestamp(row.created_at),
        medications=[normalize_medication(item) for item in row.items],
    )


# =============================================================================
# Lab results
# =============================================================================


@dataclass(frozen=True)
class ScalarPayload:
    """Lab payload stored as a bare value ("Negative", 5.4)."""

    value: Any


@dataclass(frozen=True)
class ObjectPayload:
    """Lab payload stored as a JSON object with named fields."""

    fields: dict[str, Any]


LabPayload = ScalarPayload | ObjectPayload


def classify_lab_payload(raw: Any) -> LabPayload:
    """Decide once whether a lab payload is an object or a scalar.

    Objects stored as JSON text are decoded first. Arrays and other
    non-object values are treated as scalars.
    """
    decoded = decode_json_text(raw)
    if isinstance(decoded, dict):
        return ObjectPayload(decoded)
    return ScalarPayload(decoded)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _attachments(raw: Any) -> list[str]:
    decoded = decode_json_text(raw)
    if not isinstance(decoded, list):
        return []
    return [str(a) for a in decoded if a]


def normalize_lab_result(row: LabResultRow) -> LabResultView:
    """Extract display fields from a lab row.

    Examples:
        ``{"value": 5.4, "unit": "mg/dL"}`` -> result=5.4, unit="mg/dL"
        ``"Negative"`` -> result="Negative", unit=None
    """
    payload = classify_lab_payload(row.result)
    date = first_timestamp(row.reported_at, row.created_at)

    match payload:
        case ObjectPayload(fields=fields):
            return LabResultView(
                id=row.id,
                test_name=_text(read_first(fields, TEST_NAME_KEYS)) or row.result_type,
                result_type=row.result_type,
                result=read_first(fields, VALUE_KEYS),
                unit=_text(read_first(fields, UNIT_KEYS)),
                reference_range=read_first(fields, REFERENCE_RANGE_KEYS),
                comment=_text(read_first(fields, COMMENT_KEYS)),
                status=_text(read_first(fields, STATUS_KEYS)),
                is_critical=bool(row.is_critical),
                date=date,
                consultation_id=row.consultation_id,
                attachments=_attachments(row.attachments),
            )
        case ScalarPayload(value=value):
            return LabResultView(
                id=row.id,
                test_name=row.result_type,
                result_type=row.result_type,
                result=value,
                is_critical=bool(row.is_critical),
                date=date,
                consultation_id=row.consultation_id,
                attachments=_attachments(row.attachments),
            )
