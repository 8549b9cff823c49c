"""Appointment / consultation reconciliation.

Appointments and consultations are written independently and frequently
describe the same visit. The only link between them is the nullable
``consultation.appointment_id``. Reconciliation produces one ``Encounter``
per real-world visit:

- appointment with a linked consultation -> ``Merged``
- appointment without one -> ``AppointmentOnly``
- consultation without a visible linked appointment -> ``ConsultationOnly``

A consultation whose appointment is not visible to the caller (deleted, or
owned by another clinician under ``OwnedOnly``) stands alone and never
borrows schedule or billing data from it.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter, defaultdict
from typing import Any

from clinic_history.config import settings
from clinic_history.constants import CONSULTATION_ONLY_STATUS, DEFAULT_APPOINTMENT_STATUS
from clinic_history.exceptions import ReconciliationInvariantError
from clinic_history.repositories.rows import AppointmentRow, ConsultationRow
from clinic_history.schemas.history import DoctorRef, Encounter, EncounterKind, PatientRef
from clinic_history.services.access import AccessScope
from clinic_history.utils.payload import decode_json_text
from clinic_history.utils.timestamps import first_timestamp, parse_timestamp, recency_key

logger = logging.getLogger(__name__)


def _vitals(raw: Any) -> dict[str, Any] | None:
    decoded = decode_json_text(raw)
    return decoded if isinstance(decoded, dict) else None


def _recency_key(consultation: ConsultationRow):
    return (*recency_key(consultation.created_at), str(consultation.id))


def index_consultations_by_appointment(
    consultations: list[ConsultationRow],
) -> tuple[dict[uuid.UUID, ConsultationRow], list[ConsultationRow]]:
    """Index consultations by the appointment they reference.

    When several consultations reference the same appointment, the most
    recently created one wins (ties broken by id so the result does not
    depend on fetch order). The others are returned separately so they can
    surface as standalone encounters.

    Returns:
        Tuple of (appointment id -> winning consultation, displaced consultations).
    """
    by_appointment: dict[uuid.UUID, list[ConsultationRow]] = defaultdict(list)
    for consultation in consultations:
        if consultation.appointment_id is not None:
            by_appointment[consultation.appointment_id].append(consultation)

    index: dict[uuid.UUID, ConsultationRow] = {}
    displaced: list[ConsultationRow] = []
    for appointment_id, candidates in by_appointment.items():
        ranked = sorted(candidates, key=_recency_key, reverse=True)
        index[appointment_id] = ranked[0]
        if len(ranked) > 1:
            displaced.extend(ranked[1:])
            logger.warning(
                "%d consultations reference appointment %s; keeping most recent %s",
                len(ranked),
                appointment_id,
                ranked[0].id,
            )
    return index, displaced


def _appointment_only(
    appointment: AppointmentRow,
    patient: PatientRef,
    default_duration: int,
) -> Encounter:
    return Encounter(
        id=appointment.id,
        kind=EncounterKind.APPOINTMENT_ONLY,
        appointment_id=appointment.id,
        patient=patient,
        doctor=DoctorRef(id=appointment.doctor_id),
        organization_id=appointment.organization_id,
        scheduled_at=parse_timestamp(appointment.scheduled_at),
        created_at=parse_timestamp(appointment.created_at),
        status=appointment.status or DEFAULT_APPOINTMENT_STATUS,
        reason_or_complaint=appointment.reason,
        notes=appointment.notes,
        location=appointment.location,
        duration_minutes=appointment.duration_minutes or default_duration,
    )


def _consultation_only(
    consultation: ConsultationRow,
    patient: PatientRef,
    default_duration: int,
) -> Encounter:
    return Encounter(
        id=consultation.id,
        kind=EncounterKind.CONSULTATION_ONLY,
        consultation_id=consultation.id,
        patient=patient,
        doctor=DoctorRef(id=consultation.doctor_id),
        organization_id=consultation.organization_id,
        started_at=parse_timestamp(consultation.started_at),
        ended_at=parse_timestamp(consultation.ended_at),
        created_at=parse_timestamp(consultation.created_at),
        status=CONSULTATION_ONLY_STATUS,
        reason_or_complaint=consultation.chief_complaint,
        diagnosis=consultation.diagnosis,
        icd11_code=consultation.icd11_code,
        icd11_title=consultation.icd11_title,
        notes=consultation.notes,
        vitals=_vitals(consultation.vitals),
        duration_minutes=default_duration,
    )


def _merged(
    appointment: AppointmentRow,
    consultation: ConsultationRow,
    patient: PatientRef,
    default_duration: int,
) -> Encounter:
    # Appointment owns scheduling metadata; consultation owns clinical content.
    return Encounter(
        id=appointment.id,
        kind=EncounterKind.MERGED,
        appointment_id=appointment.id,
        consultation_id=consultation.id,
        patient=patient,
        doctor=DoctorRef(id=appointment.doctor_id),
        organization_id=appointment.organization_id or consultation.organization_id,
        scheduled_at=parse_timestamp(appointment.scheduled_at),
        started_at=parse_timestamp(consultation.started_at),
        ended_at=parse_timestamp(consultation.ended_at),
        created_at=first_timestamp(appointment.created_at, consultation.created_at),
        status=appointment.status or DEFAULT_APPOINTMENT_STATUS,
        reason_or_complaint=consultation.chief_complaint or appointment.reason,
        diagnosis=consultation.diagnosis,
        icd11_code=consultation.icd11_code,
        icd11_title=consultation.icd11_title,
        notes=consultation.notes or appointment.notes,
        vitals=_vitals(consultation.vitals),
        location=appointment.location,
        duration_minutes=appointment.duration_minutes or default_duration,
    )


def assert_unique_appointments(encounters: list[Encounter]) -> None:
    """Fail loudly if two encounters share a non-null appointment id.

    Raises:
        ReconciliationInvariantError: On any repeated appointment id.
    """
    counts = Counter(e.appointment_id for e in encounters if e.appointment_id is not None)
    repeated = [str(appointment_id) for appointment_id, n in counts.items() if n > 1]
    if repeated:
        raise ReconciliationInvariantError(
            f"Appointment ids repeated in timeline: {', '.join(sorted(repeated))}"
        )


def reconcile(
    appointments: list[AppointmentRow],
    consultations: list[ConsultationRow],
    patient: PatientRef,
    scope: AccessScope,
    default_duration: int | None = None,
) -> list[Encounter]:
    """Merge appointment and consultation rows into a deduplicated encounter set.

    Rows the scope does not admit are dropped before merging, so a visible
    consultation can only merge with an appointment the caller may see.

    Args:
        appointments: Appointment rows for the patient.
        consultations: Consultation rows for the patient.
        patient: Identity stamped on every encounter.
        scope: Access scope of the requesting clinician.
        default_duration: Duration used when the appointment has none.

    Returns:
        Encounters in source order (appointments first); ordering is applied later.
    """
    if default_duration is None:
        default_duration = settings.default_duration_minutes

    visible_appointments = [a for a in appointments if scope.admits(a.doctor_id)]
    visible_consultations = [c for c in consultations if scope.admits(c.doctor_id)]
    hidden = (len(appointments) - len(visible_appointments)) + (len(consultations) - len(visible_consultations))
    if hidden:
        logger.debug("Scope %r hid %d source rows", scope, hidden)

    visible_appointment_ids = {a.id for a in visible_appointments}
    linked = [c for c in visible_consultations if c.appointment_id in visible_appointment_ids]
    index, displaced = index_consultations_by_appointment(linked)

    encounters: list[Encounter] = []
    merged_consultation_ids: set[uuid.UUID] = set()
    for appointment in visible_appointments:
        consultation = index.get(appointment.id)
        if consultation is not None:
            encounters.append(_merged(appointment, consultation, patient, default_duration))
            merged_consultation_ids.add(consultation.id)
        else:
            encounters.append(_appointment_only(appointment, patient, default_duration))

    for consultation in visible_consultations:
        if consultation.id not in merged_consultation_ids:
            encounters.append(_consultation_only(consultation, patient, default_duration))

    if displaced:
        logger.info("%d duplicate-link consultations kept as standalone encounters", len(displaced))

    assert_unique_appointments(encounters)
    return encounters
