"""Per-patient summary counters.

Counters are computed from the enriched, scope-filtered sets, so a clinician
never sees counts for rows they cannot open. List mode folds a whole page
through the same function, keyed by patient id.
"""

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from clinic_history.schemas.history import (
    AggregateCounters,
    Encounter,
    EncounterKind,
    LabResultView,
    PrescriptionView,
)
from clinic_history.utils.timestamps import first_timestamp, update_last

CONSULTATION_KINDS = frozenset({EncounterKind.MERGED, EncounterKind.CONSULTATION_ONLY})


@dataclass
class PatientProjection:
    """Enriched, visible rows for one patient."""

    encounters: list[Encounter] = field(default_factory=list)
    prescriptions: list[PrescriptionView] = field(default_factory=list)
    lab_results: list[LabResultView] = field(default_factory=list)


def summarize(
    encounters: Iterable[Encounter],
    prescriptions: Iterable[PrescriptionView],
    lab_results: Iterable[LabResultView],
) -> AggregateCounters:
    """Compute counters and rolling-max timestamps for one patient."""
    counters = AggregateCounters()
    organizations: list[uuid.UUID] = []

    for encounter in encounters:
        if encounter.kind in CONSULTATION_KINDS:
            counters.consultations_count += 1
            counters.last_consultation_at = update_last(counters.last_consultation_at, encounter.effective_date)
        if encounter.billing is not None:
            counters.billings_count += 1
        if encounter.organization_id is not None and encounter.organization_id not in organizations:
            organizations.append(encounter.organization_id)

    for prescription in prescriptions:
        counters.prescriptions_count += 1
        counters.last_prescription_at = update_last(
            counters.last_prescription_at,
            first_timestamp(prescription.issued_at, prescription.created_at),
        )

    for lab in lab_results:
        counters.lab_results_count += 1
        counters.last_lab_result_at = update_last(counters.last_lab_result_at, lab.date)

    last_activity = None
    for ts in (counters.last_consultation_at, counters.last_prescription_at, counters.last_lab_result_at):
        last_activity = update_last(last_activity, ts)
    counters.last_activity_at = last_activity
    counters.organizations = organizations
    return counters


def summarize_page(projections: Mapping[uuid.UUID, PatientProjection]) -> dict[uuid.UUID, AggregateCounters]:
    """List-mode counters: one entry per patient on the page."""
    return {
        patient_id: summarize(p.encounters, p.prescriptions, p.lab_results)
        for patient_id, p in projections.items()
    }
