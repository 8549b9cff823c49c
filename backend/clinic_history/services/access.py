"""Access scope resolution.

The scope decides which source rows a clinician may see for a patient:

- ``FullAccess``: a valid full-access grant exists; every row is visible.
- ``OwnedOnly``: no grant, but the clinician authored at least one
  appointment or consultation for the patient; only their own rows are
  visible.
- ``NoAccess``: neither; the request is denied.

Scopes are computed per request and never cached, because grants expire.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from clinic_history.repositories.access import AccessGrantRepository
from clinic_history.repositories.encounter import EncounterRepository
from clinic_history.repositories.rows import LabResultRow
from clinic_history.schemas.history import PatientRef, RegisteredPatient
from clinic_history.services.identity import patient_keys

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoAccess:
    """The clinician may not see this patient."""

    owner_filter = None

    def admits(self, doctor_id: str | None) -> bool:
        return False


@dataclass(frozen=True)
class OwnedOnly:
    """Only rows authored by ``clinician_id`` are visible."""

    clinician_id: str

    @property
    def owner_filter(self) -> str:
        return self.clinician_id

    def admits(self, doctor_id: str | None) -> bool:
        return doctor_id == self.clinician_id


@dataclass(frozen=True)
class FullAccess:
    """Every row for the patient is visible."""

    owner_filter = None

    def admits(self, doctor_id: str | None) -> bool:
        return True


AccessScope = NoAccess | OwnedOnly | FullAccess


def scope_label(scope: AccessScope) -> str:
    """Wire label for a granted scope."""
    return "full_access" if isinstance(scope, FullAccess) else "owned_only"


async def check_grant(
    grants: AccessGrantRepository,
    clinician_id: str,
    patient_id: uuid.UUID,
    now: datetime,
) -> bool:
    """Check for a valid full-access grant, failing closed on fetch errors."""
    try:
        return await grants.check_full_access_grant(clinician_id, patient_id, now)
    except SQLAlchemyError as e:
        logger.warning(
            "Grant check failed for clinician %s / patient %s, treating as no grant: %s",
            clinician_id,
            patient_id,
            e,
        )
        return False


async def resolve_access_scope(
    grants: AccessGrantRepository,
    encounters: EncounterRepository,
    clinician_id: str,
    patient: PatientRef,
    now: datetime,
) -> AccessScope:
    """Decide the visibility tier of a clinician over a patient.

    Grants are issued against registered patient ids, so walk-in patients
    can only be reached through ownership.
    """
    if isinstance(patient, RegisteredPatient) and await check_grant(grants, clinician_id, patient.id, now):
        logger.info("Full access for clinician %s on patient %s via grant", clinician_id, patient.id)
        return FullAccess()

    if await encounters.has_owned_encounter(patient_keys(patient), clinician_id):
        return OwnedOnly(clinician_id)

    return NoAccess()


def visible_lab_results(
    labs: list[LabResultRow],
    scope: AccessScope,
    visible_consultation_ids: set[uuid.UUID],
) -> list[LabResultRow]:
    """Filter lab rows by scope.

    Lab rows have no owner of their own. Under ``OwnedOnly`` a lab result
    attached to a consultation is visible only if that consultation is;
    results uploaded without a consultation stay visible.
    """
    if isinstance(scope, FullAccess):
        return list(labs)
    if isinstance(scope, NoAccess):
        return []
    return [
        lab
        for lab in labs
        if lab.consultation_id is None or lab.consultation_id in visible_consultation_ids
    ]
