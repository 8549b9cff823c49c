"""Patient identity normalization.

A patient id may belong to a registered patient or to a walk-in
(unregistered) record, and the source tables key their rows on different
columns for each. Downstream fetches always go through ``patient_keys`` so
no caller assumes a uniform key.
"""

import logging
import uuid
from collections import defaultdict

from clinic_history.exceptions import PatientNotFoundError
from clinic_history.models import Patient
from clinic_history.repositories.patient import PatientRepository
from clinic_history.repositories.rows import PatientKeys
from clinic_history.schemas.history import PatientRef, RegisteredPatient, UnregisteredPatient

logger = logging.getLogger(__name__)


async def normalize_patient_identity(repo: PatientRepository, patient_id: uuid.UUID) -> PatientRef:
    """Resolve a raw patient id to a registered or unregistered identity.

    A registered patient keeps a link to the walk-in record it was created
    from. When the explicit link is missing, the walk-in record with the same
    national identifier is used instead.

    Raises:
        PatientNotFoundError: If neither store has the id.
    """
    registered = await repo.get_registered(patient_id)
    if registered is not None:
        linked = registered.unregistered_patient_id
        if linked is None and registered.identifier:
            matches = await repo.unregistered_ids_by_identification([registered.identifier])
            linked = matches.get(registered.identifier)
            if linked is not None:
                logger.info(
                    "Linked patient %s to walk-in record %s by identifier",
                    registered.id,
                    linked,
                )
        return RegisteredPatient(id=registered.id, linked_unregistered_id=linked)

    unregistered = await repo.get_unregistered(patient_id)
    if unregistered is not None:
        return UnregisteredPatient(id=unregistered.id)

    raise PatientNotFoundError(patient_id)


async def resolve_roster_identities(
    repo: PatientRepository,
    patients: list[Patient],
) -> dict[uuid.UUID, RegisteredPatient]:
    """Batched variant of ``normalize_patient_identity`` for a page of registered patients.

    Issues at most one query, for the identifier fallback of patients
    without an explicit walk-in link.
    """
    needs_lookup = [p.identifier for p in patients if p.unregistered_patient_id is None and p.identifier]
    by_identifier = await repo.unregistered_ids_by_identification(needs_lookup) if needs_lookup else {}

    identities: dict[uuid.UUID, RegisteredPatient] = {}
    for patient in patients:
        linked = patient.unregistered_patient_id
        if linked is None and patient.identifier:
            linked = by_identifier.get(patient.identifier)
        identities[patient.id] = RegisteredPatient(id=patient.id, linked_unregistered_id=linked)
    return identities


def patient_keys(*patients: PatientRef) -> PatientKeys:
    """Collect the column values that identify rows belonging to the given patients."""
    patient_ids: set[uuid.UUID] = set()
    unregistered_ids: set[uuid.UUID] = set()
    for patient in patients:
        if isinstance(patient, RegisteredPatient):
            patient_ids.add(patient.id)
            if patient.linked_unregistered_id is not None:
                unregistered_ids.add(patient.linked_unregistered_id)
        else:
            unregistered_ids.add(patient.id)
    return PatientKeys(frozenset(patient_ids), frozenset(unregistered_ids))


class PatientKeyIndex:
    """Maps row patient columns back to the roster patients they belong to.

    Several registered patients may link to the same walk-in record; rows
    filed on it belong to each of them.
    """

    def __init__(self, patients: list[PatientRef]):
        self._by_patient_id: dict[uuid.UUID, set[uuid.UUID]] = defaultdict(set)
        self._by_unregistered_id: dict[uuid.UUID, set[uuid.UUID]] = defaultdict(set)
        for patient in patients:
            if isinstance(patient, RegisteredPatient):
                self._by_patient_id[patient.id].add(patient.id)
                if patient.linked_unregistered_id is not None:
                    self._by_unregistered_id[patient.linked_unregistered_id].add(patient.id)
            else:
                self._by_unregistered_id[patient.id].add(patient.id)

    def owners(self, row) -> set[uuid.UUID]:
        """Roster ids a row belongs to (by either key column)."""
        return self._by_patient_id.get(row.patient_id, set()) | self._by_unregistered_id.get(
            row.unregistered_patient_id, set()
        )
