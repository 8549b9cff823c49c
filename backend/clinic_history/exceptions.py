"""Error taxonomy for the history projection.

Access denial and upstream failures are raised to callers and mapped to
distinct HTTP statuses by the routes. Data-quality anomalies are only logged,
and malformed timestamps never leave ``parse_timestamp``.
"""

import uuid


class HistoryError(Exception):
    """Base class for history projection errors."""


class PatientNotFoundError(HistoryError):
    """Raised when a patient id matches neither a registered nor an unregistered record."""

    def __init__(self, patient_id: uuid.UUID):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} not found")


class AccessDeniedError(HistoryError):
    """Raised when the clinician has no encounter with the patient and no valid grant."""

    def __init__(self, patient_id: uuid.UUID, clinician_id: str):
        self.patient_id = patient_id
        self.clinician_id = clinician_id
        super().__init__(f"Clinician {clinician_id} has no access to patient {patient_id}")


class UpstreamFetchError(HistoryError):
    """Raised when a required source fetch fails.

    Attributes:
        source: Name of the failing fetcher (e.g. 'consultations').
    """

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Failed to fetch {source}")


class ReconciliationInvariantError(AssertionError):
    """Raised when a reconciled timeline repeats an appointment id."""
