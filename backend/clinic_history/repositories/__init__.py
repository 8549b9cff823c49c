"""Repository layer for data access.

Repositories wrap read-only queries against the clinic stores and return
plain row records, so the projection pipeline never handles ORM objects.
"""

from clinic_history.repositories.access import AccessGrantRepository
from clinic_history.repositories.encounter import EncounterRepository
from clinic_history.repositories.patient import PatientRepository
from clinic_history.repositories.queue import QueueRepository

__all__ = [
    "AccessGrantRepository",
    "EncounterRepository",
    "PatientRepository",
    "QueueRepository",
]
