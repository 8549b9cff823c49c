"""Most-recent-first ordering with a timestamp fallback chain."""

from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from clinic_history.schemas.history import Encounter, LabResultView, PrescriptionView
from clinic_history.utils.timestamps import first_timestamp, recency_key

T = TypeVar("T")


def order_by_timestamp(items: Iterable[T], timestamp: Callable[[T], Any]) -> list[T]:
    """Sort descending by ``timestamp(item)``.

    Items whose timestamp is missing or unparseable sort last. The sort is
    stable, so ties keep their input order.
    """
    return sorted(items, key=lambda item: recency_key(timestamp(item)), reverse=True)


def order_encounters(encounters: Iterable[Encounter]) -> list[Encounter]:
    """Order by effective date: scheduled_at, then started_at, then created_at."""
    return order_by_timestamp(encounters, lambda e: e.effective_date)


def order_prescriptions(prescriptions: Iterable[PrescriptionView]) -> list[PrescriptionView]:
    return order_by_timestamp(prescriptions, lambda p: first_timestamp(p.issued_at, p.created_at))


def order_lab_results(labs: Iterable[LabResultView]) -> list[LabResultView]:
    return order_by_timestamp(labs, lambda lab: lab.date)
