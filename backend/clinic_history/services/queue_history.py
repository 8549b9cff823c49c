"""Per-day dedup of nurse queue entries.

The queue holds one row per arrival, and a patient is often re-queued on
the same day. A visit is only meaningful once something happened: vitals
were taken, the nurse wrote notes, or the entry moved past the waiting
states.
"""

from collections.abc import Iterable
from datetime import date, time

from clinic_history.constants import PENDING_QUEUE_STATUSES
from clinic_history.repositories.rows import QueueEntryRow
from clinic_history.schemas.queue import QueueVisit
from clinic_history.utils.timestamps import parse_clock_time


def has_interaction(entry: QueueEntryRow) -> bool:
    if entry.vital_signs_taken:
        return True
    if entry.nurse_notes and entry.nurse_notes.strip():
        return True
    return entry.status not in PENDING_QUEUE_STATUSES


def _arrival_key(entry: QueueEntryRow):
    arrival = parse_clock_time(entry.arrival_time)
    return (entry.queue_date, arrival is not None, arrival or time.min)


def dedupe_queue_visits(entries: Iterable[QueueEntryRow], limit: int) -> list[QueueVisit]:
    """Keep the latest meaningful entry per queue date, most recent day first.

    Args:
        entries: Raw queue rows in any order.
        limit: Maximum number of days returned.

    Returns:
        At most ``limit`` visits, one per date.
    """
    ordered = sorted(
        (e for e in entries if has_interaction(e)),
        key=_arrival_key,
        reverse=True,
    )
    seen: set[date] = set()
    visits: list[QueueVisit] = []
    for entry in ordered:
        if entry.queue_date in seen:
            continue
        seen.add(entry.queue_date)
        visits.append(
            QueueVisit(
                queue_date=entry.queue_date,
                arrival_time=entry.arrival_time,
                status=entry.status,
                chief_complaint=entry.chief_complaint,
                nurse_notes=entry.nurse_notes,
                doctor_name=entry.doctor_name,
                vital_signs_taken=entry.vital_signs_taken,
            )
        )
        if len(visits) >= limit:
            break
    return visits
