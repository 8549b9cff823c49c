"""Tests for per-day nurse queue dedup."""

import uuid
from datetime import date

from clinic_history.repositories.rows import QueueEntryRow
from clinic_history.services.queue_history import dedupe_queue_visits, has_interaction


def _entry(queue_date, arrival_time="09:00", status="completed", **overrides) -> QueueEntryRow:
    values = dict(
        id=uuid.uuid4(),
        queue_date=queue_date,
        arrival_time=arrival_time,
        status=status,
        chief_complaint=None,
        nurse_notes=None,
        doctor_name=None,
        vital_signs_taken=False,
    )
    values.update(overrides)
    return QueueEntryRow(**values)


class TestHasInteraction:
    """Tests for what counts as an attended visit."""

    def test_waiting_without_activity(self):
        assert not has_interaction(_entry(date(2024, 1, 1), status="waiting"))
        assert not has_interaction(_entry(date(2024, 1, 1), status="in_progress", nurse_notes="   "))

    def test_activity_signals(self):
        assert has_interaction(_entry(date(2024, 1, 1), status="waiting", vital_signs_taken=True))
        assert has_interaction(_entry(date(2024, 1, 1), status="waiting", nurse_notes="BP stable"))
        assert has_interaction(_entry(date(2024, 1, 1), status="transferred"))


class TestDedupeQueueVisits:
    """Tests for dedupe_queue_visits."""

    def test_latest_arrival_per_day(self):
        day = date(2024, 2, 10)
        morning = _entry(day, "08:15", chief_complaint="fever")
        afternoon = _entry(day, "14:40", chief_complaint="follow-up")

        visits = dedupe_queue_visits([morning, afternoon], limit=10)

        assert len(visits) == 1
        assert visits[0].chief_complaint == "follow-up"

    def test_skips_entries_without_interaction(self):
        day = date(2024, 2, 10)
        attended = _entry(day, "08:15", chief_complaint="attended")
        abandoned = _entry(day, "16:00", status="waiting")

        [visit] = dedupe_queue_visits([abandoned, attended], limit=10)

        assert visit.chief_complaint == "attended"

    def test_days_descending_and_limited(self):
        entries = [_entry(date(2024, 1, d)) for d in (3, 1, 5, 2, 4)]

        visits = dedupe_queue_visits(entries, limit=3)

        assert [v.queue_date for v in visits] == [date(2024, 1, 5), date(2024, 1, 4), date(2024, 1, 3)]

    def test_unparseable_arrival_loses_to_valid_time(self):
        day = date(2024, 3, 3)
        garbled = _entry(day, "tarde", chief_complaint="garbled")
        timed = _entry(day, "07:00", chief_complaint="timed")

        [visit] = dedupe_queue_visits([garbled, timed], limit=10)

        assert visit.chief_complaint == "timed"
