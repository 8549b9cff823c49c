"""Nurse queue fetcher."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_history.models import NurseQueueEntry
from clinic_history.repositories.encounter import patient_filter
from clinic_history.repositories.rows import PatientKeys, QueueEntryRow

# Raw rows scanned before per-day dedup
QUEUE_SCAN_LIMIT = 30


class QueueRepository:
    """Read-only access to the nurse daily queue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def fetch_queue_entries(
        self,
        keys: PatientKeys,
        limit: int = QUEUE_SCAN_LIMIT,
    ) -> list[QueueEntryRow]:
        """Fetch the most recent queue entries for the patient keys."""
        if not keys:
            return []
        query = (
            select(NurseQueueEntry)
            .where(patient_filter(NurseQueueEntry, keys))
            .order_by(NurseQueueEntry.queue_date.desc(), NurseQueueEntry.arrival_time.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [QueueEntryRow.from_model(e) for e in result.scalars().all()]
