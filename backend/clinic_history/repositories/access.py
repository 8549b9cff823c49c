"""Full-access grant lookups."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_history.models import MedicalAccessGrant


def _valid_at(now: datetime) -> ColumnElement[bool]:
    return and_(
        MedicalAccessGrant.is_active.is_(True),
        MedicalAccessGrant.revoked_at.is_(None),
        or_(
            MedicalAccessGrant.expires_at.is_(None),
            MedicalAccessGrant.expires_at > now,
        ),
    )


class AccessGrantRepository:
    """Read-only queries over medical access grants.

    Grants are created elsewhere once the patient's one-time code has been
    verified; this repository only answers whether one is valid right now.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_full_access_grant(
        self,
        clinician_id: str,
        patient_id: uuid.UUID,
        now: datetime,
    ) -> bool:
        """Return True if an active, unexpired, unrevoked grant exists."""
        result = await self.db.execute(
            select(MedicalAccessGrant.id)
            .where(
                MedicalAccessGrant.doctor_id == clinician_id,
                MedicalAccessGrant.patient_id == patient_id,
                _valid_at(now),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def granted_patient_ids(
        self,
        clinician_id: str,
        patient_ids: Iterable[uuid.UUID],
        now: datetime,
    ) -> set[uuid.UUID]:
        """Return the subset of patient_ids the clinician holds a valid grant for."""
        ids = sorted(set(patient_ids))
        if not ids:
            return set()
        result = await self.db.execute(
            select(MedicalAccessGrant.patient_id)
            .where(
                MedicalAccessGrant.doctor_id == clinician_id,
                MedicalAccessGrant.patient_id.in_(ids),
                _valid_at(now),
            )
            .distinct()
        )
        return set(result.scalars().all())
