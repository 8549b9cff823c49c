"""Patient identity and roster queries."""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_history.models import Patient, UnregisteredPatient


class PatientRepository:
    """Read-only access to registered and unregistered patient records."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session.

        Args:
            db: Async SQLAlchemy session.
        """
        self.db = db

    async def get_registered(self, patient_id: uuid.UUID) -> Patient | None:
        """Get a registered patient by id."""
        result = await self.db.execute(select(Patient).where(Patient.id == patient_id))
        return result.scalar_one_or_none()

    async def get_unregistered(self, patient_id: uuid.UUID) -> UnregisteredPatient | None:
        """Get an unregistered (walk-in) patient by id."""
        result = await self.db.execute(
            select(UnregisteredPatient).where(UnregisteredPatient.id == patient_id)
        )
        return result.scalar_one_or_none()

    async def unregistered_ids_by_identification(
        self,
        identifiers: Iterable[str],
    ) -> dict[str, uuid.UUID]:
        """Map national identifiers to walk-in record ids in one query.

        When several walk-in records share an identifier the oldest wins.
        """
        values = sorted({i for i in identifiers if i})
        if not values:
            return {}
        result = await self.db.execute(
            select(UnregisteredPatient.identification, UnregisteredPatient.id)
            .where(UnregisteredPatient.identification.in_(values))
            .order_by(UnregisteredPatient.created_at.asc())
        )
        mapping: dict[str, uuid.UUID] = {}
        for identification, unregistered_id in result.all():
            mapping.setdefault(identification, unregistered_id)
        return mapping

    async def list_patients(
        self,
        offset: int,
        limit: int,
        q: str | None = None,
        gender: str | None = None,
    ) -> tuple[list[Patient], int]:
        """List registered patients, newest first.

        Args:
            offset: Number of rows to skip.
            limit: Maximum rows to return.
            q: Case-insensitive substring over first name, last name, identifier.
            gender: Exact gender filter.

        Returns:
            Tuple of (patients on this page, total matching).
        """
        query = select(Patient)
        count_query = select(func.count()).select_from(Patient)

        if q:
            pattern = f"%{q.strip()}%"
            search = or_(
                Patient.first_name.ilike(pattern),
                Patient.last_name.ilike(pattern),
                Patient.identifier.ilike(pattern),
            )
            query = query.where(search)
            count_query = count_query.where(search)

        if gender:
            query = query.where(Patient.gender == gender)
            count_query = count_query.where(Patient.gender == gender)

        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        query = query.order_by(Patient.created_at.desc(), Patient.id).offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total
