"""Read-only source fetchers for the history projection.

Every method issues a single statement batched with ``IN`` over the patient
keys (or appointment / doctor ids), so callers can fetch a whole page of
patients without per-row queries.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from sqlalchemy import ColumnElement, exists, false, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from clinic_history.models import (
    Appointment,
    Billing,
    Consultation,
    LabResult,
    Prescription,
    User,
)
from clinic_history.repositories.rows import (
    AppointmentRow,
    BillingRow,
    ConsultationRow,
    LabResultRow,
    PatientKeys,
    PrescriptionRow,
)


def patient_filter(model, keys: PatientKeys) -> ColumnElement[bool]:
    """Build ``patient_id IN (...) OR unregistered_patient_id IN (...)`` for a model."""
    clauses = []
    if keys.patient_ids:
        clauses.append(model.patient_id.in_(sorted(keys.patient_ids)))
    if keys.unregistered_ids:
        clauses.append(model.unregistered_patient_id.in_(sorted(keys.unregistered_ids)))
    if not clauses:
        return false()
    return or_(*clauses)


class EncounterRepository:
    """Fetches appointment, consultation, prescription, lab, billing and doctor rows."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session.

        Args:
            db: Async SQLAlchemy session.
        """
        self.db = db

    async def fetch_appointments(
        self,
        keys: PatientKeys,
        owner_id: str | None = None,
    ) -> list[AppointmentRow]:
        """Fetch appointments for the patient keys, optionally only those owned by a clinician."""
        if not keys:
            return []
        query = select(Appointment).where(patient_filter(Appointment, keys))
        if owner_id is not None:
            query = query.where(Appointment.doctor_id == owner_id)
        query = query.order_by(Appointment.scheduled_at.desc())

        result = await self.db.execute(query)
        return [AppointmentRow.from_model(a) for a in result.scalars().all()]

    async def fetch_consultations(
        self,
        keys: PatientKeys,
        owner_id: str | None = None,
    ) -> list[ConsultationRow]:
        """Fetch consultations for the patient keys, optionally only those owned by a clinician."""
        if not keys:
            return []
        query = select(Consultation).where(patient_filter(Consultation, keys))
        if owner_id is not None:
            query = query.where(Consultation.doctor_id == owner_id)
        query = query.order_by(Consultation.created_at.desc())

        result = await self.db.execute(query)
        return [ConsultationRow.from_model(c) for c in result.scalars().all()]

    async def fetch_prescriptions(
        self,
        keys: PatientKeys,
        owner_id: str | None = None,
    ) -> list[PrescriptionRow]:
        """Fetch prescriptions with their line items eagerly loaded."""
        if not keys:
            return []
        query = (
            select(Prescription)
            .options(selectinload(Prescription.items))
            .where(patient_filter(Prescription, keys))
        )
        if owner_id is not None:
            query = query.where(Prescription.doctor_id == owner_id)
        query = query.order_by(Prescription.created_at.desc())

        result = await self.db.execute(query)
        return [PrescriptionRow.from_model(p) for p in result.scalars().unique().all()]

    async def fetch_lab_results(self, keys: PatientKeys) -> list[LabResultRow]:
        """Fetch lab results for the patient keys.

        Lab rows carry no owning clinician; visibility is decided later from
        the consultation they are attached to.
        """
        if not keys:
            return []
        query = (
            select(LabResult)
            .where(patient_filter(LabResult, keys))
            .order_by(LabResult.created_at.desc())
        )
        result = await self.db.execute(query)
        return [LabResultRow.from_model(r) for r in result.scalars().all()]

    async def fetch_billing(self, appointment_ids: Iterable[uuid.UUID]) -> list[BillingRow]:
        """Fetch billing rows for a set of appointments in one query."""
        ids = sorted(set(appointment_ids))
        if not ids:
            return []
        query = (
            select(Billing)
            .where(Billing.appointment_id.in_(ids))
            .order_by(Billing.created_at.desc())
        )
        result = await self.db.execute(query)
        return [BillingRow.from_model(b) for b in result.scalars().all()]

    async def resolve_doctor_names(self, doctor_ids: Iterable[str]) -> dict[str, str | None]:
        """Map doctor ids to display names. Unknown ids are absent from the result."""
        ids = sorted(set(doctor_ids))
        if not ids:
            return {}
        result = await self.db.execute(select(User.id, User.name).where(User.id.in_(ids)))
        return {row.id: row.name for row in result.all()}

    async def has_owned_encounter(self, keys: PatientKeys, clinician_id: str) -> bool:
        """Check whether the clinician authored any appointment or consultation for the patient."""
        if not keys:
            return False
        owns_appointment = exists().where(
            patient_filter(Appointment, keys),
            Appointment.doctor_id == clinician_id,
        )
        owns_consultation = exists().where(
            patient_filter(Consultation, keys),
            Consultation.doctor_id == clinician_id,
        )
        result = await self.db.execute(select(or_(owns_appointment, owns_consultation)))
        return bool(result.scalar())
