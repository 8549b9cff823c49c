"""Nurse daily queue entries.

A patient can be queued several times on the same day (re-triage, transfer
between rooms), so the raw table holds duplicates per visit.
"""

import uuid
from datetime import date

from sqlalchemy import Boolean, Date, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from clinic_history.database import Base


class NurseQueueEntry(Base):
    """One arrival in the daily nurse queue."""

    __tablename__ = "nurse_daily_queue"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    unregistered_patient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    queue_date: Mapped[date] = mapped_column(Date, nullable=False)
    arrival_time: Mapped[str | None] = mapped_column(String(16), nullable=True, comment="HH:MM[:SS] as entered")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="waiting")
    chief_complaint: Mapped[str | None] = mapped_column(Text, nullable=True)
    nurse_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    doctor_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    vital_signs_taken: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
