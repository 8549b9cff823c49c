"""Appointment and consultation source tables.

The two tables are written independently: an appointment is booked ahead of
time, a consultation is the clinician's free-form record of a visit. A
consultation may point at the appointment it fulfils through the nullable
``appointment_id`` column; nothing enforces that the link is unique.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from clinic_history.database import Base
from clinic_history.models.types import JsonDocument


class Appointment(Base):
    """Scheduled visit."""

    __tablename__ = "appointment"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # === Patient keys (exactly one is expected to be set) ===
    patient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    unregistered_patient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    # === Ownership ===
    doctor_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    organization_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # === Scheduling ===
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)

    # === Content ===
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_appointment_patient_doctor", "patient_id", "doctor_id"),)

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, doctor_id={self.doctor_id}, scheduled_at={self.scheduled_at})>"


class Consultation(Base):
    """Clinician's record of a visit."""

    __tablename__ = "consultation"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("appointment.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    patient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    unregistered_patient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    doctor_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    organization_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # === Clinical content ===
    chief_complaint: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnosis: Mapped[str | None] = mapped_column(Text, nullable=True)
    icd11_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    icd11_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    vitals: Mapped[dict[str, Any] | None] = mapped_column(JsonDocument, nullable=True)

    # === Timing ===
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_consultation_patient_doctor", "patient_id", "doctor_id"),)

    def __repr__(self) -> str:
        return f"<Consultation(id={self.id}, appointment_id={self.appointment_id})>"
