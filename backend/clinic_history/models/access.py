"""Full-access grants.

A grant is created after the patient reads a one-time code to the clinician
(outside this service). It unlocks the patient's complete history for that
clinician until it expires or is revoked.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from clinic_history.database import Base


class MedicalAccessGrant(Base):
    """Time-boxed authorization for one clinician over one patient."""

    __tablename__ = "medical_access_grant"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    doctor_id: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    granted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_grant_doctor_patient", "doctor_id", "patient_id"),)
