"""Lab results with a semi-structured result payload."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from clinic_history.database import Base
from clinic_history.models.types import JsonDocument


class LabResult(Base):
    """Lab result row.

    ``result`` is whatever the uploader sent: an object with value/unit/range
    keys (in camelCase or snake_case), or a bare scalar such as "Negative".
    """

    __tablename__ = "lab_result"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    unregistered_patient_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    consultation_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("consultation.id", ondelete="SET NULL"),
        nullable=True,
    )
    result_type: Mapped[str | None] = mapped_column(String(120), nullable=True)
    result: Mapped[Any] = mapped_column(JsonDocument, nullable=True)
    attachments: Mapped[list[str] | None] = mapped_column(JsonDocument, nullable=True)
    is_critical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reported_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())
