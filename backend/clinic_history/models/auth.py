"""Read-only model for the authentication session table.

Sessions are written by the authentication service. This API only reads
them to validate bearer tokens.
"""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from clinic_history.database import Base


class ClinicianSession(Base):
    """Bearer-token session for a signed-in user."""

    __tablename__ = "session"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    token: Mapped[str] = mapped_column(Text, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
