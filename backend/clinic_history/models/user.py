"""Clinician directory (read-only)."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clinic_history.database import Base


class User(Base):
    """Platform user. Doctors are users with role MEDICO."""

    __tablename__ = "app_user"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="MEDICO")
