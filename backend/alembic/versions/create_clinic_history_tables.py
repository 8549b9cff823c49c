"""create clinic history source tables

Patients, the clinician directory, sessions, appointments, consultations,
prescriptions, lab results, billing, access grants and the nurse queue.
Most of these are owned by other services; they are created here so the
read side has an explicit schema to migrate against.

Revision ID: create_clinic_history_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence
from typing import Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "create_clinic_history_tables"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamp(name: str, server_default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=True,
        server_default=sa.func.now() if server_default else None,
    )


def _patient_keys() -> list[sa.Column]:
    return [
        sa.Column("patient_id", sa.Uuid(), nullable=True),
        sa.Column("unregistered_patient_id", sa.Uuid(), nullable=True),
    ]


def upgrade() -> None:
    # --- identity ---
    op.create_table(
        "unregisteredpatients",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("identification", sa.String(64), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        _timestamp("created_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_unregisteredpatients_identification", "unregisteredpatients", ["identification"])

    op.create_table(
        "patient",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("identifier", sa.String(64), nullable=True),
        sa.Column("dob", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(32), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("unregistered_patient_id", sa.Uuid(), nullable=True),
        _timestamp("created_at", server_default=True),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["unregistered_patient_id"], ["unregisteredpatients.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_patient_identifier", "patient", ["identifier"])

    op.create_table(
        "app_user",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("role", sa.String(32), nullable=False, server_default="MEDICO"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "session",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_session_token", "session", ["token"], unique=True)
    op.create_index("ix_session_user_id", "session", ["user_id"])

    # --- encounters ---
    op.create_table(
        "appointment",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_patient_keys(),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        _timestamp("scheduled_at"),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointment_patient_id", "appointment", ["patient_id"])
    op.create_index("ix_appointment_unregistered_patient_id", "appointment", ["unregistered_patient_id"])
    op.create_index("ix_appointment_doctor_id", "appointment", ["doctor_id"])
    op.create_index("idx_appointment_patient_doctor", "appointment", ["patient_id", "doctor_id"])

    op.create_table(
        "consultation",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("appointment_id", sa.Uuid(), nullable=True),
        *_patient_keys(),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("diagnosis", sa.Text(), nullable=True),
        sa.Column("icd11_code", sa.String(32), nullable=True),
        sa.Column("icd11_title", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("vitals", JSON_DOCUMENT, nullable=True),
        _timestamp("started_at"),
        _timestamp("ended_at"),
        _timestamp("created_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointment.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_consultation_appointment_id", "consultation", ["appointment_id"])
    op.create_index("ix_consultation_patient_id", "consultation", ["patient_id"])
    op.create_index("ix_consultation_unregistered_patient_id", "consultation", ["unregistered_patient_id"])
    op.create_index("ix_consultation_doctor_id", "consultation", ["doctor_id"])
    op.create_index("idx_consultation_patient_doctor", "consultation", ["patient_id", "doctor_id"])

    # --- prescriptions and labs ---
    op.create_table(
        "prescription",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_patient_keys(),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("consultation_id", sa.Uuid(), nullable=True),
        _timestamp("issued_at"),
        sa.Column("valid_until", sa.Date(), nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["consultation_id"], ["consultation.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_prescription_patient_id", "prescription", ["patient_id"])
    op.create_index("ix_prescription_unregistered_patient_id", "prescription", ["unregistered_patient_id"])
    op.create_index("ix_prescription_doctor_id", "prescription", ["doctor_id"])

    op.create_table(
        "prescription_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("prescription_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("dosage", sa.Text(), nullable=True),
        sa.Column("form", sa.Text(), nullable=True),
        sa.Column("frequency", sa.Text(), nullable=True),
        sa.Column("duration", sa.Text(), nullable=True),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["prescription_id"], ["prescription.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_prescription_item_prescription_id", "prescription_item", ["prescription_id"])

    op.create_table(
        "lab_result",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_patient_keys(),
        sa.Column("consultation_id", sa.Uuid(), nullable=True),
        sa.Column("result_type", sa.String(120), nullable=True),
        sa.Column("result", JSON_DOCUMENT, nullable=True),
        sa.Column("attachments", JSON_DOCUMENT, nullable=True),
        sa.Column("is_critical", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("reported_at"),
        _timestamp("created_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["consultation_id"], ["consultation.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_lab_result_patient_id", "lab_result", ["patient_id"])
    op.create_index("ix_lab_result_unregistered_patient_id", "lab_result", ["unregistered_patient_id"])

    # --- billing, grants, queue ---
    op.create_table(
        "facturacion",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("appointment_id", sa.Uuid(), nullable=True),
        sa.Column("patient_id", sa.Uuid(), nullable=True),
        sa.Column("doctor_id", sa.Text(), nullable=True),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("total", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(8), nullable=True),
        sa.Column("estado_pago", sa.String(32), nullable=True),
        _timestamp("fecha_pago"),
        _timestamp("created_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_facturacion_appointment_id", "facturacion", ["appointment_id"])
    op.create_index("ix_facturacion_patient_id", "facturacion", ["patient_id"])

    op.create_table(
        "medical_access_grant",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("granted_at", server_default=True),
        _timestamp("expires_at"),
        _timestamp("revoked_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_grant_doctor_patient", "medical_access_grant", ["doctor_id", "patient_id"])

    op.create_table(
        "nurse_daily_queue",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_patient_keys(),
        sa.Column("queue_date", sa.Date(), nullable=False),
        sa.Column("arrival_time", sa.String(16), nullable=True, comment="HH:MM[:SS] as entered"),
        sa.Column("status", sa.String(32), nullable=False, server_default="waiting"),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("nurse_notes", sa.Text(), nullable=True),
        sa.Column("doctor_name", sa.Text(), nullable=True),
        sa.Column("vital_signs_taken", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_nurse_daily_queue_patient_id", "nurse_daily_queue", ["patient_id"])
    op.create_index("ix_nurse_daily_queue_unregistered_patient_id", "nurse_daily_queue", ["unregistered_patient_id"])


def downgrade() -> None:
    for table in (
        "nurse_daily_queue",
        "medical_access_grant",
        "facturacion",
        "lab_result",
        "prescription_item",
        "prescription",
        "consultation",
        "appointment",
        "session",
        "app_user",
        "patient",
        "unregisteredpatients",
    ):
        op.drop_table(table)
