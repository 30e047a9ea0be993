"""Initial migration - create scheduling tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Directories (maintained by other services, read here)
    op.create_table(
        "patients",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("consultation_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "professionals",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("specialty", sa.VARCHAR(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Appointments
    op.create_table(
        "appointments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_name", sa.Text(), nullable=False),
        sa.Column("professional_id", postgresql.UUID(), nullable=False),
        sa.Column("professional_name", sa.Text(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), server_default=sa.text("60"), nullable=False),
        sa.Column(
            "consultation_type", sa.VARCHAR(length=20), server_default="follow-up", nullable=False
        ),
        sa.Column("status", sa.VARCHAR(length=20), server_default="scheduled", nullable=False),
        sa.Column("series_id", sa.VARCHAR(length=64), nullable=True),
        sa.Column(
            "is_substitution", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("original_appointment_id", postgresql.UUID(), nullable=True),
        sa.Column("replaced_patient_id", postgresql.UUID(), nullable=True),
        sa.Column("replaced_patient_name", sa.Text(), nullable=True),
        sa.Column("substitution_reason", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("canceled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'in-progress', 'completed', 'canceled', "
            "'no-show')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "consultation_type IN ('first-visit', 'follow-up', 'exam', 'procedure')",
            name="appointments_consultation_type_check",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
        sa.UniqueConstraint(
            "original_appointment_id", name="uq_appointments_original_appointment_id"
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "idx_appointments_professional_date", "appointments", ["professional_id", "date"]
    )
    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("idx_appointments_series_id", "appointments", ["series_id"])

    # Audit trail (no FK so history of deleted appointments is kept)
    op.create_table(
        "appointment_events",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column(
            "occurred_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("actor", sa.Text(), nullable=True),
        sa.Column("event_type", sa.VARCHAR(length=40), nullable=False),
        sa.Column("detail", sa.JSON(), server_default=sa.text("'{}'"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_appointment_events_appointment_id",
        "appointment_events",
        ["appointment_id", "occurred_at"],
    )

    # Billing
    op.create_table(
        "payments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("appointment_id", postgresql.UUID(), nullable=True),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_name", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("amount_paid", sa.Numeric(10, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("status", sa.VARCHAR(length=20), server_default="pending", nullable=False),
        sa.Column("payment_method", sa.VARCHAR(length=20), server_default="cash", nullable=False),
        sa.Column("type", sa.VARCHAR(length=20), server_default="consultation", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'partial', 'overdue', 'canceled')",
            name="payments_status_check",
        ),
        sa.UniqueConstraint("appointment_id", name="uq_payments_appointment_id"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_payments_patient_id", "payments", ["patient_id"])

    op.create_table(
        "invoices",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_name", sa.Text(), nullable=False),
        sa.Column("reference_month", sa.VARCHAR(length=7), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), server_default="issued", nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sessions_count", sa.Integer(), server_default=sa.text("1"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('issued', 'sent', 'paid', 'canceled')",
            name="invoices_status_check",
        ),
        sa.UniqueConstraint("patient_id", "reference_month", name="uq_invoices_patient_month"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("invoices")
    op.drop_index("idx_payments_patient_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("idx_appointment_events_appointment_id", table_name="appointment_events")
    op.drop_table("appointment_events")
    op.drop_index("idx_appointments_series_id", table_name="appointments")
    op.drop_index("idx_appointments_patient_id", table_name="appointments")
    op.drop_index("idx_appointments_professional_date", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("professionals")
    op.drop_table("patients")
