"""Payments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)

from app.models.appointments import metadata, utc_now

payments = Table(
    "payments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Loose link: monthly fees have no appointment
    Column("appointment_id", Uuid, nullable=True),
    Column("patient_id", Uuid, nullable=False),
    Column("patient_name", Text, nullable=False),
    # Amounts
    Column("amount", Numeric(10, 2), nullable=False, server_default=text("0")),
    Column("amount_paid", Numeric(10, 2), nullable=False, server_default=text("0")),
    # Dates
    Column("due_date", Date, nullable=True),
    Column("paid_date", Date, nullable=True),
    # Classification
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("payment_method", String(20), nullable=False, server_default="cash"),
    Column("type", String(20), nullable=False, server_default="consultation"),
    Column("notes", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utc_now),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'paid', 'partial', 'overdue', 'canceled')",
        name="payments_status_check",
    ),
    UniqueConstraint("appointment_id", name="uq_payments_appointment_id"),
    Index("idx_payments_patient_id", "patient_id"),
)
