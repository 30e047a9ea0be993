"""Invoices table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)

from app.models.appointments import metadata, utc_now

invoices = Table(
    "invoices",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("patient_id", Uuid, nullable=False),
    Column("patient_name", Text, nullable=False),
    # Billing period in YYYY-MM form
    Column("reference_month", String(7), nullable=False),
    Column("amount", Numeric(10, 2), nullable=False, server_default=text("0")),
    Column("issue_date", Date, nullable=False),
    Column("status", String(20), nullable=False, server_default="issued"),
    Column("description", Text, nullable=True),
    Column("sessions_count", Integer, nullable=False, server_default=text("1")),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utc_now),
    # Constraints
    CheckConstraint(
        "status IN ('issued', 'sent', 'paid', 'canceled')",
        name="invoices_status_check",
    ),
    # Invoices are append-only per patient and period
    UniqueConstraint("patient_id", "reference_month", name="uq_invoices_patient_month"),
)
