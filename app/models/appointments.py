"""Appointments table model using SQLAlchemy Core."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    text,
)

# Metadata for all tables
metadata = MetaData()


def utc_now() -> datetime:
    """Timestamp default shared by all tables."""
    return datetime.now(UTC)


# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Parties (names are snapshots for history)
    Column("patient_id", Uuid, nullable=False),
    Column("patient_name", Text, nullable=False),
    Column("professional_id", Uuid, nullable=False),
    Column("professional_name", Text, nullable=False),
    # Placement on the calendar
    Column("date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("duration_minutes", Integer, nullable=False, server_default=text("60")),
    Column("consultation_type", String(20), nullable=False, server_default="follow-up"),
    # Status management
    Column("status", String(20), nullable=False, server_default="scheduled"),
    # Recurring series membership
    Column("series_id", String(64), nullable=True),
    # Substitution linkage (only set on the replacement)
    Column("is_substitution", Boolean, nullable=False, server_default=text("false")),
    Column("original_appointment_id", Uuid, nullable=True),
    Column("replaced_patient_id", Uuid, nullable=True),
    Column("replaced_patient_name", Text, nullable=True),
    Column("substitution_reason", Text, nullable=True),
    # Billing seed
    Column("amount", Numeric(10, 2), nullable=False, server_default=text("0")),
    # Append-only audit notes
    Column("remarks", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Column("canceled_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'in-progress', 'completed', 'canceled', 'no-show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "consultation_type IN ('first-visit', 'follow-up', 'exam', 'procedure')",
        name="appointments_consultation_type_check",
    ),
    CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
    # One active replacement per original appointment
    UniqueConstraint("original_appointment_id", name="uq_appointments_original_appointment_id"),
    Index("idx_appointments_professional_date", "professional_id", "date"),
    Index("idx_appointments_patient_id", "patient_id"),
    Index("idx_appointments_series_id", "series_id"),
)
