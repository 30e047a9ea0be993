"""Patient directory table (read-only to the scheduling engine)."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Numeric, Table, Text, Uuid, text

from app.models.appointments import metadata, utc_now

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("full_name", Text, nullable=False),
    # Standard rate charged per consultation, seeds appointment amounts
    Column("consultation_rate", Numeric(10, 2), nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utc_now),
)
