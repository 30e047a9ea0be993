"""Append-only audit log of appointment events."""

from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, String, Table, Text, Uuid

from app.models.appointments import metadata, utc_now

# No foreign key: history of deleted replacements must survive
appointment_events = Table(
    "appointment_events",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("appointment_id", Uuid, nullable=False),
    Column("occurred_at", DateTime(timezone=True), nullable=False, default=utc_now),
    Column("actor", Text, nullable=True),
    Column("event_type", String(40), nullable=False),
    Column("detail", JSON, nullable=False, default=dict),
    Index("idx_appointment_events_appointment_id", "appointment_id", "occurred_at"),
)
