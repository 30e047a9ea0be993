"""Append-only storage for appointment audit events."""

from typing import Any
from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment_events import appointment_events
from app.schemas.appointments import AppointmentEventResponse


class EventRepository:
    """Inserts and lists audit events; rows are never updated or deleted."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def append(
        self,
        appointment_id: UUID,
        event_type: str,
        actor: str | None,
        detail: dict[str, Any],
    ) -> AppointmentEventResponse:
        """Record one event."""
        stmt = (
            insert(appointment_events)
            .values(
                appointment_id=appointment_id,
                event_type=event_type,
                actor=actor,
                detail=detail,
            )
            .returning(appointment_events)
        )
        result = await self.db.execute(stmt)
        return AppointmentEventResponse.model_validate(dict(result.fetchone()._mapping))

    async def list_for(self, appointment_id: UUID) -> list[AppointmentEventResponse]:
        """Events of one appointment in the order they happened."""
        result = await self.db.execute(
            select(appointment_events)
            .where(appointment_events.c.appointment_id == appointment_id)
            .order_by(appointment_events.c.occurred_at, appointment_events.c.id)
        )
        return [
            AppointmentEventResponse.model_validate(dict(row._mapping))
            for row in result.fetchall()
        ]
