"""Structured audit trail for appointments."""

from enum import Enum
from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import format_stamp, to_clinic_time
from app.repositories.event_repository import EventRepository
from app.schemas.appointments import AppointmentEventResponse


class AppointmentEventType(str, Enum):
    """Kinds of events recorded against an appointment."""

    CREATED = "created"
    UPDATED = "updated"
    MOVED = "moved"
    SERIES_MOVED = "series_moved"
    DETACHED_FROM_SERIES = "detached_from_series"
    STATUS_CHANGED = "status_changed"
    SUBSTITUTION_CREATED = "substitution_created"
    SUBSTITUTION_EDITED = "substitution_edited"
    SUBSTITUTION_RESTORED = "substitution_restored"
    SUBSTITUTION_VACATED = "substitution_vacated"
    DELETED = "deleted"


_HISTORY_LABELS = {
    AppointmentEventType.CREATED: "Created",
    AppointmentEventType.UPDATED: "Updated",
    AppointmentEventType.MOVED: "Moved",
    AppointmentEventType.SERIES_MOVED: "Moved with series",
    AppointmentEventType.DETACHED_FROM_SERIES: "Detached from series",
    AppointmentEventType.STATUS_CHANGED: "Status changed",
    AppointmentEventType.SUBSTITUTION_CREATED: "Substitution",
    AppointmentEventType.SUBSTITUTION_EDITED: "Substitution edited",
    AppointmentEventType.SUBSTITUTION_RESTORED: "Restored",
    AppointmentEventType.SUBSTITUTION_VACATED: "Substitution canceled",
    AppointmentEventType.DELETED: "Deleted",
}


class AuditService:
    """Records and renders appointment events."""

    def __init__(self, db: AsyncSession, actor: str | None = None):
        """Initialize service with database session and acting user."""
        self.events = EventRepository(db)
        self.actor = actor

    async def record(
        self,
        appointment_id: UUID,
        event_type: AppointmentEventType,
        **detail: Any,
    ) -> AppointmentEventResponse:
        """Append an event; runs inside the caller's transaction."""
        return await self.events.append(
            appointment_id,
            event_type.value,
            self.actor,
            jsonable_encoder(detail),
        )

    async def list_events(self, appointment_id: UUID) -> list[AppointmentEventResponse]:
        """Full event history of an appointment."""
        return await self.events.list_for(appointment_id)

    async def render_history(self, appointment_id: UUID) -> str:
        """Free-text view of the event log, one line per event."""
        lines = []
        for event in await self.list_events(appointment_id):
            try:
                label = _HISTORY_LABELS[AppointmentEventType(event.event_type)]
            except ValueError:
                label = event.event_type
            summary = ", ".join(f"{key}={value}" for key, value in event.detail.items())
            actor = f" by {event.actor}" if event.actor else ""
            stamp = format_stamp(to_clinic_time(event.occurred_at))
            lines.append(f"{stamp}{actor}: {label}. {summary}".rstrip())
        return "\n".join(lines)
