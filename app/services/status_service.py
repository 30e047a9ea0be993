"""Appointment status lifecycle."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException
from app.database import transaction
from app.models.appointments import utc_now
from app.repositories.appointment_repository import AppointmentRepository
from app.schemas.appointments import AppointmentResponse, AppointmentStatus
from app.services.audit_service import AppointmentEventType, AuditService

logger = structlog.get_logger()

TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED})

# Standard flow; canceled and no-show are side branches from any non-terminal state
STANDARD_FLOW: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({AppointmentStatus.CONFIRMED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.IN_PROGRESS}),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


def is_standard_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Whether a transition follows the normal flow of a visit."""
    if current == target:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if target in (AppointmentStatus.CANCELED, AppointmentStatus.NO_SHOW):
        return current != AppointmentStatus.NO_SHOW
    return target in STANDARD_FLOW[current]


class StatusService:
    """
    Applies status changes.

    The lifecycle is advisory: any status may be assigned so staff can fix
    mistakes, but transitions outside the standard flow are logged.
    """

    def __init__(self, db: AsyncSession, actor: str | None = None):
        """Initialize service with database session and acting user."""
        self.db = db
        self.repository = AppointmentRepository(db)
        self.audit = AuditService(db, actor)

    async def change_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        notes: str | None = None,
    ) -> AppointmentResponse:
        """
        Change the status of an appointment.

        Args:
            appointment_id: Appointment ID
            status: New status
            notes: Optional note appended to the remarks

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ConflictException: If a no-show with an active substitution would
                leave the no-show status
        """
        async with transaction(self.db):
            return await self.apply(appointment_id, status, notes)

    async def apply(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        notes: str | None = None,
    ) -> AppointmentResponse:
        """Write a status change inside the caller's transaction."""
        current = await self.repository.get_or_raise(appointment_id)
        old_status = current.status

        if old_status == AppointmentStatus.NO_SHOW and status != AppointmentStatus.NO_SHOW:
            replacement = await self.repository.get_substitution_for(appointment_id)
            if replacement is not None:
                raise ConflictException(
                    f"Appointment {appointment_id} has an active substitution {replacement.id}; "
                    "cancel it with outcome 'restore' to bring the original back"
                )

        if not is_standard_transition(old_status, status):
            logger.warning(
                "non_standard_status_transition",
                appointment_id=str(appointment_id),
                old_status=old_status.value,
                new_status=status.value,
            )

        values: dict[str, Any] = {"status": status.value}
        if status == AppointmentStatus.CANCELED and old_status != status:
            values["canceled_at"] = utc_now()
        elif status != AppointmentStatus.CANCELED:
            values["canceled_at"] = None

        if notes:
            updated = await self.repository.append_remark(appointment_id, notes, values)
        else:
            updated = await self.repository.update(appointment_id, values)

        await self.audit.record(
            appointment_id,
            AppointmentEventType.STATUS_CHANGED,
            old_status=old_status.value,
            new_status=status.value,
            notes=notes,
        )

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            old_status=old_status.value,
            new_status=status.value,
        )
        return updated
