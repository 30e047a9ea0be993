"""Moving appointments and recurring series on the calendar."""

from datetime import date, time
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationException
from app.core.intervals import day_offset, shift_date
from app.database import transaction
from app.repositories.appointment_repository import AppointmentRepository
from app.schemas.appointments import (
    AppointmentResponse,
    MoveRequest,
    MoveResult,
    MoveScope,
    Placement,
)
from app.services.audit_service import AppointmentEventType, AuditService
from app.services.conflict_service import ConflictService

logger = structlog.get_logger()


def _placement(appointment: AppointmentResponse, new_date: date, new_time: time) -> Placement:
    try:
        return Placement(
            appointment_id=appointment.id,
            professional_id=appointment.professional_id,
            date=new_date,
            start_time=new_time,
            duration_minutes=appointment.duration_minutes,
            original_appointment_id=appointment.original_appointment_id,
        )
    except ValidationError as e:
        raise ValidationException(
            f"Appointment {appointment.id} cannot be placed at {new_date} {new_time:%H:%M}: "
            + "; ".join(error["msg"] for error in e.errors())
        ) from e


class MoveService:
    """
    Relocates a single appointment or a whole series.

    Each move checks the final placements for conflicts first. When any are
    found the move is held back unless the caller passes ``force=True``;
    the decision to double-book belongs to the operator. The check and the
    write share a transaction but take no locks, so two concurrent moves
    can both pass the check (last writer wins).
    """

    def __init__(self, db: AsyncSession, actor: str | None = None):
        """Initialize service with database session and acting user."""
        self.db = db
        self.repository = AppointmentRepository(db)
        self.conflicts = ConflictService(db)
        self.audit = AuditService(db, actor)

    async def _series_members(self, appointment: AppointmentResponse) -> list[AppointmentResponse]:
        """Members of the appointment's series; a lone member is not a series."""
        if not appointment.series_id:
            return [appointment]
        members = await self.repository.list_series(appointment.series_id)
        return members if len(members) > 1 else [appointment]

    async def _plan(
        self,
        appointment_id: UUID,
        new_date: date,
        new_time: time | None,
        scope: MoveScope,
    ) -> tuple[AppointmentResponse, list[AppointmentResponse], MoveResult]:
        target = await self.repository.get_or_raise(appointment_id)
        new_time = new_time or target.start_time
        offset = day_offset(target.date, new_date)

        members = await self._series_members(target) if scope == MoveScope.SERIES else [target]
        effective_scope = MoveScope.SERIES if len(members) > 1 else MoveScope.SINGLE

        proposed = [
            _placement(member, shift_date(member.date, offset), new_time) for member in members
        ]
        report = await self.conflicts.check_many(proposed, [member.id for member in members])

        result = MoveResult(
            applied=False,
            scope=effective_scope,
            day_offset=offset,
            series_size=len(members),
            proposed=proposed,
            conflicts=report.conflicts,
        )
        return target, members, result

    async def preview_move(
        self,
        appointment_id: UUID,
        new_date: date,
        new_time: time | None = None,
        scope: MoveScope = MoveScope.SINGLE,
    ) -> MoveResult:
        """
        Show what a move would do without writing anything.

        Returns:
            Unapplied result with proposed placements and conflicts
        """
        _, _, result = await self._plan(appointment_id, new_date, new_time, scope)
        return result

    async def move(self, appointment_id: UUID, request: MoveRequest) -> MoveResult:
        """Dispatch a move request to the single or series operation."""
        if request.scope == MoveScope.SERIES:
            return await self.move_series(
                appointment_id, request.new_date, request.new_time, request.force
            )
        return await self.move_one(
            appointment_id, request.new_date, request.new_time, request.force
        )

    async def move_one(
        self,
        appointment_id: UUID,
        new_date: date,
        new_time: time | None = None,
        force: bool = False,
    ) -> MoveResult:
        """
        Move just this occurrence.

        The appointment leaves its series so later series moves do not
        drag it along.

        Args:
            appointment_id: Appointment to move
            new_date: Target date
            new_time: Target start time, defaults to the current one
            force: Apply even when conflicts are found

        Returns:
            Move result; ``applied`` is False when held back by conflicts
        """
        async with transaction(self.db):
            target, _, result = await self._plan(
                appointment_id, new_date, new_time, MoveScope.SINGLE
            )
            return await self._apply_one(target, result, force)

    async def move_series(
        self,
        appointment_id: UUID,
        new_date: date,
        new_time: time | None = None,
        force: bool = False,
    ) -> MoveResult:
        """
        Move every member of the appointment's series.

        Each member's date shifts by the same number of days the dragged
        appointment moved, and all members take the new start time. The
        batch is committed as one unit. When the series has a single
        member this behaves like ``move_one``.

        Returns:
            Move result; ``applied`` is False when held back by conflicts
        """
        async with transaction(self.db):
            target, members, result = await self._plan(
                appointment_id, new_date, new_time, MoveScope.SERIES
            )
            if result.scope == MoveScope.SINGLE:
                return await self._apply_one(target, result, force)

            if result.has_conflicts and not force:
                logger.info(
                    "series_move_held",
                    series_id=target.series_id,
                    conflicts=len(result.conflicts),
                )
                return result

            updated = await self.repository.update_many(
                (member.id, {"date": placement.date, "start_time": placement.start_time})
                for member, placement in zip(members, result.proposed, strict=True)
            )

            for member, placement in zip(members, result.proposed, strict=True):
                await self.audit.record(
                    member.id,
                    AppointmentEventType.SERIES_MOVED,
                    series_id=target.series_id,
                    day_offset=result.day_offset,
                    from_date=member.date,
                    from_time=member.start_time,
                    to_date=placement.date,
                    to_time=placement.start_time,
                    overridden_conflicts=[c.appointment_id for c in result.conflicts],
                )

        logger.info(
            "series_moved",
            series_id=target.series_id,
            members=len(updated),
            day_offset=result.day_offset,
        )
        return result.model_copy(update={"applied": True, "appointments": updated})

    async def _apply_one(
        self,
        target: AppointmentResponse,
        result: MoveResult,
        force: bool,
    ) -> MoveResult:
        """Write a planned single move inside the caller's transaction."""
        if result.has_conflicts and not force:
            logger.info(
                "appointment_move_held",
                appointment_id=str(target.id),
                conflicts=len(result.conflicts),
            )
            return result

        placement = result.proposed[0]
        updated = await self.repository.update(
            target.id,
            {"date": placement.date, "start_time": placement.start_time, "series_id": None},
        )

        await self.audit.record(
            target.id,
            AppointmentEventType.MOVED,
            from_date=target.date,
            from_time=target.start_time,
            to_date=placement.date,
            to_time=placement.start_time,
            overridden_conflicts=[c.appointment_id for c in result.conflicts],
        )
        if target.series_id:
            await self.audit.record(
                target.id,
                AppointmentEventType.DETACHED_FROM_SERIES,
                series_id=target.series_id,
            )

        logger.info(
            "appointment_moved",
            appointment_id=str(target.id),
            to_date=placement.date.isoformat(),
            to_time=placement.start_time.isoformat(),
            detached=bool(target.series_id),
        )
        return result.model_copy(update={"applied": True, "appointments": [updated]})
