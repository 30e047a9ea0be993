"""Appointment service for business logic."""

import calendar
from datetime import date, timedelta
from typing import Any
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundException, ValidationException
from app.database import transaction
from app.repositories.appointment_repository import AppointmentRepository
from app.repositories.directory_repository import DirectoryRepository
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentEventResponse,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentSeriesCreate,
    AppointmentUpdate,
    CreateResult,
    EditScope,
    Placement,
    RecurrenceFrequency,
    UpdateResult,
)
from app.services.audit_service import AppointmentEventType, AuditService
from app.services.conflict_service import ConflictService

logger = structlog.get_logger()

_FREQUENCY_DAYS = {
    RecurrenceFrequency.DAILY: 1,
    RecurrenceFrequency.WEEKLY: 7,
    RecurrenceFrequency.BIWEEKLY: 14,
}

# Fields whose change moves the appointment on the professional's calendar
_PLACEMENT_FIELDS = ("professional_id", "start_time", "duration_minutes")


def add_months(day: date, months: int) -> date:
    """Same day of month ``months`` later, clamped to the month's last day."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def expand_occurrences(
    first: date,
    frequency: RecurrenceFrequency,
    occurrences: int,
    until: date | None = None,
) -> list[date]:
    """
    Dates of a recurring booking.

    Only the resulting dates are stored; the rule itself is discarded.

    Args:
        first: Date of the first occurrence
        frequency: Spacing between occurrences
        occurrences: Maximum number of dates
        until: Last allowed date, inclusive

    Returns:
        Occurrence dates in ascending order
    """
    limit = min(occurrences, settings.max_series_occurrences)
    dates = []
    for index in range(limit):
        if frequency == RecurrenceFrequency.MONTHLY:
            day = add_months(first, index)
        else:
            day = first + timedelta(days=_FREQUENCY_DAYS[frequency] * index)
        if until and day > until:
            break
        dates.append(day)
    return dates


class AppointmentService:
    """Service for booking, querying and editing appointments."""

    def __init__(self, db: AsyncSession, actor: str | None = None):
        """Initialize service with database session and acting user."""
        self.db = db
        self.repository = AppointmentRepository(db)
        self.directory = DirectoryRepository(db)
        self.conflicts = ConflictService(db)
        self.audit = AuditService(db, actor)

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments in a date range.

        Args:
            filters: Closed date range plus optional professional, patient,
                status and series filters

        Returns:
            Appointments ordered by date and start time
        """
        items = await self.repository.list(filters)
        return AppointmentListResponse(total=len(items), items=items)

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        return await self.repository.get_or_raise(appointment_id)

    async def list_series(self, series_id: str) -> list[AppointmentResponse]:
        """
        Members of a series ordered by date.

        Raises:
            NotFoundException: If no appointment carries the series ID
        """
        members = await self.repository.list_series(series_id)
        if not members:
            raise NotFoundException(f"Series {series_id} not found")
        return members

    async def list_events(self, appointment_id: UUID) -> list[AppointmentEventResponse]:
        """Audit trail of an appointment, oldest first."""
        return await self.audit.list_events(appointment_id)

    async def render_history(self, appointment_id: UUID) -> str:
        """Free-text view of an appointment's audit trail."""
        return await self.audit.render_history(appointment_id)

    async def _booking_values(self, data: AppointmentCreate) -> dict[str, Any]:
        """Row values shared by every occurrence of a booking."""
        patient = await self.directory.get_patient(data.patient_id)
        professional = await self.directory.get_professional(data.professional_id)

        if not patient.is_active:
            raise ValidationException(f"Patient {patient.full_name} is inactive")
        if not professional.is_active:
            raise ValidationException(f"Professional {professional.full_name} is inactive")

        if data.amount is not None:
            amount = data.amount
        else:
            amount = patient.consultation_rate or 0

        return {
            "patient_id": patient.id,
            "patient_name": patient.full_name,
            "professional_id": professional.id,
            "professional_name": professional.full_name,
            "start_time": data.start_time,
            "duration_minutes": data.duration_minutes,
            "consultation_type": data.consultation_type.value,
            "status": data.status.value,
            "amount": amount,
            "remarks": data.remarks,
        }

    async def _book(
        self,
        rows: list[dict[str, Any]],
        force: bool,
        series_id: str | None = None,
    ) -> CreateResult:
        """Check the rows for conflicts, then insert them as one unit."""
        proposed = [
            Placement(
                professional_id=row["professional_id"],
                date=row["date"],
                start_time=row["start_time"],
                duration_minutes=row["duration_minutes"],
            )
            for row in rows
        ]

        async with transaction(self.db):
            report = await self.conflicts.check_many(proposed)
            if report.has_conflicts and not force:
                logger.info(
                    "appointment_booking_held",
                    occurrences=len(rows),
                    conflicts=len(report.conflicts),
                )
                return CreateResult(
                    applied=False,
                    proposed=proposed,
                    conflicts=report.conflicts,
                    series_id=series_id,
                )

            created = await self.repository.create_many(rows)
            for appointment in created:
                await self.audit.record(
                    appointment.id,
                    AppointmentEventType.CREATED,
                    date=appointment.date,
                    start_time=appointment.start_time,
                    series_id=series_id,
                    overridden_conflicts=[c.appointment_id for c in report.conflicts],
                )

        return CreateResult(
            applied=True,
            proposed=proposed,
            conflicts=report.conflicts,
            appointments=created,
            series_id=series_id,
        )

    async def create_appointment(
        self,
        data: AppointmentCreate,
        force: bool = False,
    ) -> CreateResult:
        """
        Book a single appointment.

        Args:
            data: Appointment creation data
            force: Book even when the slot overlaps existing appointments

        Returns:
            Create result; ``applied`` is False when held back by conflicts

        Raises:
            NotFoundException: If the patient or professional does not exist
        """
        values = await self._booking_values(data)
        result = await self._book([{**values, "date": data.date}], force)

        if result.applied:
            logger.info(
                "appointment_created",
                appointment_id=str(result.appointments[0].id),
                professional_id=str(data.professional_id),
                date=data.date.isoformat(),
            )
        return result

    async def create_series(
        self,
        data: AppointmentSeriesCreate,
        force: bool = False,
    ) -> CreateResult:
        """
        Book a recurring series of appointments.

        All occurrences share a newly generated series ID and are inserted
        together, or not at all.

        Args:
            data: First occurrence plus frequency, count and end date
            force: Book even when some occurrences overlap existing appointments

        Returns:
            Create result with every occurrence and any conflicts
        """
        dates = expand_occurrences(data.date, data.frequency, data.occurrences, data.until)
        values = await self._booking_values(data)
        series_id = str(uuid4()) if len(dates) > 1 else None

        rows = [{**values, "date": day, "series_id": series_id} for day in dates]
        result = await self._book(rows, force, series_id)

        if result.applied:
            logger.info(
                "appointment_series_created",
                series_id=series_id,
                occurrences=len(dates),
                frequency=data.frequency.value,
            )
        return result

    async def _edit_targets(
        self,
        target: AppointmentResponse,
        scope: EditScope,
    ) -> list[AppointmentResponse]:
        if scope == EditScope.THIS or not target.series_id:
            return [target]

        members = await self.repository.list_series(target.series_id)
        if scope == EditScope.FOLLOWING:
            members = [
                member
                for member in members
                if (member.date, member.start_time) >= (target.date, target.start_time)
            ]
        return members

    async def _edit_values(self, data: AppointmentUpdate) -> dict[str, Any]:
        values = data.model_dump(exclude_unset=True, exclude={"note"})

        if "patient_id" in values:
            patient = await self.directory.get_patient(values["patient_id"])
            values["patient_name"] = patient.full_name

        if "professional_id" in values:
            professional = await self.directory.get_professional(values["professional_id"])
            values["professional_name"] = professional.full_name

        if "consultation_type" in values:
            values["consultation_type"] = values["consultation_type"].value

        return {key: value for key, value in values.items() if value is not None}

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
        scope: EditScope = EditScope.THIS,
        force: bool = False,
    ) -> UpdateResult:
        """
        Edit an appointment, its following series members, or the whole series.

        Each member keeps its own date; dates change only through moves.
        Editing just one member of a series detaches it.

        Args:
            appointment_id: Appointment the edit was requested on
            data: Fields to change
            scope: Members the edit applies to
            force: Apply even when the new placements overlap other appointments

        Returns:
            Update result; ``applied`` is False when held back by conflicts

        Raises:
            NotFoundException: If the appointment, patient or professional
                does not exist
        """
        async with transaction(self.db):
            target = await self.repository.get_or_raise(appointment_id)
            members = await self._edit_targets(target, scope)
            values = await self._edit_values(data)

            detach = scope == EditScope.THIS and target.series_id is not None
            if detach:
                values["series_id"] = None

            proposed: list[Placement] = []
            conflicts = []
            if any(field in values for field in _PLACEMENT_FIELDS):
                try:
                    proposed = [
                        Placement(
                            appointment_id=member.id,
                            professional_id=values.get("professional_id", member.professional_id),
                            date=member.date,
                            start_time=values.get("start_time", member.start_time),
                            duration_minutes=values.get(
                                "duration_minutes", member.duration_minutes
                            ),
                            original_appointment_id=member.original_appointment_id,
                        )
                        for member in members
                    ]
                except ValidationError as e:
                    raise ValidationException(
                        "; ".join(error["msg"] for error in e.errors())
                    ) from e

                report = await self.conflicts.check_many(proposed, [m.id for m in members])
                conflicts = report.conflicts
                if conflicts and not force:
                    logger.info(
                        "appointment_edit_held",
                        appointment_id=str(appointment_id),
                        scope=scope.value,
                        conflicts=len(conflicts),
                    )
                    return UpdateResult(
                        applied=False, scope=scope, proposed=proposed, conflicts=conflicts
                    )

            updated = []
            for member in members:
                if data.note:
                    row = await self.repository.append_remark(member.id, data.note, values)
                else:
                    row = await self.repository.update(member.id, values)
                updated.append(row)

                changes = {
                    key: value for key, value in values.items() if key != "series_id"
                }
                await self.audit.record(
                    member.id,
                    AppointmentEventType.UPDATED,
                    scope=scope.value,
                    changes=changes,
                    note=data.note,
                    overridden_conflicts=[c.appointment_id for c in conflicts],
                )

            if detach:
                await self.audit.record(
                    target.id,
                    AppointmentEventType.DETACHED_FROM_SERIES,
                    series_id=target.series_id,
                )

        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            scope=scope.value,
            members=len(updated),
            fields=sorted(values),
        )
        return UpdateResult(
            applied=True,
            scope=scope,
            proposed=proposed,
            conflicts=conflicts,
            appointments=updated,
        )

    async def delete_appointment(self, appointment_id: UUID) -> None:
        """
        Permanently delete an appointment.

        Administrative action; regular workflows cancel instead. The audit
        trail of the appointment is kept.

        Raises:
            NotFoundException: If appointment not found
        """
        async with transaction(self.db):
            appointment = await self.repository.get_or_raise(appointment_id)
            await self.repository.delete(appointment_id)
            await self.audit.record(
                appointment_id,
                AppointmentEventType.DELETED,
                patient_name=appointment.patient_name,
                date=appointment.date,
                start_time=appointment.start_time,
                status=appointment.status.value,
            )

        logger.info("appointment_deleted", appointment_id=str(appointment_id))
