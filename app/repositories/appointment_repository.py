"""Appointment persistence using SQLAlchemy Core."""

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.appointments import appointments, utc_now
from app.schemas.appointments import AppointmentFilters, AppointmentResponse

NOTE_SEPARATOR = "\n\n"


def _to_appointment(row: Row) -> AppointmentResponse:
    return AppointmentResponse.model_validate(dict(row._mapping))


class AppointmentRepository:
    """
    Reads and writes appointments.

    Methods never commit: the calling service owns the transaction so a
    mutation touching several rows is applied as a single unit.
    """

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def get(self, appointment_id: UUID) -> AppointmentResponse | None:
        """Get an appointment by ID."""
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.fetchone()
        return _to_appointment(row) if row else None

    async def get_or_raise(self, appointment_id: UUID) -> AppointmentResponse:
        """Get an appointment by ID or raise NotFoundException."""
        appointment = await self.get(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")
        return appointment

    async def list_for_professional_on(
        self,
        professional_id: UUID,
        day: date,
    ) -> list[AppointmentResponse]:
        """Appointments of one professional on one calendar day."""
        return await self.list(
            AppointmentFilters(from_date=day, to_date=day, professional_id=professional_id)
        )

    async def list_series(self, series_id: str) -> list[AppointmentResponse]:
        """All members of a series ordered by date."""
        return await self.list(AppointmentFilters(series_id=series_id))

    async def get_substitution_for(self, original_id: UUID) -> AppointmentResponse | None:
        """Active replacement referencing an original appointment, if any."""
        result = await self.db.execute(
            select(appointments).where(appointments.c.original_appointment_id == original_id)
        )
        row = result.fetchone()
        return _to_appointment(row) if row else None

    async def create(self, values: dict[str, Any]) -> AppointmentResponse:
        """Insert an appointment and return it."""
        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        return _to_appointment(result.fetchone())

    async def create_many(self, rows: Sequence[dict[str, Any]]) -> list[AppointmentResponse]:
        """Insert several appointments in order."""
        return [await self.create(values) for values in rows]

    async def update(self, appointment_id: UUID, values: dict[str, Any]) -> AppointmentResponse:
        """
        Update an appointment in place.

        Raises:
            NotFoundException: If the appointment no longer exists
        """
        values = {**values, "updated_at": utc_now()}
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if not row:
            raise NotFoundException(f"Appointment {appointment_id} not found")

        return _to_appointment(row)

    async def update_many(
        self,
        changes: Iterable[tuple[UUID, dict[str, Any]]],
    ) -> list[AppointmentResponse]:
        """Apply a batch of updates; any missing row aborts the batch."""
        return [await self.update(appointment_id, values) for appointment_id, values in changes]

    async def append_remark(
        self,
        appointment_id: UUID,
        note: str,
        values: dict[str, Any] | None = None,
    ) -> AppointmentResponse:
        """Append a note to the remarks in a single statement, with optional extra changes."""
        remarks = func.coalesce(appointments.c.remarks + NOTE_SEPARATOR, "") + note
        return await self.update(appointment_id, {**(values or {}), "remarks": remarks})

    async def delete(self, appointment_id: UUID) -> None:
        """
        Permanently delete an appointment.

        Raises:
            NotFoundException: If the appointment no longer exists
        """
        result = await self.db.execute(
            delete(appointments).where(appointments.c.id == appointment_id)
        )
        if result.rowcount == 0:
            raise NotFoundException(f"Appointment {appointment_id} not found")

    # Defined last: inside the class body the name shadows the builtin used in annotations above
    async def list(self, filters: AppointmentFilters) -> list[AppointmentResponse]:
        """List appointments matching the filters, ordered by date and time."""
        conditions = []

        if filters.from_date:
            conditions.append(appointments.c.date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.date <= filters.to_date)

        if filters.professional_id:
            conditions.append(appointments.c.professional_id == filters.professional_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.series_id:
            conditions.append(appointments.c.series_id == filters.series_id)

        stmt = (
            select(appointments)
            .where(*conditions)
            .order_by(appointments.c.date, appointments.c.start_time, appointments.c.created_at)
        )

        result = await self.db.execute(stmt)
        return [_to_appointment(row) for row in result.fetchall()]
