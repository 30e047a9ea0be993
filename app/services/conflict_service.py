"""Advisory detection of overlapping appointments."""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationException
from app.core.intervals import interval_for, overlaps
from app.repositories.appointment_repository import AppointmentRepository
from app.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    ConflictCheckRequest,
    ConflictEntry,
    ConflictReport,
    Placement,
)

ALL_PROFESSIONALS = "all"


def _is_linked_pair(
    candidate: Placement,
    existing: AppointmentResponse,
    candidate_status: AppointmentStatus | None = None,
) -> bool:
    """A replacement shares the slot of its original only while that original is a no-show."""
    if candidate.original_appointment_id and existing.id == candidate.original_appointment_id:
        return existing.status == AppointmentStatus.NO_SHOW
    if candidate.appointment_id and existing.original_appointment_id == candidate.appointment_id:
        return candidate_status == AppointmentStatus.NO_SHOW
    return False


def _to_entry(existing: AppointmentResponse, candidate: Placement) -> ConflictEntry:
    return ConflictEntry(
        appointment_id=existing.id,
        patient_name=existing.patient_name,
        professional_id=existing.professional_id,
        date=existing.date,
        start_time=existing.start_time,
        end_time=existing.end_time,
        status=existing.status,
        conflicts_with=candidate.appointment_id,
    )


class ConflictService:
    """
    Finds appointments that overlap a proposed placement.

    Results are warnings: callers show them to the operator, who may book
    anyway. Reads are a snapshot and take no locks.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.repository = AppointmentRepository(db)

    async def find_conflicts(
        self,
        candidate: Placement,
        exclude_ids: Iterable[UUID] = (),
        professional_id: UUID | str | None = None,
    ) -> list[ConflictEntry]:
        """
        Overlapping appointments of the same professional on the same day.

        Args:
            candidate: Proposed placement
            exclude_ids: Appointments to ignore (e.g. the one being moved)
            professional_id: Professional to scope the scan to; ``None`` or
                ``"all"`` falls back to the candidate's professional

        Returns:
            Conflicting appointments ordered by start time
        """
        if professional_id is None or professional_id == ALL_PROFESSIONALS:
            professional_id = candidate.professional_id
        if professional_id is None:
            raise ValidationException("A professional is required to check conflicts")

        excluded = set(exclude_ids)
        if candidate.appointment_id:
            excluded.add(candidate.appointment_id)

        proposed = interval_for(candidate.date, candidate.start_time, candidate.duration_minutes)
        same_day = await self.repository.list_for_professional_on(
            UUID(str(professional_id)), candidate.date
        )

        # The candidate is an original whose replacement sits on this day
        candidate_status = None
        if candidate.appointment_id and any(
            existing.original_appointment_id == candidate.appointment_id for existing in same_day
        ):
            linked = await self.repository.get(candidate.appointment_id)
            candidate_status = linked.status if linked else None

        return [
            _to_entry(existing, candidate)
            for existing in same_day
            if existing.id not in excluded
            and not _is_linked_pair(candidate, existing, candidate_status)
            and overlaps(
                proposed,
                interval_for(existing.date, existing.start_time, existing.duration_minutes),
            )
        ]

    async def check(self, request: ConflictCheckRequest) -> ConflictReport:
        """Check one placement, as requested by the calendar before a drop."""
        exclude = [request.exclude_id] if request.exclude_id else []
        return ConflictReport(conflicts=await self.find_conflicts(request, exclude))

    async def check_many(
        self,
        placements: Iterable[Placement],
        exclude_ids: Iterable[UUID] = (),
    ) -> ConflictReport:
        """Check several placements, each existing appointment reported once."""
        excluded = set(exclude_ids)
        seen: set[UUID] = set()
        conflicts: list[ConflictEntry] = []

        for placement in placements:
            for entry in await self.find_conflicts(placement, excluded):
                if entry.appointment_id not in seen:
                    seen.add(entry.appointment_id)
                    conflicts.append(entry)

        return ConflictReport(conflicts=conflicts)
